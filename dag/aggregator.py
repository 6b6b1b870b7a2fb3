"""
Run Aggregator - Collects per-node outcomes into the final RunResult.
运行结果汇总器 —— 将各节点结果汇总为最终 RunResult。

Also fires the caller's observability hooks (on_node_start / success /
failure / skip) and writes the START / DONE / FAIL / SKIP lifecycle lines to
the run logger. Hooks are fire-and-forget: an exception inside one is
logged and otherwise ignored.
同时触发调用方的可观测性回调，并向运行日志写入 START / DONE / FAIL / SKIP 生命周期事件。
回调只做通知：其内部异常仅记录日志，不影响调度。
"""

from __future__ import annotations

import logging
from typing import Any, Callable

from dag.runner import call_maybe_async
from dag.state_machine import NodeStateMachine
from schema import NodeOutcome, NodeStatus, RunContext, RunOptions, RunResult

logger = logging.getLogger(__name__)


class RunAggregator:
    """
    Accumulates outputs and the succeeded / failed / skipped sets of one run.
    累积单次运行的 outputs 以及 succeeded / failed / skipped 集合。

    The aggregator is the only writer of `ctx.outputs`; a node's result
    becomes visible there the moment the node succeeds.
    汇总器是 ctx.outputs 的唯一写入方；节点成功的同时其结果即对后续节点可见。
    """

    def __init__(self, ctx: RunContext, options: RunOptions, state_machine: NodeStateMachine):
        self._ctx = ctx
        self._options = options
        self._sm = state_machine
        self.succeeded: set[str] = set()
        self.failed: dict[str, BaseException] = {}
        self.skipped: set[str] = set()
        self.attempts: dict[str, int] = {}

    @property
    def outputs(self) -> dict[str, Any]:
        return self._ctx.outputs

    # ------------------------------------------------------------------
    # Events
    # 事件
    # ------------------------------------------------------------------

    async def node_started(self, name: str) -> None:
        await self._fire(self._options.on_node_start, name)
        self._ctx.logger.info(f"START {name}")

    async def node_finished(self, outcome: NodeOutcome) -> None:
        name = outcome.name
        self.attempts[name] = outcome.attempts
        ms = round(outcome.elapsed_ms)
        if outcome.succeeded:
            self._ctx.outputs[name] = outcome.result
            self.succeeded.add(name)
            self._ctx.logger.info(f"DONE {name}", {"ms": ms})
            await self._fire(self._options.on_node_success, name, ms, outcome.result)
        else:
            self.failed[name] = outcome.error
            self._ctx.logger.error(f"FAIL {name}", {"error": str(outcome.error)})
            await self._fire(self._options.on_node_failure, name, outcome.error)

    async def node_skipped(self, name: str, reason: str) -> None:
        self._sm.transition(name, NodeStatus.SKIPPED)
        self.skipped.add(name)
        self.attempts.setdefault(name, 0)
        self._ctx.logger.info(f"SKIP {name}", {"reason": reason})
        await self._fire(self._options.on_node_skip, name)

    def is_blocked(self, dependencies: list[str]) -> bool:
        """True when any dependency failed or was skipped. 任一依赖失败或被跳过时返回 True。"""
        return any(d in self.failed or d in self.skipped for d in dependencies)

    # ------------------------------------------------------------------
    # Result
    # 结果
    # ------------------------------------------------------------------

    def build(self, levels: list[list[str]], elapsed_ms: float) -> RunResult:
        return RunResult(
            outputs=dict(self._ctx.outputs),
            succeeded=set(self.succeeded),
            failed=dict(self.failed),
            skipped=set(self.skipped),
            statuses=self._sm.snapshot(),
            attempts=dict(self.attempts),
            levels=[list(level) for level in levels],
            run_id=self._ctx.run_id,
            elapsed_ms=elapsed_ms,
        )

    async def _fire(self, hook: Callable[..., Any] | None, *args: Any) -> None:
        if hook is None:
            return
        try:
            await call_maybe_async(hook, *args)
        except Exception as exc:
            logger.warning("[Aggregator] hook %s raised: %s", getattr(hook, "__name__", hook), exc)
