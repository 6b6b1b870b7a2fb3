"""
Node Runner - Runs one node to a terminal outcome.
节点运行器 —— 将单个节点执行到终态。

Wraps a node's work function with, in order:
  1. Checkpoint short-circuit (use_checkpoint + stored value, even None -> done, work not called)
  2. Per-attempt deadline (timeout_ms)
  3. Retry loop with flat or exponential backoff
  4. Fallback substitution once retries are exhausted
  5. Best-effort compensation when the node ultimately fails

依次为节点的 work 函数包装：
  1. 检查点短路（启用 use_checkpoint 且已有存储值时直接完成，存储值为 None 亦然，不调用 work）
  2. 单次尝试超时（timeout_ms）
  3. 固定间隔或指数退避的重试循环
  4. 重试耗尽后执行 fallback 替代
  5. 最终失败时尽力执行 compensate 清理

Timeout note: a timeout means "stop waiting", not "stop executing". The
work task is left running detached and whatever it eventually produces is
discarded.
超时说明：超时意味着「停止等待」而非「停止执行」。work 任务会被分离继续运行，
其迟到的结果或异常都会被丢弃。
"""

from __future__ import annotations

import asyncio
import inspect
import logging
import math
import time
from dataclasses import dataclass
from typing import Any, Callable

from dag.errors import CompensationFailure, FallbackFailure, NodeError, NodeTimeoutError, WorkFailure
from dag.state_machine import NodeStateMachine
from schema import (
    MISSING,
    CheckpointStore,
    GraphLogger,
    GraphNode,
    NodeOutcome,
    NodeStatus,
    RunContext,
    RunOptions,
)

logger = logging.getLogger(__name__)


async def call_maybe_async(fn: Callable[..., Any], *args: Any) -> Any:
    """Call `fn` and await the result if it is awaitable."""
    result = fn(*args)
    if inspect.isawaitable(result):
        return await result
    return result


def compute_backoff_delay(base_delay_ms: float, attempt: int, exponential: bool) -> float:
    """
    Delay before retrying after `attempt` (0-based) failed.
    第 attempt 次（从 0 开始）尝试失败后、下一次重试前的等待时间（毫秒）。
    """
    if exponential:
        return base_delay_ms * (2 ** attempt)
    return base_delay_ms


@dataclass
class RetryPolicy:
    """Effective resiliency settings for one node in one run.
    单个节点在本次运行中的实际容错参数。"""
    max_retries: int = 0
    retry_delay_ms: float = 0.0
    exponential_backoff: bool = False
    timeout_ms: float | None = None

    @classmethod
    def resolve(cls, node: GraphNode, options: RunOptions) -> RetryPolicy:
        """Node-level settings win over run-level defaults. 节点级配置优先于运行级默认值。"""
        return cls(
            max_retries=node.max_retries if node.max_retries is not None else options.default_retries,
            retry_delay_ms=node.retry_delay_ms if node.retry_delay_ms is not None else options.default_retry_delay_ms,
            exponential_backoff=(
                node.exponential_backoff if node.exponential_backoff is not None
                else options.default_exponential_backoff
            ),
            timeout_ms=node.timeout_ms if node.timeout_ms is not None else options.timeout_ms,
        )

    @property
    def has_deadline(self) -> bool:
        return bool(self.timeout_ms) and math.isfinite(self.timeout_ms)


class NodeRunner:
    """
    Executes single nodes with checkpoint/timeout/retry/fallback/compensation.
    以检查点、超时、重试、fallback、补偿机制执行单个节点。

    One runner serves one run; it shares that run's state machine with the
    executor so every transition is validated in one place.
    每个运行器服务于一次运行，与执行器共享同一个状态机，所有状态转移在同一处校验。
    """

    def __init__(self, options: RunOptions, state_machine: NodeStateMachine):
        self._options = options
        self._sm = state_machine
        # Timed-out work tasks still running; held so they are not garbage-collected mid-flight.
        # 已超时但仍在运行的 work 任务；保留引用防止被中途回收。
        self._abandoned: set[asyncio.Task] = set()

    @property
    def abandoned_count(self) -> int:
        return len(self._abandoned)

    async def run(self, node: GraphNode, ctx: RunContext) -> NodeOutcome:
        """
        Drive `node` from PENDING to SUCCEEDED or FAILED. Never raises for
        node-level failures; they are returned in the outcome.
        将节点从 PENDING 驱动到 SUCCEEDED 或 FAILED。节点级失败不会抛出，而是放在返回的 outcome 中。
        """
        name = node.name
        start = time.monotonic()

        cached = await self._load_checkpoint(node, ctx.checkpoint)
        if cached is not MISSING:
            self._sm.transition(name, NodeStatus.SUCCEEDED)
            ctx.logger.info(f"CHECKPOINT {name}")
            return NodeOutcome(
                name=name, status=NodeStatus.SUCCEEDED, result=cached,
                from_checkpoint=True, elapsed_ms=_ms_since(start),
            )

        policy = RetryPolicy.resolve(node, self._options)
        attempt = 0
        last_error: Exception | None = None
        self._sm.transition(name, NodeStatus.RUNNING)

        # Explicit loop, never recursion: attempt 0 is the first try.
        # 显式循环而非递归：attempt 0 为首次尝试。
        while True:
            try:
                result = await self._invoke(node, ctx, policy)
            except Exception as exc:
                last_error = exc
                await self._notify_failure_hook(node, ctx, exc)
                if attempt < policy.max_retries and await self._should_retry(node, exc):
                    delay_ms = compute_backoff_delay(policy.retry_delay_ms, attempt, policy.exponential_backoff)
                    self._sm.transition(name, NodeStatus.RETRYING)
                    ctx.logger.info(f"RETRY {name}", {
                        "attempt": attempt + 1,
                        "delay_ms": delay_ms,
                        "error": str(exc),
                    })
                    if delay_ms > 0:
                        await asyncio.sleep(delay_ms / 1000)
                    attempt += 1
                    self._sm.transition(name, NodeStatus.RUNNING)
                    continue
                break
            else:
                await self._save_checkpoint(node, ctx.checkpoint, result)
                self._sm.transition(name, NodeStatus.SUCCEEDED)
                return NodeOutcome(
                    name=name, status=NodeStatus.SUCCEEDED, result=result,
                    attempts=attempt + 1, elapsed_ms=_ms_since(start),
                )

        attempts = attempt + 1
        reason: NodeError = _as_node_error(name, last_error)

        if node.fallback is not None:
            self._sm.transition(name, NodeStatus.FALLING_BACK)
            logger.info("[Runner] %s: retries exhausted after %d attempt(s), running fallback", name, attempts)
            try:
                result = await call_maybe_async(node.fallback, ctx, last_error)
            except Exception as exc:
                reason = FallbackFailure(name, exc)
                reason.__cause__ = exc
                await self._compensate(node, ctx, "fallback_failed")
            else:
                await self._save_checkpoint(node, ctx.checkpoint, result)
                self._sm.transition(name, NodeStatus.SUCCEEDED)
                return NodeOutcome(
                    name=name, status=NodeStatus.SUCCEEDED, result=result,
                    attempts=attempts, used_fallback=True, elapsed_ms=_ms_since(start),
                )
        else:
            await self._compensate(node, ctx, "failed")

        self._sm.transition(name, NodeStatus.FAILED)
        return NodeOutcome(
            name=name, status=NodeStatus.FAILED, error=reason,
            attempts=attempts, elapsed_ms=_ms_since(start),
        )

    # ------------------------------------------------------------------
    # Single attempt
    # 单次尝试
    # ------------------------------------------------------------------

    async def _invoke(self, node: GraphNode, ctx: RunContext, policy: RetryPolicy) -> Any:
        if not policy.has_deadline:
            return await call_maybe_async(node.work, ctx)

        task = asyncio.ensure_future(call_maybe_async(node.work, ctx))
        try:
            done, _ = await asyncio.wait({task}, timeout=policy.timeout_ms / 1000)
        except asyncio.CancelledError:
            task.cancel()
            raise
        if task in done:
            return task.result()

        # Stop waiting; the work keeps running and its late result is dropped.
        # 停止等待；work 继续运行，其迟到的结果将被丢弃。
        self._abandoned.add(task)
        task.add_done_callback(self._discard_late_result)
        raise NodeTimeoutError(node.name, policy.timeout_ms)

    def _discard_late_result(self, task: asyncio.Task) -> None:
        self._abandoned.discard(task)
        if task.cancelled():
            return
        exc = task.exception()  # marks the exception as retrieved
        if exc is not None:
            logger.debug("[Runner] late error from timed-out work discarded: %s", exc)
        else:
            logger.debug("[Runner] late result from timed-out work discarded")

    async def _should_retry(self, node: GraphNode, error: Exception) -> bool:
        """Predicates may be sync or async, like every other callable on a node."""
        try:
            if node.should_retry is not None:
                return bool(await call_maybe_async(node.should_retry, error))
            if self._options.should_retry_global is not None:
                return bool(await call_maybe_async(self._options.should_retry_global, error, node))
        except Exception as exc:
            logger.warning("[Runner] retry predicate for %s raised %s; not retrying", node.name, exc)
            return False
        return True

    # ------------------------------------------------------------------
    # Hooks
    # 钩子
    # ------------------------------------------------------------------

    async def _notify_failure_hook(self, node: GraphNode, ctx: RunContext, error: Exception) -> None:
        if node.on_failure is None:
            return
        try:
            await call_maybe_async(node.on_failure, ctx, error)
        except Exception as exc:
            logger.warning("[Runner] on_failure hook for %s raised: %s", node.name, exc)

    async def _compensate(self, node: GraphNode, ctx: RunContext, reason: str) -> None:
        """
        Best-effort cleanup. Its own failure is logged, never raised.
        尽力而为的清理；其自身失败只记录日志，不会抛出。
        """
        if node.compensate is None:
            return
        try:
            await call_maybe_async(node.compensate, ctx, reason)
        except Exception as exc:
            failure = CompensationFailure(node.name, exc)
            run_logger: GraphLogger = ctx.logger
            run_logger.error(f"COMPENSATE_FAIL {node.name}", {"error": str(failure)})

    # ------------------------------------------------------------------
    # Checkpoint access
    # 检查点读写
    # ------------------------------------------------------------------

    async def _load_checkpoint(self, node: GraphNode, store: CheckpointStore | None) -> Any:
        """Stored value, or MISSING when there is none to use. 返回检查点值；无可用值时返回 MISSING。"""
        if not node.use_checkpoint or store is None:
            return MISSING
        try:
            return await call_maybe_async(store.get, node.name, MISSING)
        except Exception as exc:
            logger.warning("[Runner] checkpoint read for %s failed, running work instead: %s", node.name, exc)
            return MISSING

    async def _save_checkpoint(self, node: GraphNode, store: CheckpointStore | None, value: Any) -> None:
        if not node.use_checkpoint or store is None:
            return
        try:
            await call_maybe_async(store.set, node.name, value)
        except Exception as exc:
            logger.warning("[Runner] checkpoint write for %s failed: %s", node.name, exc)


def _as_node_error(name: str, error: Exception | None) -> NodeError:
    if isinstance(error, NodeTimeoutError):
        return error
    if error is None:
        error = RuntimeError("Unknown error")
    failure = WorkFailure(name, error)
    failure.__cause__ = error
    return failure


def _ms_since(start: float) -> float:
    return (time.monotonic() - start) * 1000
