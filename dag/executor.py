"""
Graph Executor - Runs a node set level by level with bounded concurrency.
图执行引擎 —— 按层级执行节点集合，并限制并发数。

Execution model:
  1. Validate the whole node set and plan levels (Kahn's algorithm), once
  2. For each level, in order:
       - skip nodes whose upstream can never resolve
       - keep at most `concurrency` nodes in flight; whenever one finishes,
         start the next pending node of the level
       - wait until every node of the level is terminal
  3. Gate the next level on the failure policy
  4. Assemble the RunResult

执行模型：
  1. 一次性校验整个节点集合并规划层级（Kahn 算法）
  2. 按顺序处理每一层：
       - 跳过上游永远无法完成的节点
       - 同时最多运行 `concurrency` 个节点；任一节点结束立即补上本层下一个待执行节点
       - 等待本层所有节点到达终态
  3. 根据失败策略决定是否进入下一层
  4. 汇总生成 RunResult

Failure policy:
  - default: any failure ends the run after the current level; every node in
    later levels is SKIPPED
  - allow_partial_success: only nodes downstream of a failure are SKIPPED;
    independent branches keep going

失败策略：
  - 默认：任一节点失败后，当前层结束即停止；后续所有层的节点标记为 SKIPPED
  - allow_partial_success：仅失败节点的下游被跳过，独立分支继续执行
"""

from __future__ import annotations

import asyncio
import logging
import time
import uuid
from typing import Any, Iterable

from dag.aggregator import RunAggregator
from dag.graph import NodeGraph
from dag.log import StdLogger
from dag.runner import NodeRunner
from dag.state_machine import NodeStateMachine
from schema import GraphNode, RunContext, RunOptions, RunResult

logger = logging.getLogger(__name__)


class GraphExecutor:
    """
    Executes a node set and returns a RunResult accounting for every node.
    执行节点集合，返回覆盖每个节点最终去向的 RunResult。

    An executor holds only options, so one instance can drive many runs;
    all per-run state is created inside `run()`.
    执行器只保存选项，可复用于多次运行；所有单次运行状态都在 run() 内部创建。
    """

    def __init__(self, options: RunOptions | None = None):
        self._options = options or RunOptions()

    @property
    def options(self) -> RunOptions:
        return self._options

    async def run(self, nodes: Iterable[GraphNode], base_context: RunContext | None = None) -> RunResult:
        """
        Execute the full graph.
        执行完整的图。

        Raises GraphValidationError before any node runs if the node set is
        not a DAG. Node failures never raise; they are reported in the result.
        若节点集合不是合法 DAG，则在任何节点运行前抛出 GraphValidationError。
        节点失败不会抛出，而是记录在结果中。
        """
        graph = NodeGraph(nodes)
        ctx = self._prepare_context(base_context)
        sm = NodeStateMachine(graph.nodes)
        runner = NodeRunner(self._options, sm)
        agg = RunAggregator(ctx, self._options, sm)

        start = time.monotonic()
        logger.info("[Executor] run %s: %s", ctx.run_id, graph.summary())

        doomed: set[str] = set()  # 因上游失败而注定无法执行的节点
        halted = False
        for index, level in enumerate(graph.levels):
            if halted:
                for name in level:
                    await agg.node_skipped(name, "run halted")
                continue

            schedulable: list[str] = []
            for name in level:
                if name in doomed or agg.is_blocked(graph.get_dependency_ids(name)):
                    await agg.node_skipped(name, "upstream failed")
                else:
                    schedulable.append(name)

            failed_here = await self._run_level(schedulable, graph, ctx, runner, agg)
            logger.info(
                "[Executor] level %d done: %d ran, %d failed", index, len(schedulable), len(failed_here),
            )

            if failed_here:
                if self._options.allow_partial_success:
                    for name in failed_here:
                        doomed.update(graph.get_downstream(name))
                else:
                    halted = True
                    logger.warning("[Executor] level %d had failures %s; halting run", index, sorted(failed_here))

        result = agg.build(graph.levels, (time.monotonic() - start) * 1000)
        if runner.abandoned_count:
            logger.debug("[Executor] %d timed-out work task(s) still running detached", runner.abandoned_count)
        logger.info("[Executor] run %s finished. %s", ctx.run_id, result.summary())
        return result

    # ------------------------------------------------------------------
    # One level
    # 单层执行
    # ------------------------------------------------------------------

    async def _run_level(
        self,
        names: list[str],
        graph: NodeGraph,
        ctx: RunContext,
        runner: NodeRunner,
        agg: RunAggregator,
    ) -> list[str]:
        """
        Run `names` with at most `concurrency` in flight; return the failures.
        以最多 `concurrency` 个并发运行本层节点；返回失败节点名列表。
        """
        limit = self._options.concurrency or max(1, len(names))
        queue = list(names)
        running: set[asyncio.Task] = set()
        failed: list[str] = []

        async def run_one(name: str) -> bool:
            await agg.node_started(name)
            outcome = await runner.run(graph[name], ctx)
            await agg.node_finished(outcome)
            return outcome.succeeded

        task_names: dict[asyncio.Task, str] = {}
        try:
            while queue or running:
                while queue and len(running) < limit:
                    name = queue.pop(0)
                    task = asyncio.ensure_future(run_one(name))
                    task_names[task] = name
                    running.add(task)
                done, running = await asyncio.wait(running, return_when=asyncio.FIRST_COMPLETED)
                for task in done:
                    # Engine bugs (e.g. InvalidTransitionError) propagate here.
                    # 引擎自身的错误（如非法状态转移）会在此处抛出。
                    if not task.result():
                        failed.append(task_names[task])
        finally:
            for task in running:
                task.cancel()
        return failed

    # ------------------------------------------------------------------
    # Helpers
    # 辅助方法
    # ------------------------------------------------------------------

    @staticmethod
    def _prepare_context(base_context: RunContext | None) -> RunContext:
        """
        Fresh context per run: a new outputs map, a run id and a logger.
        每次运行使用全新的上下文：新的 outputs、run_id 与 logger。
        """
        base = base_context or RunContext()
        run_id = base.run_id or uuid.uuid4().hex[:8]
        run_logger: Any = base.logger if base.logger is not None else StdLogger(run_id=run_id)
        return base.model_copy(update={"outputs": {}, "run_id": run_id, "logger": run_logger})


# ----------------------------------------------------------------------
# Entry points
# 入口函数
# ----------------------------------------------------------------------

async def run_graph_detailed(
    nodes: Iterable[GraphNode],
    base_context: RunContext | None = None,
    options: RunOptions | None = None,
) -> RunResult:
    """Run `nodes` and return the full RunResult. 运行节点并返回完整 RunResult。"""
    return await GraphExecutor(options).run(nodes, base_context)


async def run_graph(
    nodes: Iterable[GraphNode],
    base_context: RunContext | None = None,
    options: RunOptions | None = None,
) -> dict[str, Any]:
    """
    Outputs-only variant for callers that don't need failure detail.
    仅返回 outputs 的简化版本，适用于不关心失败细节的调用方。
    """
    result = await run_graph_detailed(nodes, base_context, options)
    return result.outputs
