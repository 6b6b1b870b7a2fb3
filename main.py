"""
Graph runner demo - CLI entry point.
图执行引擎演示 —— 命令行入口。

Runs the demo site-building graph with a rich console UI: the planned
levels, live node events, and a final result table.
以 Rich 控制台 UI 运行演示建站流程：展示规划出的层级、实时节点事件与最终结果表。

Usage / 用法:
    python main.py [-v] [--partial] [--fail-image] [--resume]

    -v, --verbose   DEBUG logging / 启用调试日志
    --partial       allow partial success / 允许部分成功
    --fail-image    make generate_image fail permanently / 让 generate_image 永久失败
    --resume        run twice on one checkpoint store / 在同一检查点存储上连续运行两次
"""

from __future__ import annotations

import asyncio
import logging
import sys
from typing import Any

from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table
from rich.tree import Tree

import config
from dag import GraphExecutor, InMemoryCheckpointStore, NodeGraph, StdLogger
from nodes import build_site_graph
from schema import GraphNode, NodeStatus, RunContext, RunOptions, RunResult

console = Console()

# Status -> Rich style mapping
# 节点状态 -> Rich 样式映射
_STATUS_STYLES = {
    "pending": "dim",
    "running": "bold yellow",
    "retrying": "yellow",
    "falling_back": "magenta",
    "succeeded": "green",
    "failed": "red",
    "skipped": "dim strike",
}


# ======================================================================
# Rendering
# 渲染
# ======================================================================

def _build_level_tree(nodes: list[GraphNode]) -> Tree:
    """
    Rich Tree of the planned levels. 构建展示层级规划的 Rich Tree。
    """
    graph = NodeGraph(nodes)
    tree = Tree(f"[bold]{graph.summary()}[/bold]")
    for index, level in enumerate(graph.levels):
        branch = tree.add(f"[cyan]level {index}[/cyan]")
        for name in level:
            node = graph[name]
            label = f"[white]{name}[/white]"
            if node.dependencies:
                label += f" [dim]<- {', '.join(node.dependencies)}[/dim]"
            if node.description:
                label += f"\n  [dim]{node.description}[/dim]"
            branch.add(label)
    return tree


def _build_result_table(result: RunResult) -> Table:
    table = Table(title=result.summary())
    table.add_column("Node", style="cyan")
    table.add_column("Status")
    table.add_column("Attempts", justify="right")
    table.add_column("Detail", overflow="fold")
    for level in result.levels:
        for name in level:
            status = result.statuses.get(name, NodeStatus.PENDING)
            style = _STATUS_STYLES.get(status.value, "white")
            if name in result.failed:
                detail = str(result.failed[name])
            else:
                detail = str(result.outputs.get(name, ""))
            table.add_row(
                name,
                f"[{style}]{status.value}[/{style}]",
                str(result.attempts.get(name, 0)),
                detail,
            )
    return table


# ======================================================================
# Event hooks
# 事件回调
# ======================================================================

def on_node_start(name: str) -> None:
    console.print(f"  [yellow]>[/yellow] {name}")


def on_node_success(name: str, ms: int, result: Any) -> None:
    console.print(f"  [green]✓[/green] {name} [dim]({ms}ms)[/dim]")


def on_node_failure(name: str, error: BaseException) -> None:
    console.print(f"  [red]✗[/red] {name}: {error}")


def on_node_skip(name: str) -> None:
    console.print(f"  [dim]- {name} skipped[/dim]")


# ======================================================================
# Main
# 主函数
# ======================================================================

def setup_logging(verbose: bool = False) -> None:
    """
    Configure logging with rich handler.
    使用 Rich 处理器配置日志系统。verbose=True 时启用 DEBUG 级别。
    """
    level = logging.DEBUG if verbose else getattr(logging, config.LOG_LEVEL, logging.INFO)
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, show_path=False, rich_tracebacks=True)],
    )


async def run_demo(partial: bool, fail_image: bool, resume: bool) -> RunResult:
    nodes = build_site_graph(fail_image=fail_image)
    console.print(Panel(_build_level_tree(nodes), title="[bold blue]Plan[/bold blue]", border_style="blue"))

    options = RunOptions.from_config(
        allow_partial_success=partial or config.ALLOW_PARTIAL_SUCCESS,
        on_node_start=on_node_start,
        on_node_success=on_node_success,
        on_node_failure=on_node_failure,
        on_node_skip=on_node_skip,
    )
    executor = GraphExecutor(options)
    store = InMemoryCheckpointStore()
    ctx = RunContext(logger=StdLogger(), checkpoint=store)

    rounds = 2 if resume else 1
    result: RunResult | None = None
    for round_no in range(1, rounds + 1):
        console.print(f"\n[bold cyan]>>> Run {round_no}[/bold cyan]")
        result = await executor.run(nodes, ctx)
        console.print(_build_result_table(result))
        if resume:
            console.print(f"[dim]checkpoints held: {len(store)}[/dim]")
    return result


def main() -> None:
    """
    程序入口：解析命令行参数并运行演示流程。失败时以退出码 1 结束。
    """
    verbose = "--verbose" in sys.argv or "-v" in sys.argv
    setup_logging(verbose)

    result = asyncio.run(run_demo(
        partial="--partial" in sys.argv,
        fail_image="--fail-image" in sys.argv,
        resume="--resume" in sys.argv,
    ))
    deployed = result.outputs.get("deploy_site")
    if deployed:
        console.print(f"\n[bold green]Demo deployed URL:[/bold green] {deployed['url']}")
    if result.failed:
        sys.exit(1)


if __name__ == "__main__":
    main()
