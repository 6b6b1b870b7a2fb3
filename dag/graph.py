"""
NodeGraph - dependency validation and level planning for a node set.
NodeGraph —— 节点集合的依赖校验与层级规划。

Key operations:
  - validate_dag():        unknown dependencies, duplicate names, cycles (DFS)
  - topological_groups():  Kahn's algorithm, peeled into concurrent levels
  - get_downstream():      BFS over dependents, used for skip cascades

核心操作：
  - validate_dag():        检查缺失依赖、重名节点与环（DFS）
  - topological_groups():  Kahn 算法，按「层」剥离出可并发执行的节点组
  - get_downstream():      沿下游 BFS，用于级联跳过
"""

from __future__ import annotations

import logging
from collections import deque
from typing import Iterable

from dag.errors import CycleDetectedError, DuplicateNodeError, UnknownDependencyError
from schema import GraphNode

logger = logging.getLogger(__name__)


# ----------------------------------------------------------------------
# Validation
# 校验
# ----------------------------------------------------------------------

def validate_dag(nodes: Iterable[GraphNode]) -> None:
    """
    Check that the node set forms a DAG. Pure; raises on the first problem.
    检查节点集合是否构成 DAG。无副作用，遇到第一个问题即抛出。

    Raises:
        DuplicateNodeError:      two nodes share a name
        UnknownDependencyError:  a dependency name is not in the set
        CycleDetectedError:      DFS revisits a node still on its own stack
    """
    nodes = list(nodes)
    graph: dict[str, list[str]] = {}
    for node in nodes:
        if node.name in graph:
            raise DuplicateNodeError(node.name)
        graph[node.name] = list(node.dependencies)

    for node in nodes:
        for dep in node.dependencies:
            if dep not in graph:
                raise UnknownDependencyError(node.name, dep)

    # Iterative DFS so long dependency chains never hit the recursion limit.
    # 迭代式 DFS，长依赖链不会触发递归深度限制。
    visiting: set[str] = set()
    visited: set[str] = set()
    for root in graph:
        if root in visited:
            continue
        visiting.add(root)
        stack = [(root, iter(graph[root]))]
        while stack:
            name, deps = stack[-1]
            dep = next(deps, None)
            if dep is None:
                stack.pop()
                visiting.discard(name)
                visited.add(name)
                continue
            if dep in visited:
                continue
            if dep in visiting:
                raise CycleDetectedError(dep)
            visiting.add(dep)
            stack.append((dep, iter(graph[dep])))


# ----------------------------------------------------------------------
# Level planning
# 层级规划
# ----------------------------------------------------------------------

def topological_groups(nodes: Iterable[GraphNode]) -> list[list[str]]:
    """
    Kahn's algorithm, grouped into levels.
    Kahn 算法，按层分组。

    Every node with in-degree zero forms the next level; those nodes are then
    removed and their dependents' in-degrees decremented. Within a level,
    names keep input order, which callers must not rely on.
    每轮取出所有入度为 0 的节点作为下一层，然后移除它们并递减下游节点的入度。
    同层内保持输入顺序，但调用方不应依赖该顺序。
    """
    nodes = list(nodes)
    in_degree: dict[str, int] = {n.name: len(n.dependencies) for n in nodes}
    dependents: dict[str, list[str]] = {n.name: [] for n in nodes}
    for node in nodes:
        for dep in node.dependencies:
            dependents.setdefault(dep, []).append(node.name)

    groups: list[list[str]] = []
    ready = [name for name, deg in in_degree.items() if deg == 0]
    placed = 0
    while ready:
        groups.append(ready)
        placed += len(ready)
        next_ready: list[str] = []
        for name in ready:
            for child in dependents.get(name, []):
                in_degree[child] -= 1
                if in_degree[child] == 0:
                    next_ready.append(child)
        ready = next_ready

    if placed != len(in_degree):
        remaining = [name for name, deg in in_degree.items() if deg > 0]
        logger.warning("[Graph] Cycle detected! Level planning incomplete: %s", remaining)
        raise CycleDetectedError(remaining=remaining)
    return groups


class NodeGraph:
    """
    Validated, indexed view over one run's node list.
    单次运行节点列表的已校验索引视图。

    Construction validates the whole set and plans levels once, so an invalid
    graph fails before anything is scheduled.
    构造时一次性完成整体校验与层级规划，非法图在调度前即失败。
    """

    def __init__(self, nodes: Iterable[GraphNode]):
        node_list = list(nodes)
        validate_dag(node_list)
        self.nodes: dict[str, GraphNode] = {n.name: n for n in node_list}
        self.levels: list[list[str]] = topological_groups(node_list)
        self._dependents: dict[str, list[str]] = {name: [] for name in self.nodes}
        for node in node_list:
            for dep in node.dependencies:
                self._dependents[dep].append(node.name)

    def __len__(self) -> int:
        return len(self.nodes)

    def __getitem__(self, name: str) -> GraphNode:
        return self.nodes[name]

    def get_dependency_ids(self, name: str) -> list[str]:
        return list(self.nodes[name].dependencies)

    def get_dependents(self, name: str) -> list[str]:
        return list(self._dependents[name])

    def get_downstream(self, name: str) -> list[str]:
        """
        Return all names downstream of `name` via BFS.
        通过 BFS 返回 `name` 的全部下游节点。
        """
        visited: set[str] = set()
        queue: deque[str] = deque(self._dependents[name])
        while queue:
            nid = queue.popleft()
            if nid in visited:
                continue
            visited.add(nid)
            queue.extend(self._dependents[nid])
        return sorted(visited)

    def level_of(self, name: str) -> int:
        for index, level in enumerate(self.levels):
            if name in level:
                return index
        raise KeyError(name)

    def summary(self) -> str:
        """One-line summary, e.g. Graph[4 nodes, 3 levels: 2/1/1]"""
        widths = "/".join(str(len(level)) for level in self.levels)
        return f"Graph[{len(self.nodes)} nodes, {len(self.levels)} levels: {widths}]"
