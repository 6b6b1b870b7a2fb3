"""
Graph errors - Exception taxonomy for validation and node execution.
图执行异常体系 —— 校验错误与节点执行错误。

Validation errors (run-fatal, raised before any node executes):
校验错误（致命，任何节点执行前抛出）：
    GraphValidationError ──> UnknownDependencyError
                         ──> CycleDetectedError
                         ──> DuplicateNodeError

Node errors (recorded in RunResult.failed, never raised out of a run):
节点错误（记录在 RunResult.failed 中，不会从 run 中抛出）：
    NodeError ──> NodeTimeoutError
              ──> WorkFailure
              ──> FallbackFailure
              ──> CompensationFailure   (logged only / 仅记录日志)

Engine errors (propagate):
引擎错误（直接抛出）：
    InvalidTransitionError
"""

from __future__ import annotations


class GraphError(Exception):
    """Base class for every error raised by the graph engine."""


class InvalidTransitionError(GraphError):
    """
    Raised when an illegal state transition is attempted. A programming
    error in the engine, so it propagates out of the run.
    当尝试非法状态转移时抛出此异常。属于引擎自身缺陷，会直接从 run 中抛出。
    """


# ======================================================================
# Validation errors
# 校验错误
# ======================================================================

class GraphValidationError(GraphError):
    """The node set does not form a valid DAG. 节点集合不构成合法 DAG。"""


class UnknownDependencyError(GraphValidationError):
    def __init__(self, node_name: str, dependency: str):
        self.node_name = node_name
        self.dependency = dependency
        super().__init__(f"Node {node_name} depends on missing node {dependency}")


class CycleDetectedError(GraphValidationError):
    def __init__(self, node_name: str | None = None, remaining: list[str] | None = None):
        self.node_name = node_name
        self.remaining = remaining or []
        if node_name is not None:
            msg = f"Cycle detected at {node_name}"
        else:
            msg = f"Cycle detected or unresolved dependencies: {sorted(self.remaining)}"
        super().__init__(msg)


class DuplicateNodeError(GraphValidationError):
    def __init__(self, node_name: str):
        self.node_name = node_name
        super().__init__(f"Duplicate node name: {node_name}")


# ======================================================================
# Node execution errors
# 节点执行错误
# ======================================================================

class NodeError(GraphError):
    """
    A single node's terminal failure reason.
    单个节点的最终失败原因。

    `error` holds the underlying exception when there is one; it is also
    chained as `__cause__` by the runner.
    """

    def __init__(self, node_name: str, message: str, error: BaseException | None = None):
        self.node_name = node_name
        self.error = error
        super().__init__(message)


class NodeTimeoutError(NodeError):
    def __init__(self, node_name: str, timeout_ms: float):
        self.timeout_ms = timeout_ms
        super().__init__(node_name, f"Timeout: node {node_name} did not settle within {timeout_ms:g}ms")


class WorkFailure(NodeError):
    def __init__(self, node_name: str, error: BaseException):
        super().__init__(node_name, f"Node {node_name} failed: {error!r}", error)


class FallbackFailure(NodeError):
    def __init__(self, node_name: str, error: BaseException):
        super().__init__(node_name, f"Fallback for node {node_name} failed: {error!r}", error)


class CompensationFailure(NodeError):
    def __init__(self, node_name: str, error: BaseException):
        super().__init__(node_name, f"Compensation for node {node_name} failed: {error!r}", error)
