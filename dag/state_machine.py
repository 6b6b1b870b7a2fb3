"""
Node State Machine - Validates and enforces node lifecycle transitions.
节点状态机 —— 校验并强制执行节点生命周期的合法状态转移。

The transition table is the single source of truth for what state changes
are legal. Any invalid transition raises InvalidTransitionError, so a bug in
the runner can never leave a node in an ambiguous state.
转移表是合法状态变化的唯一权威来源。
任何非法转移都会抛出 InvalidTransitionError，运行器的缺陷不会让节点停留在含糊状态。

Transition graph:
转移图：
    PENDING ──> RUNNING ──> SUCCEEDED                  (happy path / 正常路径)
                        ──> RETRYING ──> RUNNING       (retry loop / 重试循环)
                        ──> FALLING_BACK ──> SUCCEEDED | FAILED
                        ──> FAILED
    PENDING ──> SUCCEEDED                              (checkpoint hit / 命中检查点)
    PENDING ──> SKIPPED                                (upstream failed / 上游失败)

Unlike a node object, statuses live here, keyed by node name: GraphNode is
immutable and may be shared by several runs.
状态保存在状态机中（按节点名索引），而不是节点对象上：GraphNode 不可变，且可被多次运行共享。
"""

from __future__ import annotations

import logging
from typing import Callable, Iterable

from dag.errors import InvalidTransitionError
from schema import TERMINAL_STATUSES, NodeStatus

logger = logging.getLogger(__name__)


VALID_TRANSITIONS: dict[NodeStatus, set[NodeStatus]] = {
    NodeStatus.PENDING:      {NodeStatus.RUNNING, NodeStatus.SUCCEEDED, NodeStatus.SKIPPED},
    NodeStatus.RUNNING:      {NodeStatus.SUCCEEDED, NodeStatus.RETRYING, NodeStatus.FALLING_BACK, NodeStatus.FAILED},
    NodeStatus.RETRYING:     {NodeStatus.RUNNING},
    NodeStatus.FALLING_BACK: {NodeStatus.SUCCEEDED, NodeStatus.FAILED},
    # Terminal states — no further transitions allowed
    # 终态——不允许任何进一步转移
    NodeStatus.SUCCEEDED:    set(),
    NodeStatus.FAILED:       set(),
    NodeStatus.SKIPPED:      set(),
}


class NodeStateMachine:
    """
    Validates and applies node state transitions for one run.
    校验并应用单次运行内的节点状态转移。

    Provides a single `transition()` method that:
      1. Checks the VALID_TRANSITIONS table
      2. Records the new status
      3. Fires an optional callback for logging/UI

    提供唯一的 `transition()` 方法，该方法：
      1. 查询 VALID_TRANSITIONS 表校验合法性
      2. 记录新状态
      3. 触发可选回调函数（用于日志或 UI）
    """

    def __init__(
        self,
        names: Iterable[str] = (),
        on_transition: Callable[[str, NodeStatus, NodeStatus], None] | None = None,
    ):
        self._statuses: dict[str, NodeStatus] = {name: NodeStatus.PENDING for name in names}
        self._on_transition = on_transition

    def status(self, name: str) -> NodeStatus:
        return self._statuses.setdefault(name, NodeStatus.PENDING)

    def can_transition(self, name: str, new_status: NodeStatus) -> bool:
        return new_status in VALID_TRANSITIONS.get(self.status(name), set())

    def transition(self, name: str, new_status: NodeStatus) -> None:
        """
        Apply a state transition. Raises InvalidTransitionError if illegal.
        应用状态转移。若转移非法则抛出 InvalidTransitionError。
        """
        old_status = self.status(name)
        if not self.can_transition(name, new_status):
            raise InvalidTransitionError(
                f"Node '{name}': cannot transition from {old_status.value} to {new_status.value}. "
                f"Valid targets: {sorted(s.value for s in VALID_TRANSITIONS.get(old_status, set()))}"
            )

        self._statuses[name] = new_status
        logger.debug("[SM] %s: %s -> %s", name, old_status.value, new_status.value)

        if self._on_transition:
            try:
                self._on_transition(name, old_status, new_status)
            except Exception as exc:
                # Observer errors never affect the run / 观察者异常不能影响主流程
                logger.warning("[SM] on_transition callback failed for %s: %s", name, exc)

    def is_terminal(self, name: str) -> bool:
        return self.status(name) in TERMINAL_STATUSES

    def snapshot(self) -> dict[str, NodeStatus]:
        return dict(self._statuses)

    def names_in(self, status: NodeStatus) -> set[str]:
        return {name for name, s in self._statuses.items() if s == status}
