"""
Node state machine tests — legal and illegal lifecycle transitions.
节点状态机测试 —— 合法与非法的生命周期转移。

运行方式:
    python -m pytest tests/test_state_machine.py -v
"""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest

from dag import state_machine
from dag.errors import GraphError, InvalidTransitionError
from dag.state_machine import VALID_TRANSITIONS, NodeStateMachine
from schema import TERMINAL_STATUSES, NodeStatus


class TestNodeStateMachine:

    def test_starts_pending(self):
        sm = NodeStateMachine(["A", "B"])
        assert sm.snapshot() == {"A": NodeStatus.PENDING, "B": NodeStatus.PENDING}
        assert sm.status("unseen") == NodeStatus.PENDING

    def test_retry_then_success_path(self):
        sm = NodeStateMachine(["A"])
        for status in (NodeStatus.RUNNING, NodeStatus.RETRYING, NodeStatus.RUNNING, NodeStatus.SUCCEEDED):
            sm.transition("A", status)
        assert sm.status("A") == NodeStatus.SUCCEEDED
        assert sm.is_terminal("A")

    def test_fallback_path(self):
        sm = NodeStateMachine(["A"])
        sm.transition("A", NodeStatus.RUNNING)
        sm.transition("A", NodeStatus.FALLING_BACK)
        sm.transition("A", NodeStatus.FAILED)
        assert sm.names_in(NodeStatus.FAILED) == {"A"}

    def test_checkpoint_and_skip_leave_pending_directly(self):
        sm = NodeStateMachine(["A", "B"])
        sm.transition("A", NodeStatus.SUCCEEDED)
        sm.transition("B", NodeStatus.SKIPPED)
        assert sm.is_terminal("A") and sm.is_terminal("B")

    @pytest.mark.parametrize("terminal", sorted(TERMINAL_STATUSES, key=lambda s: s.value))
    def test_terminal_states_are_final(self, terminal):
        assert VALID_TRANSITIONS[terminal] == set()
        sm = NodeStateMachine(["A"])
        if terminal == NodeStatus.FAILED:
            sm.transition("A", NodeStatus.RUNNING)
        sm.transition("A", terminal)
        for target in NodeStatus:
            assert not sm.can_transition("A", target)

    def test_illegal_transition_raises(self):
        sm = NodeStateMachine(["A"])
        with pytest.raises(InvalidTransitionError, match="pending to retrying"):
            sm.transition("A", NodeStatus.RETRYING)
        assert sm.status("A") == NodeStatus.PENDING

    def test_running_node_cannot_be_skipped(self):
        sm = NodeStateMachine(["A"])
        sm.transition("A", NodeStatus.RUNNING)
        with pytest.raises(InvalidTransitionError):
            sm.transition("A", NodeStatus.SKIPPED)

    def test_callback_receives_old_and_new(self):
        callback = MagicMock()
        sm = NodeStateMachine(["A"], on_transition=callback)
        sm.transition("A", NodeStatus.RUNNING)
        callback.assert_called_once_with("A", NodeStatus.PENDING, NodeStatus.RUNNING)

    def test_callback_error_is_contained(self):
        sm = NodeStateMachine(["A"], on_transition=MagicMock(side_effect=RuntimeError("ui")))
        sm.transition("A", NodeStatus.RUNNING)
        assert sm.status("A") == NodeStatus.RUNNING

    def test_error_belongs_to_engine_taxonomy(self):
        assert issubclass(InvalidTransitionError, GraphError)
        assert state_machine.InvalidTransitionError is InvalidTransitionError
