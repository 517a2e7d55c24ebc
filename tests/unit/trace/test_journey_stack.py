# tests/unit/trace/test_journey_stack.py
"""Tests for JourneyStack."""

import pytest

from b2ctrace.contracts.errors import JourneyStackError
from b2ctrace.contracts.trace import JourneyContext
from b2ctrace.trace.journey_stack import JourneyStack
from tests.fixtures.clips import BASE_TIME, POLICY_ID


def _context(journey_id: str, last_orch_step: int = 0) -> JourneyContext:
    return JourneyContext(
        journey_id=journey_id,
        journey_name=journey_id,
        last_orch_step=last_orch_step,
        entry_timestamp=BASE_TIME,
    )


@pytest.fixture
def stack() -> JourneyStack:
    return JourneyStack.with_root(POLICY_ID, "SignUpOrSignIn", BASE_TIME)


class TestInspection:
    """Tests for read-only accessors."""

    def test_root_only(self, stack: JourneyStack) -> None:
        assert stack.depth == 1
        assert stack.root().journey_id == POLICY_ID
        assert stack.current() is stack.root()
        assert not stack.is_in_sub_journey()

    def test_empty_stack(self) -> None:
        stack = JourneyStack()
        assert stack.depth == 0
        assert stack.current() is None
        with pytest.raises(JourneyStackError, match="empty"):
            stack.root()

    def test_display_path(self, stack: JourneyStack) -> None:
        stack.push(_context("Mfa"))
        assert stack.display_path() == "SignUpOrSignIn > Mfa"


class TestMutation:
    """Tests for push/pop."""

    def test_pop_never_removes_root(self, stack: JourneyStack) -> None:
        assert stack.pop() is None
        assert stack.depth == 1

    def test_push_pop(self, stack: JourneyStack) -> None:
        stack.push(_context("Mfa"))
        assert stack.is_in_sub_journey()
        popped = stack.pop()
        assert popped is not None
        assert popped.journey_id == "Mfa"
        assert stack.current() is stack.root()

    def test_pop_to_root(self, stack: JourneyStack) -> None:
        stack.push(_context("A"))
        stack.push(_context("B"))
        assert [c.journey_id for c in stack.pop_to_root()] == ["B", "A"]
        assert stack.depth == 1

    def test_update_orch_step_never_decreases(self, stack: JourneyStack) -> None:
        stack.update_orch_step(4)
        stack.update_orch_step(2)
        assert stack.root().last_orch_step == 4
        stack.reset_root_step()
        assert stack.root().last_orch_step == 0

    def test_update_targets_current_context(self, stack: JourneyStack) -> None:
        stack.update_orch_step(3)
        stack.push(_context("Mfa"))
        stack.update_orch_step(1)
        assert stack.current().last_orch_step == 1
        assert stack.root().last_orch_step == 3
