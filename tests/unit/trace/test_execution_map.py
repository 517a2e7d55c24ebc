# tests/unit/trace/test_execution_map.py
"""Tests for ExecutionMapBuilder."""

from b2ctrace.contracts.enums import StepResult
from b2ctrace.trace.execution_map import ExecutionMapBuilder, compute_stats


class TestExecutionMapBuilder:
    """Tests for visit tracking and status priority."""

    def test_first_visit(self) -> None:
        builder = ExecutionMapBuilder()
        entry = builder.add_step("Policy-Step1", StepResult.SUCCESS, 0)
        assert entry.visit_count == 1
        assert entry.step_indices == [0]
        assert entry.status == StepResult.SUCCESS

    def test_revisits_accumulate(self) -> None:
        builder = ExecutionMapBuilder()
        builder.add_step("Policy-Step1", StepResult.SUCCESS, 0)
        builder.add_step("Policy-Step2", StepResult.SUCCESS, 1)
        builder.add_step("Policy-Step1", StepResult.SUCCESS, 2)
        entry = builder.get("Policy-Step1")
        assert entry is not None
        assert entry.visit_count == 2
        assert entry.step_indices == [0, 2]

    def test_error_outranks_success(self) -> None:
        builder = ExecutionMapBuilder()
        builder.add_step("n", StepResult.ERROR, 0)
        builder.add_step("n", StepResult.SUCCESS, 1)
        builder.add_step("n", StepResult.SKIPPED, 2)
        assert builder.build()["n"].status == StepResult.ERROR

    def test_success_outranks_skipped(self) -> None:
        builder = ExecutionMapBuilder()
        builder.add_step("n", StepResult.SKIPPED, 0)
        builder.add_step("n", StepResult.SUCCESS, 1)
        assert builder.build()["n"].status == StepResult.SUCCESS

    def test_update_status_only_raises(self) -> None:
        builder = ExecutionMapBuilder()
        builder.add_step("n", StepResult.SUCCESS, 0)
        builder.update_status("n", StepResult.SKIPPED)
        assert builder.build()["n"].status == StepResult.SUCCESS
        builder.update_status("n", StepResult.ERROR)
        assert builder.build()["n"].status == StepResult.ERROR
        builder.update_status("unknown", StepResult.ERROR)
        assert builder.get("unknown") is None

    def test_reset(self) -> None:
        builder = ExecutionMapBuilder()
        builder.add_step("n", StepResult.SUCCESS, 0)
        builder.reset()
        assert builder.build() == {}


class TestComputeStats:
    """Tests for compute_stats()."""

    def test_counts(self) -> None:
        builder = ExecutionMapBuilder()
        builder.add_step("a", StepResult.SUCCESS, 0)
        builder.add_step("a", StepResult.SUCCESS, 1)
        builder.add_step("b", StepResult.ERROR, 2)
        stats = builder.stats()
        assert stats.unique_nodes == 2
        assert stats.total_visits == 3
        assert stats.status_counts[StepResult.SUCCESS] == 1
        assert stats.status_counts[StepResult.ERROR] == 1
        assert stats.status_counts[StepResult.SKIPPED] == 0

    def test_empty(self) -> None:
        stats = compute_stats({})
        assert stats.unique_nodes == 0
        assert stats.total_visits == 0
