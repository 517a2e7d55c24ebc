# tests/unit/trace/test_post_processors.py
"""Tests for post-processing passes and flow tree sync."""

from b2ctrace.contracts.enums import StepResult
from b2ctrace.contracts.flow_node import FlowNodeContext, HomeRealmDiscoveryFlowData, StepFlowData
from b2ctrace.trace.flow_tree import FlowTreeBuilder
from b2ctrace.trace.ownership import populate_step_children
from b2ctrace.trace.post_processors import (
    HrdSelectionResolver,
    PostProcessContext,
    StepDurationProcessor,
    TargetEntitySelection,
    run_post_processors,
    sync_flow_tree,
)
from tests.fixtures.steps import make_step, make_step_node


class TestStepDurationProcessor:
    """Tests for duration computation."""

    def test_durations_from_next_step(self) -> None:
        steps = [
            make_step(1, sequence_number=0, offset_ms=0),
            make_step(2, sequence_number=1, offset_ms=1500),
            make_step(3, sequence_number=2, offset_ms=4000),
        ]
        StepDurationProcessor().process(PostProcessContext(trace_steps=steps))
        assert [s.duration_ms for s in steps] == [1500, 2500, None]

    def test_empty(self) -> None:
        StepDurationProcessor().process(PostProcessContext(trace_steps=[]))


class TestHrdSelectionResolver:
    """Tests for resolving selected options from TAGE."""

    def test_selection_applies_to_closest_options_step(self) -> None:
        steps = [
            make_step(1, sequence_number=0, offered_options=["Google", "Facebook"]),
            make_step(2, sequence_number=1),
        ]
        context = PostProcessContext(trace_steps=steps, selections=[TargetEntitySelection(1, "Facebook")])
        HrdSelectionResolver().process(context)
        assert steps[0].selected_option == "Facebook"
        assert steps[1].selected_option is None

    def test_position_past_end_clamped(self) -> None:
        steps = [make_step(1, selectable_options=["Google", "Facebook"])]
        context = PostProcessContext(trace_steps=steps, selections=[TargetEntitySelection(5, "Google")])
        HrdSelectionResolver().process(context)
        assert steps[0].selected_option == "Google"

    def test_no_options_step(self) -> None:
        steps = [make_step(1)]
        HrdSelectionResolver().process(
            PostProcessContext(trace_steps=steps, selections=[TargetEntitySelection(0, "Google")])
        )
        assert steps[0].selected_option is None


class _ExplodingProcessor:
    name = "exploding"

    def process(self, context: PostProcessContext) -> None:
        raise KeyError("missing")


class TestRunPostProcessors:
    """Tests for run_post_processors()."""

    def test_default_processors(self) -> None:
        steps = [make_step(1, offset_ms=0), make_step(2, sequence_number=1, offset_ms=200)]
        result = run_post_processors(PostProcessContext(trace_steps=steps))
        assert result.success
        assert result.errors == ()
        assert steps[0].duration_ms == 200

    def test_failure_recorded_and_others_still_run(self) -> None:
        steps = [make_step(1, offset_ms=0), make_step(2, sequence_number=1, offset_ms=300)]
        result = run_post_processors(
            PostProcessContext(trace_steps=steps),
            [_ExplodingProcessor(), StepDurationProcessor()],
        )
        assert not result.success
        assert len(result.errors) == 1
        assert result.errors[0].startswith("exploding:")
        assert steps[0].duration_ms == 300


class TestSyncFlowTree:
    """Tests for copying post-processed fields onto step nodes."""

    def test_sync(self) -> None:
        step = make_step(1, offered_options=["Google", "Facebook"])
        builder = FlowTreeBuilder()
        node = make_step_node(builder, step)
        populate_step_children(builder, node, step, FlowNodeContext())

        step.duration_ms = 750
        step.selected_option = "Google"
        step.result = StepResult.ERROR
        sync_flow_tree(builder.root, [step])

        assert isinstance(node.data, StepFlowData)
        assert node.data.duration_ms == 750
        assert node.data.selected_option == "Google"
        assert node.data.result == StepResult.ERROR
        hrd = node.children[0]
        assert isinstance(hrd.data, HomeRealmDiscoveryFlowData)
        assert hrd.data.selected_option == "Google"

    def test_out_of_range_index_untouched(self) -> None:
        builder = FlowTreeBuilder()
        node = make_step_node(builder, make_step(1), step_index=3)
        sync_flow_tree(builder.root, [make_step(1, duration_ms=10)])
        assert node.data.duration_ms is None  # type: ignore[union-attr]
