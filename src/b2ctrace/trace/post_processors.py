# src/b2ctrace/trace/post_processors.py
"""Passes that run after the last clip has been consumed.

Post-processors fill in TraceStep fields that are only knowable once the
whole trace is parsed. sync_flow_tree then copies those fields onto the
already-built flow tree without rebuilding or reordering it.

A failing processor is recorded in PostProcessResult.errors; the remaining
processors still run.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Protocol

import structlog

from b2ctrace.contracts.enums import FlowNodeType
from b2ctrace.contracts.flow_node import FlowNode, HomeRealmDiscoveryFlowData, StepFlowData
from b2ctrace.contracts.trace import TraceStep
from b2ctrace.trace.flow_tree import collect_step_nodes

logger = structlog.get_logger(__name__)


@dataclass(frozen=True, slots=True)
class TargetEntitySelection:
    """A TAGE value seen by the validate-API-response predicate.

    Attributes:
        step_position: Index of the latest step (finalized or pending) when
            the value was seen
        target_entity: Option id the user picked
    """

    step_position: int
    target_entity: str


@dataclass(slots=True)
class PostProcessContext:
    trace_steps: list[TraceStep]
    selections: list[TargetEntitySelection] = field(default_factory=list)


@dataclass(frozen=True, slots=True)
class PostProcessResult:
    success: bool
    errors: tuple[str, ...] = ()


class PostProcessor(Protocol):
    """A pass over the finished step list."""

    name: str

    def process(self, context: PostProcessContext) -> None: ...


class StepDurationProcessor:
    """duration_ms = next step's timestamp minus this step's. The last step has none."""

    name = "step_duration"

    def process(self, context: PostProcessContext) -> None:
        steps = context.trace_steps
        for current, following in zip(steps, steps[1:], strict=False):
            delta = following.timestamp - current.timestamp
            current.duration_ms = int(delta.total_seconds() * 1000)
        if steps:
            steps[-1].duration_ms = None


class HrdSelectionResolver:
    """Resolve the selected option of an options step from a later TAGE value.

    The selection applies to the closest step at or before the recorded
    position that offered options.
    """

    name = "hrd_selection"

    def process(self, context: PostProcessContext) -> None:
        steps = context.trace_steps
        for selection in context.selections:
            position = min(selection.step_position, len(steps) - 1)
            for index in range(position, -1, -1):
                step = steps[index]
                if step.selectable_options or step.offered_options:
                    step.selected_option = selection.target_entity
                    break


DEFAULT_POST_PROCESSORS: tuple[PostProcessor, ...] = (StepDurationProcessor(), HrdSelectionResolver())


def run_post_processors(
    context: PostProcessContext,
    processors: Sequence[PostProcessor] = DEFAULT_POST_PROCESSORS,
) -> PostProcessResult:
    """Run each processor in order, collecting failures."""
    errors: list[str] = []
    for processor in processors:
        try:
            processor.process(context)
        except (ArithmeticError, AttributeError, IndexError, KeyError, TypeError, ValueError) as e:
            logger.warning("Post-processor failed", processor=processor.name, error=str(e))
            errors.append(f"{processor.name}: {e}")
    return PostProcessResult(success=not errors, errors=tuple(errors))


def sync_flow_tree(flow_tree: FlowNode, trace_steps: Sequence[TraceStep]) -> None:
    """Copy duration, selected option and result onto step nodes.

    Each step node is paired with trace_steps[node.data.step_index]; nodes
    whose index is out of range are left untouched.
    """
    for node in collect_step_nodes(flow_tree):
        data = node.data
        if not isinstance(data, StepFlowData) or not 0 <= data.step_index < len(trace_steps):
            continue
        step = trace_steps[data.step_index]
        data.duration_ms = step.duration_ms
        data.selected_option = step.selected_option
        data.result = step.result
        for child in node.children:
            if child.type == FlowNodeType.HOME_REALM_DISCOVERY and isinstance(child.data, HomeRealmDiscoveryFlowData):
                child.data.selected_option = step.selected_option
