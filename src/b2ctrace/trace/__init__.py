"""Trace reconstruction: flattening, parsing, flow tree and post-processing."""

from b2ctrace.trace.diff import compute_claims_diff
from b2ctrace.trace.execution_map import ExecutionMapBuilder, ExecutionStats, compute_stats
from b2ctrace.trace.flatten import TimestampedClip, filter_trace_logs, flatten_and_sort_clips
from b2ctrace.trace.flow_tree import (
    FlowTreeBuilder,
    collect_step_nodes,
    find_node_by_id,
    find_parent_node,
    find_step_flow_node,
    flatten_tree,
    get_step_ct_names,
    get_step_tp_names,
    is_step_interactive,
)
from b2ctrace.trace.journey_stack import JourneyStack
from b2ctrace.trace.loader import load_trace_logs
from b2ctrace.trace.parser import (
    NO_ELIGIBLE_LOGS_ERROR,
    TraceParser,
    extract_journey_name,
    get_claims_diff_between_steps,
    get_trace_step_by_sequence,
    get_trace_steps_for_node,
    parse_trace,
)
from b2ctrace.trace.post_processors import (
    HrdSelectionResolver,
    PostProcessContext,
    PostProcessResult,
    StepDurationProcessor,
    TargetEntitySelection,
    run_post_processors,
    sync_flow_tree,
)
from b2ctrace.trace.statebag import StatebagAccumulator

__all__ = [
    "NO_ELIGIBLE_LOGS_ERROR",
    "ExecutionMapBuilder",
    "ExecutionStats",
    "FlowTreeBuilder",
    "HrdSelectionResolver",
    "JourneyStack",
    "PostProcessContext",
    "PostProcessResult",
    "StatebagAccumulator",
    "StepDurationProcessor",
    "TargetEntitySelection",
    "TimestampedClip",
    "TraceParser",
    "collect_step_nodes",
    "compute_claims_diff",
    "compute_stats",
    "extract_journey_name",
    "filter_trace_logs",
    "find_node_by_id",
    "find_parent_node",
    "find_step_flow_node",
    "flatten_and_sort_clips",
    "flatten_tree",
    "get_claims_diff_between_steps",
    "get_step_ct_names",
    "get_step_tp_names",
    "get_trace_step_by_sequence",
    "get_trace_steps_for_node",
    "is_step_interactive",
    "load_trace_logs",
    "parse_trace",
    "run_post_processors",
    "sync_flow_tree",
]
