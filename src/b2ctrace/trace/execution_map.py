# src/b2ctrace/trace/execution_map.py
"""Visit tracking per graph node.

Each finalized step records one visit on its graph node id. When a node is
visited with different results, the stored status is the highest-priority
one: Error > Success > Skipped.
"""

from collections.abc import Mapping
from dataclasses import dataclass, field

from b2ctrace.contracts.enums import StepResult
from b2ctrace.contracts.trace import ExecutionMapEntry

_STATUS_PRIORITY: dict[StepResult, int] = {
    StepResult.SKIPPED: 0,
    StepResult.SUCCESS: 1,
    StepResult.ERROR: 2,
}


@dataclass(frozen=True, slots=True)
class ExecutionStats:
    unique_nodes: int
    total_visits: int
    status_counts: dict[StepResult, int] = field(default_factory=dict)


class ExecutionMapBuilder:
    """Builds graph node id -> ExecutionMapEntry."""

    def __init__(self) -> None:
        self._entries: dict[str, ExecutionMapEntry] = {}

    def add_step(self, graph_node_id: str, status: StepResult, step_index: int) -> ExecutionMapEntry:
        """Record one visit of a node.

        Args:
            graph_node_id: Deterministic node id of the step
            status: Result of this visit
            step_index: Sequence number of the finalized step
        """
        entry = self._entries.get(graph_node_id)
        if entry is None:
            entry = ExecutionMapEntry(status=status)
            self._entries[graph_node_id] = entry
        elif _STATUS_PRIORITY[status] > _STATUS_PRIORITY[entry.status]:
            entry.status = status
        entry.visit_count += 1
        entry.step_indices.append(step_index)
        return entry

    def update_status(self, graph_node_id: str, status: StepResult) -> None:
        """Raise a node's status after a late result change (e.g. an error on a merged step)."""
        entry = self._entries.get(graph_node_id)
        if entry is not None and _STATUS_PRIORITY[status] > _STATUS_PRIORITY[entry.status]:
            entry.status = status

    def get(self, graph_node_id: str) -> ExecutionMapEntry | None:
        return self._entries.get(graph_node_id)

    def build(self) -> dict[str, ExecutionMapEntry]:
        return dict(self._entries)

    def stats(self) -> ExecutionStats:
        return compute_stats(self._entries)

    def reset(self) -> None:
        self._entries = {}


def compute_stats(entries: Mapping[str, ExecutionMapEntry]) -> ExecutionStats:
    """Unique nodes, total visits and node count per status."""
    counts: dict[StepResult, int] = dict.fromkeys(StepResult, 0)
    for entry in entries.values():
        counts[entry.status] += 1
    return ExecutionStats(
        unique_nodes=len(entries),
        total_visits=sum(e.visit_count for e in entries.values()),
        status_counts=counts,
    )
