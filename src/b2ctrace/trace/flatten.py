# src/b2ctrace/trace/flatten.py
"""Clip flattening and chronological ordering.

Merges the clips of every eligible log into a single sequence. Ordering is
total: (log timestamp, original log index, clip index within the log). Logs
that share a timestamp keep their input order, and clips inside one log are
never reordered relative to each other.
"""

from collections.abc import Collection, Sequence
from dataclasses import dataclass
from datetime import datetime

from b2ctrace.contracts.clips import Clip, TraceLogInput
from b2ctrace.contracts.enums import EventType
from b2ctrace.core.keys import SUPPORTED_EVENT_INSTANCES, event_instance_to_event_type


@dataclass(frozen=True, slots=True)
class TimestampedClip:
    """A clip positioned in the global sequence.

    Attributes:
        clip: The clip itself
        timestamp: Timestamp of the log the clip came from
        log_id: Id of that log
        clip_index: Position within the log
        log_index: Position of the log in the filtered input
        event_type: Event type from the log's Headers clip
    """

    clip: Clip
    timestamp: datetime
    log_id: str
    clip_index: int
    log_index: int
    event_type: EventType

    @property
    def sort_key(self) -> tuple[datetime, int, int]:
        return (self.timestamp, self.log_index, self.clip_index)


def filter_trace_logs(
    logs: Sequence[TraceLogInput],
    eligible_instances: Collection[str] = SUPPORTED_EVENT_INSTANCES,
) -> list[TraceLogInput]:
    """Keep only logs whose Headers clip carries an eligible EventInstance.

    Logs without a Headers clip are dropped.
    """
    eligible: list[TraceLogInput] = []
    for log in logs:
        headers = log.headers()
        if headers is not None and headers.content.event_instance in eligible_instances:
            eligible.append(log)
    return eligible


def flatten_and_sort_clips(logs: Sequence[TraceLogInput]) -> list[TimestampedClip]:
    """Flatten clips from all logs into one chronological sequence.

    Args:
        logs: Logs already filtered for eligibility, in input order

    Returns:
        Clips sorted by (timestamp, log index, clip index)
    """
    all_clips: list[TimestampedClip] = []
    for log_index, log in enumerate(logs):
        headers = log.headers()
        event_instance = headers.content.event_instance if headers is not None else ""
        event_type = event_instance_to_event_type(event_instance)
        for clip_index, clip in enumerate(log.clips):
            all_clips.append(
                TimestampedClip(
                    clip=clip,
                    timestamp=log.timestamp,
                    log_id=log.id,
                    clip_index=clip_index,
                    log_index=log_index,
                    event_type=event_type,
                )
            )
    all_clips.sort(key=lambda c: c.sort_key)
    return all_clips
