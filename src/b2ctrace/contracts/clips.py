# src/b2ctrace/contracts/clips.py
"""Clip model for Journey Recorder telemetry.

A log record carries an ordered list of clips, each a {Kind, Content}
pair. This module turns that JSON shape into typed, frozen dataclasses.

Trust boundary:
    Clip payloads are external data. Field values that do not match the
    expected shape are coerced to safe defaults (empty string, empty dict,
    None) so one malformed fragment never aborts a trace. Only violations
    of the basic {Kind, Content} envelope raise ClipSchemaError.
"""

from __future__ import annotations

import json
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from b2ctrace.contracts.enums import ClipKind
from b2ctrace.contracts.errors import ClipSchemaError, TraceInputError

# Older recorder versions emit "Exception" for fatal exception clips
_FATAL_KIND_ALIASES = frozenset({ClipKind.FATAL_EXCEPTION.value, "Exception"})


# =============================================================================
# Clip Content Types
# =============================================================================


@dataclass(frozen=True, slots=True)
class HeadersContent:
    """Identity of the journey run a log belongs to."""

    user_journey_recorder_endpoint: str = ""
    correlation_id: str = ""
    event_instance: str = ""
    tenant_id: str = ""
    policy_id: str = ""


@dataclass(frozen=True, slots=True)
class RecordEntry:
    """One Key/Value pair from a RecorderRecord.

    Value is left as raw JSON data; nested records keep their
    {"Values": [...]} shape and are read with b2ctrace.trace.records.
    """

    key: str
    value: Any


@dataclass(frozen=True, slots=True)
class ExceptionInfo:
    """Exception payload of a HandlerResult or FatalException clip.

    Attributes:
        message: Exception message (empty if absent)
        h_result: HRESULT code as text, if present
        kind: Handled/Unhandled marker from the engine, if present
        data: Extra key/value data attached to the exception
        inner: Nested inner exception, if any
    """

    message: str = ""
    h_result: str | None = None
    kind: str | None = None
    data: dict[str, Any] = field(default_factory=dict)
    inner: ExceptionInfo | None = None


@dataclass(frozen=True, slots=True)
class HandlerResultContent:
    """Outcome of the most recent Predicate or Action.

    Attributes:
        result: Handler success flag
        predicate_result: "True"/"False" for predicates, None for actions
        statebag: Raw statebag delta (key -> entry or nested structure)
        recorder_record: Structured recorder entries, None if absent
        exception: Exception raised by the handler, None if absent
    """

    result: bool = False
    predicate_result: str | None = None
    statebag: dict[str, Any] | None = None
    recorder_record: tuple[RecordEntry, ...] | None = None
    exception: ExceptionInfo | None = None


# =============================================================================
# Clip Variants
# =============================================================================


@dataclass(frozen=True, slots=True)
class HeadersClip:
    content: HeadersContent
    kind: ClipKind = field(default=ClipKind.HEADERS, init=False)


@dataclass(frozen=True, slots=True)
class TransitionClip:
    event_name: str
    state_name: str
    kind: ClipKind = field(default=ClipKind.TRANSITION, init=False)


@dataclass(frozen=True, slots=True)
class PredicateClip:
    """Names a boolean-gate component about to be evaluated."""

    name: str
    kind: ClipKind = field(default=ClipKind.PREDICATE, init=False)


@dataclass(frozen=True, slots=True)
class ActionClip:
    """Names a handler component about to be executed."""

    name: str
    kind: ClipKind = field(default=ClipKind.ACTION, init=False)


@dataclass(frozen=True, slots=True)
class HandlerResultClip:
    content: HandlerResultContent
    kind: ClipKind = field(default=ClipKind.HANDLER_RESULT, init=False)


@dataclass(frozen=True, slots=True)
class FatalExceptionClip:
    """Unrecoverable engine error."""

    exception: ExceptionInfo
    time: str = ""
    kind: ClipKind = field(default=ClipKind.FATAL_EXCEPTION, init=False)

    @property
    def message(self) -> str:
        return self.exception.message or "Fatal exception occurred"


@dataclass(frozen=True, slots=True)
class GenericClip:
    """Clip of a kind this model does not recognise, kept verbatim."""

    kind: str
    content: Any = None


type Clip = (
    HeadersClip | TransitionClip | PredicateClip | ActionClip | HandlerResultClip | FatalExceptionClip | GenericClip
)


@dataclass(frozen=True, slots=True)
class TraceLogInput:
    """One ingested telemetry record. Immutable once ingested."""

    id: str
    timestamp: datetime
    policy_id: str
    correlation_id: str
    clips: tuple[Clip, ...]

    def headers(self) -> HeadersClip | None:
        """First Headers clip of this record, if any."""
        for clip in self.clips:
            if isinstance(clip, HeadersClip):
                return clip
        return None


# =============================================================================
# Parse-with-default helpers
# =============================================================================


def _as_str(value: Any, default: str = "") -> str:
    if isinstance(value, str):
        return value
    if isinstance(value, bool) or value is None:
        return default
    if isinstance(value, int | float):
        return str(value)
    return default


def _as_optional_str(value: Any) -> str | None:
    text = _as_str(value)
    return text if text else None


def _as_dict(value: Any) -> dict[str, Any]:
    if isinstance(value, Mapping):
        return {str(k): v for k, v in value.items()}
    return {}


def parse_record_entries(value: Any) -> tuple[RecordEntry, ...]:
    """Read a {"Values": [{"Key": ..., "Value": ...}]} structure.

    Entries without a string Key are skipped. Anything that is not a
    mapping with a Values list yields an empty tuple.
    """
    if not isinstance(value, Mapping):
        return ()
    values = value.get("Values")
    if not isinstance(values, list):
        return ()
    entries = []
    for item in values:
        if isinstance(item, Mapping) and isinstance(item.get("Key"), str):
            entries.append(RecordEntry(key=item["Key"], value=item.get("Value")))
    return tuple(entries)


def parse_exception(value: Any, depth: int = 0) -> ExceptionInfo | None:
    """Parse an Exception object ({Message, HResult, Kind, Data, Exception})."""
    if not isinstance(value, Mapping):
        return None
    inner = parse_exception(value.get("Exception"), depth + 1) if depth < 8 else None
    h_result = value.get("HResult")
    return ExceptionInfo(
        message=_as_str(value.get("Message")),
        h_result=_as_optional_str(h_result),
        kind=_as_optional_str(value.get("Kind")),
        data=_as_dict(value.get("Data")),
        inner=inner,
    )


def _parse_predicate_result(value: Any) -> str | None:
    if isinstance(value, bool):
        return "True" if value else "False"
    return _as_optional_str(value)


def _parse_handler_result(content: Any) -> HandlerResultContent:
    data = _as_dict(content)
    statebag = data.get("Statebag")
    recorder = data.get("RecorderRecord")
    return HandlerResultContent(
        result=data.get("Result") is True,
        predicate_result=_parse_predicate_result(data.get("PredicateResult")),
        statebag=_as_dict(statebag) if isinstance(statebag, Mapping) else None,
        recorder_record=parse_record_entries(recorder) if isinstance(recorder, Mapping) else None,
        exception=parse_exception(data.get("Exception")),
    )


def _parse_headers(content: Any) -> HeadersClip:
    data = _as_dict(content)
    return HeadersClip(
        content=HeadersContent(
            user_journey_recorder_endpoint=_as_str(data.get("UserJourneyRecorderEndpoint")),
            correlation_id=_as_str(data.get("CorrelationId")),
            event_instance=_as_str(data.get("EventInstance")),
            tenant_id=_as_str(data.get("TenantId")),
            policy_id=_as_str(data.get("PolicyId")),
        )
    )


def _parse_fatal(content: Any) -> FatalExceptionClip:
    data = _as_dict(content)
    return FatalExceptionClip(
        exception=parse_exception(data.get("Exception")) or ExceptionInfo(),
        time=_as_str(data.get("Time")),
    )


def parse_clip(raw: Any, *, index: int | None = None) -> Clip:
    """Convert one raw {Kind, Content} mapping into a typed clip.

    Args:
        raw: Decoded JSON for a single clip
        index: Position within the log, used in error messages

    Returns:
        Typed clip; GenericClip for unrecognised kinds

    Raises:
        ClipSchemaError: If raw is not a mapping or Kind is not a string
    """
    if not isinstance(raw, Mapping):
        raise ClipSchemaError(f"expected a mapping, got {type(raw).__name__}", index=index)
    kind = raw.get("Kind")
    if not isinstance(kind, str):
        raise ClipSchemaError("Kind must be a string", index=index)
    content = raw.get("Content")

    if kind == ClipKind.HEADERS:
        return _parse_headers(content)
    if kind == ClipKind.TRANSITION:
        data = _as_dict(content)
        return TransitionClip(
            event_name=_as_str(data.get("EventName")),
            state_name=_as_str(data.get("StateName")),
        )
    if kind == ClipKind.PREDICATE:
        return PredicateClip(name=_as_str(content))
    if kind == ClipKind.ACTION:
        return ActionClip(name=_as_str(content))
    if kind == ClipKind.HANDLER_RESULT:
        return HandlerResultClip(content=_parse_handler_result(content))
    if kind in _FATAL_KIND_ALIASES:
        return _parse_fatal(content)
    return GenericClip(kind=kind, content=content)


def parse_clips(raw: Any) -> tuple[Clip, ...]:
    """Convert a clips array (or its JSON text) into typed clips.

    Raises:
        ClipSchemaError: If raw is not a list, or any clip violates the envelope
    """
    if isinstance(raw, str):
        try:
            raw = json.loads(raw)
        except json.JSONDecodeError as e:
            raise ClipSchemaError(f"clips text is not valid JSON: {e.msg}") from e
    if not isinstance(raw, list):
        raise ClipSchemaError(f"clips must be a list, got {type(raw).__name__}")
    return tuple(parse_clip(item, index=i) for i, item in enumerate(raw))


def parse_timestamp(value: Any) -> datetime:
    """Parse an ISO-8601 string, epoch milliseconds, or datetime.

    Naive values are taken as UTC so that mixed inputs stay comparable.

    Raises:
        ValueError: If the value cannot be read as a timestamp
    """
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, int | float) and not isinstance(value, bool):
        parsed = datetime.fromtimestamp(value / 1000, tz=UTC)
    elif isinstance(value, str):
        parsed = datetime.fromisoformat(value)
    else:
        raise ValueError(f"unsupported timestamp value: {value!r}")
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


def parse_log_record(raw: Any) -> TraceLogInput:
    """Convert one decoded log record into a TraceLogInput.

    Expected keys: id, timestamp, policyId, correlationId, clips.

    Raises:
        TraceInputError: If the record is not a mapping or has no usable timestamp
        ClipSchemaError: If its clips violate the Clip envelope
    """
    if not isinstance(raw, Mapping):
        raise TraceInputError("log record", f"expected an object, got {type(raw).__name__}")
    record_id = _as_str(raw.get("id"))
    try:
        timestamp = parse_timestamp(raw.get("timestamp"))
    except ValueError as e:
        raise TraceInputError(f"log record {record_id or '?'}", str(e)) from e
    return TraceLogInput(
        id=record_id,
        timestamp=timestamp,
        policy_id=_as_str(raw.get("policyId")),
        correlation_id=_as_str(raw.get("correlationId")),
        clips=parse_clips(raw.get("clips", [])),
    )
