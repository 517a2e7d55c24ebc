# tests/unit/contracts/test_clips.py
"""Tests for the clip model and its tolerant parsing."""

from datetime import UTC, datetime

import pytest

from b2ctrace.contracts.clips import (
    ActionClip,
    FatalExceptionClip,
    GenericClip,
    HandlerResultClip,
    HeadersClip,
    PredicateClip,
    TransitionClip,
    parse_clip,
    parse_clips,
    parse_log_record,
    parse_record_entries,
    parse_timestamp,
)
from b2ctrace.contracts.enums import ClipKind
from b2ctrace.contracts.errors import ClipSchemaError, TraceInputError
from tests.fixtures.clips import fatal_clip, handler_result, headers_clip, statebag


class TestParseClip:
    """Tests for parse_clip()."""

    def test_headers(self) -> None:
        """Headers content is read into HeadersContent."""
        clip = parse_clip(headers_clip("Event:API"))
        assert isinstance(clip, HeadersClip)
        assert clip.kind == ClipKind.HEADERS
        assert clip.content.event_instance == "Event:API"
        assert clip.content.policy_id == "B2C_1A_SignUpOrSignIn"
        assert clip.content.correlation_id == "corr-123"

    def test_transition(self) -> None:
        clip = parse_clip({"Kind": "Transition", "Content": {"EventName": "PreStep", "StateName": "Initial"}})
        assert clip == TransitionClip(event_name="PreStep", state_name="Initial")

    def test_predicate_and_action(self) -> None:
        assert parse_clip({"Kind": "Predicate", "Content": "P"}) == PredicateClip(name="P")
        assert parse_clip({"Kind": "Action", "Content": "A"}) == ActionClip(name="A")

    def test_handler_result(self) -> None:
        """Statebag, predicate result and exception are preserved."""
        clip = parse_clip(
            handler_result(
                statebag=statebag(ORCH_CS="3"),
                predicate_result=False,
                exception={"Message": "boom", "HResult": "-1"},
            )
        )
        assert isinstance(clip, HandlerResultClip)
        assert clip.content.result is True
        assert clip.content.predicate_result == "False"
        assert clip.content.statebag is not None
        assert clip.content.statebag["ORCH_CS"]["v"] == "3"
        assert clip.content.exception is not None
        assert clip.content.exception.message == "boom"
        assert clip.content.exception.h_result == "-1"

    def test_handler_result_boolean_predicate_result(self) -> None:
        """A JSON boolean PredicateResult is normalised to "True"/"False"."""
        clip = parse_clip({"Kind": "HandlerResult", "Content": {"Result": True, "PredicateResult": True}})
        assert isinstance(clip, HandlerResultClip)
        assert clip.content.predicate_result == "True"

    def test_fatal_exception(self) -> None:
        clip = parse_clip(fatal_clip("X"))
        assert isinstance(clip, FatalExceptionClip)
        assert clip.message == "X"
        assert clip.time == "12:00 PM"

    def test_exception_alias(self) -> None:
        """'Exception' is accepted as an alias of FatalException."""
        clip = parse_clip({"Kind": "Exception", "Content": {"Exception": {"Message": "Y"}}})
        assert isinstance(clip, FatalExceptionClip)
        assert clip.message == "Y"

    def test_unknown_kind_preserved(self) -> None:
        """Unknown kinds are kept verbatim."""
        clip = parse_clip({"Kind": "Telemetry", "Content": {"a": 1}})
        assert clip == GenericClip(kind="Telemetry", content={"a": 1})

    def test_malformed_content_degrades(self) -> None:
        """Wrongly-shaped content yields defaults, not exceptions."""
        clip = parse_clip({"Kind": "HandlerResult", "Content": ["not", "a", "dict"]})
        assert isinstance(clip, HandlerResultClip)
        assert clip.content.statebag is None
        assert clip.content.recorder_record is None
        assert clip.content.exception is None

        headers = parse_clip({"Kind": "Headers", "Content": None})
        assert isinstance(headers, HeadersClip)
        assert headers.content.event_instance == ""

    def test_non_mapping_raises(self) -> None:
        with pytest.raises(ClipSchemaError) as exc_info:
            parse_clip(["Kind", "Headers"], index=4)
        assert exc_info.value.index == 4
        assert "clip 4" in str(exc_info.value)

    def test_non_string_kind_raises(self) -> None:
        with pytest.raises(ClipSchemaError, match="Kind must be a string"):
            parse_clip({"Kind": 7, "Content": {}})


class TestParseClips:
    """Tests for parse_clips()."""

    def test_list(self) -> None:
        clips = parse_clips([headers_clip(), {"Kind": "Action", "Content": "A"}])
        assert len(clips) == 2

    def test_json_text(self) -> None:
        clips = parse_clips('[{"Kind": "Action", "Content": "A"}]')
        assert clips == (ActionClip(name="A"),)

    def test_invalid_json_text_raises(self) -> None:
        with pytest.raises(ClipSchemaError, match="not valid JSON"):
            parse_clips("[{")

    def test_not_a_list_raises(self) -> None:
        with pytest.raises(ClipSchemaError, match="must be a list"):
            parse_clips({"Kind": "Action"})


class TestParseRecordEntries:
    """Tests for parse_record_entries()."""

    def test_reads_key_value_pairs(self) -> None:
        entries = parse_record_entries({"Values": [{"Key": "A", "Value": 1}, {"Key": "B", "Value": {"x": 1}}]})
        assert [(e.key, e.value) for e in entries] == [("A", 1), ("B", {"x": 1})]

    def test_skips_entries_without_string_key(self) -> None:
        entries = parse_record_entries({"Values": [{"Key": 1, "Value": 1}, "junk", {"Key": "C"}]})
        assert [e.key for e in entries] == ["C"]

    @pytest.mark.parametrize("value", [None, [], "Values", {"Values": "x"}])
    def test_wrong_shape_is_empty(self, value: object) -> None:
        assert parse_record_entries(value) == ()


class TestParseTimestamp:
    """Tests for parse_timestamp()."""

    def test_iso_with_zone(self) -> None:
        assert parse_timestamp("2024-01-01T12:00:00+00:00") == datetime(2024, 1, 1, 12, tzinfo=UTC)

    def test_naive_is_utc(self) -> None:
        assert parse_timestamp("2024-01-01T12:00:00").tzinfo == UTC

    def test_epoch_milliseconds(self) -> None:
        assert parse_timestamp(1_000) == datetime(1970, 1, 1, 0, 0, 1, tzinfo=UTC)

    def test_unsupported_raises(self) -> None:
        with pytest.raises(ValueError):
            parse_timestamp(None)


class TestParseLogRecord:
    """Tests for parse_log_record()."""

    def test_record(self) -> None:
        log = parse_log_record(
            {
                "id": "log-1",
                "timestamp": "2024-01-01T12:00:00Z",
                "policyId": "B2C_1A_X",
                "correlationId": "c",
                "clips": [headers_clip()],
            }
        )
        assert log.id == "log-1"
        assert log.policy_id == "B2C_1A_X"
        headers = log.headers()
        assert headers is not None
        assert headers.content.event_instance == "Event:AUTH"

    def test_headers_absent(self) -> None:
        log = parse_log_record({"id": "x", "timestamp": 0, "clips": []})
        assert log.headers() is None

    def test_bad_timestamp_raises(self) -> None:
        with pytest.raises(TraceInputError, match="log-9"):
            parse_log_record({"id": "log-9", "timestamp": "yesterday", "clips": []})

    def test_non_mapping_raises(self) -> None:
        with pytest.raises(TraceInputError):
            parse_log_record("log")
