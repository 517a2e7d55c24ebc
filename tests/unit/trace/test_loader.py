# tests/unit/trace/test_loader.py
"""Tests for load_trace_logs()."""

import json
from pathlib import Path

import pytest

from b2ctrace.contracts.clips import HeadersClip
from b2ctrace.contracts.errors import TraceInputError
from b2ctrace.trace.loader import load_trace_logs
from tests.fixtures.clips import action_clip, headers_clip


def _raw_log(log_id: str, timestamp: object = "2024-01-01T12:00:00Z", clips: object = None) -> dict:
    return {
        "id": log_id,
        "timestamp": timestamp,
        "policyId": "B2C_1A_SignUpOrSignIn",
        "correlationId": "corr-123",
        "clips": clips if clips is not None else [headers_clip(), action_clip("A")],
    }


class TestLoadTraceLogs:
    """Tests for reading log files."""

    def test_json_array(self, tmp_path: Path) -> None:
        path = tmp_path / "logs.json"
        path.write_text(json.dumps([_raw_log("a"), _raw_log("b", 1704110400000)]))

        logs = load_trace_logs(path)

        assert [log.id for log in logs] == ["a", "b"]
        assert isinstance(logs[0].clips[0], HeadersClip)
        assert logs[0].timestamp == logs[1].timestamp

    def test_jsonl(self, tmp_path: Path) -> None:
        path = tmp_path / "logs.jsonl"
        path.write_text("\n".join(json.dumps(_raw_log(i)) for i in ["a", "b"]) + "\n\n")
        assert [log.id for log in load_trace_logs(path)] == ["a", "b"]

    def test_clips_as_json_string(self, tmp_path: Path) -> None:
        path = tmp_path / "logs.json"
        path.write_text(json.dumps([_raw_log("a", clips=json.dumps([headers_clip()]))]))
        assert len(load_trace_logs(path)[0].clips) == 1

    def test_empty_file(self, tmp_path: Path) -> None:
        path = tmp_path / "logs.json"
        path.write_text("   \n")
        assert load_trace_logs(path) == []

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(TraceInputError, match="cannot read file"):
            load_trace_logs(tmp_path / "missing.json")

    def test_invalid_json(self, tmp_path: Path) -> None:
        path = tmp_path / "logs.json"
        path.write_text("[{not json")
        with pytest.raises(TraceInputError, match="invalid JSON"):
            load_trace_logs(path)

    def test_nan_rejected(self, tmp_path: Path) -> None:
        path = tmp_path / "logs.jsonl"
        path.write_text('{"id": "a", "timestamp": NaN, "clips": []}\n')
        with pytest.raises(TraceInputError, match="NaN"):
            load_trace_logs(path)

    def test_non_object_record_rejected(self, tmp_path: Path) -> None:
        path = tmp_path / "logs.json"
        path.write_text("[1, 2]")
        with pytest.raises(TraceInputError, match="expected an object"):
            load_trace_logs(path)

    def test_malformed_clip_reports_record(self, tmp_path: Path) -> None:
        path = tmp_path / "logs.json"
        path.write_text(json.dumps([_raw_log("a"), _raw_log("b", clips=[{"Kind": 5}])]))
        with pytest.raises(TraceInputError, match="record 1"):
            load_trace_logs(path)

    def test_bad_timestamp(self, tmp_path: Path) -> None:
        path = tmp_path / "logs.json"
        path.write_text(json.dumps([_raw_log("a", timestamp=None)]))
        with pytest.raises(TraceInputError, match="log record a"):
            load_trace_logs(path)
