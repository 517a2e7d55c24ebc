# src/b2ctrace/trace/loader.py
"""Load TraceLogInput records from JSON files.

Supports a JSON array of records or JSONL (one record per line). Each
record has id, timestamp (ISO-8601 or epoch ms), policyId, correlationId
and clips; clips may be a list or a JSON string holding a list.

NOTE: Non-standard JSON constants (NaN, Infinity, -Infinity) are rejected
at parse time.
"""

import json
from pathlib import Path
from typing import Any

from b2ctrace.contracts.clips import TraceLogInput, parse_log_record
from b2ctrace.contracts.errors import ClipSchemaError, TraceInputError


def _reject_nonfinite_constant(value: str) -> None:
    raise ValueError(f"Non-standard JSON constant '{value}' not allowed")


def _decode_records(text: str, source: str) -> list[Any]:
    stripped = text.lstrip()
    if not stripped:
        return []
    try:
        if stripped.startswith("["):
            decoded = json.loads(text, parse_constant=_reject_nonfinite_constant)
            if not isinstance(decoded, list):
                raise TraceInputError(source, "expected a JSON array of log records")
            return decoded
        return [
            json.loads(line, parse_constant=_reject_nonfinite_constant)
            for line in text.splitlines()
            if line.strip()
        ]
    except (json.JSONDecodeError, ValueError) as e:
        raise TraceInputError(source, f"invalid JSON: {e}") from e


def load_trace_logs(path: Path, encoding: str = "utf-8") -> list[TraceLogInput]:
    """Read and decode a log file.

    Args:
        path: JSON array or JSONL file
        encoding: File encoding

    Returns:
        Log records in file order

    Raises:
        TraceInputError: If the file is unreadable, not JSON, or a record is unusable
    """
    source = str(path)
    try:
        text = path.read_text(encoding=encoding)
    except (OSError, UnicodeDecodeError) as e:
        raise TraceInputError(source, f"cannot read file: {e}") from e

    records: list[TraceLogInput] = []
    for position, raw in enumerate(_decode_records(text, source)):
        try:
            records.append(parse_log_record(raw))
        except ClipSchemaError as e:
            raise TraceInputError(source, f"record {position}: {e}") from e
    return records
