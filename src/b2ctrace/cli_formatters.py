# src/b2ctrace/cli_formatters.py
"""Output formatters for the b2ctrace CLI.

Console output is for people; JSON output is a stable structure for
machine processing. Both write to stdout through typer.echo.
"""

from __future__ import annotations

import json
from dataclasses import asdict, is_dataclass
from datetime import datetime
from enum import Enum
from typing import Any

import typer

from b2ctrace.contracts.enums import StepResult
from b2ctrace.contracts.trace import ClaimsDiff, TraceParseResult
from b2ctrace.trace.execution_map import ExecutionStats
from b2ctrace.trace.flow_tree import flatten_tree

_RESULT_SYMBOLS = {
    StepResult.SUCCESS: "✓",
    StepResult.ERROR: "✗",
    StepResult.SKIPPED: "-",
}


def _to_jsonable(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, Enum):
        return value.value
    if is_dataclass(value) and not isinstance(value, type):
        return {k: _to_jsonable(v) for k, v in asdict(value).items()}
    if isinstance(value, dict):
        return {str(k): _to_jsonable(v) for k, v in value.items()}
    if isinstance(value, list | tuple):
        return [_to_jsonable(v) for v in value]
    return value


def format_parse_console(result: TraceParseResult, stats: ExecutionStats) -> None:
    """Print steps, errors and execution stats for people."""
    typer.echo(f"Journey: {result.main_journey_id or '(none)'}")
    for step in result.trace_steps:
        symbol = _RESULT_SYMBOLS[step.result]
        profiles = f" [{', '.join(step.technical_profiles)}]" if step.technical_profiles else ""
        duration = f" {step.duration_ms}ms" if step.duration_ms is not None else ""
        typer.echo(f"  {symbol} #{step.sequence_number} {step.graph_node_id}{profiles}{duration}")
        if step.error_message:
            typer.echo(f"      error: {step.error_message}")

    typer.echo(
        f"Steps: {len(result.trace_steps)} | Nodes: {stats.unique_nodes} | Visits: {stats.total_visits} | "
        + ", ".join(f"{status}: {count}" for status, count in stats.status_counts.items())
    )
    for error in result.errors:
        typer.echo(f"Error: {error}", err=True)


def format_parse_json(result: TraceParseResult, stats: ExecutionStats) -> None:
    """Print the parse result as one JSON document."""
    payload = {
        "main_journey_id": result.main_journey_id,
        "success": result.success,
        "errors": result.errors,
        "trace_steps": _to_jsonable(result.trace_steps),
        "execution_map": _to_jsonable(result.execution_map),
        "sessions": _to_jsonable(result.sessions),
        "stats": _to_jsonable(stats),
    }
    typer.echo(json.dumps(payload, indent=2, default=str))


def format_tree(result: TraceParseResult) -> None:
    """Print the flow tree as indented text."""
    for row in flatten_tree(result.flow_tree):
        typer.echo(f"{'  ' * row['depth']}{row['node_type']}: {row['label']}")


def format_claims_diff(diff: ClaimsDiff) -> None:
    if diff.is_empty:
        typer.echo("No claim changes.")
        return
    for claim, value in sorted(diff.added.items()):
        typer.echo(f"+ {claim}: {value}")
    for claim, (old, new) in sorted(diff.modified.items()):
        typer.echo(f"~ {claim}: {old} -> {new}")
    for claim in diff.removed:
        typer.echo(f"- {claim}")
