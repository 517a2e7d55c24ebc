# src/b2ctrace/cli.py
"""b2ctrace Command Line Interface.

Entry point for the b2ctrace CLI tool.
"""

from __future__ import annotations

from pathlib import Path
from typing import Literal

import typer
import yaml
from pydantic import ValidationError

from b2ctrace import __version__
from b2ctrace.cli_formatters import format_claims_diff, format_parse_console, format_parse_json, format_tree
from b2ctrace.contracts.errors import TraceInputError
from b2ctrace.contracts.trace import TraceParseResult
from b2ctrace.core.config import TraceSettings, load_settings
from b2ctrace.trace.execution_map import compute_stats
from b2ctrace.trace.loader import load_trace_logs
from b2ctrace.trace.parser import get_claims_diff_between_steps, parse_trace

__all__ = [
    "app",
    "load_settings",  # Re-exported from config for convenience
]

app = typer.Typer(
    name="b2ctrace",
    help="b2ctrace: Reconstruct journey traces from Journey Recorder logs.",
    no_args_is_help=True,
)


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        typer.echo(f"b2ctrace version {__version__}")
        raise typer.Exit()


def _load_dotenv(env_file: Path | None = None) -> bool:
    """Load environment variables from .env file.

    B2CTRACE_* overrides may live there.

    Raises:
        typer.Exit: If explicit env_file path doesn't exist.
    """
    from dotenv import load_dotenv

    if env_file is not None:
        if not env_file.exists():
            typer.secho(
                f"Error: .env file not found: {env_file}",
                fg=typer.colors.RED,
                err=True,
            )
            raise typer.Exit(1)
        return load_dotenv(env_file, override=False)

    return load_dotenv(override=False)  # Don't override existing env vars


@app.callback()
def main(
    version: bool | None = typer.Option(
        None,
        "--version",
        "-V",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
    no_dotenv: bool = typer.Option(
        False,
        "--no-dotenv",
        help="Skip loading .env file.",
    ),
    env_file: Path | None = typer.Option(
        None,
        "--env-file",
        help="Path to .env file (skips automatic search).",
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Enable verbose/debug logging.",
    ),
    json_logs: bool = typer.Option(
        False,
        "--json-logs",
        help="Output structured JSON logs (for machine processing).",
    ),
) -> None:
    """b2ctrace: Reconstruct journey traces from Journey Recorder logs."""
    from b2ctrace.core.logging import configure_logging

    log_level = "DEBUG" if verbose else "INFO"
    configure_logging(json_output=json_logs, level=log_level)

    if not no_dotenv:
        _load_dotenv(env_file=env_file)


def _load_settings_or_exit(settings: Path | None) -> TraceSettings:
    try:
        return load_settings(settings.expanduser() if settings is not None else None)
    except FileNotFoundError:
        typer.echo(f"Error: Settings file not found: {settings}", err=True)
        raise typer.Exit(1) from None
    except ValidationError as e:
        typer.echo("Configuration errors:", err=True)
        for error in e.errors():
            loc = ".".join(str(x) for x in error["loc"])
            typer.echo(f"  - {loc}: {error['msg']}", err=True)
        raise typer.Exit(1) from None


def _parse_or_exit(logfile: Path, settings: TraceSettings) -> TraceParseResult:
    try:
        logs = load_trace_logs(logfile)
    except TraceInputError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1) from None
    return parse_trace(logs, settings)


_SETTINGS_OPTION = typer.Option(
    None,
    "--settings",
    "-s",
    help="Path to settings YAML file.",
)


@app.command()
def parse(
    logfile: Path = typer.Argument(..., help="JSON or JSONL file of log records."),
    settings: Path | None = _SETTINGS_OPTION,
    output_format: Literal["console", "json"] = typer.Option(
        "console",
        "--format",
        "-f",
        help="Output format: 'console' (human-readable) or 'json' (structured).",
    ),
) -> None:
    """Parse logs and print the reconstructed steps."""
    result = _parse_or_exit(logfile, _load_settings_or_exit(settings))

    stats = compute_stats(result.execution_map)

    if output_format == "json":
        format_parse_json(result, stats)
    else:
        format_parse_console(result, stats)

    if not result.success:
        raise typer.Exit(1)


@app.command()
def tree(
    logfile: Path = typer.Argument(..., help="JSON or JSONL file of log records."),
    settings: Path | None = _SETTINGS_OPTION,
) -> None:
    """Print the flow ownership tree."""
    result = _parse_or_exit(logfile, _load_settings_or_exit(settings))
    format_tree(result)
    if not result.success:
        for error in result.errors:
            typer.echo(f"Error: {error}", err=True)
        raise typer.Exit(1)


@app.command()
def diff(
    logfile: Path = typer.Argument(..., help="JSON or JSONL file of log records."),
    from_step: int = typer.Option(..., "--from-step", help="Sequence number of the earlier step."),
    to_step: int = typer.Option(..., "--to-step", help="Sequence number of the later step."),
    settings: Path | None = _SETTINGS_OPTION,
) -> None:
    """Print the claims diff between two steps."""
    result = _parse_or_exit(logfile, _load_settings_or_exit(settings))
    claims_diff = get_claims_diff_between_steps(result.trace_steps, from_step, to_step)
    if claims_diff is None:
        typer.echo(f"Error: no step with sequence number {from_step} or {to_step}", err=True)
        raise typer.Exit(1)
    format_claims_diff(claims_diff)


@app.command(name="settings")
def show_settings(
    settings: Path | None = _SETTINGS_OPTION,
) -> None:
    """Print the resolved settings as YAML."""
    resolved = _load_settings_or_exit(settings)
    typer.echo(yaml.dump(resolved.model_dump(mode="json"), default_flow_style=False, sort_keys=False))


if __name__ == "__main__":
    app()
