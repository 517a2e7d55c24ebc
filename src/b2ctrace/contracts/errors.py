# src/b2ctrace/contracts/errors.py
"""Exception types for b2ctrace.

Business-level conditions found in telemetry (handler exceptions, fatal
exceptions, missing fragments) are never raised. They are reported through
TraceParseResult.errors and per-step result fields. The exceptions here
cover programmer errors and unusable input only.
"""


class ClipSchemaError(TypeError):
    """Raised when a clip violates the basic Clip schema.

    Only structural violations raise: a clip that is not a mapping, a Kind
    that is not a string, or a clips container that is not a list. Field
    values inside a well-formed clip degrade to defaults instead.

    Attributes:
        index: Position of the offending clip within its log, if known
        reason: Human-readable description of the violation
    """

    def __init__(self, reason: str, *, index: int | None = None) -> None:
        self.index = index
        self.reason = reason
        location = f" at clip {index}" if index is not None else ""
        super().__init__(f"Malformed clip{location}: {reason}")


class TraceInputError(Exception):
    """Raised when a log file cannot be read or decoded into log records.

    Attributes:
        source: Path or label of the input that failed
    """

    def __init__(self, source: str, message: str) -> None:
        self.source = source
        super().__init__(f"{source}: {message}")


class JourneyStackError(Exception):
    """Raised when a journey stack is constructed or accessed without a root."""

    pass
