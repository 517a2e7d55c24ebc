# src/b2ctrace/contracts/enums.py
"""All kinds, results, and node types used across subsystem boundaries.

Values are the exact strings found in Journey Recorder telemetry (for clip
kinds and event types) or emitted in parse results (for step results and
flow node types). Changing a value is a wire-format change.
"""

from enum import StrEnum


class ClipKind(StrEnum):
    """Kind discriminator of a telemetry clip.

    Unknown kinds are not represented here; they are preserved verbatim
    as GenericClip instances.
    """

    HEADERS = "Headers"
    TRANSITION = "Transition"
    PREDICATE = "Predicate"
    ACTION = "Action"
    HANDLER_RESULT = "HandlerResult"
    FATAL_EXCEPTION = "FatalException"


class EventType(StrEnum):
    """Event type derived from a log's Headers.EventInstance.

    Values:
        AUTH: Initial session (browser redirect to /authorize)
        API: User interaction response (form POST)
        SELFASSERTED: Self-asserted form submission
        CLAIMS_EXCHANGE: Return from an external identity provider
    """

    AUTH = "AUTH"
    API = "API"
    SELFASSERTED = "SELFASSERTED"
    CLAIMS_EXCHANGE = "ClaimsExchange"


class StepResult(StrEnum):
    """Outcome of one orchestration step."""

    SUCCESS = "Success"
    ERROR = "Error"
    SKIPPED = "Skipped"


class StepErrorKind(StrEnum):
    """Whether a step error was handled by the engine or surfaced to the user."""

    HANDLED = "Handled"
    UNHANDLED = "Unhandled"


class FlowNodeType(StrEnum):
    """Type of node in the flow ownership tree."""

    ROOT = "root"
    SUB_JOURNEY = "subjourney"
    STEP = "step"
    TECHNICAL_PROFILE = "tp"
    CLAIMS_TRANSFORMATION = "ct"
    HOME_REALM_DISCOVERY = "hrd"
    DISPLAY_CONTROL = "dc"
    SEND_CLAIMS = "sendClaims"
