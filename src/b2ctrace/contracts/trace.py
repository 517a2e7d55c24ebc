# src/b2ctrace/contracts/trace.py
"""Data contracts for reconstructed traces.

TraceStep is the unit of the linear trace. Steps are mutable only while a
parse is running (late CTP attachment, duplicate merge, post-processing);
callers receive them as finished values inside TraceParseResult.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING, Any

from b2ctrace.contracts.enums import EventType, StepErrorKind, StepResult

if TYPE_CHECKING:
    from b2ctrace.contracts.flow_node import FlowNode


# =============================================================================
# Step Detail Types
# =============================================================================


@dataclass(frozen=True, slots=True)
class ClaimValue:
    claim_type: str
    value: str


@dataclass(frozen=True, slots=True)
class ParameterValue:
    id: str
    value: str


@dataclass(frozen=True, slots=True)
class ClaimsTransformationDetail:
    """Inputs and outputs of one executed claims transformation."""

    id: str
    input_claims: tuple[ClaimValue, ...] = ()
    input_parameters: tuple[ParameterValue, ...] = ()
    output_claims: tuple[ClaimValue, ...] = ()


@dataclass(frozen=True, slots=True)
class DisplayControlTechnicalProfile:
    technical_profile_id: str
    claims_transformations: tuple[ClaimsTransformationDetail, ...] = ()


@dataclass(frozen=True, slots=True)
class DisplayControlAction:
    """One display-control action (e.g. "emailVerification/SendCode").

    Attributes:
        display_control_id: Control id, the part before the first "/"
        action: Action name, everything after the first "/"
        result_code: Result code reported by the handler, if any
        technical_profiles: Profiles the control invoked, in invocation order
    """

    display_control_id: str
    action: str
    result_code: str | None = None
    technical_profiles: tuple[DisplayControlTechnicalProfile, ...] = ()


@dataclass(slots=True)
class TechnicalProfileDetail:
    """What the trace knows about one invoked technical profile.

    claims_transformations lists transformation ids executed while this
    profile was the current profile (CTP); it drives ownership nesting.
    """

    id: str
    provider_type: str = ""
    protocol_type: str = ""
    claims_transformations: list[str] = field(default_factory=list)


@dataclass(frozen=True, slots=True)
class StepError:
    kind: StepErrorKind
    h_result: str
    message: str


@dataclass(frozen=True, slots=True)
class UiSettings:
    content_definition: str | None = None
    page_type: str | None = None
    remote_resource: str | None = None
    page_id: str | None = None
    language: str | None = None


@dataclass(frozen=True, slots=True)
class BackendApiCall:
    """A backend call reconstructed from a PROT statebag entry."""

    request_uri: str | None = None
    request_type: str | None = None
    raw_response: str | None = None
    response: Any = None


# =============================================================================
# Trace Step
# =============================================================================


@dataclass(slots=True)
class TraceStep:
    """One finalized orchestration step.

    Snapshots are copies taken when the step is finalized; they never alias
    the parser's running statebag or claims.

    Attributes:
        sequence_number: Position in the trace, equal to the step's list index
        graph_node_id: "{journeyId}-Step{n}", or "{journeyId}-Error" for
            synthetic fatal-exception steps
        selectable_options: Options still open when the trace ended; cleared
            once a choice resolves to a single profile
        offered_options: Every option ever offered on this step, never cleared
        selected_option: Option the user picked, once known
        sso_session_participant: Whether an existing SSO session could be
            used, when the engine checked
        sso_session_activated: Whether this step established an SSO session
        send_claims_profile: Relying-party profile that received the claims
            on the final step
    """

    sequence_number: int
    timestamp: datetime
    log_id: str
    event_type: EventType
    graph_node_id: str
    journey_context_id: str
    current_journey_name: str
    step_order: int
    result: StepResult = StepResult.SUCCESS
    statebag_snapshot: dict[str, str] = field(default_factory=dict)
    claims_snapshot: dict[str, str] = field(default_factory=dict)
    technical_profiles: list[str] = field(default_factory=list)
    technical_profile_details: list[TechnicalProfileDetail] = field(default_factory=list)
    validation_technical_profiles: list[str] = field(default_factory=list)
    self_asserted_profile: str | None = None
    selectable_options: list[str] = field(default_factory=list)
    offered_options: list[str] = field(default_factory=list)
    selected_option: str | None = None
    is_interactive_step: bool = False
    claims_transformations: list[str] = field(default_factory=list)
    claims_transformation_details: list[ClaimsTransformationDetail] = field(default_factory=list)
    display_controls: list[str] = field(default_factory=list)
    display_control_actions: list[DisplayControlAction] = field(default_factory=list)
    error_message: str | None = None
    error_h_result: str | None = None
    errors: list[StepError] = field(default_factory=list)
    action_handler: str | None = None
    sub_journey_id: str | None = None
    ui_settings: UiSettings | None = None
    backend_api_calls: list[BackendApiCall] = field(default_factory=list)
    duration_ms: int | None = None
    sso_session_participant: bool | None = None
    sso_session_activated: bool | None = None
    is_final_step: bool = False
    send_claims_profile: str | None = None

    def detail_for(self, profile_id: str) -> TechnicalProfileDetail | None:
        """Return the detail record for a profile on this step, if any."""
        for detail in self.technical_profile_details:
            if detail.id == profile_id:
                return detail
        return None


# =============================================================================
# Parser State and Results
# =============================================================================


@dataclass(slots=True)
class JourneyContext:
    """One entry on the journey stack."""

    journey_id: str
    journey_name: str
    last_orch_step: int
    entry_timestamp: datetime


@dataclass(slots=True)
class ExecutionMapEntry:
    status: StepResult
    visit_count: int = 0
    step_indices: list[int] = field(default_factory=list)


@dataclass(slots=True)
class SessionInfo:
    """One authentication session (delimited by Event:AUTH headers)."""

    session_index: int
    start_timestamp: datetime
    step_count: int = 0


@dataclass(frozen=True, slots=True)
class ClaimsDiff:
    added: dict[str, str]
    modified: dict[str, tuple[str, str]]  # claim -> (old, new)
    removed: list[str]

    @property
    def is_empty(self) -> bool:
        return not (self.added or self.modified or self.removed)


@dataclass(slots=True)
class TraceParseResult:
    """Everything one parse invocation produces.

    success is False with a single error when no eligible logs were found;
    otherwise it is False exactly when errors were recorded.
    """

    trace_steps: list[TraceStep]
    execution_map: dict[str, ExecutionMapEntry]
    flow_tree: FlowNode
    main_journey_id: str
    success: bool
    errors: list[str]
    final_statebag: dict[str, str]
    final_claims: dict[str, str]
    sessions: list[SessionInfo] = field(default_factory=list)
