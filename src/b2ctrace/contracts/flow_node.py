# src/b2ctrace/contracts/flow_node.py
"""FlowNode tree contracts.

The flow tree mirrors ownership: journey -> sub-journey -> step ->
technical profile / claims transformation / display control / home realm
discovery / send claims. Each node carries a payload matching its type and
a context snapshot taken when the node was created.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime

from b2ctrace.contracts.enums import FlowNodeType, StepResult
from b2ctrace.contracts.trace import BackendApiCall, ClaimValue, ParameterValue, StepError, UiSettings

EPOCH = datetime(1970, 1, 1, tzinfo=UTC)


@dataclass(frozen=True, slots=True)
class FlowNodeContext:
    """Snapshot of parser state when a node was created."""

    timestamp: datetime = EPOCH
    sequence_number: int = 0
    log_id: str = ""
    event_type: str = ""
    statebag_snapshot: dict[str, str] = field(default_factory=dict)
    claims_snapshot: dict[str, str] = field(default_factory=dict)


# =============================================================================
# Node Payloads
# =============================================================================


@dataclass(slots=True)
class RootFlowData:
    policy_id: str = ""
    type: FlowNodeType = field(default=FlowNodeType.ROOT, init=False)


@dataclass(slots=True)
class SubJourneyFlowData:
    journey_id: str
    type: FlowNodeType = field(default=FlowNodeType.SUB_JOURNEY, init=False)


@dataclass(slots=True)
class StepFlowData:
    """Payload of a Step node.

    duration_ms, selected_option and result are written back by the
    post-sync pass after the full parse.

    Attributes:
        step_index: Index of the matching TraceStep in trace_steps
    """

    step_order: int
    current_journey_name: str
    result: StepResult
    step_index: int
    duration_ms: int | None = None
    errors: list[StepError] = field(default_factory=list)
    error_message: str | None = None
    action_handler: str | None = None
    ui_settings: UiSettings | None = None
    selectable_options: list[str] = field(default_factory=list)
    selected_option: str | None = None
    backend_api_calls: list[BackendApiCall] = field(default_factory=list)
    is_final_step: bool = False
    type: FlowNodeType = field(default=FlowNodeType.STEP, init=False)


@dataclass(slots=True)
class TechnicalProfileFlowData:
    technical_profile_id: str
    provider_type: str = "Unknown"
    protocol_type: str = ""
    claims_snapshot: dict[str, str] | None = None
    type: FlowNodeType = field(default=FlowNodeType.TECHNICAL_PROFILE, init=False)


@dataclass(slots=True)
class ClaimsTransformationFlowData:
    transformation_id: str
    input_claims: tuple[ClaimValue, ...] = ()
    input_parameters: tuple[ParameterValue, ...] = ()
    output_claims: tuple[ClaimValue, ...] = ()
    type: FlowNodeType = field(default=FlowNodeType.CLAIMS_TRANSFORMATION, init=False)


@dataclass(slots=True)
class HomeRealmDiscoveryFlowData:
    selectable_options: list[str] = field(default_factory=list)
    selected_option: str | None = None
    ui_settings: UiSettings | None = None
    type: FlowNodeType = field(default=FlowNodeType.HOME_REALM_DISCOVERY, init=False)


@dataclass(slots=True)
class DisplayControlFlowData:
    display_control_id: str
    action: str
    result_code: str | None = None
    type: FlowNodeType = field(default=FlowNodeType.DISPLAY_CONTROL, init=False)


@dataclass(slots=True)
class SendClaimsFlowData:
    technical_profile_id: str
    protocol: str = ""
    type: FlowNodeType = field(default=FlowNodeType.SEND_CLAIMS, init=False)


type FlowData = (
    RootFlowData
    | SubJourneyFlowData
    | StepFlowData
    | TechnicalProfileFlowData
    | ClaimsTransformationFlowData
    | HomeRealmDiscoveryFlowData
    | DisplayControlFlowData
    | SendClaimsFlowData
)


@dataclass(slots=True)
class FlowNode:
    """Node in the flow ownership tree.

    Children are exclusively owned. last_step is the highest step number
    observed anywhere under this node and never decreases.
    """

    id: str
    name: str
    type: FlowNodeType
    triggered_at_step: int
    last_step: int
    data: FlowData
    context: FlowNodeContext
    children: list[FlowNode] = field(default_factory=list)
