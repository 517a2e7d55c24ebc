"""Shared contracts for b2ctrace.

Clip model, trace results, flow tree nodes, enums and errors. Import from
here rather than from the submodules.
"""

from b2ctrace.contracts.clips import (
    ActionClip,
    Clip,
    ExceptionInfo,
    FatalExceptionClip,
    GenericClip,
    HandlerResultClip,
    HandlerResultContent,
    HeadersClip,
    HeadersContent,
    PredicateClip,
    RecordEntry,
    TraceLogInput,
    TransitionClip,
    parse_clip,
    parse_clips,
    parse_log_record,
)
from b2ctrace.contracts.enums import ClipKind, EventType, FlowNodeType, StepErrorKind, StepResult
from b2ctrace.contracts.errors import ClipSchemaError, JourneyStackError, TraceInputError
from b2ctrace.contracts.flow_node import (
    ClaimsTransformationFlowData,
    DisplayControlFlowData,
    FlowData,
    FlowNode,
    FlowNodeContext,
    HomeRealmDiscoveryFlowData,
    RootFlowData,
    SendClaimsFlowData,
    StepFlowData,
    SubJourneyFlowData,
    TechnicalProfileFlowData,
)
from b2ctrace.contracts.trace import (
    BackendApiCall,
    ClaimsDiff,
    ClaimsTransformationDetail,
    ClaimValue,
    DisplayControlAction,
    DisplayControlTechnicalProfile,
    ExecutionMapEntry,
    JourneyContext,
    ParameterValue,
    SessionInfo,
    StepError,
    TechnicalProfileDetail,
    TraceParseResult,
    TraceStep,
    UiSettings,
)

__all__ = [
    "ActionClip",
    "BackendApiCall",
    "ClaimValue",
    "ClaimsDiff",
    "ClaimsTransformationDetail",
    "ClaimsTransformationFlowData",
    "Clip",
    "ClipKind",
    "ClipSchemaError",
    "DisplayControlAction",
    "DisplayControlFlowData",
    "DisplayControlTechnicalProfile",
    "EventType",
    "ExceptionInfo",
    "ExecutionMapEntry",
    "FatalExceptionClip",
    "FlowData",
    "FlowNode",
    "FlowNodeContext",
    "FlowNodeType",
    "GenericClip",
    "HandlerResultClip",
    "HandlerResultContent",
    "HeadersClip",
    "HeadersContent",
    "HomeRealmDiscoveryFlowData",
    "JourneyContext",
    "JourneyStackError",
    "ParameterValue",
    "PredicateClip",
    "RecordEntry",
    "RootFlowData",
    "SendClaimsFlowData",
    "SessionInfo",
    "StepError",
    "StepErrorKind",
    "StepFlowData",
    "StepResult",
    "SubJourneyFlowData",
    "TechnicalProfileDetail",
    "TechnicalProfileFlowData",
    "TraceInputError",
    "TraceLogInput",
    "TraceParseResult",
    "TraceStep",
    "TransitionClip",
    "UiSettings",
    "parse_clip",
    "parse_clips",
    "parse_log_record",
]
