# src/b2ctrace/core/keys.py
"""Statebag keys, recorder-record keys, and event instances.

Centralised string constants for everything the trace parser reads out of
Journey Recorder payloads. Short statebag codes (CTP, TAGE, ...) are the
engine's own abbreviations.
"""

from enum import StrEnum

from b2ctrace.contracts.enums import EventType


class StatebagKey(StrEnum):
    """Keys of entries in a HandlerResult statebag."""

    CTP = "CTP"  # Current technical profile, "TechnicalProfileId:StepNumber"
    ORCH_CS = "ORCH_CS"  # Orchestration current step
    MACHSTATE = "MACHSTATE"  # Machine state
    TAGE = "TAGE"  # Target entity (ClaimsExchange id picked by the user)
    PROT = "PROT"  # Protocol call details and response
    EID = "EID"  # Content definition id
    COMPLEX_CLAIMS = "Complex-CLMS"
    COMPLEX_ITEMS = "ComplexItems"


class RecorderRecordKey(StrEnum):
    """Keys inside HandlerResult.RecorderRecord.Values."""

    ENABLED_FOR_USER_JOURNEYS_TRUE = "EnabledForUserJourneysTrue"
    TECHNICAL_PROFILE_ENABLED = "TechnicalProfileEnabled"
    TECHNICAL_PROFILE = "TechnicalProfile"
    CURRENT_STEP = "CurrentStep"
    HOME_REALM_DISCOVERY = "HomeRealmDiscovery"
    INITIATING_CLAIMS_EXCHANGE = "InitiatingClaimsExchange"
    INITIATING_BACKEND_CLAIMS_EXCHANGE = "InitiatingBackendClaimsExchange"
    GETTING_CLAIMS = "GettingClaims"
    TECHNICAL_PROFILE_ID = "TechnicalProfileId"
    PROTOCOL_PROVIDER_TYPE = "ProtocolProviderType"
    PROTOCOL_TYPE = "ProtocolType"
    TARGET_ENTITY = "TargetEntity"
    OUTPUT_CLAIMS_TRANSFORMATION = "OutputClaimsTransformation"
    CLAIMS_TRANSFORMATION = "ClaimsTransformation"
    ID = "Id"
    INPUT_CLAIM = "InputClaim"
    INPUT_PARAMETER = "InputParameter"
    RESULT = "Result"
    VALIDATION = "Validation"
    VALIDATION_TECHNICAL_PROFILE = "ValidationTechnicalProfile"
    SUB_JOURNEY = "SubJourney"
    SUB_JOURNEY_ID = "SubJourneyId"
    SUB_JOURNEY_INVOKED = "SubJourneyInvoked"
    DISPLAY_CONTROL = "DisplayControl"
    INITIATING_DISPLAY_CONTROL = "InitiatingDisplayControl"
    DISPLAY_CONTROL_ACTION = "DisplayControlAction"
    API_UI_MANAGER_INFO = "ApiUiManagerInfo"
    SETTINGS = "Settings"
    EXCEPTION = "Exception"


class EventInstance(StrEnum):
    """Headers.EventInstance values that carry orchestration data."""

    AUTH = "Event:AUTH"
    API = "Event:API"
    SELFASSERTED = "Event:SELFASSERTED"
    CLAIMS_EXCHANGE = "Event:ClaimsExchange"


SUPPORTED_EVENT_INSTANCES: tuple[str, ...] = tuple(e.value for e in EventInstance)

_EVENT_TYPES: dict[str, EventType] = {
    EventInstance.AUTH: EventType.AUTH,
    EventInstance.API: EventType.API,
    EventInstance.SELFASSERTED: EventType.SELFASSERTED,
    EventInstance.CLAIMS_EXCHANGE: EventType.CLAIMS_EXCHANGE,
}


def event_instance_to_event_type(event_instance: str) -> EventType:
    """Map a Headers.EventInstance value to its EventType.

    Unknown or empty instances map to API.
    """
    return _EVENT_TYPES.get(event_instance, EventType.API)


def parse_ctp(ctp_value: str) -> tuple[str, int | None] | None:
    """Split a CTP statebag value into technical profile id and step number.

    The step number follows the LAST colon, so profile ids that themselves
    contain colons survive intact.

    Args:
        ctp_value: Raw CTP value, e.g. "SelfAsserted-LocalAccountSignin-Email:1"

    Returns:
        (profile_id, step_number) where step_number is None if absent or
        non-numeric; None when no profile id can be read.
    """
    if not ctp_value:
        return None
    profile_id, sep, step_text = ctp_value.rpartition(":")
    if not sep:
        return ctp_value, None
    if not profile_id:
        return None
    try:
        return profile_id, int(step_text)
    except ValueError:
        return profile_id, None
