# src/b2ctrace/trace/records.py
"""Extraction helpers for recorder records and statebag entries.

RecorderRecord payloads are loosely typed nested Key/Value structures.
Every helper here reads with defaults: a missing or wrongly-shaped field
yields None or an empty collection, never an exception.
"""

from __future__ import annotations

import json
import re
from collections.abc import Iterable, Mapping
from typing import Any

from b2ctrace.contracts.clips import ExceptionInfo, RecordEntry, parse_exception, parse_record_entries
from b2ctrace.contracts.trace import (
    BackendApiCall,
    ClaimsTransformationDetail,
    ClaimValue,
    DisplayControlAction,
    DisplayControlTechnicalProfile,
    ParameterValue,
    TechnicalProfileDetail,
    UiSettings,
)
from b2ctrace.core.keys import RecorderRecordKey as Key

_REQUEST_URI = re.compile(r"Request to (\S+)", re.IGNORECASE)
_RESPONSE_BODY = re.compile(r"Response:\s*\n?(\{[\s\S]*?\})\s*$", re.MULTILINE)


def _text(value: Any) -> str:
    if isinstance(value, str):
        return value
    if isinstance(value, int | float) and not isinstance(value, bool):
        return str(value)
    return ""


def _nested(entries: Iterable[RecordEntry], key: str) -> list[tuple[RecordEntry, ...]]:
    """Nested Values lists of every entry with the given key."""
    return [parse_record_entries(e.value) for e in entries if e.key == key]


def statebag_value(entry: Any) -> str | None:
    """Read the value of a statebag entry.

    Accepts the timestamped {c, k, v, p} shape or a bare string.
    """
    if isinstance(entry, str):
        return entry
    if isinstance(entry, Mapping) and "v" in entry:
        value = _text(entry["v"])
        return value if value or entry["v"] == "" else None
    return None


# =============================================================================
# Technical Profiles
# =============================================================================


def _enabled_profiles(entries: Iterable[RecordEntry], container_key: str) -> list[str]:
    profiles: list[str] = []
    for inner in _nested(entries, container_key):
        for item in inner:
            if item.key == Key.TECHNICAL_PROFILE_ENABLED and isinstance(item.value, Mapping):
                profile = _text(item.value.get(Key.TECHNICAL_PROFILE))
                if profile:
                    profiles.append(profile)
    return profiles


def enabled_technical_profiles(entries: Iterable[RecordEntry]) -> list[str]:
    """Profiles ENABLED for a step (EnabledForUserJourneysTrue).

    These are available profiles, not necessarily the one triggered.
    """
    return _enabled_profiles(entries, Key.ENABLED_FOR_USER_JOURNEYS_TRUE)


def home_realm_options(entries: Iterable[RecordEntry]) -> list[str]:
    """Identity-provider choices offered by home realm discovery."""
    return _enabled_profiles(entries, Key.HOME_REALM_DISCOVERY)


def initiating_claims_exchange(entries: Iterable[RecordEntry]) -> TechnicalProfileDetail | None:
    """The technical profile a claims exchange actually triggered."""
    for entry in entries:
        if entry.key == Key.INITIATING_CLAIMS_EXCHANGE and isinstance(entry.value, Mapping):
            profile_id = _text(entry.value.get(Key.TECHNICAL_PROFILE_ID))
            if profile_id:
                return TechnicalProfileDetail(
                    id=profile_id,
                    provider_type=_text(entry.value.get(Key.PROTOCOL_PROVIDER_TYPE)),
                    protocol_type=_text(entry.value.get(Key.PROTOCOL_TYPE)),
                )
    return None


def backend_claims_exchanges(entries: Iterable[RecordEntry]) -> list[TechnicalProfileDetail]:
    """Backend profiles from GettingClaims / InitiatingBackendClaimsExchange."""
    details: list[TechnicalProfileDetail] = []
    for inner in _nested(entries, Key.GETTING_CLAIMS):
        for item in inner:
            if item.key == Key.INITIATING_BACKEND_CLAIMS_EXCHANGE and isinstance(item.value, Mapping):
                profile_id = _text(item.value.get(Key.TECHNICAL_PROFILE_ID))
                if profile_id:
                    details.append(
                        TechnicalProfileDetail(
                            id=profile_id,
                            provider_type=_text(item.value.get(Key.PROTOCOL_PROVIDER_TYPE)),
                            protocol_type=_text(item.value.get(Key.PROTOCOL_TYPE)),
                        )
                    )
    return details


def validation_technical_profiles(entries: Iterable[RecordEntry]) -> list[str]:
    """Validation profiles run against a self-asserted form submission.

    Pattern: Validation -> ValidationTechnicalProfile -> TechnicalProfileId
    """
    profiles: list[str] = []
    for validation in _nested(entries, Key.VALIDATION):
        for vtp in _nested(validation, Key.VALIDATION_TECHNICAL_PROFILE):
            for item in vtp:
                profile_id = _text(item.value) if item.key == Key.TECHNICAL_PROFILE_ID else ""
                if profile_id and profile_id not in profiles:
                    profiles.append(profile_id)
    return profiles


def _exception_entry(value: Any) -> ExceptionInfo | None:
    exception = parse_exception(value)
    return exception if exception is not None and exception.message else None


def reported_exception(exception: ExceptionInfo | None, entries: Iterable[RecordEntry]) -> ExceptionInfo | None:
    """The error a handler result reports, wherever the engine put it.

    Checked in order: the HandlerResult's own Exception, an Exception inside
    a Validation entry, then an Exception entry in the record itself. Only
    exceptions with a message count.
    """
    if exception is not None and exception.message:
        return exception
    for entry in entries:
        if entry.key == Key.VALIDATION:
            for item in parse_record_entries(entry.value):
                found = _exception_entry(item.value) if item.key == Key.EXCEPTION else None
                if found is not None:
                    return found
        elif entry.key == Key.EXCEPTION:
            found = _exception_entry(entry.value)
            if found is not None:
                return found
    return None


# =============================================================================
# Claims Transformations and Display Controls
# =============================================================================


def _claim(value: Any) -> ClaimValue | None:
    if not isinstance(value, Mapping):
        return None
    claim_type = _text(value.get("PolicyClaimType"))
    return ClaimValue(claim_type=claim_type, value=_text(value.get("Value"))) if claim_type else None


def transformation_detail(values: Iterable[RecordEntry]) -> ClaimsTransformationDetail | None:
    """Read one ClaimsTransformation {Id, InputClaim, InputParameter, Result} list.

    Returns None when the transformation has no Id.
    """
    transformation_id = ""
    input_claims: list[ClaimValue] = []
    input_parameters: list[ParameterValue] = []
    output_claims: list[ClaimValue] = []

    for item in values:
        if item.key == Key.ID:
            transformation_id = _text(item.value) or transformation_id
        elif item.key == Key.INPUT_CLAIM:
            claim = _claim(item.value)
            if claim:
                input_claims.append(claim)
        elif item.key == Key.INPUT_PARAMETER and isinstance(item.value, Mapping):
            param_id = _text(item.value.get("Id"))
            if param_id:
                input_parameters.append(ParameterValue(id=param_id, value=_text(item.value.get("Value"))))
        elif item.key == Key.RESULT:
            claim = _claim(item.value)
            if claim:
                output_claims.append(claim)

    if not transformation_id:
        return None
    return ClaimsTransformationDetail(
        id=transformation_id,
        input_claims=tuple(input_claims),
        input_parameters=tuple(input_parameters),
        output_claims=tuple(output_claims),
    )


def invoked_components(
    entries: Iterable[RecordEntry],
) -> tuple[list[str], list[ClaimsTransformationDetail], list[str]]:
    """Claims transformations and display controls named in a handler result.

    Returns:
        (transformation ids, transformation details, display control ids),
        ids de-duplicated in first-seen order
    """
    entries = list(entries)
    transformation_ids: list[str] = []
    details: list[ClaimsTransformationDetail] = []
    display_controls: list[str] = []

    for entry in entries:
        if entry.key == Key.CLAIMS_TRANSFORMATION:
            for item in parse_record_entries(entry.value):
                if item.key == Key.ID and _text(item.value):
                    transformation_ids.append(_text(item.value))
        elif entry.key == Key.OUTPUT_CLAIMS_TRANSFORMATION:
            for ct_values in _nested(parse_record_entries(entry.value), Key.CLAIMS_TRANSFORMATION):
                detail = transformation_detail(ct_values)
                if detail:
                    transformation_ids.append(detail.id)
                    details.append(detail)
        elif entry.key == Key.DISPLAY_CONTROL and _text(entry.value):
            display_controls.append(_text(entry.value))
        elif entry.key == Key.INITIATING_DISPLAY_CONTROL and isinstance(entry.value, Mapping):
            control_id = _text(entry.value.get("DisplayControlId"))
            if control_id:
                display_controls.append(control_id)

    return list(dict.fromkeys(transformation_ids)), details, list(dict.fromkeys(display_controls))


def display_control_action(entries: Iterable[RecordEntry]) -> DisplayControlAction | None:
    """Read a display-control action response.

    Pattern:
        Id: "DisplayControlId/Action"
        Result: result code
        DisplayControlAction: [{Values: [TechnicalProfileId, ClaimsTransformation...]}]
    """
    control_id = ""
    action = ""
    result_code: str | None = None
    profiles: list[DisplayControlTechnicalProfile] = []

    for entry in entries:
        if entry.key == Key.ID and _text(entry.value):
            control_id, _, action = _text(entry.value).partition("/")
        elif entry.key == Key.RESULT and _text(entry.value):
            result_code = _text(entry.value)
        elif entry.key == Key.DISPLAY_CONTROL_ACTION and isinstance(entry.value, list):
            for item in entry.value:
                values = parse_record_entries(item)
                profile_id = next((_text(v.value) for v in values if v.key == Key.TECHNICAL_PROFILE_ID), "")
                if not profile_id:
                    continue
                transformations = []
                for ct_values in _nested(values, Key.CLAIMS_TRANSFORMATION):
                    detail = transformation_detail(ct_values)
                    if detail:
                        transformations.append(detail)
                profiles.append(
                    DisplayControlTechnicalProfile(
                        technical_profile_id=profile_id,
                        claims_transformations=tuple(transformations),
                    )
                )

    if not control_id:
        return None
    return DisplayControlAction(
        display_control_id=control_id,
        action=action,
        result_code=result_code,
        technical_profiles=tuple(profiles),
    )


# =============================================================================
# Sub-journeys, UI, Backend Calls
# =============================================================================


def sub_journey_id(entries: Iterable[RecordEntry]) -> str | None:
    """Sub-journey id from SubJourney / SubJourneyId / SubJourneyInvoked.

    The value may be the id itself or an object with SubJourneyId or Id.
    """
    for entry in entries:
        if entry.key not in (Key.SUB_JOURNEY, Key.SUB_JOURNEY_ID, Key.SUB_JOURNEY_INVOKED):
            continue
        if isinstance(entry.value, str) and entry.value:
            return entry.value
        if isinstance(entry.value, Mapping):
            found = _text(entry.value.get("SubJourneyId")) or _text(entry.value.get("Id"))
            if found:
                return found
    return None


def ui_settings(entries: Iterable[RecordEntry], content_definition: str | None = None) -> UiSettings | None:
    """Page settings from ApiUiManagerInfo.Settings (a JSON string)."""
    page: dict[str, Any] = {}
    for info in _nested(entries, Key.API_UI_MANAGER_INFO):
        for item in info:
            if item.key != Key.SETTINGS or not isinstance(item.value, str):
                continue
            try:
                decoded = json.loads(item.value)
            except json.JSONDecodeError:
                continue
            if isinstance(decoded, dict):
                page = decoded

    locale = page.get("locale")
    settings = UiSettings(
        content_definition=content_definition or None,
        page_type=_text(page.get("api")) or None,
        remote_resource=_text(page.get("remoteResource")) or None,
        page_id=_text(page.get("pageViewId")) or None,
        language=_text(locale.get("lang")) or None if isinstance(locale, Mapping) else None,
    )
    return settings if settings != UiSettings() else None


def backend_api_call(prot_value: str | None) -> BackendApiCall | None:
    """Parse a PROT statebag value into a BackendApiCall.

    Format: "<AAD|REST API> Request to {url} using method {m}...\\r\\nResponse: {json}"
    """
    if not prot_value:
        return None

    uri_match = _REQUEST_URI.search(prot_value)
    request_type: str | None = None
    if prot_value.startswith("AAD Request"):
        request_type = "AAD"
    elif "REST API" in prot_value:
        request_type = "REST"

    raw_response: str | None = None
    response: Any = None
    body_match = _RESPONSE_BODY.search(prot_value)
    if body_match:
        raw_response = body_match.group(1).strip()
        try:
            response = json.loads(raw_response)
        except json.JSONDecodeError:
            response = None

    call = BackendApiCall(
        request_uri=uri_match.group(1) if uri_match else None,
        request_type=request_type,
        raw_response=raw_response,
        response=response,
    )
    return call if call != BackendApiCall() else None
