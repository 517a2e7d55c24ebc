# tests/unit/core/test_keys.py
"""Tests for statebag keys, event instances and CTP parsing."""

import pytest

from b2ctrace.contracts.enums import EventType
from b2ctrace.core.keys import SUPPORTED_EVENT_INSTANCES, event_instance_to_event_type, parse_ctp


class TestParseCtp:
    """Tests for parse_ctp()."""

    def test_profile_and_step(self) -> None:
        assert parse_ctp("tp:4") == ("tp", 4)

    def test_profile_with_colons(self) -> None:
        """The step number follows the last colon."""
        assert parse_ctp("SelfAsserted:Local:4") == ("SelfAsserted:Local", 4)

    def test_no_colon(self) -> None:
        assert parse_ctp("AAD-Read") == ("AAD-Read", None)

    def test_non_numeric_step(self) -> None:
        assert parse_ctp("AAD-Read:x") == ("AAD-Read", None)

    @pytest.mark.parametrize("value", ["", ":4"])
    def test_no_profile(self, value: str) -> None:
        assert parse_ctp(value) is None


class TestEventInstances:
    """Tests for event-instance mapping."""

    def test_supported_instances(self) -> None:
        assert SUPPORTED_EVENT_INSTANCES == (
            "Event:AUTH",
            "Event:API",
            "Event:SELFASSERTED",
            "Event:ClaimsExchange",
        )

    @pytest.mark.parametrize(
        ("instance", "expected"),
        [
            ("Event:AUTH", EventType.AUTH),
            ("Event:API", EventType.API),
            ("Event:SELFASSERTED", EventType.SELFASSERTED),
            ("Event:ClaimsExchange", EventType.CLAIMS_EXCHANGE),
            ("Event:OIDC", EventType.API),
            ("", EventType.API),
        ],
    )
    def test_event_type(self, instance: str, expected: EventType) -> None:
        assert event_instance_to_event_type(instance) == expected
