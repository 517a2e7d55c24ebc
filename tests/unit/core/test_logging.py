# tests/unit/core/test_logging.py
"""Tests for structlog configuration."""

import json
import logging

import pytest
import structlog

from b2ctrace.core.logging import configure_logging


class TestConfigureLogging:
    """Tests for configure_logging()."""

    def test_json_output(self, capsys: pytest.CaptureFixture[str]) -> None:
        """JSON mode emits one JSON object per line on stderr."""
        configure_logging(json_output=True, level="DEBUG")
        structlog.get_logger("b2ctrace.test").debug("Sub-journey pushed", journey_id="Mfa", depth=2)

        captured = capsys.readouterr()
        line = captured.err.strip().splitlines()[-1]
        event = json.loads(line)
        assert event["event"] == "Sub-journey pushed"
        assert event["journey_id"] == "Mfa"
        assert event["level"] == "debug"
        assert "_record" not in event
        assert captured.out == ""

    def test_stdlib_records_share_format(self, capsys: pytest.CaptureFixture[str]) -> None:
        configure_logging(json_output=True, level="INFO")
        logging.getLogger("b2ctrace.stdlib").info("plain stdlib message")

        event = json.loads(capsys.readouterr().err.strip().splitlines()[-1])
        assert event["event"] == "plain stdlib message"

    def test_level_filters(self, capsys: pytest.CaptureFixture[str]) -> None:
        configure_logging(json_output=True, level="WARNING")
        structlog.get_logger("b2ctrace.test").debug("hidden")
        assert "hidden" not in capsys.readouterr().err

    def test_noisy_loggers_quietened(self) -> None:
        configure_logging(level="DEBUG")
        assert logging.getLogger("dynaconf").level == logging.WARNING

    def test_reconfigure_replaces_handler(self) -> None:
        configure_logging(level="INFO")
        configure_logging(json_output=True, level="DEBUG")
        root = logging.getLogger()
        assert len(root.handlers) == 1
        assert root.level == logging.DEBUG

    def test_lowercase_level_accepted(self) -> None:
        configure_logging(level="warning")
        assert logging.getLogger().level == logging.WARNING
