# src/b2ctrace/core/config.py
"""
Configuration schema and loading for b2ctrace.

Uses Pydantic for validation and Dynaconf for multi-source loading.
Settings are frozen (immutable) after construction. Every handler name the
parser pattern-matches on lives here, so a deployment whose engine emits
different component names can override them without code changes.
"""

from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, Field, field_validator, model_validator

from b2ctrace.core import handlers
from b2ctrace.core.keys import SUPPORTED_EVENT_INSTANCES


class HandlerVocabulary(BaseModel):
    """Well-known Action/Predicate component names.

    Example YAML:
        handlers:
          orchestration_manager: "Web.TPEngine.OrchestrationManager"
          claims_exchange_predicates:
            - "Web.TPEngine.StateMachineHandlers.IsClaimsExchangeProtocolARedirectionHandler"
    """

    model_config = {"frozen": True}

    orchestration_manager: str = Field(
        default=handlers.ORCHESTRATION_MANAGER,
        description="Action that marks an orchestration step boundary",
    )
    step_invoke_predicate: str = Field(
        default=handlers.SHOULD_STEP_BE_INVOKED,
        description="Predicate listing the technical profiles enabled for a step",
    )
    home_realm_discovery_predicate: str = Field(
        default=handlers.HOME_REALM_DISCOVERY,
        description="Predicate listing identity-provider choices",
    )
    validate_api_response_predicate: str = Field(
        default=handlers.VALIDATE_API_RESPONSE,
        description="Predicate whose TAGE statebag value names the selected option",
    )
    claims_exchange_predicates: tuple[str, ...] = Field(
        default=handlers.CLAIMS_EXCHANGE_PREDICATES,
        description="Predicates that report the actually-triggered technical profile",
    )
    claims_transformation_handlers: tuple[str, ...] = Field(
        default=handlers.CLAIMS_TRANSFORMATION_HANDLERS,
        description="Actions whose results carry claims transformation details",
    )
    subjourney_push_handlers: tuple[str, ...] = Field(
        default=handlers.SUBJOURNEY_PUSH_HANDLERS,
        description="Actions that enter a sub-journey (enqueue, dispatch, transfer)",
    )
    subjourney_exit_handler: str = Field(
        default=handlers.SUBJOURNEY_EXIT,
        description="Action that returns from a sub-journey",
    )
    self_asserted_validation_handler: str = Field(
        default=handlers.SELF_ASSERTED_VALIDATION,
        description="Action validating a submitted self-asserted form",
    )
    display_control_response_handler: str = Field(
        default=handlers.DISPLAY_CONTROL_ACTION_RESPONSE,
        description="Action reporting a display-control action and its profiles",
    )
    step_completion_handlers: tuple[str, ...] = Field(
        default=handlers.STEP_COMPLETION_HANDLERS,
        description="Actions that send claims to the relying party and end the journey",
    )
    message_validation_handler: str = Field(
        default=handlers.INITIATING_MESSAGE_VALIDATION,
        description="Action validating the incoming request; Result false is an error",
    )
    send_error_handler: str = Field(
        default=handlers.SEND_ERROR,
        description="Action sending an error response to the relying party",
    )
    sso_participant_predicate: str = Field(
        default=handlers.SSO_PARTICIPANT,
        description="Predicate reporting whether an SSO session can be used",
    )
    sso_activate_handler: str = Field(
        default=handlers.SSO_ACTIVATE,
        description="Action establishing an SSO session",
    )
    sso_reset_handler: str = Field(
        default=handlers.SSO_RESET,
        description="Action discarding the SSO session",
    )

    @model_validator(mode="after")
    def validate_names_not_empty(self) -> "HandlerVocabulary":
        """Every configured handler name must be a non-empty string."""
        for name, value in self:
            names = value if isinstance(value, tuple) else (value,)
            if any(not n.strip() for n in names):
                raise ValueError(f"handler name for '{name}' cannot be empty")
        return self


class LoggingSettings(BaseModel):
    """Logging output configuration."""

    model_config = {"frozen": True}

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO",
        description="Root log level",
    )
    json_output: bool = Field(
        default=False,
        description="Emit JSON log lines instead of console output",
    )

    @field_validator("level", mode="before")
    @classmethod
    def normalize_level(cls, v: Any) -> Any:
        if isinstance(v, str):
            return v.upper()
        return v


class TraceSettings(BaseModel):
    """Top-level settings for trace reconstruction.

    Example YAML:
        subjourney_exit_jump: 2
        dedup_window_ms: 1000
        logging:
          level: DEBUG
    """

    model_config = {"frozen": True}

    handlers: HandlerVocabulary = Field(
        default_factory=HandlerVocabulary,
        description="Handler names the parser matches against",
    )
    eligible_event_instances: tuple[str, ...] = Field(
        default=SUPPORTED_EVENT_INSTANCES,
        description="Headers.EventInstance values whose logs are parsed",
    )
    subjourney_exit_jump: int = Field(
        default=2,
        ge=0,
        description="Pop a sub-journey when ORCH_CS exceeds lastOrchStep by more than this",
    )
    dedup_window_ms: int = Field(
        default=1000,
        ge=0,
        description="Repeats of a step key within this window merge instead of counting as a revisit",
    )
    policy_prefixes: tuple[str, ...] = Field(
        default=("B2C_1A_", "DEV_", "PROD_", "TEST_", "GlobalApp_"),
        description="Prefixes stripped (in order, case-insensitive) from the root journey display name",
    )
    strip_country_suffix: bool = Field(
        default=True,
        description="Strip a trailing two-letter country code (e.g. _DE) from the root journey name",
    )
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    @field_validator("eligible_event_instances")
    @classmethod
    def validate_event_instances(cls, v: tuple[str, ...]) -> tuple[str, ...]:
        """At least one instance, each in "Event:<NAME>" form."""
        if not v:
            raise ValueError("eligible_event_instances cannot be empty")
        for instance in v:
            if not instance.startswith("Event:") or instance == "Event:":
                raise ValueError(f"'{instance}' is not an event instance (expected 'Event:<NAME>')")
        return v


def _lower_keys(value: Any) -> Any:
    if isinstance(value, dict):
        return {str(k).lower(): _lower_keys(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_lower_keys(v) for v in value]
    return value


def load_settings(config_path: Path | None = None) -> TraceSettings:
    """Load settings from YAML file with environment variable overrides.

    Uses Dynaconf for multi-source loading with precedence:
    1. Environment variables (B2CTRACE_*) - highest priority
    2. Config file - if given
    3. Defaults from Pydantic schema - lowest priority

    Environment variable format: B2CTRACE_LOGGING__LEVEL for nested keys.

    Args:
        config_path: Path to YAML configuration file, or None for env/defaults only

    Returns:
        Validated TraceSettings instance

    Raises:
        ValidationError: If configuration fails Pydantic validation
        FileNotFoundError: If config file doesn't exist
    """
    from dynaconf import Dynaconf

    # Dynaconf silently accepts missing files
    if config_path is not None and not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    dynaconf_settings = Dynaconf(
        envvar_prefix="B2CTRACE",
        settings_files=[str(config_path)] if config_path is not None else [],
        environments=False,
        load_dotenv=False,
        merge_enabled=True,
    )

    internal_keys = {"LOAD_DOTENV", "ENVIRONMENTS", "SETTINGS_FILES"}
    raw_config = {k: v for k, v in dynaconf_settings.as_dict().items() if k not in internal_keys}

    return TraceSettings(**_lower_keys(raw_config))
