# src/b2ctrace/core/handlers.py
"""Default handler vocabulary of the orchestration engine.

Action and Predicate clips name the engine component that ran. The parser
pattern-matches on these names, so they form a fixed protocol with the
telemetry producer. These are the defaults for HandlerVocabulary in
b2ctrace.core.config; deployments can override any of them.
"""

_NS = "Web.TPEngine.StateMachineHandlers."

ORCHESTRATION_MANAGER = "Web.TPEngine.OrchestrationManager"

# Predicates
SHOULD_STEP_BE_INVOKED = _NS + "ShouldOrchestrationStepBeInvokedHandler"
HOME_REALM_DISCOVERY = _NS + "HomeRealmDiscoveryHandler"
VALIDATE_API_RESPONSE = _NS + "ValidateApiResponseHandler"
CLAIMS_EXCHANGE_SERVICE_CALL = _NS + "IsClaimsExchangeProtocolAServiceCallHandler"
CLAIMS_EXCHANGE_REDIRECTION = _NS + "IsClaimsExchangeProtocolARedirectionHandler"
CLAIMS_EXCHANGE_API = _NS + "IsClaimsExchangeProtocolAnApiHandler"

CLAIMS_EXCHANGE_PREDICATES: tuple[str, ...] = (
    CLAIMS_EXCHANGE_SERVICE_CALL,
    CLAIMS_EXCHANGE_REDIRECTION,
    CLAIMS_EXCHANGE_API,
)

# Actions
INPUT_CLAIMS_TRANSFORMATION = _NS + "InputClaimsTransformationHandler"
OUTPUT_CLAIMS_TRANSFORMATION = _NS + "OutputClaimsTransformationHandler"
PERSISTED_CLAIMS_TRANSFORMATION = _NS + "PersistedClaimsTransformationHandler"

CLAIMS_TRANSFORMATION_HANDLERS: tuple[str, ...] = (
    OUTPUT_CLAIMS_TRANSFORMATION,
    INPUT_CLAIMS_TRANSFORMATION,
    PERSISTED_CLAIMS_TRANSFORMATION,
)

ENQUEUE_NEW_JOURNEY = _NS + "EnqueueNewJourneyHandler"
SUBJOURNEY_DISPATCH = _NS + "SubJourneyDispatchActionHandler"
SUBJOURNEY_TRANSFER = _NS + "SubJourneyTransferActionHandler"
SUBJOURNEY_EXIT = _NS + "SubJourneyExitActionHandler"

SUBJOURNEY_PUSH_HANDLERS: tuple[str, ...] = (
    ENQUEUE_NEW_JOURNEY,
    SUBJOURNEY_DISPATCH,
    SUBJOURNEY_TRANSFER,
)

SELF_ASSERTED_VALIDATION = _NS + "SelfAssertedMessageValidationHandler"
DISPLAY_CONTROL_ACTION_RESPONSE = _NS + "SendDisplayControlActionResponseHandler"

# Journey completion: the step that issues the token to the relying party
SEND_CLAIMS = _NS + "SendClaimsHandler"
SEND_CLAIMS_ACTION = _NS + "SendClaimsActionHandler"
SEND_RP_RESPONSE = _NS + "SendRelyingPartyResponseHandler"
SEND_RESPONSE = _NS + "SendResponseHandler"

STEP_COMPLETION_HANDLERS: tuple[str, ...] = (
    SEND_CLAIMS,
    SEND_CLAIMS_ACTION,
    SEND_RP_RESPONSE,
    SEND_RESPONSE,
)

# Early failures, possibly before any orchestration step ran
INITIATING_MESSAGE_VALIDATION = _NS + "InitiatingMessageValidationHandler"
SEND_ERROR = _NS + "SendErrorHandler"

# Single sign-on
SSO_PARTICIPANT = "Web.TPEngine.SSO.IsSSOSessionParticipantHandler"
SSO_ACTIVATE = "Web.TPEngine.SSO.ActivateSSOSessionHandler"
SSO_RESET = "Web.TPEngine.SSO.ResetSSOSessionHandler"
