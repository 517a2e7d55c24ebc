# src/b2ctrace/trace/parser.py
"""Trace parser state machine.

Consumes the flattened clip sequence and produces the linear trace
(TraceStep list), the execution map, and the flow ownership tree.

Per-clip transitions:
    Headers        -> root journey on first sight; a second or later
                      Event:AUTH is a session boundary
    Predicate      -> remember the predicate name
    Action         -> remember the action name; the orchestration-manager
                      action finalizes the pending step
    HandlerResult  -> merge the statebag delta, then act on the registers
    FatalException -> record the error and emit a synthetic Error step

Structural events (sub-journey push/pop, finalized steps) are journaled
and replayed through FlowTreeBuilder after the last clip, so every step
node is built from its final facts.

Each TraceParser.parse() call owns fresh state; nothing is shared between
invocations.
"""

from __future__ import annotations

import re
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from datetime import datetime
from typing import Any

import structlog

from b2ctrace.contracts.clips import (
    ActionClip,
    FatalExceptionClip,
    HandlerResultClip,
    HandlerResultContent,
    HeadersClip,
    PredicateClip,
    RecordEntry,
    TraceLogInput,
)
from b2ctrace.contracts.enums import EventType, StepErrorKind, StepResult
from b2ctrace.contracts.flow_node import FlowNode, FlowNodeContext, StepFlowData
from b2ctrace.contracts.trace import (
    ClaimsDiff,
    JourneyContext,
    SessionInfo,
    StepError,
    TechnicalProfileDetail,
    TraceParseResult,
    TraceStep,
)
from b2ctrace.core.config import TraceSettings
from b2ctrace.core.keys import EventInstance, RecorderRecordKey, StatebagKey, parse_ctp
from b2ctrace.trace import records
from b2ctrace.trace.diff import compute_claims_diff
from b2ctrace.trace.execution_map import ExecutionMapBuilder
from b2ctrace.trace.flatten import TimestampedClip, filter_trace_logs, flatten_and_sort_clips
from b2ctrace.trace.flow_tree import FlowTreeBuilder
from b2ctrace.trace.journey_stack import JourneyStack
from b2ctrace.trace.ownership import populate_step_children
from b2ctrace.trace.post_processors import (
    PostProcessContext,
    TargetEntitySelection,
    run_post_processors,
    sync_flow_tree,
)
from b2ctrace.trace.statebag import StatebagAccumulator

logger = structlog.get_logger(__name__)

NO_ELIGIBLE_LOGS_ERROR = (
    "No Event:AUTH, Event:API, Event:SELFASSERTED, or Event:ClaimsExchange logs found. "
    "These event types contain core execution data."
)

_COUNTRY_SUFFIX = re.compile(r"_[A-Z]{2}$")

_RESULT_PRIORITY = {StepResult.SKIPPED: 0, StepResult.SUCCESS: 1, StepResult.ERROR: 2}


def extract_journey_name(
    policy_id: str,
    prefixes: Sequence[str] = ("B2C_1A_", "DEV_", "PROD_", "TEST_", "GlobalApp_"),
    strip_country_suffix: bool = True,
) -> str:
    """Derive a display name for the root journey from a policy id.

    Prefixes are stripped in order, case-insensitively; then a trailing
    two-letter country code. Falls back to the policy id if nothing is left.

    Example:
        B2C_1A_DEV_SignUpOrSignIn_DE -> SignUpOrSignIn
    """
    name = policy_id
    for prefix in prefixes:
        if prefix and name.lower().startswith(prefix.lower()):
            name = name[len(prefix) :]
    if strip_country_suffix:
        name = _COUNTRY_SUFFIX.sub("", name)
    return name or policy_id


def _append_unique(target: list[str], values: Sequence[str]) -> None:
    for value in values:
        if value and value not in target:
            target.append(value)


def _ensure_detail(step: TraceStep, profile_id: str) -> TechnicalProfileDetail:
    detail = step.detail_for(profile_id)
    if detail is None:
        detail = TechnicalProfileDetail(id=profile_id)
        step.technical_profile_details.append(detail)
    return detail


def _merge_detail(step: TraceStep, incoming: TechnicalProfileDetail) -> None:
    detail = step.detail_for(incoming.id)
    if detail is None:
        step.technical_profile_details.append(
            TechnicalProfileDetail(
                id=incoming.id,
                provider_type=incoming.provider_type,
                protocol_type=incoming.protocol_type,
                claims_transformations=list(incoming.claims_transformations),
            )
        )
        return
    detail.provider_type = detail.provider_type or incoming.provider_type
    detail.protocol_type = detail.protocol_type or incoming.protocol_type
    _append_unique(detail.claims_transformations, incoming.claims_transformations)


def _raise_result(step: TraceStep, result: StepResult) -> None:
    if _RESULT_PRIORITY[result] > _RESULT_PRIORITY[step.result]:
        step.result = result


# =============================================================================
# Tree Journal
# =============================================================================


@dataclass(frozen=True, slots=True)
class _PushEvent:
    journey_id: str
    name: str
    triggered_at_step: int
    context: FlowNodeContext


@dataclass(frozen=True, slots=True)
class _PopEvent:
    pass


@dataclass(frozen=True, slots=True)
class _StepEvent:
    step_index: int


type _JournalEvent = _PushEvent | _PopEvent | _StepEvent


def _step_context(step: TraceStep) -> FlowNodeContext:
    return FlowNodeContext(
        timestamp=step.timestamp,
        sequence_number=step.sequence_number,
        log_id=step.log_id,
        event_type=str(step.event_type),
        statebag_snapshot=dict(step.statebag_snapshot),
        claims_snapshot=dict(step.claims_snapshot),
    )


def _step_flow_data(step: TraceStep) -> StepFlowData:
    return StepFlowData(
        step_order=step.step_order,
        current_journey_name=step.current_journey_name,
        result=step.result,
        step_index=step.sequence_number,
        duration_ms=step.duration_ms,
        errors=list(step.errors),
        error_message=step.error_message,
        action_handler=step.action_handler,
        ui_settings=step.ui_settings,
        selectable_options=list(step.selectable_options),
        selected_option=step.selected_option,
        backend_api_calls=list(step.backend_api_calls),
        is_final_step=step.is_final_step,
    )


# =============================================================================
# Parse Run
# =============================================================================


class _ParseRun:
    """State of one parse invocation."""

    def __init__(self, settings: TraceSettings) -> None:
        self._settings = settings
        self._handlers = settings.handlers
        self._stack: JourneyStack | None = None
        self._statebag = StatebagAccumulator()
        self._steps: list[TraceStep] = []
        self._execution_map = ExecutionMapBuilder()
        self._errors: list[str] = []
        self._pending: TraceStep | None = None
        self._pending_context: JourneyContext | None = None
        self._current_predicate: str | None = None
        self._current_action: str | None = None
        # (journey context id, step number) -> (step index, emission time)
        self._dedup: dict[tuple[str, int], tuple[int, datetime]] = {}
        self._event_type = EventType.API
        self._main_journey_id = ""
        self._policy_id = ""
        self._sessions: list[SessionInfo] = []
        self._journal: list[_JournalEvent] = []
        self._selections: list[TargetEntitySelection] = []

    # === Entry point ===

    def run(self, logs: Sequence[TraceLogInput]) -> TraceParseResult:
        eligible = filter_trace_logs(logs, self._settings.eligible_event_instances)
        if not eligible:
            return TraceParseResult(
                trace_steps=[],
                execution_map={},
                flow_tree=FlowTreeBuilder().build(),
                main_journey_id="",
                success=False,
                errors=[NO_ELIGIBLE_LOGS_ERROR],
                final_statebag={},
                final_claims={},
            )

        for timestamped in flatten_and_sort_clips(eligible):
            self._process_clip(timestamped)
        self._finalize_pending()

        flow_tree = self._build_flow_tree()

        post_result = run_post_processors(PostProcessContext(trace_steps=self._steps, selections=self._selections))
        if not post_result.success:
            logger.warning("Post-processing incomplete", errors=list(post_result.errors))
        sync_flow_tree(flow_tree, self._steps)

        return TraceParseResult(
            trace_steps=self._steps,
            execution_map=self._execution_map.build(),
            flow_tree=flow_tree,
            main_journey_id=self._main_journey_id,
            success=not self._errors,
            errors=self._errors,
            final_statebag=self._statebag.statebag_snapshot(),
            final_claims=self._statebag.claims_snapshot(),
            sessions=self._sessions,
        )

    def _process_clip(self, tc: TimestampedClip) -> None:
        clip = tc.clip
        if isinstance(clip, HeadersClip):
            self._on_headers(clip, tc)
        elif isinstance(clip, PredicateClip):
            self._current_predicate = clip.name
        elif isinstance(clip, ActionClip):
            self._current_action = clip.name
            if clip.name == self._handlers.orchestration_manager:
                self._finalize_pending()
        elif isinstance(clip, HandlerResultClip):
            self._on_handler_result(clip.content, tc)
        elif isinstance(clip, FatalExceptionClip):
            self._on_fatal_exception(clip, tc)
        # Transition and unknown clips carry nothing the trace needs

    # === Headers and sessions ===

    def _on_headers(self, clip: HeadersClip, tc: TimestampedClip) -> None:
        content = clip.content
        self._event_type = tc.event_type

        if self._stack is None:
            self._policy_id = content.policy_id
            self._main_journey_id = content.policy_id
            name = extract_journey_name(
                content.policy_id,
                self._settings.policy_prefixes,
                self._settings.strip_country_suffix,
            )
            self._stack = JourneyStack.with_root(self._main_journey_id, name, tc.timestamp)

        if content.event_instance != EventInstance.AUTH:
            return
        if self._sessions:
            self._session_boundary(tc)
        self._sessions.append(SessionInfo(session_index=len(self._sessions), start_timestamp=tc.timestamp))

    def _session_boundary(self, tc: TimestampedClip) -> None:
        """Reset running state when authentication restarts under the same correlation id."""
        self._finalize_pending()
        self._statebag.reset()
        if self._stack is not None:
            for _ in self._stack.pop_to_root():
                self._journal.append(_PopEvent())
            self._stack.reset_root_step()
        self._dedup.clear()
        self._current_predicate = None
        self._current_action = None
        logger.debug("Session boundary", session_index=len(self._sessions), log_id=tc.log_id)

    # === Handler results ===

    def _on_handler_result(self, content: HandlerResultContent, tc: TimestampedClip) -> None:
        delta = content.statebag or {}
        entries = content.recorder_record or ()
        self._statebag.merge(delta)

        action = self._current_action
        predicate = self._current_predicate

        if action == self._handlers.orchestration_manager:
            self._open_step(tc)

        pending = self._pending
        if pending is not None:
            self._collect_context(pending, delta, entries, action)

        if predicate is not None:
            self._apply_predicate(predicate, content, delta, entries)

        ctp = records.statebag_value(delta.get(StatebagKey.CTP))
        if ctp:
            self._attach_ctp(ctp)

        if action is not None:
            self._apply_action(action, content, entries, tc)
        elif content.exception is not None:
            self._mark_handler_exception(content)

        self._current_action = None

    def _collect_context(
        self,
        step: TraceStep,
        delta: Mapping[str, Any],
        entries: Sequence[RecordEntry],
        action: str | None,
    ) -> None:
        if action is not None and action != self._handlers.orchestration_manager and step.action_handler is None:
            step.action_handler = action

        call = records.backend_api_call(records.statebag_value(delta.get(StatebagKey.PROT)))
        if call is not None and call not in step.backend_api_calls:
            step.backend_api_calls.append(call)

        if any(e.key == RecorderRecordKey.API_UI_MANAGER_INFO for e in entries):
            ui = records.ui_settings(entries, self._statebag.get(StatebagKey.EID))
            if ui is not None:
                step.ui_settings = ui

        for backend in records.backend_claims_exchanges(entries):
            _append_unique(step.technical_profiles, [backend.id])
            _merge_detail(step, backend)

    def _apply_predicate(
        self,
        predicate: str,
        content: HandlerResultContent,
        delta: Mapping[str, Any],
        entries: Sequence[RecordEntry],
    ) -> None:
        step = self._pending
        handlers = self._handlers

        if predicate == handlers.step_invoke_predicate and step is not None:
            enabled = records.enabled_technical_profiles(entries)
            if len(enabled) > 1:
                _append_unique(step.selectable_options, enabled)
                _append_unique(step.offered_options, enabled)
                step.is_interactive_step = True
            elif enabled:
                _append_unique(step.technical_profiles, enabled)
            if content.predicate_result == "False" and step.result != StepResult.ERROR:
                step.result = StepResult.SKIPPED

        elif predicate == handlers.home_realm_discovery_predicate and step is not None:
            options = records.home_realm_options(entries)
            if options:
                step.selectable_options = list(dict.fromkeys(options))
                _append_unique(step.offered_options, options)
                step.is_interactive_step = True

        elif predicate in handlers.claims_exchange_predicates and step is not None:
            detail = records.initiating_claims_exchange(entries)
            if detail is not None:
                _append_unique(step.technical_profiles, [detail.id])
                _merge_detail(step, detail)
                if step.selectable_options:
                    step.selected_option = detail.id
                step.selectable_options = []

        elif predicate == handlers.sso_participant_predicate and step is not None:
            if content.predicate_result is not None:
                step.sso_session_participant = content.predicate_result == "True"

        elif predicate == handlers.validate_api_response_predicate:
            target = records.statebag_value(delta.get(StatebagKey.TAGE))
            if target:
                position = len(self._steps) if self._pending is not None else len(self._steps) - 1
                self._selections.append(TargetEntitySelection(step_position=position, target_entity=target))

    def _attach_ctp(self, ctp_value: str) -> None:
        """Attach the current technical profile to the step it names."""
        parsed = parse_ctp(ctp_value)
        if parsed is None:
            return
        profile_id, step_number = parsed

        target = self._pending
        if step_number is not None and (target is None or target.step_order != step_number):
            target = self._find_finalized_step(step_number)
            if target is not None:
                logger.debug(
                    "CTP attached to finalized step",
                    technical_profile=profile_id,
                    sequence_number=target.sequence_number,
                )
        if target is None:
            return

        _append_unique(target.technical_profiles, [profile_id])
        if target.selectable_options:
            target.selected_option = profile_id
        target.selectable_options = []
        target.is_interactive_step = False

    def _find_finalized_step(self, step_number: int) -> TraceStep | None:
        current = self._stack.current() if self._stack is not None else None
        if current is None:
            return None
        for step in reversed(self._steps):
            if step.journey_context_id == current.journey_id and step.step_order == step_number:
                return step
        return None

    def _apply_action(
        self,
        action: str,
        content: HandlerResultContent,
        entries: Sequence[RecordEntry],
        tc: TimestampedClip,
    ) -> None:
        handlers = self._handlers

        if action in handlers.claims_transformation_handlers:
            self._record_transformations(entries)
        elif action in handlers.subjourney_push_handlers:
            journey_id = records.sub_journey_id(entries)
            if journey_id:
                self._push_sub_journey(journey_id, tc)
        elif action == handlers.subjourney_exit_handler:
            self._pop_sub_journey(reason="exit handler")
        elif action == handlers.self_asserted_validation_handler:
            self._record_validation(content, entries)
            return
        elif action == handlers.display_control_response_handler:
            self._record_display_control(entries)
        elif action in handlers.step_completion_handlers:
            self._record_completion(action, entries)
        elif action in (handlers.message_validation_handler, handlers.send_error_handler):
            self._record_early_error(action, content, entries, tc)
            return
        elif action == handlers.sso_activate_handler and self._pending is not None:
            self._pending.sso_session_activated = content.result
        elif action == handlers.sso_reset_handler and self._pending is not None:
            self._pending.sso_session_participant = False

        if content.exception is not None:
            self._mark_handler_exception(content)

    def _record_transformations(self, entries: Sequence[RecordEntry]) -> None:
        step = self._pending
        if step is None:
            return
        ids, details, display_controls = records.invoked_components(entries)
        _append_unique(step.claims_transformations, ids)
        known = {d.id for d in step.claims_transformation_details}
        for detail in details:
            if detail.id not in known:
                step.claims_transformation_details.append(detail)
                known.add(detail.id)
        _append_unique(step.display_controls, display_controls)
        step.claims_snapshot = self._statebag.claims_snapshot()

        live_ctp = self._statebag.get(StatebagKey.CTP)
        parsed = parse_ctp(live_ctp) if live_ctp else None
        if parsed is not None and ids:
            _append_unique(_ensure_detail(step, parsed[0]).claims_transformations, ids)

    def _record_validation(self, content: HandlerResultContent, entries: Sequence[RecordEntry]) -> None:
        step = self._pending
        if step is None:
            return
        _append_unique(step.validation_technical_profiles, records.validation_technical_profiles(entries))

        ctp = records.statebag_value((content.statebag or {}).get(StatebagKey.CTP)) or self._statebag.get(
            StatebagKey.CTP
        )
        parsed = parse_ctp(ctp) if ctp else None
        if parsed is not None:
            step.self_asserted_profile = parsed[0]
            _append_unique(step.technical_profiles, [parsed[0]])

        # A rejected form submission fails the step, but as a handled error
        error = records.reported_exception(content.exception, entries)
        if error is not None:
            step.result = StepResult.ERROR
            step.error_message = error.message
            step.error_h_result = error.h_result
            step.errors.append(
                StepError(kind=StepErrorKind.HANDLED, h_result=error.h_result or "", message=error.message)
            )

    def _record_display_control(self, entries: Sequence[RecordEntry]) -> None:
        step = self._pending
        action = records.display_control_action(entries)
        if step is None or action is None:
            return
        if action not in step.display_control_actions:
            step.display_control_actions.append(action)
        _append_unique(step.display_controls, [action.display_control_id])

    def _record_completion(self, action: str, entries: Sequence[RecordEntry]) -> None:
        step = self._pending
        if step is None:
            return
        step.action_handler = action
        step.is_final_step = True

        detail = records.initiating_claims_exchange(entries)
        if detail is None:
            backend = records.backend_claims_exchanges(entries)
            detail = backend[0] if backend else None
        if detail is not None:
            _append_unique(step.technical_profiles, [detail.id])
            _merge_detail(step, detail)
            step.send_claims_profile = detail.id

    def _record_early_error(
        self,
        action: str,
        content: HandlerResultContent,
        entries: Sequence[RecordEntry],
        tc: TimestampedClip,
    ) -> None:
        """Request validation failures and error responses fail a step.

        They can fire before the first orchestration step, so when nothing
        is pending a step is opened at the current context's last step
        number, zero included.
        """
        if action == self._handlers.message_validation_handler and content.result:
            return
        error = records.reported_exception(content.exception, entries)
        if error is None:
            return

        step = self._pending
        if step is None:
            step = self._open_error_step(tc)
            if step is None:
                return
        step.result = StepResult.ERROR
        step.error_message = error.message
        step.error_h_result = error.h_result
        step.action_handler = action.rsplit(".", 1)[-1]
        step.errors.append(StepError(kind=StepErrorKind.UNHANDLED, h_result=error.h_result or "", message=error.message))
        logger.debug("Early error recorded", handler=action, step_order=step.step_order, log_id=tc.log_id)

    def _mark_handler_exception(self, content: HandlerResultContent) -> None:
        step = self._pending
        exception = content.exception
        if step is None or exception is None:
            return
        step.result = StepResult.ERROR
        step.error_message = exception.message
        step.error_h_result = exception.h_result
        step.errors.append(
            StepError(kind=StepErrorKind.UNHANDLED, h_result=exception.h_result or "", message=exception.message)
        )

    # === Steps ===

    def _open_step(self, tc: TimestampedClip) -> None:
        """Open a pending step for the merged ORCH_CS; step zero opens nothing."""
        orch_step = self._statebag.orch_step
        if orch_step is None or orch_step <= 0 or self._stack is None:
            return

        current = self._stack.current()
        if (
            current is not None
            and self._stack.is_in_sub_journey()
            and orch_step > current.last_orch_step + self._settings.subjourney_exit_jump
        ):
            self._pop_sub_journey(reason="step jump")

        context = self._stack.current()
        if context is not None:
            self._start_step(context, orch_step, tc)

    def _open_error_step(self, tc: TimestampedClip) -> TraceStep | None:
        context = self._stack.current() if self._stack is not None else None
        if context is None:
            return None
        return self._start_step(context, context.last_orch_step, tc)

    def _start_step(self, context: JourneyContext, step_order: int, tc: TimestampedClip) -> TraceStep:
        self._pending_context = context
        self._pending = TraceStep(
            sequence_number=-1,
            timestamp=tc.timestamp,
            log_id=tc.log_id,
            event_type=tc.event_type,
            graph_node_id=f"{context.journey_id}-Step{step_order}",
            journey_context_id=context.journey_id,
            current_journey_name=context.journey_name,
            step_order=step_order,
            statebag_snapshot=self._statebag.statebag_snapshot(),
            claims_snapshot=self._statebag.claims_snapshot(),
        )
        return self._pending

    def _finalize_pending(self) -> None:
        step = self._pending
        if step is None:
            return
        self._pending = None
        self._pending_context = None

        step.statebag_snapshot = self._statebag.statebag_snapshot()
        step.claims_snapshot = self._statebag.claims_snapshot()

        # The dedup window is anchored at the key's emission, not its last merge
        key = (step.journey_context_id, step.step_order)
        prior = self._dedup.get(key)
        if prior is not None:
            index, emitted_at = prior
            elapsed_ms = (step.timestamp - emitted_at).total_seconds() * 1000
            if 0 <= elapsed_ms <= self._settings.dedup_window_ms:
                self._merge_into(self._steps[index], step)
                self._advance_context(step.step_order)
                logger.debug("Duplicate step merged", graph_node_id=step.graph_node_id, sequence_number=index)
                return

        self._emit(step)
        self._dedup[key] = (step.sequence_number, step.timestamp)
        self._advance_context(step.step_order)

    def _advance_context(self, step_order: int) -> None:
        # A pending step always belongs to the stack's current context
        if self._stack is not None:
            self._stack.update_orch_step(step_order)

    def _emit(self, step: TraceStep) -> None:
        step.sequence_number = len(self._steps)
        step.technical_profiles = list(dict.fromkeys(step.technical_profiles))
        step.selectable_options = list(dict.fromkeys(step.selectable_options))
        self._steps.append(step)
        self._execution_map.add_step(step.graph_node_id, step.result, step.sequence_number)
        self._journal.append(_StepEvent(step_index=step.sequence_number))
        if self._sessions:
            self._sessions[-1].step_count += 1

    def _merge_into(self, existing: TraceStep, incoming: TraceStep) -> None:
        """Fold a re-delivered step into the step already emitted for its key."""
        _append_unique(existing.technical_profiles, incoming.technical_profiles)
        for detail in incoming.technical_profile_details:
            _merge_detail(existing, detail)
        _append_unique(existing.validation_technical_profiles, incoming.validation_technical_profiles)
        existing.self_asserted_profile = incoming.self_asserted_profile or existing.self_asserted_profile
        _append_unique(existing.selectable_options, incoming.selectable_options)
        _append_unique(existing.offered_options, incoming.offered_options)
        existing.selected_option = incoming.selected_option or existing.selected_option
        existing.is_interactive_step = existing.is_interactive_step or incoming.is_interactive_step
        _append_unique(existing.claims_transformations, incoming.claims_transformations)
        known = {d.id for d in existing.claims_transformation_details}
        existing.claims_transformation_details.extend(
            d for d in incoming.claims_transformation_details if d.id not in known
        )
        _append_unique(existing.display_controls, incoming.display_controls)
        existing.display_control_actions.extend(
            a for a in incoming.display_control_actions if a not in existing.display_control_actions
        )
        existing.errors.extend(incoming.errors)
        if incoming.error_message is not None:
            existing.error_message = incoming.error_message
            existing.error_h_result = incoming.error_h_result
        existing.ui_settings = incoming.ui_settings or existing.ui_settings
        existing.backend_api_calls.extend(c for c in incoming.backend_api_calls if c not in existing.backend_api_calls)
        existing.action_handler = existing.action_handler or incoming.action_handler
        if incoming.sso_session_participant is not None:
            existing.sso_session_participant = incoming.sso_session_participant
        if incoming.sso_session_activated is not None:
            existing.sso_session_activated = incoming.sso_session_activated
        if incoming.is_final_step:
            existing.is_final_step = True
            existing.action_handler = incoming.action_handler
        existing.send_claims_profile = incoming.send_claims_profile or existing.send_claims_profile
        existing.statebag_snapshot = incoming.statebag_snapshot
        existing.claims_snapshot = incoming.claims_snapshot
        _raise_result(existing, incoming.result)
        self._execution_map.update_status(existing.graph_node_id, existing.result)

    # === Fatal exceptions ===

    def _on_fatal_exception(self, clip: FatalExceptionClip, tc: TimestampedClip) -> None:
        message = clip.message
        self._errors.append(message)
        logger.debug("Fatal exception", message=message, log_id=tc.log_id)

        if self._pending is not None:
            self._pending.result = StepResult.ERROR
            self._finalize_pending()

        context = self._stack.current() if self._stack is not None else None
        if context is None:
            return
        h_result = clip.exception.h_result
        synthetic = TraceStep(
            sequence_number=-1,
            timestamp=tc.timestamp,
            log_id=tc.log_id,
            event_type=tc.event_type,
            graph_node_id=f"{context.journey_id}-Error",
            journey_context_id=context.journey_id,
            current_journey_name=context.journey_name,
            step_order=context.last_orch_step,
            result=StepResult.ERROR,
            statebag_snapshot=self._statebag.statebag_snapshot(),
            claims_snapshot=self._statebag.claims_snapshot(),
            error_message=message,
            error_h_result=h_result,
            errors=[StepError(kind=StepErrorKind.UNHANDLED, h_result=h_result or "", message=message)],
        )
        self._emit(synthetic)

    # === Sub-journeys ===

    def _push_sub_journey(self, journey_id: str, tc: TimestampedClip) -> None:
        if self._stack is None:
            return
        # The invoking step belongs to the parent journey
        self._finalize_pending()
        parent = self._stack.current()
        triggered_at = parent.last_orch_step if parent is not None else 0
        self._stack.push(
            JourneyContext(
                journey_id=journey_id,
                journey_name=journey_id,
                last_orch_step=0,
                entry_timestamp=tc.timestamp,
            )
        )
        self._journal.append(
            _PushEvent(
                journey_id=journey_id,
                name=journey_id,
                triggered_at_step=triggered_at,
                context=FlowNodeContext(
                    timestamp=tc.timestamp,
                    sequence_number=len(self._steps),
                    log_id=tc.log_id,
                    event_type=str(tc.event_type),
                    statebag_snapshot=self._statebag.statebag_snapshot(),
                    claims_snapshot=self._statebag.claims_snapshot(),
                ),
            )
        )
        logger.debug(
            "Sub-journey pushed",
            journey_id=journey_id,
            depth=self._stack.depth,
            path=self._stack.display_path(),
        )

    def _pop_sub_journey(self, *, reason: str) -> None:
        if self._stack is None or not self._stack.is_in_sub_journey():
            return
        # Steps of the sub-journey stay inside it
        if self._pending is not None and self._pending_context is self._stack.current():
            self._finalize_pending()
        popped = self._stack.pop()
        if popped is not None:
            self._journal.append(_PopEvent())
            logger.debug("Sub-journey popped", journey_id=popped.journey_id, reason=reason)

    # === Tree assembly ===

    def _build_flow_tree(self) -> FlowNode:
        builder = FlowTreeBuilder()
        root_name = self._stack.root().journey_name if self._stack is not None else self._policy_id
        builder.set_root_info(root_name or "UserJourney", self._policy_id)

        for event in self._journal:
            if isinstance(event, _PushEvent):
                builder.push_sub_journey(event.journey_id, event.name, event.triggered_at_step, event.context)
            elif isinstance(event, _PopEvent):
                builder.pop_sub_journey()
            else:
                step = self._steps[event.step_index]
                context = _step_context(step)
                journey_id = None if step.journey_context_id == self._main_journey_id else step.journey_context_id
                node = builder.add_step(_step_flow_data(step), context, journey_id)
                populate_step_children(builder, node, step, context)
        return builder.build()


# =============================================================================
# Public API
# =============================================================================


class TraceParser:
    """Reconstructs a trace from Journey Recorder logs.

    Example:
        parser = TraceParser()
        result = parser.parse(logs)
        for step in result.trace_steps:
            print(step.graph_node_id, step.result)
    """

    def __init__(self, settings: TraceSettings | None = None) -> None:
        self._settings = settings if settings is not None else TraceSettings()

    @property
    def settings(self) -> TraceSettings:
        return self._settings

    def parse(self, logs: Sequence[TraceLogInput]) -> TraceParseResult:
        """Parse logs into steps, execution map and flow tree.

        Args:
            logs: Log records in any order

        Returns:
            TraceParseResult; success is False when no eligible logs were
            found or any error was recorded
        """
        return _ParseRun(self._settings).run(logs)


def parse_trace(logs: Sequence[TraceLogInput], settings: TraceSettings | None = None) -> TraceParseResult:
    """Parse logs with a fresh TraceParser."""
    return TraceParser(settings).parse(logs)


# =============================================================================
# Query Helpers
# =============================================================================


def get_trace_step_by_sequence(steps: Sequence[TraceStep], sequence_number: int) -> TraceStep | None:
    if 0 <= sequence_number < len(steps) and steps[sequence_number].sequence_number == sequence_number:
        return steps[sequence_number]
    for step in steps:
        if step.sequence_number == sequence_number:
            return step
    return None


def get_trace_steps_for_node(result: TraceParseResult, graph_node_id: str) -> list[TraceStep]:
    """Every visit of a graph node, in visit order."""
    entry = result.execution_map.get(graph_node_id)
    if entry is None:
        return []
    found = (get_trace_step_by_sequence(result.trace_steps, i) for i in entry.step_indices)
    return [step for step in found if step is not None]


def get_claims_diff_between_steps(
    steps: Sequence[TraceStep],
    from_sequence: int,
    to_sequence: int,
) -> ClaimsDiff | None:
    """Claims diff between two steps, None if either does not exist."""
    before = get_trace_step_by_sequence(steps, from_sequence)
    after = get_trace_step_by_sequence(steps, to_sequence)
    if before is None or after is None:
        return None
    return compute_claims_diff(before.claims_snapshot, after.claims_snapshot)


__all__ = [
    "NO_ELIGIBLE_LOGS_ERROR",
    "TraceParser",
    "extract_journey_name",
    "get_claims_diff_between_steps",
    "get_trace_step_by_sequence",
    "get_trace_steps_for_node",
    "parse_trace",
]
