# src/b2ctrace/trace/ownership.py
"""Ownership nesting of profiles, transformations and controls under a step.

Rules:
- A technical profile that is the only profile on a step owns every claims
  transformation on that step.
- With several profiles, a transformation nests under the first profile
  whose declared transformation list contains it, otherwise it stays at
  step level.
- Validation profiles nest under the step's self-asserted profile.
- Profiles invoked by a display control nest under that control's node.
- For a step that offered options, the selected option is a child of the
  HomeRealmDiscovery node with its own children; the other options are
  leaf siblings. Offered options never also appear at step level.
- The final step gets a step-level SendClaims node for the profile that
  issued the claims.

Every profile, transformation and display control appears at most once
under a step.
"""

from __future__ import annotations

from b2ctrace.contracts.flow_node import FlowNode, FlowNodeContext, HomeRealmDiscoveryFlowData
from b2ctrace.contracts.trace import ClaimsTransformationDetail, TraceStep
from b2ctrace.trace.flow_tree import FlowTreeBuilder


class _StepAssembler:
    """Attaches the children of one step node."""

    def __init__(self, builder: FlowTreeBuilder, step_node: FlowNode, step: TraceStep, context: FlowNodeContext) -> None:
        self._builder = builder
        self._step_node = step_node
        self._step = step
        self._context = context
        self._tp_nodes: dict[str, FlowNode] = {}
        self._placed_cts: set[str] = set()
        self._placed_dcs: set[tuple[str, str]] = set()
        self._ct_details: dict[str, ClaimsTransformationDetail] = {}
        for detail in step.claims_transformation_details:
            self._ct_details.setdefault(detail.id, detail)

    def _add_tp(self, parent: FlowNode, profile_id: str) -> FlowNode:
        existing = self._tp_nodes.get(profile_id)
        if existing is not None:
            return existing
        detail = self._step.detail_for(profile_id)
        node = self._builder.add_technical_profile(
            parent,
            profile_id,
            provider_type=detail.provider_type if detail else "",
            protocol_type=detail.protocol_type if detail else "",
            claims_snapshot=self._step.claims_snapshot,
            context=self._context,
        )
        self._tp_nodes[profile_id] = node
        return node

    def _add_ct(self, parent: FlowNode, transformation_id: str, detail: ClaimsTransformationDetail | None = None) -> None:
        if transformation_id in self._placed_cts:
            return
        self._placed_cts.add(transformation_id)
        self._builder.add_claims_transformation(
            parent,
            transformation_id,
            detail if detail is not None else self._ct_details.get(transformation_id),
            self._context,
        )

    def assemble(self) -> None:
        step = self._step

        dc_tp_ids = {tp.technical_profile_id for a in step.display_control_actions for tp in a.technical_profiles}
        options = list(dict.fromkeys([*step.offered_options, *step.selectable_options]))
        has_self_asserted = step.self_asserted_profile is not None

        excluded = set(dc_tp_ids) | set(options)
        if has_self_asserted:
            excluded |= set(step.validation_technical_profiles)

        # Step-level profiles
        for profile_id in dict.fromkeys(step.technical_profiles):
            if profile_id not in excluded:
                self._add_tp(self._step_node, profile_id)
        if step.self_asserted_profile is not None and step.self_asserted_profile not in excluded:
            self._add_tp(self._step_node, step.self_asserted_profile)

        # Home realm discovery
        if options:
            hrd = self._builder.add_home_realm_discovery(
                self._step_node,
                HomeRealmDiscoveryFlowData(
                    selectable_options=list(options),
                    selected_option=step.selected_option,
                    ui_settings=step.ui_settings,
                ),
                self._context,
            )
            for option in options:
                if option in dc_tp_ids:
                    continue
                self._add_tp(hrd, option)

        # Validation profiles
        validation_parent = self._step_node
        if step.self_asserted_profile is not None:
            validation_parent = self._tp_nodes.get(step.self_asserted_profile, self._step_node)
        for profile_id in dict.fromkeys(step.validation_technical_profiles):
            if profile_id not in dc_tp_ids:
                self._add_tp(validation_parent, profile_id)

        if step.send_claims_profile is not None:
            self._assemble_send_claims(step.send_claims_profile)

        # Display controls claim their own profiles and transformations
        self._assemble_display_controls(dc_tp_ids)

        self._assemble_transformations()

    def _assemble_send_claims(self, profile_id: str) -> None:
        self._add_tp(self._step_node, profile_id)
        detail = self._step.detail_for(profile_id)
        self._builder.add_send_claims(self._step_node, profile_id, detail.protocol_type if detail else "", self._context)

    def _assemble_display_controls(self, dc_tp_ids: set[str]) -> None:
        for action in self._step.display_control_actions:
            key = (action.display_control_id, action.action)
            if key in self._placed_dcs:
                continue
            self._placed_dcs.add(key)
            dc_node = self._builder.add_display_control(
                self._step_node, action.display_control_id, action.action, action.result_code, self._context
            )
            for tp in action.technical_profiles:
                if tp.technical_profile_id in self._tp_nodes:
                    continue
                tp_node = self._add_tp(dc_node, tp.technical_profile_id)
                for detail in tp.claims_transformations:
                    self._add_ct(tp_node, detail.id, detail)

    def _assemble_transformations(self) -> None:
        step = self._step
        transformation_ids = [ct for ct in dict.fromkeys(step.claims_transformations) if ct not in self._placed_cts]
        if not transformation_ids:
            return

        profiles = list(dict.fromkeys(step.technical_profiles))
        if len(profiles) == 1 and profiles[0] in self._tp_nodes:
            owner = self._tp_nodes[profiles[0]]
            for ct in transformation_ids:
                self._add_ct(owner, ct)
            return

        for ct in transformation_ids:
            parent = self._step_node
            for profile_id in [*profiles, *step.validation_technical_profiles]:
                detail = step.detail_for(profile_id)
                if detail is not None and ct in detail.claims_transformations and profile_id in self._tp_nodes:
                    parent = self._tp_nodes[profile_id]
                    break
            self._add_ct(parent, ct)


def populate_step_children(
    builder: FlowTreeBuilder,
    step_node: FlowNode,
    step: TraceStep,
    context: FlowNodeContext,
) -> None:
    """Attach TP/CT/HRD/DC children to a freshly added step node."""
    _StepAssembler(builder, step_node, step, context).assemble()
