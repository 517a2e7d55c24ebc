# src/b2ctrace/trace/flow_tree.py
"""Flow ownership tree builder and navigation helpers.

Structure:
    UserJourney (root)
    ├── Step 1
    │   └── TP: SelfAsserted-Signin
    │       └── CT: CreateDisplayName
    ├── SubJourney: MfaJourney
    │   └── Step 1
    │       └── DC: emailVerification:SendCode
    │           └── TP: AAD-ReadUser
    └── Step 4
        ├── TP: JwtIssuer
        └── SendClaims: JwtIssuer

The builder keeps a cursor (the ancestry path of the current insertion
point). Only push_sub_journey, pop_sub_journey and add_step move or use the
cursor; the add_* helpers attach under an explicit parent node.
"""

from __future__ import annotations

from collections.abc import Iterator
from typing import Any

from b2ctrace.contracts.enums import FlowNodeType
from b2ctrace.contracts.flow_node import (
    ClaimsTransformationFlowData,
    DisplayControlFlowData,
    FlowNode,
    FlowNodeContext,
    HomeRealmDiscoveryFlowData,
    RootFlowData,
    SendClaimsFlowData,
    StepFlowData,
    SubJourneyFlowData,
    TechnicalProfileFlowData,
)
from b2ctrace.contracts.trace import ClaimsTransformationDetail

ROOT_NODE_ID = "root"
DEFAULT_ROOT_NAME = "UserJourney"


def _new_root(name: str = DEFAULT_ROOT_NAME, policy_id: str = "") -> FlowNode:
    return FlowNode(
        id=ROOT_NODE_ID,
        name=name,
        type=FlowNodeType.ROOT,
        triggered_at_step=0,
        last_step=0,
        data=RootFlowData(policy_id=policy_id),
        context=FlowNodeContext(),
    )


class FlowTreeBuilder:
    """Builds a FlowNode hierarchy from structural events."""

    def __init__(self) -> None:
        self._root = _new_root()
        self._path: list[FlowNode] = [self._root]

    @property
    def root(self) -> FlowNode:
        return self._root

    @property
    def current(self) -> FlowNode:
        return self._path[-1]

    def set_root_info(self, name: str, policy_id: str) -> None:
        self._root.name = name
        self._root.data = RootFlowData(policy_id=policy_id)

    # === Cursor operations ===

    def push_sub_journey(
        self,
        journey_id: str,
        name: str | None,
        triggered_at_step: int,
        context: FlowNodeContext,
    ) -> FlowNode:
        """Create a SubJourney under the cursor and move the cursor into it."""
        node = FlowNode(
            id=f"sj-{journey_id}",
            name=name or journey_id,
            type=FlowNodeType.SUB_JOURNEY,
            triggered_at_step=triggered_at_step,
            last_step=triggered_at_step,
            data=SubJourneyFlowData(journey_id=journey_id),
            context=context,
        )
        self.current.children.append(node)
        self._path.append(node)
        return node

    def pop_sub_journey(self) -> FlowNode | None:
        """Move the cursor to its parent. No-op at root."""
        if len(self._path) <= 1:
            return None
        return self._path.pop()

    def add_step(self, data: StepFlowData, context: FlowNodeContext, journey_id: str | None = None) -> FlowNode:
        """Create a Step under the cursor and raise last_step along the ancestry."""
        order = data.step_order
        node = FlowNode(
            id=f"step-{journey_id or ROOT_NODE_ID}-{order}",
            name=f"Step {order}",
            type=FlowNodeType.STEP,
            triggered_at_step=order,
            last_step=order,
            data=data,
            context=context,
        )
        self.current.children.append(node)
        for ancestor in self._path:
            if order > ancestor.last_step:
                ancestor.last_step = order
        return node

    # === Typed children ===

    def _attach(
        self,
        parent: FlowNode,
        node_id: str,
        name: str,
        node_type: FlowNodeType,
        data: Any,
        context: FlowNodeContext | None,
    ) -> FlowNode:
        node = FlowNode(
            id=node_id,
            name=name,
            type=node_type,
            triggered_at_step=parent.triggered_at_step,
            last_step=parent.last_step,
            data=data,
            context=context if context is not None else parent.context,
        )
        parent.children.append(node)
        return node

    def add_technical_profile(
        self,
        parent: FlowNode,
        profile_id: str,
        *,
        provider_type: str = "",
        protocol_type: str = "",
        claims_snapshot: dict[str, str] | None = None,
        context: FlowNodeContext | None = None,
    ) -> FlowNode:
        data = TechnicalProfileFlowData(
            technical_profile_id=profile_id,
            provider_type=provider_type or "Unknown",
            protocol_type=protocol_type,
            claims_snapshot=dict(claims_snapshot) if claims_snapshot is not None else None,
        )
        return self._attach(parent, f"tp-{profile_id}", profile_id, FlowNodeType.TECHNICAL_PROFILE, data, context)

    def add_claims_transformation(
        self,
        parent: FlowNode,
        transformation_id: str,
        detail: ClaimsTransformationDetail | None = None,
        context: FlowNodeContext | None = None,
    ) -> FlowNode:
        if detail is not None:
            data = ClaimsTransformationFlowData(
                transformation_id=transformation_id,
                input_claims=detail.input_claims,
                input_parameters=detail.input_parameters,
                output_claims=detail.output_claims,
            )
        else:
            data = ClaimsTransformationFlowData(transformation_id=transformation_id)
        return self._attach(
            parent, f"ct-{transformation_id}", transformation_id, FlowNodeType.CLAIMS_TRANSFORMATION, data, context
        )

    def add_home_realm_discovery(
        self,
        parent: FlowNode,
        data: HomeRealmDiscoveryFlowData,
        context: FlowNodeContext | None = None,
    ) -> FlowNode:
        return self._attach(
            parent, f"hrd-{parent.id}", "Home Realm Discovery", FlowNodeType.HOME_REALM_DISCOVERY, data, context
        )

    def add_display_control(
        self,
        parent: FlowNode,
        display_control_id: str,
        action: str,
        result_code: str | None = None,
        context: FlowNodeContext | None = None,
    ) -> FlowNode:
        data = DisplayControlFlowData(display_control_id=display_control_id, action=action, result_code=result_code)
        return self._attach(
            parent,
            f"dc-{display_control_id}-{action}",
            f"{display_control_id}:{action}",
            FlowNodeType.DISPLAY_CONTROL,
            data,
            context,
        )

    def add_send_claims(
        self,
        parent: FlowNode,
        profile_id: str,
        protocol: str = "",
        context: FlowNodeContext | None = None,
    ) -> FlowNode:
        data = SendClaimsFlowData(technical_profile_id=profile_id, protocol=protocol)
        return self._attach(parent, f"sc-{profile_id}", f"SendClaims: {profile_id}", FlowNodeType.SEND_CLAIMS, data, context)

    def build(self) -> FlowNode:
        return self._root

    def reset(self) -> None:
        self._root = _new_root()
        self._path = [self._root]


# =============================================================================
# Navigation
# =============================================================================


def iter_nodes(root: FlowNode) -> Iterator[FlowNode]:
    """Pre-order traversal."""
    stack = [root]
    while stack:
        node = stack.pop()
        yield node
        stack.extend(reversed(node.children))


def collect_step_nodes(root: FlowNode) -> list[FlowNode]:
    """All Step nodes in tree (pre-order) order."""
    return [n for n in iter_nodes(root) if n.type == FlowNodeType.STEP]


def find_step_flow_node(root: FlowNode, step_index: int) -> FlowNode | None:
    """Step node whose payload points at trace_steps[step_index]."""
    for node in collect_step_nodes(root):
        if isinstance(node.data, StepFlowData) and node.data.step_index == step_index:
            return node
    return None


def find_node_by_id(root: FlowNode, node_id: str) -> FlowNode | None:
    for node in iter_nodes(root):
        if node.id == node_id:
            return node
    return None


def find_parent_node(root: FlowNode, node_id: str) -> FlowNode | None:
    for node in iter_nodes(root):
        if any(child.id == node_id for child in node.children):
            return node
    return None


def _names_of_type(node: FlowNode, node_type: FlowNodeType) -> list[str]:
    names = [n.name for n in iter_nodes(node) if n.type == node_type and n is not node]
    return list(dict.fromkeys(names))


def get_step_tp_names(step_node: FlowNode) -> list[str]:
    """Technical profile names anywhere under a step node."""
    return _names_of_type(step_node, FlowNodeType.TECHNICAL_PROFILE)


def get_step_ct_names(step_node: FlowNode) -> list[str]:
    """Claims transformation names anywhere under a step node."""
    return _names_of_type(step_node, FlowNodeType.CLAIMS_TRANSFORMATION)


def is_step_interactive(step_node: FlowNode) -> bool:
    """True when the step offered a choice (HRD child or several options)."""
    if any(child.type == FlowNodeType.HOME_REALM_DISCOVERY for child in step_node.children):
        return True
    return isinstance(step_node.data, StepFlowData) and len(step_node.data.selectable_options) > 1


def is_step_final(step_node: FlowNode) -> bool:
    """True when the step sent the claims to the relying party."""
    return isinstance(step_node.data, StepFlowData) and step_node.data.is_final_step


def flatten_tree(root: FlowNode) -> list[dict[str, Any]]:
    """Flat depth-annotated rows for rendering.

    Returns:
        List of dicts with label, node_id, node_type, depth, has_children
    """
    rows: list[dict[str, Any]] = []
    _flatten(root, 0, rows)
    return rows


def _flatten(node: FlowNode, depth: int, result: list[dict[str, Any]]) -> None:
    result.append(
        {
            "label": node.name,
            "node_id": node.id,
            "node_type": str(node.type),
            "depth": depth,
            "has_children": len(node.children) > 0,
        }
    )
    for child in node.children:
        _flatten(child, depth + 1, result)
