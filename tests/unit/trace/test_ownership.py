# tests/unit/trace/test_ownership.py
"""Tests for nesting profiles, transformations and controls under a step."""

from b2ctrace.contracts.enums import FlowNodeType
from b2ctrace.contracts.flow_node import FlowNode, FlowNodeContext, HomeRealmDiscoveryFlowData
from b2ctrace.contracts.trace import (
    ClaimsTransformationDetail,
    DisplayControlAction,
    DisplayControlTechnicalProfile,
    TechnicalProfileDetail,
    TraceStep,
)
from b2ctrace.trace.flow_tree import FlowTreeBuilder
from b2ctrace.trace.ownership import populate_step_children
from tests.fixtures.steps import make_step, make_step_node


def _assemble(step: TraceStep) -> FlowNode:
    builder = FlowTreeBuilder()
    node = make_step_node(builder, step)
    populate_step_children(builder, node, step, FlowNodeContext())
    return node


def _child_ids(node: FlowNode) -> list[str]:
    return [child.id for child in node.children]


def _child(node: FlowNode, node_id: str) -> FlowNode:
    return next(child for child in node.children if child.id == node_id)


class TestTransformations:
    """Claims transformation placement."""

    def test_single_profile_owns_all_transformations(self) -> None:
        step = make_step(technical_profiles=["SA-Signin"], claims_transformations=["CT-Email", "CT-Name"])
        node = _assemble(step)

        assert _child_ids(node) == ["tp-SA-Signin"]
        assert _child_ids(_child(node, "tp-SA-Signin")) == ["ct-CT-Email", "ct-CT-Name"]

    def test_declared_transformation_follows_its_profile(self) -> None:
        step = make_step(
            technical_profiles=["AAD-Read", "REST-Check"],
            technical_profile_details=[TechnicalProfileDetail(id="REST-Check", claims_transformations=["CT-Email"])],
            claims_transformations=["CT-Email", "CT-Orphan"],
        )
        node = _assemble(step)

        assert _child_ids(node) == ["tp-AAD-Read", "tp-REST-Check", "ct-CT-Orphan"]
        assert _child_ids(_child(node, "tp-REST-Check")) == ["ct-CT-Email"]
        assert _child(node, "tp-AAD-Read").children == []

    def test_transformation_detail_carried(self) -> None:
        detail = ClaimsTransformationDetail(id="CT-Email")
        step = make_step(
            technical_profiles=["SA-Signin"],
            claims_transformations=["CT-Email"],
            claims_transformation_details=[detail],
        )
        ct = _assemble(step).children[0].children[0]
        assert ct.data.transformation_id == "CT-Email"  # type: ignore[union-attr]

    def test_no_profiles_keeps_transformations_at_step(self) -> None:
        node = _assemble(make_step(claims_transformations=["CT-Email"]))
        assert _child_ids(node) == ["ct-CT-Email"]


class TestSelfAsserted:
    """Validation profiles nest under the self-asserted profile."""

    def test_validation_under_self_asserted(self) -> None:
        step = make_step(
            technical_profiles=["SA-Signin", "AAD-Read"],
            self_asserted_profile="SA-Signin",
            validation_technical_profiles=["AAD-Read"],
        )
        node = _assemble(step)

        assert _child_ids(node) == ["tp-SA-Signin"]
        assert _child_ids(_child(node, "tp-SA-Signin")) == ["tp-AAD-Read"]

    def test_validation_without_self_asserted_at_step_level(self) -> None:
        node = _assemble(make_step(validation_technical_profiles=["AAD-Read"]))
        assert _child_ids(node) == ["tp-AAD-Read"]


class TestHomeRealmDiscovery:
    """Offered options nest under a HomeRealmDiscovery node."""

    def test_options_under_hrd_node(self) -> None:
        step = make_step(
            technical_profiles=["Google"],
            offered_options=["Google", "Facebook"],
            selected_option="Google",
            is_interactive_step=True,
        )
        node = _assemble(step)

        assert _child_ids(node) == ["hrd-step-root-1"]
        hrd = node.children[0]
        assert hrd.type == FlowNodeType.HOME_REALM_DISCOVERY
        assert _child_ids(hrd) == ["tp-Google", "tp-Facebook"]
        assert isinstance(hrd.data, HomeRealmDiscoveryFlowData)
        assert hrd.data.selected_option == "Google"

    def test_selected_option_owns_transformations(self) -> None:
        step = make_step(
            technical_profiles=["Google"],
            offered_options=["Google", "Facebook"],
            claims_transformations=["CT-Name"],
        )
        hrd = _assemble(step).children[0]
        assert _child_ids(_child(hrd, "tp-Google")) == ["ct-CT-Name"]
        assert _child(hrd, "tp-Facebook").children == []

    def test_open_selectable_options(self) -> None:
        node = _assemble(make_step(selectable_options=["Google", "Facebook"], offered_options=["Google"]))
        assert _child_ids(node.children[0]) == ["tp-Google", "tp-Facebook"]


class TestDisplayControls:
    """Display controls own the profiles they invoked."""

    def test_display_control_profiles_and_transformations(self) -> None:
        action = DisplayControlAction(
            display_control_id="emailVerification",
            action="SendCode",
            result_code="200",
            technical_profiles=(
                DisplayControlTechnicalProfile(
                    technical_profile_id="AAD-Read",
                    claims_transformations=(ClaimsTransformationDetail(id="CT-Email"),),
                ),
            ),
        )
        step = make_step(
            technical_profiles=["SA-Signin", "AAD-Read"],
            self_asserted_profile="SA-Signin",
            claims_transformations=["CT-Email"],
            display_control_actions=[action, action],
        )
        node = _assemble(step)

        assert _child_ids(node) == ["tp-SA-Signin", "dc-emailVerification-SendCode"]
        dc = _child(node, "dc-emailVerification-SendCode")
        assert _child_ids(dc) == ["tp-AAD-Read"]
        assert _child_ids(dc.children[0]) == ["ct-CT-Email"]
        assert _child(node, "tp-SA-Signin").children == []


class TestDeduplication:
    """Repeated ids appear once under a step."""

    def test_repeated_ids(self) -> None:
        step = make_step(
            technical_profiles=["AAD-Read", "AAD-Read"],
            validation_technical_profiles=["AAD-Read"],
            claims_transformations=["CT-Email", "CT-Email"],
        )
        node = _assemble(step)
        assert _child_ids(node) == ["tp-AAD-Read"]
        assert _child_ids(node.children[0]) == ["ct-CT-Email"]


class TestSendClaims:
    """The final step's relying-party profile."""

    def test_send_claims_node_follows_profile(self) -> None:
        step = make_step(
            4,
            technical_profiles=["JwtIssuer"],
            technical_profile_details=[TechnicalProfileDetail(id="JwtIssuer", protocol_type="OpenIdConnect")],
            send_claims_profile="JwtIssuer",
            is_final_step=True,
        )
        node = _assemble(step)

        assert _child_ids(node) == ["tp-JwtIssuer", "sc-JwtIssuer"]
        send_claims = _child(node, "sc-JwtIssuer")
        assert send_claims.type == FlowNodeType.SEND_CLAIMS
        assert send_claims.data.protocol == "OpenIdConnect"  # type: ignore[union-attr]

    def test_profile_added_when_not_listed(self) -> None:
        node = _assemble(make_step(4, send_claims_profile="JwtIssuer", is_final_step=True))
        assert _child_ids(node) == ["tp-JwtIssuer", "sc-JwtIssuer"]
