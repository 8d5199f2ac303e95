"""Tests for the input models and analysis configuration."""

import pydantic
import pytest

from process_core.config import AnalysisConfig, DEFAULT_LOW_COHERENCE_THRESHOLD
from process_core.models import (
    NODE_FAMILIES,
    ContainerKind,
    ContainerSpec,
    EdgeKind,
    EdgeSpec,
    EventTrigger,
    NodeFamily,
    NodeKind,
    NodeSpec,
    ProcessModel,
    extract_primary_role,
)


class TestNodeKind:
    def test_every_kind_has_a_family(self):
        for kind in NodeKind:
            assert kind in NODE_FAMILIES
            assert isinstance(kind.family, NodeFamily)

    @pytest.mark.parametrize("raw", ["UserTask", "usertask", "bpmn:UserTask", " bpmn:usertask "])
    def test_parse_accepts_loose_spelling(self, raw):
        assert NodeKind.parse(raw) is NodeKind.USER_TASK

    @pytest.mark.parametrize("raw", ["bpmn:ComplexGateway", "Transaction", "acme:Robot"])
    def test_unmodelled_kinds_parse_to_unknown(self, raw):
        kind = NodeKind.parse(raw)
        assert kind is NodeKind.UNKNOWN
        assert kind.family is NodeFamily.OTHER
        assert not kind.is_assignable
        assert not kind.is_gateway
        assert not kind.is_flow_control

    def test_family_flags(self):
        assert NodeKind.PARALLEL_GATEWAY.is_gateway
        assert NodeKind.BOUNDARY_EVENT.is_flow_control
        assert not NodeKind.SERVICE_TASK.is_flow_control
        assert not NodeKind.DATA_OBJECT.is_assignable
        assert NodeKind.START_EVENT.is_assignable


class TestNodeSpec:
    def test_legacy_fields(self):
        spec = NodeSpec(**{
            "id": "n1",
            "type": "bpmn:UserTask",
            "lane_id": "L1",
            "candidateGroups": ["managers", "staff"],
        })
        assert spec.kind is NodeKind.USER_TASK
        assert spec.container_id == "L1"
        assert spec.candidate_groups == "managers,staff"
        assert spec.declared_role == "managers"

    def test_triggers_accept_event_definition_names(self):
        spec = NodeSpec(id="e1", kind="IntermediateThrowEvent", triggers="bpmn:LinkEventDefinition")
        assert spec.triggers == [EventTrigger.LINK]

    def test_role_precedence(self):
        assert extract_primary_role("Clerk", "alice", "ops") == "Clerk"
        assert extract_primary_role(None, "alice", "ops") == "alice"
        assert extract_primary_role(None, "  ", " ops , finance") == "ops"
        assert extract_primary_role(None, None, None) is None


class TestEdgeSpec:
    def test_legacy_fields(self):
        edge = EdgeSpec(**{"id": "e1", "from": "a", "to": "b", "type": "bpmn:SequenceFlow", "condition": "x > 1"})
        assert edge.source == "a"
        assert edge.target == "b"
        assert edge.kind is EdgeKind.SEQUENCE
        assert edge.has_condition

    def test_bpmn_refs_and_message_flow(self):
        edge = EdgeSpec(**{"id": "m1", "sourceRef": "a", "targetRef": "b", "kind": "MessageFlow"})
        assert (edge.source, edge.target) == ("a", "b")
        assert edge.kind is EdgeKind.MESSAGE
        assert not edge.has_condition


class TestContainerSpec:
    def test_participant_is_a_pool(self):
        spec = ContainerSpec(**{"id": "p1", "type": "bpmn:Participant"})
        assert spec.kind is ContainerKind.POOL

    def test_flow_node_refs(self):
        spec = ContainerSpec(**{"id": "L1", "parentId": "p1", "flowNodeRef": ["a", "b"]})
        assert spec.kind is ContainerKind.LANE
        assert spec.parent_id == "p1"
        assert spec.members == ["a", "b"]


def test_process_model_json_round_trip():
    model = ProcessModel.from_json_dict({
        "id": "p",
        "name": "Orders",
        "nodes": [{"id": "a", "type": "Task"}, {"id": "b", "type": "EndEvent"}],
        "edges": [{"id": "e1", "from": "a", "to": "b"}],
        "containers": [{"id": "pool", "type": "pool"}],
    })
    again = ProcessModel.from_json_dict(model.to_json_dict())
    assert again == model


class TestAnalysisConfig:
    def test_defaults(self):
        config = AnalysisConfig()
        assert config.low_coherence_threshold == DEFAULT_LOW_COHERENCE_THRESHOLD
        assert config.max_branch_depth == 25
        assert config.balance_gateway_kinds == [NodeKind.PARALLEL_GATEWAY, NodeKind.INCLUSIVE_GATEWAY]

    def test_from_env(self):
        config = AnalysisConfig.from_env({
            "PROCESS_CORE_LOW_COHERENCE_THRESHOLD": "80",
            "PROCESS_CORE_HUMAN_LANE_HINTS": "Ops, Desk",
            "PROCESS_CORE_BALANCE_GATEWAY_KINDS": "ParallelGateway",
            "UNRELATED": "ignored",
        })
        assert config.low_coherence_threshold == 80
        assert config.human_lane_hints == ["ops", "desk"]
        assert config.balance_gateway_kinds == [NodeKind.PARALLEL_GATEWAY]
        assert config.voting_passes == 3

    def test_out_of_range_threshold(self):
        with pytest.raises(pydantic.ValidationError):
            AnalysisConfig(low_coherence_threshold=150)

    @pytest.mark.parametrize("kinds", [["Task"], "ParallelGateway,ComplexGateway"])
    def test_balance_kinds_must_be_gateways(self, kinds):
        with pytest.raises(pydantic.ValidationError, match="not a gateway kind"):
            AnalysisConfig(balance_gateway_kinds=kinds)


def test_node_spec_with_unmodelled_kind():
    spec = NodeSpec(id="c", type="bpmn:ComplexGateway")
    assert spec.kind is NodeKind.UNKNOWN
