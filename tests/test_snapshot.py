"""Tests for snapshot building and lane membership."""

import pytest

from process_core.errors import SnapshotError
from process_core.models import ProcessModel
from process_core.snapshot import build_snapshot

from conftest import lane, make_model, make_snapshot, pool


class TestInvariants:
    def test_duplicate_node_id(self):
        with pytest.raises(SnapshotError, match="Duplicate node"):
            make_snapshot([("a", "Task"), ("a", "EndEvent")])

    def test_edge_to_missing_node(self):
        with pytest.raises(SnapshotError, match="non-existent target"):
            make_snapshot([("a", "Task")], [("a", "ghost")])

    def test_lane_without_pool(self):
        with pytest.raises(SnapshotError, match="existing pool"):
            make_snapshot([("a", "Task")], containers=[lane("L1", "Orphan", pool_id="nowhere")])

    def test_lane_nested_in_lane(self):
        containers = [pool(), lane("L1", "Outer"), lane("L2", "Inner", pool_id="L1")]
        with pytest.raises(SnapshotError, match="nested"):
            make_snapshot([("a", "Task")], containers=containers)

    def test_node_in_two_lanes(self):
        with pytest.raises(SnapshotError, match="two lanes"):
            make_snapshot(
                [("a", "Task", {"container_id": "L2"})],
                containers=[pool(), lane("L1", "One", ["a"]), lane("L2", "Two")],
            )

    def test_member_not_a_node(self):
        with pytest.raises(SnapshotError, match="non-existent node"):
            make_snapshot([("a", "Task")], containers=[pool(), lane("L1", "One", ["b"])])

    def test_unknown_container_on_node(self):
        with pytest.raises(SnapshotError, match="non-existent container"):
            make_snapshot([("a", "Task", {"container_id": "L9"})], containers=[pool()])


def test_adjacency_keeps_declared_order_and_skips_message_flows():
    model = ProcessModel.from_json_dict({
        "id": "p",
        "nodes": [{"id": "g", "type": "ExclusiveGateway"}, {"id": "x", "type": "Task"},
                  {"id": "y", "type": "Task"}, {"id": "z", "type": "Task"}],
        "edges": [
            {"id": "e2", "from": "g", "to": "y"},
            {"id": "m1", "from": "g", "to": "z", "type": "MessageFlow"},
            {"id": "e1", "from": "g", "to": "x"},
        ],
    })
    snapshot = build_snapshot(model)
    assert [e.id for e in snapshot.sequence_outgoing("g")] == ["e2", "e1"]
    assert snapshot.node("g").outgoing == ("e2", "m1", "e1")
    assert snapshot.sequence_incoming("z") == []


def test_membership_merges_member_lists_and_container_ids():
    snapshot = make_snapshot(
        [("a", "Task"), ("b", "Task", {"lane_id": "L2"}), ("c", "Task")],
        containers=[pool(), lane("L1", "One", ["a"]), lane("L2", "Two")],
    )
    assert snapshot.lane_of("a") == "L1"
    assert snapshot.lane_of("b") == "L2"
    assert snapshot.lane_of("c") is None
    assert snapshot.container("L2").member_node_ids == ["b"]
    assert snapshot.pool_of("b") == "pool1"


def test_nodes_in_pool_counts_loose_nodes_with_a_single_pool():
    snapshot = make_snapshot(
        [("a", "Task"), ("loose", "Task"), ("doc", "DataObjectReference")],
        containers=[pool(), lane("L1", "One", ["a"]), lane("L2", "Two")],
    )
    assert [n.id for n in snapshot.nodes_in_pool("pool1")] == ["a", "loose"]


def test_nodes_in_pool_ignores_loose_nodes_with_several_pools():
    snapshot = make_snapshot(
        [("a", "Task"), ("loose", "Task")],
        containers=[pool(), pool("pool2", "Other"), lane("L1", "One", ["a"])],
    )
    assert [n.id for n in snapshot.nodes_in_pool("pool1")] == ["a"]
    assert snapshot.nodes_in_pool("pool2") == []


class TestAssignToLane:
    def setup_method(self):
        self.snapshot = make_snapshot(
            [("a", "Task"), ("b", "Task")],
            containers=[pool(), lane("L1", "One", ["a", "b"]), lane("L2", "Two")],
        )

    def test_moves_between_lanes(self):
        previous = self.snapshot.assign_to_lane("a", "L2")
        assert previous == "L1"
        assert self.snapshot.lane_of("a") == "L2"
        assert self.snapshot.container("L1").member_node_ids == ["b"]
        assert self.snapshot.container("L2").member_node_ids == ["a"]

    def test_is_idempotent(self):
        self.snapshot.assign_to_lane("a", "L2")
        self.snapshot.assign_to_lane("a", "L2")
        assert self.snapshot.container("L2").member_node_ids == ["a"]

    def test_rejects_pool_target(self):
        with pytest.raises(SnapshotError):
            self.snapshot.assign_to_lane("a", "pool1")

    def test_rejects_unknown_node(self):
        with pytest.raises(SnapshotError):
            self.snapshot.assign_to_lane("ghost", "L1")

    def test_assignment_is_a_copy(self):
        current = self.snapshot.assignment()
        current["a"] = "L2"
        assert self.snapshot.lane_of("a") == "L1"


def test_snapshots_from_one_model_share_nothing():
    model = make_model(
        [("a", "Task")],
        containers=[pool(), lane("L1", "One", ["a"]), lane("L2", "Two")],
    )
    first = build_snapshot(model)
    second = build_snapshot(model)
    first.assign_to_lane("a", "L2")
    assert second.lane_of("a") == "L1"
    assert model.containers[1].members == ["a"]
