"""Shared builders for process models used across the tests."""

import pytest

from process_core.models import ProcessModel
from process_core.snapshot import build_snapshot


def make_model(nodes, edges=(), containers=(), name="Test Process"):
    """
    Build a ProcessModel from compact tuples.

    nodes: (id, kind) or (id, kind, extra_fields_dict)
    edges: (source, target) or (id, source, target)
    containers: dicts passed straight to ContainerSpec
    """
    node_dicts = []
    for item in nodes:
        node = {"id": item[0], "kind": item[1], "name": item[0]}
        if len(item) > 2:
            node.update(item[2])
        node_dicts.append(node)

    edge_dicts = []
    for index, item in enumerate(edges):
        if len(item) == 3:
            edge_id, source, target = item
        else:
            edge_id = f"f{index + 1}"
            source, target = item
        edge_dicts.append({"id": edge_id, "source": source, "target": target})

    return ProcessModel.from_json_dict({
        "id": "proc1",
        "name": name,
        "nodes": node_dicts,
        "edges": edge_dicts,
        "containers": list(containers),
    })


def make_snapshot(nodes, edges=(), containers=()):
    return build_snapshot(make_model(nodes, edges, containers))


def pool(pool_id="pool1", name="Pool"):
    return {"id": pool_id, "name": name, "kind": "pool"}


def lane(lane_id, name, members=(), pool_id="pool1"):
    return {"id": lane_id, "name": name, "kind": "lane", "parent_id": pool_id, "members": list(members)}


@pytest.fixture
def unbalanced_parallel_model():
    """Parallel split into a, b and c; a and c reach the join, b dead-ends."""
    return make_model(
        nodes=[
            ("start", "StartEvent"),
            ("split", "ParallelGateway"),
            ("a", "Task"),
            ("b", "Task"),
            ("c", "Task"),
            ("join", "ParallelGateway"),
            ("end1", "EndEvent"),
            ("end2", "EndEvent"),
        ],
        edges=[
            ("f0", "start", "split"),
            ("f1", "split", "a"),
            ("f2", "split", "b"),
            ("f3", "split", "c"),
            ("f4", "a", "join"),
            ("f5", "c", "join"),
            ("f6", "join", "end1"),
            ("f7", "b", "end2"),
        ],
    )


@pytest.fixture
def banded_model():
    """
    Chain n0 -> n10 across two lanes in runs of three:
    10 sequence flows, 7 within a lane, 3 crossing.
    """
    node_ids = [f"n{i}" for i in range(11)]
    lane_a = ["n0", "n1", "n2", "n6", "n7", "n8"]
    lane_b = ["n3", "n4", "n5", "n9", "n10"]
    return make_model(
        nodes=[(nid, "Task") for nid in node_ids],
        edges=[(node_ids[i], node_ids[i + 1]) for i in range(10)],
        containers=[pool(), lane("L1", "Alpha", lane_a), lane("L2", "Beta", lane_b)],
    )


@pytest.fixture
def two_lane_model():
    """Support/Engineering pool with a role on one task and nothing else assigned."""
    return make_model(
        nodes=[
            ("start", "StartEvent"),
            ("triage", "UserTask", {"assignee": "Support"}),
            ("fix", "Task"),
            ("gw", "ExclusiveGateway"),
            ("end", "EndEvent"),
        ],
        edges=[
            ("start", "triage"),
            ("triage", "gw"),
            ("gw", "fix"),
            ("fix", "end"),
        ],
        containers=[
            pool(),
            lane("L1", "Support"),
            lane("L2", "Engineering"),
        ],
    )
