"""Tests for the HTTP API."""

import pytest
from fastapi.testclient import TestClient

from process_core.api import app

from conftest import lane, make_model, pool


@pytest.fixture
def client():
    return TestClient(app)


def test_health(client):
    response = client.get("/api/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_diagnostics(client, unbalanced_parallel_model):
    response = client.post("/api/diagnostics", json={"model": unbalanced_parallel_model.to_json_dict()})
    assert response.status_code == 200
    data = response.json()
    assert data["summary"]["errors"] == 1
    assert data["issues"][0]["code"] == "unbalanced-split"
    assert data["issues"][0]["node_ids"] == ["split", "b"]


def test_diagnostics_for_one_split(client, unbalanced_parallel_model):
    model = unbalanced_parallel_model.to_json_dict()
    response = client.post("/api/diagnostics", json={"model": model, "split_id": "join"})
    assert response.json()["issues"] == []

    response = client.post("/api/diagnostics", json={"model": model, "split_id": "ghost"})
    assert response.status_code == 404


def test_diagnostics_accepts_bpmn_field_names(client):
    model = {
        "id": "p",
        "nodes": [{"id": "s", "type": "bpmn:ParallelGateway"}, {"id": "a", "type": "Task"},
                  {"id": "b", "type": "Task"}, {"id": "j", "type": "ParallelGateway"},
                  {"id": "e", "type": "EndEvent"}],
        "edges": [{"id": "1", "sourceRef": "s", "targetRef": "a"},
                  {"id": "2", "sourceRef": "s", "targetRef": "b"},
                  {"id": "3", "sourceRef": "a", "targetRef": "j"},
                  {"id": "4", "sourceRef": "j", "targetRef": "e"}],
    }
    response = client.post("/api/diagnostics", json={"model": model})
    assert response.status_code == 200
    assert response.json()["summary"]["by_code"] == {"unbalanced-split": 1}


def test_invalid_snapshot_is_422(client):
    model = make_model([("a", "Task")], [("a", "ghost")]).to_json_dict()
    response = client.post("/api/diagnostics", json={"model": model})
    assert response.status_code == 422
    assert "ghost" in response.json()["detail"]


def test_malformed_model_is_422(client):
    model = {"nodes": [{"id": "a"}], "edges": [{"id": "e1", "source": "a"}]}
    response = client.post("/api/diagnostics", json={"model": model})
    assert response.status_code == 422


def test_unmodelled_kind_is_accepted(client):
    model = make_model(
        [("a", "Task"), ("b", "Task"), ("cx", "bpmn:ComplexGateway")],
        [("a", "cx"), ("b", "cx")],
    ).to_json_dict()
    response = client.post("/api/diagnostics", json={"model": model})
    assert response.status_code == 200
    assert response.json()["summary"]["by_code"] == {"implicit-merge": 1}


def test_classify(client, two_lane_model):
    response = client.post("/api/lanes/classify", json={"model": two_lane_model.to_json_dict()})
    assert response.status_code == 200
    data = response.json()
    assert data["assignment"]["triage"] == "L1"
    assert data["phases"]["triage"] == "role"
    assert data["coherence"]["coherence_score"] == 100


def test_score(client, banded_model):
    response = client.post("/api/lanes/score", json={"model": banded_model.to_json_dict()})
    assert response.status_code == 200
    assert response.json()["coherence_score"] == 70


def test_score_unknown_pool(client, banded_model):
    response = client.post("/api/lanes/score", json={"model": banded_model.to_json_dict(), "pool_id": "L1"})
    assert response.status_code == 404


def test_redistribute_dry_run(client, two_lane_model):
    response = client.post("/api/lanes/redistribute", json={
        "model": two_lane_model.to_json_dict(),
        "dry_run": True,
    })
    assert response.status_code == 200
    data = response.json()
    assert data["dry_run"] is True
    assert data["moved_count"] == 5
    assert "lanes" not in data


def test_redistribute_apply_returns_lanes(client, two_lane_model):
    response = client.post("/api/lanes/redistribute", json={"model": two_lane_model.to_json_dict()})
    data = response.json()
    assert data["lanes"] == {"L1": ["start", "triage", "fix", "gw", "end"], "L2": []}
    assert data["reposition_due"] is True
    assert data["empty_lane_ids"] == ["L2"]


def test_redistribute_validate(client, banded_model):
    response = client.post("/api/lanes/redistribute", json={
        "model": banded_model.to_json_dict(),
        "validate": True,
    })
    data = response.json()
    assert data["optimized"] is False
    assert data["strategy"] == "minimize-crossings"


def test_redistribute_single_lane_is_400(client):
    model = make_model([("t", "Task")], containers=[pool(), lane("L1", "Only", ["t"])]).to_json_dict()
    response = client.post("/api/lanes/redistribute", json={"model": model, "pool_id": "pool1"})
    assert response.status_code == 400
    assert "at least 2 lanes" in response.json()["detail"]


def test_redistribute_manual_into_pool_is_400(client, two_lane_model):
    response = client.post("/api/lanes/redistribute", json={
        "model": two_lane_model.to_json_dict(),
        "strategy": "manual",
        "lane_id": "pool1",
        "node_ids": ["fix"],
    })
    assert response.status_code == 400
