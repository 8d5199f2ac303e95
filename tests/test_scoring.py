"""Tests for the coherence scorer."""

import pytest

from process_core.issues import IssueCode, IssueSeverity
from process_core.scoring import coherence_score, score_assignment
from process_core.snapshot import build_snapshot

from conftest import lane, make_snapshot, pool


@pytest.mark.parametrize("intra, cross, expected", [
    (0, 0, 100),
    (7, 3, 70),
    (5, 3, 63),
    (1, 2, 33),
    (0, 4, 0),
    (4, 0, 100),
])
def test_coherence_score(intra, cross, expected):
    assert coherence_score(intra, cross) == expected


def test_banded_chain_scores_seventy(banded_model):
    snapshot = build_snapshot(banded_model)
    report = score_assignment(snapshot)

    assert report.coherence_score == 70
    assert report.intra_lane_flows == 7
    assert report.cross_lane_flows == 3
    assert report.crossing_edge_ids == ["f3", "f6", "f9"]
    assert report.lane_counts == {"L1": 6, "L2": 5}
    # 70 meets the default threshold
    assert report.issues == []


def test_no_sequence_flows_scores_one_hundred():
    snapshot = make_snapshot(
        [("a", "Task"), ("b", "Task")],
        containers=[pool(), lane("L1", "One", ["a"]), lane("L2", "Two", ["b"])],
    )
    report = score_assignment(snapshot)
    assert report.coherence_score == 100
    assert report.total_flows == 0
    assert not any(i.code is IssueCode.LOW_COHERENCE for i in report.issues)


def test_zigzag_and_low_coherence():
    snapshot = make_snapshot(
        [("a", "Task"), ("b", "Task"), ("c", "Task"), ("d", "Task")],
        [("a", "b"), ("b", "c"), ("c", "d")],
        [pool(), lane("L1", "Sales", ["a", "c", "d"]), lane("L2", "Billing", ["b"])],
    )
    report = score_assignment(snapshot)
    codes = [i.code for i in report.issues]

    assert report.coherence_score == 33
    assert codes == [IssueCode.ZIGZAG_FLOW, IssueCode.LOW_COHERENCE, IssueCode.SINGLE_ELEMENT_LANE]
    zigzag = report.issues[0]
    assert zigzag.node_ids == ["a", "b", "c"]
    assert zigzag.edge_ids == ["f1", "f2"]
    assert "Sales" in zigzag.message and "Billing" in zigzag.message
    assert report.issues[2].severity is IssueSeverity.INFO
    assert report.issues[2].node_ids == ["b"]
    assert {i.code for i in report.actionable_issues} == {IssueCode.ZIGZAG_FLOW, IssueCode.LOW_COHERENCE}


def test_unassigned_nodes_are_reported_and_count_as_crossing():
    snapshot = make_snapshot(
        [("a", "Task"), ("b", "Task"), ("loose", "Task")],
        [("a", "b"), ("b", "loose")],
        [pool(), lane("L1", "One", ["a", "b"]), lane("L2", "Two")],
    )
    report = score_assignment(snapshot)
    assert report.intra_lane_flows == 1
    assert report.cross_lane_flows == 1
    missing = [i for i in report.issues if i.code is IssueCode.ELEMENTS_NOT_IN_LANE]
    assert len(missing) == 1
    assert missing[0].node_ids == ["loose"]


def test_supplied_assignment_overrides_membership(banded_model):
    snapshot = build_snapshot(banded_model)
    everything_in_one = {f"n{i}": "L1" for i in range(11)}
    report = score_assignment(snapshot, assignment=everything_in_one)
    assert report.coherence_score == 100
    assert report.lane_counts == {"L1": 11, "L2": 0}
    # Scoring never touches the snapshot
    assert snapshot.lane_of("n3") == "L2"


def test_report_serializes():
    snapshot = make_snapshot(
        [("a", "Task"), ("b", "Task")],
        [("a", "b")],
        [pool(), lane("L1", "One", ["a"]), lane("L2", "Two", ["b"])],
    )
    data = score_assignment(snapshot).to_dict()
    assert data["coherence_score"] == 0
    assert data["total_flows"] == 1
    assert data["crossing_edge_ids"] == ["f1"]
    assert {i["code"] for i in data["issues"]} == {"low-coherence", "single-element-lane"}
