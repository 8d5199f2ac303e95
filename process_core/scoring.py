"""
Coherence scoring - How well does a lane assignment follow the flow?

The score is the percentage of sequence flows that stay inside one lane.
On top of the score, the scorer reports zigzags, unassigned nodes and
single-element lanes so callers can target a fix.
"""

import logging
from dataclasses import dataclass, field
from typing import Mapping, Optional, Sequence

from .config import AnalysisConfig
from .issues import Issue, IssueCode, IssueSeverity
from .snapshot import Container, Node, ProcessSnapshot

logger = logging.getLogger(__name__)


@dataclass
class CoherenceReport:
    """Coherence metrics and lane issues for one assignment."""
    coherence_score: int
    intra_lane_flows: int
    cross_lane_flows: int
    crossing_edge_ids: list[str] = field(default_factory=list)
    lane_counts: dict[str, int] = field(default_factory=dict)
    issues: list[Issue] = field(default_factory=list)

    @property
    def total_flows(self) -> int:
        return self.intra_lane_flows + self.cross_lane_flows

    @property
    def actionable_issues(self) -> list[Issue]:
        return [i for i in self.issues if i.actionable]

    def metrics(self) -> dict:
        """The three numbers used for before/after comparisons."""
        return {
            "coherence_score": self.coherence_score,
            "cross_lane_flows": self.cross_lane_flows,
            "intra_lane_flows": self.intra_lane_flows,
        }

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            **self.metrics(),
            "total_flows": self.total_flows,
            "crossing_edge_ids": list(self.crossing_edge_ids),
            "lane_counts": dict(self.lane_counts),
            "issues": [i.to_dict() for i in self.issues],
        }


def coherence_score(intra: int, cross: int) -> int:
    """Percentage of intra-lane flows, rounded half up; 100 with no flows."""
    total = intra + cross
    if total == 0:
        return 100
    # Half rounds up: 62.5 -> 63
    return (200 * intra + total) // (2 * total)


def find_zigzags(
    snapshot: ProcessSnapshot,
    assignment: Mapping[str, str],
    scope: set[str],
    lane_names: Mapping[str, str],
) -> list[Issue]:
    """
    Find two-edge runs A -> B -> C where A and C share a lane and B does not.

    Such a run crosses a lane boundary and immediately crosses back. One
    issue is reported per middle node, pointing at the first such run.
    """
    issues = []
    for middle in snapshot.nodes:
        if middle.id not in scope:
            continue
        middle_lane = assignment.get(middle.id)
        if middle_lane is None:
            continue
        found = None
        for into in snapshot.sequence_incoming(middle.id):
            before_lane = assignment.get(into.source_id)
            if into.source_id not in scope or before_lane is None or before_lane == middle_lane:
                continue
            for out in snapshot.sequence_outgoing(middle.id):
                if out.target_id in scope and assignment.get(out.target_id) == before_lane:
                    found = (into, out, before_lane)
                    break
            if found:
                break
        if not found:
            continue
        into, out, home_lane = found
        issues.append(Issue(
            code=IssueCode.ZIGZAG_FLOW,
            severity=IssueSeverity.WARNING,
            message=(
                f"Flow zigzags between lanes '{lane_names.get(home_lane, home_lane)}' and "
                f"'{lane_names.get(middle_lane, middle_lane)}' through '{middle.label}'. "
                f"Consider moving it to '{lane_names.get(home_lane, home_lane)}'."
            ),
            node_ids=[into.source_id, middle.id, out.target_id],
            edge_ids=[into.id, out.id],
        ))
    return issues


def score_assignment(
    snapshot: ProcessSnapshot,
    assignment: Optional[Mapping[str, str]] = None,
    lanes: Optional[Sequence[Container]] = None,
    nodes: Optional[Sequence[Node]] = None,
    config: Optional[AnalysisConfig] = None,
) -> CoherenceReport:
    """
    Score an assignment against the snapshot's sequence flows.

    Args:
        snapshot: The snapshot to score
        assignment: node -> lane mapping (current membership when omitted)
        lanes: Lanes to report on (all lanes when omitted)
        nodes: Nodes in scope (all assignable nodes when omitted)
        config: Analysis configuration (defaults when omitted)

    Returns:
        CoherenceReport with score, flow counts and issues
    """
    config = config or AnalysisConfig()
    if assignment is None:
        assignment = snapshot.assignment()
    if lanes is None:
        lanes = snapshot.lanes()
    if nodes is None:
        nodes = [n for n in snapshot.nodes if n.is_assignable]
    scope = {n.id for n in nodes if n.is_assignable}
    lane_ids = {lane.id for lane in lanes}
    lane_names = {lane.id: lane.name for lane in lanes}

    intra = 0
    cross = 0
    crossing: list[str] = []
    for edge in snapshot.sequence_edges():
        if edge.source_id not in scope or edge.target_id not in scope:
            continue
        source_lane = assignment.get(edge.source_id)
        target_lane = assignment.get(edge.target_id)
        if source_lane is not None and source_lane == target_lane:
            intra += 1
        else:
            cross += 1
            crossing.append(edge.id)
    score = coherence_score(intra, cross)

    lane_counts = {lane.id: 0 for lane in lanes}
    for node_id in scope:
        lane_id = assignment.get(node_id)
        if lane_id in lane_counts:
            lane_counts[lane_id] += 1

    issues = find_zigzags(snapshot, assignment, scope, lane_names)

    if intra + cross > 0 and score < config.low_coherence_threshold:
        issues.append(Issue(
            code=IssueCode.LOW_COHERENCE,
            severity=IssueSeverity.WARNING,
            message=(
                f"Only {score}% of sequence flows stay within one lane "
                f"(threshold {config.low_coherence_threshold}%). "
                f"{cross} of {intra + cross} flows cross lanes."
            ),
            edge_ids=list(crossing),
        ))

    unassigned = [n.id for n in nodes if n.is_assignable and assignment.get(n.id) not in lane_ids]
    if unassigned and lanes:
        issues.append(Issue(
            code=IssueCode.ELEMENTS_NOT_IN_LANE,
            severity=IssueSeverity.WARNING,
            message=f"{len(unassigned)} element(s) are not assigned to any lane.",
            node_ids=unassigned,
        ))

    for lane in lanes:
        if lane_counts[lane.id] == 1:
            members = [nid for nid in scope if assignment.get(nid) == lane.id]
            issues.append(Issue(
                code=IssueCode.SINGLE_ELEMENT_LANE,
                severity=IssueSeverity.INFO,
                message=f"Lane '{lane.name}' contains a single element; consider merging it into a neighbor lane.",
                node_ids=members,
            ))

    logger.debug("Coherence %d%% (%d intra, %d cross)", score, intra, cross)
    return CoherenceReport(
        coherence_score=score,
        intra_lane_flows=intra,
        cross_lane_flows=cross,
        crossing_edge_ids=crossing,
        lane_counts=lane_counts,
        issues=issues,
    )
