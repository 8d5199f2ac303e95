"""
Role & connectivity classifier - Propose a lane for every assignable node.

Three phases, each only touching nodes the previous ones left open:
1. Role match: declared role (assignee / candidate group) vs. lane name
2. Type fallback: human vs. automated tasks, else an ordering-hint split.
   Work items already in a candidate lane keep it and skip this phase.
3. Flow-control propagation: gateways and events follow their neighbors

The classifier never mutates the snapshot and never computes geometry;
the ordering hint is an opaque sort key supplied by the caller.
"""

import logging
import math
import re
from dataclasses import dataclass, field
from typing import Iterable, Mapping, Optional, Sequence

from .config import AnalysisConfig
from .models import NodeKind
from .snapshot import Container, Node, ProcessSnapshot

logger = logging.getLogger(__name__)

HUMAN_TASK_KINDS = frozenset({NodeKind.USER_TASK, NodeKind.MANUAL_TASK})
AUTOMATED_TASK_KINDS = frozenset({
    NodeKind.SERVICE_TASK,
    NodeKind.SCRIPT_TASK,
    NodeKind.BUSINESS_RULE_TASK,
    NodeKind.SEND_TASK,
    NodeKind.RECEIVE_TASK,
    NodeKind.CALL_ACTIVITY,
})

# Vote weights: control nodes usually belong with whatever triggers them
INCOMING_VOTE_WEIGHT = 2
OUTGOING_VOTE_WEIGHT = 1
CURRENT_LANE_WEIGHT = 1

PHASE_ROLE = "role"
PHASE_TYPE = "type"
PHASE_ORDER = "order"
PHASE_FLOW = "flow"
PHASE_DEFAULT = "default"
PHASE_KEEP = "keep"

REASON_ROLE = "role matches lane name"
REASON_HUMAN = "human task routed to human lane"
REASON_AUTOMATED = "automated task routed to automated lane"
REASON_ORDER = "split by ordering hint"
REASON_FLOW = "majority of connected neighbors are in this lane"
REASON_DEFAULT = "no better match; defaulted to first lane"
REASON_KEEP = "no better match; kept current lane"

_SEPARATORS = re.compile(r"[-_/.]+")
_WHITESPACE = re.compile(r"\s+")


@dataclass
class Classification:
    """Proposed node -> lane mapping with the reason behind each entry."""
    assignment: dict[str, str] = field(default_factory=dict)
    reasons: dict[str, str] = field(default_factory=dict)
    phases: dict[str, str] = field(default_factory=dict)

    def assign(self, node_id: str, lane_id: str, phase: str, reason: str) -> None:
        """Record an assignment; a node is only ever assigned once."""
        if node_id in self.assignment:
            return
        self.assignment[node_id] = lane_id
        self.phases[node_id] = phase
        self.reasons[node_id] = reason

    def to_dict(self) -> dict:
        return {
            "assignment": dict(self.assignment),
            "reasons": dict(self.reasons),
            "phases": dict(self.phases),
        }


def normalize_name(value: str) -> str:
    """Lower-case, turn separators into spaces, collapse whitespace."""
    text = _SEPARATORS.sub(" ", value.lower())
    return _WHITESPACE.sub(" ", text).strip()


def role_matches_lane(role: str, lane_name: str) -> bool:
    """
    Whether a declared role fits a lane name.

    Matches on equality, containment in either direction, or a simple
    singular/plural variant ('manager' vs 'managers', 'box' vs 'boxes').
    """
    r = normalize_name(role)
    lane = normalize_name(lane_name)
    if not r or not lane:
        return False
    return (
        r == lane
        or r in lane
        or lane in r
        or r + "s" == lane
        or lane + "s" == r
        or r + "es" == lane
        or lane + "es" == r
    )


def find_role_lane(role: Optional[str], lanes: Sequence[Container]) -> Optional[Container]:
    """First lane in declared order whose name matches the role."""
    if not role:
        return None
    for lane in lanes:
        if role_matches_lane(role, lane.name):
            return lane
    return None


def find_lane_by_hints(lanes: Sequence[Container], hints: Iterable[str]) -> Optional[Container]:
    """First lane whose normalized name contains one of the hint words."""
    hint_list = [normalize_name(h) for h in hints if h and h.strip()]
    for lane in lanes:
        name = normalize_name(lane.name)
        for hint in hint_list:
            if hint in name:
                return lane
    return None


def vote_lane(
    snapshot: ProcessSnapshot,
    node_id: str,
    assignment: Mapping[str, str],
    lanes: Sequence[Container],
    current_lane: Optional[str] = None,
) -> Optional[str]:
    """
    Pick a lane for a node from its assigned sequence-flow neighbors.

    Incoming neighbors vote with weight 2, outgoing ones with weight 1.
    Neighbors that are not assignable (artifacts, unknown kinds), or whose
    lane is not a candidate, do not vote. Ties go to the first lane in
    declared order.

    With `current_lane`, the node's own lane adds one vote and wins ties,
    so a node only leaves its lane when its neighbors clearly pull it away.

    Returns:
        The winning lane id, or None when nothing voted
    """
    candidate_ids = [lane.id for lane in lanes]
    votes: dict[str, int] = {}
    if current_lane in candidate_ids:
        votes[current_lane] = CURRENT_LANE_WEIGHT

    def cast(neighbor_id: str, weight: int) -> None:
        if neighbor_id == node_id:
            return
        neighbor = snapshot.node(neighbor_id)
        if neighbor is None or not neighbor.is_assignable:
            return
        lane_id = assignment.get(neighbor_id)
        if lane_id in candidate_ids:
            votes[lane_id] = votes.get(lane_id, 0) + weight

    for edge in snapshot.sequence_incoming(node_id):
        cast(edge.source_id, INCOMING_VOTE_WEIGHT)
    for edge in snapshot.sequence_outgoing(node_id):
        cast(edge.target_id, OUTGOING_VOTE_WEIGHT)

    best: Optional[str] = None
    best_votes = 0
    for lane_id in candidate_ids:
        count = votes.get(lane_id, 0)
        if count > best_votes:
            best, best_votes = lane_id, count
    if best is not None and votes.get(current_lane) == best_votes:
        return current_lane
    return best


def order_nodes(nodes: Sequence[Node], order_hint: Optional[Mapping[str, float]]) -> list[Node]:
    """Sort by the caller's hint; nodes without a hint follow in declared order."""
    if not order_hint:
        return list(nodes)
    indexed = list(enumerate(nodes))
    indexed.sort(key=lambda item: (
        (0, order_hint[item[1].id], item[0]) if item[1].id in order_hint else (1, 0, item[0])
    ))
    return [node for _, node in indexed]


def assign_by_role(
    nodes: Sequence[Node],
    lanes: Sequence[Container],
    result: Classification,
) -> None:
    """Phase 1: match declared roles to lane names."""
    for node in nodes:
        if node.id in result.assignment:
            continue
        lane = find_role_lane(node.role, lanes)
        if lane is not None:
            result.assign(node.id, lane.id, PHASE_ROLE, REASON_ROLE)


def assign_by_type(
    nodes: Sequence[Node],
    lanes: Sequence[Container],
    result: Classification,
    config: AnalysisConfig,
    order_hint: Optional[Mapping[str, float]] = None,
) -> None:
    """
    Phase 2: place the remaining work items.

    With exactly two lanes named after the human/automated vocabularies,
    human and automated tasks go to their lane. Everything else is ordered
    by the hint and split into two halves across the first two lanes.
    """
    remaining = [
        n for n in nodes
        if n.id not in result.assignment and not n.is_flow_control
    ]
    if not remaining or not lanes:
        return

    if len(lanes) == 1:
        for node in remaining:
            result.assign(node.id, lanes[0].id, PHASE_ORDER, REASON_ORDER)
        return

    if len(lanes) == 2:
        human_lane = find_lane_by_hints(lanes, config.human_lane_hints)
        auto_lane = find_lane_by_hints(lanes, config.automated_lane_hints)
        if human_lane is not None and auto_lane is not None and human_lane.id != auto_lane.id:
            for node in remaining:
                if node.kind in HUMAN_TASK_KINDS:
                    result.assign(node.id, human_lane.id, PHASE_TYPE, REASON_HUMAN)
                elif node.kind in AUTOMATED_TASK_KINDS:
                    result.assign(node.id, auto_lane.id, PHASE_TYPE, REASON_AUTOMATED)
            remaining = [n for n in remaining if n.id not in result.assignment]

    ordered = order_nodes(remaining, order_hint)
    first_half = math.ceil(len(ordered) / 2)
    for index, node in enumerate(ordered):
        lane = lanes[0] if index < first_half else lanes[1]
        result.assign(node.id, lane.id, PHASE_ORDER, REASON_ORDER)


def keep_current_lanes(
    nodes: Sequence[Node],
    lanes: Sequence[Container],
    result: Classification,
    initial: Mapping[str, str],
) -> None:
    """Work items already in a candidate lane stay there unless a role placed them."""
    lane_ids = {lane.id for lane in lanes}
    for node in nodes:
        if node.is_flow_control or node.id in result.assignment:
            continue
        lane_id = initial.get(node.id)
        if lane_id in lane_ids:
            result.assign(node.id, lane_id, PHASE_KEEP, REASON_KEEP)


def assign_flow_control(
    snapshot: ProcessSnapshot,
    nodes: Sequence[Node],
    lanes: Sequence[Container],
    result: Classification,
    passes: int,
    initial: Optional[Mapping[str, str]] = None,
) -> None:
    """
    Phase 3: gateways and events join the lane of their neighbors.

    Runs several passes so a node placed in one pass can pull its
    neighbors along in the next. Neighbors not placed yet vote with their
    `initial` lane. Leftovers keep their initial lane, else go to the
    first lane.
    """
    initial = initial or {}
    lane_ids = {lane.id for lane in lanes}
    view = dict(initial)
    view.update(result.assignment)

    controls = [n for n in nodes if n.is_flow_control]
    for _ in range(passes):
        changed = False
        for node in controls:
            if node.id in result.assignment:
                continue
            best = vote_lane(snapshot, node.id, view, lanes)
            if best is not None:
                result.assign(node.id, best, PHASE_FLOW, REASON_FLOW)
                view[node.id] = best
                changed = True
        if not changed:
            break

    for node in nodes:
        if node.id in result.assignment:
            continue
        if initial.get(node.id) in lane_ids:
            result.assign(node.id, initial[node.id], PHASE_KEEP, REASON_KEEP)
        else:
            result.assign(node.id, lanes[0].id, PHASE_DEFAULT, REASON_DEFAULT)


def classify(
    snapshot: ProcessSnapshot,
    lanes: Sequence[Container],
    nodes: Optional[Sequence[Node]] = None,
    order_hint: Optional[Mapping[str, float]] = None,
    config: Optional[AnalysisConfig] = None,
    initial: Optional[Mapping[str, str]] = None,
) -> Classification:
    """
    Propose a lane for every assignable node.

    Args:
        snapshot: The snapshot to classify
        lanes: Candidate lanes, in declared order
        nodes: Nodes to place (all assignable nodes when omitted)
        order_hint: Opaque per-node sort key used to split leftovers
        config: Analysis configuration (defaults when omitted)
        initial: Current node -> lane membership. Work items already in a
            candidate lane keep it unless their role matches another lane;
            the type fallback only places the rest.

    Returns:
        Classification with exactly one lane per node when any lane exists
    """
    config = config or AnalysisConfig()
    initial = initial or {}
    if nodes is None:
        nodes = [n for n in snapshot.nodes if n.is_assignable]
    else:
        nodes = [n for n in nodes if n.is_assignable]

    result = Classification()
    if not lanes or not nodes:
        return result

    assign_by_role(nodes, lanes, result)
    keep_current_lanes(nodes, lanes, result, initial)
    assign_by_type(nodes, lanes, result, config, order_hint)
    assign_flow_control(snapshot, nodes, lanes, result, config.voting_passes, initial)

    logger.debug(
        "Classified %d node(s) across %d lane(s) in %s",
        len(result.assignment), len(lanes), snapshot.process_id,
    )
    return result
