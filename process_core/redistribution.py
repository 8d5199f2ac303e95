"""
Redistribution orchestrator - Move nodes between the lanes of a pool.

Composes the classifier and the scorer under one of four strategies:
- role-based: role match, type fallback, then flow-control propagation
- balance: role match, everything else to the least-populated lane
- minimize-crossings: neighbor voting for every node
- manual: caller-chosen nodes into a caller-chosen lane

Dry run and apply share every step up to the mutation, so a dry run is an
exact preview of apply on the same snapshot. In validate mode the
assignment is scored first and left alone when it is already coherent.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Mapping, Optional, Sequence

from .classifier import REASON_ROLE, classify, find_role_lane, vote_lane
from .config import AnalysisConfig
from .errors import ValidationError
from .models import ContainerKind
from .scoring import CoherenceReport, score_assignment
from .snapshot import Container, Node, ProcessSnapshot

logger = logging.getLogger(__name__)

UNASSIGNED_LANE_ID = "(none)"
UNASSIGNED_LANE_NAME = "(unassigned)"

REASON_BALANCE = "balancing lane element count"
REASON_CROSSINGS = "minimizes cross-lane flows"
REASON_MANUAL = "explicitly assigned"


class Strategy(str, Enum):
    """Redistribution strategies."""
    ROLE_BASED = "role-based"
    BALANCE = "balance"
    MINIMIZE_CROSSINGS = "minimize-crossings"
    MANUAL = "manual"

    @classmethod
    def parse(cls, value) -> "Strategy":
        try:
            return cls(value)
        except ValueError:
            allowed = ", ".join(s.value for s in cls)
            raise ValidationError(f"Unknown strategy '{value}'. Use one of: {allowed}") from None


@dataclass
class Move:
    """One node changing lanes."""
    node_id: str
    node_name: str
    node_kind: str
    from_lane_id: str
    from_lane_name: str
    to_lane_id: str
    to_lane_name: str
    reason: str

    def to_dict(self) -> dict:
        return {
            "node_id": self.node_id,
            "node_name": self.node_name,
            "node_kind": self.node_kind,
            "from_lane_id": self.from_lane_id,
            "from_lane_name": self.from_lane_name,
            "to_lane_id": self.to_lane_id,
            "to_lane_name": self.to_lane_name,
            "reason": self.reason,
        }


@dataclass
class RedistributionResult:
    """Outcome of a redistribution call."""
    success: bool
    dry_run: bool
    strategy: str
    pool_id: str
    pool_name: str
    total_elements: int
    moves: list[Move] = field(default_factory=list)
    message: str = ""
    optimized: Optional[bool] = None  # Only set in validate mode
    before: Optional[CoherenceReport] = None
    after: Optional[CoherenceReport] = None
    empty_lane_ids: list[str] = field(default_factory=list)
    reposition_due: bool = False

    @property
    def moved_count(self) -> int:
        return len(self.moves)

    @property
    def improvement(self) -> Optional[int]:
        if self.before is None or self.after is None:
            return None
        return self.after.coherence_score - self.before.coherence_score

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        result = {
            "success": self.success,
            "dry_run": self.dry_run,
            "strategy": self.strategy,
            "pool_id": self.pool_id,
            "pool_name": self.pool_name,
            "moved_count": self.moved_count,
            "total_elements": self.total_elements,
            "moves": [m.to_dict() for m in self.moves],
            "message": self.message,
            "reposition_due": self.reposition_due,
        }
        if self.optimized is not None:
            result["optimized"] = self.optimized
        if self.before is not None:
            result["before"] = self.before.metrics()
        if self.after is not None:
            result["after"] = self.after.metrics()
            result["improvement"] = self.improvement
        if self.before is not None and self.optimized is False:
            result["issues"] = [i.to_dict() for i in self.before.actionable_issues]
        if self.empty_lane_ids:
            result["empty_lane_ids"] = list(self.empty_lane_ids)
        return result


RepositionCallback = Callable[[list[Move]], None]


# --- Pool and lane resolution ---

def find_pool_with_lanes(snapshot: ProcessSnapshot) -> Optional[Container]:
    """First pool (declared order) that has at least two lanes."""
    for pool in snapshot.pools():
        if len(snapshot.lanes(pool.id)) >= 2:
            return pool
    return None


def _resolve_pool(
    snapshot: ProcessSnapshot,
    pool_id: Optional[str],
    target_lane: Optional[Container],
) -> Container:
    if pool_id is not None:
        pool = snapshot.container(pool_id)
        if pool is None or pool.kind is not ContainerKind.POOL:
            raise ValidationError(f"Pool not found: {pool_id}")
        return pool
    if target_lane is not None:
        return snapshot.container(target_lane.parent_id)
    pool = find_pool_with_lanes(snapshot)
    if pool is None:
        raise ValidationError(
            "No pool with at least 2 lanes found. Add lanes first, or specify the pool explicitly."
        )
    return pool


def _resolve_manual_lane(snapshot: ProcessSnapshot, lane_id: Optional[str]) -> Container:
    if not lane_id:
        raise ValidationError("Manual strategy requires a target lane id.")
    lane = snapshot.container(lane_id)
    if lane is None:
        raise ValidationError(f"Target lane not found: {lane_id}")
    if not lane.is_lane:
        raise ValidationError(f"Target {lane_id} is a {lane.kind.value}, not a lane.")
    return lane


# --- Strategy planners: each returns node_id -> (lane_id, reason) ---

def _plan_role_based(snapshot, nodes, lanes, order_hint, config):
    classification = classify(
        snapshot, lanes, nodes,
        order_hint=order_hint,
        config=config,
        initial=snapshot.assignment(n.id for n in nodes),
    )
    return {
        node_id: (lane_id, classification.reasons[node_id])
        for node_id, lane_id in classification.assignment.items()
    }


def _plan_balance(snapshot, nodes, lanes, order_hint, config):
    plan: dict[str, tuple[str, str]] = {}
    counts = {lane.id: 0 for lane in lanes}
    for node in nodes:
        lane = find_role_lane(node.role, lanes)
        if lane is not None:
            plan[node.id] = (lane.id, REASON_ROLE)
            counts[lane.id] += 1
    for node in nodes:
        if node.id in plan:
            continue
        # min() keeps the first lane on ties
        lane_id = min(counts, key=lambda lid: counts[lid])
        plan[node.id] = (lane_id, REASON_BALANCE)
        counts[lane_id] += 1
    return plan


def _plan_minimize_crossings(snapshot, nodes, lanes, order_hint, config):
    lane_ids = {lane.id for lane in lanes}
    working: dict[str, str] = {}
    for node in nodes:
        current = snapshot.lane_of(node.id)
        if current in lane_ids:
            working[node.id] = current
    plan: dict[str, tuple[str, str]] = {}
    for _ in range(config.voting_passes):
        changed = False
        for node in nodes:
            best = vote_lane(snapshot, node.id, working, lanes, current_lane=working.get(node.id))
            if best is not None and working.get(node.id) != best:
                working[node.id] = best
                plan[node.id] = (best, REASON_CROSSINGS)
                changed = True
        if not changed:
            break
    for node in nodes:
        if node.id not in working:
            working[node.id] = lanes[0].id
            plan[node.id] = (lanes[0].id, REASON_CROSSINGS)
    return plan


_PLANNERS = {
    Strategy.ROLE_BASED: _plan_role_based,
    Strategy.BALANCE: _plan_balance,
    Strategy.MINIMIZE_CROSSINGS: _plan_minimize_crossings,
}


def _collect_moves(
    snapshot: ProcessSnapshot,
    nodes: Sequence[Node],
    plan: Mapping[str, tuple[str, str]],
) -> list[Move]:
    """Turn a plan into moves for nodes whose lane actually changes."""
    moves = []
    for node in nodes:
        if node.id not in plan:
            continue
        lane_id, reason = plan[node.id]
        current_id = snapshot.lane_of(node.id)
        if current_id == lane_id:
            continue
        current = snapshot.container(current_id) if current_id else None
        target = snapshot.container(lane_id)
        moves.append(Move(
            node_id=node.id,
            node_name=node.label,
            node_kind=node.kind.value,
            from_lane_id=current.id if current else UNASSIGNED_LANE_ID,
            from_lane_name=current.name if current else UNASSIGNED_LANE_NAME,
            to_lane_id=target.id,
            to_lane_name=target.name,
            reason=reason,
        ))
    return moves


def _proposed_assignment(snapshot: ProcessSnapshot, nodes: Sequence[Node], moves: Sequence[Move]) -> dict[str, str]:
    assignment = snapshot.assignment(n.id for n in nodes)
    for move in moves:
        assignment[move.node_id] = move.to_lane_id
    return assignment


def _empty_lanes(lanes: Sequence[Container], assignment: Mapping[str, str]) -> list[str]:
    used = set(assignment.values())
    return [lane.id for lane in lanes if lane.id not in used]


def _apply_moves(
    snapshot: ProcessSnapshot,
    moves: Sequence[Move],
    reposition: bool,
    on_reposition: Optional[RepositionCallback],
) -> bool:
    """Update lane membership; returns whether a reposition is due."""
    for move in moves:
        snapshot.assign_to_lane(move.node_id, move.to_lane_id)
    logger.info("Applied %d lane move(s) in %s", len(moves), snapshot.process_id)
    if not reposition:
        return False
    if on_reposition is not None:
        on_reposition(list(moves))
    return True


# --- Main entry point ---

def redistribute(
    snapshot: ProcessSnapshot,
    strategy: str = Strategy.ROLE_BASED.value,
    pool_id: Optional[str] = None,
    dry_run: bool = False,
    validate: bool = False,
    lane_id: Optional[str] = None,
    node_ids: Optional[Sequence[str]] = None,
    order_hint: Optional[Mapping[str, float]] = None,
    reposition: bool = True,
    on_reposition: Optional[RepositionCallback] = None,
    config: Optional[AnalysisConfig] = None,
) -> RedistributionResult:
    """
    Rebalance node placement across the lanes of one pool.

    Args:
        snapshot: The snapshot to work on (mutated only when dry_run is False)
        strategy: 'role-based', 'balance', 'minimize-crossings' or 'manual'
        pool_id: Pool to work on (auto-detected when omitted)
        dry_run: Compute the plan without changing anything
        validate: Score before and after; skip when already coherent.
            Forces minimize-crossings.
        lane_id: Target lane for the manual strategy
        node_ids: Nodes to move for the manual strategy
        order_hint: Opaque per-node sort key for the type fallback
        reposition: Ask the caller to reposition moved nodes
        on_reposition: Called with the applied moves when a reposition is due
        config: Analysis configuration (defaults when omitted)

    Returns:
        RedistributionResult with the move list and coherence metrics

    Raises:
        ValidationError: fewer than 2 lanes, unknown pool or strategy, or a
            manual request without a resolvable lane and node set. Nothing
            is changed when this is raised.
    """
    config = config or AnalysisConfig()
    chosen = Strategy.parse(strategy)
    if validate:
        chosen = Strategy.MINIMIZE_CROSSINGS

    target_lane = None
    if chosen is Strategy.MANUAL:
        target_lane = _resolve_manual_lane(snapshot, lane_id)
        if pool_id is not None and target_lane.parent_id != pool_id:
            raise ValidationError(f"Lane {target_lane.id} does not belong to pool {pool_id}.")

    pool = _resolve_pool(snapshot, pool_id, target_lane)
    lanes = snapshot.lanes(pool.id)
    if len(lanes) < 2:
        raise ValidationError(
            f'Pool "{pool.name}" has {len(lanes)} lane(s). Need at least 2 lanes to redistribute.'
        )

    pool_nodes = snapshot.nodes_in_pool(pool.id)
    nodes = pool_nodes
    if chosen is Strategy.MANUAL:
        nodes = _manual_nodes(snapshot, node_ids)
    # Manual targets may come from outside the pool; score them too
    scope = pool_nodes + [n for n in nodes if n not in pool_nodes]

    result = RedistributionResult(
        success=True,
        dry_run=dry_run,
        strategy=chosen.value,
        pool_id=pool.id,
        pool_name=pool.name,
        total_elements=len(nodes),
    )
    if not nodes:
        result.message = f'Pool "{pool.name}" has no elements to redistribute.'
        return result

    result.before = score_assignment(snapshot, lanes=lanes, nodes=scope, config=config)
    if validate and (
        result.before.coherence_score >= config.low_coherence_threshold
        and not result.before.actionable_issues
    ):
        result.optimized = False
        result.message = (
            f"Lane organization is already good (coherence: {result.before.coherence_score}%). "
            f"No optimization needed."
        )
        return result

    if chosen is Strategy.MANUAL:
        plan = {node.id: (target_lane.id, REASON_MANUAL) for node in nodes}
    else:
        plan = _PLANNERS[chosen](snapshot, nodes, lanes, order_hint, config)
    moves = _collect_moves(snapshot, nodes, plan)
    logger.debug("Strategy %s proposes %d move(s) in pool %s", chosen.value, len(moves), pool.id)

    if validate and not moves:
        result.optimized = False
        result.message = (
            f"No elements could be moved to improve lane assignments "
            f"(coherence: {result.before.coherence_score}%)."
        )
        return result

    proposed = _proposed_assignment(snapshot, scope, moves)
    result.moves = moves
    result.after = score_assignment(snapshot, assignment=proposed, lanes=lanes, nodes=scope, config=config)
    result.empty_lane_ids = _empty_lanes(lanes, proposed)
    if validate:
        result.optimized = True

    if not dry_run and moves:
        result.reposition_due = _apply_moves(snapshot, moves, reposition, on_reposition)

    result.message = _summary_message(result, validate)
    return result


def _manual_nodes(snapshot: ProcessSnapshot, node_ids: Optional[Sequence[str]]) -> list[Node]:
    if not node_ids:
        raise ValidationError("Manual strategy requires at least one node id.")
    nodes = []
    for node_id in node_ids:
        node = snapshot.node(node_id)
        if node is None:
            raise ValidationError(f"Node not found: {node_id}")
        if not node.is_assignable:
            raise ValidationError(f"Node {node_id} ({node.kind.value}) cannot be placed in a lane.")
        if node not in nodes:
            nodes.append(node)
    return nodes


def _summary_message(result: RedistributionResult, validate: bool) -> str:
    count = result.moved_count
    if validate:
        if result.dry_run:
            return f"Dry run: would move {count} element(s) to improve lane assignments."
        after = result.after.coherence_score if result.after else result.before.coherence_score
        return (
            f"Optimized lane assignments: moved {count} element(s). "
            f"Coherence: {result.before.coherence_score}% -> {after}%."
        )
    if result.dry_run:
        return (
            f'Dry run: would move {count} of {result.total_elements} element(s) '
            f'using "{result.strategy}" strategy.'
        )
    return f'Moved {count} of {result.total_elements} element(s) using "{result.strategy}" strategy.'
