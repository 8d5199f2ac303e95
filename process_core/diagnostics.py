"""
Reachability diagnostics - Detect graph shapes that deadlock or confuse
a process engine.

Checks:
- Gateway balance: every branch of a split should reach the same join
- Implicit merges: non-gateway nodes with several incoming sequence flows
- Dangling boundary events: boundary events that lead nowhere
- Unpaired link events: link throws without a matching catch

All checks are pure functions over a snapshot. Findings are returned as
Issue records, never raised.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from .config import AnalysisConfig, DEFAULT_MAX_BRANCH_DEPTH
from .issues import Issue, IssueCode, IssueSeverity
from .models import EventTrigger, NodeFamily, NodeKind
from .snapshot import Node, ProcessSnapshot

logger = logging.getLogger(__name__)


@dataclass
class BranchResult:
    """Outcome of tracing one outgoing branch of a split."""
    edge_id: str
    target_id: str
    target_label: str
    join_id: Optional[str] = None

    @property
    def lost(self) -> bool:
        return self.join_id is None


def is_split(snapshot: ProcessSnapshot, node: Node) -> bool:
    """A gateway with at most one incoming and at least two outgoing sequence flows."""
    return (
        node.kind.is_gateway
        and len(snapshot.sequence_incoming(node.id)) <= 1
        and len(snapshot.sequence_outgoing(node.id)) >= 2
    )


def is_join_of(snapshot: ProcessSnapshot, node: Node, kind: NodeKind) -> bool:
    """
    A node of the split's gateway kind with at most one outgoing flow.

    Joins are recognized by shape, not by incoming count: a miswired join
    often has fewer incoming flows than the split has branches.
    """
    return node.kind is kind and len(snapshot.sequence_outgoing(node.id)) <= 1


def find_forward_join(
    snapshot: ProcessSnapshot,
    start_id: str,
    kind: NodeKind,
    visited: set[str],
    max_depth: int = DEFAULT_MAX_BRANCH_DEPTH,
) -> Optional[str]:
    """
    Walk forward through sequence flows looking for a join of `kind`.

    Uses DFS with a shared visited set (cycles) and a depth ceiling
    (termination). A nested split of the same kind opens a level; its join
    closes that level and the walk continues past it, so only a join at the
    outermost level is returned.

    Args:
        snapshot: The snapshot to walk
        start_id: First node of the branch
        kind: Gateway kind of the split
        visited: Node ids already seen (seed with the split id)
        max_depth: Maximum number of nodes on one path

    Returns:
        The join node id, or None when the branch dead-ends
    """

    def dfs(node_id: str, depth: int, level: int) -> Optional[str]:
        if depth > max_depth or node_id in visited:
            return None
        node = snapshot.node(node_id)
        if node is None:
            return None
        visited.add(node_id)

        outgoing = snapshot.sequence_outgoing(node_id)
        if is_join_of(snapshot, node, kind):
            if level == 0:
                return node_id
            level -= 1
        elif is_split(snapshot, node) and node.kind is kind:
            level += 1

        # Dead-end: end event or no outgoing flows
        if node.kind is NodeKind.END_EVENT or not outgoing:
            return None

        for edge in outgoing:
            join_id = dfs(edge.target_id, depth + 1, level)
            if join_id is not None:
                return join_id
        return None

    return dfs(start_id, 1, 0)


def trace_branches(
    snapshot: ProcessSnapshot,
    split: Node,
    max_depth: int = DEFAULT_MAX_BRANCH_DEPTH,
) -> list[BranchResult]:
    """Trace every outgoing branch of a split independently."""
    results = []
    for edge in snapshot.sequence_outgoing(split.id):
        target = snapshot.node(edge.target_id)
        join_id = find_forward_join(snapshot, edge.target_id, split.kind, {split.id}, max_depth)
        results.append(BranchResult(
            edge_id=edge.id,
            target_id=edge.target_id,
            target_label=target.label if target else edge.target_id,
            join_id=join_id,
        ))
    return results


def check_gateway_balance(
    snapshot: ProcessSnapshot,
    split_id: str,
    max_depth: int = DEFAULT_MAX_BRANCH_DEPTH,
) -> list[Issue]:
    """
    Check that every branch of a split converges at one join.

    - Some branches lost, some joined: the join waits forever for the lost
      tokens (unbalanced-split, naming every lost branch)
    - All joined, but at different joins: divergent-joins
    - No branch joins at all: no finding (terminal branches are legal)

    Returns an empty list for nodes that are not splits.
    """
    split = snapshot.node(split_id)
    if split is None or not is_split(snapshot, split):
        return []

    branches = trace_branches(snapshot, split, max_depth)
    lost = [b for b in branches if b.lost]
    joined = [b for b in branches if not b.lost]
    kind_label = split.kind.value.replace("bpmn:", "")
    logger.debug("Split %s: %d branch(es) joined, %d lost", split_id, len(joined), len(lost))

    if lost and joined:
        missing = ", ".join(b.target_label for b in lost)
        return [Issue(
            code=IssueCode.UNBALANCED_SPLIT,
            severity=IssueSeverity.ERROR,
            message=(
                f"{kind_label} split '{split.label}' has {len(branches)} outgoing branches, "
                f"but branch(es) via {missing} do not reach the join gateway; "
                f"the join will deadlock waiting for missing tokens. "
                f"Connect all branches to the join, or use an exclusive gateway if branches are alternatives."
            ),
            node_ids=[split.id] + [b.target_id for b in lost],
            edge_ids=[b.edge_id for b in lost],
        )]

    if joined and not lost:
        join_ids = sorted({b.join_id for b in joined})
        if len(join_ids) > 1:
            return [Issue(
                code=IssueCode.DIVERGENT_JOINS,
                severity=IssueSeverity.WARNING,
                message=(
                    f"{kind_label} split '{split.label}' branches converge at different join gateways "
                    f"({', '.join(join_ids)}). All branches of a split should converge at a single join."
                ),
                node_ids=[split.id] + join_ids,
            )]

    return []


def check_implicit_merge(snapshot: ProcessSnapshot) -> list[Issue]:
    """
    Report non-gateway nodes (end events included) with 2+ incoming sequence flows.

    Nodes of unknown kind are checked too; only gateways and artifacts are skipped.
    """
    issues = []
    for node in snapshot.nodes:
        if node.kind.is_gateway or node.family is NodeFamily.ARTIFACT:
            continue
        incoming = snapshot.sequence_incoming(node.id)
        if len(incoming) < 2:
            continue
        what = "End event" if node.kind is NodeKind.END_EVENT else "Element"
        issues.append(Issue(
            code=IssueCode.IMPLICIT_MERGE,
            severity=IssueSeverity.WARNING,
            message=(
                f"{what} '{node.label}' has {len(incoming)} incoming sequence flows. "
                f"Use an explicit merge gateway before it."
            ),
            node_ids=[node.id],
            edge_ids=[e.id for e in incoming],
        ))
    return issues


def check_dangling_boundary(snapshot: ProcessSnapshot) -> list[Issue]:
    """
    Report boundary events without an outgoing sequence flow.

    Compensation boundary events are skipped: their handler is attached with
    an association, not a sequence flow.
    """
    issues = []
    for node in snapshot.nodes:
        if node.kind is not NodeKind.BOUNDARY_EVENT:
            continue
        if set(node.triggers) == {EventTrigger.COMPENSATE}:
            continue
        if snapshot.sequence_outgoing(node.id):
            continue
        issues.append(Issue(
            code=IssueCode.DANGLING_BOUNDARY_EVENT,
            severity=IssueSeverity.WARNING,
            message=(
                f"Boundary event '{node.label}' has no outgoing sequence flow; "
                f"the exception path it starts goes nowhere."
            ),
            node_ids=[node.id],
        ))
    return issues


def _link_name(node: Node) -> str:
    return (node.link_name or node.name or "").strip()


def check_unpaired_link(snapshot: ProcessSnapshot) -> list[Issue]:
    """Report link throw events without a link catch event of the same name."""
    catch_names = {
        _link_name(n) for n in snapshot.nodes
        if n.kind is NodeKind.INTERMEDIATE_CATCH_EVENT and EventTrigger.LINK in n.triggers
    }

    issues = []
    for node in snapshot.nodes:
        if node.kind is not NodeKind.INTERMEDIATE_THROW_EVENT or EventTrigger.LINK not in node.triggers:
            continue
        name = _link_name(node)
        if name and name in catch_names:
            continue
        issues.append(Issue(
            code=IssueCode.UNPAIRED_LINK_EVENT,
            severity=IssueSeverity.ERROR,
            message=(
                f"Link throw event '{node.label}' has no matching link catch event"
                + (f" named '{name}'." if name else " (the link has no name).")
            ),
            node_ids=[node.id],
        ))
    return issues


def run_diagnostics(
    snapshot: ProcessSnapshot,
    config: Optional[AnalysisConfig] = None,
) -> list[Issue]:
    """
    Run every structural check once and aggregate the findings.

    Gateway balance is checked for splits whose kind is listed in
    config.balance_gateway_kinds (parallel and inclusive by default).

    Args:
        snapshot: The snapshot to analyze
        config: Analysis configuration (defaults when omitted)

    Returns:
        List of Issue objects, grouped by check
    """
    config = config or AnalysisConfig()
    balance_kinds = set(config.balance_gateway_kinds)

    issues: list[Issue] = []
    for node in snapshot.nodes:
        if node.kind in balance_kinds:
            issues.extend(check_gateway_balance(snapshot, node.id, config.max_branch_depth))
    issues.extend(check_implicit_merge(snapshot))
    issues.extend(check_dangling_boundary(snapshot))
    issues.extend(check_unpaired_link(snapshot))

    logger.debug("Diagnostics found %d issue(s) in %s", len(issues), snapshot.process_id)
    return issues
