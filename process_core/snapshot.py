"""
Graph Snapshot Builder - Typed, read-only view of a process model.

A snapshot is built fresh for every call from the caller's ProcessModel:
- Nodes and edges are frozen records addressed by id (no object cycles)
- Per-node incoming/outgoing edge lists keep declaration order
- Lane membership is the only mutable part, and only the redistribution
  orchestrator touches it (apply mode)

Nothing here is cached between calls; two snapshots built from the same
model never share state.
"""

import logging
from dataclasses import dataclass, field
from typing import Iterable, Optional

from .errors import SnapshotError
from .models import (
    ContainerKind,
    EdgeKind,
    EventTrigger,
    NodeFamily,
    NodeKind,
    ProcessModel,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Node:
    """A flow node in the snapshot."""
    id: str
    kind: NodeKind
    name: Optional[str] = None
    role: Optional[str] = None
    outgoing: tuple[str, ...] = ()
    incoming: tuple[str, ...] = ()
    container_id: Optional[str] = None  # As declared; see ProcessSnapshot.lane_of for live lane
    triggers: tuple[EventTrigger, ...] = ()
    link_name: Optional[str] = None

    @property
    def family(self) -> NodeFamily:
        return self.kind.family

    @property
    def is_flow_control(self) -> bool:
        return self.kind.is_flow_control

    @property
    def is_assignable(self) -> bool:
        return self.kind.is_assignable

    @property
    def label(self) -> str:
        """Name for messages, falling back to the id."""
        return self.name or self.id


@dataclass(frozen=True)
class Edge:
    """A directed connection between two nodes."""
    id: str
    kind: EdgeKind
    source_id: str
    target_id: str
    has_condition: bool = False

    @property
    def is_sequence(self) -> bool:
        return self.kind is EdgeKind.SEQUENCE


@dataclass
class Container:
    """A pool or a lane. Only lane member lists change, and only under apply."""
    id: str
    name: str
    kind: ContainerKind
    parent_id: Optional[str] = None
    member_node_ids: list[str] = field(default_factory=list)

    @property
    def is_lane(self) -> bool:
        return self.kind is ContainerKind.LANE


class ProcessSnapshot:
    """
    In-memory typed graph of one process model.

    Features:
    - O(1) node/edge/container lookups via index dictionaries
    - Sequence-edge adjacency in declaration order
    - Live node -> lane index kept in sync with lane member lists
    """

    def __init__(
        self,
        nodes: Iterable[Node],
        edges: Iterable[Edge],
        containers: Iterable[Container],
        process_id: str = "",
        name: str = "",
    ):
        self.process_id = process_id
        self.name = name
        self._nodes: dict[str, Node] = {n.id: n for n in nodes}
        self._edges: dict[str, Edge] = {e.id: e for e in edges}
        self._containers: dict[str, Container] = {c.id: c for c in containers}
        self._lane_by_node: dict[str, str] = {}
        for container in self._containers.values():
            if container.is_lane:
                for node_id in container.member_node_ids:
                    self._lane_by_node[node_id] = container.id

    # --- Lookups ---

    @property
    def nodes(self) -> list[Node]:
        """All nodes in declaration order."""
        return list(self._nodes.values())

    @property
    def edges(self) -> list[Edge]:
        return list(self._edges.values())

    @property
    def containers(self) -> list[Container]:
        return list(self._containers.values())

    def node(self, node_id: str) -> Optional[Node]:
        return self._nodes.get(node_id)

    def container(self, container_id: str) -> Optional[Container]:
        return self._containers.get(container_id)

    def has_node(self, node_id: str) -> bool:
        return node_id in self._nodes

    # --- Sequence-flow adjacency ---

    def sequence_outgoing(self, node_id: str) -> list[Edge]:
        """Outgoing Sequence edges of a node, in declaration order."""
        node = self._nodes.get(node_id)
        if node is None:
            return []
        return [self._edges[e] for e in node.outgoing if self._edges[e].is_sequence]

    def sequence_incoming(self, node_id: str) -> list[Edge]:
        """Incoming Sequence edges of a node, in declaration order."""
        node = self._nodes.get(node_id)
        if node is None:
            return []
        return [self._edges[e] for e in node.incoming if self._edges[e].is_sequence]

    def sequence_edges(self) -> list[Edge]:
        return [e for e in self._edges.values() if e.is_sequence]

    # --- Containers ---

    def pools(self) -> list[Container]:
        return [c for c in self._containers.values() if c.kind is ContainerKind.POOL]

    def lanes(self, pool_id: Optional[str] = None) -> list[Container]:
        """Lanes in declaration order, optionally restricted to one pool."""
        return [
            c for c in self._containers.values()
            if c.is_lane and (pool_id is None or c.parent_id == pool_id)
        ]

    def lane_of(self, node_id: str) -> Optional[str]:
        """The lane a node currently belongs to, if any."""
        return self._lane_by_node.get(node_id)

    def pool_of(self, node_id: str) -> Optional[str]:
        """The pool a node belongs to, through its lane or directly."""
        lane_id = self._lane_by_node.get(node_id)
        if lane_id is not None:
            return self._containers[lane_id].parent_id
        node = self._nodes.get(node_id)
        if node is None or node.container_id is None:
            return None
        container = self._containers.get(node.container_id)
        if container is not None and container.kind is ContainerKind.POOL:
            return container.id
        return None

    def nodes_in_pool(self, pool_id: str) -> list[Node]:
        """
        Assignable nodes that belong to a pool.

        Nodes outside every container are counted in when the snapshot has
        exactly one pool, since there is nowhere else they could live.
        """
        single_pool = len(self.pools()) == 1
        result = []
        for node in self._nodes.values():
            if not node.is_assignable:
                continue
            owner = self.pool_of(node.id)
            if owner == pool_id or (owner is None and single_pool and node.container_id is None):
                result.append(node)
        return result

    def assignment(self, node_ids: Optional[Iterable[str]] = None) -> dict[str, str]:
        """Current node -> lane mapping (a copy), optionally restricted to some nodes."""
        if node_ids is None:
            return dict(self._lane_by_node)
        return {nid: self._lane_by_node[nid] for nid in node_ids if nid in self._lane_by_node}

    # --- Mutation (apply mode only) ---

    def assign_to_lane(self, node_id: str, lane_id: str) -> Optional[str]:
        """
        Move a node into a lane, removing it from any other lane.

        Idempotent. Returns the lane the node was in before.
        """
        if node_id not in self._nodes:
            raise SnapshotError(f"Unknown node: {node_id}")
        lane = self._containers.get(lane_id)
        if lane is None or not lane.is_lane:
            raise SnapshotError(f"Not a lane: {lane_id}")

        previous = self._lane_by_node.get(node_id)
        if previous == lane_id:
            return previous
        if previous is not None:
            members = self._containers[previous].member_node_ids
            if node_id in members:
                members.remove(node_id)
        if node_id not in lane.member_node_ids:
            lane.member_node_ids.append(node_id)
        self._lane_by_node[node_id] = lane_id
        logger.debug("Moved %s from %s to %s", node_id, previous, lane_id)
        return previous


def _check_unique(ids: list[str], what: str) -> None:
    seen: set[str] = set()
    for item_id in ids:
        if item_id in seen:
            raise SnapshotError(f"Duplicate {what} id: {item_id}")
        seen.add(item_id)


def build_snapshot(model: ProcessModel) -> ProcessSnapshot:
    """
    Build a snapshot from a process model, enforcing the graph invariants.

    Raises:
        SnapshotError: duplicate ids, edges or members referencing unknown
            nodes, a node in two lanes, or containers that are not
            exactly pool -> lane.
    """
    _check_unique([n.id for n in model.nodes], "node")
    _check_unique([e.id for e in model.edges], "edge")
    _check_unique([c.id for c in model.containers], "container")

    node_ids = {n.id for n in model.nodes}
    containers_by_id = {c.id: c for c in model.containers}

    # Container hierarchy: pools at the top, lanes directly below
    for spec in model.containers:
        if spec.kind is ContainerKind.POOL:
            if spec.parent_id is not None:
                raise SnapshotError(f"Pool {spec.id} cannot have a parent container")
            continue
        parent = containers_by_id.get(spec.parent_id) if spec.parent_id else None
        if parent is None:
            raise SnapshotError(f"Lane {spec.id} must belong to an existing pool")
        if parent.kind is not ContainerKind.POOL:
            raise SnapshotError(f"Lane {spec.id} is nested in lane {parent.id}; only pool -> lane is supported")

    # Edges must reference existing nodes
    outgoing: dict[str, list[str]] = {nid: [] for nid in node_ids}
    incoming: dict[str, list[str]] = {nid: [] for nid in node_ids}
    edges: list[Edge] = []
    for spec in model.edges:
        if spec.source not in node_ids:
            raise SnapshotError(f"Edge {spec.id} references non-existent source node: {spec.source}")
        if spec.target not in node_ids:
            raise SnapshotError(f"Edge {spec.id} references non-existent target node: {spec.target}")
        outgoing[spec.source].append(spec.id)
        incoming[spec.target].append(spec.id)
        edges.append(Edge(
            id=spec.id,
            kind=spec.kind,
            source_id=spec.source,
            target_id=spec.target,
            has_condition=spec.has_condition,
        ))

    # Membership: declared member lists plus each node's own container_id
    members: dict[str, list[str]] = {c.id: [] for c in model.containers}
    lane_of: dict[str, str] = {}

    def add_member(container_id: str, node_id: str) -> None:
        container = containers_by_id[container_id]
        if container.kind is ContainerKind.LANE:
            current = lane_of.get(node_id)
            if current is not None and current != container_id:
                raise SnapshotError(f"Node {node_id} belongs to two lanes: {current} and {container_id}")
            lane_of[node_id] = container_id
        if node_id not in members[container_id]:
            members[container_id].append(node_id)

    for spec in model.containers:
        for node_id in spec.members:
            if node_id not in node_ids:
                raise SnapshotError(f"Container {spec.id} references non-existent node: {node_id}")
            add_member(spec.id, node_id)

    for spec in model.nodes:
        if spec.container_id is None:
            continue
        if spec.container_id not in containers_by_id:
            raise SnapshotError(f"Node {spec.id} references non-existent container: {spec.container_id}")
        add_member(spec.container_id, spec.id)

    nodes = [
        Node(
            id=spec.id,
            kind=spec.kind,
            name=spec.name,
            role=spec.declared_role,
            outgoing=tuple(outgoing[spec.id]),
            incoming=tuple(incoming[spec.id]),
            container_id=spec.container_id or lane_of.get(spec.id),
            triggers=tuple(spec.triggers),
            link_name=spec.link_name,
        )
        for spec in model.nodes
    ]
    containers = [
        Container(
            id=spec.id,
            name=spec.name or spec.id,
            kind=spec.kind,
            parent_id=spec.parent_id,
            member_node_ids=members[spec.id],
        )
        for spec in model.containers
    ]

    logger.debug(
        "Built snapshot %s: %d nodes, %d edges, %d containers",
        model.id, len(nodes), len(edges), len(containers),
    )
    return ProcessSnapshot(nodes, edges, containers, process_id=model.id, name=model.name)
