"""
Core data models for process diagrams.

These models define the schema callers use to hand a process model to the
core:
- Nodes with a closed BPMN kind, optional name and declared role
- Edges connecting nodes (using source/target naming convention)
- Containers (pools and lanes) with their members

Field Naming Convention:
- Edges use `source` and `target`
- For compatibility with BPMN exports, `from`/`to` and `sourceRef`/`targetRef`
  are accepted on input and converted
- Kinds may be given with or without the `bpmn:` prefix
"""

from enum import Enum
from typing import Optional, Any
from pydantic import BaseModel, Field, field_validator, model_validator
import uuid

BPMN_PREFIX = "bpmn:"


class NodeFamily(str, Enum):
    """Broad families of flow nodes."""
    TASK = "task"
    GATEWAY = "gateway"
    EVENT = "event"
    ARTIFACT = "artifact"  # Data objects, annotations: never placed in lanes
    OTHER = "other"  # Kinds the core does not model: kept in place, never vote


class NodeKind(str, Enum):
    """Node kinds the core understands; anything else parses to UNKNOWN."""
    # Tasks
    TASK = "bpmn:Task"
    USER_TASK = "bpmn:UserTask"
    MANUAL_TASK = "bpmn:ManualTask"
    SERVICE_TASK = "bpmn:ServiceTask"
    SCRIPT_TASK = "bpmn:ScriptTask"
    BUSINESS_RULE_TASK = "bpmn:BusinessRuleTask"
    SEND_TASK = "bpmn:SendTask"
    RECEIVE_TASK = "bpmn:ReceiveTask"
    CALL_ACTIVITY = "bpmn:CallActivity"
    SUB_PROCESS = "bpmn:SubProcess"
    # Gateways
    EXCLUSIVE_GATEWAY = "bpmn:ExclusiveGateway"
    PARALLEL_GATEWAY = "bpmn:ParallelGateway"
    INCLUSIVE_GATEWAY = "bpmn:InclusiveGateway"
    EVENT_BASED_GATEWAY = "bpmn:EventBasedGateway"
    # Events
    START_EVENT = "bpmn:StartEvent"
    END_EVENT = "bpmn:EndEvent"
    INTERMEDIATE_CATCH_EVENT = "bpmn:IntermediateCatchEvent"
    INTERMEDIATE_THROW_EVENT = "bpmn:IntermediateThrowEvent"
    BOUNDARY_EVENT = "bpmn:BoundaryEvent"
    # Artifacts
    DATA_OBJECT = "bpmn:DataObjectReference"
    DATA_STORE = "bpmn:DataStoreReference"
    TEXT_ANNOTATION = "bpmn:TextAnnotation"
    # Anything else (ComplexGateway, Transaction, vendor extensions)
    UNKNOWN = "unknown"

    @classmethod
    def _missing_(cls, value: Any) -> Optional["NodeKind"]:
        # 'UserTask', 'usertask' and 'bpmn:usertask' all resolve to USER_TASK
        if not isinstance(value, str):
            return None
        text = value.strip().lower()
        if not text.startswith(BPMN_PREFIX):
            text = BPMN_PREFIX + text
        for member in cls:
            if member.value.lower() == text:
                return member
        return cls.UNKNOWN

    @classmethod
    def parse(cls, value: Any) -> "NodeKind":
        """Parse a kind, accepting values without the `bpmn:` prefix."""
        if isinstance(value, cls):
            return value
        return cls(str(value).strip())

    @property
    def family(self) -> NodeFamily:
        return NODE_FAMILIES[self]

    @property
    def is_gateway(self) -> bool:
        return self.family is NodeFamily.GATEWAY

    @property
    def is_flow_control(self) -> bool:
        """Gateways and events route the flow rather than doing work."""
        return self.family in (NodeFamily.GATEWAY, NodeFamily.EVENT)

    @property
    def is_assignable(self) -> bool:
        """Whether a node of this kind can live in a lane."""
        return self.family in (NodeFamily.TASK, NodeFamily.GATEWAY, NodeFamily.EVENT)


NODE_FAMILIES: dict[NodeKind, NodeFamily] = {
    NodeKind.TASK: NodeFamily.TASK,
    NodeKind.USER_TASK: NodeFamily.TASK,
    NodeKind.MANUAL_TASK: NodeFamily.TASK,
    NodeKind.SERVICE_TASK: NodeFamily.TASK,
    NodeKind.SCRIPT_TASK: NodeFamily.TASK,
    NodeKind.BUSINESS_RULE_TASK: NodeFamily.TASK,
    NodeKind.SEND_TASK: NodeFamily.TASK,
    NodeKind.RECEIVE_TASK: NodeFamily.TASK,
    NodeKind.CALL_ACTIVITY: NodeFamily.TASK,
    NodeKind.SUB_PROCESS: NodeFamily.TASK,
    NodeKind.EXCLUSIVE_GATEWAY: NodeFamily.GATEWAY,
    NodeKind.PARALLEL_GATEWAY: NodeFamily.GATEWAY,
    NodeKind.INCLUSIVE_GATEWAY: NodeFamily.GATEWAY,
    NodeKind.EVENT_BASED_GATEWAY: NodeFamily.GATEWAY,
    NodeKind.START_EVENT: NodeFamily.EVENT,
    NodeKind.END_EVENT: NodeFamily.EVENT,
    NodeKind.INTERMEDIATE_CATCH_EVENT: NodeFamily.EVENT,
    NodeKind.INTERMEDIATE_THROW_EVENT: NodeFamily.EVENT,
    NodeKind.BOUNDARY_EVENT: NodeFamily.EVENT,
    NodeKind.DATA_OBJECT: NodeFamily.ARTIFACT,
    NodeKind.DATA_STORE: NodeFamily.ARTIFACT,
    NodeKind.TEXT_ANNOTATION: NodeFamily.ARTIFACT,
    NodeKind.UNKNOWN: NodeFamily.OTHER,
}


class EdgeKind(str, Enum):
    """Kinds of connections between nodes."""
    SEQUENCE = "sequence"
    MESSAGE = "message"
    ASSOCIATION = "association"


class ContainerKind(str, Enum):
    """Two-level container hierarchy: pools own lanes."""
    POOL = "pool"
    LANE = "lane"


class EventTrigger(str, Enum):
    """Event definitions attached to an event node."""
    NONE = "none"
    MESSAGE = "message"
    TIMER = "timer"
    ERROR = "error"
    ESCALATION = "escalation"
    SIGNAL = "signal"
    CONDITIONAL = "conditional"
    COMPENSATE = "compensate"
    LINK = "link"
    TERMINATE = "terminate"
    CANCEL = "cancel"


def _strip_bpmn(value: str) -> str:
    """'bpmn:SequenceFlow' -> 'sequenceflow', 'LinkEventDefinition' -> 'linkeventdefinition'."""
    text = value.strip()
    if text.startswith(BPMN_PREFIX):
        text = text[len(BPMN_PREFIX):]
    return text.lower()


_EDGE_KIND_ALIASES = {
    "sequenceflow": EdgeKind.SEQUENCE,
    "messageflow": EdgeKind.MESSAGE,
}

_CONTAINER_KIND_ALIASES = {
    "participant": ContainerKind.POOL,
}


def generate_node_id() -> str:
    """Generate a unique node ID."""
    return f"n{uuid.uuid4().hex[:8]}"


def generate_edge_id() -> str:
    """Generate a unique edge ID."""
    return f"e{uuid.uuid4().hex[:8]}"


def extract_primary_role(
    role: Optional[str],
    assignee: Optional[str],
    candidate_groups: Optional[str],
) -> Optional[str]:
    """
    Pick the declared role of a node.

    An explicit role wins, then the assignee, then the first of the
    comma-separated candidate groups. Returns None when nothing is declared.
    """
    for value in (role, assignee):
        if value and value.strip():
            return value.strip()
    if candidate_groups:
        first = candidate_groups.split(",")[0].strip()
        if first:
            return first
    return None


class NodeSpec(BaseModel):
    """A flow node as supplied by the caller."""
    id: str = Field(default_factory=generate_node_id)
    kind: NodeKind = NodeKind.TASK
    name: Optional[str] = None
    role: Optional[str] = None
    assignee: Optional[str] = None
    candidate_groups: Optional[str] = None
    triggers: list[EventTrigger] = Field(default_factory=list)
    link_name: Optional[str] = None
    container_id: Optional[str] = None

    @model_validator(mode='before')
    @classmethod
    def convert_legacy_fields(cls, data: Any) -> Any:
        """Accept 'type' for 'kind' and 'lane_id'/'parent_id' for 'container_id'."""
        if isinstance(data, dict):
            data = dict(data)
            if 'type' in data and 'kind' not in data:
                data['kind'] = data.pop('type')
            for legacy in ('lane_id', 'laneId', 'parent_id', 'containerId'):
                if legacy in data and 'container_id' not in data:
                    data['container_id'] = data.pop(legacy)
            if 'candidateGroups' in data and 'candidate_groups' not in data:
                data['candidate_groups'] = data.pop('candidateGroups')
            if 'linkName' in data and 'link_name' not in data:
                data['link_name'] = data.pop('linkName')
        return data

    @field_validator('kind', mode='before')
    @classmethod
    def parse_kind(cls, value: Any) -> Any:
        return NodeKind.parse(value)

    @field_validator('candidate_groups', mode='before')
    @classmethod
    def join_candidate_groups(cls, value: Any) -> Any:
        if isinstance(value, (list, tuple)):
            return ",".join(str(v) for v in value)
        return value

    @field_validator('triggers', mode='before')
    @classmethod
    def parse_triggers(cls, value: Any) -> Any:
        """Accept 'bpmn:LinkEventDefinition' style names and a single string."""
        if value is None:
            return []
        if isinstance(value, str):
            value = [value]
        parsed = []
        for item in value:
            if isinstance(item, EventTrigger):
                parsed.append(item)
                continue
            text = _strip_bpmn(str(item))
            if text.endswith("eventdefinition"):
                text = text[:-len("eventdefinition")]
            parsed.append(text)
        return parsed

    @property
    def declared_role(self) -> Optional[str]:
        return extract_primary_role(self.role, self.assignee, self.candidate_groups)


class EdgeSpec(BaseModel):
    """
    An edge connecting two nodes.

    Uses `source` and `target` as canonical field names.
    """
    id: str = Field(default_factory=generate_edge_id)
    kind: EdgeKind = EdgeKind.SEQUENCE
    source: str
    target: str
    has_condition: bool = False

    @model_validator(mode='before')
    @classmethod
    def convert_legacy_fields(cls, data: Any) -> Any:
        """Convert legacy 'from'/'to' and BPMN 'sourceRef'/'targetRef' fields."""
        if isinstance(data, dict):
            data = dict(data)
            for legacy in ('from', 'from_node', 'sourceRef', 'source_id'):
                if legacy in data and 'source' not in data:
                    data['source'] = data.pop(legacy)
            for legacy in ('to', 'to_node', 'targetRef', 'target_id'):
                if legacy in data and 'target' not in data:
                    data['target'] = data.pop(legacy)
            if 'type' in data and 'kind' not in data:
                data['kind'] = data.pop('type')
            if 'has_condition' not in data:
                condition = data.pop('condition', None) or data.pop('condition_expression', None)
                data['has_condition'] = bool(condition)
        return data

    @field_validator('kind', mode='before')
    @classmethod
    def parse_kind(cls, value: Any) -> Any:
        if isinstance(value, str):
            text = _strip_bpmn(value)
            return _EDGE_KIND_ALIASES.get(text, text)
        return value


class ContainerSpec(BaseModel):
    """A pool or a lane."""
    id: str
    name: Optional[str] = None
    kind: ContainerKind = ContainerKind.LANE
    parent_id: Optional[str] = None
    members: list[str] = Field(default_factory=list)

    @model_validator(mode='before')
    @classmethod
    def convert_legacy_fields(cls, data: Any) -> Any:
        """Accept 'type', 'parentId' and BPMN 'flowNodeRef' names."""
        if isinstance(data, dict):
            data = dict(data)
            if 'type' in data and 'kind' not in data:
                data['kind'] = data.pop('type')
            for legacy in ('parentId', 'pool_id', 'participant_id'):
                if legacy in data and 'parent_id' not in data:
                    data['parent_id'] = data.pop(legacy)
            for legacy in ('flowNodeRef', 'member_node_ids', 'node_ids'):
                if legacy in data and 'members' not in data:
                    data['members'] = data.pop(legacy)
        return data

    @field_validator('kind', mode='before')
    @classmethod
    def parse_kind(cls, value: Any) -> Any:
        if isinstance(value, str):
            text = _strip_bpmn(value)
            return _CONTAINER_KIND_ALIASES.get(text, text)
        return value


class ProcessModel(BaseModel):
    """
    The complete process model handed to the core.
    A fresh snapshot is built from it for every call.
    """
    id: str = Field(default_factory=lambda: f"process-{uuid.uuid4().hex[:8]}")
    name: str = "Untitled Process"
    nodes: list[NodeSpec] = Field(default_factory=list)
    edges: list[EdgeSpec] = Field(default_factory=list)
    containers: list[ContainerSpec] = Field(default_factory=list)

    def to_json_dict(self) -> dict:
        """Convert to JSON-serializable dict with canonical field names."""
        return self.model_dump(mode="json", exclude_none=True)

    @classmethod
    def from_json_dict(cls, data: dict) -> "ProcessModel":
        """Create a ProcessModel from a JSON dict (handles legacy field names)."""
        return cls(
            id=data.get('id', f"process-{uuid.uuid4().hex[:8]}"),
            name=data.get('name', 'Untitled Process'),
            nodes=[NodeSpec(**n) for n in data.get('nodes', [])],
            edges=[EdgeSpec(**e) for e in data.get('edges', [])],
            containers=[ContainerSpec(**c) for c in data.get('containers', [])],
        )
