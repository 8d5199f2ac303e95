"""
Process Core - Graph reasoning for business-process diagrams.

This package provides the analyses used by both the HTTP API and the CLI:
structural diagnostics over the control flow, and a lane-organization
engine that proposes, scores and applies node -> lane assignments.
"""

from .models import (
    # Enums
    NodeKind,
    NodeFamily,
    EdgeKind,
    ContainerKind,
    EventTrigger,
    # Input models
    NodeSpec,
    EdgeSpec,
    ContainerSpec,
    ProcessModel,
)

from .errors import ProcessCoreError, ValidationError, SnapshotError
from .config import AnalysisConfig
from .snapshot import Node, Edge, Container, ProcessSnapshot, build_snapshot
from .issues import Issue, IssueCode, IssueSeverity, issue_summary
from .diagnostics import (
    check_gateway_balance,
    check_implicit_merge,
    check_dangling_boundary,
    check_unpaired_link,
    run_diagnostics,
)
from .classifier import Classification, classify
from .scoring import CoherenceReport, score_assignment
from .redistribution import Move, RedistributionResult, Strategy, redistribute

__all__ = [
    # Enums
    "NodeKind",
    "NodeFamily",
    "EdgeKind",
    "ContainerKind",
    "EventTrigger",
    # Input models
    "NodeSpec",
    "EdgeSpec",
    "ContainerSpec",
    "ProcessModel",
    # Errors
    "ProcessCoreError",
    "ValidationError",
    "SnapshotError",
    # Config
    "AnalysisConfig",
    # Snapshot
    "Node",
    "Edge",
    "Container",
    "ProcessSnapshot",
    "build_snapshot",
    # Issues
    "Issue",
    "IssueCode",
    "IssueSeverity",
    "issue_summary",
    # Diagnostics
    "check_gateway_balance",
    "check_implicit_merge",
    "check_dangling_boundary",
    "check_unpaired_link",
    "run_diagnostics",
    # Lane organization
    "Classification",
    "classify",
    "CoherenceReport",
    "score_assignment",
    "Move",
    "RedistributionResult",
    "Strategy",
    "redistribute",
]
