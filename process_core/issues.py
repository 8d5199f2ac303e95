"""
Issue records returned by diagnostics and scoring.

Issues are data, never exceptions: the caller decides whether a finding is
an error, a warning or something to ignore.
"""

from dataclasses import dataclass, field
from enum import Enum


class IssueSeverity(str, Enum):
    """Severity levels for issues."""
    ERROR = "error"      # Will misbehave at runtime (deadlock, lost token)
    WARNING = "warning"  # Ambiguous or fragile, should review
    INFO = "info"        # Informational, may be intentional


class IssueCode(str, Enum):
    """Stable identifiers for every finding the core can produce."""
    # Reachability diagnostics
    UNBALANCED_SPLIT = "unbalanced-split"
    DIVERGENT_JOINS = "divergent-joins"
    IMPLICIT_MERGE = "implicit-merge"
    DANGLING_BOUNDARY_EVENT = "dangling-boundary-event"
    UNPAIRED_LINK_EVENT = "unpaired-link-event"
    # Lane coherence
    ZIGZAG_FLOW = "zigzag-flow"
    LOW_COHERENCE = "low-coherence"
    ELEMENTS_NOT_IN_LANE = "elements-not-in-lane"
    SINGLE_ELEMENT_LANE = "single-element-lane"


# Lane issues that redistribution can do something about
ACTIONABLE_LANE_CODES = frozenset({
    IssueCode.ZIGZAG_FLOW,
    IssueCode.LOW_COHERENCE,
    IssueCode.ELEMENTS_NOT_IN_LANE,
})


@dataclass
class Issue:
    """A single finding, carrying the node/edge ids it is about."""
    code: IssueCode
    severity: IssueSeverity
    message: str
    node_ids: list[str] = field(default_factory=list)
    edge_ids: list[str] = field(default_factory=list)

    @property
    def node_id(self) -> str | None:
        """The primary node the issue is reported on."""
        return self.node_ids[0] if self.node_ids else None

    @property
    def actionable(self) -> bool:
        return self.code in ACTIONABLE_LANE_CODES

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        result = {
            "code": self.code.value,
            "severity": self.severity.value,
            "message": self.message,
        }
        if self.node_ids:
            result["node_ids"] = list(self.node_ids)
        if self.edge_ids:
            result["edge_ids"] = list(self.edge_ids)
        return result


def issue_summary(issues: list[Issue]) -> dict:
    """
    Create a summary of issues.

    Args:
        issues: List of issues

    Returns:
        Dictionary with counts by severity and by code
    """
    by_code: dict[str, int] = {}
    for issue in issues:
        by_code[issue.code.value] = by_code.get(issue.code.value, 0) + 1

    errors = len([i for i in issues if i.severity == IssueSeverity.ERROR])
    return {
        "total": len(issues),
        "errors": errors,
        "warnings": len([i for i in issues if i.severity == IssueSeverity.WARNING]),
        "info": len([i for i in issues if i.severity == IssueSeverity.INFO]),
        "by_code": by_code,
        "valid": errors == 0,
    }
