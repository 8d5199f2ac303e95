"""
Exceptions raised by the process core.

Structural findings (unbalanced splits, implicit merges, ...) are never
raised; they are returned as Issue records. Only caller mistakes and
broken input models end up here.
"""


class ProcessCoreError(Exception):
    """Base class for all process core errors."""


class ValidationError(ProcessCoreError):
    """The caller asked for something that cannot be done (nothing was changed)."""


class SnapshotError(ProcessCoreError):
    """The supplied process model violates a graph or container invariant."""
