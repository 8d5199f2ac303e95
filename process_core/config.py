"""
Analysis configuration.

Defaults match the values the lane tooling has always used. Every field
can be overridden from the environment (PROCESS_CORE_* variables), the same
way the backend reads its hook directories.
"""

import os
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from .models import NodeKind

DEFAULT_LOW_COHERENCE_THRESHOLD = 70
DEFAULT_MAX_BRANCH_DEPTH = 25
DEFAULT_VOTING_PASSES = 3

DEFAULT_HUMAN_LANE_HINTS = ["human", "manual", "user", "review", "support"]
DEFAULT_AUTOMATED_LANE_HINTS = ["auto", "system", "service", "script", "external"]

ENV_PREFIX = "PROCESS_CORE_"


def _split_csv(value: str) -> list[str]:
    return [part.strip().lower() for part in value.split(",") if part.strip()]


class AnalysisConfig(BaseModel):
    """Tunable knobs for diagnostics, classification and scoring."""
    low_coherence_threshold: int = Field(default=DEFAULT_LOW_COHERENCE_THRESHOLD, ge=0, le=100)
    max_branch_depth: int = Field(default=DEFAULT_MAX_BRANCH_DEPTH, ge=1)
    voting_passes: int = Field(default=DEFAULT_VOTING_PASSES, ge=1)
    human_lane_hints: list[str] = Field(default_factory=lambda: list(DEFAULT_HUMAN_LANE_HINTS))
    automated_lane_hints: list[str] = Field(default_factory=lambda: list(DEFAULT_AUTOMATED_LANE_HINTS))
    # Joins of these kinds wait for a token on every incoming branch
    balance_gateway_kinds: list[NodeKind] = Field(
        default_factory=lambda: [NodeKind.PARALLEL_GATEWAY, NodeKind.INCLUSIVE_GATEWAY]
    )

    @field_validator("human_lane_hints", "automated_lane_hints", mode="before")
    @classmethod
    def parse_hints(cls, value):
        """Accept a comma-separated string as well as a list."""
        if isinstance(value, str):
            return _split_csv(value)
        return [str(v).strip().lower() for v in value]

    @field_validator("balance_gateway_kinds", mode="before")
    @classmethod
    def parse_gateway_kinds(cls, value):
        if isinstance(value, str):
            value = value.split(",")
        kinds = [NodeKind.parse(v) for v in value if str(v).strip()]
        for kind in kinds:
            if not kind.is_gateway:
                raise ValueError(f"{kind.value} is not a gateway kind")
        return kinds

    @classmethod
    def from_env(cls, environ: Optional[dict] = None) -> "AnalysisConfig":
        """
        Build a config from PROCESS_CORE_* environment variables.

        Recognized variables:
        - PROCESS_CORE_LOW_COHERENCE_THRESHOLD
        - PROCESS_CORE_MAX_BRANCH_DEPTH
        - PROCESS_CORE_VOTING_PASSES
        - PROCESS_CORE_HUMAN_LANE_HINTS (comma-separated)
        - PROCESS_CORE_AUTOMATED_LANE_HINTS (comma-separated)
        - PROCESS_CORE_BALANCE_GATEWAY_KINDS (comma-separated node kinds)
        """
        env = os.environ if environ is None else environ
        values: dict = {}
        for field_name in cls.model_fields:
            raw = env.get(f"{ENV_PREFIX}{field_name.upper()}")
            if raw is None:
                continue
            values[field_name] = raw
        return cls(**values)
