"""
Process Core API - FastAPI Application

Stateless HTTP surface over the process core. Every request carries the
full process model; a fresh snapshot is built per request and nothing is
kept between requests. Applying a redistribution returns the updated lane
membership; writing it back to the authoritative model is the caller's job.
"""
import logging
import os
from typing import Optional

from fastapi import FastAPI, HTTPException
from pydantic import BaseModel, Field

from .classifier import classify
from .config import AnalysisConfig
from .diagnostics import check_gateway_balance, run_diagnostics
from .errors import SnapshotError, ValidationError
from .issues import issue_summary
from .models import ProcessModel
from .redistribution import Strategy, redistribute, find_pool_with_lanes
from .scoring import score_assignment
from .snapshot import ProcessSnapshot, build_snapshot

logger = logging.getLogger(__name__)

API_HOST = os.environ.get("PROCESS_CORE_HOST", "127.0.0.1")
API_PORT = int(os.environ.get("PROCESS_CORE_PORT", "8766"))


# --- Request models ---

class AnalysisRequest(BaseModel):
    model: ProcessModel
    config: Optional[AnalysisConfig] = None


class DiagnosticsRequest(AnalysisRequest):
    split_id: Optional[str] = None  # Only check the balance of this split


class ClassifyRequest(AnalysisRequest):
    pool_id: Optional[str] = None
    order_hint: dict[str, float] = Field(default_factory=dict)


class ScoreRequest(AnalysisRequest):
    pool_id: Optional[str] = None
    assignment: Optional[dict[str, str]] = None


class RedistributeRequest(AnalysisRequest):
    strategy: Strategy = Strategy.ROLE_BASED
    pool_id: Optional[str] = None
    dry_run: bool = False
    validate_lanes: bool = Field(default=False, alias="validate")
    lane_id: Optional[str] = None
    node_ids: Optional[list[str]] = None
    order_hint: dict[str, float] = Field(default_factory=dict)
    reposition: bool = True

    model_config = {"populate_by_name": True}


def _config(request: AnalysisRequest) -> AnalysisConfig:
    return request.config or AnalysisConfig.from_env()


def _snapshot(model: ProcessModel) -> ProcessSnapshot:
    try:
        return build_snapshot(model)
    except SnapshotError as e:
        raise HTTPException(status_code=422, detail=str(e))


def _pool_scope(snapshot: ProcessSnapshot, pool_id: Optional[str]):
    """Lanes and nodes of a pool; the first pool with 2+ lanes when omitted."""
    if pool_id is None:
        pool = find_pool_with_lanes(snapshot)
        if pool is None:
            return snapshot.lanes(), [n for n in snapshot.nodes if n.is_assignable]
        pool_id = pool.id
    pool = snapshot.container(pool_id)
    if pool is None or pool.is_lane:
        raise HTTPException(status_code=404, detail=f"Pool not found: {pool_id}")
    return snapshot.lanes(pool_id), snapshot.nodes_in_pool(pool_id)


# --- FastAPI App ---

app = FastAPI(
    title="Process Core API",
    description="Structural diagnostics and lane organization for process diagrams",
    version="1.0.0",
)


# --- Health Check ---

@app.get("/api/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "ok"}


# --- Diagnostics ---

@app.post("/api/diagnostics")
async def diagnose(request: DiagnosticsRequest):
    """
    Run the structural checks over the model.

    Returns a list of issues (errors, warnings, info) and a summary.
    """
    snapshot = _snapshot(request.model)
    config = _config(request)
    if request.split_id is not None:
        if not snapshot.has_node(request.split_id):
            raise HTTPException(status_code=404, detail=f"Node not found: {request.split_id}")
        issues = check_gateway_balance(snapshot, request.split_id, config.max_branch_depth)
    else:
        issues = run_diagnostics(snapshot, config)

    return {
        "success": True,
        "issues": [issue.to_dict() for issue in issues],
        "summary": issue_summary(issues),
    }


# --- Lane organization ---

@app.post("/api/lanes/classify")
async def classify_lanes(request: ClassifyRequest):
    """Propose a lane for every node of a pool without changing anything."""
    snapshot = _snapshot(request.model)
    config = _config(request)
    lanes, nodes = _pool_scope(snapshot, request.pool_id)
    if not lanes:
        raise HTTPException(status_code=400, detail="No lanes to classify into")

    classification = classify(
        snapshot, lanes, nodes,
        order_hint=request.order_hint,
        config=config,
        initial=snapshot.assignment(),
    )
    report = score_assignment(snapshot, classification.assignment, lanes, nodes, config)
    return {
        "success": True,
        **classification.to_dict(),
        "coherence": report.to_dict(),
    }


@app.post("/api/lanes/score")
async def score_lanes(request: ScoreRequest):
    """Score the current (or a supplied) lane assignment."""
    snapshot = _snapshot(request.model)
    config = _config(request)
    lanes, nodes = _pool_scope(snapshot, request.pool_id)
    report = score_assignment(snapshot, request.assignment, lanes, nodes, config)
    return {"success": True, **report.to_dict()}


@app.post("/api/lanes/redistribute")
async def redistribute_lanes(request: RedistributeRequest):
    """
    Rebalance nodes across the lanes of a pool.

    With dry_run the plan is returned without changes. Otherwise the
    response carries the resulting lane membership so the caller can
    persist it, and `reposition_due` when moved shapes need re-placing.
    """
    snapshot = _snapshot(request.model)
    try:
        result = redistribute(
            snapshot,
            strategy=request.strategy.value,
            pool_id=request.pool_id,
            dry_run=request.dry_run,
            validate=request.validate_lanes,
            lane_id=request.lane_id,
            node_ids=request.node_ids,
            order_hint=request.order_hint,
            reposition=request.reposition,
            config=_config(request),
        )
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))

    response = result.to_dict()
    if not request.dry_run:
        response["lanes"] = {
            lane.id: list(lane.member_node_ids) for lane in snapshot.lanes(result.pool_id)
        }
    return response


def main():
    """Run the API with uvicorn."""
    import uvicorn
    logger.info("Starting Process Core API on %s:%d", API_HOST, API_PORT)
    uvicorn.run(app, host=API_HOST, port=API_PORT)


if __name__ == "__main__":
    main()
