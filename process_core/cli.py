#!/usr/bin/env python3
"""Process core CLI - run diagnostics and lane tools over a JSON process model."""

import argparse
import json
import logging
import sys

import pydantic

from .classifier import classify
from .config import AnalysisConfig
from .diagnostics import check_gateway_balance, run_diagnostics
from .errors import ProcessCoreError
from .issues import issue_summary
from .models import ProcessModel
from .redistribution import Strategy, find_pool_with_lanes, redistribute
from .scoring import score_assignment
from .snapshot import build_snapshot

logger = logging.getLogger(__name__)


def _json_out(data, code=0):
    print(json.dumps(data))
    sys.exit(code)


def _error_out(message):
    _json_out({"status": "error", "error": message}, code=1)


def _parse_json_arg(value):
    """Parse a JSON argument, or return None when absent."""
    if value is None:
        return None
    try:
        return json.loads(value)
    except json.JSONDecodeError as e:
        _error_out(f"Invalid JSON argument: {e}")


def _load_model(args):
    """Read the process model from --model or stdin."""
    try:
        if args.model and args.model != "-":
            with open(args.model) as f:
                data = json.load(f)
        else:
            data = json.load(sys.stdin)
    except OSError as e:
        _error_out(f"Cannot read model: {e}")
    except json.JSONDecodeError as e:
        _error_out(f"Model is not valid JSON: {e}")
    return ProcessModel.from_json_dict(data)


def _pool_scope(snapshot, pool_id):
    if pool_id is None:
        pool = find_pool_with_lanes(snapshot)
        if pool is None:
            return snapshot.lanes(), [n for n in snapshot.nodes if n.is_assignable]
        pool_id = pool.id
    pool = snapshot.container(pool_id)
    if pool is None or pool.is_lane:
        _error_out(f"Pool not found: {pool_id}")
    return snapshot.lanes(pool_id), snapshot.nodes_in_pool(pool_id)


# ── Diagnostics ──────────────────────────────────────────────────────────────

def cmd_diagnose(args, snapshot, config):
    if args.split_id:
        if not snapshot.has_node(args.split_id):
            _error_out(f"Node not found: {args.split_id}")
        issues = check_gateway_balance(snapshot, args.split_id, config.max_branch_depth)
    else:
        issues = run_diagnostics(snapshot, config)

    _json_out({
        "success": True,
        "issues": [issue.to_dict() for issue in issues],
        "summary": issue_summary(issues),
    })


# ── Lanes ────────────────────────────────────────────────────────────────────

def cmd_classify(args, snapshot, config):
    lanes, nodes = _pool_scope(snapshot, args.pool_id)
    if not lanes:
        _error_out("No lanes to classify into")
    order_hint = _parse_json_arg(args.order_hint) or {}
    classification = classify(
        snapshot, lanes, nodes,
        order_hint=order_hint,
        config=config,
        initial=snapshot.assignment(),
    )
    report = score_assignment(snapshot, classification.assignment, lanes, nodes, config)
    _json_out({"success": True, **classification.to_dict(), "coherence": report.to_dict()})


def cmd_score(args, snapshot, config):
    lanes, nodes = _pool_scope(snapshot, args.pool_id)
    report = score_assignment(snapshot, lanes=lanes, nodes=nodes, config=config)
    _json_out({"success": True, **report.to_dict()})


def cmd_redistribute(args, snapshot, config):
    result = redistribute(
        snapshot,
        strategy=args.strategy,
        pool_id=args.pool_id,
        dry_run=args.dry_run,
        validate=args.validate,
        lane_id=args.lane_id,
        node_ids=_parse_json_arg(args.node_ids),
        order_hint=_parse_json_arg(args.order_hint),
        reposition=not args.no_reposition,
        config=config,
    )
    data = result.to_dict()
    if not args.dry_run:
        data["lanes"] = {
            lane.id: list(lane.member_node_ids) for lane in snapshot.lanes(result.pool_id)
        }
    _json_out(data)


# ── Main ─────────────────────────────────────────────────────────────────────

def main(argv=None):
    parser = argparse.ArgumentParser(description="Process core CLI")
    parser.add_argument("--verbose", "-v", action="store_true", help="Log analysis steps to stderr")
    sub = parser.add_subparsers(dest="command", required=True)

    def add_command(name):
        p = sub.add_parser(name)
        p.add_argument("--model", default=None, help="Process model JSON file (default: stdin)")
        return p

    p = add_command("diagnose")
    p.add_argument("--split-id", default=None)

    p = add_command("classify")
    p.add_argument("--pool-id", default=None)
    p.add_argument("--order-hint", default=None, help='JSON object, e.g. {"task1": 0}')

    p = add_command("score")
    p.add_argument("--pool-id", default=None)

    p = add_command("redistribute")
    p.add_argument("--strategy", default=Strategy.ROLE_BASED.value,
                   choices=[s.value for s in Strategy])
    p.add_argument("--pool-id", default=None)
    p.add_argument("--dry-run", action="store_true")
    p.add_argument("--validate", action="store_true")
    p.add_argument("--lane-id", default=None)
    p.add_argument("--node-ids", default=None, help='JSON list, e.g. ["task1", "task2"]')
    p.add_argument("--order-hint", default=None)
    p.add_argument("--no-reposition", action="store_true")

    args = parser.parse_args(argv)

    if args.verbose:
        logging.basicConfig(level=logging.DEBUG, stream=sys.stderr,
                            format="%(levelname)s %(name)s: %(message)s")

    cmd_map = {
        "diagnose": cmd_diagnose,
        "classify": cmd_classify,
        "score": cmd_score,
        "redistribute": cmd_redistribute,
    }

    try:
        model = _load_model(args)
        snapshot = build_snapshot(model)
        config = AnalysisConfig.from_env()
        cmd_map[args.command](args, snapshot, config)
    except pydantic.ValidationError as e:
        _error_out(f"Invalid process model: {e}")
    except ProcessCoreError as e:
        logger.debug("Command %s failed", args.command, exc_info=True)
        _error_out(str(e))


if __name__ == "__main__":
    main()
