"""Entry point: python -m folio"""

import argparse
import json
import sys
from datetime import datetime, timezone
from pathlib import Path

import redis
import structlog
from pydantic import ValidationError

from folio.config import AppConfig, Secrets, load_config
from folio.errors import FolioError
from folio.logging_config import configure_logging
from folio.planner.snapshot import load_snapshot, plan_snapshot
from folio.rebalancing import Folio
from folio.state.redis_backend import RedisStateBackend

logger = structlog.get_logger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="folio",
        description="Plan basket rebalances for a folio",
    )
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        "--config",
        type=Path,
        default=Path("config/settings.yaml"),
        help="Settings file (defaults apply if it does not exist)",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    plan = subparsers.add_parser("plan", parents=[common], help="Compute trades and start_rebalance arguments")
    plan.add_argument("snapshot", type=Path, help="YAML basket snapshot")

    state = subparsers.add_parser("state", parents=[common], help="Inspect or clear a folio's saved state in Redis")
    state.add_argument("action", choices=["show", "clear"])
    state.add_argument("folio_id", help="Folio identifier")
    state.add_argument("--now", type=int, default=None, help="Unix time to evaluate at (default: now)")
    return parser


def run_plan(args, config: AppConfig) -> int:
    try:
        snapshot = load_snapshot(args.snapshot)
        result = plan_snapshot(snapshot, config.planner)
    except (FolioError, ValidationError, OSError) as e:
        logger.error("cli.plan_failed", snapshot=str(args.snapshot), error=str(e))
        print(f"Planning failed: {e}", file=sys.stderr)
        return 1

    print(json.dumps(result, indent=2))
    return 0


def run_state(args, config: AppConfig) -> int:
    backend = RedisStateBackend(args.folio_id, config.store, Secrets())
    try:
        if args.action == "clear":
            backend.delete_state()
            print(f"Cleared {backend.state_key}")
            return 0

        folio = Folio(args.folio_id, config.auction)
        if not folio.restore(backend):
            print(f"No saved state for {args.folio_id}", file=sys.stderr)
            return 1

        now = args.now if args.now is not None else int(datetime.now(timezone.utc).timestamp())
        rebalance = folio.rebalance
        summary = {
            "folio_id": args.folio_id,
            "lifecycle": folio.state_of(now).value,
            "total_supply": folio.total_supply,
            "nonce": rebalance.nonce if rebalance else None,
            "limit_span": folio.limit_span(),
            "auctions": len(folio.state.auctions),
        }
        print(json.dumps(summary, indent=2))
        return 0
    except (redis.RedisError, ValidationError) as e:
        logger.error("cli.state_failed", folio_id=args.folio_id, action=args.action, error=str(e))
        print(f"State {args.action} failed: {e}", file=sys.stderr)
        return 1
    finally:
        backend.close()


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)

    config = load_config(args.config) if args.config.exists() else AppConfig()
    configure_logging(config.logging)

    if args.command == "state":
        return run_state(args, config)
    return run_plan(args, config)


if __name__ == "__main__":
    sys.exit(main())
