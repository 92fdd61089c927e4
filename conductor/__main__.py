"""Command-line entry point: `python -m conductor {run,weekly,reap}`."""

from __future__ import annotations

import argparse
import asyncio
import json
from datetime import timedelta

from conductor.config import settings
from conductor.db.runs import MongoRunStore
from conductor.logging import setup_logging
from conductor.recovery import reap_stale_runs
from conductor.scheduler import run_weekly_pipeline
from conductor.service import ConductorService, get_db


def _parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="conductor", description="Content production pipeline")
    sub = parser.add_subparsers(dest="command", required=True)

    run = sub.add_parser("run", help="Run the pipeline once for one practice")
    run.add_argument("--practice", required=True)
    run.add_argument("--org", required=True)
    run.add_argument("--trigger", choices=["manual", "scheduled"], default="manual")

    weekly = sub.add_parser("weekly", help="Run the pipeline for every active practice")
    weekly.add_argument("--max-concurrent", type=int, default=settings.MAX_CONCURRENT_RUNS)

    reap = sub.add_parser("reap", help="Fail runs left running by a crash")
    reap.add_argument("--minutes", type=int, default=settings.STALE_RUN_MINUTES)
    return parser.parse_args(argv)


async def _main(args: argparse.Namespace) -> object:
    if args.command == "reap":
        runs = MongoRunStore(get_db(settings))
        reaped = reap_stale_runs(runs, max_age=timedelta(minutes=args.minutes))
        return {"reaped": reaped}

    service = ConductorService()
    service.init_indexes()
    try:
        if args.command == "run":
            result = await service.conductor.run(args.practice, args.org, trigger=args.trigger)
            return result.to_external()
        outcomes = await run_weekly_pipeline(service.conductor, service.practices,
                                             max_concurrent_runs=args.max_concurrent)
        return {"triggered": len(outcomes), "results": [o.model_dump() for o in outcomes]}
    finally:
        await service.aclose()


def main(argv=None) -> None:
    setup_logging(settings.LOG_LEVEL)
    args = _parse_args(argv)
    print(json.dumps(asyncio.run(_main(args)), indent=2, default=str))


if __name__ == "__main__":
    main()
