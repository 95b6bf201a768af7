#!/usr/bin/env python3
"""
Force stuck analysis jobs to failed.

Usage:
    DATABASE_URL=<url> python3 scripts/reclaim_stuck_jobs.py --yes
    DATABASE_URL=<url> python3 scripts/reclaim_stuck_jobs.py --older-than-minutes 60 --yes

Without --older-than-minutes EVERY non-terminal job is failed, including
jobs that may still be running. Use only when the engine has stopped
reporting progress.

Options:
    --older-than-minutes N   Only reclaim jobs created more than N minutes ago
    --yes                    Skip the confirmation prompt
"""

import argparse
import asyncio
import logging
import os
import sys
from datetime import timedelta

# Ensure orchestrator package is importable
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


async def run_reclaim(older_than_minutes: int = None) -> int:
    from orchestrator.database import AsyncSessionLocal, close_db
    from orchestrator.jobs.reclaimer import StuckJobReclaimer

    reclaimer = StuckJobReclaimer(AsyncSessionLocal)
    try:
        if older_than_minutes:
            return await reclaimer.reclaim_older_than(timedelta(minutes=older_than_minutes))
        return await reclaimer.reclaim_all()
    finally:
        await close_db()


def main():
    parser = argparse.ArgumentParser(description="Force stuck analysis jobs to failed")
    parser.add_argument("--older-than-minutes", type=int, default=None)
    parser.add_argument("--yes", action="store_true", help="Do not ask for confirmation")
    args = parser.parse_args()

    if args.older_than_minutes is not None and args.older_than_minutes <= 0:
        parser.error("--older-than-minutes must be positive")

    if not args.yes:
        scope = (
            f"created more than {args.older_than_minutes} minutes ago"
            if args.older_than_minutes else "regardless of age"
        )
        answer = input(f"Mark every running job {scope} as failed? [y/N] ")
        if answer.strip().lower() not in ("y", "yes"):
            print("Aborted.")
            return 1

    count = asyncio.run(run_reclaim(args.older_than_minutes))
    print(f"Cleanup complete: {count} zombie jobs reclaimed.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
