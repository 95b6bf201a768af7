#!/usr/bin/env python3
"""
Verify pending predictions for matches finished in a date window.

Usage:
    DATABASE_URL=<url> python3 scripts/verify_pending.py --from 2024-01-01 --to 2024-01-31
    DATABASE_URL=<url> python3 scripts/verify_pending.py --from 2024-01-01 --to 2024-01-31 --dry-run
    DATABASE_URL=<url> python3 scripts/verify_pending.py --from 2024-01-01 --to 2024-01-31 --post-analysis

This script:
1. Finds fixtures with unresolved predictions whose match finished in the window
2. Verifies them one at a time through the engine (paced)
3. With --post-analysis, also backfills missing post-match narratives

Options:
    --from / --to     Inclusive date window (YYYY-MM-DD)
    --dry-run         Only list candidates
    --post-analysis   Run the post-analysis backfill after verification
"""

import argparse
import asyncio
import logging
import os
import sys

# Ensure orchestrator package is importable
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


async def run(date_from: str, date_to: str, dry_run: bool = False, post_analysis: bool = False) -> dict:
    from orchestrator.database import close_db
    from orchestrator.service import JobOrchestrator

    stats = {"verifiable": 0, "verified": 0, "post_analysis_candidates": 0, "post_analysed": 0}
    orchestrator = JobOrchestrator.from_settings()
    try:
        candidates = await orchestrator.find_verifiable_candidates(date_from, date_to)
        stats["verifiable"] = len(candidates)
        for c in candidates:
            logger.info(f"  {c.target_id}: {c.home_label} vs {c.away_label} ({c.match_date:%Y-%m-%d})")

        if candidates and not dry_run:
            summary = await orchestrator.run_verification([c.target_id for c in candidates])
            stats["verified"] = summary.processed_count

        if post_analysis:
            missing = await orchestrator.find_missing_post_analysis(date_from, date_to)
            stats["post_analysis_candidates"] = len(missing)
            if missing and not dry_run:
                summary = await orchestrator.run_post_analysis([m.target_id for m in missing])
                stats["post_analysed"] = summary.processed_count
    finally:
        await orchestrator.close()
        await close_db()

    return stats


def main():
    parser = argparse.ArgumentParser(description="Verify pending predictions in a date window")
    parser.add_argument("--from", dest="date_from", required=True, help="YYYY-MM-DD")
    parser.add_argument("--to", dest="date_to", required=True, help="YYYY-MM-DD")
    parser.add_argument("--dry-run", action="store_true")
    parser.add_argument("--post-analysis", action="store_true")
    args = parser.parse_args()

    stats = asyncio.run(run(args.date_from, args.date_to, args.dry_run, args.post_analysis))

    print("\n" + "=" * 50)
    print("VERIFICATION SUMMARY")
    print("=" * 50)
    for key, value in stats.items():
        print(f"  {key}: {value}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
