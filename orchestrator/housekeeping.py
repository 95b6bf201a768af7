"""Background housekeeping: periodic pruning of the job run history.

Reclaim sweeps are never scheduled here; they stay operator-triggered.
"""

import logging
import os

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from orchestrator.config import get_settings
from orchestrator.database import AsyncSessionLocal
from orchestrator.jobs.tracking import cleanup_old_runs

logger = logging.getLogger(__name__)

settings = get_settings()

# Flag to prevent multiple scheduler instances (e.g., with --reload)
_scheduler_started = False
scheduler = AsyncIOScheduler()


async def prune_job_runs(session_factory=None, days_to_keep: int = None) -> int:
    """Delete job run rows older than the retention window."""
    try:
        async with (session_factory or AsyncSessionLocal)() as session:
            return await cleanup_old_runs(session, days_to_keep or settings.JOB_RUNS_DAYS_TO_KEEP)
    except Exception as e:
        logger.error(f"[HOUSEKEEPING] Job run cleanup failed: {e}")
        return 0


def start_scheduler() -> None:
    """Start the housekeeping scheduler once per process."""
    global _scheduler_started

    if _scheduler_started:
        logger.warning("Scheduler already started, skipping duplicate initialization")
        return

    # Uvicorn sets this env var in the reloader subprocess
    if os.environ.get("UVICORN_RELOADED"):
        logger.info("Skipping scheduler in reload subprocess")
        return

    scheduler.add_job(
        prune_job_runs,
        trigger=IntervalTrigger(hours=settings.HOUSEKEEPING_INTERVAL_HOURS),
        id="prune_job_runs",
        name="Job run history cleanup",
        replace_existing=True,
    )
    scheduler.start()
    _scheduler_started = True
    logger.info(f"Scheduler started (job run cleanup every {settings.HOUSEKEEPING_INTERVAL_HOURS}h)")


def stop_scheduler() -> None:
    """Stop the housekeeping scheduler."""
    global _scheduler_started
    if scheduler.running:
        scheduler.shutdown()
        _scheduler_started = False
        logger.info("Scheduler stopped")
