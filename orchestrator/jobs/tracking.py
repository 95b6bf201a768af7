"""Run tracking for operator batches.

Every reclaim sweep and verification/post-analysis batch leaves a JobRun row
so the ops view can show when each one last ran and how it went.

Usage:
    from orchestrator.jobs.tracking import record_job_run

    start = datetime.now(timezone.utc)
    try:
        # ... batch logic ...
        await record_job_run(session, "reclaim_stuck_jobs", "ok", start, metrics={"count": 3})
    except Exception as e:
        await record_job_run(session, "reclaim_stuck_jobs", "error", start, error=str(e))
        raise
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from orchestrator.models import JobRun

logger = logging.getLogger(__name__)


async def record_job_run(
    session: AsyncSession,
    job_name: str,
    status: str,
    started_at: datetime,
    error: Optional[str] = None,
    metrics: Optional[dict] = None,
) -> JobRun:
    """
    Record a batch execution.

    Args:
        session: Database session.
        job_name: reclaim_stuck_jobs, verification_batch, post_analysis_batch, ...
        status: ok, partial or error.
        started_at: When the batch started.
        error: Error message if failed.
        metrics: Optional batch-specific metrics dict.
    """
    finished_at = datetime.now(timezone.utc)
    duration_ms = int((finished_at - started_at).total_seconds() * 1000)

    job_run = JobRun(
        job_name=job_name,
        status=status,
        started_at=started_at,
        finished_at=finished_at,
        duration_ms=duration_ms,
        error_message=error,
        metrics=metrics,
    )

    session.add(job_run)
    await session.commit()

    logger.debug(f"[JOB_TRACKING] Recorded {job_name} run: {status} in {duration_ms}ms")
    return job_run


async def get_last_run(session: AsyncSession, job_name: str) -> Optional[JobRun]:
    """Most recent run of a batch, regardless of status."""
    result = await session.execute(
        select(JobRun)
        .where(JobRun.job_name == job_name)
        .order_by(JobRun.finished_at.desc(), JobRun.id.desc())
        .limit(1)
    )
    return result.scalars().first()


async def cleanup_old_runs(session: AsyncSession, days_to_keep: int = 30) -> int:
    """Delete runs older than `days_to_keep` days. Returns rows deleted."""
    cutoff = datetime.now(timezone.utc) - timedelta(days=days_to_keep)
    result = await session.execute(delete(JobRun).where(JobRun.created_at < cutoff))
    await session.commit()
    deleted = result.rowcount or 0
    if deleted > 0:
        logger.info(f"[JOB_TRACKING] Cleaned up {deleted} old job runs")
    return deleted
