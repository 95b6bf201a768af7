"""Stuck job reclaim sweep.

Operator escape hatch for zombie jobs: rows the engine stopped updating
without ever writing a terminal status. `reclaim_all` is blunt:
one conditional UPDATE over every non-terminal row, no age or owner filter,
which can also fail a job that is legitimately still running. It is only
ever invoked by hand.

`reclaim_older_than` is the gentler variant and only touches jobs created
before a cutoff.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

from sqlalchemy import func, update

from orchestrator.config import get_settings
from orchestrator.errors import BulkReclaimApplied
from orchestrator.jobs.states import TERMINAL_STATUSES, JobStatus
from orchestrator.jobs.tracking import record_job_run
from orchestrator.models import AnalysisJob
from orchestrator.telemetry import record_reclaim

logger = logging.getLogger(__name__)

settings = get_settings()


class StuckJobReclaimer:
    """Forces non-terminal analysis jobs to failed."""

    JOB_NAME = "reclaim_stuck_jobs"

    def __init__(self, session_factory, message: Optional[str] = None):
        self.session_factory = session_factory
        self.message = message or settings.STUCK_JOB_MESSAGE
        self.last_result: Optional[BulkReclaimApplied] = None

    async def sweep(self, older_than: Optional[timedelta] = None) -> BulkReclaimApplied:
        """Run one bulk update and return how many rows it affected."""
        now = datetime.now(timezone.utc)

        stmt = (
            update(AnalysisJob)
            .where(func.lower(func.trim(AnalysisJob.status)).notin_(TERMINAL_STATUSES))
            .values(
                status=JobStatus.FAILED.value,
                error_message=self.message,
                updated_at=now,
            )
            .execution_options(synchronize_session=False)
        )
        if older_than is not None:
            stmt = stmt.where(AnalysisJob.created_at < now - older_than)

        mode = "all" if older_than is None else "older_than"
        async with self.session_factory() as session:
            try:
                result = await session.execute(stmt)
                await session.commit()
            except Exception as e:
                await session.rollback()
                logger.error(f"[RECLAIM] Sweep failed: {e}")
                await record_job_run(session, self.JOB_NAME, "error", now, error=str(e))
                raise

            count = result.rowcount or 0
            applied = BulkReclaimApplied(
                count=count,
                older_than_seconds=older_than.total_seconds() if older_than is not None else None,
            )
            await record_job_run(
                session,
                self.JOB_NAME,
                "ok",
                now,
                metrics={"count": count, "mode": mode, "older_than_seconds": applied.older_than_seconds},
            )

        record_reclaim(mode, count)
        self.last_result = applied
        logger.info(f"[RECLAIM] {count} stuck jobs forced to failed (mode={mode})")
        return applied

    async def reclaim_all(self) -> int:
        """Fail every non-terminal job regardless of age. Returns the count affected."""
        return (await self.sweep()).count

    async def reclaim_older_than(self, age: timedelta) -> int:
        """Fail non-terminal jobs created more than `age` ago. Returns the count affected."""
        if age.total_seconds() <= 0:
            raise ValueError("age must be positive")
        return (await self.sweep(older_than=age)).count
