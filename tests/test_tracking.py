"""Tests for batch run tracking."""

from datetime import datetime, timedelta, timezone

import pytest

from orchestrator.jobs.tracking import cleanup_old_runs, get_last_run, record_job_run
from orchestrator.models import JobRun


class TestJobRuns:
    @pytest.mark.asyncio
    async def test_record_and_get_last(self, session_factory):
        start = datetime.now(timezone.utc)
        async with session_factory() as session:
            await record_job_run(session, "verification_batch", "ok", start, metrics={"total": 1})
            await record_job_run(session, "verification_batch", "partial", start)
            last = await get_last_run(session, "verification_batch")

        assert last.status == "partial"
        assert last.duration_ms >= 0

    @pytest.mark.asyncio
    async def test_get_last_run_unknown(self, session_factory):
        async with session_factory() as session:
            assert await get_last_run(session, "nothing") is None

    @pytest.mark.asyncio
    async def test_cleanup_old_runs(self, session_factory):
        old = datetime.now(timezone.utc) - timedelta(days=45)
        async with session_factory() as session:
            session.add(JobRun(
                job_name="reclaim_stuck_jobs", status="ok", started_at=old,
                finished_at=old, duration_ms=1, created_at=old,
            ))
            await session.commit()
            await record_job_run(session, "reclaim_stuck_jobs", "ok", datetime.now(timezone.utc))

            deleted = await cleanup_old_runs(session, days_to_keep=30)
            last = await get_last_run(session, "reclaim_stuck_jobs")

        assert deleted == 1
        assert last is not None
