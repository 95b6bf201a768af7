"""Tests for background housekeeping jobs."""

from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import select

from orchestrator.housekeeping import prune_job_runs
from orchestrator.models import JobRun


class TestPruneJobRuns:
    @pytest.mark.asyncio
    async def test_removes_only_expired_runs(self, session_factory):
        now = datetime.now(timezone.utc)
        old = now - timedelta(days=10)
        async with session_factory() as session:
            session.add_all([
                JobRun(job_name="verification_batch", status="ok", started_at=old,
                       finished_at=old, duration_ms=1, created_at=old),
                JobRun(job_name="verification_batch", status="ok", started_at=now,
                       finished_at=now, duration_ms=1, created_at=now),
            ])
            await session.commit()

        deleted = await prune_job_runs(session_factory, days_to_keep=7)

        assert deleted == 1
        async with session_factory() as session:
            remaining = (await session.execute(select(JobRun))).scalars().all()
        assert len(remaining) == 1
