"""End-to-end tests for JobOrchestrator over an in-memory database."""

import asyncio
import time
from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy import update

from orchestrator.etl.base import MatchDetailsProvider, MatchMeta
from orchestrator.models import AnalysisJob, Prediction
from orchestrator.service import JobOrchestrator


class StaticProvider(MatchDetailsProvider):
    def __init__(self, metas):
        self.metas = {m.external_id: m for m in metas}

    async def get_fixtures_by_ids(self, fixture_ids):
        return [self.metas[i] for i in fixture_ids if i in self.metas]

    async def close(self):
        pass


def make_engine():
    engine = MagicMock()
    engine.create_analysis_job = AsyncMock(return_value={"job_id": "job-1"})
    engine.verify_predictions = AsyncMock(return_value={"success": True, "processed": 1, "details": []})
    engine.run_post_analysis = AsyncMock(return_value={"success": True})
    engine.close = AsyncMock()
    return engine


@pytest.fixture
def provider():
    return StaticProvider([
        MatchMeta(external_id=555, date=datetime(2024, 1, 15, 20, 0, tzinfo=timezone.utc), status="FT",
                  home_name="Nacional", away_name="Medellin"),
    ])


@pytest.fixture
def orchestrator(session_factory, provider):
    return JobOrchestrator(
        make_engine(), provider, session_factory,
        poll_interval=0.01, settle_delay=0.05, pacing_seconds=0,
    )


class TestJobFlow:
    @pytest.mark.asyncio
    async def test_submit_and_wait_with_settle_delay(self, orchestrator, session_factory):
        async with session_factory() as session:
            session.add(AnalysisJob(id="job-1", target_id=555, status="done"))
            await session.commit()

        job_id = await orchestrator.submit_one(555)
        started = time.monotonic()
        job = await orchestrator.wait_for_job(job_id)

        assert job.status == "done"
        assert time.monotonic() - started >= 0.05

    @pytest.mark.asyncio
    async def test_watch_can_be_cancelled(self, orchestrator, session_factory):
        async with session_factory() as session:
            session.add(AnalysisJob(id="job-2", target_id=1, status="analyzing"))
            await session.commit()

        poller = orchestrator.watch("job-2")
        await asyncio.sleep(0.1)
        poller.cancel()

        assert await poller.wait() is not None
        assert not poller.terminal

    @pytest.mark.asyncio
    async def test_reclaim_then_last_run(self, orchestrator, session_factory):
        async with session_factory() as session:
            session.add(AnalysisJob(id="job-3", target_id=1, status="ingesting"))
            await session.commit()

        assert await orchestrator.reclaim_all() == 1
        run = await orchestrator.last_run("reclaim_stuck_jobs")
        assert run.metrics["count"] == 1
        assert await orchestrator.cleanup_runs() == 0


class TestVerificationFlow:
    @pytest.mark.asyncio
    async def test_discover_then_verify(self, orchestrator, session_factory):
        async with session_factory() as session:
            session.add(Prediction(target_id=555, market="1X2", selection="home"))
            await session.commit()

        ids = await orchestrator.find_verifiable("2024-01-01", "2024-01-31")
        summary = await orchestrator.run_verification(ids)

        assert ids == [555]
        assert summary.processed_count == 1
        orchestrator.engine.verify_predictions.assert_awaited_once_with([555])

    @pytest.mark.asyncio
    async def test_verified_target_is_not_rediscovered(self, orchestrator, session_factory):
        async with session_factory() as session:
            session.add(Prediction(target_id=555, market="1X2", selection="home"))
            await session.commit()

        async def verify_and_mark(target_ids):
            async with session_factory() as session:
                await session.execute(
                    update(Prediction)
                    .where(Prediction.target_id.in_(target_ids))
                    .values(verification_status="verified", is_won=True,
                            result_verified_at=datetime.now(timezone.utc))
                )
                await session.commit()
            return {"success": True, "processed": len(target_ids), "details": []}

        orchestrator.engine.verify_predictions.side_effect = verify_and_mark

        first = await orchestrator.find_verifiable("2024-01-01", "2024-01-31")
        summary = await orchestrator.run_verification(first)
        second = await orchestrator.find_verifiable("2024-01-01", "2024-01-31")

        assert first == [555]
        assert summary.processed_count == 1
        assert second == []

    @pytest.mark.asyncio
    async def test_close(self, orchestrator):
        await orchestrator.close()
        orchestrator.engine.close.assert_awaited_once()
