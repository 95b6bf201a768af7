"""JobOrchestrator: the single entry point callers use.

Usage:
    orchestrator = JobOrchestrator.from_settings()
    job_id = await orchestrator.submit_one(1035037)
    job = await orchestrator.wait_for_job(job_id)

    orchestrator.enqueue_many([1035037, 1035038])
    await orchestrator.scheduler.drain()

    ids = await orchestrator.find_verifiable("2024-01-01", "2024-01-31")
    summary = await orchestrator.run_verification(ids)
"""

import asyncio
import logging
from datetime import timedelta
from typing import Iterable, Optional

from orchestrator.config import get_settings
from orchestrator.engine import EngineClient
from orchestrator.etl.api_football import APIFootballProvider
from orchestrator.etl.base import MatchDetailsProvider
from orchestrator.jobs.poller import JobPoller, UpdateFn
from orchestrator.jobs.reclaimer import StuckJobReclaimer
from orchestrator.jobs.scheduler import BatchScheduler, SchedulerStatus
from orchestrator.jobs.states import JobStatus, normalize_status
from orchestrator.jobs.store import JobStore
from orchestrator.jobs.tracking import cleanup_old_runs, get_last_run
from orchestrator.models import AnalysisJob, JobRun
from orchestrator.verification import discovery
from orchestrator.verification.runner import BatchRunner, VerificationSummary

logger = logging.getLogger(__name__)

settings = get_settings()


class JobOrchestrator:
    """Wires store, poller, scheduler, reclaimer and verification together."""

    def __init__(
        self,
        engine: EngineClient,
        provider: MatchDetailsProvider,
        session_factory,
        duplicate_policy: Optional[str] = None,
        poll_interval: Optional[float] = None,
        settle_delay: Optional[float] = None,
        concurrency: Optional[int] = None,
        pacing_seconds: Optional[float] = None,
    ):
        self.engine = engine
        self.provider = provider
        self.session_factory = session_factory
        self.poll_interval = settings.POLL_INTERVAL_SECONDS if poll_interval is None else poll_interval
        self.settle_delay = settings.POLL_SETTLE_DELAY_SECONDS if settle_delay is None else settle_delay

        self.store = JobStore(engine, session_factory, duplicate_policy=duplicate_policy)
        self.scheduler = BatchScheduler(self.store, concurrency=concurrency, poll_interval=self.poll_interval)
        self.reclaimer = StuckJobReclaimer(session_factory)
        self.runner = BatchRunner(engine, session_factory, pacing_seconds=pacing_seconds)

    @classmethod
    def from_settings(cls) -> "JobOrchestrator":
        from orchestrator.database import AsyncSessionLocal

        return cls(EngineClient(), APIFootballProvider(), AsyncSessionLocal)

    # Jobs

    async def submit_one(self, target_id: int, context: Optional[dict] = None) -> str:
        return await self.store.submit(target_id, context)

    def watch(self, job_id: str, on_update: Optional[UpdateFn] = None) -> JobPoller:
        """Start polling a job; the caller owns the returned poller and its cancel()."""
        return JobPoller(self.store.fetch, job_id, on_update=on_update, interval=self.poll_interval).start()

    async def wait_for_job(self, job_id: str, on_update: Optional[UpdateFn] = None) -> Optional[AnalysisJob]:
        """Poll until terminal; after "done", pause briefly before handing the report over."""
        poller = self.watch(job_id, on_update)
        try:
            job = await poller.wait()
        finally:
            poller.cancel()
        if job is not None and normalize_status(job.status) == JobStatus.DONE.value and self.settle_delay > 0:
            await asyncio.sleep(self.settle_delay)
        return job

    def enqueue_many(self, target_ids: Iterable[int]) -> int:
        return self.scheduler.enqueue_many(target_ids)

    def scheduler_status(self) -> SchedulerStatus:
        return self.scheduler.status()

    def cancel_queue(self) -> int:
        return self.scheduler.cancel_queue()

    async def reclaim_all(self) -> int:
        return await self.reclaimer.reclaim_all()

    async def reclaim_older_than(self, age: timedelta) -> int:
        return await self.reclaimer.reclaim_older_than(age)

    # Verification

    async def find_verifiable(self, date_from, date_to) -> list[int]:
        return await discovery.find_verifiable(self.session_factory, self.provider, date_from, date_to)

    async def find_verifiable_candidates(self, date_from, date_to) -> list[discovery.VerificationCandidate]:
        return await discovery.find_verifiable_candidates(
            self.session_factory, self.provider, date_from, date_to
        )

    async def run_verification(self, target_ids: Iterable[int]) -> VerificationSummary:
        return await self.runner.run_verification(target_ids)

    async def find_missing_post_analysis(self, date_from, date_to) -> list[discovery.CandidateSummary]:
        return await discovery.find_missing_post_analysis(
            self.session_factory, self.provider, date_from, date_to
        )

    async def run_post_analysis(self, target_ids: Iterable[int]) -> VerificationSummary:
        return await self.runner.run_post_analysis(target_ids)

    # Run history

    async def last_run(self, job_name: str) -> Optional[JobRun]:
        async with self.session_factory() as session:
            return await get_last_run(session, job_name)

    async def cleanup_runs(self, days_to_keep: Optional[int] = None) -> int:
        async with self.session_factory() as session:
            return await cleanup_old_runs(session, days_to_keep or settings.JOB_RUNS_DAYS_TO_KEEP)

    async def close(self) -> None:
        await self.scheduler.close()
        await self.engine.close()
        await self.provider.close()
