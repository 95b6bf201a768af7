"""Job store client: submit analysis jobs and read their persisted state.

Usage:
    store = JobStore(EngineClient(), AsyncSessionLocal)
    job_id = await store.submit(1035037)
    job = await store.fetch(job_id)   # None if the row is gone
"""

import logging
from typing import Optional

from sqlalchemy import func, select

from orchestrator.config import get_settings
from orchestrator.engine import EngineClient, EngineError
from orchestrator.errors import DuplicateJobError, SubmissionError
from orchestrator.jobs.states import TERMINAL_STATUSES
from orchestrator.models import AnalysisJob
from orchestrator.telemetry import record_submission

logger = logging.getLogger(__name__)

settings = get_settings()

ALLOW_DUPLICATE = "allow-duplicate"
REJECT_IF_ACTIVE = "reject-if-active"
DUPLICATE_POLICIES = (ALLOW_DUPLICATE, REJECT_IF_ACTIVE)


class JobStore:
    """Request shaping and response mapping over the engine and the jobs table. No retries."""

    def __init__(
        self,
        engine: EngineClient,
        session_factory,
        duplicate_policy: Optional[str] = None,
    ):
        policy = duplicate_policy or settings.DUPLICATE_POLICY
        if policy not in DUPLICATE_POLICIES:
            raise ValueError(f"Unknown duplicate policy: {policy!r}")
        self.engine = engine
        self.session_factory = session_factory
        self.duplicate_policy = policy

    def build_context(self, context: Optional[dict] = None) -> dict:
        body = {
            "timezone": settings.ANALYSIS_TIMEZONE,
            "last_n": settings.ANALYSIS_LAST_N,
            "threshold": settings.ANALYSIS_THRESHOLD,
        }
        if context:
            body.update(context)
        return body

    async def submit(self, target_id: int, context: Optional[dict] = None) -> str:
        """
        Ask the engine to start an analysis job for `target_id`.

        Returns:
            The job id assigned by the engine.

        Raises:
            DuplicateJobError: reject-if-active policy and the target has an active job.
            SubmissionError: the call failed or returned no job id.
        """
        if self.duplicate_policy == REJECT_IF_ACTIVE:
            active = await self.active_job_for(target_id)
            if active is not None:
                record_submission("duplicate")
                raise DuplicateJobError(target_id, active.id)

        body = {"api_fixture_id": target_id, **self.build_context(context)}
        try:
            data = await self.engine.create_analysis_job(body)
        except EngineError as e:
            record_submission("error")
            logger.error(f"[SUBMIT] Engine call failed for target {target_id}: {e}")
            raise SubmissionError(str(e), target_id=target_id) from e

        if isinstance(data, dict) and data.get("error"):
            record_submission("error")
            logger.error(f"[SUBMIT] Engine returned error for target {target_id}: {data['error']}")
            raise SubmissionError(str(data["error"]), target_id=target_id)

        job_id = data.get("job_id") if isinstance(data, dict) else None
        if not job_id:
            record_submission("error")
            logger.error(f"[SUBMIT] Unexpected response for target {target_id}: {data!r}")
            raise SubmissionError("Engine did not return a valid job_id", target_id=target_id)

        record_submission("ok")
        logger.info(f"[SUBMIT] Target {target_id} -> job {job_id}")
        return str(job_id)

    async def fetch(self, job_id: str) -> Optional[AnalysisJob]:
        """Current job row, or None when it does not exist."""
        async with self.session_factory() as session:
            return await session.get(AnalysisJob, job_id)

    async def active_job_for(self, target_id: int) -> Optional[AnalysisJob]:
        """Most recent non-terminal job for a target, if any."""
        async with self.session_factory() as session:
            result = await session.execute(
                select(AnalysisJob)
                .where(AnalysisJob.target_id == target_id)
                .where(func.lower(func.trim(AnalysisJob.status)).notin_(TERMINAL_STATUSES))
                .order_by(AnalysisJob.created_at.desc())
                .limit(1)
            )
            return result.scalars().first()
