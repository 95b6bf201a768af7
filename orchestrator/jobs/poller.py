"""Fixed-interval job status poller.

There is no push channel from the engine, so each watched job gets its own
poller task. The caller owns the poller and is the only one who can cancel it.

Usage:
    poller = JobPoller(store.fetch, job_id, on_update=handle_update).start()
    ...
    poller.cancel()           # immediate, idempotent
    last = await poller.wait()
"""

import asyncio
import inspect
import logging
from typing import Awaitable, Callable, Optional

from orchestrator.config import get_settings
from orchestrator.errors import PollError
from orchestrator.jobs.states import is_forward, is_terminal, normalize_status
from orchestrator.models import AnalysisJob
from orchestrator.telemetry import record_poll_error, record_terminal

logger = logging.getLogger(__name__)

settings = get_settings()

FetchFn = Callable[[str], Awaitable[Optional[AnalysisJob]]]
UpdateFn = Callable[[AnalysisJob], object]


class JobPoller:
    """Polls one job until it reaches a terminal status, vanishes, or is cancelled."""

    def __init__(
        self,
        fetch: FetchFn,
        job_id: str,
        on_update: Optional[UpdateFn] = None,
        interval: Optional[float] = None,
        initial_status: Optional[str] = None,
    ):
        self.fetch = fetch
        self.job_id = job_id
        self.on_update = on_update
        self.interval = settings.POLL_INTERVAL_SECONDS if interval is None else interval
        self.last_status = normalize_status(initial_status) or None
        self.last_job: Optional[AnalysisJob] = None
        self.vanished = False
        self.poll_errors = 0
        self._cancelled = False
        self._task: Optional[asyncio.Task] = None

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    @property
    def finished(self) -> bool:
        return self._task is not None and self._task.done()

    @property
    def terminal(self) -> bool:
        return self.vanished or is_terminal(self.last_status)

    def start(self) -> "JobPoller":
        if self._task is None and not self._cancelled:
            self._task = asyncio.create_task(self._run(), name=f"poll-{self.job_id}")
        return self

    def cancel(self) -> None:
        """Stop polling now. Safe to call repeatedly or after natural termination."""
        if self._cancelled:
            return
        self._cancelled = True
        if self._task is not None and not self._task.done():
            self._task.cancel()
        logger.debug(f"[POLLER] Cancelled job {self.job_id}")

    async def wait(self) -> Optional[AnalysisJob]:
        """Wait for the poller to stop; returns the last job observed (None if vanished early)."""
        if self._task is not None:
            try:
                await asyncio.shield(self._task)
            except asyncio.CancelledError:
                if not self._cancelled:
                    raise
        return self.last_job

    async def _run(self) -> None:
        while not self._cancelled:
            await asyncio.sleep(self.interval)
            if self._cancelled:
                return
            try:
                job = await self._fetch_once()
            except PollError as e:
                self.poll_errors += 1
                record_poll_error()
                logger.warning(f"[POLLER] {e} (retrying in {self.interval}s)")
                continue

            # Result of a fetch that completed after cancel(): discard
            if self._cancelled:
                return

            if job is None:
                self.vanished = True
                record_terminal("vanished")
                logger.warning(f"[POLLER] Job {self.job_id} no longer exists, stopping")
                return

            if str(job.id) != str(self.job_id):
                logger.warning(
                    f"[POLLER] Discarding result for job {job.id} on poller for {self.job_id}"
                )
                continue

            if await self._apply(job):
                return

    async def _fetch_once(self) -> Optional[AnalysisJob]:
        try:
            return await self.fetch(self.job_id)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            raise PollError(self.job_id, e) from e

    async def _apply(self, job: AnalysisJob) -> bool:
        """Record a fetched job; returns True when polling should stop."""
        status = normalize_status(job.status)

        if not is_forward(self.last_status, status):
            logger.warning(
                f"[POLLER] Ignoring backward transition {self.last_status} -> {status} "
                f"for job {self.job_id}"
            )
            return False

        self.last_job = job
        if status != self.last_status:
            logger.info(f"[POLLER] Job {self.job_id}: {self.last_status or '-'} -> {status}")
            self.last_status = status
            await self._notify(job)

        if is_terminal(status):
            record_terminal(status)
            return True
        return False

    async def _notify(self, job: AnalysisJob) -> None:
        if self.on_update is None or self._cancelled:
            return
        try:
            result = self.on_update(job)
            if inspect.isawaitable(result):
                await result
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.exception(f"[POLLER] on_update callback failed for job {self.job_id}: {e}")


def watch(
    fetch: FetchFn,
    job_id: str,
    on_update: Optional[UpdateFn] = None,
    interval: Optional[float] = None,
) -> JobPoller:
    """Start polling `job_id`. Call `.cancel()` on the result to stop."""
    return JobPoller(fetch, job_id, on_update=on_update, interval=interval).start()
