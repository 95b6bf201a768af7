"""Sequential batch scheduler for analysis jobs.

Targets are admitted one at a time by default: the next target is submitted
only after the in-flight job reaches a terminal status. The engine's rate
limits are unknown, so admission concurrency is a setting (BATCH_CONCURRENCY)
and FIFO order is kept for the default of 1.

A failure of one target (submission error, failed or insufficient_data job,
vanished row) is counted and the queue moves on.
"""

import asyncio
import logging
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, Iterable, Optional

from orchestrator.config import get_settings
from orchestrator.errors import SubmissionError, TerminalFailure
from orchestrator.jobs.poller import JobPoller
from orchestrator.jobs.states import JobStatus, normalize_status, user_message
from orchestrator.jobs.store import JobStore
from orchestrator.models import AnalysisJob
from orchestrator.telemetry import set_queue_depth

logger = logging.getLogger(__name__)

settings = get_settings()


@dataclass
class BatchQueueEntry:
    target_id: int
    enqueued_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


@dataclass
class InFlight:
    target_id: int
    job_id: Optional[str] = None
    poller: Optional[JobPoller] = None


@dataclass
class SchedulerStatus:
    queue_depth: int
    current_target_id: Optional[int]
    completed: int
    failed: int
    in_flight: list[int]
    enqueued: int

    def to_dict(self) -> dict:
        return {
            "queue_depth": self.queue_depth,
            "current_target_id": self.current_target_id,
            "completed": self.completed,
            "failed": self.failed,
            "in_flight": list(self.in_flight),
            "enqueued": self.enqueued,
        }


class BatchScheduler:
    """FIFO queue with bounded in-flight slots over a JobStore."""

    def __init__(
        self,
        store: JobStore,
        concurrency: Optional[int] = None,
        poll_interval: Optional[float] = None,
        on_update: Optional[Callable[[AnalysisJob], object]] = None,
    ):
        self.store = store
        self.concurrency = settings.BATCH_CONCURRENCY if concurrency is None else concurrency
        if self.concurrency < 1:
            raise ValueError("concurrency must be >= 1")
        self.poll_interval = poll_interval
        self.on_update = on_update

        self._queue: deque[BatchQueueEntry] = deque()
        self._in_flight: dict[int, InFlight] = {}
        self._tasks: set[asyncio.Task] = set()
        self._slot_seq = 0
        self._idle = asyncio.Event()
        self._idle.set()

        self.completed = 0
        self.failed = 0
        self.enqueued = 0
        self.failures: list[TerminalFailure | SubmissionError] = []

    def enqueue_many(self, target_ids: Iterable[int]) -> int:
        """Append targets to the queue and start admitting them. Returns the number added."""
        added = 0
        for target_id in target_ids:
            self._queue.append(BatchQueueEntry(target_id=int(target_id)))
            added += 1
        self.enqueued += added
        set_queue_depth(len(self._queue))
        if added:
            logger.info(f"[BATCH] Enqueued {added} targets (depth={len(self._queue)})")
            self._pump()
        return added

    def status(self) -> SchedulerStatus:
        in_flight = [slot.target_id for slot in self._in_flight.values()]
        return SchedulerStatus(
            queue_depth=len(self._queue),
            current_target_id=in_flight[0] if in_flight else None,
            completed=self.completed,
            failed=self.failed,
            in_flight=in_flight,
            enqueued=self.enqueued,
        )

    def cancel_queue(self) -> int:
        """Drop every pending entry. In-flight jobs keep being watched. Returns the number dropped."""
        dropped = len(self._queue)
        self._queue.clear()
        set_queue_depth(0)
        if dropped:
            logger.info(f"[BATCH] Queue cancelled, {dropped} pending targets dropped")
        if not self._in_flight:
            self._idle.set()
        return dropped

    @property
    def idle(self) -> bool:
        return not self._queue and not self._in_flight

    async def drain(self) -> SchedulerStatus:
        """Wait until the queue is empty and nothing is in flight."""
        await self._idle.wait()
        return self.status()

    async def close(self) -> None:
        """Drop the queue and stop watching in-flight jobs."""
        self.cancel_queue()
        for slot in list(self._in_flight.values()):
            if slot.poller is not None:
                slot.poller.cancel()
        for task in list(self._tasks):
            task.cancel()
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)

    def _pump(self) -> None:
        while self._queue and len(self._in_flight) < self.concurrency:
            entry = self._queue.popleft()
            set_queue_depth(len(self._queue))
            self._slot_seq += 1
            slot_key = self._slot_seq
            self._in_flight[slot_key] = InFlight(target_id=entry.target_id)
            self._idle.clear()
            task = asyncio.create_task(self._process(slot_key, entry), name=f"batch-{entry.target_id}")
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)
        if self.idle:
            self._idle.set()

    async def _process(self, slot_key: int, entry: BatchQueueEntry) -> None:
        slot = self._in_flight[slot_key]
        try:
            try:
                job_id = await self.store.submit(entry.target_id)
            except SubmissionError as e:
                self.failed += 1
                self.failures.append(e)
                logger.warning(f"[BATCH] Target {entry.target_id} failed to submit: {e}")
                return
            except asyncio.CancelledError:
                raise
            except Exception as e:
                self.failed += 1
                self.failures.append(SubmissionError(str(e), target_id=entry.target_id))
                logger.error(f"[BATCH] Target {entry.target_id} submit raised {type(e).__name__}: {e}")
                return

            slot.job_id = job_id
            slot.poller = JobPoller(
                self.store.fetch,
                job_id,
                on_update=self.on_update,
                interval=self.poll_interval,
                initial_status=JobStatus.QUEUED.value,
            ).start()
            job = await slot.poller.wait()

            if slot.poller.cancelled:
                return
            self._record_terminal(entry.target_id, job_id, job, slot.poller.vanished)
        finally:
            self._in_flight.pop(slot_key, None)
            self._pump()

    def _record_terminal(
        self,
        target_id: int,
        job_id: str,
        job: Optional[AnalysisJob],
        vanished: bool,
    ) -> None:
        status = normalize_status(job.status) if job is not None and not vanished else "vanished"
        if status == JobStatus.DONE.value:
            self.completed += 1
            logger.info(f"[BATCH] Target {target_id} done (job {job_id})")
            return

        self.failed += 1
        message = user_message(status, job.error_message if job is not None else None)
        if vanished:
            message = "Job record disappeared before reaching a terminal status."
        failure = TerminalFailure(job_id, status, message)
        self.failures.append(failure)
        logger.warning(f"[BATCH] Target {target_id} ended {status} (job {job_id}): {message}")
