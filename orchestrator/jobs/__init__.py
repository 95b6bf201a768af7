"""Analysis job lifecycle: state machine, store, poller, batch scheduler, reclaim sweep."""

from orchestrator.jobs.states import (
    JobStatus,
    TERMINAL_STATUSES,
    is_active,
    is_forward,
    is_terminal,
    user_message,
)
from orchestrator.jobs.store import JobStore, ALLOW_DUPLICATE, REJECT_IF_ACTIVE
from orchestrator.jobs.poller import JobPoller, watch
from orchestrator.jobs.scheduler import BatchScheduler, BatchQueueEntry, SchedulerStatus
from orchestrator.jobs.reclaimer import StuckJobReclaimer

__all__ = [
    "JobStatus",
    "TERMINAL_STATUSES",
    "is_active",
    "is_forward",
    "is_terminal",
    "user_message",
    "JobStore",
    "ALLOW_DUPLICATE",
    "REJECT_IF_ACTIVE",
    "JobPoller",
    "watch",
    "BatchScheduler",
    "BatchQueueEntry",
    "SchedulerStatus",
    "StuckJobReclaimer",
]
