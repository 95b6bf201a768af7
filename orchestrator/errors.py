"""Error taxonomy for job orchestration."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional


class OrchestratorError(RuntimeError):
    """Base class for orchestration errors."""


class SubmissionError(OrchestratorError):
    """Raised when a job could not be submitted (no job id obtained)."""

    def __init__(self, message: str, target_id: Optional[int] = None):
        super().__init__(message)
        self.target_id = target_id


class DuplicateJobError(SubmissionError):
    """Raised under the reject-if-active policy when the target already has an active job."""

    def __init__(self, target_id: int, active_job_id: str):
        super().__init__(
            f"Target {target_id} already has active job {active_job_id}", target_id=target_id
        )
        self.active_job_id = active_job_id


class PollError(OrchestratorError):
    """Transient failure while fetching job status. Polling continues on the next tick."""

    def __init__(self, job_id: str, cause: BaseException):
        super().__init__(f"Poll of job {job_id} failed: {cause}")
        self.job_id = job_id
        self.cause = cause


class TerminalFailure(OrchestratorError):
    """A job reached failed or insufficient_data."""

    def __init__(self, job_id: str, status: str, message: str):
        super().__init__(message)
        self.job_id = job_id
        self.status = status

    @property
    def retryable(self) -> bool:
        return self.status == "insufficient_data"


@dataclass
class BulkReclaimApplied:
    """Outcome of a reclaim sweep. Informational, never raised."""

    count: int
    older_than_seconds: Optional[float] = None
    applied_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
