"""Analysis job state machine (observed, not owned).

The engine drives every transition. This module only classifies statuses so
the poller, scheduler and reclaimer agree on what "finished" means.

    queued -> ingesting -> data_ready -> analyzing -> done
                                                   -> insufficient_data
                                                   -> failed

Any non-terminal state may jump straight to a terminal one. `data_ready` is
frequently skipped or seen only transiently.
"""

from enum import Enum
from typing import Optional


class JobStatus(str, Enum):
    QUEUED = "queued"
    INGESTING = "ingesting"
    DATA_READY = "data_ready"
    ANALYZING = "analyzing"
    DONE = "done"
    INSUFFICIENT_DATA = "insufficient_data"
    FAILED = "failed"


TERMINAL_STATUSES = frozenset({
    JobStatus.DONE.value,
    JobStatus.INSUFFICIENT_DATA.value,
    JobStatus.FAILED.value,
})

# Legacy label still written by older engine functions
LEGACY_STATUS_ALIASES = {
    "collecting_evidence": JobStatus.INGESTING.value,
}

_TERMINAL_RANK = 4

_STATUS_RANK = {
    JobStatus.QUEUED.value: 0,
    JobStatus.INGESTING.value: 1,
    JobStatus.DATA_READY.value: 2,
    JobStatus.ANALYZING.value: 3,
    JobStatus.DONE.value: _TERMINAL_RANK,
    JobStatus.INSUFFICIENT_DATA.value: _TERMINAL_RANK,
    JobStatus.FAILED.value: _TERMINAL_RANK,
}

# Unknown labels are in-progress: after queued, before terminal
_UNKNOWN_RANK = 1


def normalize_status(status: Optional[str]) -> str:
    """Lowercase, strip and map legacy aliases."""
    value = (status or "").strip().lower()
    return LEGACY_STATUS_ALIASES.get(value, value)


def is_terminal(status: Optional[str]) -> bool:
    return normalize_status(status) in TERMINAL_STATUSES


def is_active(status: Optional[str]) -> bool:
    """True for every known or unknown non-terminal label."""
    return not is_terminal(status)


def status_rank(status: Optional[str]) -> int:
    return _STATUS_RANK.get(normalize_status(status), _UNKNOWN_RANK)


def is_forward(previous: Optional[str], current: Optional[str]) -> bool:
    """
    Whether `previous -> current` is a legal observed move.

    Staying put is legal. Leaving a terminal state never is, and neither is
    moving to an earlier stage.
    """
    prev = normalize_status(previous)
    curr = normalize_status(current)
    if prev == curr or not prev:
        return True
    if prev in TERMINAL_STATUSES:
        return False
    return status_rank(curr) >= status_rank(prev)


def user_message(status: Optional[str], error_message: Optional[str] = None) -> str:
    """Short caller-facing message for a status."""
    value = normalize_status(status)
    if value == JobStatus.DONE.value:
        return "Analysis completed."
    if value == JobStatus.INSUFFICIENT_DATA.value:
        return "Not enough data available for this fixture yet. Try again closer to kickoff."
    if value == JobStatus.FAILED.value:
        return f"Analysis failed: {error_message}" if error_message else "Analysis failed."
    return "Analysis in progress."
