"""Database models using SQLModel."""

import logging
from datetime import datetime, timezone
from typing import Optional
from uuid import uuid4

from pydantic import BaseModel, ValidationError
from sqlalchemy import JSON, Column, DateTime
from sqlmodel import Field, SQLModel

logger = logging.getLogger(__name__)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _timestamp(index: bool = False, nullable: bool = False) -> Column:
    # Explicit tz-aware column; every stored timestamp is UTC
    return Column(DateTime(timezone=True), index=index, nullable=nullable)


class JobProgress(BaseModel):
    """Advisory progress snapshot written by the engine (display only)."""

    step: str = ""
    completeness_score: float = 0
    fetched_items: int = 0
    total_items: int = 0
    details: Optional[str] = None
    missing_data: Optional[list[str]] = None


class AnalysisJob(SQLModel, table=True):
    """
    Analysis job row, created by the engine on submit and mutated only by it.

    Status flow: queued -> ingesting -> data_ready -> analyzing ->
    done | insufficient_data | failed.
    """

    __tablename__ = "analysis_jobs"

    id: str = Field(default_factory=lambda: str(uuid4()), primary_key=True, max_length=64)
    target_id: int = Field(index=True, description="API-Football fixture ID")
    status: str = Field(default="queued", max_length=32, index=True)

    progress: Optional[dict] = Field(
        default=None, sa_column=Column(JSON(none_as_null=True)), description="Best-effort engine progress"
    )
    completeness_score: int = Field(default=0, description="0-100, advisory")
    estimated_calls: int = Field(default=0, description="Estimated units of remote work")
    actual_calls: int = Field(default=0, description="Units of remote work consumed")

    error_message: Optional[str] = Field(default=None, description="Set when status == failed")

    created_at: datetime = Field(default_factory=utc_now, sa_column=_timestamp(index=True))
    updated_at: Optional[datetime] = Field(default_factory=utc_now, sa_column=_timestamp(nullable=True))

    @property
    def progress_info(self) -> Optional[JobProgress]:
        """Parsed progress, or None when absent or malformed."""
        if not self.progress:
            return None
        try:
            return JobProgress.model_validate(self.progress)
        except ValidationError as e:
            logger.debug(f"Ignoring malformed progress for job {self.id}: {e}")
            return None


class AnalysisRun(SQLModel, table=True):
    """Finished analysis report; post-match fields are filled by verification."""

    __tablename__ = "analysis_runs"

    id: str = Field(default_factory=lambda: str(uuid4()), primary_key=True, max_length=64)
    job_id: Optional[str] = Field(default=None, foreign_key="analysis_jobs.id", index=True)
    target_id: int = Field(index=True, description="API-Football fixture ID")

    actual_outcome: Optional[dict] = Field(
        default=None, sa_column=Column(JSON(none_as_null=True)), description="{score, status, winner}"
    )
    post_match_analysis: Optional[dict] = Field(
        default=None, sa_column=Column(JSON(none_as_null=True)), description="Post-mortem narrative"
    )

    created_at: datetime = Field(default_factory=utc_now, sa_column=_timestamp(index=True))


class Prediction(SQLModel, table=True):
    """A single market prediction produced by an analysis run."""

    __tablename__ = "predictions"

    id: str = Field(default_factory=lambda: str(uuid4()), primary_key=True, max_length=64)
    target_id: int = Field(index=True, description="API-Football fixture ID")
    analysis_run_id: Optional[str] = Field(default=None, foreign_key="analysis_runs.id", index=True)

    market: str = Field(max_length=50, description="'1X2', 'OU2.5', 'BTTS', ...")
    selection: str = Field(max_length=100)
    probability: Optional[float] = Field(default=None)
    confidence: Optional[float] = Field(default=None, description="0-100")

    is_won: Optional[bool] = Field(default=None, description="NULL until verified")
    verification_status: str = Field(default="pending", max_length=20, index=True)
    result_verified_at: Optional[datetime] = Field(default=None, sa_column=_timestamp(nullable=True))

    created_at: datetime = Field(default_factory=utc_now, sa_column=_timestamp())


class JobRun(SQLModel, table=True):
    """Execution record of an operator batch (reclaim, verification, backfill)."""

    __tablename__ = "job_runs"

    id: Optional[int] = Field(default=None, primary_key=True)
    job_name: str = Field(max_length=100, index=True)
    status: str = Field(max_length=20, description="ok | error | partial")
    started_at: datetime = Field(sa_column=_timestamp())
    finished_at: datetime = Field(sa_column=_timestamp())
    duration_ms: int
    error_message: Optional[str] = Field(default=None)
    metrics: Optional[dict] = Field(default=None, sa_column=Column(JSON(none_as_null=True)))
    created_at: datetime = Field(default_factory=utc_now, sa_column=_timestamp(index=True))
