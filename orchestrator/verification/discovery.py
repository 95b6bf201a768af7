"""Candidate discovery for outcome verification and post-analysis backfill.

Both discoveries start from the local store and only then ask the external
provider about exactly those fixtures. The authoritative match date and
status live in the provider, and the local candidate set is small, so this is
far cheaper than scanning the provider by date range first.

Nothing is cached: matches change status between calls, so every call
re-derives the result from current external state.
"""

import logging
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
from typing import Optional, Union

from sqlalchemy import select

from orchestrator.config import get_settings
from orchestrator.etl.base import MatchDetailsProvider, MatchMeta
from orchestrator.models import AnalysisRun, Prediction

logger = logging.getLogger(__name__)

settings = get_settings()

DateLike = Union[date, datetime, str]


@dataclass
class VerificationCandidate:
    target_id: int
    match_date: datetime
    home_label: str
    away_label: str


@dataclass
class CandidateSummary:
    run_id: str
    target_id: int
    match_date: datetime
    home_label: str
    away_label: str
    outcome: Optional[dict] = None

    def to_dict(self) -> dict:
        return {
            "run_id": self.run_id,
            "target_id": self.target_id,
            "match_date": self.match_date.isoformat(),
            "home_label": self.home_label,
            "away_label": self.away_label,
            "outcome": self.outcome,
        }


def as_date(value: DateLike) -> date:
    """Accept a date, a datetime or an ISO 'YYYY-MM-DD' string."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value)[:10])


def in_window(match_date: datetime, date_from: date, date_to: date) -> bool:
    """Inclusive calendar-day window check on the UTC date."""
    if match_date.tzinfo is not None:
        match_date = match_date.astimezone(timezone.utc)
    return date_from <= match_date.date() <= date_to


async def _fetch_meta(provider: MatchDetailsProvider, target_ids: list[int]) -> dict[int, MatchMeta]:
    # A provider failure propagates; fixtures it could not resolve are simply absent
    metas = await provider.get_fixtures_by_ids(target_ids)
    return {meta.external_id: meta for meta in metas}


async def find_verifiable_candidates(
    session_factory,
    provider: MatchDetailsProvider,
    date_from: DateLike,
    date_to: DateLike,
) -> list[VerificationCandidate]:
    """
    Targets with unresolved predictions whose match finished inside the window.

    Steps: pending predictions (local) -> batch match details (external) ->
    keep finished (FT/AET/PEN) matches dated within [date_from, date_to].
    """
    start, end = as_date(date_from), as_date(date_to)

    async with session_factory() as session:
        result = await session.execute(
            select(Prediction.target_id)
            .where(Prediction.verification_status == "pending")
            .distinct()
        )
        pending_ids = sorted({int(row[0]) for row in result.all()})

    if not pending_ids:
        logger.info("[VERIFY] No pending predictions")
        return []

    metas = await _fetch_meta(provider, pending_ids)

    candidates = []
    for target_id in pending_ids:
        meta = metas.get(target_id)
        if meta is None:
            logger.debug(f"[VERIFY] No external details for target {target_id}, skipping")
            continue
        if not meta.is_finished or not in_window(meta.date, start, end):
            continue
        candidates.append(VerificationCandidate(
            target_id=target_id,
            match_date=meta.date,
            home_label=meta.home_name,
            away_label=meta.away_name,
        ))

    logger.info(
        f"[VERIFY] {len(candidates)} verifiable of {len(pending_ids)} pending targets "
        f"({start} .. {end})"
    )
    return candidates


async def find_verifiable(
    session_factory,
    provider: MatchDetailsProvider,
    date_from: DateLike,
    date_to: DateLike,
) -> list[int]:
    """Target ids eligible for outcome verification in the window."""
    candidates = await find_verifiable_candidates(session_factory, provider, date_from, date_to)
    return [c.target_id for c in candidates]


async def find_missing_post_analysis(
    session_factory,
    provider: MatchDetailsProvider,
    date_from: DateLike,
    date_to: DateLike,
    lookback_days: Optional[int] = None,
) -> list[CandidateSummary]:
    """
    Runs with a resolved outcome but no post-match narrative, for matches played in the window.

    A run is usually created days before its match, so the local search starts
    `lookback_days` before `date_from`; the real window filter uses the
    external match date.
    """
    start, end = as_date(date_from), as_date(date_to)
    lookback = settings.POST_ANALYSIS_LOOKBACK_DAYS if lookback_days is None else lookback_days
    created_from = datetime.combine(start - timedelta(days=lookback), time.min, tzinfo=timezone.utc)
    created_to = datetime.combine(end + timedelta(days=1), time.min, tzinfo=timezone.utc)

    async with session_factory() as session:
        result = await session.execute(
            select(AnalysisRun)
            .where(AnalysisRun.actual_outcome.isnot(None))
            .where(AnalysisRun.post_match_analysis.is_(None))
            .where(AnalysisRun.created_at >= created_from)
            .where(AnalysisRun.created_at < created_to)
            .order_by(AnalysisRun.created_at.asc())
        )
        runs = list(result.scalars().all())

    # JSON null and SQL NULL both mean "not written yet"
    runs = [run for run in runs if run.actual_outcome and not run.post_match_analysis]
    if not runs:
        logger.info("[POST_ANALYSIS] No runs missing post-match analysis")
        return []

    metas = await _fetch_meta(provider, sorted({run.target_id for run in runs}))

    summaries = []
    for run in runs:
        meta = metas.get(run.target_id)
        if meta is None or not in_window(meta.date, start, end):
            continue
        summaries.append(CandidateSummary(
            run_id=run.id,
            target_id=run.target_id,
            match_date=meta.date,
            home_label=meta.home_name,
            away_label=meta.away_name,
            outcome=run.actual_outcome,
        ))

    logger.info(f"[POST_ANALYSIS] {len(summaries)} candidates of {len(runs)} runs ({start} .. {end})")
    return summaries
