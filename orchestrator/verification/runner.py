"""Sequential, paced batch runner for verification and post-analysis.

Items are sent to the engine one chunk at a time (chunk size 1 by default)
with a fixed pause between calls to stay under external rate limits. An
exception on one item is recorded in its result and the batch carries on.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Iterable, Optional

from orchestrator.config import get_settings
from orchestrator.engine import EngineClient
from orchestrator.jobs.tracking import record_job_run
from orchestrator.telemetry import record_verification_item

logger = logging.getLogger(__name__)

settings = get_settings()


@dataclass
class ItemResult:
    target_ids: list[int]
    ok: bool
    message: str
    details: list = field(default_factory=list)
    error: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "target_ids": self.target_ids,
            "ok": self.ok,
            "message": self.message,
            "details": self.details,
            "error": self.error,
        }


@dataclass
class VerificationSummary:
    operation: str
    total: int
    processed_count: int = 0
    results: list[ItemResult] = field(default_factory=list)

    @property
    def failed_count(self) -> int:
        return sum(len(r.target_ids) for r in self.results if not r.ok)

    def to_dict(self) -> dict:
        return {
            "operation": self.operation,
            "total": self.total,
            "processed_count": self.processed_count,
            "failed_count": self.failed_count,
            "results": [r.to_dict() for r in self.results],
        }


def match_label(details: list, fallback_id: int) -> str:
    """'Home vs Away' from engine details when present, else the fixture id."""
    teams = (details[0] or {}).get("teams") if details and isinstance(details[0], dict) else None
    if teams and teams.get("home") and teams.get("away"):
        return f"{teams['home']} vs {teams['away']}"
    return f"ID: {fallback_id}"


def _ordered(target_ids: Iterable[int]) -> list[int]:
    if isinstance(target_ids, (set, frozenset)):
        return sorted(int(t) for t in target_ids)
    return [int(t) for t in target_ids]


class BatchRunner:
    """Runs engine operations over target ids strictly one chunk at a time."""

    def __init__(
        self,
        engine: EngineClient,
        session_factory=None,
        chunk_size: Optional[int] = None,
        pacing_seconds: Optional[float] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.engine = engine
        self.session_factory = session_factory
        self.chunk_size = chunk_size or settings.VERIFICATION_CHUNK_SIZE
        self.pacing_seconds = (
            settings.VERIFICATION_PACING_SECONDS if pacing_seconds is None else pacing_seconds
        )
        self._sleep = sleep

    async def run_verification(self, target_ids: Iterable[int]) -> VerificationSummary:
        """Verify predictions for each target against the real result."""
        return await self._run("verification", _ordered(target_ids), self._verify_chunk)

    async def run_post_analysis(self, target_ids: Iterable[int]) -> VerificationSummary:
        """Generate the missing post-match narrative for each target."""
        return await self._run("post_analysis", _ordered(target_ids), self._post_analysis_chunk)

    async def _verify_chunk(self, chunk: list[int]) -> list[ItemResult]:
        res = await self.engine.verify_predictions(chunk)
        if not isinstance(res, dict):
            return [ItemResult(chunk, False, f"Unexpected verification response: {res!r}"[:200])]

        details = res.get("details") or []
        if res.get("success") and (res.get("processed") or 0) > 0:
            return [ItemResult(chunk, True, f"{match_label(details, chunk[0])} verified.", details)]
        reason = res.get("error") or "not verified"
        return [ItemResult(chunk, False, f"Could not verify fixture {chunk[0]}: {reason}", details)]

    async def _post_analysis_chunk(self, chunk: list[int]) -> list[ItemResult]:
        # The post-analysis function takes a single fixture; each one succeeds or fails on its own
        results = []
        for target_id in chunk:
            try:
                res = await self.engine.run_post_analysis(target_id)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.warning(f"[VERIFY] post_analysis error on {target_id}: {e}")
                results.append(ItemResult([target_id], False, f"Error on fixture {target_id}: {e}", error=str(e)))
                continue
            if isinstance(res, dict) and res.get("success"):
                results.append(ItemResult([target_id], True, f"Fixture {target_id} analysed.", [res]))
            else:
                reason = res.get("error") if isinstance(res, dict) else None
                message = f"Post-analysis failed for fixture {target_id}: {reason or 'no success flag'}"
                results.append(ItemResult([target_id], False, message, [res]))
        return results

    async def _run(
        self,
        operation: str,
        target_ids: list[int],
        call: Callable[[list[int]], Awaitable[list[ItemResult]]],
    ) -> VerificationSummary:
        started_at = datetime.now(timezone.utc)
        summary = VerificationSummary(operation=operation, total=len(target_ids))
        logger.info(f"[VERIFY] Starting {operation} batch: {len(target_ids)} targets")

        chunks = [
            target_ids[i:i + self.chunk_size] for i in range(0, len(target_ids), self.chunk_size)
        ]
        for index, chunk in enumerate(chunks):
            try:
                results = await call(chunk)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                results = [ItemResult(chunk, False, f"Error on fixture {chunk[0]}: {e}", error=str(e))]
                logger.warning(f"[VERIFY] {operation} error on {chunk}: {e}")

            for result in results:
                summary.results.append(result)
                if result.ok:
                    summary.processed_count += len(result.target_ids)
                    logger.info(f"[VERIFY] [{summary.processed_count}/{summary.total}] {result.message}")
                else:
                    logger.warning(f"[VERIFY] [{index + 1}/{len(chunks)}] {result.message}")
                for _ in result.target_ids:
                    record_verification_item(operation, "ok" if result.ok else "error")

            if index < len(chunks) - 1 and self.pacing_seconds > 0:
                await self._sleep(self.pacing_seconds)

        logger.info(
            f"[VERIFY] {operation} finished: {summary.processed_count}/{summary.total} processed"
        )
        await self._record(operation, started_at, summary)
        return summary

    async def _record(self, operation: str, started_at: datetime, summary: VerificationSummary) -> None:
        if self.session_factory is None:
            return
        status = "ok" if summary.failed_count == 0 else ("partial" if summary.processed_count else "error")
        async with self.session_factory() as session:
            await record_job_run(
                session,
                f"{operation}_batch",
                status,
                started_at,
                metrics={
                    "total": summary.total,
                    "processed": summary.processed_count,
                    "failed": summary.failed_count,
                },
            )
