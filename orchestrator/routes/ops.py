"""Ops endpoints: job submission/status, batch queue, reclaim sweep, verification.

All endpoints live under /ops and delegate to the JobOrchestrator stored on
app.state by the lifespan handler.
"""

import logging
from datetime import date, timedelta
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from fastapi.responses import Response
from pydantic import BaseModel, Field

from orchestrator.errors import DuplicateJobError, SubmissionError
from orchestrator.jobs.states import is_terminal, user_message
from orchestrator.service import JobOrchestrator
from orchestrator.telemetry import get_metrics_text

router = APIRouter(prefix="/ops", tags=["ops"])

logger = logging.getLogger(__name__)


class SubmitRequest(BaseModel):
    target_id: int
    context: Optional[dict] = None


class TargetsRequest(BaseModel):
    target_ids: list[int] = Field(min_length=1)


class ReclaimRequest(BaseModel):
    older_than_minutes: Optional[int] = Field(default=None, gt=0)


def get_orchestrator(request: Request) -> JobOrchestrator:
    return request.app.state.orchestrator


@router.post("/jobs")
async def submit_job(body: SubmitRequest, orchestrator: JobOrchestrator = Depends(get_orchestrator)):
    try:
        job_id = await orchestrator.submit_one(body.target_id, body.context)
    except DuplicateJobError as e:
        raise HTTPException(status_code=409, detail={"error": str(e), "active_job_id": e.active_job_id})
    except SubmissionError as e:
        raise HTTPException(status_code=502, detail=str(e))
    return {"job_id": job_id, "target_id": body.target_id}


@router.get("/jobs/{job_id}")
async def get_job(job_id: str, orchestrator: JobOrchestrator = Depends(get_orchestrator)):
    job = await orchestrator.store.fetch(job_id)
    if job is None:
        raise HTTPException(status_code=404, detail="Job not found")
    progress = job.progress_info
    return {
        "id": job.id,
        "target_id": job.target_id,
        "status": job.status,
        "terminal": is_terminal(job.status),
        "message": user_message(job.status, job.error_message),
        "progress": progress.model_dump() if progress else None,
        "estimated_calls": job.estimated_calls,
        "actual_calls": job.actual_calls,
        "created_at": job.created_at.isoformat() if job.created_at else None,
    }


@router.post("/batch")
async def enqueue_batch(body: TargetsRequest, orchestrator: JobOrchestrator = Depends(get_orchestrator)):
    added = orchestrator.enqueue_many(body.target_ids)
    return {"enqueued": added, **orchestrator.scheduler_status().to_dict()}


@router.get("/batch")
async def batch_status(orchestrator: JobOrchestrator = Depends(get_orchestrator)):
    return orchestrator.scheduler_status().to_dict()


@router.delete("/batch")
async def cancel_batch(orchestrator: JobOrchestrator = Depends(get_orchestrator)):
    dropped = orchestrator.cancel_queue()
    return {"dropped": dropped, **orchestrator.scheduler_status().to_dict()}


@router.post("/jobs/reclaim")
async def reclaim_stuck_jobs(
    body: Optional[ReclaimRequest] = None,
    orchestrator: JobOrchestrator = Depends(get_orchestrator),
):
    older_than_minutes = body.older_than_minutes if body else None
    if older_than_minutes:
        count = await orchestrator.reclaim_older_than(timedelta(minutes=older_than_minutes))
    else:
        count = await orchestrator.reclaim_all()
    return {"reclaimed": count, "older_than_minutes": older_than_minutes}


@router.get("/verification/pending")
async def pending_verification(
    date_from: date = Query(...),
    date_to: date = Query(...),
    orchestrator: JobOrchestrator = Depends(get_orchestrator),
):
    if date_from > date_to:
        raise HTTPException(status_code=400, detail="date_from must be <= date_to")
    candidates = await orchestrator.find_verifiable_candidates(date_from, date_to)
    return {
        "count": len(candidates),
        "target_ids": [c.target_id for c in candidates],
        "candidates": [
            {
                "target_id": c.target_id,
                "match_date": c.match_date.isoformat(),
                "home": c.home_label,
                "away": c.away_label,
            }
            for c in candidates
        ],
    }


@router.post("/verification/run")
async def run_verification(body: TargetsRequest, orchestrator: JobOrchestrator = Depends(get_orchestrator)):
    summary = await orchestrator.run_verification(body.target_ids)
    return summary.to_dict()


@router.get("/post-analysis/missing")
async def missing_post_analysis(
    date_from: date = Query(...),
    date_to: date = Query(...),
    orchestrator: JobOrchestrator = Depends(get_orchestrator),
):
    if date_from > date_to:
        raise HTTPException(status_code=400, detail="date_from must be <= date_to")
    summaries = await orchestrator.find_missing_post_analysis(date_from, date_to)
    return {"count": len(summaries), "candidates": [s.to_dict() for s in summaries]}


@router.post("/post-analysis/run")
async def run_post_analysis(body: TargetsRequest, orchestrator: JobOrchestrator = Depends(get_orchestrator)):
    summary = await orchestrator.run_post_analysis(body.target_ids)
    return summary.to_dict()


@router.get("/runs/{job_name}/last")
async def last_run(job_name: str, orchestrator: JobOrchestrator = Depends(get_orchestrator)):
    run = await orchestrator.last_run(job_name)
    if run is None:
        raise HTTPException(status_code=404, detail=f"No runs recorded for {job_name}")
    return {
        "job_name": run.job_name,
        "status": run.status,
        "started_at": run.started_at.isoformat(),
        "finished_at": run.finished_at.isoformat(),
        "duration_ms": run.duration_ms,
        "error_message": run.error_message,
        "metrics": run.metrics,
    }


@router.delete("/runs")
async def cleanup_runs(
    days_to_keep: Optional[int] = Query(default=None, gt=0),
    orchestrator: JobOrchestrator = Depends(get_orchestrator),
):
    deleted = await orchestrator.cleanup_runs(days_to_keep)
    return {"deleted": deleted}


@router.get("/metrics")
async def metrics():
    return Response(content=get_metrics_text(), media_type="text/plain; version=0.0.4")
