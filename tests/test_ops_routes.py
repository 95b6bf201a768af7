"""Tests for the /ops endpoints."""

from datetime import datetime
from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from orchestrator.errors import DuplicateJobError, SubmissionError
from orchestrator.jobs.scheduler import SchedulerStatus
from orchestrator.models import AnalysisJob, JobRun
from orchestrator.routes.ops import router
from orchestrator.verification.discovery import VerificationCandidate
from orchestrator.verification.runner import ItemResult, VerificationSummary


@pytest.fixture
def orchestrator():
    mock = MagicMock()
    mock.submit_one = AsyncMock(return_value="job-1")
    mock.store.fetch = AsyncMock(return_value=None)
    mock.enqueue_many.return_value = 2
    mock.cancel_queue.return_value = 1
    mock.scheduler_status.return_value = SchedulerStatus(
        queue_depth=1, current_target_id=10, completed=0, failed=0, in_flight=[10], enqueued=2,
    )
    mock.reclaim_all = AsyncMock(return_value=3)
    mock.reclaim_older_than = AsyncMock(return_value=1)
    mock.find_verifiable_candidates = AsyncMock(return_value=[])
    mock.run_verification = AsyncMock()
    mock.last_run = AsyncMock(return_value=None)
    mock.cleanup_runs = AsyncMock(return_value=4)
    return mock


@pytest.fixture
def client(orchestrator):
    app = FastAPI()
    app.include_router(router)
    app.state.orchestrator = orchestrator
    return TestClient(app)


class TestJobEndpoints:
    def test_submit(self, client, orchestrator):
        response = client.post("/ops/jobs", json={"target_id": 1035037})

        assert response.status_code == 200
        assert response.json() == {"job_id": "job-1", "target_id": 1035037}
        orchestrator.submit_one.assert_awaited_once_with(1035037, None)

    def test_submit_duplicate_is_conflict(self, client, orchestrator):
        orchestrator.submit_one.side_effect = DuplicateJobError(1, "old-job")

        response = client.post("/ops/jobs", json={"target_id": 1})

        assert response.status_code == 409
        assert response.json()["detail"]["active_job_id"] == "old-job"

    def test_submit_failure_is_bad_gateway(self, client, orchestrator):
        orchestrator.submit_one.side_effect = SubmissionError("Engine did not return a valid job_id")

        response = client.post("/ops/jobs", json={"target_id": 1})

        assert response.status_code == 502

    def test_get_job(self, client, orchestrator):
        orchestrator.store.fetch.return_value = AnalysisJob(
            id="job-1", target_id=1, status="insufficient_data",
            progress={"step": "lineups", "completeness_score": 40},
            created_at=datetime(2024, 1, 15, 12, 0),
        )

        body = client.get("/ops/jobs/job-1").json()

        assert body["terminal"] is True
        assert body["progress"]["step"] == "lineups"
        assert "Try again" in body["message"]

    def test_get_missing_job(self, client):
        assert client.get("/ops/jobs/nope").status_code == 404


class TestBatchEndpoints:
    def test_enqueue(self, client, orchestrator):
        body = client.post("/ops/batch", json={"target_ids": [10, 20]}).json()

        assert body["enqueued"] == 2
        assert body["current_target_id"] == 10
        orchestrator.enqueue_many.assert_called_once_with([10, 20])

    def test_enqueue_requires_targets(self, client):
        assert client.post("/ops/batch", json={"target_ids": []}).status_code == 422

    def test_cancel(self, client):
        assert client.delete("/ops/batch").json()["dropped"] == 1


class TestReclaimEndpoint:
    def test_reclaim_all(self, client, orchestrator):
        body = client.post("/ops/jobs/reclaim").json()

        assert body == {"reclaimed": 3, "older_than_minutes": None}
        orchestrator.reclaim_older_than.assert_not_awaited()

    def test_reclaim_older_than(self, client, orchestrator):
        body = client.post("/ops/jobs/reclaim", json={"older_than_minutes": 60}).json()

        assert body["reclaimed"] == 1
        assert orchestrator.reclaim_older_than.await_args.args[0].total_seconds() == 3600


class TestVerificationEndpoints:
    def test_pending(self, client, orchestrator):
        orchestrator.find_verifiable_candidates.return_value = [
            VerificationCandidate(555, datetime(2024, 1, 15, 20, 0), "Nacional", "Medellin"),
        ]

        body = client.get("/ops/verification/pending?date_from=2024-01-01&date_to=2024-01-31").json()

        assert body["target_ids"] == [555]
        assert body["candidates"][0]["home"] == "Nacional"

    def test_inverted_window(self, client):
        response = client.get("/ops/verification/pending?date_from=2024-02-01&date_to=2024-01-01")
        assert response.status_code == 400

    def test_run(self, client, orchestrator):
        orchestrator.run_verification.return_value = VerificationSummary(
            operation="verification", total=1, processed_count=1,
            results=[ItemResult([555], True, "Nacional vs Medellin verified.")],
        )

        body = client.post("/ops/verification/run", json={"target_ids": [555]}).json()

        assert body["processed_count"] == 1
        assert body["failed_count"] == 0


class TestRunHistoryEndpoints:
    def test_last_run(self, client, orchestrator):
        orchestrator.last_run.return_value = JobRun(
            job_name="reclaim_stuck_jobs", status="ok",
            started_at=datetime(2024, 1, 1), finished_at=datetime(2024, 1, 1),
            duration_ms=5, metrics={"count": 2},
        )

        body = client.get("/ops/runs/reclaim_stuck_jobs/last").json()

        assert body["metrics"] == {"count": 2}

    def test_last_run_missing(self, client):
        assert client.get("/ops/runs/unknown/last").status_code == 404

    def test_cleanup(self, client, orchestrator):
        assert client.delete("/ops/runs?days_to_keep=7").json() == {"deleted": 4}
        orchestrator.cleanup_runs.assert_awaited_once_with(7)

    def test_metrics(self, client):
        response = client.get("/ops/metrics")
        assert response.status_code == 200
        assert "jobs_submitted_total" in response.text
