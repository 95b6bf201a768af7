"""Shared fixtures: in-memory database and a scripted fake engine."""

import os

# Settings are read at import time; keep tests off any real database or API
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("ENGINE_API_KEY", "test-key")
os.environ.setdefault("API_FOOTBALL_KEY", "test-key")

import pytest

from orchestrator.database import build_engine, build_session_maker, init_db
from orchestrator.errors import SubmissionError
from orchestrator.jobs.states import is_terminal
from orchestrator.models import AnalysisJob


@pytest.fixture
async def db_engine():
    engine = build_engine("sqlite:///:memory:")
    await init_db(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
async def session_factory(db_engine):
    return build_session_maker(db_engine)


class ScriptedJobs:
    """
    Fake job store. Each target follows a scripted list of statuses, one per
    fetch; the last status repeats. Tracks submission order and how many
    submitted jobs are not yet observed terminal.
    """

    def __init__(self, scripts=None, failing_targets=(), default_script=("queued", "analyzing", "done")):
        self.scripts = scripts or {}
        self.failing_targets = set(failing_targets)
        self.default_script = list(default_script)
        self.submitted: list[int] = []
        self.attempted: list[int] = []
        self.jobs: dict[str, dict] = {}
        self.fetch_count = 0
        self.active = 0
        self.max_active = 0

    async def submit(self, target_id, context=None):
        self.attempted.append(target_id)
        if target_id in self.failing_targets:
            raise SubmissionError("engine unavailable", target_id=target_id)
        job_id = f"job-{target_id}-{len(self.jobs)}"
        self.jobs[job_id] = {
            "target_id": target_id,
            "script": list(self.scripts.get(target_id, self.default_script)),
            "pos": 0,
            "terminal_seen": False,
        }
        self.submitted.append(target_id)
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        return job_id

    async def fetch(self, job_id):
        self.fetch_count += 1
        state = self.jobs.get(job_id)
        if state is None:
            return None
        script = state["script"]
        status = script[min(state["pos"], len(script) - 1)]
        state["pos"] += 1
        if is_terminal(status) and not state["terminal_seen"]:
            state["terminal_seen"] = True
            self.active -= 1
        return AnalysisJob(
            id=job_id,
            target_id=state["target_id"],
            status=status,
            error_message="engine error" if status == "failed" else None,
        )


@pytest.fixture
def scripted_jobs():
    return ScriptedJobs()


@pytest.fixture
def make_scripted_jobs():
    return ScriptedJobs
