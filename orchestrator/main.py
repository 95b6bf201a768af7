"""FastAPI application exposing the orchestration ops endpoints."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from orchestrator.config import get_settings
from orchestrator.database import close_db, init_db
from orchestrator.housekeeping import start_scheduler, stop_scheduler
from orchestrator.routes.ops import router as ops_router
from orchestrator.service import JobOrchestrator

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    logger.info("Starting job orchestrator...")
    await init_db()
    app.state.orchestrator = JobOrchestrator.from_settings()
    if settings.SCHEDULER_ENABLED:
        start_scheduler()
    yield
    logger.info("Shutting down job orchestrator...")
    stop_scheduler()
    await app.state.orchestrator.close()
    await close_db()


app = FastAPI(
    title="Fixture Analysis Orchestrator",
    lifespan=lifespan,
)


@app.get("/health")
async def health():
    return {"status": "ok"}


app.include_router(ops_router)
