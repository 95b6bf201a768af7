"""Application configuration using Pydantic Settings."""

from functools import lru_cache
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Database
    DATABASE_URL: str = "sqlite:///./orchestrator.db"

    # Remote analysis engine (serverless functions behind one base URL)
    ENGINE_BASE_URL: str = "http://localhost:54321/functions/v1"
    ENGINE_API_KEY: str = ""
    ENGINE_TIMEOUT_SECONDS: float = 60.0
    ENGINE_SUBMIT_FUNCTION: str = "create-analysis-job"
    ENGINE_VERIFY_FUNCTION: str = "verify-prediction"
    ENGINE_POST_ANALYSIS_FUNCTION: str = "analyze-post-match"

    # Submission context sent with every job (overridable per call)
    ANALYSIS_TIMEZONE: str = "America/Bogota"
    ANALYSIS_LAST_N: int = 10
    ANALYSIS_THRESHOLD: int = 70

    # Duplicate submissions per target: allow-duplicate | reject-if-active
    DUPLICATE_POLICY: str = "allow-duplicate"

    # API-Football (API-Sports direct or RapidAPI)
    API_FOOTBALL_KEY: str = ""
    API_FOOTBALL_HOST: str = "v3.football.api-sports.io"
    API_REQUESTS_PER_MINUTE: int = 300
    API_FOOTBALL_IDS_PER_REQUEST: int = 20  # Provider cap for fixtures?ids=

    # Poller
    POLL_INTERVAL_SECONDS: float = 2.0
    POLL_SETTLE_DELAY_SECONDS: float = 1.5  # Pause after "done" before opening the report

    # Batch scheduler (1 = strict one-at-a-time admission)
    BATCH_CONCURRENCY: int = 1

    # Stuck job reclaim
    STUCK_JOB_MESSAGE: str = "Reclaimed by operator: job stopped reporting progress"

    # Verification / post-analysis batches
    VERIFICATION_CHUNK_SIZE: int = 1
    VERIFICATION_PACING_SECONDS: float = 0.8
    POST_ANALYSIS_LOOKBACK_DAYS: int = 7  # Runs can be created days before kickoff

    # Job run history
    JOB_RUNS_DAYS_TO_KEEP: int = 30

    # Background housekeeping (APScheduler)
    SCHEDULER_ENABLED: bool = True
    HOUSEKEEPING_INTERVAL_HOURS: int = 24

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
