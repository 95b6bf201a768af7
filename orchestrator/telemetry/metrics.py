"""
Prometheus metrics for job orchestration.

Design principles:
- Low cardinality (controlled labels)
- Best-effort (never block main flow)

ALLOWED LABELS (bounded sets):
- outcome:    "ok", "error", "duplicate", "skipped"
- status:     job statuses plus "vanished"
- mode:       "all", "older_than"
- operation:  "verification", "post_analysis"
- provider:   "api_football"
- endpoint:   "fixtures"
- error_code: "timeout", "rate_limit", "http_4xx", "http_5xx", "request_error"

FORBIDDEN AS LABELS: job ids, fixture ids, team names, error messages.
Use logs for those.
"""

import logging

from prometheus_client import (
    Counter,
    Histogram,
    Gauge,
    generate_latest,
    REGISTRY,
)

logger = logging.getLogger(__name__)

# =============================================================================
# JOB LIFECYCLE
# =============================================================================

jobs_submitted_total = Counter(
    "jobs_submitted_total",
    "Analysis job submissions",
    ["outcome"],
)

jobs_terminal_total = Counter(
    "jobs_terminal_total",
    "Jobs observed reaching a terminal status",
    ["status"],
)

job_poll_errors_total = Counter(
    "job_poll_errors_total",
    "Transient failures while polling job status",
)

batch_queue_depth = Gauge(
    "batch_queue_depth",
    "Targets waiting in the batch scheduler queue",
)

jobs_reclaimed_total = Counter(
    "jobs_reclaimed_total",
    "Non-terminal jobs forced to failed by the reclaim sweep",
    ["mode"],
)

# =============================================================================
# VERIFICATION
# =============================================================================

verification_items_total = Counter(
    "verification_items_total",
    "Items processed by verification and post-analysis batches",
    ["operation", "outcome"],
)

# =============================================================================
# PROVIDERS
# =============================================================================

provider_requests_total = Counter(
    "provider_requests_total",
    "Total requests to data providers",
    ["provider", "endpoint", "status_code"],
)

provider_errors_total = Counter(
    "provider_errors_total",
    "Total errors from data providers",
    ["provider", "error_code"],
)

provider_latency_ms = Histogram(
    "provider_latency_ms",
    "Request latency in milliseconds",
    ["provider", "endpoint"],
    buckets=[10, 25, 50, 100, 250, 500, 1000, 2500, 5000, 10000],
)


# =============================================================================
# HELPERS (never raise)
# =============================================================================

def record_submission(outcome: str) -> None:
    try:
        jobs_submitted_total.labels(outcome=outcome).inc()
    except Exception as e:
        logger.debug(f"Metric record failed: {e}")


def record_terminal(status: str) -> None:
    try:
        jobs_terminal_total.labels(status=status).inc()
    except Exception as e:
        logger.debug(f"Metric record failed: {e}")


def record_poll_error() -> None:
    try:
        job_poll_errors_total.inc()
    except Exception as e:
        logger.debug(f"Metric record failed: {e}")


def set_queue_depth(depth: int) -> None:
    try:
        batch_queue_depth.set(depth)
    except Exception as e:
        logger.debug(f"Metric record failed: {e}")


def record_reclaim(mode: str, count: int) -> None:
    try:
        jobs_reclaimed_total.labels(mode=mode).inc(count)
    except Exception as e:
        logger.debug(f"Metric record failed: {e}")


def record_verification_item(operation: str, outcome: str) -> None:
    try:
        verification_items_total.labels(operation=operation, outcome=outcome).inc()
    except Exception as e:
        logger.debug(f"Metric record failed: {e}")


def record_provider_request(
    provider: str,
    endpoint: str,
    status_code: int,
    latency_ms: float,
    error_code: str = None,
) -> None:
    try:
        provider_requests_total.labels(
            provider=provider, endpoint=endpoint, status_code=str(status_code)
        ).inc()
        provider_latency_ms.labels(provider=provider, endpoint=endpoint).observe(latency_ms)
        if error_code:
            provider_errors_total.labels(provider=provider, error_code=error_code).inc()
    except Exception as e:
        logger.debug(f"Metric record failed: {e}")


def get_metrics_text() -> bytes:
    """Prometheus exposition format for the default registry."""
    return generate_latest(REGISTRY)
