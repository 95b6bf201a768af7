"""
Orchestration telemetry.

Prometheus metrics for submissions, terminal outcomes, poll errors, reclaim
sweeps, verification batches and provider requests.
"""

from orchestrator.telemetry.metrics import (
    jobs_submitted_total,
    jobs_terminal_total,
    job_poll_errors_total,
    batch_queue_depth,
    jobs_reclaimed_total,
    verification_items_total,
    provider_requests_total,
    provider_errors_total,
    provider_latency_ms,
    record_submission,
    record_terminal,
    record_poll_error,
    set_queue_depth,
    record_reclaim,
    record_verification_item,
    record_provider_request,
    get_metrics_text,
)

__all__ = [
    "jobs_submitted_total",
    "jobs_terminal_total",
    "job_poll_errors_total",
    "batch_queue_depth",
    "jobs_reclaimed_total",
    "verification_items_total",
    "provider_requests_total",
    "provider_errors_total",
    "provider_latency_ms",
    "record_submission",
    "record_terminal",
    "record_poll_error",
    "set_queue_depth",
    "record_reclaim",
    "record_verification_item",
    "record_provider_request",
    "get_metrics_text",
]
