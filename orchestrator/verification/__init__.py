"""Outcome verification and post-analysis backfill pipelines."""

from orchestrator.verification.discovery import (
    CandidateSummary,
    VerificationCandidate,
    find_missing_post_analysis,
    find_verifiable,
    find_verifiable_candidates,
)
from orchestrator.verification.runner import BatchRunner, ItemResult, VerificationSummary

__all__ = [
    "CandidateSummary",
    "VerificationCandidate",
    "find_missing_post_analysis",
    "find_verifiable",
    "find_verifiable_candidates",
    "BatchRunner",
    "ItemResult",
    "VerificationSummary",
]
