"""External match data providers."""

from orchestrator.etl.base import FINISHED_STATUSES, MatchDetailsProvider, MatchMeta
from orchestrator.etl.api_football import APIFootballProvider

__all__ = ["FINISHED_STATUSES", "MatchDetailsProvider", "MatchMeta", "APIFootballProvider"]
