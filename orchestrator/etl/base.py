"""Abstract base class for external match data providers."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

# Short status codes of a finished match: full time, after extra time, penalties
FINISHED_STATUSES = frozenset({"FT", "AET", "PEN"})


@dataclass
class MatchMeta:
    """External metadata for one fixture."""

    external_id: int
    date: datetime  # Kickoff, tz-aware UTC
    status: str
    home_name: str
    away_name: str
    home_goals: Optional[int] = None
    away_goals: Optional[int] = None

    @property
    def is_finished(self) -> bool:
        return self.status in FINISHED_STATUSES


class MatchDetailsProvider(ABC):
    """Batch lookup of fixture metadata by external id."""

    @abstractmethod
    async def get_fixtures_by_ids(self, fixture_ids: list[int]) -> list[MatchMeta]:
        """
        Fetch metadata for the given fixtures.

        Args:
            fixture_ids: External fixture IDs.

        Returns:
            One MatchMeta per fixture the provider knows about. Unknown or
            unparseable fixtures are omitted.
        """
        pass

    @abstractmethod
    async def close(self) -> None:
        """Close any open connections."""
        pass
