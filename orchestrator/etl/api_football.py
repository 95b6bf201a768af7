"""API-Football match details provider."""

import asyncio
import logging
import time
from datetime import datetime, timezone
from typing import Optional

import httpx

from orchestrator.config import get_settings
from orchestrator.etl.base import MatchDetailsProvider, MatchMeta
from orchestrator.telemetry import record_provider_request

logger = logging.getLogger(__name__)

settings = get_settings()


class APIFootballProvider(MatchDetailsProvider):
    """API-Football provider with rate limiting (supports RapidAPI and API-Sports)."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        host: Optional[str] = None,
        requests_per_minute: Optional[int] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        host = host or settings.API_FOOTBALL_HOST
        key = settings.API_FOOTBALL_KEY if api_key is None else api_key
        # Detect if using API-Sports directly or RapidAPI
        if "api-sports.io" in host:
            self.BASE_URL = f"https://{host}"
            headers = {"x-apisports-key": key}
        else:
            self.BASE_URL = f"https://{host}/v3"
            headers = {
                "X-RapidAPI-Key": key,
                "X-RapidAPI-Host": host,
            }

        self.client = httpx.AsyncClient(headers=headers, timeout=30.0, transport=transport)
        self.requests_per_minute = requests_per_minute or settings.API_REQUESTS_PER_MINUTE
        self.ids_per_request = settings.API_FOOTBALL_IDS_PER_REQUEST

    async def _rate_limited_request(self, endpoint: str, params: dict = None) -> dict:
        """
        Make a rate-limited request to the API.

        Adds a delay between requests and backs off exponentially on 429s,
        timeouts and HTTP errors. Raises after the last attempt fails.
        """
        delay = 60 / self.requests_per_minute

        url = f"{self.BASE_URL}/{endpoint}"
        max_retries = 3
        retry_delay = 5

        for attempt in range(max_retries):
            start_time = time.time()
            try:
                response = await self.client.get(url, params=params)
                latency_ms = (time.time() - start_time) * 1000

                if response.status_code == 429:
                    record_provider_request("api_football", endpoint, 429, latency_ms, error_code="rate_limit")
                    wait_time = retry_delay * (2**attempt)
                    logger.warning(f"Rate limited. Waiting {wait_time}s before retry...")
                    await asyncio.sleep(wait_time)
                    continue

                response.raise_for_status()
                record_provider_request("api_football", endpoint, response.status_code, latency_ms)
                await asyncio.sleep(delay)  # Respect rate limit

                data = response.json()
                if data.get("errors"):
                    # API-Football reports quota/parameter problems with HTTP 200
                    logger.error(f"API error: {data['errors']}")
                    raise httpx.HTTPStatusError(
                        f"API error: {data['errors']}", request=response.request, response=response
                    )

                return data

            except httpx.TimeoutException as e:
                latency_ms = (time.time() - start_time) * 1000
                record_provider_request("api_football", endpoint, 0, latency_ms, error_code="timeout")
                logger.error(f"Timeout error: {e}")
                if attempt < max_retries - 1:
                    await asyncio.sleep(retry_delay * (2**attempt))
                    continue
                raise

            except httpx.HTTPStatusError as e:
                latency_ms = (time.time() - start_time) * 1000
                code = e.response.status_code if e.response is not None else 0
                record_provider_request(
                    "api_football", endpoint, code, latency_ms,
                    error_code="http_5xx" if code >= 500 else "http_4xx",
                )
                logger.error(f"HTTP error: {e}")
                if attempt < max_retries - 1:
                    await asyncio.sleep(retry_delay * (2**attempt))
                    continue
                raise

            except httpx.RequestError as e:
                latency_ms = (time.time() - start_time) * 1000
                record_provider_request("api_football", endpoint, 0, latency_ms, error_code="request_error")
                logger.error(f"Request error: {e}")
                if attempt < max_retries - 1:
                    await asyncio.sleep(retry_delay * (2**attempt))
                    continue
                raise

        raise httpx.HTTPError(f"API-Football {endpoint}: rate limited after {max_retries} attempts")

    def _parse_fixture(self, fixture: dict) -> MatchMeta:
        """Parse API fixture response into MatchMeta."""
        fixture_info = fixture["fixture"]
        teams = fixture.get("teams", {})
        goals = fixture.get("goals", {})

        # Parse date - normalize to aware UTC
        match_date = datetime.fromisoformat(fixture_info["date"].replace("Z", "+00:00"))
        if match_date.tzinfo is None:
            match_date = match_date.replace(tzinfo=timezone.utc)
        else:
            match_date = match_date.astimezone(timezone.utc)

        return MatchMeta(
            external_id=int(fixture_info["id"]),
            date=match_date,
            status=fixture_info.get("status", {}).get("short", "NS"),
            home_name=teams.get("home", {}).get("name", ""),
            away_name=teams.get("away", {}).get("name", ""),
            home_goals=goals.get("home"),
            away_goals=goals.get("away"),
        )

    async def get_fixtures_by_ids(self, fixture_ids: list[int]) -> list[MatchMeta]:
        """
        Fetch fixtures by id in batches.

        Uses: GET /fixtures?ids=1-2-3 (up to API_FOOTBALL_IDS_PER_REQUEST ids per call)
        A failed request raises; a fixture that fails to parse is skipped.
        """
        unique_ids = list(dict.fromkeys(int(i) for i in fixture_ids))
        matches: list[MatchMeta] = []

        for i in range(0, len(unique_ids), self.ids_per_request):
            chunk = unique_ids[i:i + self.ids_per_request]
            data = await self._rate_limited_request(
                "fixtures", {"ids": "-".join(str(fid) for fid in chunk)}
            )
            for fixture in data.get("response", []):
                try:
                    matches.append(self._parse_fixture(fixture))
                except (KeyError, TypeError, ValueError) as e:
                    logger.error(f"Error parsing fixture: {e}")
                    continue

        logger.info(f"Fetched {len(matches)}/{len(unique_ids)} fixtures by id")
        return matches

    async def close(self) -> None:
        await self.client.aclose()
