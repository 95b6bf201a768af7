"""HTTP client for the remote analysis engine.

The engine is a set of serverless functions invoked with a JSON POST body.
This client only shapes requests and decodes responses; it never retries.
Retry policy belongs to callers.
"""

import json
import logging
import time
from typing import Any, Optional

import httpx

from orchestrator.config import get_settings

logger = logging.getLogger(__name__)

settings = get_settings()


class EngineError(RuntimeError):
    """Raised when an engine function call fails at the transport or HTTP level."""

    def __init__(self, function: str, message: str, status_code: Optional[int] = None):
        super().__init__(f"{function}: {message}")
        self.function = function
        self.status_code = status_code


def decode_body(response: httpx.Response) -> Any:
    """
    Decode a function response.

    Some functions answer with a JSON document serialized as a JSON string
    (wrong content-type upstream); those are decoded a second time.
    """
    try:
        data = response.json()
    except ValueError:
        data = response.text
    if isinstance(data, str):
        try:
            data = json.loads(data)
        except ValueError:
            logger.warning(f"[ENGINE] Non-JSON response body: {data[:200]!r}")
    return data


class EngineClient:
    """Thin async wrapper over the engine functions."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        api_key: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = (base_url or settings.ENGINE_BASE_URL).rstrip("/")
        key = settings.ENGINE_API_KEY if api_key is None else api_key
        headers = {"Content-Type": "application/json"}
        if key:
            headers["Authorization"] = f"Bearer {key}"
            headers["apikey"] = key
        self.client = httpx.AsyncClient(
            headers=headers,
            timeout=timeout or settings.ENGINE_TIMEOUT_SECONDS,
            transport=transport,
        )

    async def invoke(self, function: str, body: dict) -> Any:
        """POST `body` to a function and return the decoded response."""
        url = f"{self.base_url}/{function}"
        start_time = time.time()
        try:
            response = await self.client.post(url, json=body)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise EngineError(function, str(e), status_code=e.response.status_code) from e
        except httpx.RequestError as e:
            raise EngineError(function, f"request failed: {e}") from e

        latency_ms = (time.time() - start_time) * 1000
        logger.debug(f"[ENGINE] {function} -> {response.status_code} in {latency_ms:.0f}ms")
        return decode_body(response)

    async def create_analysis_job(self, body: dict) -> Any:
        return await self.invoke(settings.ENGINE_SUBMIT_FUNCTION, body)

    async def verify_predictions(self, target_ids: list[int]) -> Any:
        return await self.invoke(settings.ENGINE_VERIFY_FUNCTION, {"fixture_ids": target_ids})

    async def run_post_analysis(self, target_id: int) -> Any:
        return await self.invoke(settings.ENGINE_POST_ANALYSIS_FUNCTION, {"fixture_id": target_id})

    async def close(self) -> None:
        await self.client.aclose()
