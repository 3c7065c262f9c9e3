"""Shared plumbing for LLM backends that talk to a REST API over httpx."""

import asyncio
import logging
from typing import Any, Dict, Optional

import httpx

from ..core.interfaces import LLMBackendInterface

logger = logging.getLogger(__name__)


class HTTPLLMBackend(LLMBackendInterface):
    """Base class holding the httpx client and the retry loop."""

    #: Human readable provider name used in error messages.
    provider_label = "LLM"

    def __init__(
        self,
        api_key: Optional[str],
        base_url: str,
        model: str,
        timeout: int = 60,
        max_retries: int = 2,
    ):
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.default_model = model
        self.timeout = timeout
        self.max_retries = max_retries
        self._client: Optional[httpx.AsyncClient] = None

    @property
    def is_available(self) -> bool:
        return bool(self.api_key)

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=self.timeout,
                limits=httpx.Limits(max_keepalive_connections=5, max_connections=10)
            )
        return self._client

    def _headers(self) -> Dict[str, str]:
        return {"Content-Type": "application/json"}

    def _ensure_configured(self) -> None:
        if not self.is_available:
            raise RuntimeError(
                f"{self.provider_label} backend is not configured. Set {self.name.upper()}_API_KEY environment variable."
            )

    async def _post_json(self, url: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        """POST a JSON payload, retrying transient failures with exponential backoff.

        Client errors (4xx other than 429) are not retried.
        """
        client = await self._get_client()

        for attempt in range(self.max_retries + 1):
            try:
                response = await client.post(url, json=payload, headers=self._headers())
                response.raise_for_status()
                return response.json()
            except httpx.HTTPStatusError as e:
                status = e.response.status_code
                if status in (401, 403):
                    raise RuntimeError(f"{self.provider_label} rejected the API key (HTTP {status})") from e
                if 400 <= status < 500 and status != 429:
                    raise RuntimeError(f"{self.provider_label} API error: {e}") from e
                if attempt == self.max_retries:
                    raise RuntimeError(f"{self.provider_label} API error: {e}") from e
            except httpx.RequestError as e:
                if attempt == self.max_retries:
                    raise RuntimeError(f"Failed to connect to {self.provider_label} at {self.base_url}: {e}") from e
            except ValueError as e:
                raise RuntimeError(f"{self.provider_label} returned invalid JSON: {e}") from e

            logger.debug(f"{self.provider_label} request failed (attempt {attempt + 1}), retrying")
            await asyncio.sleep(2 ** attempt)

        raise RuntimeError("Failed to generate after all retries")

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None
