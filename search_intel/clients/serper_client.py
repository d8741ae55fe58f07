"""Serper web search client."""

import logging
from typing import Any, Protocol

import httpx
from pydantic import ValidationError

from search_intel.models.search import WebSearchResult

logger = logging.getLogger(__name__)


class SearchProviderUnavailableError(Exception):
    """Raised when the search provider is not configured."""


class SearchProviderError(Exception):
    """Raised when the search provider call fails.

    Attributes:
        status_code: HTTP status returned by the provider, None for transport errors
        message: Human readable description of the failure
    """

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class SearchProvider(Protocol):
    """Anything that turns a query string into raw web results."""

    async def search(self, query: str) -> list[WebSearchResult]: ...

    async def close(self) -> None: ...


class SerperClient:
    """Async client for the Serper Google search API.

    Calls are made once; retry policy belongs to the caller. A malformed
    response body is treated as zero results so the rest of the pipeline can
    still react to it.
    """

    def __init__(
        self,
        api_key: str | None,
        base_url: str = "https://google.serper.dev/search",
        num_results: int = 10,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """Initialize Serper client.

        Args:
            api_key: Serper API key; None leaves the client unavailable
            base_url: Search endpoint URL
            num_results: Number of results requested per query
            timeout: Request timeout in seconds (default: 10.0)
            transport: Optional httpx transport, used by tests
        """
        self.api_key = api_key
        self.base_url = base_url
        self.num_results = num_results
        self.timeout = timeout
        self._client = httpx.AsyncClient(timeout=timeout, transport=transport)

    @property
    def configured(self) -> bool:
        return bool(self.api_key)

    async def search(self, query: str) -> list[WebSearchResult]:
        """Run a web search.

        Args:
            query: Search query sent to the provider

        Returns:
            Raw results in provider order, empty for malformed responses

        Raises:
            SearchProviderUnavailableError: If no API key is configured
            SearchProviderError: On non-2xx responses or transport failures
        """
        if not self.configured:
            raise SearchProviderUnavailableError(
                "Web search is not available. SERPER_API_KEY is not configured."
            )

        logger.info(f"→ Serper search START - query='{query[:80]}'")

        try:
            response = await self._client.post(
                self.base_url,
                headers={"X-API-KEY": self.api_key, "Content-Type": "application/json"},
                json={"q": query, "num": self.num_results},
            )
        except httpx.HTTPError as e:
            logger.error(f"✗ Serper request failed: {type(e).__name__}: {e}")
            raise SearchProviderError(f"Web search API error: {e}") from e

        if not response.is_success:
            logger.error(f"✗ Serper returned HTTP {response.status_code}")
            raise SearchProviderError(
                f"Web search API error: HTTP {response.status_code}",
                status_code=response.status_code,
            )

        try:
            payload = response.json()
        except ValueError:
            logger.warning("⚠ Serper returned a non-JSON body, treating as zero results")
            return []

        results = self.parse_results(payload)
        logger.info(f"✓ Serper search COMPLETE: {len(results)} results")
        return results

    def parse_results(self, payload: Any) -> list[WebSearchResult]:
        """Convert the ``organic`` section of a Serper response into results."""
        if not isinstance(payload, dict) or not isinstance(payload.get("organic"), list):
            logger.warning("⚠ Serper response has no organic results list")
            return []

        results: list[WebSearchResult] = []
        for item in payload["organic"]:
            if not isinstance(item, dict):
                continue
            try:
                results.append(
                    WebSearchResult(
                        title=str(item.get("title") or ""),
                        snippet=str(item.get("snippet") or ""),
                        link=str(item.get("link") or ""),
                        position=max(0, int(item.get("position") or 0)),
                    )
                )
            except (TypeError, ValueError, ValidationError) as e:
                logger.warning(f"⚠ Skipping malformed Serper result: {e}")
        return results

    async def close(self) -> None:
        await self._client.aclose()
