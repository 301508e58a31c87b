"""Async fetch of meteorite feed resources over HTTPS."""

from __future__ import annotations

import logging

import httpx

logger = logging.getLogger(__name__)

DEFAULT_FEED_URL = "https://data.nasa.gov/resource/y77d-th95.geojson"
DEFAULT_TIMEOUT = 30.0  # seconds


class FeedError(Exception):
    """Raised when a feed request fails (network error or HTTP error status)."""

    def __init__(self, url: str, message: str) -> None:
        super().__init__(f"{message} ({url})")
        self.url = url


class FeedClient:
    """Issues one GET per query against the feed.

    A shared ``httpx.AsyncClient`` may be passed in; otherwise a short-lived
    client is opened for each request.
    """

    def __init__(
        self,
        base_url: str = DEFAULT_FEED_URL,
        timeout: float = DEFAULT_TIMEOUT,
        client: httpx.AsyncClient | None = None,
        user_agent: str = "meteorite-globe/0.1.0",
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._client = client
        self._headers = {"User-Agent": user_agent, "Accept": "application/json"}

    async def fetch(self, url: str) -> str:
        """Fetch ``url`` and return the body text.

        Raises:
            FeedError: On transport failure or a non-2xx response.
        """
        logger.debug(f"Feed GET {url}")
        try:
            if self._client is not None:
                resp = await self._client.get(url, headers=self._headers, timeout=self.timeout)
                resp.raise_for_status()
            else:
                async with httpx.AsyncClient() as client:
                    resp = await client.get(url, headers=self._headers, timeout=self.timeout)
                    resp.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise FeedError(url, f"Feed returned HTTP {e.response.status_code}") from e
        except httpx.HTTPError as e:
            raise FeedError(url, f"Feed request failed: {e}") from e
        return resp.text

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
