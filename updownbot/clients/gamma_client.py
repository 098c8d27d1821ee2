"""
Gamma API Client for Polymarket market discovery.

The Gamma API is used to look up the up/down contract behind a slug
and get its token ids.
"""

import asyncio
import logging
from typing import Optional

import aiohttp

from ..errors import MarketDataError

logger = logging.getLogger(__name__)


class GammaAPIError(MarketDataError):
    """Error from Gamma API."""
    pass


class GammaClient:
    """Client for Polymarket Gamma API."""

    DEFAULT_BASE_URL = "https://gamma-api.polymarket.com"

    def __init__(self, base_url: str = DEFAULT_BASE_URL, timeout_s: float = 10.0):
        """
        Initialize the Gamma client.

        Args:
            base_url: Gamma API base URL
            timeout_s: Total request timeout
        """
        self._base_url = base_url.rstrip("/")
        self._timeout_s = timeout_s
        self._session: Optional[aiohttp.ClientSession] = None

    async def _ensure_session(self) -> aiohttp.ClientSession:
        """Ensure HTTP session is created."""
        if self._session is None or self._session.closed:
            timeout = aiohttp.ClientTimeout(total=self._timeout_s)
            self._session = aiohttp.ClientSession(timeout=timeout)
        return self._session

    async def close(self) -> None:
        """Close the HTTP session."""
        if self._session and not self._session.closed:
            await self._session.close()
            self._session = None

    async def get_markets_by_slug(self, slug: str, closed: bool = False) -> list[dict]:
        """
        Get markets matching a slug.

        Args:
            slug: Market slug (e.g., "btc-updown-15m-1767225600")
            closed: Whether to return closed markets

        Returns:
            List of market dicts (empty if none match)
        """
        session = await self._ensure_session()
        url = f"{self._base_url}/markets"
        params = {"slug": slug, "closed": "true" if closed else "false"}

        try:
            async with session.get(url, params=params) as resp:
                if resp.status == 404:
                    return []
                if resp.status != 200:
                    text = await resp.text()
                    raise GammaAPIError(f"Get markets failed: {resp.status} - {text}")
                data = await resp.json()
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as e:
            raise GammaAPIError(f"Get markets request failed: {e}")

        if isinstance(data, dict):
            # Some deployments wrap results
            data = data.get("markets") or data.get("data") or []
        return data
