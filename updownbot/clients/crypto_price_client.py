"""Client for the Polymarket crypto-price endpoint (period open prices)."""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Optional

import aiohttp

from ..errors import MarketDataError
from ..types import CoinSymbol, PeriodKind

logger = logging.getLogger(__name__)


class CryptoPriceAPIError(MarketDataError):
    """Error from the crypto-price API."""
    pass


def to_iso_utc(dt: datetime) -> str:
    """Format as "2026-01-23T17:00:00Z"."""
    return dt.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


class CryptoPriceClient:
    """Fetches the authoritative open price of an up/down period."""

    DEFAULT_URL = "https://polymarket.com/api/crypto/crypto-price"

    def __init__(self, url: str = DEFAULT_URL, timeout_s: float = 10.0):
        self._url = url
        self._timeout_s = timeout_s
        self._session: Optional[aiohttp.ClientSession] = None

    async def _ensure_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            timeout = aiohttp.ClientTimeout(total=self._timeout_s)
            self._session = aiohttp.ClientSession(timeout=timeout)
        return self._session

    async def close(self) -> None:
        if self._session and not self._session.closed:
            await self._session.close()
            self._session = None

    async def get_open_price(
        self,
        symbol: CoinSymbol,
        period: PeriodKind,
        start: datetime,
        end: datetime,
    ) -> Optional[float]:
        """
        Get the open price for one period window.

        Returns:
            The open price, or None if the API has none yet
        """
        session = await self._ensure_session()
        params = {
            "symbol": symbol.ticker,
            "eventStartTime": to_iso_utc(start),
            "variant": period.variant,
            "endDate": to_iso_utc(end),
        }

        try:
            async with session.get(self._url, params=params) as resp:
                if resp.status != 200:
                    text = await resp.text()
                    raise CryptoPriceAPIError(f"Get open price failed: {resp.status} - {text}")
                data = await resp.json()
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as e:
            raise CryptoPriceAPIError(f"Get open price request failed: {e}")

        value = data.get("openPrice") if isinstance(data, dict) else None
        if value is None:
            return None
        try:
            return float(value)
        except (TypeError, ValueError):
            raise CryptoPriceAPIError(f"Unexpected openPrice value: {value!r}")
