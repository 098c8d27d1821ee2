"""
Up/down market finder for Polymarket.

Finds the current contract for a (coin, period) pair by constructing the
slug directly from the clock. Two slug families exist:

    15 minutes: "{coin}-updown-15m-{unix seconds of period start}"
        e.g. btc-updown-15m-1767225600
    hourly (Eastern Time): "{coin name}-up-or-down-{month}-{day}-{hour}{am/pm}-et"
        e.g. bitcoin-up-or-down-january-23-1pm-et
"""

import json
import logging
from datetime import datetime, timedelta, timezone
from typing import Optional
from zoneinfo import ZoneInfo

from .gamma_client import GammaClient, GammaAPIError
from ..types import CoinSymbol, ContractDescriptor, PeriodKind

logger = logging.getLogger(__name__)

# Eastern Time zone
ET = ZoneInfo("America/New_York")

# Month names for slug construction
MONTH_NAMES = [
    "january", "february", "march", "april", "may", "june",
    "july", "august", "september", "october", "november", "december"
]


def _as_utc(now: Optional[datetime]) -> datetime:
    if now is None:
        return datetime.now(timezone.utc)
    if now.tzinfo is None:
        return now.replace(tzinfo=timezone.utc)
    return now.astimezone(timezone.utc)


def get_period_start(period: PeriodKind, now: Optional[datetime] = None) -> datetime:
    """
    Start of the period containing `now`, in UTC.

    Eastern Time offsets are whole hours, so the top of the hour in ET
    is also the top of the hour in UTC.
    """
    now = _as_utc(now)
    if period is PeriodKind.FIFTEEN_MINUTES:
        return now.replace(minute=now.minute - now.minute % 15, second=0, microsecond=0)
    return now.replace(minute=0, second=0, microsecond=0)


def get_period_end(period: PeriodKind, now: Optional[datetime] = None) -> datetime:
    """End of the period containing `now` (start of the next one)."""
    return get_period_start(period, now) + period.duration


def next_boundary(period: PeriodKind, now: Optional[datetime] = None) -> datetime:
    """Next rollover instant strictly after `now`."""
    return get_period_end(period, now)


def build_15m_slug(symbol: CoinSymbol, start: datetime) -> str:
    """Slug of the 15-minute contract starting at `start`."""
    return f"{symbol.short}-updown-15m-{int(_as_utc(start).timestamp())}"


def build_hourly_slug(symbol: CoinSymbol, start: datetime) -> str:
    """
    Slug of the hourly contract starting at `start`.

    The hour in the slug is the market START hour in ET: the "1pm"
    market starts at 1pm and resolves at 2pm.

    Examples:
    - bitcoin-up-or-down-january-23-1pm-et
    - ethereum-up-or-down-february-14-12pm-et
    - solana-up-or-down-march-5-12am-et
    """
    if start.tzinfo is None:
        start = start.replace(tzinfo=ET)
    else:
        start = start.astimezone(ET)

    month = MONTH_NAMES[start.month - 1]
    hour_24 = start.hour

    # Convert to 12-hour format
    if hour_24 == 0:
        hour_12, suffix = 12, "am"
    elif hour_24 < 12:
        hour_12, suffix = hour_24, "am"
    elif hour_24 == 12:
        hour_12, suffix = 12, "pm"
    else:
        hour_12, suffix = hour_24 - 12, "pm"

    return f"{symbol.long_name}-up-or-down-{month}-{start.day}-{hour_12}{suffix}-et"


def build_market_slug(
    symbol: CoinSymbol,
    period: PeriodKind,
    now: Optional[datetime] = None,
) -> str:
    """Slug of the contract current at `now` (defaults to the wall clock)."""
    start = get_period_start(period, now)
    if period is PeriodKind.FIFTEEN_MINUTES:
        return build_15m_slug(symbol, start)
    return build_hourly_slug(symbol, start)


def parse_token_ids(raw) -> list[str]:
    """
    Parse the clobTokenIds field.

    Gamma returns it as a JSON-encoded list, but comma-separated strings
    and plain lists show up too.
    """
    if raw is None:
        return []
    if isinstance(raw, list):
        return [str(t) for t in raw if str(t)]

    text = str(raw).strip()
    if text.startswith("["):
        try:
            parsed = json.loads(text)
            if isinstance(parsed, list):
                return [str(t) for t in parsed if str(t)]
        except json.JSONDecodeError:
            pass

    return [part.strip().strip("\"'[] ") for part in text.split(",") if part.strip().strip("\"'[] ")]


def _parse_outcomes(raw) -> list[str]:
    if isinstance(raw, list):
        return [str(o) for o in raw]
    if isinstance(raw, str):
        try:
            parsed = json.loads(raw)
            if isinstance(parsed, list):
                return [str(o) for o in parsed]
        except json.JSONDecodeError:
            pass
    return []


class MarketFinder:
    """
    Finds up/down contracts on Polymarket.

    Strategy:
    1. Construct the slug directly from the clock
    2. Fetch open markets for the slug from Gamma API
    3. Take the first match and split its token ids

    Token order is a convention: index `up_index` is the up token and the
    other one is down. When Gamma also lists `outcomes`, a disagreement
    is logged but the convention still wins.
    """

    def __init__(self, gamma: GammaClient, up_index: int = 0):
        """
        Initialize the market finder.

        Args:
            gamma: Gamma API client
            up_index: Position of the up token in clobTokenIds (0 or 1)
        """
        if up_index not in (0, 1):
            raise ValueError("up_index must be 0 or 1")
        self._gamma = gamma
        self._up_index = up_index

    async def find_current_market(
        self,
        symbol: CoinSymbol,
        period: PeriodKind,
        now: Optional[datetime] = None,
    ) -> Optional[ContractDescriptor]:
        """
        Find the contract for the period containing `now`.

        Returns:
            ContractDescriptor or None if not found
        """
        start = get_period_start(period, now)
        slug = build_market_slug(symbol, period, start)
        logger.info(f"Looking for market with slug: {slug}")
        return await self.find_by_slug(slug, symbol, period, start)

    async def find_by_slug(
        self,
        slug: str,
        symbol: CoinSymbol,
        period: PeriodKind,
        start: datetime,
    ) -> Optional[ContractDescriptor]:
        """Fetch and parse the open market behind a slug."""
        try:
            markets = await self._gamma.get_markets_by_slug(slug, closed=False)
        except GammaAPIError as e:
            logger.error(f"Error fetching market {slug}: {e}")
            return None

        if not markets:
            logger.warning(f"No active market found for slug: {slug}")
            return None

        return self._parse_market(markets[0], slug, symbol, period, start)

    def _parse_market(
        self,
        market: dict,
        slug: str,
        symbol: CoinSymbol,
        period: PeriodKind,
        start: datetime,
    ) -> Optional[ContractDescriptor]:
        """Parse market data into ContractDescriptor."""
        token_ids = parse_token_ids(market.get("clobTokenIds"))
        if len(token_ids) < 2:
            logger.warning(f"Market {slug} has {len(token_ids)} token ids, need 2")
            return None

        up_token = token_ids[self._up_index]
        down_token = token_ids[1 - self._up_index]

        outcomes = _parse_outcomes(market.get("outcomes"))
        if len(outcomes) >= 2 and outcomes[self._up_index].strip().lower() != "up":
            logger.warning(
                f"Market {slug} lists outcomes {outcomes}; keeping index "
                f"{self._up_index} as the up token"
            )

        start_utc = _as_utc(start)
        end_utc = start_utc + period.duration

        descriptor = ContractDescriptor(
            slug=market.get("slug") or slug,
            up_token_id=up_token,
            down_token_id=down_token,
            condition_id=market.get("conditionId", ""),
            question=market.get("question", ""),
            symbol=symbol,
            period=period,
            start_ms=int(start_utc.timestamp() * 1000),
            end_ms=int(end_utc.timestamp() * 1000),
        )

        logger.info(f"Found market: {descriptor.question or descriptor.slug}")
        logger.info(f"  Up token:   {up_token[:20]}...")
        logger.info(f"  Down token: {down_token[:20]}...")
        return descriptor
