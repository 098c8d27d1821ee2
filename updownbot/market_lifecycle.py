"""
Market lifecycle manager.

Owns the notion of "current contract" for one (coin, period) pair and
keeps exactly one quote subscription aligned to it.

Everything that mutates manager state goes through a single inbox and is
handled by one consumer task, in arrival order:

    MarketQuoteFeed.out_queue --+
    CoinPriceTracker queue -----+--> inbox --> MarketLifecycleManager --> out_queue
    rollover timer -------------+

out_queue carries QuoteChangeEvent, RolloverEvent and BiasChangeEvent
in one ordered stream, so a consumer never sees a quote of the new
contract before the rollover that introduced it.
"""

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Optional

from .clients.crypto_price_client import CryptoPriceClient
from .clients.market_finder import (
    MarketFinder,
    build_market_slug,
    get_period_end,
    get_period_start,
    next_boundary,
)
from .errors import MarketDataError
from .feeds.coin_price_feed import CoinPriceTracker
from .feeds.market_feed import MarketQuoteFeed
from .types import (
    BiasChangeEvent,
    CoinSymbol,
    ContractDescriptor,
    Event,
    PeriodKind,
    PricePoint,
    PriceUpdateEvent,
    QuoteChangeEvent,
    QuoteSnapshot,
    RolloverEvent,
    TokenQuote,
    TokenQuoteEvent,
    now_ms,
    round_price,
)

logger = logging.getLogger(__name__)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(slots=True)
class RolloverTick:
    """Inbox marker: the period boundary passed."""
    ts_local_ms: int


class MarketLifecycleManager:
    """
    Current-contract tracker for one (coin, period) pair.

    Rollover procedure:
    1. Tear down the quote subscription (no more old-contract quotes)
    2. Compute the slug for "now" and fetch its descriptor
    3. Replace the current descriptor and reset quotes; consumers reset
       their per-contract strategy state on the RolloverEvent
    4. Re-subscribe the quote feed to the new tokens
    5. Set the bias baseline: the latest reference price if one was
       observed, otherwise the period's open price from the API

    A failed lookup leaves no current contract until the next boundary.
    """

    def __init__(
        self,
        symbol: CoinSymbol,
        period: PeriodKind,
        finder: MarketFinder,
        quote_feed: MarketQuoteFeed,
        price_client: Optional[CryptoPriceClient] = None,
        tracker: Optional[CoinPriceTracker] = None,
        rollover_delay_s: float = 1.0,
        clock: Callable[[], datetime] = utc_now,
    ):
        """
        Initialize the manager.

        Args:
            symbol: Reference coin
            period: Contract period
            finder: Market lookup by slug
            quote_feed: Quote feed re-pointed at each contract
            price_client: Open-price lookup for the bias baseline
            tracker: Reference price tracker (may be shared across periods)
            rollover_delay_s: Seconds after the boundary before rolling,
                so the new market exists upstream
            clock: Wall clock (UTC), injectable for tests
        """
        self._symbol = symbol
        self._period = period
        self._finder = finder
        self._quote_feed = quote_feed
        self._price_client = price_client
        self._tracker = tracker
        self._rollover_delay_s = rollover_delay_s
        self._clock = clock

        self._current: Optional[ContractDescriptor] = None
        self._quotes = QuoteSnapshot()
        self._start_price: Optional[float] = None
        self._current_price: Optional[float] = None
        self._last_bias: Optional[float] = None

        self._inbox: asyncio.Queue = asyncio.Queue()
        self._price_updates: Optional[asyncio.Queue] = (
            tracker.subscribe() if tracker is not None else None
        )
        self._tasks: list[asyncio.Task] = []
        self._running = False

        # Stats
        self._rollover_count = 0
        self._stale_discarded = 0
        self._duplicates_suppressed = 0

        self.out_queue: asyncio.Queue[Event] = asyncio.Queue(maxsize=10000)

    @property
    def name(self) -> str:
        return f"{self._symbol.short}-{self._period.value}"

    @property
    def symbol(self) -> CoinSymbol:
        return self._symbol

    @property
    def period(self) -> PeriodKind:
        return self._period

    @property
    def current(self) -> Optional[ContractDescriptor]:
        return self._current

    @property
    def quotes(self) -> QuoteSnapshot:
        return self._quotes

    @property
    def start_price(self) -> Optional[float]:
        return self._start_price

    @property
    def current_price(self) -> Optional[float]:
        return self._current_price

    @property
    def bias(self) -> Optional[float]:
        """Current reference price minus the period's start price."""
        if self._start_price is None or self._current_price is None:
            return None
        return self._current_price - self._start_price

    @property
    def stale_discarded(self) -> int:
        return self._stale_discarded

    @property
    def duplicates_suppressed(self) -> int:
        return self._duplicates_suppressed

    @property
    def rollover_count(self) -> int:
        return self._rollover_count

    def can_start_trading(self) -> bool:
        """True once a contract, a start price and a current price are known."""
        return (
            self._current is not None
            and self._start_price is not None
            and self._current_price is not None
        )

    # --- lifecycle ---

    async def start(self) -> None:
        """Start the consumer, forwarders and timer; roll onto the current contract."""
        if self._running:
            return
        self._running = True

        self._tasks = [
            asyncio.create_task(self._process_loop(), name=f"{self.name}-lifecycle"),
            asyncio.create_task(
                self._forward(self._quote_feed.out_queue), name=f"{self.name}-quotes"
            ),
            asyncio.create_task(self._rollover_timer(), name=f"{self.name}-timer"),
        ]
        if self._price_updates is not None:
            self._tasks.append(
                asyncio.create_task(
                    self._forward(self._price_updates), name=f"{self.name}-prices"
                )
            )

        await self._inbox.put(RolloverTick(ts_local_ms=now_ms()))
        logger.info(f"{self.name}: Lifecycle manager started")

    async def stop(self) -> None:
        """Stop all tasks and close the quote subscription."""
        self._running = False
        for task in self._tasks:
            task.cancel()
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks = []
        await self._quote_feed.disconnect()
        logger.info(f"{self.name}: Lifecycle manager stopped")

    async def _process_loop(self) -> None:
        while self._running:
            item = await self._inbox.get()
            try:
                await self.process(item)
            except MarketDataError as e:
                logger.error(f"{self.name}: Market data error: {e}")
            except Exception as e:
                logger.exception(f"{self.name}: Error processing {type(item).__name__}: {e}")

    async def _forward(self, source: asyncio.Queue) -> None:
        while True:
            item = await source.get()
            await self._inbox.put(item)

    async def _rollover_timer(self) -> None:
        """Queue a RolloverTick just after every period boundary."""
        while self._running:
            now = self._clock()
            boundary = next_boundary(self._period, now)
            delay = (boundary - now).total_seconds() + self._rollover_delay_s
            await asyncio.sleep(max(0.0, delay))
            await self._inbox.put(RolloverTick(ts_local_ms=now_ms()))

    # --- event handling ---

    async def process(self, item) -> None:
        """Handle one inbox item."""
        if isinstance(item, RolloverTick):
            await self.rollover()
        elif isinstance(item, PriceUpdateEvent):
            self.on_price(item.point)
        elif isinstance(item, TokenQuoteEvent):
            self.on_token_quote(item)
        else:
            logger.debug(f"{self.name}: Ignoring {type(item).__name__}")

    async def rollover(self, now: Optional[datetime] = None) -> Optional[ContractDescriptor]:
        """
        Move onto the contract current at `now`.

        Returns:
            The new descriptor, or None if no active contract was found
        """
        now = now or self._clock()
        previous = self._current
        slug = build_market_slug(self._symbol, self._period, now)

        if previous is not None and previous.slug == slug and self._quote_feed.connected:
            logger.debug(f"{self.name}: Still on {slug}, nothing to roll")
            return previous

        logger.info(f"{self.name}: Rolling over to {slug}")

        # 1. Close the old subscription and drop anything it left queued
        await self._quote_feed.disconnect()
        self._drain(self._quote_feed.out_queue)
        self._current = None
        self._quotes.reset()

        # 2. Fetch the new descriptor
        descriptor = await self._finder.find_current_market(self._symbol, self._period, now)

        # 3. Replace
        self._current = descriptor
        self._last_bias = None
        self._rollover_count += 1

        if descriptor is None:
            self._start_price = None
            logger.warning(f"{self.name}: No active contract for {slug}, retrying at next boundary")
            self._emit(RolloverEvent(
                ts_local_ms=now_ms(), previous=previous, current=None, start_price=None,
            ))
            return None

        # 4. Subscribe to the new tokens
        self._quote_feed.set_tokens(descriptor.token_ids)
        await self._quote_feed.connect()

        # 5. Bias baseline
        self._start_price = await self._resolve_start_price(now)

        self._emit(RolloverEvent(
            ts_local_ms=now_ms(),
            previous=previous,
            current=descriptor,
            start_price=self._start_price,
        ))
        self._emit_bias()

        logger.info(
            f"{self.name}: Current contract {descriptor.slug} "
            f"(start price {self._start_price})"
        )
        return descriptor

    async def _resolve_start_price(self, now: datetime) -> Optional[float]:
        latest = self._latest_price()
        if latest is not None:
            return latest

        if self._price_client is None:
            return None

        start = get_period_start(self._period, now)
        end = get_period_end(self._period, now)
        try:
            price = await self._price_client.get_open_price(self._symbol, self._period, start, end)
        except MarketDataError as e:
            logger.warning(f"{self.name}: Could not fetch open price: {e}")
            return None

        if price is not None:
            logger.info(f"{self.name}: Open price from API: {price}")
        return price

    def _latest_price(self) -> Optional[float]:
        if self._current_price is not None:
            return self._current_price
        if self._tracker is not None and self._tracker.latest is not None:
            return self._tracker.latest.price
        return None

    def on_price(self, point: PricePoint) -> None:
        """Record a reference price and emit the bias if it moved."""
        self._current_price = point.price

        if self._current is not None and self._start_price is None:
            # Open price was unavailable at rollover; first observation stands in
            logger.warning(f"{self.name}: No start price, using first observed {point.price}")
            self._start_price = point.price

        self._emit_bias()

    def _emit_bias(self) -> None:
        bias = self.bias
        if self._current is None or bias is None or bias == self._last_bias:
            return
        self._last_bias = bias
        self._emit(BiasChangeEvent(
            ts_local_ms=now_ms(),
            slug=self._current.slug,
            bias=bias,
            current_price=self._current_price,
            start_price=self._start_price,
        ))

    def on_token_quote(self, event: TokenQuoteEvent) -> None:
        """
        Apply a raw token quote.

        Quotes for tokens outside the current contract are discarded.
        Emits a QuoteChangeEvent only if the rounded quote changed.
        """
        if self._current is None:
            self._stale_discarded += 1
            return

        outcome = self._current.outcome_for(event.asset_id)
        if outcome is None:
            self._stale_discarded += 1
            return

        previous = self._quotes.get(outcome)

        if event.best_ask is not None:
            # An empty ask side reads as 0; treat it as no sellers
            best_ask = round_price(event.best_ask) or 1.0
        else:
            best_ask = previous.best_ask if previous else 1.0

        if event.best_bid is not None:
            best_bid = round_price(event.best_bid)
        else:
            best_bid = previous.best_bid if previous else 0.0

        quote = TokenQuote(best_ask=best_ask, best_bid=best_bid)
        if quote == previous:
            self._duplicates_suppressed += 1
            return

        self._quotes.set(outcome, quote)
        self._emit(QuoteChangeEvent(
            ts_local_ms=event.ts_local_ms,
            slug=self._current.slug,
            changed=outcome,
            up=self._quotes.up,
            down=self._quotes.down,
        ))

    def _emit(self, event: Event) -> None:
        try:
            self.out_queue.put_nowait(event)
        except asyncio.QueueFull:
            logger.warning(f"{self.name}: Output queue full, dropping {event.event_type.name}")

    @staticmethod
    def _drain(queue: asyncio.Queue) -> int:
        dropped = 0
        while True:
            try:
                queue.get_nowait()
                dropped += 1
            except asyncio.QueueEmpty:
                return dropped
