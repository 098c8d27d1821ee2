"""
Reference price feed from the Polymarket live-data websocket.

CoinPriceFeed subscribes to the chainlink price topic for one symbol.
CoinPriceTracker owns the feed, keeps the latest PricePoint and fans
updates out to the queues of its consumers.
"""

import asyncio
import logging
from typing import Any, Optional

import orjson

from .websocket_base import FeedConnection
from ..types import CoinSymbol, Event, PricePoint, PriceUpdateEvent, now_ms

logger = logging.getLogger(__name__)

LIVE_DATA_WS_URL = "wss://ws-live-data.polymarket.com/"
PRICE_TOPIC = "crypto_prices_chainlink"


class CoinPriceFeed(FeedConnection):
    """Chainlink reference price stream for one coin."""

    def __init__(
        self,
        symbol: CoinSymbol,
        url: str = LIVE_DATA_WS_URL,
        heartbeat_interval_s: float = 30.0,
        **kwargs,
    ):
        super().__init__(
            url,
            name=f"price-{symbol.short}",
            heartbeat_interval_s=heartbeat_interval_s,
            **kwargs,
        )
        self._symbol = symbol

    @property
    def symbol(self) -> CoinSymbol:
        return self._symbol

    def _subscribe_message(self) -> Optional[dict]:
        # filters is itself a JSON-encoded string
        return {
            "action": "subscribe",
            "subscriptions": [
                {
                    "topic": PRICE_TOPIC,
                    "type": "*",
                    "filters": orjson.dumps({"symbol": self._symbol.value}).decode(),
                }
            ],
        }

    def _parse(self, data: Any) -> list[Event]:
        if not isinstance(data, dict):
            return []
        if data.get("topic") != PRICE_TOPIC or data.get("type") != "update":
            return []

        payload = data["payload"]
        symbol = payload.get("symbol")
        if symbol and symbol.lower() != self._symbol.value:
            return []

        point = PricePoint(
            symbol=self._symbol,
            price=float(payload["value"]),
            timestamp_ms=int(payload.get("timestamp") or data.get("timestamp") or 0),
        )
        return [PriceUpdateEvent(ts_local_ms=now_ms(), point=point)]


class CoinPriceTracker:
    """
    Latest reference price for one coin.

    Several lifecycle managers (one per period) can share a tracker;
    each gets its own queue from subscribe().
    """

    def __init__(self, feed: CoinPriceFeed):
        self._feed = feed
        self._latest: Optional[PricePoint] = None
        self._consumers: list[asyncio.Queue] = []
        self._task: Optional[asyncio.Task] = None
        self._running = False

    @property
    def symbol(self) -> CoinSymbol:
        return self._feed.symbol

    @property
    def feed(self) -> CoinPriceFeed:
        return self._feed

    @property
    def latest(self) -> Optional[PricePoint]:
        """Most recent price, None until the first update."""
        return self._latest

    def subscribe(self, maxsize: int = 1000) -> asyncio.Queue:
        """Create a change-notification channel for one consumer."""
        queue: asyncio.Queue = asyncio.Queue(maxsize=maxsize)
        self._consumers.append(queue)
        return queue

    def update(self, point: PricePoint) -> None:
        """Record a new price and notify consumers."""
        if self._latest is not None and point.timestamp_ms < self._latest.timestamp_ms:
            logger.debug(
                f"Ignoring out-of-order {point.symbol.value} price "
                f"({point.timestamp_ms} < {self._latest.timestamp_ms})"
            )
            return

        self._latest = point
        event = PriceUpdateEvent(ts_local_ms=now_ms(), point=point)
        for queue in self._consumers:
            try:
                queue.put_nowait(event)
            except asyncio.QueueFull:
                logger.warning(f"Price consumer queue full, dropping {point.symbol.value} update")

    async def start(self) -> None:
        """Connect the feed and start pumping its events."""
        if self._running:
            return
        self._running = True
        await self._feed.connect()
        self._task = asyncio.create_task(
            self._pump(), name=f"tracker-{self.symbol.short}"
        )
        logger.info(f"Price tracker started for {self.symbol.value}")

    async def stop(self) -> None:
        self._running = False
        await self._feed.disconnect()
        task, self._task = self._task, None
        if task is not None:
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        logger.info(f"Price tracker stopped for {self.symbol.value}")

    async def _pump(self) -> None:
        while self._running:
            event = await self._feed.out_queue.get()
            if isinstance(event, PriceUpdateEvent):
                self.update(event.point)
