"""Polymarket market websocket feed for the two tokens of one contract."""

import logging
from typing import Any, Optional

from .websocket_base import FeedConnection
from ..types import Event, TokenQuoteEvent, now_ms, parse_float

logger = logging.getLogger(__name__)

MARKET_WS_URL = "wss://ws-subscriptions-clob.polymarket.com/ws/market"


class MarketQuoteFeed(FeedConnection):
    """
    Best ask/bid stream for a pair of outcome tokens.

    Token ids are set before connect(); the lifecycle manager swaps them
    on rollover with disconnect() / set_tokens() / connect().
    """

    def __init__(
        self,
        url: str = MARKET_WS_URL,
        name: str = "market",
        heartbeat_interval_s: float = 10.0,
        **kwargs,
    ):
        super().__init__(
            url,
            name=name,
            heartbeat_interval_s=heartbeat_interval_s,
            **kwargs,
        )
        self._token_ids: list[str] = []

    @property
    def token_ids(self) -> list[str]:
        return list(self._token_ids)

    def set_tokens(self, token_ids: list[str]) -> None:
        """Set tokens to subscribe to on the next connect()."""
        self._token_ids = list(token_ids)

    def _subscribe_message(self) -> Optional[dict]:
        if not self._token_ids:
            logger.warning(f"{self.name}: No tokens set, subscribing to nothing")
            return None
        return {
            "assets_ids": self._token_ids,
            "type": "market",
        }

    def _parse(self, data: Any) -> list[Event]:
        if isinstance(data, list):
            events: list[Event] = []
            for item in data:
                events.extend(self._parse_event(item))
            return events
        return self._parse_event(data)

    def _parse_event(self, data: dict) -> list[Event]:
        """Parse a single event."""
        ts = now_ms()
        event_type = data.get("event_type", "")

        if event_type == "price_change":
            return [
                TokenQuoteEvent(
                    ts_local_ms=ts,
                    asset_id=change["asset_id"],
                    best_ask=parse_float(change.get("best_ask")),
                    best_bid=parse_float(change.get("best_bid")),
                )
                for change in data.get("price_changes", [])
            ]

        if event_type == "book":
            # Full book snapshot; take the extremes rather than trusting array order
            bids = [float(level["price"]) for level in data.get("bids", [])]
            asks = [float(level["price"]) for level in data.get("asks", [])]
            return [
                TokenQuoteEvent(
                    ts_local_ms=ts,
                    asset_id=data["asset_id"],
                    best_ask=min(asks) if asks else None,
                    best_bid=max(bids) if bids else None,
                )
            ]

        # last_trade_price, tick_size_change and others carry no BBO
        return []
