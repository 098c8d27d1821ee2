"""Polymarket authenticated user channel: order and trade updates."""

import logging
from typing import Any, Optional

from .websocket_base import FeedConnection
from ..types import Event, UserOrderEvent, UserTradeEvent, now_ms, parse_float

logger = logging.getLogger(__name__)

USER_WS_URL = "wss://ws-subscriptions-clob.polymarket.com/ws/user"


class UserEventFeed(FeedConnection):
    """
    Account-event stream.

    Authenticates with L2 API credentials on every (re)connect.
    """

    def __init__(
        self,
        api_key: str,
        api_secret: str,
        passphrase: str,
        url: str = USER_WS_URL,
        heartbeat_interval_s: float = 10.0,
        markets: Optional[list[str]] = None,
        **kwargs,
    ):
        super().__init__(
            url,
            name="user",
            heartbeat_interval_s=heartbeat_interval_s,
            **kwargs,
        )
        self._api_key = api_key
        self._api_secret = api_secret
        self._passphrase = passphrase
        self._markets = list(markets or [])

    def _subscribe_message(self) -> Optional[dict]:
        msg = {
            "auth": {
                "apikey": self._api_key,
                "secret": self._api_secret,
                "passphrase": self._passphrase,
            },
            "type": "user",
        }
        if self._markets:
            msg["markets"] = self._markets
        return msg

    def _parse(self, data: Any) -> list[Event]:
        items = data if isinstance(data, list) else [data]
        events: list[Event] = []
        for item in items:
            event = self._parse_event(item)
            if event is not None:
                events.append(event)
        return events

    def _parse_event(self, data: dict) -> Optional[Event]:
        event_type = data.get("event_type")
        ts = now_ms()

        if event_type == "order":
            return UserOrderEvent(
                ts_local_ms=ts,
                order_id=data["id"],
                asset_id=data.get("asset_id", ""),
                status=data.get("type", ""),
                side=data.get("side", ""),
                price=parse_float(data.get("price")),
                original_size=parse_float(data.get("original_size")),
                size_matched=parse_float(data.get("size_matched")),
                raw=data,
            )

        if event_type == "trade":
            return UserTradeEvent(
                ts_local_ms=ts,
                trade_id=data["id"],
                asset_id=data.get("asset_id", ""),
                status=data.get("status", ""),
                side=data.get("side", ""),
                price=parse_float(data.get("price")),
                size=parse_float(data.get("size")),
                raw=data,
            )

        logger.debug(f"user: Ignoring message type {event_type!r}")
        return None
