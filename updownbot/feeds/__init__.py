"""
Streaming feeds for the up/down bot.

Contains asyncio websocket feeds built on FeedConnection:
- CoinPriceFeed / CoinPriceTracker: chainlink reference price per coin
- MarketQuoteFeed: best ask/bid for the current contract's two tokens
- UserEventFeed: authenticated order and trade updates
"""

from .websocket_base import ExponentialBackoff, FeedConnection, default_connector
from .coin_price_feed import CoinPriceFeed, CoinPriceTracker, LIVE_DATA_WS_URL
from .market_feed import MarketQuoteFeed, MARKET_WS_URL
from .user_feed import UserEventFeed, USER_WS_URL

__all__ = [
    "ExponentialBackoff",
    "FeedConnection",
    "default_connector",
    "CoinPriceFeed",
    "CoinPriceTracker",
    "LIVE_DATA_WS_URL",
    "MarketQuoteFeed",
    "MARKET_WS_URL",
    "UserEventFeed",
    "USER_WS_URL",
]
