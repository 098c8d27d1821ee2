"""
Polymarket API clients for market discovery and order operations.

This module contains:
- GammaClient: Market discovery via Gamma API
- CryptoPriceClient: Period open prices for the bias baseline
- MarketFinder: Slug construction and contract lookup
- PolymarketRestClient: REST interface for order operations
"""

from .gamma_client import GammaClient, GammaAPIError
from .crypto_price_client import CryptoPriceClient, CryptoPriceAPIError
from .market_finder import (
    MarketFinder,
    ET,
    build_market_slug,
    build_15m_slug,
    build_hourly_slug,
    get_period_start,
    get_period_end,
    next_boundary,
    parse_token_ids,
)
from .polymarket_rest_client import (
    PolymarketRestClient,
    ApiCredentials,
    CancelResult,
    OrderType,
)

__all__ = [
    "GammaClient",
    "GammaAPIError",
    "CryptoPriceClient",
    "CryptoPriceAPIError",
    "MarketFinder",
    "ET",
    "build_market_slug",
    "build_15m_slug",
    "build_hourly_slug",
    "get_period_start",
    "get_period_end",
    "next_boundary",
    "parse_token_ids",
    "PolymarketRestClient",
    "ApiCredentials",
    "CancelResult",
    "OrderType",
]
