"""
Up/down bot types.

Re-exports all types so callers can import from `updownbot.types`
or from the specific submodules.
"""

# Core enums
from .core import (
    Outcome,
    Side,
    OrderKind,
    FeedState,
    PeriodKind,
    CoinSymbol,
    EventType,
)

# Utility functions
from .utils import (
    now_ms,
    wall_ms,
    round_price,
    price_to_cents,
    cents_to_price,
    parse_float,
)

# Market data
from .market_data import (
    PricePoint,
    ContractDescriptor,
    TokenQuote,
    QuoteSnapshot,
    Tick,
)

# Orders
from .orders import (
    EntryOrder,
    HedgeOrder,
    OrderPair,
    GridLevelState,
    OrderIntent,
    OrderResult,
)

# Events
from .events import (
    Event,
    TokenQuoteEvent,
    PriceUpdateEvent,
    QuoteChangeEvent,
    RolloverEvent,
    BiasChangeEvent,
    UserOrderEvent,
    UserTradeEvent,
)

__all__ = [
    "Outcome", "Side", "OrderKind", "FeedState", "PeriodKind", "CoinSymbol",
    "EventType",
    "now_ms", "wall_ms", "round_price", "price_to_cents", "cents_to_price",
    "parse_float",
    "PricePoint", "ContractDescriptor", "TokenQuote", "QuoteSnapshot", "Tick",
    "EntryOrder", "HedgeOrder", "OrderPair", "GridLevelState", "OrderIntent",
    "OrderResult",
    "Event", "TokenQuoteEvent", "PriceUpdateEvent", "QuoteChangeEvent",
    "RolloverEvent", "BiasChangeEvent", "UserOrderEvent", "UserTradeEvent",
]
