"""
Event types carried on the engine's queues.

All events inherit from the Event base class; each subclass fixes its
own event_type in __post_init__.
"""

from dataclasses import dataclass, field
from typing import Optional

from .core import EventType, Outcome
from .market_data import ContractDescriptor, PricePoint, TokenQuote


@dataclass(slots=True)
class Event:
    """Base class for queue events."""
    ts_local_ms: int
    event_type: EventType = field(init=False)


@dataclass(slots=True)
class TokenQuoteEvent(Event):
    """
    Raw best ask/bid for one token as reported by the quote feed.

    Unrounded and untagged; the lifecycle manager decides whether it
    belongs to the current contract.
    """
    asset_id: str
    best_ask: Optional[float]
    best_bid: Optional[float]

    def __post_init__(self):
        self.event_type = EventType.TOKEN_QUOTE


@dataclass(slots=True)
class PriceUpdateEvent(Event):
    """New reference price."""
    point: PricePoint

    def __post_init__(self):
        self.event_type = EventType.PRICE_UPDATE


@dataclass(slots=True)
class QuoteChangeEvent(Event):
    """
    Quote change for the current contract.

    Emitted only when a rounded ask/bid actually changed. Both sides are
    carried so consumers see a consistent snapshot.
    """
    slug: str
    changed: Outcome
    up: Optional[TokenQuote]
    down: Optional[TokenQuote]

    def __post_init__(self):
        self.event_type = EventType.QUOTE_CHANGE


@dataclass(slots=True)
class RolloverEvent(Event):
    """The current contract was replaced."""
    previous: Optional[ContractDescriptor]
    current: Optional[ContractDescriptor]
    start_price: Optional[float] = None

    def __post_init__(self):
        self.event_type = EventType.ROLLOVER


@dataclass(slots=True)
class BiasChangeEvent(Event):
    """Reference price moved relative to the period's start price."""
    slug: str
    bias: float
    current_price: float
    start_price: float

    def __post_init__(self):
        self.event_type = EventType.BIAS_CHANGE


@dataclass(slots=True)
class UserOrderEvent(Event):
    """Order lifecycle message from the account feed."""
    order_id: str
    asset_id: str
    status: str
    side: str
    price: Optional[float]
    original_size: Optional[float]
    size_matched: Optional[float]
    raw: dict

    def __post_init__(self):
        self.event_type = EventType.USER_ORDER


@dataclass(slots=True)
class UserTradeEvent(Event):
    """Trade (fill) message from the account feed."""
    trade_id: str
    asset_id: str
    status: str
    side: str
    price: Optional[float]
    size: Optional[float]
    raw: dict

    def __post_init__(self):
        self.event_type = EventType.USER_TRADE
