"""
Up/Down Bot - Polymarket up/down contract lifecycle and hedge strategies

Tracks the current 15-minute and hourly up/down contracts per coin, keeps
one quote subscription aligned to each, and evaluates grid, dual-sell and
bias-gated hedging strategies on the resulting tick stream.
"""

__version__ = "0.1.0"

# Core types
from .types import (
    Outcome,
    Side,
    OrderKind,
    FeedState,
    PeriodKind,
    CoinSymbol,
    PricePoint,
    ContractDescriptor,
    TokenQuote,
    QuoteSnapshot,
    Tick,
    OrderIntent,
    OrderResult,
    QuoteChangeEvent,
    RolloverEvent,
    BiasChangeEvent,
)

# Errors
from .errors import (
    UpdownError,
    FeedError,
    StaleFeedError,
    MarketDataError,
    ConfigurationError,
    OrderPlacementError,
    TradingDisabledError,
)

# Feeds
from .feeds import (
    ExponentialBackoff,
    FeedConnection,
    CoinPriceFeed,
    CoinPriceTracker,
    MarketQuoteFeed,
    UserEventFeed,
)

# Clients
from .clients import GammaClient, CryptoPriceClient, MarketFinder, PolymarketRestClient

# Lifecycle
from .market_lifecycle import MarketLifecycleManager

# Strategy
from .strategy import (
    Strategy,
    StrategyResult,
    GridHedgeStrategy,
    DualSellStrategy,
    BiasHedgeStrategy,
    StrategyRunner,
)

# Execution and archive
from .executor import OrderExecutor
from .archive import SQLiteTickStore, TickRecorder

# Application
from .config import AppConfig
from .app import UpDownApplication, MarketEngine

__all__ = [
    # Version
    "__version__",
    # Types
    "Outcome",
    "Side",
    "OrderKind",
    "FeedState",
    "PeriodKind",
    "CoinSymbol",
    "PricePoint",
    "ContractDescriptor",
    "TokenQuote",
    "QuoteSnapshot",
    "Tick",
    "OrderIntent",
    "OrderResult",
    "QuoteChangeEvent",
    "RolloverEvent",
    "BiasChangeEvent",
    # Errors
    "UpdownError",
    "FeedError",
    "StaleFeedError",
    "MarketDataError",
    "ConfigurationError",
    "OrderPlacementError",
    "TradingDisabledError",
    # Feeds
    "ExponentialBackoff",
    "FeedConnection",
    "CoinPriceFeed",
    "CoinPriceTracker",
    "MarketQuoteFeed",
    "UserEventFeed",
    # Clients
    "GammaClient",
    "CryptoPriceClient",
    "MarketFinder",
    "PolymarketRestClient",
    # Lifecycle
    "MarketLifecycleManager",
    # Strategy
    "Strategy",
    "StrategyResult",
    "GridHedgeStrategy",
    "DualSellStrategy",
    "BiasHedgeStrategy",
    "StrategyRunner",
    # Execution and archive
    "OrderExecutor",
    "SQLiteTickStore",
    "TickRecorder",
    # Application
    "AppConfig",
    "UpDownApplication",
    "MarketEngine",
]
