"""
Core enums - the fundamental vocabulary of the up/down bot.

These are the basic building blocks used throughout the codebase.
"""

from datetime import timedelta
from enum import Enum, auto


class Outcome(Enum):
    """Binary outcome token of an up/down contract."""
    UP = "UP"
    DOWN = "DOWN"

    @property
    def opposite(self) -> "Outcome":
        """The other side of the contract."""
        return Outcome.DOWN if self is Outcome.UP else Outcome.UP


class Side(Enum):
    """Order side."""
    BUY = auto()
    SELL = auto()


class OrderKind(Enum):
    """How an order is priced."""
    LIMIT = auto()
    MARKET = auto()


class FeedState(Enum):
    """Connection state of a streaming subscription."""
    DISCONNECTED = auto()
    CONNECTING = auto()
    SUBSCRIBED = auto()
    CLOSING = auto()


class PeriodKind(Enum):
    """Length of a recurring up/down contract."""
    FIFTEEN_MINUTES = "15min"
    HOURLY = "hourly"

    @property
    def duration(self) -> timedelta:
        if self is PeriodKind.FIFTEEN_MINUTES:
            return timedelta(minutes=15)
        return timedelta(hours=1)

    @property
    def variant(self) -> str:
        """Variant name used by the crypto-price API."""
        return "fifteen" if self is PeriodKind.FIFTEEN_MINUTES else "hourly"

    @classmethod
    def parse(cls, value: str) -> "PeriodKind":
        """Parse "15min"/"15m"/"hourly"/"1h" style names."""
        normalized = value.strip().lower()
        if normalized in ("15min", "15m", "fifteen"):
            return cls.FIFTEEN_MINUTES
        if normalized in ("hourly", "1h", "hour"):
            return cls.HOURLY
        raise ValueError(f"Unknown period kind: {value!r}")


class CoinSymbol(Enum):
    """Reference assets with recurring up/down contracts."""
    BTC = "btc/usd"
    ETH = "eth/usd"
    SOL = "sol/usd"
    XRP = "xrp/usd"

    @property
    def short(self) -> str:
        """Short lowercase name used in 15-minute slugs (e.g. "btc")."""
        return self.value.split("/")[0]

    @property
    def ticker(self) -> str:
        """Upper-case ticker used by the crypto-price API (e.g. "BTC")."""
        return self.short.upper()

    @property
    def long_name(self) -> str:
        """Long name used in hourly slugs (e.g. "bitcoin")."""
        return _LONG_NAMES[self]

    @classmethod
    def parse(cls, value: str) -> "CoinSymbol":
        """Parse "btc", "BTC" or "btc/usd"."""
        normalized = value.strip().lower()
        for symbol in cls:
            if normalized in (symbol.value, symbol.short, symbol.long_name):
                return symbol
        raise ValueError(f"Unknown coin symbol: {value!r}")


_LONG_NAMES = {
    CoinSymbol.BTC: "bitcoin",
    CoinSymbol.ETH: "ethereum",
    CoinSymbol.SOL: "solana",
    CoinSymbol.XRP: "ripple",
}


class EventType(Enum):
    """Event types flowing through an engine's queues."""
    TOKEN_QUOTE = auto()
    PRICE_UPDATE = auto()
    QUOTE_CHANGE = auto()
    ROLLOVER = auto()
    BIAS_CHANGE = auto()
    USER_ORDER = auto()
    USER_TRADE = auto()
