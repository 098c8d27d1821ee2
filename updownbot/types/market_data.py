"""
Market data types.

Types for the reference price, the active contract and its quotes.
"""

from dataclasses import dataclass
from typing import Optional

from .core import CoinSymbol, Outcome, PeriodKind


@dataclass(slots=True, frozen=True)
class PricePoint:
    """
    One reference-asset price observation.

    Immutable: a newer point supersedes it, nothing mutates it.
    """
    symbol: CoinSymbol
    price: float
    timestamp_ms: int


@dataclass(slots=True, frozen=True)
class ContractDescriptor:
    """
    One instance of a recurring up/down contract.

    Exactly one descriptor is current per (symbol, period) at a time,
    owned by the MarketLifecycleManager.
    """
    slug: str
    up_token_id: str
    down_token_id: str
    condition_id: str
    question: str
    symbol: CoinSymbol
    period: PeriodKind
    start_ms: int
    end_ms: int

    @property
    def token_ids(self) -> list[str]:
        return [self.up_token_id, self.down_token_id]

    def token_for(self, outcome: Outcome) -> str:
        """Token id trading the given outcome."""
        return self.up_token_id if outcome is Outcome.UP else self.down_token_id

    def outcome_for(self, token_id: str) -> Optional[Outcome]:
        """Outcome traded by a token id, None if it belongs elsewhere."""
        if token_id == self.up_token_id:
            return Outcome.UP
        if token_id == self.down_token_id:
            return Outcome.DOWN
        return None

    def remaining_ms(self, now_wall_ms: int) -> int:
        return max(0, self.end_ms - now_wall_ms)


@dataclass(slots=True, frozen=True)
class TokenQuote:
    """Best ask/bid for one outcome token, prices on the 2 dp grid."""
    best_ask: float
    best_bid: float


@dataclass(slots=True)
class QuoteSnapshot:
    """
    Latest quotes for the current contract's two tokens.

    Mutated in place by the lifecycle manager and reset on rollover,
    so it never holds quotes of a superseded contract.
    """
    up: Optional[TokenQuote] = None
    down: Optional[TokenQuote] = None

    @property
    def is_complete(self) -> bool:
        return self.up is not None and self.down is not None

    def get(self, outcome: Outcome) -> Optional[TokenQuote]:
        return self.up if outcome is Outcome.UP else self.down

    def set(self, outcome: Outcome, quote: TokenQuote) -> None:
        if outcome is Outcome.UP:
            self.up = quote
        else:
            self.down = quote

    def reset(self) -> None:
        self.up = None
        self.down = None


@dataclass(slots=True, frozen=True)
class Tick:
    """
    One chronological observation fed to strategies.

    Prices are the best asks of the up/down tokens in 0-1 units.
    """
    timestamp_ms: int
    up_price: float
    down_price: float
    coin_price_bias: Optional[float] = None

    def price_of(self, outcome: Outcome) -> float:
        return self.up_price if outcome is Outcome.UP else self.down_price
