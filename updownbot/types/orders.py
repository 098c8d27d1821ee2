"""
Order types.

Strategy-side bookkeeping (entries, hedges, grid levels) and the
intents handed to the order executor.
"""

from dataclasses import dataclass, field
from typing import Optional

from .core import OrderKind, Outcome, Side


@dataclass(slots=True)
class EntryOrder:
    """Entry into one outcome token at a grid level."""
    price: int  # cents
    timestamp_ms: int
    size: float
    outcome: Outcome
    is_re_entry: bool = False


@dataclass(slots=True)
class HedgeOrder:
    """
    Offsetting buy on the opposite token.

    Transitions unfilled -> filled at most once.
    """
    price: int  # cents
    size: float
    outcome: Outcome
    filled_at_ms: Optional[int] = None

    @property
    def is_filled(self) -> bool:
        return self.filled_at_ms is not None

    def fill(self, timestamp_ms: int) -> bool:
        """Mark filled; returns False if it already was."""
        if self.filled_at_ms is not None:
            return False
        self.filled_at_ms = timestamp_ms
        return True


@dataclass(slots=True)
class OrderPair:
    """An entry and its hedge, created together."""
    entry: EntryOrder
    hedge: HedgeOrder


@dataclass(slots=True)
class GridLevelState:
    """
    State of one grid level for one outcome token.

    Lives for one contract only.
    """
    level: int  # cents
    outcome: Outcome
    has_entered: bool = False
    pairs: list[OrderPair] = field(default_factory=list)

    @property
    def hedge_filled(self) -> bool:
        """True once every pair at this level has a filled hedge."""
        return bool(self.pairs) and all(p.hedge.is_filled for p in self.pairs)

    @property
    def last_pair(self) -> Optional[OrderPair]:
        return self.pairs[-1] if self.pairs else None


@dataclass(slots=True, frozen=True)
class OrderIntent:
    """
    What a strategy wants sent.

    The executor resolves `outcome` to the current contract's token id.
    For MARKET buys `size` is a dollar amount, otherwise shares.
    """
    outcome: Outcome
    side: Side
    price: float
    size: float
    kind: OrderKind = OrderKind.LIMIT
    reason: str = ""
    is_hedge: bool = False


@dataclass(slots=True)
class OrderResult:
    """Result of an order operation."""
    success: bool
    order_id: Optional[str] = None
    error_msg: Optional[str] = None
    retryable: bool = False
