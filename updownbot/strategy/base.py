"""
Strategy base classes and result types.

This module defines:
- ContractWindow: lifetime of the contract a strategy is evaluating
- StrategyResult: settlement valuation of one contract
- Strategy: abstract base class every hedging variant implements
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Iterable, Optional

from ..types import ContractDescriptor, OrderIntent, OrderPair, Outcome, PeriodKind, Tick


@dataclass(slots=True, frozen=True)
class ContractWindow:
    """Start/end of a contract in wall-clock milliseconds."""
    start_ms: int
    end_ms: int
    slug: str = ""

    @classmethod
    def from_descriptor(cls, descriptor: ContractDescriptor) -> "ContractWindow":
        return cls(
            start_ms=descriptor.start_ms,
            end_ms=descriptor.end_ms,
            slug=descriptor.slug,
        )

    @classmethod
    def from_first_tick(cls, timestamp_ms: int, period: PeriodKind, slug: str = "") -> "ContractWindow":
        """Window assumed to start at the first observed tick."""
        duration_ms = int(period.duration.total_seconds() * 1000)
        return cls(start_ms=timestamp_ms, end_ms=timestamp_ms + duration_ms, slug=slug)

    def remaining_s(self, timestamp_ms: int) -> float:
        return (self.end_ms - timestamp_ms) / 1000


@dataclass(slots=True)
class StrategyResult:
    """
    Settlement valuation of one contract.

    Money values are in dollars per unit size, rounded to cents.

    Attributes:
        strategy: Strategy name
        total_profit: final_value - total_cost
        total_cost: Everything paid for entries and filled hedges
        final_value: Sale proceeds plus settlement payout of held tokens
        total_entries: Entry orders recorded
        total_hedges_filled: Hedge (or second-leg) orders filled
        winner: Outcome paid 1 at settlement, None without data
        levels_used: Grid levels with at least one entry
        order_pairs: Entry/hedge pairs in entry order
        details: Variant-specific extras
    """
    strategy: str
    total_profit: float = 0.0
    total_cost: float = 0.0
    final_value: float = 0.0
    total_entries: int = 0
    total_hedges_filled: int = 0
    winner: Optional[Outcome] = None
    levels_used: list[int] = field(default_factory=list)
    order_pairs: list[OrderPair] = field(default_factory=list)
    details: dict = field(default_factory=dict)

    @classmethod
    def empty(cls, strategy: str) -> "StrategyResult":
        """Result of a contract with no observations."""
        return cls(strategy=strategy)

    def summary(self) -> str:
        winner = self.winner.value if self.winner else "-"
        return (
            f"{self.strategy}: profit={self.total_profit:+.2f} cost={self.total_cost:.2f} "
            f"value={self.final_value:.2f} entries={self.total_entries} "
            f"hedges={self.total_hedges_filled} winner={winner}"
        )


def settlement_winner(up_price: float, down_price: float) -> Outcome:
    """Up wins only with a strictly higher final price; ties go to down."""
    return Outcome.UP if up_price > down_price else Outcome.DOWN


def payout(outcome: Outcome, winner: Outcome, size: float) -> float:
    """Settlement value of `size` units of `outcome`."""
    return size if outcome is winner else 0.0


class Strategy(ABC):
    """
    Abstract base class for per-contract hedging strategies.

    A strategy is a state machine over one contract's chronological tick
    stream: reset() at the start of a contract, on_tick() for every
    observation (returning the orders it wants sent), settle() once the
    contract is over. settle() does not mutate state, so calling it twice
    gives the same result.

    Implementing a Strategy:
        1. Subclass Strategy and set `name`
        2. Implement reset(), on_tick() and settle()
        3. Keep prices in integer cents internally

    Example:
        class AlwaysBuyUp(Strategy):
            name = "always_up"

            def reset(self, window=None):
                self._bought = False
                self._last = None

            def on_tick(self, tick):
                self._last = tick
                if self._bought:
                    return []
                self._bought = True
                return [OrderIntent(Outcome.UP, Side.BUY, tick.up_price, 1)]

            def settle(self):
                ...
    """

    name: str = "strategy"

    @abstractmethod
    def reset(self, window: Optional[ContractWindow] = None) -> None:
        """Clear all per-contract state; `window` is the new contract's lifetime."""

    @abstractmethod
    def on_tick(self, tick: Tick) -> list[OrderIntent]:
        """Consume one observation; return order intents triggered by it."""

    @abstractmethod
    def settle(self) -> StrategyResult:
        """Value the contract using the last observed tick."""

    def evaluate(
        self,
        ticks: Iterable[Tick],
        window: Optional[ContractWindow] = None,
    ) -> StrategyResult:
        """Run a whole recorded contract through a fresh state machine."""
        self.reset(window)
        for tick in ticks:
            self.on_tick(tick)
        return self.settle()
