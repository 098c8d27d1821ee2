"""
Backtest archived contracts.

Replays every archived slug through fresh strategy instances and
aggregates the settlement results per strategy.
"""

import logging
from dataclasses import dataclass, field
from typing import Callable, Optional

from .archive import SQLiteTickStore
from .strategy import Strategy, StrategyResult
from .types import CoinSymbol, PeriodKind

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class StrategyTotals:
    """Aggregate over all replayed contracts for one strategy."""
    strategy: str
    contracts: int = 0
    traded: int = 0
    wins: int = 0
    losses: int = 0
    total_profit: float = 0.0
    total_cost: float = 0.0

    def add(self, result: StrategyResult) -> None:
        self.contracts += 1
        if result.total_entries:
            self.traded += 1
        if result.total_profit > 0:
            self.wins += 1
        elif result.total_profit < 0:
            self.losses += 1
        self.total_profit = round(self.total_profit + result.total_profit, 2)
        self.total_cost = round(self.total_cost + result.total_cost, 2)


@dataclass(slots=True)
class BacktestReport:
    per_slug: dict[str, list[StrategyResult]] = field(default_factory=dict)
    totals: dict[str, StrategyTotals] = field(default_factory=dict)

    def lines(self) -> list[str]:
        out = []
        for slug, results in self.per_slug.items():
            out.append(slug)
            for result in results:
                out.append(f"  {result.summary()}")
        out.append("TOTAL")
        for totals in self.totals.values():
            out.append(
                f"  {totals.strategy}: contracts={totals.contracts} traded={totals.traded} "
                f"wins={totals.wins} losses={totals.losses} "
                f"profit={totals.total_profit:+.2f} cost={totals.total_cost:.2f}"
            )
        return out


def run_backtest(
    store: SQLiteTickStore,
    make_strategies: Callable[[], list[Strategy]],
    symbol: Optional[CoinSymbol] = None,
    period: Optional[PeriodKind] = None,
) -> BacktestReport:
    """
    Replay archived contracts.

    Args:
        store: Tick archive
        make_strategies: Factory for a fresh strategy set
        symbol: Only replay this coin
        period: Only replay this period

    Returns:
        Per-slug results and per-strategy totals
    """
    report = BacktestReport()
    strategies = make_strategies()
    for strategy in strategies:
        report.totals[strategy.name] = StrategyTotals(strategy=strategy.name)

    for slug in store.slugs(symbol=symbol, period=period):
        ticks = [record.to_tick() for record in store.get_by_slug(slug)]
        if not ticks:
            continue

        results = [strategy.evaluate(ticks) for strategy in strategies]
        report.per_slug[slug] = results
        for result in results:
            report.totals[result.strategy].add(result)

        logger.debug(f"Replayed {slug}: {len(ticks)} ticks")

    logger.info(f"Backtest finished: {len(report.per_slug)} contracts")
    return report
