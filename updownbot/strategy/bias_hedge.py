"""
Bias/time-gated hedge strategy.

Enters once on the losing (cheaper) token while the reference price is
still close to its period open, there is enough time left and the
losing token is cheap; immediately rests a hedge buy on the winning
token capped so entry + hedge <= max_total_cost.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from .base import ContractWindow, Strategy, StrategyResult, payout
from ..types import (
    EntryOrder,
    HedgeOrder,
    OrderIntent,
    OrderPair,
    Outcome,
    PeriodKind,
    Side,
    Tick,
    cents_to_price,
    price_to_cents,
)

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class BiasHedgeConfig:
    """
    Bias hedge parameters.

    Attributes:
        price_diff: Enter only while |bias| is below this (reference price units)
        time_till_end_s: Enter only while more than this many seconds remain
        target_price: Enter only while the losing token is below this (cents)
        max_total_cost: Ceiling on entry + hedge price (cents)
        order_size: Shares per order
        period: Contract length assumed when no window is given
    """
    price_diff: float = 50.0
    time_till_end_s: int = 300
    target_price: int = 40
    max_total_cost: int = 97
    order_size: float = 1.0
    period: PeriodKind = PeriodKind.HOURLY


class BiasHedgeStrategy(Strategy):
    """Single-entry bias/time-gated hedge."""

    name = "bias_hedge"

    def __init__(self, config: Optional[BiasHedgeConfig] = None):
        self.config = config or BiasHedgeConfig()
        self.reset()

    @property
    def pair(self) -> Optional[OrderPair]:
        return self._pair

    def reset(self, window: Optional[ContractWindow] = None) -> None:
        self._window = window
        self._pair: Optional[OrderPair] = None
        self._last_tick: Optional[Tick] = None

    def on_tick(self, tick: Tick) -> list[OrderIntent]:
        if self._window is None:
            self._window = ContractWindow.from_first_tick(tick.timestamp_ms, self.config.period)

        self._last_tick = tick

        if self._pair is not None:
            hedge = self._pair.hedge
            if not hedge.is_filled and price_to_cents(tick.price_of(hedge.outcome)) <= hedge.price:
                hedge.fill(tick.timestamp_ms)
                logger.debug(f"Bias hedge filled: {hedge.outcome.value} @ {hedge.price}c")
            return []

        if tick.coin_price_bias is None:
            return []

        losing = Outcome.UP if tick.up_price <= tick.down_price else Outcome.DOWN
        losing_cents = price_to_cents(tick.price_of(losing))
        remaining_s = self._window.remaining_s(tick.timestamp_ms)

        cfg = self.config
        if (
            abs(tick.coin_price_bias) < cfg.price_diff
            and remaining_s > cfg.time_till_end_s
            and losing_cents < cfg.target_price
        ):
            return self._enter(losing, losing_cents, tick)
        return []

    def _enter(self, losing: Outcome, losing_cents: int, tick: Tick) -> list[OrderIntent]:
        cfg = self.config
        hedge_cents = max(0, cfg.max_total_cost - losing_cents)

        entry = EntryOrder(
            price=losing_cents,
            timestamp_ms=tick.timestamp_ms,
            size=cfg.order_size,
            outcome=losing,
        )
        hedge = HedgeOrder(price=hedge_cents, size=cfg.order_size, outcome=losing.opposite)
        self._pair = OrderPair(entry=entry, hedge=hedge)
        logger.debug(
            f"Bias entry: {losing.value} @ {losing_cents}c "
            f"(bias {tick.coin_price_bias:+.2f}), hedge @ {hedge_cents}c"
        )

        return [
            OrderIntent(
                outcome=losing,
                side=Side.BUY,
                price=cents_to_price(losing_cents),
                size=cfg.order_size,
                reason="bias entry on losing side",
            ),
            OrderIntent(
                outcome=hedge.outcome,
                side=Side.BUY,
                price=cents_to_price(hedge_cents),
                size=cfg.order_size,
                reason="bias hedge on winning side",
                is_hedge=True,
            ),
        ]

    @staticmethod
    def outcome_at_close(last: Tick) -> Outcome:
        """Sign of the final bias decides; prices only when no bias is known."""
        if last.coin_price_bias is not None:
            return Outcome.UP if last.coin_price_bias >= 0 else Outcome.DOWN
        return Outcome.UP if last.up_price >= last.down_price else Outcome.DOWN

    def settle(self) -> StrategyResult:
        last = self._last_tick
        if last is None:
            return StrategyResult.empty(self.name)

        winner = self.outcome_at_close(last)
        pair = self._pair
        if pair is None:
            return StrategyResult(strategy=self.name, winner=winner)

        cost_cents = pair.entry.price * pair.entry.size
        final_value = payout(pair.entry.outcome, winner, pair.entry.size)
        hedges_filled = 0
        if pair.hedge.is_filled:
            hedges_filled = 1
            cost_cents += pair.hedge.price * pair.hedge.size
            final_value += payout(pair.hedge.outcome, winner, pair.hedge.size)

        total_cost = cost_cents / 100
        return StrategyResult(
            strategy=self.name,
            total_profit=round(final_value - total_cost, 2),
            total_cost=round(total_cost, 2),
            final_value=round(final_value, 2),
            total_entries=1,
            total_hedges_filled=hedges_filled,
            winner=winner,
            order_pairs=[pair],
        )
