"""
Pre-purchased dual sell strategy.

Holds one up and one down token bought at `entry_price` and sells them
so the two sale prices add up to at least `target_total`:

1. Buy both tokens at the first observation
2. When either token can be sold at `sell_threshold` or better, sell it
3. Rest a sell limit on the other token at target_total - sell_threshold
4. Whatever is still held at expiry settles at 1 (winner) or 0

A token's sell price is read off the opposite ask: selling up at its
bid is worth about 100 - down ask.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from .base import ContractWindow, Strategy, StrategyResult, payout, settlement_winner
from ..types import OrderIntent, OrderKind, Outcome, Side, Tick, cents_to_price, price_to_cents

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class DualSellConfig:
    """Dual sell parameters (prices in cents)."""
    target_total: int = 105
    sell_threshold: int = 65
    entry_price: int = 50
    order_size: float = 1.0


@dataclass(slots=True)
class SellOrder:
    """A sale of one held token; fills at most once."""
    outcome: Outcome
    price: int  # cents
    size: float
    filled_at_ms: Optional[int] = None

    @property
    def is_filled(self) -> bool:
        return self.filled_at_ms is not None


class DualSellStrategy(Strategy):
    """Pre-purchased dual sell state machine."""

    name = "dual_sell"

    def __init__(self, config: Optional[DualSellConfig] = None):
        self.config = config or DualSellConfig()
        self.reset()

    @property
    def first_sell(self) -> Optional[SellOrder]:
        return self._first_sell

    @property
    def second_sell(self) -> Optional[SellOrder]:
        return self._second_sell

    def reset(self, window: Optional[ContractWindow] = None) -> None:
        self._bought = False
        self._first_sell: Optional[SellOrder] = None
        self._second_sell: Optional[SellOrder] = None
        self._last_tick: Optional[Tick] = None

    def on_tick(self, tick: Tick) -> list[OrderIntent]:
        cfg = self.config
        intents: list[OrderIntent] = []

        if not self._bought:
            self._bought = True
            for outcome in (Outcome.UP, Outcome.DOWN):
                intents.append(OrderIntent(
                    outcome=outcome,
                    side=Side.BUY,
                    price=cents_to_price(cfg.entry_price),
                    size=cfg.order_size,
                    reason="pre-purchase",
                ))

        sell_cents = {
            Outcome.UP: 100 - price_to_cents(tick.down_price),
            Outcome.DOWN: 100 - price_to_cents(tick.up_price),
        }

        if self._first_sell is None:
            for outcome in (Outcome.UP, Outcome.DOWN):
                if sell_cents[outcome] >= cfg.sell_threshold:
                    intents.extend(self._sell_first(outcome, sell_cents[outcome], tick))
                    break

        second = self._second_sell
        if second is not None and not second.is_filled:
            if sell_cents[second.outcome] >= second.price:
                second.filled_at_ms = tick.timestamp_ms
                logger.debug(f"Second sell filled: {second.outcome.value} @ {second.price}c")

        self._last_tick = tick
        return intents

    def _sell_first(self, outcome: Outcome, price_cents: int, tick: Tick) -> list[OrderIntent]:
        cfg = self.config
        limit_cents = cfg.target_total - cfg.sell_threshold

        self._first_sell = SellOrder(
            outcome=outcome,
            price=price_cents,
            size=cfg.order_size,
            filled_at_ms=tick.timestamp_ms,
        )
        self._second_sell = SellOrder(
            outcome=outcome.opposite,
            price=limit_cents,
            size=cfg.order_size,
        )
        logger.debug(
            f"First sell: {outcome.value} @ {price_cents}c, "
            f"limit {outcome.opposite.value} @ {limit_cents}c"
        )

        return [
            OrderIntent(
                outcome=outcome,
                side=Side.SELL,
                price=cents_to_price(price_cents),
                size=cfg.order_size,
                kind=OrderKind.MARKET,
                reason=f"sell at threshold {cfg.sell_threshold}c",
            ),
            OrderIntent(
                outcome=outcome.opposite,
                side=Side.SELL,
                price=cents_to_price(limit_cents),
                size=cfg.order_size,
                kind=OrderKind.LIMIT,
                reason=f"sell limit for target {cfg.target_total}c",
                is_hedge=True,
            ),
        ]

    def settle(self) -> StrategyResult:
        last = self._last_tick
        if last is None:
            return StrategyResult.empty(self.name)

        cfg = self.config
        winner = settlement_winner(last.up_price, last.down_price)
        size = cfg.order_size
        total_cost = cfg.entry_price * 2 * size / 100

        received_cents = 0.0
        held: list[Outcome] = [Outcome.UP, Outcome.DOWN]
        for sell in (self._first_sell, self._second_sell):
            if sell is not None and sell.is_filled:
                received_cents += sell.price * sell.size
                held.remove(sell.outcome)

        final_value = received_cents / 100 + sum(payout(o, winner, size) for o in held)
        second_filled = self._second_sell is not None and self._second_sell.is_filled

        return StrategyResult(
            strategy=self.name,
            total_profit=round(final_value - total_cost, 2),
            total_cost=round(total_cost, 2),
            final_value=round(final_value, 2),
            total_entries=2,
            total_hedges_filled=1 if second_filled else 0,
            winner=winner,
            details={
                "total_received": round(received_cents / 100, 2),
                "first_sell": self._first_sell,
                "second_sell": self._second_sell,
            },
        )
