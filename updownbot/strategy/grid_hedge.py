"""
Grid hedge strategy.

Buys an outcome token each time its price climbs through a grid level
and immediately rests a hedge buy on the opposite token so that
entry + hedge never costs more than `max_total_cost` cents.

Grid levels are 50+gap, 50+2*gap, ... up to max_total_cost (cents),
tracked independently per outcome token.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from .base import ContractWindow, Strategy, StrategyResult, payout, settlement_winner
from ..types import (
    EntryOrder,
    GridLevelState,
    HedgeOrder,
    OrderIntent,
    OrderKind,
    OrderPair,
    Outcome,
    Side,
    Tick,
    cents_to_price,
    price_to_cents,
)

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class GridHedgeConfig:
    """
    Grid hedge parameters.

    Attributes:
        max_total_cost: Ceiling on entry + hedge price (cents), also the top grid level
        grid_gap: Cents between adjacent grid levels
        order_size: Shares per entry and per hedge
        enable_rebuy: Allow re-entry at a level once its hedge filled
        enable_double_side: Evaluate both tokens, not just primary_outcome
        primary_outcome: Token evaluated when enable_double_side is off
    """
    max_total_cost: int = 97
    grid_gap: int = 5
    order_size: float = 1.0
    enable_rebuy: bool = False
    enable_double_side: bool = True
    primary_outcome: Outcome = Outcome.UP


def grid_levels(grid_gap: int, max_total_cost: int) -> list[int]:
    """Grid levels in cents, e.g. gap 5 / max 97 -> [55, 60, ..., 95]."""
    if grid_gap < 1:
        raise ValueError("grid_gap must be at least 1")
    return list(range(50 + grid_gap, max_total_cost + 1, grid_gap))


class GridHedgeStrategy(Strategy):
    """
    Grid hedge state machine.

    Entry: the token's price ascends across a level (previous < level <=
    current) and the level was never entered, or enable_rebuy is set and
    the level's latest hedge filled. A jump across several levels enters
    each of them.

    Hedge fill: an unfilled hedge fills when the opposite token's price
    is at or below the hedge price. Checked after entries, so a hedge can
    fill on the tick that created it.
    """

    name = "grid_hedge"

    def __init__(self, config: Optional[GridHedgeConfig] = None):
        self.config = config or GridHedgeConfig()
        self._levels = grid_levels(self.config.grid_gap, self.config.max_total_cost)
        self.reset()

    @property
    def levels(self) -> list[int]:
        return list(self._levels)

    @property
    def outcomes(self) -> list[Outcome]:
        if self.config.enable_double_side:
            return [Outcome.UP, Outcome.DOWN]
        return [self.config.primary_outcome]

    def level_states(self, outcome: Outcome) -> list[GridLevelState]:
        return self._states.get(outcome, [])

    def reset(self, window: Optional[ContractWindow] = None) -> None:
        self._states: dict[Outcome, list[GridLevelState]] = {
            outcome: [GridLevelState(level=level, outcome=outcome) for level in self._levels]
            for outcome in self.outcomes
        }
        self._prev_cents: dict[Outcome, Optional[int]] = {o: None for o in self.outcomes}
        self._last_tick: Optional[Tick] = None

    def on_tick(self, tick: Tick) -> list[OrderIntent]:
        intents: list[OrderIntent] = []
        cents = {
            Outcome.UP: price_to_cents(tick.up_price),
            Outcome.DOWN: price_to_cents(tick.down_price),
        }

        for outcome in self.outcomes:
            prev = self._prev_cents[outcome]
            curr = cents[outcome]
            # First observation establishes the baseline only
            if prev is not None and curr > prev:
                for state in self._states[outcome]:
                    if prev < state.level <= curr and self._can_enter(state):
                        intents.extend(self._enter(state, tick.timestamp_ms))
            self._prev_cents[outcome] = curr

        for outcome in self.outcomes:
            for state in self._states[outcome]:
                for pair in state.pairs:
                    hedge = pair.hedge
                    if not hedge.is_filled and cents[hedge.outcome] <= hedge.price:
                        hedge.fill(tick.timestamp_ms)
                        logger.debug(
                            f"Hedge filled: {hedge.outcome.value} @ {hedge.price}c "
                            f"for {outcome.value} entry @ {state.level}c"
                        )

        self._last_tick = tick
        return intents

    def _can_enter(self, state: GridLevelState) -> bool:
        if not state.has_entered:
            return True
        if not self.config.enable_rebuy:
            return False
        last = state.last_pair
        return last is not None and last.hedge.is_filled

    def _enter(self, state: GridLevelState, timestamp_ms: int) -> list[OrderIntent]:
        size = self.config.order_size
        entry_cents = state.level
        hedge_cents = max(0, self.config.max_total_cost - entry_cents)

        entry = EntryOrder(
            price=entry_cents,
            timestamp_ms=timestamp_ms,
            size=size,
            outcome=state.outcome,
            is_re_entry=state.has_entered,
        )
        hedge = HedgeOrder(price=hedge_cents, size=size, outcome=state.outcome.opposite)
        state.pairs.append(OrderPair(entry=entry, hedge=hedge))
        state.has_entered = True

        logger.debug(
            f"Entry: {state.outcome.value} @ {entry_cents}c, "
            f"hedge {hedge.outcome.value} @ {hedge_cents}c"
        )

        intents = [
            OrderIntent(
                outcome=state.outcome,
                side=Side.BUY,
                price=cents_to_price(entry_cents),
                size=size,
                kind=OrderKind.LIMIT,
                reason=f"grid {entry_cents}c{' re-entry' if entry.is_re_entry else ''}",
            )
        ]
        if hedge_cents > 0:
            intents.append(
                OrderIntent(
                    outcome=hedge.outcome,
                    side=Side.BUY,
                    price=cents_to_price(hedge_cents),
                    size=size,
                    kind=OrderKind.LIMIT,
                    reason=f"hedge for grid {entry_cents}c",
                    is_hedge=True,
                )
            )
        return intents

    def settle(self) -> StrategyResult:
        last = self._last_tick
        if last is None:
            return StrategyResult.empty(self.name)

        winner = settlement_winner(last.up_price, last.down_price)
        cost_cents = 0.0
        final_value = 0.0
        entries = 0
        hedges_filled = 0
        levels_used: set[int] = set()
        pairs: list[OrderPair] = []

        for outcome in self.outcomes:
            for state in self._states[outcome]:
                for pair in state.pairs:
                    entries += 1
                    levels_used.add(state.level)
                    pairs.append(pair)

                    cost_cents += pair.entry.price * pair.entry.size
                    final_value += payout(pair.entry.outcome, winner, pair.entry.size)

                    if pair.hedge.is_filled:
                        hedges_filled += 1
                        cost_cents += pair.hedge.price * pair.hedge.size
                        final_value += payout(pair.hedge.outcome, winner, pair.hedge.size)

        total_cost = cost_cents / 100
        pairs.sort(key=lambda p: p.entry.timestamp_ms)
        return StrategyResult(
            strategy=self.name,
            total_profit=round(final_value - total_cost, 2),
            total_cost=round(total_cost, 2),
            final_value=round(final_value, 2),
            total_entries=entries,
            total_hedges_filled=hedges_filled,
            winner=winner,
            levels_used=sorted(levels_used),
            order_pairs=pairs,
        )
