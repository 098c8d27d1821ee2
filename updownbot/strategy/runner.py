"""
Strategy runner.

The StrategyRunner consumes the lifecycle manager's ordered event stream
and drives every configured strategy with it:

- QuoteChangeEvent: build a Tick from both best asks (plus the latest
  bias), feed it to each strategy, hand intents to the executor in a
  background task (ticks keep flowing while an order is pending) and
  record it for the archive
- BiasChangeEvent: remember the bias for the next tick
- RolloverEvent: settle the previous contract, archive it with its
  winner, reset every strategy for the new contract

A single queue keeps ordering deterministic: no tick is ever evaluated
against the wrong contract.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Callable, Optional

from .base import ContractWindow, Strategy, StrategyResult, settlement_winner
from ..archive import TickRecorder
from ..executor import OrderExecutor
from ..types import (
    BiasChangeEvent,
    ContractDescriptor,
    Event,
    OrderIntent,
    QuoteChangeEvent,
    RolloverEvent,
    Tick,
    wall_ms,
)

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class ContractResults:
    """Settlement of one contract across all strategies."""
    slug: str
    tick_count: int
    results: list[StrategyResult]


class StrategyRunner:
    """Per-(coin, period) driver of the strategy family."""

    def __init__(
        self,
        events: asyncio.Queue,
        strategies: list[Strategy],
        executor: Optional[OrderExecutor] = None,
        recorder: Optional[TickRecorder] = None,
        name: str = "runner",
        clock: Callable[[], int] = wall_ms,
    ):
        """
        Initialize the runner.

        Args:
            events: Ordered output queue of a MarketLifecycleManager
            strategies: Strategies to evaluate on every contract
            executor: Order executor (None to only evaluate)
            recorder: Tick recorder for the archive
            name: Name used in log lines
            clock: Wall clock in ms used to timestamp ticks
        """
        self._events = events
        self._strategies = strategies
        self._executor = executor
        self._recorder = recorder
        self._name = name
        self._clock = clock

        self._current: Optional[ContractDescriptor] = None
        self._bias: Optional[float] = None
        self._last_tick: Optional[Tick] = None
        self._tick_count = 0
        self._completed: list[ContractResults] = []
        self._pending: set[asyncio.Task] = set()
        self._running = False

    @property
    def current(self) -> Optional[ContractDescriptor]:
        return self._current

    @property
    def tick_count(self) -> int:
        """Ticks evaluated on the current contract."""
        return self._tick_count

    @property
    def completed(self) -> list[ContractResults]:
        return list(self._completed)

    @property
    def strategies(self) -> list[Strategy]:
        return list(self._strategies)

    @property
    def pending_orders(self) -> int:
        """Submissions handed to the executor and not yet finished."""
        return len(self._pending)

    async def run(self, shutdown_event: Optional[asyncio.Event] = None) -> None:
        """Consume events until stopped."""
        self._running = True
        logger.info(f"{self._name}: Strategy runner started")

        while self._running:
            if shutdown_event and shutdown_event.is_set():
                break
            try:
                event = await asyncio.wait_for(self._events.get(), timeout=1.0)
            except asyncio.TimeoutError:
                continue
            await self.handle(event)

        await self.flush_orders()
        logger.info(f"{self._name}: Strategy runner stopped")

    def stop(self) -> None:
        self._running = False

    async def handle(self, event: Event) -> None:
        """Process one event from the lifecycle manager."""
        if isinstance(event, QuoteChangeEvent):
            await self._on_quote(event)
        elif isinstance(event, BiasChangeEvent):
            if self._current is not None and event.slug == self._current.slug:
                self._bias = event.bias
        elif isinstance(event, RolloverEvent):
            self._on_rollover(event)

    async def _on_quote(self, event: QuoteChangeEvent) -> None:
        if self._current is None or event.slug != self._current.slug:
            return
        if event.up is None or event.down is None:
            return

        tick = Tick(
            timestamp_ms=self._clock(),
            up_price=event.up.best_ask,
            down_price=event.down.best_ask,
            coin_price_bias=self._bias,
        )
        self._last_tick = tick
        self._tick_count += 1

        if self._recorder is not None:
            self._recorder.record(self._current.slug, tick)

        for strategy in self._strategies:
            intents = strategy.on_tick(tick)
            if intents and self._executor is not None:
                self._submit(strategy.name, intents)

    def _submit(self, source: str, intents: list[OrderIntent]) -> None:
        # Placed off the event path, one batch at a time in executor order
        task = asyncio.create_task(
            self._executor.submit(self._current, intents, source=source),
            name=f"{self._name}-submit",
        )
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def flush_orders(self) -> None:
        """Wait for submissions still in flight."""
        if self._pending:
            await asyncio.gather(*self._pending, return_exceptions=True)

    def _on_rollover(self, event: RolloverEvent) -> None:
        if self._current is not None:
            self.settle_current()

        self._current = event.current
        self._bias = None
        self._last_tick = None
        self._tick_count = 0

        window = ContractWindow.from_descriptor(event.current) if event.current else None
        for strategy in self._strategies:
            strategy.reset(window)

        if event.current is not None:
            logger.info(f"{self._name}: Evaluating {event.current.slug}")

    def settle_current(self) -> Optional[ContractResults]:
        """
        Settle and archive the current contract.

        Called on rollover, and on shutdown for a partial view.
        """
        descriptor = self._current
        if descriptor is None:
            return None

        results = [strategy.settle() for strategy in self._strategies]
        winner = None
        if self._last_tick is not None:
            winner = settlement_winner(self._last_tick.up_price, self._last_tick.down_price)

        if self._recorder is not None:
            self._recorder.finalize(descriptor.slug, winner)

        contract = ContractResults(
            slug=descriptor.slug,
            tick_count=self._tick_count,
            results=results,
        )
        self._completed.append(contract)

        logger.info(f"{self._name}: Settled {descriptor.slug} after {self._tick_count} ticks")
        for result in results:
            logger.info(f"{self._name}:   {result.summary()}")

        self._current = None
        return contract
