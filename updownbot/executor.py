"""
Order executor.

Turns strategy intents into orders on the current contract. Without a
signing key (or with trading disabled) it runs read-only: intents are
logged and recorded but nothing is sent.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Optional

from .clients.polymarket_rest_client import PolymarketRestClient
from .errors import TradingDisabledError
from .types import ContractDescriptor, OrderIntent, OrderKind, OrderResult, Side, wall_ms

logger = logging.getLogger(__name__)

READ_ONLY_MSG = "read-only"


@dataclass(slots=True, frozen=True)
class SubmittedOrder:
    """Audit record of one intent and what happened to it."""
    ts_ms: int
    slug: str
    source: str
    token_id: str
    intent: OrderIntent
    result: OrderResult


class OrderExecutor:
    """
    Sends intents through the REST client from a worker thread.

    The blocking py-clob-client calls never run on the event loop.
    """

    def __init__(
        self,
        rest: Optional[PolymarketRestClient] = None,
        trading_enabled: bool = False,
        history_limit: int = 1000,
        order_timeout_s: float = 30.0,
    ):
        if trading_enabled and rest is None:
            raise TradingDisabledError("Trading enabled but no signing key configured")
        self._rest = rest
        self._trading_enabled = trading_enabled
        self._history: list[SubmittedOrder] = []
        self._history_limit = history_limit
        self._order_timeout_s = order_timeout_s
        # Submissions from concurrent callers go out one batch at a time
        self._lock = asyncio.Lock()

    @property
    def read_only(self) -> bool:
        return self._rest is None or not self._trading_enabled

    def disable_trading(self, reason: str) -> None:
        """Switch to read-only for the rest of the session."""
        if self._trading_enabled:
            logger.warning(f"Trading disabled: {reason}")
        self._trading_enabled = False

    @property
    def history(self) -> list[SubmittedOrder]:
        return list(self._history)

    async def submit(
        self,
        descriptor: ContractDescriptor,
        intents: list[OrderIntent],
        source: str = "",
    ) -> list[OrderResult]:
        """
        Submit intents for the given contract, in order.

        Failures are returned and logged, never raised.
        """
        async with self._lock:
            return await self._submit(descriptor, intents, source)

    async def _submit(
        self,
        descriptor: ContractDescriptor,
        intents: list[OrderIntent],
        source: str,
    ) -> list[OrderResult]:
        results: list[OrderResult] = []
        for intent in intents:
            token_id = descriptor.token_for(intent.outcome)
            label = (
                f"{source} {intent.side.name} {intent.outcome.value} "
                f"{intent.size:g} @ {intent.price:.2f} {intent.kind.name} ({intent.reason})"
            )

            if self.read_only:
                logger.info(f"[read-only] {descriptor.slug}: {label}")
                result = OrderResult(success=False, error_msg=READ_ONLY_MSG)
            else:
                result = await self._place(token_id, intent)
                if result.success:
                    logger.info(f"Order placed {result.order_id}: {label}")
                else:
                    logger.warning(f"Order failed ({result.error_msg}): {label}")

            self._record(SubmittedOrder(
                ts_ms=wall_ms(),
                slug=descriptor.slug,
                source=source,
                token_id=token_id,
                intent=intent,
                result=result,
            ))
            results.append(result)
        return results

    async def _place(self, token_id: str, intent: OrderIntent) -> OrderResult:
        if intent.kind is OrderKind.MARKET:
            # Market buys are sized in dollars, market sells in shares
            amount = intent.size * intent.price if intent.side is Side.BUY else intent.size
            call = asyncio.to_thread(self._rest.place_market_order, token_id, intent.side, amount)
        else:
            call = asyncio.to_thread(
                self._rest.place_limit_order, token_id, intent.side, intent.price, intent.size
            )

        try:
            return await asyncio.wait_for(call, timeout=self._order_timeout_s)
        except asyncio.TimeoutError:
            return OrderResult(
                success=False,
                error_msg=f"Order timed out after {self._order_timeout_s:g}s",
                retryable=True,
            )
        except Exception as e:
            logger.error(f"Order placement raised: {e}")
            return OrderResult(success=False, error_msg=str(e))

    def _record(self, entry: SubmittedOrder) -> None:
        self._history.append(entry)
        if len(self._history) > self._history_limit:
            del self._history[: len(self._history) - self._history_limit]
