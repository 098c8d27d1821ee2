"""
Polymarket REST Client for order operations.

Uses py-clob-client for order signing and submission.
Blocking: the OrderExecutor calls it from a worker thread.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from ..types import OrderResult, Side

logger = logging.getLogger(__name__)


class OrderType(Enum):
    """Order type for Polymarket."""
    GTC = "GTC"  # Good-till-cancelled
    GTD = "GTD"  # Good-till-date
    FOK = "FOK"  # Fill-or-kill
    FAK = "FAK"  # Fill-and-kill


@dataclass(slots=True)
class CancelResult:
    """Result of a cancel operation."""
    success: bool
    error_msg: Optional[str] = None
    not_found: bool = False


@dataclass(slots=True, frozen=True)
class ApiCredentials:
    """L2 credentials, also used to authenticate the user websocket."""
    api_key: str
    api_secret: str
    passphrase: str


class PolymarketRestClient:
    """
    Polymarket REST client using py-clob-client for order signing.

    Constructed explicitly and passed in; nothing is cached at module level.
    """

    def __init__(
        self,
        private_key: str,
        funder: str = "",
        signature_type: int = 1,
        host: str = "https://clob.polymarket.com",
        chain_id: int = 137,
    ):
        """
        Initialize the REST client.

        Args:
            private_key: Wallet private key (0x prefixed)
            funder: Funder address for proxy wallets (0x prefixed)
            signature_type: 0 for EOA, 1 for email/magic proxy, 2 for Gnosis Safe proxy
            host: CLOB API host URL
            chain_id: Polygon chain ID (137 for mainnet)
        """
        self._private_key = private_key
        self._funder = funder
        self._signature_type = signature_type
        self._host = host
        self._chain_id = chain_id

        self._client = None
        self._credentials: Optional[ApiCredentials] = None

    def _ensure_initialized(self) -> None:
        """Initialize the CLOB client lazily."""
        if self._client is not None:
            return

        from py_clob_client.client import ClobClient

        try:
            client = ClobClient(
                host=self._host,
                chain_id=self._chain_id,
                key=self._private_key,
                funder=self._funder if self._funder else None,
                signature_type=self._signature_type,
            )

            # Derive (or create on first use) API credentials
            creds = client.create_or_derive_api_creds()
            client.set_api_creds(creds)
        except Exception as e:
            logger.error(f"Failed to initialize CLOB client: {e}")
            raise

        self._credentials = ApiCredentials(
            api_key=creds.api_key,
            api_secret=creds.api_secret,
            passphrase=creds.api_passphrase,
        )
        self._client = client
        logger.info("PolymarketRestClient initialized")

    @property
    def api_credentials(self) -> ApiCredentials:
        """API credentials for websocket authentication."""
        self._ensure_initialized()
        return self._credentials

    def place_limit_order(
        self,
        token_id: str,
        side: Side,
        price: float,
        size: float,
        order_type: OrderType = OrderType.GTC,
    ) -> OrderResult:
        """
        Place a limit order.

        Args:
            token_id: Outcome token id
            side: BUY or SELL
            price: Price in [0, 1] range
            size: Size in shares
            order_type: GTC, GTD or FOK

        Returns:
            OrderResult with success status and order_id
        """
        from py_clob_client.clob_types import OrderArgs
        from py_clob_client.order_builder.constants import BUY, SELL

        try:
            self._ensure_initialized()
            order_args = OrderArgs(
                token_id=token_id,
                price=price,
                size=float(size),
                side=BUY if side == Side.BUY else SELL,
            )
            order = self._client.create_order(order_args)
            response = self._client.post_order(order, order_type.value)
        except Exception as e:
            return self._failure(str(e), "Limit order placement failed")

        return self._to_result(response)

    def place_market_order(
        self,
        token_id: str,
        side: Side,
        amount: float,
        order_type: OrderType = OrderType.FOK,
    ) -> OrderResult:
        """
        Place a market order.

        Args:
            token_id: Outcome token id
            side: BUY or SELL
            amount: Dollars to spend for BUY, shares to sell for SELL
            order_type: FOK or FAK

        Returns:
            OrderResult with success status and order_id
        """
        from py_clob_client.clob_types import MarketOrderArgs
        from py_clob_client.order_builder.constants import BUY, SELL

        try:
            self._ensure_initialized()
            order_args = MarketOrderArgs(
                token_id=token_id,
                amount=float(amount),
                side=BUY if side == Side.BUY else SELL,
            )
            order = self._client.create_market_order(order_args)
            response = self._client.post_order(order, order_type.value)
        except Exception as e:
            return self._failure(str(e), "Market order placement failed")

        return self._to_result(response)

    def cancel_order(self, order_id: str) -> CancelResult:
        """
        Cancel a single order.

        Args:
            order_id: Order ID to cancel

        Returns:
            CancelResult with success status
        """
        try:
            self._ensure_initialized()
            response = self._client.cancel(order_id)
        except Exception as e:
            error_msg = str(e)
            if "not found" in error_msg.lower():
                return CancelResult(success=True, not_found=True)
            logger.warning(f"Order cancel failed: {error_msg}")
            return CancelResult(success=False, error_msg=error_msg)

        # Response format: {"canceled": ["order_id", ...], "not_canceled": {...}}
        if not response:
            return CancelResult(success=False, error_msg="No response")

        canceled = response.get("canceled", [])
        not_canceled = response.get("not_canceled", {})
        if order_id in canceled:
            return CancelResult(success=True)
        if order_id in not_canceled:
            error_msg = str(not_canceled.get(order_id, "Not canceled"))
            if "not found" in error_msg.lower():
                return CancelResult(success=True, not_found=True)
            return CancelResult(success=False, error_msg=error_msg)
        return CancelResult(success=False, error_msg="Unknown response format")

    def _to_result(self, response) -> OrderResult:
        if response and response.get("success"):
            order_id = response.get("orderID") or response.get("order_id", "")
            return OrderResult(success=True, order_id=order_id)

        if response:
            error_msg = response.get("errorMsg") or response.get("error", "Unknown error")
        else:
            error_msg = "No response"
        return OrderResult(
            success=False,
            error_msg=error_msg,
            retryable=self._is_retryable_error(error_msg),
        )

    def _failure(self, error_msg: str, context: str) -> OrderResult:
        logger.warning(f"{context}: {error_msg}")
        return OrderResult(
            success=False,
            error_msg=error_msg,
            retryable=self._is_retryable_error(error_msg),
        )

    @staticmethod
    def _is_retryable_error(error_msg: str) -> bool:
        """Determine if an error is retryable."""
        if not error_msg:
            return False
        msg = error_msg.lower()
        retryable_markers = (
            "timeout",
            "timed out",
            "rate limit",
            "too many requests",
            "429",
            "502",
            "503",
            "504",
            "connection",
            "temporarily",
        )
        return any(marker in msg for marker in retryable_markers)
