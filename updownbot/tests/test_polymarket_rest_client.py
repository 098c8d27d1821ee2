"""Tests for PolymarketRestClient response handling (no network)."""

from unittest.mock import MagicMock, patch

import pytest

from updownbot.clients import PolymarketRestClient
from updownbot.types import Side


@pytest.fixture
def client():
    client = PolymarketRestClient(private_key="0x" + "1" * 64)
    # Skip credential derivation
    client._client = MagicMock()
    return client


class TestOrderResults:
    """Tests for order placement results."""

    def test_limit_order_success(self, client):
        """Test a successful post returns the order id."""
        client._client.post_order.return_value = {"success": True, "orderID": "0xorder"}
        result = client.place_limit_order("up_token_123", Side.BUY, 0.55, 1.0)

        assert result.success
        assert result.order_id == "0xorder"
        order_args = client._client.create_order.call_args[0][0]
        assert order_args.token_id == "up_token_123"
        assert order_args.price == 0.55

    def test_rejected_order(self, client):
        """Test an unsuccessful response carries its error message."""
        client._client.post_order.return_value = {"success": False, "errorMsg": "not enough balance"}
        result = client.place_limit_order("up_token_123", Side.BUY, 0.55, 1.0)
        assert not result.success
        assert result.error_msg == "not enough balance"
        assert not result.retryable

    def test_exception_becomes_retryable_failure(self, client):
        """Test transport errors are returned and classified."""
        client._client.post_order.side_effect = Exception("503 Service Unavailable")
        result = client.place_market_order("down_token_456", Side.SELL, 3.0)
        assert not result.success
        assert result.retryable

    def test_no_response(self, client):
        """Test an empty response is a failure."""
        client._client.post_order.return_value = None
        result = client.place_market_order("down_token_456", Side.BUY, 2.0)
        assert result.error_msg == "No response"


class TestCancel:
    """Tests for cancel_order()."""

    def test_canceled(self, client):
        """Test an id in the canceled list succeeds."""
        client._client.cancel.return_value = {"canceled": ["o1"], "not_canceled": {}}
        assert client.cancel_order("o1").success

    def test_not_found_counts_as_done(self, client):
        """Test an already-gone order is reported as not found."""
        client._client.cancel.return_value = {"canceled": [], "not_canceled": {"o1": "order not found"}}
        result = client.cancel_order("o1")
        assert result.success
        assert result.not_found

    def test_not_canceled(self, client):
        """Test other refusals are failures."""
        client._client.cancel.return_value = {"canceled": [], "not_canceled": {"o1": "matched"}}
        result = client.cancel_order("o1")
        assert not result.success
        assert result.error_msg == "matched"


class TestRetryable:
    """Tests for error classification."""

    @pytest.mark.parametrize("msg", ["Request timed out", "429 Too Many Requests", "connection reset"])
    def test_retryable(self, msg):
        assert PolymarketRestClient._is_retryable_error(msg)

    @pytest.mark.parametrize("msg", ["", "invalid signature", "not enough balance"])
    def test_not_retryable(self, msg):
        assert not PolymarketRestClient._is_retryable_error(msg)


class TestInitFailure:
    """Tests for CLOB client setup failing at order time."""

    @pytest.fixture
    def clob(self):
        with patch("py_clob_client.client.ClobClient") as clob:
            clob.return_value.create_or_derive_api_creds.side_effect = ConnectionError(
                "connection refused"
            )
            yield clob

    def test_limit_order_returns_failure(self, clob):
        """Test credential derivation errors come back as a failed result."""
        client = PolymarketRestClient(private_key="0x" + "1" * 64)
        result = client.place_limit_order("up_token_123", Side.BUY, 0.55, 1.0)

        assert not result.success
        assert "connection refused" in result.error_msg
        assert result.retryable

    def test_market_order_returns_failure(self, clob):
        client = PolymarketRestClient(private_key="0x" + "1" * 64)
        result = client.place_market_order("down_token_456", Side.SELL, 3.0)
        assert not result.success

    def test_cancel_returns_failure(self, clob):
        client = PolymarketRestClient(private_key="0x" + "1" * 64)
        result = client.cancel_order("o1")
        assert not result.success
        assert not result.not_found

    def test_next_order_retries_setup(self, clob):
        """Test a later order tries to initialize again."""
        client = PolymarketRestClient(private_key="0x" + "1" * 64)
        assert not client.place_limit_order("up_token_123", Side.BUY, 0.55, 1.0).success

        clob.return_value.create_or_derive_api_creds.side_effect = None
        clob.return_value.post_order.return_value = {"success": True, "orderID": "0xorder"}
        result = client.place_limit_order("up_token_123", Side.BUY, 0.55, 1.0)

        assert result.success
        assert clob.call_count == 2
