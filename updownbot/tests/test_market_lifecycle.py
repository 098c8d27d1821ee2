"""Tests for MarketLifecycleManager - rollover, quote tagging and bias."""

import asyncio
from datetime import datetime, timezone
from unittest.mock import AsyncMock

import orjson
import pytest
import pytest_asyncio

from updownbot.clients import CryptoPriceAPIError, CryptoPriceClient, GammaClient, MarketFinder
from updownbot.feeds import CoinPriceFeed, CoinPriceTracker, ExponentialBackoff, MarketQuoteFeed
from updownbot.market_lifecycle import MarketLifecycleManager, RolloverTick
from updownbot.types import (
    BiasChangeEvent,
    CoinSymbol,
    ContractDescriptor,
    Outcome,
    PeriodKind,
    PricePoint,
    PriceUpdateEvent,
    QuoteChangeEvent,
    RolloverEvent,
    TokenQuote,
    TokenQuoteEvent,
)

NOON_TS = 1767268800
NOW = datetime(2026, 1, 1, 12, 7, tzinfo=timezone.utc)
NEXT = datetime(2026, 1, 1, 12, 16, tzinfo=timezone.utc)


def make_descriptor(start_ts: int = NOON_TS, up: str = "up-1", down: str = "down-1") -> ContractDescriptor:
    return ContractDescriptor(
        slug=f"btc-updown-15m-{start_ts}",
        up_token_id=up,
        down_token_id=down,
        condition_id="0xabc",
        question="Bitcoin Up or Down",
        symbol=CoinSymbol.BTC,
        period=PeriodKind.FIFTEEN_MINUTES,
        start_ms=start_ts * 1000,
        end_ms=(start_ts + 900) * 1000,
    )


def drain(queue: asyncio.Queue) -> list:
    items = []
    while not queue.empty():
        items.append(queue.get_nowait())
    return items


def quote(asset_id: str, ask, bid=None) -> TokenQuoteEvent:
    return TokenQuoteEvent(ts_local_ms=0, asset_id=asset_id, best_ask=ask, best_bid=bid)


def price(value: float, ts: int = 1) -> PricePoint:
    return PricePoint(symbol=CoinSymbol.BTC, price=value, timestamp_ms=ts)


@pytest.fixture
def finder():
    finder = AsyncMock(spec=MarketFinder)
    finder.find_current_market.return_value = make_descriptor()
    return finder


@pytest.fixture
def price_client():
    client = AsyncMock(spec=CryptoPriceClient)
    client.get_open_price.return_value = 97000.0
    return client


@pytest.fixture
def quote_feed(connector):
    return MarketQuoteFeed(
        connector=connector,
        backoff=ExponentialBackoff(min_seconds=0.01, max_seconds=0.02),
    )


@pytest.fixture
def tracker():
    return CoinPriceTracker(CoinPriceFeed(CoinSymbol.BTC))


@pytest_asyncio.fixture
async def manager(finder, quote_feed, price_client, tracker):
    manager = MarketLifecycleManager(
        symbol=CoinSymbol.BTC,
        period=PeriodKind.FIFTEEN_MINUTES,
        finder=finder,
        quote_feed=quote_feed,
        price_client=price_client,
        tracker=tracker,
        clock=lambda: NOW,
    )
    yield manager
    await manager.stop()


class TestRollover:
    """Tests for moving onto a contract."""

    @pytest.mark.asyncio
    async def test_initial_rollover(self, manager, finder, quote_feed):
        """Test the first rollover sets the contract and subscribes its tokens."""
        descriptor = await manager.rollover(NOW)

        assert descriptor == make_descriptor()
        assert manager.current == descriptor
        assert manager.rollover_count == 1
        assert quote_feed.token_ids == ["up-1", "down-1"]
        assert await quote_feed.wait_subscribed(timeout=1.0)
        finder.find_current_market.assert_awaited_once_with(
            CoinSymbol.BTC, PeriodKind.FIFTEEN_MINUTES, NOW
        )

        events = drain(manager.out_queue)
        assert len(events) == 1
        event = events[0]
        assert isinstance(event, RolloverEvent)
        assert event.previous is None
        assert event.current == descriptor
        assert event.start_price == 97000.0

    @pytest.mark.asyncio
    async def test_start_price_from_api(self, manager, price_client):
        """Test the open price API is asked for the current window."""
        await manager.rollover(NOW)

        assert manager.start_price == 97000.0
        args = price_client.get_open_price.await_args.args
        assert args[0] == CoinSymbol.BTC
        assert args[1] == PeriodKind.FIFTEEN_MINUTES
        assert args[2] == datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)
        assert args[3] == datetime(2026, 1, 1, 12, 15, tzinfo=timezone.utc)

    @pytest.mark.asyncio
    async def test_start_price_from_tracker(self, manager, tracker, price_client):
        """Test a price already seen by the tracker is used before the API."""
        tracker.update(price(96500.0))
        await manager.rollover(NOW)

        assert manager.start_price == 96500.0
        price_client.get_open_price.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_start_price_carried_from_current_price(self, manager, price_client):
        """Test the latest observed price becomes the next start price, bias 0."""
        manager.on_price(price(96000.0))
        await manager.rollover(NOW)

        assert manager.start_price == 96000.0
        assert manager.bias == 0.0
        events = drain(manager.out_queue)
        assert isinstance(events[0], RolloverEvent)
        assert isinstance(events[1], BiasChangeEvent)
        assert events[1].bias == 0.0
        price_client.get_open_price.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_open_price_error(self, manager, price_client):
        """Test an API failure leaves the start price unknown."""
        price_client.get_open_price.side_effect = CryptoPriceAPIError("down")
        descriptor = await manager.rollover(NOW)

        assert descriptor is not None
        assert manager.start_price is None
        assert not manager.can_start_trading()

    @pytest.mark.asyncio
    async def test_no_descriptor(self, manager, finder, quote_feed):
        """Test a failed lookup leaves no contract and drops quotes."""
        finder.find_current_market.return_value = None
        result = await manager.rollover(NOW)

        assert result is None
        assert manager.current is None
        assert manager.start_price is None
        assert quote_feed.token_ids == []

        events = drain(manager.out_queue)
        assert len(events) == 1
        assert isinstance(events[0], RolloverEvent)
        assert events[0].current is None

        manager.on_token_quote(quote("up-1", 0.55))
        assert manager.stale_discarded == 1
        assert manager.out_queue.empty()

    @pytest.mark.asyncio
    async def test_same_slug_is_noop(self, manager, finder, quote_feed):
        """Test a rollover inside the same window keeps the live subscription."""
        first = await manager.rollover(NOW)
        assert await quote_feed.wait_subscribed(timeout=1.0)
        drain(manager.out_queue)

        second = await manager.rollover(NOW)
        assert second is first
        assert finder.find_current_market.await_count == 1
        assert manager.out_queue.empty()
        assert manager.rollover_count == 1

    @pytest.mark.asyncio
    async def test_rollover_to_next_contract(self, manager, finder, quote_feed, connector):
        """Test the boundary swaps tokens, resets quotes and drops stale events."""
        await manager.rollover(NOW)
        assert await quote_feed.wait_subscribed(timeout=1.0)
        manager.on_token_quote(quote("up-1", 0.60))
        manager.on_token_quote(quote("down-1", 0.41))
        drain(manager.out_queue)
        old_socket = connector.last

        # Quote of the old contract still queued when the boundary passes
        quote_feed.out_queue.put_nowait(quote("up-1", 0.70))

        nxt = make_descriptor(start_ts=NOON_TS + 900, up="up-2", down="down-2")
        finder.find_current_market.return_value = nxt
        result = await manager.rollover(NEXT)

        assert result == nxt
        assert old_socket.closed
        assert quote_feed.out_queue.empty()
        assert quote_feed.token_ids == ["up-2", "down-2"]
        assert manager.quotes.up is None
        assert manager.quotes.down is None

        events = drain(manager.out_queue)
        rollover = events[0]
        assert isinstance(rollover, RolloverEvent)
        assert rollover.previous.slug == f"btc-updown-15m-{NOON_TS}"
        assert rollover.current == nxt

        # Old tokens no longer belong to the current contract
        manager.on_token_quote(quote("up-1", 0.70))
        assert manager.stale_discarded == 1
        assert manager.out_queue.empty()

        assert await quote_feed.wait_subscribed(timeout=1.0)
        sub = orjson.loads(connector.last.sent[0])
        assert sub["assets_ids"] == ["up-2", "down-2"]


class TestTokenQuotes:
    """Tests for quote tagging, rounding and de-duplication."""

    @pytest_asyncio.fixture
    async def rolled(self, manager):
        await manager.rollover(NOW)
        drain(manager.out_queue)
        return manager

    @pytest.mark.asyncio
    async def test_quote_change_event(self, rolled):
        """Test a quote is tagged with the contract and its outcome."""
        rolled.on_token_quote(quote("up-1", 0.55, 0.54))

        event = rolled.out_queue.get_nowait()
        assert isinstance(event, QuoteChangeEvent)
        assert event.slug == f"btc-updown-15m-{NOON_TS}"
        assert event.changed == Outcome.UP
        assert event.up == TokenQuote(best_ask=0.55, best_bid=0.54)
        assert event.down is None

    @pytest.mark.asyncio
    async def test_both_sides_carried(self, rolled):
        """Test each event carries the latest quote of both tokens."""
        rolled.on_token_quote(quote("up-1", 0.55, 0.54))
        rolled.on_token_quote(quote("down-1", 0.46, 0.45))

        events = drain(rolled.out_queue)
        assert events[-1].changed == Outcome.DOWN
        assert events[-1].up.best_ask == 0.55
        assert events[-1].down.best_ask == 0.46
        assert rolled.quotes.is_complete

    @pytest.mark.asyncio
    async def test_rounding(self, rolled):
        """Test asks and bids are rounded to cents."""
        rolled.on_token_quote(quote("up-1", 0.556, 0.5449))
        event = rolled.out_queue.get_nowait()
        assert event.up.best_ask == 0.56
        assert event.up.best_bid == 0.54

    @pytest.mark.asyncio
    async def test_zero_ask_means_no_sellers(self, rolled):
        """Test an ask of 0 reads as 1.00."""
        rolled.on_token_quote(quote("up-1", 0.0, 0.99))
        event = rolled.out_queue.get_nowait()
        assert event.up.best_ask == 1.0

    @pytest.mark.asyncio
    async def test_missing_fields_default(self, rolled):
        """Test absent ask/bid fall back to 1.00 and 0.00 on first sight."""
        rolled.on_token_quote(quote("down-1", None, None))
        event = rolled.out_queue.get_nowait()
        assert event.down == TokenQuote(best_ask=1.0, best_bid=0.0)

    @pytest.mark.asyncio
    async def test_missing_field_keeps_previous(self, rolled):
        """Test a one-sided update keeps the other side's last value."""
        rolled.on_token_quote(quote("up-1", 0.55, 0.54))
        rolled.on_token_quote(quote("up-1", None, 0.53))
        events = drain(rolled.out_queue)
        assert events[-1].up == TokenQuote(best_ask=0.55, best_bid=0.53)

    @pytest.mark.asyncio
    async def test_duplicates_suppressed(self, rolled):
        """Test quotes equal after rounding emit nothing."""
        rolled.on_token_quote(quote("up-1", 0.551, 0.54))
        rolled.on_token_quote(quote("up-1", 0.549, 0.54))
        rolled.on_token_quote(quote("up-1", 0.55, 0.54))

        assert len(drain(rolled.out_queue)) == 1
        assert rolled.duplicates_suppressed == 2

    @pytest.mark.asyncio
    async def test_foreign_token_discarded(self, rolled):
        """Test quotes of unknown tokens are counted and dropped."""
        rolled.on_token_quote(quote("someone-else", 0.55))
        assert rolled.out_queue.empty()
        assert rolled.stale_discarded == 1

    @pytest.mark.asyncio
    async def test_no_contract_discards(self, manager):
        """Test quotes before any rollover are dropped."""
        manager.on_token_quote(quote("up-1", 0.55))
        assert manager.out_queue.empty()
        assert manager.stale_discarded == 1


class TestBias:
    """Tests for reference price tracking and bias events."""

    @pytest.mark.asyncio
    async def test_bias_change(self, manager):
        """Test a price move emits current minus start."""
        await manager.rollover(NOW)
        drain(manager.out_queue)

        manager.on_price(price(97050.0))
        event = manager.out_queue.get_nowait()
        assert isinstance(event, BiasChangeEvent)
        assert event.bias == 50.0
        assert event.start_price == 97000.0
        assert event.current_price == 97050.0
        assert manager.can_start_trading()

    @pytest.mark.asyncio
    async def test_unchanged_bias_not_repeated(self, manager):
        """Test the same price twice emits one event."""
        await manager.rollover(NOW)
        drain(manager.out_queue)

        manager.on_price(price(96990.0, ts=1))
        manager.on_price(price(96990.0, ts=2))
        events = drain(manager.out_queue)
        assert len(events) == 1
        assert events[0].bias == -10.0

    @pytest.mark.asyncio
    async def test_first_price_adopted_without_start(self, manager, price_client):
        """Test the first observed price stands in for a missing open price."""
        price_client.get_open_price.return_value = None
        await manager.rollover(NOW)
        assert manager.start_price is None
        drain(manager.out_queue)

        manager.on_price(price(96800.0))
        assert manager.start_price == 96800.0
        event = manager.out_queue.get_nowait()
        assert event.bias == 0.0

    @pytest.mark.asyncio
    async def test_no_contract_no_bias(self, manager):
        """Test prices before a contract are remembered but not published."""
        manager.on_price(price(96000.0))
        assert manager.current_price == 96000.0
        assert manager.bias is None
        assert manager.out_queue.empty()

    @pytest.mark.asyncio
    async def test_process_dispatches_price(self, manager):
        """Test process() routes price updates."""
        await manager.process(PriceUpdateEvent(ts_local_ms=0, point=price(123.0)))
        assert manager.current_price == 123.0


class TestManagerTasks:
    """Tests for the running manager."""

    @pytest.mark.asyncio
    async def test_start_rolls_and_forwards_quotes(self, manager, quote_feed, connector, tracker):
        """Test start() rolls onto the contract and serializes feed and price events."""
        await manager.start()

        rollover = await asyncio.wait_for(manager.out_queue.get(), timeout=1.0)
        assert isinstance(rollover, RolloverEvent)
        assert rollover.current.slug == f"btc-updown-15m-{NOON_TS}"

        assert await quote_feed.wait_subscribed(timeout=1.0)
        connector.last.push(orjson.dumps({
            "event_type": "book",
            "asset_id": "up-1",
            "bids": [{"price": "0.52"}],
            "asks": [{"price": "0.53"}],
        }))
        event = await asyncio.wait_for(manager.out_queue.get(), timeout=1.0)
        assert isinstance(event, QuoteChangeEvent)
        assert event.up == TokenQuote(best_ask=0.53, best_bid=0.52)

        tracker.update(price(97100.0, ts=10))
        event = await asyncio.wait_for(manager.out_queue.get(), timeout=1.0)
        assert isinstance(event, BiasChangeEvent)
        assert event.bias == 100.0

    @pytest.mark.asyncio
    async def test_stop_disconnects_feed(self, manager, quote_feed):
        """Test stop() closes the quote subscription."""
        await manager.start()
        await asyncio.wait_for(manager.out_queue.get(), timeout=1.0)
        await manager.stop()
        assert not quote_feed.connected


def gamma_market(start_ts: int = NOON_TS) -> dict:
    return {
        "slug": f"btc-updown-15m-{start_ts}",
        "conditionId": "0xabc",
        "question": "Bitcoin Up or Down",
        "clobTokenIds": '["up-1", "down-1"]',
        "outcomes": '["Up", "Down"]',
    }


class TestRolloverRecovery:
    """Tests for the manager staying alive through failed rollovers."""

    @pytest_asyncio.fixture
    async def gamma(self, http_server):
        client = GammaClient(base_url=http_server.url, timeout_s=0.1)
        yield client
        await client.close()

    @pytest_asyncio.fixture
    async def live_manager(self, gamma, quote_feed, price_client):
        manager = MarketLifecycleManager(
            symbol=CoinSymbol.BTC,
            period=PeriodKind.FIFTEEN_MINUTES,
            finder=MarketFinder(gamma),
            quote_feed=quote_feed,
            price_client=price_client,
            clock=lambda: NOW,
        )
        yield manager
        await manager.stop()

    @pytest.mark.asyncio
    @pytest.mark.parametrize("mode", ["slow", "garbage"])
    async def test_gamma_failure_then_next_boundary(self, http_server, live_manager, mode):
        """Test a failed Gamma lookup publishes no contract and the next tick recovers."""
        http_server.modes["/markets"] = mode
        await live_manager.start()

        event = await asyncio.wait_for(live_manager.out_queue.get(), timeout=2.0)
        assert isinstance(event, RolloverEvent)
        assert event.current is None

        http_server.modes["/markets"] = "ok"
        http_server.payloads["/markets"] = [gamma_market()]
        await live_manager._inbox.put(RolloverTick(ts_local_ms=0))

        event = await asyncio.wait_for(live_manager.out_queue.get(), timeout=2.0)
        assert isinstance(event, RolloverEvent)
        assert event.current.slug == f"btc-updown-15m-{NOON_TS}"
        assert event.current.up_token_id == "up-1"
        assert event.start_price == 97000.0

    @pytest.mark.asyncio
    async def test_unexpected_error_then_next_boundary(self, manager, finder, wait_until):
        """Test an error escaping rollover is logged and the next tick is still handled."""
        finder.find_current_market.side_effect = [RuntimeError("boom"), make_descriptor()]
        await manager.start()

        assert await wait_until(lambda: finder.find_current_market.await_count == 1)
        await manager._inbox.put(RolloverTick(ts_local_ms=0))

        event = await asyncio.wait_for(manager.out_queue.get(), timeout=2.0)
        assert isinstance(event, RolloverEvent)
        assert event.current == make_descriptor()
        assert finder.find_current_market.await_count == 2
        assert not any(task.done() for task in manager._tasks)

    @pytest.mark.asyncio
    async def test_open_price_timeout(self, http_server, gamma, quote_feed):
        """Test a slow open price API leaves the start price unknown, not the manager dead."""
        http_server.payloads["/markets"] = [gamma_market()]
        http_server.modes["/crypto-price"] = "slow"
        prices = CryptoPriceClient(url=http_server.url + "/crypto-price", timeout_s=0.1)
        manager = MarketLifecycleManager(
            symbol=CoinSymbol.BTC,
            period=PeriodKind.FIFTEEN_MINUTES,
            finder=MarketFinder(gamma),
            quote_feed=quote_feed,
            price_client=prices,
            clock=lambda: NOW,
        )
        try:
            await manager.start()
            event = await asyncio.wait_for(manager.out_queue.get(), timeout=2.0)
            assert event.current is not None
            assert event.start_price is None

            manager.on_price(price(97010.0))
            assert manager.start_price == 97010.0
        finally:
            await manager.stop()
            await prices.close()
