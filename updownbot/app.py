"""
Up/down bot application.

Wires all components together and manages application lifecycle.
Everything runs as asyncio tasks on one event loop.

Component layout:
- One CoinPriceTracker per coin (shared by every period of that coin)
- One MarketEngine per (coin, period):
    MarketQuoteFeed -> MarketLifecycleManager -> StrategyRunner
- One OrderExecutor shared by all engines
- Optional UserEventFeed when a signing key is configured

Note: each engine's lifecycle manager publishes quotes, bias changes and
rollovers on a single queue, so its runner sees them in one order.
"""

import asyncio
import logging
import signal
from typing import Optional

from .archive import SQLiteTickStore, TickRecorder
from .clients import CryptoPriceClient, GammaClient, MarketFinder, PolymarketRestClient
from .config import AppConfig
from .errors import ConfigurationError
from .executor import OrderExecutor
from .feeds import (
    CoinPriceFeed,
    CoinPriceTracker,
    ExponentialBackoff,
    MarketQuoteFeed,
    UserEventFeed,
)
from .market_lifecycle import MarketLifecycleManager
from .strategy import StrategyRunner, build_strategies
from .types import CoinSymbol, PeriodKind, UserOrderEvent, UserTradeEvent

logger = logging.getLogger(__name__)


class MarketEngine:
    """Lifecycle manager plus strategy runner for one (coin, period) pair."""

    def __init__(self, manager: MarketLifecycleManager, runner: StrategyRunner):
        self.manager = manager
        self.runner = runner
        self._task: Optional[asyncio.Task] = None

    @property
    def name(self) -> str:
        return self.manager.name

    async def start(self) -> None:
        await self.manager.start()
        self._task = asyncio.create_task(self.runner.run(), name=f"{self.name}-runner")

    async def stop(self) -> None:
        await self.manager.stop()
        self.runner.stop()
        if self._task is not None:
            self._task.cancel()
            await asyncio.gather(self._task, return_exceptions=True)
            self._task = None
        # Archive whatever was observed of the contract in flight
        self.runner.settle_current()


class UpDownApplication:
    """
    Main application.

    - Startup: validate config, build clients, trackers and engines, start tasks
    - Running: engines roll over by themselves at every period boundary
    - Shutdown: stop engines, trackers and feeds, close clients and archive
    """

    def __init__(self, config: AppConfig):
        self._config = config

        # Components (initialized in _setup_components)
        self._gamma: Optional[GammaClient] = None
        self._price_client: Optional[CryptoPriceClient] = None
        self._finder: Optional[MarketFinder] = None
        self._rest: Optional[PolymarketRestClient] = None
        self._executor: Optional[OrderExecutor] = None
        self._store: Optional[SQLiteTickStore] = None
        self._user_feed: Optional[UserEventFeed] = None

        self._trackers: dict[CoinSymbol, CoinPriceTracker] = {}
        self._engines: dict[tuple[CoinSymbol, PeriodKind], MarketEngine] = {}

        self._tasks: list[asyncio.Task] = []
        self._shutdown_event = asyncio.Event()
        self._running = False

    @property
    def engines(self) -> dict[tuple[CoinSymbol, PeriodKind], MarketEngine]:
        return dict(self._engines)

    @property
    def trackers(self) -> dict[CoinSymbol, CoinPriceTracker]:
        return dict(self._trackers)

    @property
    def executor(self) -> Optional[OrderExecutor]:
        return self._executor

    def _backoff(self) -> ExponentialBackoff:
        cfg = self._config
        return ExponentialBackoff(min_seconds=cfg.backoff_min_s, max_seconds=cfg.backoff_max_s)

    def _feed_kwargs(self) -> dict:
        cfg = self._config
        return {
            "liveness_multiplier": cfg.liveness_multiplier,
            "backoff": self._backoff(),
            "max_retries": cfg.max_reconnect_attempts,
        }

    def _setup_components(self) -> None:
        """Initialize all components."""
        cfg = self._config

        # HTTP collaborators
        self._gamma = GammaClient(base_url=cfg.gamma_api_url)
        self._price_client = CryptoPriceClient(url=cfg.crypto_price_url)
        self._finder = MarketFinder(self._gamma)

        # Order placement; read-only without a signing key
        if cfg.has_signing_key:
            self._rest = PolymarketRestClient(
                private_key=cfg.pm_private_key,
                funder=cfg.pm_funder,
                signature_type=cfg.pm_signature_type,
                host=cfg.pm_rest_url,
            )
        else:
            logger.warning("No signing key configured, running read-only")
        self._executor = OrderExecutor(
            rest=self._rest,
            trading_enabled=cfg.trading_enabled and self._rest is not None,
            order_timeout_s=cfg.order_timeout_s,
        )

        # Archive
        self._store = SQLiteTickStore(cfg.archive_path)
        self._store.init_schema()

        # Reference price, one tracker per coin
        for symbol in cfg.coins:
            feed = CoinPriceFeed(
                symbol,
                url=cfg.pm_ws_live_data_url,
                heartbeat_interval_s=cfg.heartbeat_price_s,
                **self._feed_kwargs(),
            )
            self._trackers[symbol] = CoinPriceTracker(feed)

        # One engine per (coin, period)
        for symbol in cfg.coins:
            for period in cfg.periods:
                self._engines[(symbol, period)] = self._build_engine(symbol, period)

        logger.info(
            f"Components initialized: {len(self._engines)} engines, "
            f"strategies={','.join(cfg.strategies)}, "
            f"{'read-only' if self._executor.read_only else 'LIVE trading'}"
        )

    def _build_engine(self, symbol: CoinSymbol, period: PeriodKind) -> MarketEngine:
        cfg = self._config
        name = f"{symbol.short}-{period.value}"

        quote_feed = MarketQuoteFeed(
            url=cfg.pm_ws_market_url,
            name=f"market-{name}",
            heartbeat_interval_s=cfg.heartbeat_market_s,
            **self._feed_kwargs(),
        )
        manager = MarketLifecycleManager(
            symbol=symbol,
            period=period,
            finder=self._finder,
            quote_feed=quote_feed,
            price_client=self._price_client,
            tracker=self._trackers[symbol],
            rollover_delay_s=cfg.rollover_delay_s,
        )
        runner = StrategyRunner(
            manager.out_queue,
            build_strategies(cfg, period),
            executor=self._executor,
            recorder=TickRecorder(symbol, period, self._store),
            name=name,
        )
        return MarketEngine(manager, runner)

    async def _setup_user_feed(self) -> None:
        """Authenticated account events; needs derived API credentials."""
        if self._rest is None:
            return
        try:
            creds = await asyncio.to_thread(lambda: self._rest.api_credentials)
        except Exception as e:
            # Monitoring carries on; only order placement is lost
            logger.error(f"Could not derive API credentials, skipping user feed: {e}")
            self._executor.disable_trading("API credentials unavailable")
            return
        self._user_feed = UserEventFeed(
            api_key=creds.api_key,
            api_secret=creds.api_secret,
            passphrase=creds.passphrase,
            url=self._config.pm_ws_user_url,
            heartbeat_interval_s=self._config.heartbeat_market_s,
            **self._feed_kwargs(),
        )
        await self._user_feed.connect()
        self._tasks.append(asyncio.create_task(self._log_user_events(), name="user-events"))

    async def _log_user_events(self) -> None:
        while True:
            event = await self._user_feed.out_queue.get()
            if isinstance(event, UserOrderEvent):
                logger.info(
                    f"Order {event.order_id} {event.status}: {event.side} "
                    f"{event.size_matched}/{event.original_size} @ {event.price}"
                )
            elif isinstance(event, UserTradeEvent):
                logger.info(
                    f"Trade {event.trade_id} {event.status}: {event.side} "
                    f"{event.size} @ {event.price}"
                )

    async def start(self) -> None:
        """Start the application."""
        logger.info("Starting up/down bot...")

        errors = self._config.validate()
        if errors:
            for error in errors:
                logger.error(f"Config error: {error}")
            raise ConfigurationError(f"Invalid configuration: {errors}")

        self._setup_components()

        for tracker in self._trackers.values():
            await tracker.start()

        for engine in self._engines.values():
            await engine.start()

        await self._setup_user_feed()

        self._running = True
        logger.info("Up/down bot started")

    async def stop(self) -> None:
        """Stop the application."""
        logger.info("Stopping up/down bot...")
        self._running = False

        for engine in self._engines.values():
            await engine.stop()

        for tracker in self._trackers.values():
            await tracker.stop()

        if self._user_feed:
            await self._user_feed.disconnect()

        for task in self._tasks:
            task.cancel()
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks = []

        if self._gamma:
            await self._gamma.close()
        if self._price_client:
            await self._price_client.close()
        if self._store:
            self._store.close()

        logger.info("Up/down bot stopped")

    async def run(self) -> None:
        """
        Run the application until shutdown signal.
        """
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(
                sig,
                lambda: asyncio.create_task(self._handle_signal())
            )

        try:
            await self.start()
            await self._shutdown_event.wait()
        finally:
            await self.stop()

    async def _handle_signal(self) -> None:
        """Handle shutdown signal."""
        logger.info("Received shutdown signal")
        self._shutdown_event.set()
