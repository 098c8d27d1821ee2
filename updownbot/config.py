"""
Application configuration.

Loads settings from environment variables with sensible defaults.
"""

import os
from dataclasses import dataclass, field

from dotenv import load_dotenv

from .types import CoinSymbol, PeriodKind
from .util import parse_bool, parse_csv

STRATEGY_NAMES = ("grid_hedge", "dual_sell", "bias_hedge")


@dataclass
class AppConfig:
    """Application configuration."""

    # Markets to track, one engine per (coin, period)
    coins: list[CoinSymbol] = field(default_factory=lambda: [CoinSymbol.BTC])
    periods: list[PeriodKind] = field(
        default_factory=lambda: [PeriodKind.FIFTEEN_MINUTES]
    )

    # API credentials
    pm_private_key: str = ""
    pm_funder: str = ""
    pm_signature_type: int = 1
    trading_enabled: bool = False
    order_timeout_s: float = 30.0

    # URLs
    pm_ws_market_url: str = "wss://ws-subscriptions-clob.polymarket.com/ws/market"
    pm_ws_user_url: str = "wss://ws-subscriptions-clob.polymarket.com/ws/user"
    pm_ws_live_data_url: str = "wss://ws-live-data.polymarket.com/"
    pm_rest_url: str = "https://clob.polymarket.com"
    gamma_api_url: str = "https://gamma-api.polymarket.com"
    crypto_price_url: str = "https://polymarket.com/api/crypto/crypto-price"

    # Streaming
    heartbeat_market_s: float = 10.0
    heartbeat_price_s: float = 30.0
    liveness_multiplier: float = 3.0
    backoff_min_s: float = 1.0
    backoff_max_s: float = 60.0
    max_reconnect_attempts: int = 0  # 0 = retry forever
    rollover_delay_s: float = 1.0

    # Strategies
    strategies: list[str] = field(default_factory=lambda: ["grid_hedge"])

    # Grid hedge
    grid_max_total_cost: int = 97
    grid_gap: int = 5
    grid_order_size: float = 1.0
    grid_enable_rebuy: bool = False
    grid_enable_double_side: bool = True

    # Dual sell
    dual_target_total: int = 105
    dual_sell_threshold: int = 65
    dual_order_size: float = 1.0

    # Bias hedge
    bias_price_diff: float = 50.0
    bias_time_till_end_s: int = 300
    bias_target_price: int = 40
    bias_max_total_cost: int = 97
    bias_order_size: float = 1.0

    # Archive
    archive_path: str = "data/ticks.db"

    # Logging
    log_level: str = "INFO"

    @property
    def has_signing_key(self) -> bool:
        return bool(self.pm_private_key)

    @classmethod
    def from_env(cls) -> "AppConfig":
        """Load config from environment variables."""
        return cls(
            coins=[CoinSymbol.parse(c) for c in parse_csv(os.getenv("COINS", "btc"))],
            periods=[PeriodKind.parse(p) for p in parse_csv(os.getenv("PERIODS", "15min"))],

            # Credentials
            pm_private_key=os.getenv("WALLET_PRIVATE_KEY", os.getenv("PM_PRIVATE_KEY", "")),
            pm_funder=os.getenv("WALLET_FUNDER_ADDRESS", os.getenv("PM_FUNDER", "")),
            pm_signature_type=int(os.getenv("PM_SIGNATURE_TYPE", "1")),
            trading_enabled=parse_bool(os.getenv("TRADING_ENABLED", "false")),
            order_timeout_s=float(os.getenv("ORDER_TIMEOUT_S", "30")),

            # URLs
            pm_ws_market_url=os.getenv(
                "PM_WS_MARKET_URL",
                "wss://ws-subscriptions-clob.polymarket.com/ws/market",
            ),
            pm_ws_user_url=os.getenv(
                "PM_WS_USER_URL",
                "wss://ws-subscriptions-clob.polymarket.com/ws/user",
            ),
            pm_ws_live_data_url=os.getenv(
                "PM_WS_LIVE_DATA_URL",
                "wss://ws-live-data.polymarket.com/",
            ),
            pm_rest_url=os.getenv("PM_REST_URL", "https://clob.polymarket.com"),
            gamma_api_url=os.getenv("GAMMA_API_URL", "https://gamma-api.polymarket.com"),
            crypto_price_url=os.getenv(
                "CRYPTO_PRICE_URL",
                "https://polymarket.com/api/crypto/crypto-price",
            ),

            # Streaming
            heartbeat_market_s=float(os.getenv("HEARTBEAT_MARKET_S", "10")),
            heartbeat_price_s=float(os.getenv("HEARTBEAT_PRICE_S", "30")),
            liveness_multiplier=float(os.getenv("LIVENESS_MULTIPLIER", "3")),
            backoff_min_s=float(os.getenv("BACKOFF_MIN_S", "1")),
            backoff_max_s=float(os.getenv("BACKOFF_MAX_S", "60")),
            max_reconnect_attempts=int(os.getenv("MAX_RECONNECT_ATTEMPTS", "0")),
            rollover_delay_s=float(os.getenv("ROLLOVER_DELAY_S", "1")),

            # Strategies
            strategies=parse_csv(os.getenv("STRATEGIES", "grid_hedge")),

            grid_max_total_cost=int(os.getenv("GRID_MAX_TOTAL_COST", "97")),
            grid_gap=int(os.getenv("GRID_GAP", "5")),
            grid_order_size=float(os.getenv("GRID_ORDER_SIZE", "1")),
            grid_enable_rebuy=parse_bool(os.getenv("GRID_ENABLE_REBUY", "false")),
            grid_enable_double_side=parse_bool(os.getenv("GRID_ENABLE_DOUBLE_SIDE", "true")),

            dual_target_total=int(os.getenv("DUAL_TARGET_TOTAL", "105")),
            dual_sell_threshold=int(os.getenv("DUAL_SELL_THRESHOLD", "65")),
            dual_order_size=float(os.getenv("DUAL_ORDER_SIZE", "1")),

            bias_price_diff=float(os.getenv("BIAS_PRICE_DIFF", "50")),
            bias_time_till_end_s=int(os.getenv("BIAS_TIME_TILL_END_S", "300")),
            bias_target_price=int(os.getenv("BIAS_TARGET_PRICE", "40")),
            bias_max_total_cost=int(os.getenv("BIAS_MAX_TOTAL_COST", "97")),
            bias_order_size=float(os.getenv("BIAS_ORDER_SIZE", "1")),

            # Archive
            archive_path=os.getenv("ARCHIVE_PATH", "data/ticks.db"),

            # Logging
            log_level=os.getenv("LOG_LEVEL", "INFO"),
        )

    @classmethod
    def from_env_file(cls, path: str) -> "AppConfig":
        """
        Load config from .env file, then environment variables.

        Environment variables override file values.
        """
        if os.path.exists(path):
            load_dotenv(path, override=False)
        return cls.from_env()

    def validate(self) -> list[str]:
        """Validate configuration, return list of errors."""
        errors = []

        if not self.coins:
            errors.append("COINS must name at least one coin")

        if not self.periods:
            errors.append("PERIODS must name at least one period")

        unknown = [s for s in self.strategies if s not in STRATEGY_NAMES]
        if unknown:
            errors.append(f"STRATEGIES has unknown names: {', '.join(unknown)}")

        if self.trading_enabled and not self.pm_private_key:
            errors.append("TRADING_ENABLED requires WALLET_PRIVATE_KEY")

        if self.order_timeout_s <= 0:
            errors.append("ORDER_TIMEOUT_S must be positive")

        if self.heartbeat_market_s <= 0 or self.heartbeat_price_s <= 0:
            errors.append("Heartbeat intervals must be positive")

        if self.liveness_multiplier < 1:
            errors.append("LIVENESS_MULTIPLIER must be at least 1")

        if self.backoff_min_s <= 0 or self.backoff_max_s < self.backoff_min_s:
            errors.append("BACKOFF_MIN_S must be positive and <= BACKOFF_MAX_S")

        if self.max_reconnect_attempts < 0:
            errors.append("MAX_RECONNECT_ATTEMPTS must be >= 0")

        if not 50 < self.grid_max_total_cost <= 100:
            errors.append("GRID_MAX_TOTAL_COST must be between 51 and 100")

        if self.grid_gap < 1:
            errors.append("GRID_GAP must be at least 1")

        if self.grid_order_size <= 0:
            errors.append("GRID_ORDER_SIZE must be positive")

        if not 0 < self.dual_sell_threshold < 100:
            errors.append("DUAL_SELL_THRESHOLD must be between 1 and 99")

        if self.dual_target_total <= self.dual_sell_threshold:
            errors.append("DUAL_TARGET_TOTAL must exceed DUAL_SELL_THRESHOLD")

        if not 0 < self.bias_target_price < 100:
            errors.append("BIAS_TARGET_PRICE must be between 1 and 99")

        return errors
