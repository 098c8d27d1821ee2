"""Tests for AppConfig loading and validation."""

import pytest

from updownbot.config import AppConfig
from updownbot.types import CoinSymbol, PeriodKind

ENV_KEYS = [
    "COINS", "PERIODS", "WALLET_PRIVATE_KEY", "PM_PRIVATE_KEY", "WALLET_FUNDER_ADDRESS",
    "PM_FUNDER", "TRADING_ENABLED", "STRATEGIES", "GRID_GAP", "GRID_MAX_TOTAL_COST",
    "GRID_ENABLE_REBUY", "MAX_RECONNECT_ATTEMPTS", "LOG_LEVEL", "ARCHIVE_PATH", "ORDER_TIMEOUT_S",
]


@pytest.fixture
def clean_env(monkeypatch):
    """Remove every variable the tests set, including ones load_dotenv writes."""
    for key in ENV_KEYS:
        # setenv first so teardown restores the original state either way
        monkeypatch.setenv(key, "")
        monkeypatch.delenv(key)
    return monkeypatch


class TestAppConfigDefaults:
    """Tests for default values."""

    def test_defaults(self, clean_env):
        """Test an empty environment gives a read-only btc 15min config."""
        config = AppConfig.from_env()
        assert config.coins == [CoinSymbol.BTC]
        assert config.periods == [PeriodKind.FIFTEEN_MINUTES]
        assert config.strategies == ["grid_hedge"]
        assert config.grid_gap == 5
        assert config.grid_max_total_cost == 97
        assert config.trading_enabled is False
        assert config.order_timeout_s == 30.0
        assert config.has_signing_key is False
        assert config.validate() == []


class TestAppConfigFromEnv:
    """Tests for environment parsing."""

    def test_lists(self, clean_env):
        """Test comma lists of coins, periods and strategies."""
        clean_env.setenv("COINS", "btc, eth,sol")
        clean_env.setenv("PERIODS", "15min,hourly")
        clean_env.setenv("STRATEGIES", "grid_hedge,bias_hedge")
        config = AppConfig.from_env()
        assert config.coins == [CoinSymbol.BTC, CoinSymbol.ETH, CoinSymbol.SOL]
        assert config.periods == [PeriodKind.FIFTEEN_MINUTES, PeriodKind.HOURLY]
        assert config.strategies == ["grid_hedge", "bias_hedge"]

    def test_unknown_coin_raises(self, clean_env):
        """Test an unknown coin name is rejected while loading."""
        clean_env.setenv("COINS", "doge")
        with pytest.raises(ValueError):
            AppConfig.from_env()

    def test_wallet_key_names(self, clean_env):
        """Test WALLET_* names win over PM_* fallbacks."""
        clean_env.setenv("PM_PRIVATE_KEY", "0xfallback")
        assert AppConfig.from_env().pm_private_key == "0xfallback"

        clean_env.setenv("WALLET_PRIVATE_KEY", "0xprimary")
        clean_env.setenv("WALLET_FUNDER_ADDRESS", "0xfunder")
        config = AppConfig.from_env()
        assert config.pm_private_key == "0xprimary"
        assert config.pm_funder == "0xfunder"
        assert config.has_signing_key is True

    def test_bools_and_numbers(self, clean_env):
        """Test boolean and numeric parsing."""
        clean_env.setenv("GRID_ENABLE_REBUY", "yes")
        clean_env.setenv("GRID_GAP", "10")
        clean_env.setenv("MAX_RECONNECT_ATTEMPTS", "5")
        config = AppConfig.from_env()
        assert config.grid_enable_rebuy is True
        assert config.grid_gap == 10
        assert config.max_reconnect_attempts == 5


class TestAppConfigFromEnvFile:
    """Tests for .env loading."""

    def test_file_values_loaded(self, clean_env, tmp_path):
        """Test values come from the file when the environment is silent."""
        env_file = tmp_path / ".env"
        env_file.write_text("COINS=eth\nGRID_GAP=3\n")
        config = AppConfig.from_env_file(str(env_file))
        assert config.coins == [CoinSymbol.ETH]
        assert config.grid_gap == 3

    def test_environment_overrides_file(self, clean_env, tmp_path):
        """Test an exported variable beats the file."""
        env_file = tmp_path / ".env"
        env_file.write_text("GRID_GAP=3\n")
        clean_env.setenv("GRID_GAP", "7")
        assert AppConfig.from_env_file(str(env_file)).grid_gap == 7

    def test_missing_file(self, clean_env, tmp_path):
        """Test a missing file falls back to the environment."""
        config = AppConfig.from_env_file(str(tmp_path / "nope.env"))
        assert config.coins == [CoinSymbol.BTC]


class TestAppConfigValidate:
    """Tests for validate()."""

    def test_unknown_strategy(self):
        """Test unknown strategy names are reported."""
        config = AppConfig(strategies=["grid_hedge", "martingale"])
        errors = config.validate()
        assert any("martingale" in e for e in errors)

    def test_trading_requires_key(self):
        """Test TRADING_ENABLED without a key is an error."""
        errors = AppConfig(trading_enabled=True).validate()
        assert any("WALLET_PRIVATE_KEY" in e for e in errors)

    def test_missing_key_is_not_an_error(self):
        """Test a missing key alone means read-only, not invalid."""
        assert AppConfig(pm_private_key="").validate() == []

    def test_grid_bounds(self):
        """Test grid parameters are range-checked."""
        assert AppConfig(grid_gap=0).validate()
        assert AppConfig(grid_max_total_cost=50).validate()
        assert AppConfig(grid_max_total_cost=101).validate()

    def test_backoff_bounds(self):
        """Test backoff min must not exceed max."""
        assert AppConfig(backoff_min_s=10, backoff_max_s=5).validate()

    def test_order_timeout_positive(self):
        """Test the order timeout must be positive."""
        assert AppConfig(order_timeout_s=0).validate()
        assert AppConfig(order_timeout_s=2.5).validate() == []

    def test_dual_sell_bounds(self):
        """Test the dual sell target must exceed its threshold."""
        assert AppConfig(dual_target_total=60, dual_sell_threshold=65).validate()
