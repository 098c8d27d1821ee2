"""Build the configured strategy set from AppConfig."""

from .base import Strategy
from .bias_hedge import BiasHedgeConfig, BiasHedgeStrategy
from .dual_sell import DualSellConfig, DualSellStrategy
from .grid_hedge import GridHedgeConfig, GridHedgeStrategy
from ..config import AppConfig
from ..errors import ConfigurationError
from ..types import PeriodKind


def build_strategy(name: str, config: AppConfig, period: PeriodKind) -> Strategy:
    """Create one strategy by name with parameters from config."""
    if name == "grid_hedge":
        return GridHedgeStrategy(GridHedgeConfig(
            max_total_cost=config.grid_max_total_cost,
            grid_gap=config.grid_gap,
            order_size=config.grid_order_size,
            enable_rebuy=config.grid_enable_rebuy,
            enable_double_side=config.grid_enable_double_side,
        ))
    if name == "dual_sell":
        return DualSellStrategy(DualSellConfig(
            target_total=config.dual_target_total,
            sell_threshold=config.dual_sell_threshold,
            order_size=config.dual_order_size,
        ))
    if name == "bias_hedge":
        return BiasHedgeStrategy(BiasHedgeConfig(
            price_diff=config.bias_price_diff,
            time_till_end_s=config.bias_time_till_end_s,
            target_price=config.bias_target_price,
            max_total_cost=config.bias_max_total_cost,
            order_size=config.bias_order_size,
            period=period,
        ))
    raise ConfigurationError(f"Unknown strategy: {name}")


def build_strategies(config: AppConfig, period: PeriodKind) -> list[Strategy]:
    """Fresh strategy instances for one (coin, period) engine."""
    return [build_strategy(name, config, period) for name in config.strategies]
