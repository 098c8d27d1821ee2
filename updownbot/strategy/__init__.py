"""
Strategy module for up/down contract hedging.

Strategies are per-contract state machines: they consume a chronological
stream of Ticks (best asks of both tokens plus the reference-price bias),
emit OrderIntents and value the contract at settlement.

Public API:
    Strategy: Abstract base class for strategies
    ContractWindow: Contract start/end used for time gating
    StrategyResult: Settlement valuation
    GridHedgeStrategy: Grid entries with capped opposite-side hedges
    DualSellStrategy: Pre-purchased pair sold toward a target total
    BiasHedgeStrategy: Single bias/time-gated entry with a hedge
    StrategyRunner: Drives strategies from a lifecycle manager's events

Quick Start:
    from updownbot.strategy import GridHedgeStrategy, GridHedgeConfig

    strategy = GridHedgeStrategy(GridHedgeConfig(grid_gap=5))
    result = strategy.evaluate(ticks)
    print(result.summary())
"""

# Base classes
from .base import ContractWindow, Strategy, StrategyResult, payout, settlement_winner

# Hedging variants
from .grid_hedge import GridHedgeConfig, GridHedgeStrategy, grid_levels
from .dual_sell import DualSellConfig, DualSellStrategy, SellOrder
from .bias_hedge import BiasHedgeConfig, BiasHedgeStrategy

# Runner infrastructure
from .runner import ContractResults, StrategyRunner
from .factory import build_strategy, build_strategies

__all__ = [
    # Base classes
    "ContractWindow",
    "Strategy",
    "StrategyResult",
    "payout",
    "settlement_winner",
    # Variants
    "GridHedgeConfig",
    "GridHedgeStrategy",
    "grid_levels",
    "DualSellConfig",
    "DualSellStrategy",
    "SellOrder",
    "BiasHedgeConfig",
    "BiasHedgeStrategy",
    # Runner
    "ContractResults",
    "StrategyRunner",
    "build_strategy",
    "build_strategies",
]
