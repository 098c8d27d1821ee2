"""
Command line entry point.

Usage:
    updownbot run [--env-file .env] [-v]
    updownbot backtest [--db data/ticks.db] [--coin btc] [--period 15min]
                       [--strategies grid_hedge,dual_sell]
    updownbot slug --coin btc --period hourly
"""

import argparse
import asyncio
import logging
import sys
from datetime import datetime, timezone
from typing import Optional

from .app import UpDownApplication
from .archive import SQLiteTickStore
from .backtest import run_backtest
from .clients.market_finder import build_market_slug
from .config import AppConfig
from .errors import ConfigurationError
from .strategy import build_strategies
from .types import CoinSymbol, PeriodKind
from .util import parse_csv, setup_logging

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="updownbot",
        description="Polymarket up/down contract tracker and hedge strategy evaluator",
    )
    parser.add_argument(
        "--env-file",
        default=".env",
        help="Settings file loaded before the environment (default: .env)",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable DEBUG logging",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("run", help="Track live contracts and evaluate strategies")

    backtest = sub.add_parser("backtest", help="Replay archived contracts")
    backtest.add_argument("--db", default=None, help="Tick archive (default: ARCHIVE_PATH)")
    backtest.add_argument("--coin", default=None, help="Only this coin (btc, eth, sol, xrp)")
    backtest.add_argument("--period", default=None, help="Only this period (15min, hourly)")
    backtest.add_argument(
        "--strategies",
        default=None,
        help="Comma list of strategies (default: STRATEGIES)",
    )

    slug = sub.add_parser("slug", help="Print the current contract slug")
    slug.add_argument("--coin", default="btc")
    slug.add_argument("--period", default="15min")

    return parser


def _run(config: AppConfig) -> int:
    app = UpDownApplication(config)
    try:
        asyncio.run(app.run())
    except ConfigurationError as e:
        logger.error(str(e))
        return 1
    return 0


def _backtest(config: AppConfig, args: argparse.Namespace) -> int:
    if args.strategies:
        config.strategies = parse_csv(args.strategies)
    errors = config.validate()
    if errors:
        for error in errors:
            logger.error(f"Config error: {error}")
        return 1

    symbol = CoinSymbol.parse(args.coin) if args.coin else None
    period = PeriodKind.parse(args.period) if args.period else None

    store = SQLiteTickStore(args.db or config.archive_path)
    try:
        report = run_backtest(
            store,
            # Bias hedge needs a period for its time gate
            lambda: build_strategies(config, period or PeriodKind.FIFTEEN_MINUTES),
            symbol=symbol,
            period=period,
        )
    finally:
        store.close()

    for line in report.lines():
        print(line)
    return 0


def _slug(args: argparse.Namespace) -> int:
    symbol = CoinSymbol.parse(args.coin)
    period = PeriodKind.parse(args.period)
    print(build_market_slug(symbol, period, datetime.now(timezone.utc)))
    return 0


def main(argv: Optional[list[str]] = None) -> int:
    """Entry point for the application."""
    args = build_parser().parse_args(argv)

    try:
        config = AppConfig.from_env_file(args.env_file)
    except ValueError as e:
        setup_logging("updownbot")
        logger.error(f"Config error: {e}")
        return 2

    level = "DEBUG" if args.verbose else config.log_level
    setup_logging("updownbot", level=level)

    try:
        if args.command == "run":
            return _run(config)
        if args.command == "backtest":
            return _backtest(config, args)
        return _slug(args)
    except ValueError as e:
        logger.error(str(e))
        return 2


if __name__ == "__main__":
    sys.exit(main())
