#!/usr/bin/env python3
"""
Confluence Bot CLI: backtest | signal
Usage:
  python main.py backtest [--config config.yaml] [--data PATH | --mock] [--bars N] [--seed S] [--plot] [--no-save]
  python main.py signal [--config config.yaml] [--data PATH | --mock]
"""

from __future__ import annotations
import argparse
import logging
import sys
from pathlib import Path

# Project root
ROOT = Path(__file__).resolve().parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from confluence_bot.backtesting import BacktestEngine, format_summary, render_equity_curve, save_results
from confluence_bot.core.config import Config, load_config
from confluence_bot.core.logger import setup_logging
from confluence_bot.data import BarSource, CsvBarSource, MockBarSource
from confluence_bot.risk.manager import RiskManager
from confluence_bot.strategies import format_signal
from confluence_bot.utils.timeframes import timeframe_minutes

logger = logging.getLogger("confluence_bot")

DEFAULT_MOCK_BARS = 5000


def make_source(config: Config, data: Path | None, mock: bool, seed: int) -> BarSource:
    """CSV from --data or the configured data_path; synthetic bars with --mock."""
    if mock:
        logger.info("Using synthetic bars (seed=%d)", seed)
        return MockBarSource(seed=seed, base_timeframe=config.timeframe, initial_equity=config.initial_equity)
    path = data or Path(config.data_path)
    if not path.is_absolute():
        path = ROOT / path
    return CsvBarSource(path, base_timeframe=config.timeframe, initial_equity=config.initial_equity)


def run_backtest(config_path: Path | None, args: argparse.Namespace) -> int:
    """Replay history through the strategy and print metrics."""
    config = load_config(config_path, ROOT)
    setup_logging(config.log_level, config.log_dir, config.log_file)
    source = make_source(config, args.data, args.mock, args.seed)
    count = args.bars or (DEFAULT_MOCK_BARS if args.mock else None)
    df = source.get_bars(config.timeframe, count)

    engine = BacktestEngine(config)
    result = engine.run(df)
    m = result.metrics
    if m:
        print()
        print(format_summary(m))
    if args.plot:
        print("\nEquity curve:")
        print(render_equity_curve(result.equity_curve))
    if not args.no_save:
        out = save_results(result, ROOT / "results")
        print(f"\nSaved: {out}")
    return 0


def run_signal(config_path: Path | None, args: argparse.Namespace) -> int:
    """Evaluate the latest completed bar once: signal, risk decision, size. No orders."""
    config = load_config(config_path, ROOT)
    setup_logging(config.log_level, config.log_dir, config.log_file)
    source = make_source(config, args.data, args.mock, args.seed)

    # Enough base bars for the trend EMA to settle on the coarser series
    ratio = timeframe_minutes(config.trend_timeframe) // timeframe_minutes(config.timeframe)
    count = args.bars or max(config.lookback_bars, ratio * (config.ema_trend + config.min_htf_bars))
    df = source.get_bars(config.timeframe, count)

    engine = BacktestEngine(config)
    data = engine.prepare(df)
    last = data.bars[-1]
    signal = engine.evaluate_at(data, len(data.bars) - 1)
    if signal is None:
        print(f"{last.time.isoformat()} {config.symbol}: no signal")
        return 0

    account = source.get_account_summary()
    risk = RiskManager(config, account.equity)
    decision = risk.can_open_trade(len(source.get_open_positions()), last.time)
    units = risk.size_position(signal) if decision.allowed else 0
    print(format_signal(signal))
    if decision.allowed:
        print(f"Risk: allowed | units={units}")
    else:
        print(f"Risk: blocked | {decision.reason}")
    return 0


def main() -> int:
    parser = argparse.ArgumentParser(description="Confluence Bot CLI")
    parser.add_argument("mode", choices=["backtest", "signal"], help="Run backtest or evaluate the latest bar")
    parser.add_argument("--config", type=Path, default=None, help="Path to config.yaml")
    src = parser.add_mutually_exclusive_group()
    src.add_argument("--data", type=Path, default=None, help="OHLCV CSV at the base timeframe")
    src.add_argument("--mock", action="store_true", help="Use seeded synthetic bars")
    parser.add_argument("--bars", type=int, default=None, help="Number of base bars to load")
    parser.add_argument("--seed", type=int, default=7, help="Seed for --mock")
    parser.add_argument("--plot", action="store_true", help="Print an ASCII equity curve")
    parser.add_argument("--no-save", action="store_true", help="Do not write results/ files")
    args = parser.parse_args()
    try:
        if args.mode == "backtest":
            return run_backtest(args.config, args)
        return run_signal(args.config, args)
    except (ValueError, FileNotFoundError) as e:
        logger.error("%s", e)
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
