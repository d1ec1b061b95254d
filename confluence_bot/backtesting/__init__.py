"""Backtesting engine: bar-by-bar replay with next-bar fills, spread and commission."""

from confluence_bot.backtesting.engine import (
    BacktestEngine,
    BacktestResult,
    InsufficientDataError,
    ReplayData,
    check_exit,
)
from confluence_bot.backtesting.report import format_summary, load_results, render_equity_curve, save_results

__all__ = [
    "BacktestEngine",
    "BacktestResult",
    "InsufficientDataError",
    "ReplayData",
    "check_exit",
    "format_summary",
    "load_results",
    "render_equity_curve",
    "save_results",
]
