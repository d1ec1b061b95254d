"""Backtest output: JSON/CSV persistence, text summary, ASCII equity chart."""

from __future__ import annotations
import json
import logging
from pathlib import Path
from typing import Sequence

import pandas as pd

from confluence_bot.analytics.metrics import PerformanceMetrics
from confluence_bot.backtesting.engine import BacktestResult
from confluence_bot.core.types import EquityPoint

logger = logging.getLogger("confluence_bot.backtest.report")

RESULTS_FILE = "backtest_results.json"
TRADES_FILE = "trades.csv"


def save_results(result: BacktestResult, out_dir: Path) -> Path:
    """Write the full results object as JSON and the trade list as CSV. Returns the JSON path."""
    out_dir = Path(out_dir)
    out_dir.mkdir(parents=True, exist_ok=True)
    payload = result.to_dict()
    path = out_dir / RESULTS_FILE
    with open(path, "w", encoding="utf-8") as f:
        json.dump(payload, f, indent=2)
    trades = pd.DataFrame(payload["trades"])
    if not trades.empty:
        trades["reasons"] = trades["reasons"].map("; ".join)
    trades.to_csv(out_dir / TRADES_FILE, index=False)
    logger.info("Results saved to %s", path)
    return path


def load_results(path: Path) -> BacktestResult:
    with open(path, "r", encoding="utf-8") as f:
        return BacktestResult.from_dict(json.load(f))


def format_summary(m: PerformanceMetrics) -> str:
    lines = [
        "--- Backtest Results ---",
        f"Initial equity: {m.initial_equity:.2f}",
        f"Final equity: {m.final_equity:.2f}",
        f"Total return: {m.total_return_pct:.2f}%",
        f"Annualized return: {m.annualized_return_pct:.2f}%",
        f"Total trades: {m.total_trades} (wins: {m.winning_trades}, losses: {m.losing_trades})",
        f"Win rate: {m.win_rate * 100:.1f}%",
        f"Profit factor: {m.profit_factor:.2f}",
        f"Avg R achieved: {m.avg_r_multiple:.2f}",
        f"Expectancy: {m.expectancy:.2f} USD/trade",
        f"Max drawdown: {m.max_drawdown_pct:.2f}%",
        f"Sharpe ratio: {m.sharpe_ratio:.2f}",
        f"Sortino ratio: {m.sortino_ratio:.2f}",
    ]
    return "\n".join(lines)


def render_equity_curve(points: Sequence[EquityPoint], rows: int = 12, cols: int = 60) -> str:
    """Coarse ASCII plot of equity over time, one sampled point per column."""
    if not points:
        return ""
    values = [p.equity for p in points]
    lo, hi = min(values), max(values)
    span = (hi - lo) or 1.0
    step = max(1, len(values) // cols)
    grid = [[" "] * cols for _ in range(rows)]
    for c in range(cols):
        idx = min(c * step, len(values) - 1)
        row = rows - 1 - round((values[idx] - lo) / span * (rows - 1))
        grid[row][c] = "#"
    out = [f"{hi:>10.0f} +"]
    out += [" " * 10 + " | " + "".join(r) for r in grid]
    out.append(f"{lo:>10.0f} +" + "-" * (cols + 1))
    return "\n".join(out)
