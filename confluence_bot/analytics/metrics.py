"""
Performance metrics: Sharpe, Sortino, max drawdown, win rate, profit factor,
expectancy, annualised return. Ratios use daily returns of the equity curve.
"""

from __future__ import annotations
from dataclasses import asdict, dataclass
from typing import List, Optional, Sequence

import numpy as np
import pandas as pd

from confluence_bot.core.types import EquityPoint, Trade


@dataclass
class PerformanceMetrics:
    """Aggregate performance metrics."""
    initial_equity: float
    final_equity: float
    total_return_pct: float
    annualized_return_pct: float
    sharpe_ratio: float
    sortino_ratio: float
    max_drawdown_pct: float
    win_rate: float
    profit_factor: float
    expectancy: float
    avg_r_multiple: float
    total_trades: int
    winning_trades: int
    losing_trades: int
    avg_win: float
    avg_loss: float

    def to_dict(self) -> dict:
        return asdict(self)


def sharpe_ratio(returns: List[float], risk_free_rate: float = 0.0, periods_per_year: float = 252.0) -> float:
    """Annualized Sharpe. returns = list of period returns."""
    if not returns:
        return 0.0
    arr = np.array(returns)
    excess = arr - risk_free_rate / periods_per_year
    if excess.std() <= 1e-12:
        return 0.0
    return float(np.sqrt(periods_per_year) * excess.mean() / excess.std())


def sortino_ratio(returns: List[float], risk_free_rate: float = 0.0, periods_per_year: float = 252.0) -> float:
    """Annualized Sortino. Downside deviation = RMS of negative returns."""
    if not returns:
        return 0.0
    arr = np.array(returns)
    excess = arr - risk_free_rate / periods_per_year
    downside = arr[arr < 0]
    if len(downside) == 0:
        return 0.0
    downside_dev = float(np.sqrt(np.mean(downside ** 2)))
    if downside_dev <= 1e-12:
        return 0.0
    return float(np.sqrt(periods_per_year) * excess.mean() / downside_dev)


def max_drawdown(equity: List[float]) -> float:
    """Max drawdown in percent, <= 0 (e.g. -15.0 = 15% below the running peak)."""
    if not equity:
        return 0.0
    arr = np.array(equity, dtype=float)
    peak = np.maximum.accumulate(arr)
    dd = (arr - peak) / np.where(peak != 0, peak, 1)
    return float(np.min(dd)) * 100.0


def win_rate(pnls: List[float]) -> float:
    """Fraction of trades with positive PnL."""
    if not pnls:
        return 0.0
    return sum(1 for p in pnls if p > 0) / len(pnls)


def profit_factor(pnls: List[float]) -> float:
    """Gross profit / gross loss. inf if only wins, 0 if no wins."""
    wins = sum(p for p in pnls if p > 0)
    losses = sum(-p for p in pnls if p < 0)
    if losses <= 0:
        return float("inf") if wins > 0 else 0.0
    return wins / losses


def expectancy(pnls: List[float]) -> float:
    """Average PnL per trade."""
    if not pnls:
        return 0.0
    return sum(pnls) / len(pnls)


def daily_returns(equity_curve: Sequence[EquityPoint]) -> List[float]:
    """Returns between the last equity value of consecutive UTC days."""
    if len(equity_curve) < 2:
        return []
    series = pd.Series(
        [p.equity for p in equity_curve],
        index=pd.to_datetime([p.time for p in equity_curve], utc=True),
    )
    closes = series.groupby(series.index.date).last()
    rets = closes.pct_change().dropna()
    return [float(r) for r in rets if np.isfinite(r)]


def annualized_return(initial: float, final: float, days: float) -> float:
    """Compound annual growth in percent; periods shorter than a day count as one day."""
    if initial <= 0:
        return 0.0
    if final <= 0:
        return -100.0
    years = max(days / 365.25, 1 / 365.25)
    return ((final / initial) ** (1 / years) - 1) * 100.0


def compute_metrics(
    trades: Sequence[Trade],
    equity_curve: Sequence[EquityPoint],
    initial_equity: float,
    final_equity: Optional[float] = None,
    risk_free_rate: float = 0.0,
    periods_per_year: float = 252.0,
) -> PerformanceMetrics:
    """
    Compute full metrics from closed trades and the equity curve.
    final_equity defaults to the last equity curve point (or initial_equity).
    """
    if final_equity is None:
        final_equity = equity_curve[-1].equity if equity_curve else initial_equity
    pnls = [t.pnl for t in trades]
    wins = [p for p in pnls if p > 0]
    losses = [p for p in pnls if p < 0]

    total_return_pct = (final_equity - initial_equity) / initial_equity * 100.0 if initial_equity else 0.0
    if len(equity_curve) >= 2:
        days = (equity_curve[-1].time - equity_curve[0].time).total_seconds() / 86400.0
    else:
        days = 0.0
    rets = daily_returns(equity_curve)
    return PerformanceMetrics(
        initial_equity=initial_equity,
        final_equity=final_equity,
        total_return_pct=total_return_pct,
        annualized_return_pct=annualized_return(initial_equity, final_equity, days),
        sharpe_ratio=sharpe_ratio(rets, risk_free_rate, periods_per_year),
        sortino_ratio=sortino_ratio(rets, risk_free_rate, periods_per_year),
        max_drawdown_pct=max_drawdown([initial_equity] + [p.equity for p in equity_curve]),
        win_rate=win_rate(pnls),
        profit_factor=profit_factor(pnls),
        expectancy=expectancy(pnls),
        avg_r_multiple=sum(t.r_multiple for t in trades) / len(trades) if trades else 0.0,
        total_trades=len(trades),
        winning_trades=len(wins),
        losing_trades=len(losses),
        avg_win=sum(wins) / len(wins) if wins else 0.0,
        avg_loss=sum(losses) / len(losses) if losses else 0.0,
    )
