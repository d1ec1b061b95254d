"""Analytics: performance metrics (Sharpe, Sortino, MDD, win rate, etc.)."""

from confluence_bot.analytics.metrics import (
    PerformanceMetrics,
    compute_metrics,
    daily_returns,
    sharpe_ratio,
    sortino_ratio,
    max_drawdown,
    win_rate,
    profit_factor,
    expectancy,
)

__all__ = [
    "PerformanceMetrics",
    "compute_metrics",
    "daily_returns",
    "sharpe_ratio",
    "sortino_ratio",
    "max_drawdown",
    "win_rate",
    "profit_factor",
    "expectancy",
]
