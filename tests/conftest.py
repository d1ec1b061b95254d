"""Shared bar and frame factories."""

from datetime import datetime, timedelta, timezone

import pandas as pd
import pytest

from confluence_bot.core.types import Bar, TrendDirection

T0 = datetime(2024, 1, 2, 10, 0, tzinfo=timezone.utc)


def make_bar(i: int = 0, **overrides) -> Bar:
    """Fully populated, directionless bar: scores zero for both sides."""
    fields = dict(
        time=T0 + timedelta(minutes=5 * i),
        open=2340.0,
        high=2341.0,
        low=2339.0,
        close=2340.0,
        volume=500.0,
        rsi=50.0,
        rsi_slope=0.0,
        macd_line=0.0,
        macd_signal=0.0,
        macd_hist=0.0,
        stoch_k=50.0,
        stoch_d=50.0,
        atr=1.2,
        bb_upper=2345.0,
        bb_mid=2340.0,
        bb_lower=2335.0,
        bb_pct_b=0.5,
    )
    fields.update(overrides)
    return Bar(**fields)


def make_window(n: int = 100, **last_overrides):
    bars = [make_bar(i) for i in range(n - 1)]
    bars.append(make_bar(n - 1, **last_overrides))
    return bars


def make_htf(n: int = 50, trend: TrendDirection = TrendDirection.NEUTRAL):
    return [make_bar(3 * i, trend=trend) for i in range(n)]


def flat_frame(n: int = 60, price: float = 100.0, start=datetime(2024, 1, 2, tzinfo=timezone.utc)) -> pd.DataFrame:
    """5-minute bars with a constant 1.0 range around `price`."""
    return pd.DataFrame({
        "time": pd.date_range(start, periods=n, freq="5min"),
        "open": price,
        "high": price + 0.5,
        "low": price - 0.5,
        "close": price,
        "volume": 100.0,
    })


@pytest.fixture
def long_setup():
    """Last-bar overrides giving a bullish RSI pullback, MACD cross and stochastic cross."""
    return dict(
        rsi=45.0,
        rsi_slope=2.0,
        macd_line=0.5,
        macd_signal=0.3,
        macd_hist=0.2,
        stoch_k=30.0,
        stoch_d=25.0,
    )
