"""
Synthetic bar source for offline runs and tests. No files or network.
Trending random walk: alternating legs of 120-300 bars with a small drift and
uniform noise, which gives an ATR of roughly 2 price units at the default scale.
"""

from __future__ import annotations
from datetime import datetime, timedelta, timezone
from typing import Optional

import numpy as np
import pandas as pd

from confluence_bot.data.base import AccountSummary, BarSource
from confluence_bot.utils.timeframes import resample_ohlcv, timeframe_minutes

DEFAULT_START = datetime(2024, 1, 1, tzinfo=timezone.utc)


def generate_bars(
    count: int,
    seed: int = 7,
    start: datetime = DEFAULT_START,
    minutes: int = 5,
    start_price: float = 2350.0,
    drift: float = 0.25,
    noise: float = 3.0,
) -> pd.DataFrame:
    """Deterministic for a given seed and arguments."""
    rng = np.random.default_rng(seed)
    rows = []
    price = start_price
    trend = 1
    bars_in_leg = 0
    leg_length = int(rng.integers(120, 300))
    step = timedelta(minutes=minutes)
    for i in range(count):
        bars_in_leg += 1
        if bars_in_leg >= leg_length:
            trend = -trend
            bars_in_leg = 0
            leg_length = int(rng.integers(120, 300))
        change = trend * drift + (rng.random() - 0.5) * noise
        o = price
        c = max(price + change, 0.01)
        wick_up = rng.random() * (1.0 if trend == -1 else 0.5)
        wick_down = rng.random() * (1.0 if trend == 1 else 0.5)
        h = max(o, c) + wick_up
        low = max(min(o, c) - wick_down, 0.005)
        rows.append({
            "time": start + i * step,
            "open": round(o, 2),
            "high": round(h, 2),
            "low": round(low, 2),
            "close": round(c, 2),
            "volume": float(rng.integers(200, 1200)),
        })
        price = c
    df = pd.DataFrame(rows, columns=["time", "open", "high", "low", "close", "volume"])
    df["time"] = pd.to_datetime(df["time"], utc=True)
    # Rounding can push open/close a cent outside the wicks
    df["high"] = df[["open", "high", "close"]].max(axis=1)
    df["low"] = df[["open", "low", "close"]].min(axis=1)
    return df


class MockBarSource(BarSource):
    """Seeded synthetic bars at a base timeframe."""

    def __init__(
        self,
        seed: int = 7,
        base_timeframe: str = "5m",
        initial_equity: float = 10_000.0,
        default_count: int = 5000,
    ):
        self.seed = seed
        self.base_timeframe = base_timeframe
        self.initial_equity = initial_equity
        self.default_count = default_count

    def get_bars(self, timeframe: str, count: Optional[int] = None) -> pd.DataFrame:
        count = count or self.default_count
        base = timeframe_minutes(self.base_timeframe)
        target = timeframe_minutes(timeframe)
        if target < base or target % base:
            raise ValueError(f"cannot build {timeframe} bars from {self.base_timeframe} data")
        ratio = target // base
        df = generate_bars(count * ratio, seed=self.seed, minutes=base)
        if ratio > 1:
            df = resample_ohlcv(df, target)
        return df.tail(count).reset_index(drop=True)

    def get_account_summary(self) -> AccountSummary:
        return AccountSummary(balance=self.initial_equity, equity=self.initial_equity)
