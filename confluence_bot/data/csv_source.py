"""
CSV bar source: time,open,high,low,close,volume at the base timeframe.
Coarser timeframes are produced by bucketing the base series.
"""

from __future__ import annotations
import logging
from pathlib import Path
from typing import Optional

import pandas as pd

from confluence_bot.data.base import AccountSummary, BarSource, normalize_ohlcv
from confluence_bot.utils.timeframes import resample_ohlcv, timeframe_minutes

logger = logging.getLogger("confluence_bot.data.csv")


def load_csv(path: Path) -> pd.DataFrame:
    """Read and validate an OHLCV CSV. Rows are sorted by time before validation."""
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"CSV file not found: {path}")
    df = pd.read_csv(path)
    if "volume" not in df.columns:
        df["volume"] = 0
    df["time"] = pd.to_datetime(df["time"], utc=True)
    df = df.sort_values("time", kind="stable")
    df = normalize_ohlcv(df)
    logger.info("Loaded %d bars from %s (%s -> %s)", len(df), path, df["time"].iloc[0], df["time"].iloc[-1])
    return df


class CsvBarSource(BarSource):
    """Bars from a local CSV file; account state is a fixed starting balance."""

    def __init__(self, path: Path, base_timeframe: str = "5m", initial_equity: float = 10_000.0):
        self.path = Path(path)
        self.base_timeframe = base_timeframe
        self.initial_equity = initial_equity
        self._df: Optional[pd.DataFrame] = None

    def _frame(self) -> pd.DataFrame:
        if self._df is None:
            self._df = load_csv(self.path)
        return self._df

    def get_bars(self, timeframe: str, count: Optional[int] = None) -> pd.DataFrame:
        df = self._frame()
        base = timeframe_minutes(self.base_timeframe)
        target = timeframe_minutes(timeframe)
        if target < base or target % base:
            raise ValueError(f"cannot build {timeframe} bars from {self.base_timeframe} data")
        if target != base:
            df = resample_ohlcv(df, target)
        if count is not None:
            df = df.tail(count)
        return df.reset_index(drop=True)

    def get_account_summary(self) -> AccountSummary:
        return AccountSummary(balance=self.initial_equity, equity=self.initial_equity)
