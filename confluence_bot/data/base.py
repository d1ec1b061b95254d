"""Abstract bar-source interface: market data, account summary, open positions."""

from __future__ import annotations
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import List, Optional

import pandas as pd

from confluence_bot.core.types import Position

OHLCV_COLUMNS = ["time", "open", "high", "low", "close", "volume"]


@dataclass
class AccountSummary:
    """Balance/equity snapshot used to (re)seed the risk session."""
    balance: float
    equity: float
    currency: str = "USD"


def normalize_ohlcv(df: pd.DataFrame) -> pd.DataFrame:
    """
    Validate and normalise an OHLCV frame: required columns, UTC timestamps,
    float prices, strictly increasing time, positive prices.
    Raises ValueError on malformed input.
    """
    missing = [c for c in OHLCV_COLUMNS if c not in df.columns]
    if missing:
        raise ValueError(f"OHLCV data missing columns: {missing}")
    out = df[OHLCV_COLUMNS].copy()
    out["time"] = pd.to_datetime(out["time"], utc=True)
    out[["open", "high", "low", "close", "volume"]] = out[["open", "high", "low", "close", "volume"]].astype(float)
    if out[["open", "high", "low", "close"]].isna().any().any():
        raise ValueError("OHLCV data contains missing prices")
    if (out[["open", "high", "low", "close"]] <= 0).any().any():
        raise ValueError("OHLCV prices must be positive")
    if (out["volume"] < 0).any():
        raise ValueError("OHLCV volume must be non-negative")
    if not out["time"].is_monotonic_increasing or out["time"].duplicated().any():
        raise ValueError("bar timestamps must be strictly increasing")
    return out.reset_index(drop=True)


class BarSource(ABC):
    """Provider of completed bars for a named timeframe, plus account state."""

    @abstractmethod
    def get_bars(self, timeframe: str, count: Optional[int] = None) -> pd.DataFrame:
        """Return the most recent `count` completed bars (all if None), oldest first."""
        pass

    @abstractmethod
    def get_account_summary(self) -> AccountSummary:
        """Current balance and equity."""
        pass

    def get_open_positions(self) -> List[Position]:
        """Open positions translated into the internal Position shape. Default none."""
        return []
