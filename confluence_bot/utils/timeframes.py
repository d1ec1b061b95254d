"""Timeframe string to minutes conversion and fixed-width OHLCV bucketing."""

from __future__ import annotations

import pandas as pd


def timeframe_minutes(tf: str) -> int:
    """Convert timeframe string (e.g. '5m', '1h', '1d') to minutes."""
    tf = tf.strip().lower()
    if tf.endswith("m") and tf[:-1].isdigit():
        return int(tf[:-1])
    if tf.endswith("h") and tf[:-1].isdigit():
        return int(tf[:-1]) * 60
    if tf.endswith("d") and tf[:-1].isdigit():
        return int(tf[:-1]) * 60 * 24
    raise ValueError(f"Unsupported timeframe: {tf}")


def resample_ohlcv(df: pd.DataFrame, minutes: int) -> pd.DataFrame:
    """
    Group bars into fixed-width UTC buckets of `minutes`.
    open = first open, high/low = extrema, close = last close, volume = sum.
    Each output row is labelled with its bucket start; empty buckets are dropped.
    """
    if minutes <= 0:
        raise ValueError(f"bucket width must be positive, got {minutes}")
    if df.empty:
        return df.copy()
    out = (
        df.set_index("time")
        .resample(f"{minutes}min", label="left", closed="left")
        .agg({"open": "first", "high": "max", "low": "min", "close": "last", "volume": "sum"})
        .dropna(subset=["open"])
        .reset_index()
    )
    return out[["time", "open", "high", "low", "close", "volume"]]
