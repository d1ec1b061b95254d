"""
Indicator columns for an OHLCV DataFrame: EMA stack, RSI and slope, MACD,
stochastic, ATR, Bollinger bands. Every column is causal (row i only reads rows
<= i) and NaN until its window has warmed up.
"""

from __future__ import annotations

import numpy as np
import pandas as pd

from confluence_bot.core.config import Config


def _ema(series: pd.Series, span: int) -> pd.Series:
    return series.ewm(span=span, adjust=False, min_periods=span).mean()


def _wilder(series: pd.Series, period: int) -> pd.Series:
    return series.ewm(alpha=1.0 / period, adjust=False, min_periods=period).mean()


def compute_indicators(df: pd.DataFrame, config: Config) -> pd.DataFrame:
    """Add indicator columns to an OHLCV DataFrame. No lookahead."""
    df = df.copy()
    close = df["close"]

    df["ema_fast"] = _ema(close, config.ema_fast)
    df["ema_slow"] = _ema(close, config.ema_slow)
    df["ema_trend"] = _ema(close, config.ema_trend)

    # RSI (Wilder smoothing); first diff is NaN so the window starts at row 1
    delta = close.diff()
    up = _wilder(delta.clip(lower=0), config.rsi_period)
    down = _wilder((-delta).clip(lower=0), config.rsi_period)
    rs = up / down.replace(0, np.nan)
    rsi = 100 - (100 / (1 + rs))
    df["rsi"] = rsi.where(down != 0, 100.0).where(up.notna())
    df["rsi_slope"] = df["rsi"] - df["rsi"].shift(config.rsi_slope_bars)

    # MACD
    macd_line = _ema(close, config.macd_fast) - _ema(close, config.macd_slow)
    df["macd_line"] = macd_line
    df["macd_signal"] = _ema(macd_line, config.macd_signal)
    df["macd_hist"] = df["macd_line"] - df["macd_signal"]

    # Stochastic %K / %D
    lowest = df["low"].rolling(config.stoch_k).min()
    highest = df["high"].rolling(config.stoch_k).max()
    span = (highest - lowest).replace(0, np.nan)
    df["stoch_k"] = ((close - lowest) / span * 100).fillna(50.0).where(lowest.notna())
    df["stoch_d"] = df["stoch_k"].rolling(config.stoch_d).mean()

    # ATR (Wilder)
    high_low = df["high"] - df["low"]
    high_close = (df["high"] - close.shift()).abs()
    low_close = (df["low"] - close.shift()).abs()
    tr = pd.concat([high_low, high_close, low_close], axis=1).max(axis=1)
    df["atr"] = _wilder(tr, config.atr_period)

    # Bollinger bands and %B (0 = lower band, 1 = upper band)
    mid = close.rolling(config.bb_period).mean()
    std = close.rolling(config.bb_period).std(ddof=0)
    df["bb_mid"] = mid
    df["bb_upper"] = mid + config.bb_std * std
    df["bb_lower"] = mid - config.bb_std * std
    width = df["bb_upper"] - df["bb_lower"]
    df["bb_pct_b"] = ((close - df["bb_lower"]) / width.replace(0, np.nan)).fillna(0.5).where(mid.notna())
    return df
