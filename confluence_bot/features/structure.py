"""
Structural features derived from a bar arena: swing pivots, trend
classification from the moving-average stack, and RSI/price divergence.

All scans are explicit bounded windows over a list indexed by position, and
every value written to bar i is computed from bars <= i.
"""

from __future__ import annotations
import math
from typing import List, Optional, Sequence

import pandas as pd

from confluence_bot.core.config import Config
from confluence_bot.core.types import Bar, TrendDirection
from confluence_bot.features.indicators import compute_indicators

_DERIVED_COLUMNS = (
    "ema_fast", "ema_slow", "ema_trend", "rsi", "rsi_slope", "macd_line", "macd_signal",
    "macd_hist", "stoch_k", "stoch_d", "atr", "bb_upper", "bb_mid", "bb_lower", "bb_pct_b",
)


def mark_swings(bars: List[Bar], window: int) -> List[Bar]:
    """
    Mark confirmed swing highs/lows in place.

    The pivot at index p needs `window` bars on each side, so it is only known
    at index p + window. The pivot level is written to that confirming bar and
    forward-filled into last_swing_high / last_swing_low from there on.
    """
    last_high: Optional[float] = None
    last_low: Optional[float] = None
    for j, bar in enumerate(bars):
        bar.swing_high = None
        bar.swing_low = None
        p = j - window
        if p - window >= 0:
            pivot = bars[p]
            span = bars[p - window: j + 1]
            if pivot.high >= max(b.high for b in span):
                bar.swing_high = pivot.high
                last_high = pivot.high
            if pivot.low <= min(b.low for b in span):
                bar.swing_low = pivot.low
                last_low = pivot.low
        bar.last_swing_high = last_high
        bar.last_swing_low = last_low
    return bars


def classify_trend(bar: Bar) -> TrendDirection:
    """Bullish: fast > slow > trend MA and close above trend MA. Bearish mirrors it."""
    fast, slow, trend = bar.ema_fast, bar.ema_slow, bar.ema_trend
    if fast is None or slow is None or trend is None:
        return TrendDirection.NEUTRAL
    if fast > slow > trend and bar.close > trend:
        return TrendDirection.BULLISH
    if fast < slow < trend and bar.close < trend:
        return TrendDirection.BEARISH
    return TrendDirection.NEUTRAL


def detect_divergence(bars: Sequence[Bar], lookback: int) -> TrendDirection:
    """
    Compare price and RSI extremes between the two halves of the last `lookback` bars.
    Lower close low with a higher RSI low is bullish; higher close high with a
    lower RSI high is bearish. NEUTRAL when neither holds or data is short.
    """
    if len(bars) < lookback:
        return TrendDirection.NEUTRAL
    window = bars[len(bars) - lookback:]
    half = lookback // 2
    first, second = window[:half], window[half:]
    rsi_first = [b.rsi for b in first if b.rsi is not None]
    rsi_second = [b.rsi for b in second if b.rsi is not None]
    if not rsi_first or not rsi_second:
        return TrendDirection.NEUTRAL

    close_low_1 = min(b.close for b in first)
    close_low_2 = min(b.close for b in second)
    if close_low_2 < close_low_1 and min(rsi_second) > min(rsi_first):
        return TrendDirection.BULLISH

    close_high_1 = max(b.close for b in first)
    close_high_2 = max(b.close for b in second)
    if close_high_2 > close_high_1 and max(rsi_second) < max(rsi_first):
        return TrendDirection.BEARISH
    return TrendDirection.NEUTRAL


def _value(v) -> Optional[float]:
    if v is None:
        return None
    v = float(v)
    return None if math.isnan(v) else v


def frame_to_bars(df: pd.DataFrame) -> List[Bar]:
    """Convert an (optionally enriched) OHLCV frame to Bar records; NaN becomes None."""
    derived = [c for c in _DERIVED_COLUMNS if c in df.columns]
    bars: List[Bar] = []
    for row in df.itertuples(index=False):
        ts = pd.Timestamp(row.time)
        bar = Bar(
            time=ts.to_pydatetime(),
            open=float(row.open),
            high=float(row.high),
            low=float(row.low),
            close=float(row.close),
            volume=float(row.volume),
        )
        for name in derived:
            setattr(bar, name, _value(getattr(row, name)))
        bars.append(bar)
    return bars


def enrich_bars(df: pd.DataFrame, config: Config) -> List[Bar]:
    """Indicators, swing structure and trend classification for every bar."""
    bars = frame_to_bars(compute_indicators(df, config))
    mark_swings(bars, config.swing_window)
    for bar in bars:
        bar.trend = classify_trend(bar)
    return bars
