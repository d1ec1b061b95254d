"""Unit tests for features.indicators."""

import numpy as np

from confluence_bot.core.config import Config
from confluence_bot.data.mock_source import generate_bars
from confluence_bot.features.indicators import compute_indicators

COLUMNS = [
    "ema_fast", "ema_slow", "ema_trend", "rsi", "rsi_slope", "macd_line", "macd_signal",
    "macd_hist", "stoch_k", "stoch_d", "atr", "bb_upper", "bb_mid", "bb_lower", "bb_pct_b",
]


def test_indicator_columns_and_warmup():
    cfg = Config()
    out = compute_indicators(generate_bars(300, seed=1), cfg)
    for col in COLUMNS:
        assert col in out.columns
    assert out["ema_trend"].iloc[: cfg.ema_trend - 1].isna().all()
    assert not np.isnan(out["ema_trend"].iloc[cfg.ema_trend - 1])
    assert out["bb_mid"].iloc[: cfg.bb_period - 1].isna().all()
    assert out["bb_mid"].iloc[cfg.bb_period - 1:].notna().all()


def test_indicator_ranges():
    out = compute_indicators(generate_bars(300, seed=2), Config()).dropna()
    assert ((out["rsi"] >= 0) & (out["rsi"] <= 100)).all()
    assert ((out["stoch_k"] >= 0) & (out["stoch_k"] <= 100)).all()
    assert (out["bb_upper"] >= out["bb_lower"]).all()
    assert (out["atr"] > 0).all()


def test_indicators_are_causal():
    cfg = Config()
    df = generate_bars(400, seed=5)
    full = compute_indicators(df, cfg)
    part = compute_indicators(df.iloc[:250], cfg)
    for col in COLUMNS:
        np.testing.assert_allclose(
            part[col].to_numpy(), full[col].iloc[:250].to_numpy(), rtol=1e-9, equal_nan=True
        )


def test_input_frame_untouched():
    df = generate_bars(50, seed=5)
    compute_indicators(df, Config())
    assert list(df.columns) == ["time", "open", "high", "low", "close", "volume"]
