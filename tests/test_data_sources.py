"""Unit tests for data sources: normalisation, CSV, synthetic generator."""

import pandas as pd
import pytest
from confluence_bot.data import CsvBarSource, MockBarSource, generate_bars, load_csv, normalize_ohlcv

from conftest import flat_frame


def test_generate_bars_deterministic():
    a = generate_bars(500, seed=11)
    b = generate_bars(500, seed=11)
    c = generate_bars(500, seed=12)
    pd.testing.assert_frame_equal(a, b)
    assert not a["close"].equals(c["close"])


def test_generate_bars_valid_ohlc():
    df = normalize_ohlcv(generate_bars(1000, seed=4))
    assert (df["high"] >= df[["open", "close"]].max(axis=1)).all()
    assert (df["low"] <= df[["open", "close"]].min(axis=1)).all()
    assert str(df["time"].dt.tz) == "UTC"


def test_normalize_rejects_missing_column():
    with pytest.raises(ValueError):
        normalize_ohlcv(flat_frame(5).drop(columns=["close"]))


def test_normalize_rejects_unordered_time():
    df = flat_frame(5)
    df.loc[2, "time"] = df["time"].iloc[1]
    with pytest.raises(ValueError):
        normalize_ohlcv(df)


def test_normalize_rejects_bad_prices():
    df = flat_frame(5)
    df.loc[1, "low"] = 0.0
    with pytest.raises(ValueError):
        normalize_ohlcv(df)
    df = flat_frame(5)
    df.loc[1, "close"] = float("nan")
    with pytest.raises(ValueError):
        normalize_ohlcv(df)


def test_mock_source_higher_timeframe():
    src = MockBarSource(seed=3)
    bars = src.get_bars("15m", 10)
    assert len(bars) == 10
    assert (bars["time"].diff().dropna() == pd.Timedelta(minutes=15)).all()
    with pytest.raises(ValueError):
        src.get_bars("7m", 10)
    assert src.get_account_summary().equity == 10_000.0
    assert src.get_open_positions() == []


def test_csv_source(tmp_path):
    path = tmp_path / "bars.csv"
    df = generate_bars(60, seed=2)
    # shuffled rows are sorted back on load
    df.sample(frac=1.0, random_state=0).to_csv(path, index=False)
    loaded = load_csv(path)
    assert len(loaded) == 60
    assert loaded["time"].is_monotonic_increasing
    assert loaded["close"].iloc[-1] == pytest.approx(df["close"].iloc[-1])

    src = CsvBarSource(path, base_timeframe="5m", initial_equity=5_000.0)
    assert len(src.get_bars("5m")) == 60
    assert len(src.get_bars("15m")) == 20
    assert len(src.get_bars("5m", 12)) == 12
    assert src.get_account_summary().balance == 5_000.0


def test_csv_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_csv(tmp_path / "missing.csv")
