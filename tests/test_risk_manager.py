"""Unit tests for risk.manager."""

from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

import pytest
from confluence_bot.core.config import Config
from confluence_bot.core.types import Direction, Signal
from confluence_bot.risk.manager import RiskManager, RiskResult

AT = datetime(2024, 1, 2, 10, 0, tzinfo=timezone.utc)


def _signal(entry=2340.0, stop=2338.5):
    return Signal(
        direction=Direction.LONG,
        entry_price=entry,
        stop_loss=stop,
        take_profit=entry + 2 * (entry - stop),
        risk_reward=2.0,
        score=3,
        required_score=3,
        counter_trend=False,
        timestamp=AT,
    )


def test_size_position_percent_risk():
    rm = RiskManager(Config(), 10_000.0)
    # 1% of 10000 = 100; 100 / 1.5 = 66.7 -> 66
    assert rm.size_position(_signal()) == 66


def test_size_position_usd_cap():
    rm = RiskManager(Config(), 100_000.0)
    # 1% = 1000, capped at 200; 200 / 1.5 = 133.3 -> 133
    assert rm.size_position(_signal()) == 133


def test_size_position_minimum_units():
    rm = RiskManager(Config(), 10_000.0)
    assert rm.size_position(_signal(stop=2000.0)) == 1


def test_size_position_zero_distance():
    rm = RiskManager(Config(), 10_000.0)
    assert rm.size_position(SimpleNamespace(entry_price=2340.0, stop_loss=2340.0)) == 0


def test_allowed_when_clean():
    rm = RiskManager(Config(), 10_000.0)
    assert rm.can_open_trade(0, AT) == RiskResult(True)


def test_max_open_positions():
    rm = RiskManager(Config(), 10_000.0)
    r = rm.can_open_trade(2, AT)
    assert r.allowed is False
    assert "max open positions" in r.reason


def test_daily_drawdown_limit():
    rm = RiskManager(Config(), 10_000.0)
    rm.can_open_trade(0, AT)
    rm.record_trade_closed(-310.0, AT)
    r = rm.can_open_trade(0, AT + timedelta(hours=1))
    assert r.allowed is False
    assert "daily drawdown" in r.reason


def test_daily_usd_loss_limit():
    rm = RiskManager(Config(max_daily_drawdown_pct=50.0), 10_000.0)
    rm.record_trade_closed(-500.0, AT)
    r = rm.can_open_trade(0, AT + timedelta(hours=1))
    assert r.allowed is False
    assert "USD loss" in r.reason


def test_check_order_positions_first():
    rm = RiskManager(Config(), 10_000.0)
    rm.record_trade_closed(-600.0, AT)
    assert "max open positions" in rm.can_open_trade(5, AT).reason


def test_max_trades_per_day():
    rm = RiskManager(Config(), 10_000.0)
    t = AT
    for _ in range(5):
        assert rm.can_open_trade(0, t).allowed
        rm.record_trade_opened(t)
        t += timedelta(minutes=20)
    r = rm.can_open_trade(0, t)
    assert r.allowed is False
    assert "max trades/day" in r.reason


def test_cooldown():
    rm = RiskManager(Config(), 10_000.0)
    rm.record_trade_opened(AT)
    r = rm.can_open_trade(0, AT + timedelta(minutes=10))
    assert r.allowed is False
    assert r.reason == "cooling period: 300s remaining"
    assert rm.can_open_trade(0, AT + timedelta(minutes=15)).allowed


def test_daily_reset_on_new_utc_date():
    rm = RiskManager(Config(), 10_000.0)
    rm.record_trade_opened(AT)
    rm.record_trade_closed(-600.0, AT + timedelta(minutes=30))
    rm.record_equity(9_400.0)
    assert rm.can_open_trade(0, AT + timedelta(hours=2)).allowed is False
    next_day = datetime(2024, 1, 3, 0, 5, tzinfo=timezone.utc)
    assert rm.can_open_trade(0, next_day).allowed
    assert rm.state.trade_count == 0
    assert rm.state.daily_pnl == 0.0
    assert rm.state.day_start_equity == 9_400.0


def test_naive_datetime_treated_as_utc():
    rm = RiskManager(Config(), 10_000.0)
    rm.record_trade_opened(datetime(2024, 1, 2, 10, 0))
    assert rm.can_open_trade(0, AT + timedelta(minutes=5)).allowed is False
    assert rm.can_open_trade(0, datetime(2024, 1, 2, 10, 20)).allowed


def test_record_equity_tracks_peak():
    rm = RiskManager(Config(), 10_000.0)
    rm.record_equity(10_500.0)
    rm.record_equity(10_200.0)
    assert rm.state.peak_equity == 10_500.0
    assert rm.summary()["drawdown_pct"] == pytest.approx(-2.86, abs=0.01)


def test_record_equity_invalid():
    rm = RiskManager(Config(), 10_000.0)
    with pytest.raises(ValueError):
        rm.record_equity(-1.0)
    with pytest.raises(ValueError):
        rm.record_equity(float("nan"))
    with pytest.raises(ValueError):
        RiskManager(Config(), float("inf"))


def test_trail_stop_long():
    rm = RiskManager(Config(), 10_000.0)
    # below activation: unchanged
    assert rm.trail_stop(Direction.LONG, 100.0, 100.5, 1.0, 98.5) == 98.5
    # profit 1.5 ATR: max(breakeven 100.05, 101.5 - 0.8) = 100.7
    assert rm.trail_stop(Direction.LONG, 100.0, 101.5, 1.0, 98.5) == pytest.approx(100.7)
    # never loosens
    assert rm.trail_stop(Direction.LONG, 100.0, 101.5, 1.0, 101.0) == 101.0


def test_trail_stop_short():
    rm = RiskManager(Config(), 10_000.0)
    assert rm.trail_stop(Direction.SHORT, 100.0, 98.5, 1.0, 101.5) == pytest.approx(99.3)
    assert rm.trail_stop(Direction.SHORT, 100.0, 99.5, 1.0, 101.5) == 101.5
