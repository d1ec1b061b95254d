"""Unit tests for strategies.confluence."""

import pytest
from confluence_bot.core.config import Config
from confluence_bot.core.types import Direction, TrendDirection
from confluence_bot.strategies.confluence import (
    REJECTED_SCORE,
    Candidate,
    ConfluenceStrategy,
    format_signal,
    pick_direction,
)

from conftest import make_bar, make_htf, make_window


def test_aligned_long_signal(long_setup):
    strat = ConfluenceStrategy(Config())
    sig = strat.evaluate(make_window(**long_setup), make_htf(trend=TrendDirection.BULLISH))
    assert sig is not None
    assert sig.direction is Direction.LONG
    assert sig.score == 4
    assert sig.required_score == 3
    assert sig.counter_trend is False
    assert sig.entry_price == 2340.0
    assert sig.stop_loss == pytest.approx(2338.2)
    assert sig.take_profit == pytest.approx(2343.6)
    assert sig.risk_reward == pytest.approx(2.0)
    assert sig.atr == 1.2
    assert len(sig.reasons) == 4
    assert "LONG" in format_signal(sig)


def test_counter_trend_without_divergence_rejected(long_setup):
    strat = ConfluenceStrategy(Config())
    bars = make_window(**long_setup)
    cand = strat.score(Direction.LONG, bars, TrendDirection.BEARISH, TrendDirection.NEUTRAL)
    assert cand.score == REJECTED_SCORE
    assert not cand.passes
    assert strat.evaluate(bars, make_htf(trend=TrendDirection.BEARISH)) is None


def _counter_trend_window():
    """First half of the divergence window closes higher with a deeper RSI dip."""
    bars = [make_bar(i) for i in range(80)]
    for i in range(80, 90):
        bars.append(make_bar(i, high=2346.0, low=2344.0, close=2345.0, rsi=30.0 if i == 84 else 50.0))
    for i in range(90, 99):
        bars.append(make_bar(i, rsi=40.0))
    bars.append(make_bar(
        99, rsi=40.0, macd_line=0.5, macd_signal=0.3, macd_hist=0.2, stoch_k=30.0, stoch_d=25.0,
        bb_lower=2339.8, last_swing_low=2339.9,
    ))
    return bars


def test_counter_trend_with_divergence_accepted():
    strat = ConfluenceStrategy(Config())
    sig = strat.evaluate(_counter_trend_window(), make_htf(trend=TrendDirection.BEARISH))
    assert sig is not None
    assert sig.direction is Direction.LONG
    assert sig.counter_trend is True
    assert sig.required_score == 4
    assert sig.score == 4
    # structural stop sits inside the noise floor, so the floor wins
    assert sig.stop_loss == pytest.approx(2339.64)
    assert sig.take_profit == pytest.approx(2340.72)


def test_counter_trend_needs_extra_point():
    cfg = Config(counter_trend_score_offset=2)
    strat = ConfluenceStrategy(cfg)
    assert strat.evaluate(_counter_trend_window(), make_htf(trend=TrendDirection.BEARISH)) is None


@pytest.mark.parametrize("atr", [0.1, 6.0])
def test_atr_outside_band(long_setup, atr):
    strat = ConfluenceStrategy(Config())
    bars = make_window(**dict(long_setup, atr=atr))
    assert strat.evaluate(bars, make_htf(trend=TrendDirection.BULLISH)) is None


def test_short_windows(long_setup):
    strat = ConfluenceStrategy(Config())
    htf = make_htf(trend=TrendDirection.BULLISH)
    assert strat.evaluate(make_window(99, **long_setup), htf) is None
    assert strat.evaluate(make_window(**long_setup), htf[:49]) is None
    assert strat.evaluate([], []) is None


def test_not_ready_bar(long_setup):
    strat = ConfluenceStrategy(Config())
    bars = make_window(**dict(long_setup, stoch_d=None))
    assert strat.evaluate(bars, make_htf(trend=TrendDirection.BULLISH)) is None


def test_min_risk_reward_gate(long_setup):
    strat = ConfluenceStrategy(Config(min_risk_reward=2.5))
    assert strat.evaluate(make_window(**long_setup), make_htf(trend=TrendDirection.BULLISH)) is None


def test_neutral_bars_score_zero():
    strat = ConfluenceStrategy(Config())
    bars = make_window()
    for d in Direction:
        cand = strat.score(d, bars, TrendDirection.NEUTRAL, TrendDirection.NEUTRAL)
        assert cand.score == 0
        assert cand.required == 3


def test_short_levels_use_swing_high():
    strat = ConfluenceStrategy(Config())
    bar = make_bar(atr=2.0, last_swing_high=2341.0)
    entry, stop, target = strat.levels(Direction.SHORT, bar)
    # atr stop 2343.0, structural 2341.4, floor 2340.6 -> tighter of the first two
    assert entry == 2340.0
    assert stop == pytest.approx(2341.4)
    assert target == pytest.approx(2337.2)


def test_pick_direction():
    long = Candidate(Direction.LONG, 3, 3, False, False)
    short = Candidate(Direction.SHORT, 3, 3, False, False)
    assert pick_direction(long, short) is None
    aligned_long = Candidate(Direction.LONG, 3, 3, False, True)
    assert pick_direction(aligned_long, short) is aligned_long
    strong_short = Candidate(Direction.SHORT, 4, 3, False, False)
    assert pick_direction(aligned_long, strong_short) is strong_short
    weak = Candidate(Direction.SHORT, 2, 3, False, False)
    assert pick_direction(long, weak) is long
    assert pick_direction(weak, Candidate(Direction.LONG, REJECTED_SCORE, 4, True, False)) is None
