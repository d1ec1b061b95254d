"""
Multi-confluence strategy. Five independent checks, one point each:
  [1] higher-timeframe trend alignment (or divergence confirming a counter-trend entry)
  [2] RSI zone / pullback / divergence
  [3] MACD crossover with histogram confirmation
  [4] stochastic crossover outside the extreme zone
  [5] outer Bollinger band touch at a confirmed swing level

A direction opposing the higher-timeframe trend is only considered when RSI
divergence confirms it, and then needs one extra point to pass.
Entry is the signal bar's close; the stop is the tighter of an ATR stop and a
stop just beyond the last swing, but never inside the ATR noise floor.
"""

from __future__ import annotations
import logging
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from confluence_bot.core.config import Config
from confluence_bot.core.types import Bar, Direction, Signal, TrendDirection
from confluence_bot.features.structure import detect_divergence
from confluence_bot.strategies.base import BaseStrategy
from confluence_bot.utils.precision import round_price

logger = logging.getLogger("confluence_bot.strategy")

# Score assigned to a counter-trend candidate without divergence; can never pass
REJECTED_SCORE = -1


@dataclass
class Candidate:
    """Scoring outcome for one direction."""
    direction: Direction
    score: int
    required: int
    counter_trend: bool
    aligned: bool
    reasons: List[str] = field(default_factory=list)

    @property
    def passes(self) -> bool:
        return self.score >= self.required


def pick_direction(long: Candidate, short: Candidate) -> Optional[Candidate]:
    """
    Passing candidate with the higher score. Equal scores go to the
    trend-aligned side; with no aligned side (neutral trend) there is no pick.
    """
    passing = [c for c in (long, short) if c.passes]
    if not passing:
        return None
    if len(passing) == 1:
        return passing[0]
    if long.score != short.score:
        return long if long.score > short.score else short
    aligned = [c for c in passing if c.aligned]
    return aligned[0] if aligned else None


class ConfluenceStrategy(BaseStrategy):
    """Scores both directions on the latest bar and proposes at most one trade."""

    def __init__(self, config: Config):
        self.config = config

    def evaluate(self, bars: Sequence[Bar], htf_bars: Sequence[Bar]) -> Optional[Signal]:
        cfg = self.config
        if len(bars) < cfg.min_bars or len(htf_bars) < cfg.min_htf_bars:
            return None
        bar = bars[-1]
        atr = bar.atr
        if atr is None:
            return None
        if atr < cfg.min_atr or atr > cfg.max_atr:
            logger.debug("%s ATR %.3f outside [%.2f, %.2f]", bar.time, atr, cfg.min_atr, cfg.max_atr)
            return None
        if not bar.is_ready():
            return None

        htf_trend = htf_bars[-1].trend
        divergence = detect_divergence(bars, cfg.divergence_lookback)
        long = self.score(Direction.LONG, bars, htf_trend, divergence)
        short = self.score(Direction.SHORT, bars, htf_trend, divergence)
        chosen = pick_direction(long, short)
        if chosen is None:
            logger.debug("%s no pick: long %d/%d short %d/%d", bar.time,
                         long.score, long.required, short.score, short.required)
            return None
        return self._build_signal(chosen, bar)

    def score(
        self,
        direction: Direction,
        bars: Sequence[Bar],
        htf_trend: TrendDirection,
        divergence: TrendDirection,
    ) -> Candidate:
        """Run the five confirmation checks for one direction."""
        cfg = self.config
        bar, prev = bars[-1], bars[-2]
        is_long = direction is Direction.LONG
        label = "bullish" if is_long else "bearish"
        aligned = htf_trend.favours(direction)
        counter = htf_trend.opposes(direction)
        div_confirms = divergence.favours(direction)
        required = cfg.min_confluence_score + (cfg.counter_trend_score_offset if counter else 0)

        if counter and not div_confirms:
            return Candidate(direction, REJECTED_SCORE, required, True, False)

        score = 0
        reasons: List[str] = []

        # [1] Trend alignment, or divergence standing in for it
        if aligned:
            score += 1
            reasons.append(f"HTF trend {htf_trend.value}")
        elif div_confirms:
            score += 1
            reasons.append(f"RSI {label} divergence vs HTF {htf_trend.value}")

        # [2] RSI zone / pullback / divergence
        rsi, slope = bar.rsi, bar.rsi_slope
        if is_long and rsi < cfg.rsi_oversold:
            score += 1
            reasons.append(f"RSI oversold ({rsi:.1f})")
        elif not is_long and rsi > cfg.rsi_overbought:
            score += 1
            reasons.append(f"RSI overbought ({rsi:.1f})")
        elif aligned and slope is not None and (
            (is_long and rsi < 50 and slope > 0) or (not is_long and rsi > 50 and slope < 0)
        ):
            score += 1
            reasons.append(f"RSI pullback turning {'up' if is_long else 'down'} ({rsi:.1f})")
        elif aligned and div_confirms:
            score += 1
            reasons.append(f"RSI {label} divergence")

        # [3] MACD crossover on this bar
        if prev.macd_line is not None and prev.macd_signal is not None:
            if is_long:
                crossed = prev.macd_line <= prev.macd_signal and bar.macd_line > bar.macd_signal and bar.macd_hist > 0
            else:
                crossed = prev.macd_line >= prev.macd_signal and bar.macd_line < bar.macd_signal and bar.macd_hist < 0
            if crossed:
                score += 1
                reasons.append(f"MACD {label} crossover")

        # [4] Stochastic crossover, excluding crosses already in the extreme zone
        if prev.stoch_k is not None and prev.stoch_d is not None:
            k, d = bar.stoch_k, bar.stoch_d
            if is_long:
                crossed = prev.stoch_k <= prev.stoch_d and k > d and k < cfg.stoch_overbought
            else:
                crossed = prev.stoch_k >= prev.stoch_d and k < d and k > cfg.stoch_oversold
            if crossed:
                score += 1
                reasons.append(f"Stoch cross {'up' if is_long else 'down'} ({k:.1f})")

        # [5] Outer band touch at a confirmed swing level
        band_gap = cfg.band_proximity_atr * bar.atr
        swing_gap = cfg.swing_proximity_atr * bar.atr
        if is_long:
            level = bar.last_swing_low
            at_band = bar.close <= bar.bb_lower + band_gap
        else:
            level = bar.last_swing_high
            at_band = bar.close >= bar.bb_upper - band_gap
        if at_band and level is not None and abs(bar.close - level) < swing_gap:
            score += 1
            reasons.append(
                f"Price at BB {'lower' if is_long else 'upper'} band + "
                f"{'support' if is_long else 'resistance'} {level:.2f}"
            )

        return Candidate(direction, score, required, counter, aligned, reasons)

    def levels(self, direction: Direction, bar: Bar) -> Optional[tuple]:
        """(entry, stop, target) rounded to price precision, or None if degenerate."""
        cfg = self.config
        sign = direction.sign
        entry, atr = bar.close, bar.atr
        atr_stop = entry - sign * atr * cfg.sl_atr_multiple
        swing = bar.last_swing_low if direction is Direction.LONG else bar.last_swing_high
        struct_stop = swing - sign * atr * cfg.structural_stop_buffer_atr if swing is not None else atr_stop
        floor = entry - sign * atr * cfg.min_stop_atr_multiple
        if direction is Direction.LONG:
            stop = min(max(atr_stop, struct_stop), floor)
        else:
            stop = max(min(atr_stop, struct_stop), floor)
        target = entry + sign * abs(entry - stop) * cfg.tp_reward_multiple

        entry = round_price(entry, cfg.price_precision)
        stop = round_price(stop, cfg.price_precision)
        target = round_price(target, cfg.price_precision)
        if (entry - stop) * sign <= 0 or (target - entry) * sign <= 0:
            return None
        return entry, stop, target

    def _build_signal(self, chosen: Candidate, bar: Bar) -> Optional[Signal]:
        levels = self.levels(chosen.direction, bar)
        if levels is None:
            return None
        entry, stop, target = levels
        rr = abs(target - entry) / abs(entry - stop)
        if rr < self.config.min_risk_reward:
            logger.debug("%s %s rejected: R:R %.2f < %.2f", bar.time, chosen.direction.value,
                         rr, self.config.min_risk_reward)
            return None
        signal = Signal(
            direction=chosen.direction,
            entry_price=entry,
            stop_loss=stop,
            take_profit=target,
            risk_reward=rr,
            score=chosen.score,
            required_score=chosen.required,
            counter_trend=chosen.counter_trend,
            timestamp=bar.time,
            reasons=list(chosen.reasons),
            atr=bar.atr,
        )
        logger.info("Signal %s", format_signal(signal))
        return signal


def format_signal(signal: Signal) -> str:
    """One-line summary for logs."""
    counter = " | counter-trend" if signal.counter_trend else ""
    return (
        f"[{signal.direction.value.upper()}] @ {signal.entry_price:.2f} | "
        f"SL {signal.stop_loss:.2f} | TP {signal.take_profit:.2f} | "
        f"R:R {signal.risk_reward:.2f} | score {signal.score}/{signal.required_score}{counter} | "
        f"{', '.join(signal.reasons)}"
    )
