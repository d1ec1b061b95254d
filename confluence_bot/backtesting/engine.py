"""
Backtest engine: walk-forward bar replay with next-bar fills and exits.

  - Signal on bar i reads bars <= i and higher-timeframe buckets completed by the end of bar i
  - Entry on bar i+1 open, half the spread against the trader; commission at entry
  - Exit tested on bar i+1 high/low; stop wins when both levels trade in the same bar
  - Position still open after the last bar is closed at the final close
"""

from __future__ import annotations
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import List, Optional, Tuple

import numpy as np
import pandas as pd

from confluence_bot.analytics.metrics import PerformanceMetrics, compute_metrics
from confluence_bot.core.config import Config
from confluence_bot.core.types import (
    Bar,
    Direction,
    EquityPoint,
    ExitReason,
    Position,
    Signal,
    Trade,
)
from confluence_bot.data.base import normalize_ohlcv
from confluence_bot.features.structure import enrich_bars
from confluence_bot.risk.manager import RiskManager
from confluence_bot.strategies.base import BaseStrategy
from confluence_bot.strategies.confluence import ConfluenceStrategy
from confluence_bot.utils.timeframes import resample_ohlcv, timeframe_minutes

logger = logging.getLogger("confluence_bot.backtest")

# Bars required beyond the warm-up prefix
MIN_BUFFER_BARS = 10


class InsufficientDataError(ValueError):
    """Historical series too short for warm-up plus a minimal replay."""


@dataclass
class ReplayData:
    """Enriched arenas for one run."""
    bars: List[Bar]
    htf_bars: List[Bar]
    # htf_visible[i] = number of higher-timeframe bars complete at the close of bars[i]
    htf_visible: List[int]


@dataclass
class BacktestResult:
    """Backtest output: trades, equity curve, metrics."""
    trades: List[Trade] = field(default_factory=list)
    equity_curve: List[EquityPoint] = field(default_factory=list)
    metrics: Optional[PerformanceMetrics] = None

    def to_dict(self) -> dict:
        return {
            "metrics": self.metrics.to_dict() if self.metrics else None,
            "trades": [_trade_to_dict(t) for t in self.trades],
            "equity_curve": [{"time": p.time.isoformat(), "equity": p.equity} for p in self.equity_curve],
        }

    @classmethod
    def from_dict(cls, data: dict) -> "BacktestResult":
        metrics = data.get("metrics")
        return cls(
            trades=[_trade_from_dict(t) for t in data.get("trades", [])],
            equity_curve=[
                EquityPoint(datetime.fromisoformat(p["time"]), float(p["equity"]))
                for p in data.get("equity_curve", [])
            ],
            metrics=PerformanceMetrics(**metrics) if metrics else None,
        )


def _trade_to_dict(t: Trade) -> dict:
    return {
        "direction": t.direction.value,
        "entry_time": t.entry_time.isoformat(),
        "exit_time": t.exit_time.isoformat(),
        "entry_price": t.entry_price,
        "exit_price": t.exit_price,
        "stop_loss": t.stop_loss,
        "take_profit": t.take_profit,
        "units": t.units,
        "pnl": t.pnl,
        "exit_reason": t.exit_reason.value,
        "r_multiple": t.r_multiple,
        "commission": t.commission,
        "score": t.score,
        "reasons": list(t.reasons),
    }


def _trade_from_dict(d: dict) -> Trade:
    return Trade(
        direction=Direction(d["direction"]),
        entry_time=datetime.fromisoformat(d["entry_time"]),
        exit_time=datetime.fromisoformat(d["exit_time"]),
        entry_price=float(d["entry_price"]),
        exit_price=float(d["exit_price"]),
        stop_loss=float(d["stop_loss"]),
        take_profit=None if d.get("take_profit") is None else float(d["take_profit"]),
        units=d["units"],
        pnl=float(d["pnl"]),
        exit_reason=ExitReason(d["exit_reason"]),
        r_multiple=float(d["r_multiple"]),
        commission=float(d.get("commission", 0.0)),
        score=int(d.get("score", 0)),
        reasons=list(d.get("reasons", [])),
    )


def check_exit(position: Position, next_bar: Bar) -> Optional[Tuple[float, ExitReason]]:
    """Stop/target test against the next bar's range. Stop wins a same-bar tie."""
    if position.direction is Direction.LONG:
        stop_hit = next_bar.low <= position.stop_loss
        target_hit = position.take_profit is not None and next_bar.high >= position.take_profit
    else:
        stop_hit = next_bar.high >= position.stop_loss
        target_hit = position.take_profit is not None and next_bar.low <= position.take_profit
    if stop_hit:
        moved = position.stop_loss != position.initial_stop
        return position.stop_loss, ExitReason.TRAILING_STOP if moved else ExitReason.STOP_LOSS
    if target_hit:
        return position.take_profit, ExitReason.TAKE_PROFIT
    return None


def close_position(position: Position, exit_price: float, exit_time: datetime, reason: ExitReason,
                   commission: float = 0.0) -> Trade:
    pnl = (exit_price - position.entry_price) * position.units * position.direction.sign
    risk = abs(position.entry_price - position.initial_stop) * position.units
    return Trade(
        direction=position.direction,
        entry_time=position.entry_time,
        exit_time=exit_time,
        entry_price=position.entry_price,
        exit_price=exit_price,
        stop_loss=position.initial_stop,
        take_profit=position.take_profit,
        units=position.units,
        pnl=pnl,
        exit_reason=reason,
        r_multiple=pnl / risk if risk > 0 else 0.0,
        commission=commission,
        score=position.score,
        reasons=list(position.reasons),
    )


class BacktestEngine:
    """
    Replays enriched bars through a strategy and a fresh RiskManager per run.
    Deterministic: same frame and config give the same trades and equity curve.
    """

    def __init__(self, config: Config, strategy: Optional[BaseStrategy] = None):
        self.config = config
        self.strategy = strategy or ConfluenceStrategy(config)
        self.risk_manager: Optional[RiskManager] = None
        self._base_minutes = timeframe_minutes(config.timeframe)
        self._htf_minutes = timeframe_minutes(config.trend_timeframe)
        if self._htf_minutes < self._base_minutes or self._htf_minutes % self._base_minutes:
            raise ValueError(
                f"trend timeframe {config.trend_timeframe} must be a multiple of {config.timeframe}"
            )

    def prepare(self, df: pd.DataFrame) -> ReplayData:
        """Validate the frame and build signal/trend arenas."""
        frame = normalize_ohlcv(df)
        htf_frame = resample_ohlcv(frame, self._htf_minutes)
        bars = enrich_bars(frame, self.config)
        htf_bars = enrich_bars(htf_frame, self.config)

        # A bucket is usable once its end is at or before the close of the current bar
        bucket_ends = htf_frame["time"] + pd.Timedelta(minutes=self._htf_minutes)
        bar_closes = frame["time"] + pd.Timedelta(minutes=self._base_minutes)
        visible = np.searchsorted(
            bucket_ends.dt.tz_convert(None).to_numpy(),
            bar_closes.dt.tz_convert(None).to_numpy(),
            side="right",
        )
        return ReplayData(bars=bars, htf_bars=htf_bars, htf_visible=[int(v) for v in visible])

    def evaluate_at(self, data: ReplayData, i: int) -> Optional[Signal]:
        """Strategy output for bar i using only bars <= i and completed trend buckets."""
        cfg = self.config
        window = max(cfg.min_bars, cfg.divergence_lookback)
        k = data.htf_visible[i]
        recent = data.bars[max(0, i + 1 - window): i + 1]
        htf = data.htf_bars[max(0, k - cfg.min_htf_bars): k]
        return self.strategy.evaluate(recent, htf)

    def in_session(self, at: datetime) -> bool:
        hour = at.astimezone(timezone.utc).hour if at.tzinfo else at.hour
        return self.config.session_start_utc <= hour < self.config.session_end_utc

    def run(self, df: pd.DataFrame) -> BacktestResult:
        """Run backtest on an OHLCV DataFrame (columns: time, open, high, low, close, volume)."""
        cfg = self.config
        needed = cfg.warmup_bars + MIN_BUFFER_BARS
        if len(df) < needed:
            raise InsufficientDataError(f"need at least {needed} bars, got {len(df)}")
        data = self.prepare(df)
        bars = data.bars
        logger.info("Backtest: %d bars (%s -> %s), warm-up %d", len(bars), bars[0].time, bars[-1].time,
                    cfg.warmup_bars)

        risk = RiskManager(cfg, cfg.initial_equity)
        self.risk_manager = risk
        equity = cfg.initial_equity
        half_spread = cfg.spread / 2.0
        trades: List[Trade] = []
        equity_curve: List[EquityPoint] = []
        position: Optional[Position] = None

        for i in range(cfg.warmup_bars, len(bars) - 1):
            bar, nxt = bars[i], bars[i + 1]

            if position is not None:
                if cfg.use_trailing_stop and bar.atr is not None:
                    position.stop_loss = risk.trail_stop(
                        position.direction, position.entry_price, bar.close, bar.atr, position.stop_loss,
                    )
                hit = check_exit(position, nxt)
                if hit is not None:
                    exit_price, reason = hit
                    trade = close_position(position, exit_price, nxt.time, reason, cfg.commission)
                    equity += trade.pnl
                    risk.record_equity(equity)
                    risk.record_trade_closed(trade.pnl, nxt.time)
                    trades.append(trade)
                    logger.debug("Closed %s %s @ %.2f pnl %.2f", trade.direction.value, reason.value,
                                 exit_price, trade.pnl)
                    position = None

            if position is None and self.in_session(bar.time):
                decision = risk.can_open_trade(0, bar.time)
                if decision.allowed:
                    position = self._try_open(data, i, nxt, risk, half_spread)
                    if position is not None:
                        equity -= cfg.commission
                        risk.record_equity(equity)
                        risk.record_trade_opened(bar.time)
                else:
                    logger.debug("%s gate: %s", bar.time, decision.reason)

            equity_curve.append(EquityPoint(bar.time, equity))

        last = bars[-1]
        if position is not None:
            trade = close_position(position, last.close, last.time, ExitReason.END_OF_DATA, cfg.commission)
            equity += trade.pnl
            risk.record_equity(equity)
            risk.record_trade_closed(trade.pnl, last.time)
            trades.append(trade)
        equity_curve.append(EquityPoint(last.time, equity))

        metrics = compute_metrics(trades, equity_curve, cfg.initial_equity, equity)
        logger.info("Backtest complete: %d trades, final equity %.2f", len(trades), equity)
        return BacktestResult(trades=trades, equity_curve=equity_curve, metrics=metrics)

    def _try_open(self, data: ReplayData, i: int, nxt: Bar, risk: RiskManager,
                  half_spread: float) -> Optional[Position]:
        signal = self.evaluate_at(data, i)
        if signal is None:
            return None
        units = risk.size_position(signal)
        if units <= 0:
            return None
        sign = signal.direction.sign
        fill = nxt.open + sign * half_spread
        # Gap through the stop or target: the order would be void
        if (fill - signal.stop_loss) * sign <= 0 or (signal.take_profit - fill) * sign <= 0:
            logger.debug("%s fill %.2f outside stop/target, skipped", nxt.time, fill)
            return None
        logger.debug("Open %s %d units @ %.2f (signal %s)", signal.direction.value, units, fill,
                     signal.timestamp)
        return Position(
            direction=signal.direction,
            entry_price=fill,
            stop_loss=signal.stop_loss,
            units=units,
            take_profit=signal.take_profit,
            entry_time=nxt.time,
            score=signal.score,
            reasons=tuple(signal.reasons),
        )
