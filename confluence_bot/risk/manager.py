"""
Risk manager: admission gate, position sizing, trailing stop.

Rules:
  - risk per trade = min(equity x max_risk_pct, max_risk_usd); units = risk / stop distance
  - max open positions
  - daily drawdown % and daily USD loss caps (halt for the rest of the UTC day)
  - max trades per day
  - cooldown between consecutive entries
  - trailing stop: one-directional ratchet once profit reaches an ATR multiple

Session counters reset once per UTC calendar day, on the first call that
observes the new date.
"""

from __future__ import annotations
import logging
import math
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from typing import Optional

from confluence_bot.core.config import Config
from confluence_bot.core.types import Direction, Signal
from confluence_bot.utils.precision import floor_units

logger = logging.getLogger("confluence_bot.risk")


@dataclass
class RiskResult:
    """Result of admission check: allowed or rejected + reason."""
    allowed: bool
    reason: str = ""


@dataclass
class SessionState:
    """Mutable per-account risk state. Only RiskManager methods mutate it."""
    equity: float
    peak_equity: float
    day_start_equity: float
    session_date: Optional[date] = None
    daily_pnl: float = 0.0
    trade_count: int = 0
    last_trade_time: Optional[datetime] = None


def _as_utc(at: datetime) -> datetime:
    if at.tzinfo is None:
        return at.replace(tzinfo=timezone.utc)
    return at.astimezone(timezone.utc)


class RiskManager:
    """
    Owns one SessionState. Not safe for concurrent mutation; a driver that
    evaluates several instruments in parallel must serialise calls.
    """

    def __init__(self, config: Config, initial_equity: float):
        self.config = config
        self._check_equity(initial_equity)
        self.state = SessionState(
            equity=initial_equity,
            peak_equity=initial_equity,
            day_start_equity=initial_equity,
        )

    @staticmethod
    def _check_equity(value: float) -> None:
        if value is None or not math.isfinite(value) or value < 0:
            raise ValueError(f"equity must be a finite non-negative number, got {value!r}")

    # -- equity / session ---------------------------------------------------

    def record_equity(self, value: float) -> None:
        """Overwrite current equity; raises peak equity if exceeded."""
        self._check_equity(value)
        self.state.equity = value
        if value > self.state.peak_equity:
            self.state.peak_equity = value

    def roll_session(self, at: datetime) -> bool:
        """Reset daily counters if `at` falls on a new UTC date. Returns True on reset."""
        today = _as_utc(at).date()
        s = self.state
        if s.session_date is None:
            s.session_date = today
            return False
        if today == s.session_date:
            return False
        logger.info(
            "New session %s (previous %s: pnl %.2f, trades %d)",
            today, s.session_date, s.daily_pnl, s.trade_count,
        )
        s.session_date = today
        s.day_start_equity = s.equity
        s.daily_pnl = 0.0
        s.trade_count = 0
        return True

    def record_trade_opened(self, at: datetime) -> None:
        self.roll_session(at)
        self.state.trade_count += 1
        self.state.last_trade_time = _as_utc(at)

    def record_trade_closed(self, pnl: float, at: Optional[datetime] = None) -> None:
        if at is not None:
            self.roll_session(at)
        self.state.daily_pnl += pnl

    # -- admission ----------------------------------------------------------

    def can_open_trade(self, open_positions: int, at: datetime) -> RiskResult:
        """First failing check wins; order is fixed."""
        self.roll_session(at)
        cfg = self.config
        s = self.state

        if open_positions >= cfg.max_open_positions:
            return RiskResult(False, f"max open positions ({open_positions}/{cfg.max_open_positions})")

        if s.day_start_equity > 0:
            daily_pct = s.daily_pnl / s.day_start_equity * 100
            if daily_pct <= -cfg.max_daily_drawdown_pct:
                logger.warning("Daily drawdown limit hit: %.2f%%", daily_pct)
                return RiskResult(False, f"daily drawdown limit hit ({daily_pct:.1f}%)")

        if s.daily_pnl <= -cfg.max_daily_loss_usd:
            logger.warning("Daily USD loss limit hit: %.2f", s.daily_pnl)
            return RiskResult(False, f"daily USD loss limit hit ({s.daily_pnl:.2f})")

        if s.trade_count >= cfg.max_trades_per_day:
            return RiskResult(False, f"max trades/day reached ({s.trade_count})")

        if s.last_trade_time is not None:
            elapsed = _as_utc(at) - s.last_trade_time
            cooldown = timedelta(minutes=cfg.cooldown_minutes)
            if elapsed < cooldown:
                remaining = math.ceil((cooldown - elapsed).total_seconds())
                return RiskResult(False, f"cooling period: {remaining}s remaining")

        return RiskResult(True)

    # -- sizing / stops -----------------------------------------------------

    def size_position(self, signal: Signal) -> int:
        """Units such that a stop-out loses at most the per-trade risk. 0 = do not trade."""
        cfg = self.config
        if self.state.equity < 0:
            raise ValueError(f"cannot size against negative equity {self.state.equity}")
        distance = abs(signal.entry_price - signal.stop_loss)
        if distance <= 0:
            return 0
        risk_amount = min(self.state.equity * cfg.max_risk_pct / 100.0, cfg.max_risk_usd)
        return floor_units(risk_amount / distance, cfg.min_units)

    def trail_stop(
        self,
        direction: Direction,
        entry_price: float,
        current_price: float,
        atr: float,
        current_stop: float,
    ) -> float:
        """New stop, never worse than current_stop."""
        cfg = self.config
        sign = direction.sign
        profit = (current_price - entry_price) * sign
        if profit < atr * cfg.trail_activation_atr_multiple:
            return current_stop
        breakeven = entry_price + sign * cfg.breakeven_offset
        trail = current_price - sign * atr * cfg.trail_distance_atr_multiple
        if direction is Direction.LONG:
            return max(current_stop, breakeven, trail)
        return min(current_stop, breakeven, trail)

    def summary(self) -> dict:
        s = self.state
        drawdown = (s.equity - s.peak_equity) / s.peak_equity * 100 if s.peak_equity > 0 else 0.0
        return {
            "equity": round(s.equity, 2),
            "daily_pnl": round(s.daily_pnl, 2),
            "trades_today": s.trade_count,
            "peak_equity": round(s.peak_equity, 2),
            "drawdown_pct": round(drawdown, 2),
        }
