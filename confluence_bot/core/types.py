"""
Core data types for bars, signals, positions, and trades.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import List, Optional, Tuple


class Direction(str, Enum):
    LONG = "long"
    SHORT = "short"

    @property
    def sign(self) -> int:
        return 1 if self is Direction.LONG else -1

    @property
    def opposite(self) -> "Direction":
        return Direction.SHORT if self is Direction.LONG else Direction.LONG


class TrendDirection(str, Enum):
    BULLISH = "bullish"
    BEARISH = "bearish"
    NEUTRAL = "neutral"

    def favours(self, direction: Direction) -> bool:
        return (self is TrendDirection.BULLISH and direction is Direction.LONG) or (
            self is TrendDirection.BEARISH and direction is Direction.SHORT
        )

    def opposes(self, direction: Direction) -> bool:
        return self is not TrendDirection.NEUTRAL and not self.favours(direction)


class ExitReason(str, Enum):
    STOP_LOSS = "stop_loss"
    TAKE_PROFIT = "take_profit"
    TRAILING_STOP = "trailing_stop"
    END_OF_DATA = "end_of_data"


@dataclass
class Bar:
    """OHLCV candle plus derived indicator and structure fields (None = not ready)."""
    time: datetime
    open: float
    high: float
    low: float
    close: float
    volume: float = 0.0
    ema_fast: Optional[float] = None
    ema_slow: Optional[float] = None
    ema_trend: Optional[float] = None
    rsi: Optional[float] = None
    rsi_slope: Optional[float] = None
    macd_line: Optional[float] = None
    macd_signal: Optional[float] = None
    macd_hist: Optional[float] = None
    stoch_k: Optional[float] = None
    stoch_d: Optional[float] = None
    atr: Optional[float] = None
    bb_upper: Optional[float] = None
    bb_mid: Optional[float] = None
    bb_lower: Optional[float] = None
    bb_pct_b: Optional[float] = None
    swing_high: Optional[float] = None
    swing_low: Optional[float] = None
    last_swing_high: Optional[float] = None
    last_swing_low: Optional[float] = None
    trend: TrendDirection = TrendDirection.NEUTRAL

    def is_ready(self) -> bool:
        """True once every oscillator the confluence scorer reads is populated."""
        required = (
            self.atr, self.rsi, self.macd_line, self.macd_signal, self.macd_hist,
            self.stoch_k, self.stoch_d, self.bb_upper, self.bb_lower,
        )
        return all(v is not None for v in required)


@dataclass
class Signal:
    """Directional trade proposal with entry, stop, and target."""
    direction: Direction
    entry_price: float
    stop_loss: float
    take_profit: float
    risk_reward: float
    score: int
    required_score: int
    counter_trend: bool
    timestamp: datetime
    reasons: List[str] = field(default_factory=list)
    atr: Optional[float] = None

    def __post_init__(self) -> None:
        sign = self.direction.sign
        if (self.entry_price - self.stop_loss) * sign <= 0:
            raise ValueError(
                f"stop {self.stop_loss} is not on the losing side of {self.entry_price} for {self.direction.value}"
            )
        if (self.take_profit - self.entry_price) * sign <= 0:
            raise ValueError(
                f"target {self.take_profit} is not on the winning side of {self.entry_price} for {self.direction.value}"
            )
        if self.score < self.required_score:
            raise ValueError(f"score {self.score} below required {self.required_score}")

    @property
    def stop_distance(self) -> float:
        return abs(self.entry_price - self.stop_loss)


@dataclass
class Position:
    """Open position state. Broker adapters translate their records into this shape."""
    direction: Direction
    entry_price: float
    stop_loss: float
    units: float
    take_profit: Optional[float] = None
    entry_time: Optional[datetime] = None
    score: int = 0
    reasons: Tuple[str, ...] = ()
    initial_stop: Optional[float] = None

    def __post_init__(self) -> None:
        if self.initial_stop is None:
            self.initial_stop = self.stop_loss

    @property
    def stop_distance(self) -> float:
        return abs(self.entry_price - self.stop_loss)


@dataclass
class Trade:
    """Closed trade for analytics."""
    direction: Direction
    entry_time: datetime
    exit_time: datetime
    entry_price: float
    exit_price: float
    stop_loss: float
    take_profit: Optional[float]
    units: float
    pnl: float
    exit_reason: ExitReason
    r_multiple: float
    commission: float = 0.0
    score: int = 0
    reasons: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class EquityPoint:
    time: datetime
    equity: float
