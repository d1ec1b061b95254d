"""
Load configuration from config.yaml and .env. Every field can be overridden
by an environment variable named after the field (upper-cased).
"""

from __future__ import annotations
import os
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

import yaml
from dotenv import load_dotenv


def _env_path(project_root: Optional[Path] = None) -> Path:
    root = project_root or Path(__file__).resolve().parents[2]
    return root / ".env"


def load_dotenv_if_exists(project_root: Optional[Path] = None) -> None:
    """Load .env from project root if present."""
    path = _env_path(project_root)
    if path.exists():
        load_dotenv(path)


@dataclass(frozen=True)
class Config:
    """Unified configuration. Immutable after load."""

    # Instrument / timeframes
    symbol: str = "XAUUSD"
    timeframe: str = "5m"
    trend_timeframe: str = "15m"
    price_precision: int = 2
    min_units: int = 1
    lookback_bars: int = 300

    # Indicators
    ema_fast: int = 21
    ema_slow: int = 50
    ema_trend: int = 200
    rsi_period: int = 14
    rsi_slope_bars: int = 3
    rsi_overbought: float = 65.0
    rsi_oversold: float = 35.0
    macd_fast: int = 12
    macd_slow: int = 26
    macd_signal: int = 9
    stoch_k: int = 14
    stoch_d: int = 3
    stoch_overbought: float = 80.0
    stoch_oversold: float = 20.0
    atr_period: int = 14
    bb_period: int = 20
    bb_std: float = 2.0
    swing_window: int = 5

    # Strategy
    min_bars: int = 100
    min_htf_bars: int = 50
    divergence_lookback: int = 20
    min_atr: float = 0.20
    max_atr: float = 5.00
    min_confluence_score: int = 3
    counter_trend_score_offset: int = 1
    min_risk_reward: float = 1.8
    sl_atr_multiple: float = 1.5
    tp_reward_multiple: float = 2.0
    min_stop_atr_multiple: float = 0.3
    structural_stop_buffer_atr: float = 0.2
    band_proximity_atr: float = 0.3
    swing_proximity_atr: float = 0.5

    # Risk
    max_risk_pct: float = 1.0
    max_risk_usd: float = 200.0
    max_open_positions: int = 2
    max_daily_drawdown_pct: float = 3.0
    max_daily_loss_usd: float = 500.0
    max_trades_per_day: int = 5
    cooldown_minutes: float = 15.0
    trail_activation_atr_multiple: float = 1.0
    trail_distance_atr_multiple: float = 0.8
    breakeven_offset: float = 0.05

    # Session (UTC hours, start inclusive, end exclusive)
    session_start_utc: int = 7
    session_end_utc: int = 20

    # Backtest
    data_path: str = "data/historical/XAUUSD_M5.csv"
    initial_equity: float = 10_000.0
    spread: float = 0.25
    commission: float = 2.0
    warmup_bars: int = 250
    use_trailing_stop: bool = False

    # Logging
    log_level: str = "INFO"
    log_dir: Path = Path("logs")
    log_file: str = "bot.log"

    def __post_init__(self) -> None:
        if self.min_atr < 0 or self.max_atr <= 0 or self.min_atr > self.max_atr:
            raise ValueError(f"invalid ATR band [{self.min_atr}, {self.max_atr}]")
        for name in (
            "sl_atr_multiple", "tp_reward_multiple", "min_stop_atr_multiple",
            "max_risk_pct", "max_risk_usd", "trail_distance_atr_multiple",
        ):
            if getattr(self, name) <= 0:
                raise ValueError(f"{name} must be positive, got {getattr(self, name)}")
        if self.min_risk_reward < 0:
            raise ValueError(f"min_risk_reward must be >= 0, got {self.min_risk_reward}")
        if not 0 <= self.session_start_utc < self.session_end_utc <= 24:
            raise ValueError(
                f"invalid session hours {self.session_start_utc}-{self.session_end_utc} UTC"
            )
        if self.min_units < 0 or self.max_open_positions < 1 or self.max_trades_per_day < 1:
            raise ValueError("min_units, max_open_positions and max_trades_per_day out of range")
        if self.divergence_lookback < 2 or self.swing_window < 1:
            raise ValueError("divergence_lookback must be >= 2 and swing_window >= 1")
        if self.min_bars < 2 or self.min_htf_bars < 1:
            raise ValueError("min_bars must be >= 2 and min_htf_bars >= 1")
        if self.spread < 0 or self.commission < 0 or self.initial_equity <= 0:
            raise ValueError("spread and commission must be >= 0, initial_equity > 0")


# config.yaml section -> fields it may set
_SECTIONS: Dict[str, Tuple[str, ...]] = {
    "instrument": ("symbol", "timeframe", "trend_timeframe", "price_precision", "min_units", "lookback_bars"),
    "indicators": (
        "ema_fast", "ema_slow", "ema_trend", "rsi_period", "rsi_slope_bars", "rsi_overbought",
        "rsi_oversold", "macd_fast", "macd_slow", "macd_signal", "stoch_k", "stoch_d",
        "stoch_overbought", "stoch_oversold", "atr_period", "bb_period", "bb_std", "swing_window",
    ),
    "strategy": (
        "min_bars", "min_htf_bars", "divergence_lookback", "min_atr", "max_atr",
        "min_confluence_score", "counter_trend_score_offset", "min_risk_reward",
        "sl_atr_multiple", "tp_reward_multiple", "min_stop_atr_multiple",
        "structural_stop_buffer_atr", "band_proximity_atr", "swing_proximity_atr",
    ),
    "risk": (
        "max_risk_pct", "max_risk_usd", "max_open_positions", "max_daily_drawdown_pct",
        "max_daily_loss_usd", "max_trades_per_day", "cooldown_minutes",
        "trail_activation_atr_multiple", "trail_distance_atr_multiple", "breakeven_offset",
    ),
    "session": ("session_start_utc", "session_end_utc"),
    "backtest": ("data_path", "initial_equity", "spread", "commission", "warmup_bars", "use_trailing_stop"),
    "logging": ("log_level", "log_dir", "log_file"),
}


def _coerce(raw: Any, default: Any) -> Any:
    """Coerce a yaml or env value to the type of the field default."""
    if isinstance(default, bool):
        if isinstance(raw, str):
            return raw.strip().lower() in ("true", "1", "yes")
        return bool(raw)
    if isinstance(default, int):
        return int(raw)
    if isinstance(default, float):
        return float(raw)
    if isinstance(default, Path):
        return Path(raw)
    return str(raw).strip()


def load_config(config_path: Optional[Path] = None, project_root: Optional[Path] = None) -> Config:
    """Load config.yaml and overlay with env. Returns Config dataclass."""
    load_dotenv_if_exists(project_root)
    root = project_root or Path(__file__).resolve().parents[2]
    path = config_path or root / "config.yaml"
    data: dict[str, Any] = {}
    if path.exists():
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    elif config_path is not None:
        raise FileNotFoundError(f"config file not found: {path}")

    defaults = {f.name: f.default for f in fields(Config)}
    values: dict[str, Any] = {}
    for section, names in _SECTIONS.items():
        block = data.get(section) or {}
        unknown = set(block) - set(names)
        if unknown:
            raise ValueError(f"unknown keys in config section '{section}': {sorted(unknown)}")
        for name in names:
            if name in block:
                values[name] = _coerce(block[name], defaults[name])

    # Env overrides
    for name, default in defaults.items():
        raw = os.getenv(name.upper())
        if raw is None or raw.strip() == "":
            continue
        try:
            values[name] = _coerce(raw, default)
        except ValueError as e:
            raise ValueError(f"invalid value for {name.upper()}: {raw!r}") from e

    return Config(**values)
