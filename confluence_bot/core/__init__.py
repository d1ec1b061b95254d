"""Core: config, types, logging."""

from confluence_bot.core.config import load_config, Config
from confluence_bot.core.types import (
    Bar,
    Direction,
    EquityPoint,
    ExitReason,
    Position,
    Signal,
    Trade,
    TrendDirection,
)
from confluence_bot.core.logger import setup_logging

__all__ = [
    "load_config",
    "Config",
    "Bar",
    "Direction",
    "EquityPoint",
    "ExitReason",
    "Position",
    "Signal",
    "Trade",
    "TrendDirection",
    "setup_logging",
]
