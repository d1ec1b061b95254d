"""Strategies: base interface and implementations."""

from confluence_bot.strategies.base import BaseStrategy
from confluence_bot.strategies.confluence import ConfluenceStrategy, format_signal, pick_direction

__all__ = ["BaseStrategy", "ConfluenceStrategy", "format_signal", "pick_direction"]
