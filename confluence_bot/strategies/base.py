"""Abstract strategy: bar window in, signal or None out."""

from __future__ import annotations
from abc import ABC, abstractmethod
from typing import Optional, Sequence

from confluence_bot.core.types import Bar, Signal


class BaseStrategy(ABC):
    """Strategy evaluates the latest completed bar of an enriched window."""

    @abstractmethod
    def evaluate(self, bars: Sequence[Bar], htf_bars: Sequence[Bar]) -> Optional[Signal]:
        """
        Return a Signal for bars[-1] or None.
        bars: signal-timeframe window, oldest first; htf_bars: completed
        higher-timeframe bars up to the same moment. Must not raise for
        short or not-yet-ready windows.
        """
        pass
