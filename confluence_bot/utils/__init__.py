"""Utils: timeframes, resampling, price precision."""

from confluence_bot.utils.precision import floor_units, round_price
from confluence_bot.utils.timeframes import resample_ohlcv, timeframe_minutes

__all__ = ["floor_units", "round_price", "resample_ohlcv", "timeframe_minutes"]
