"""Bar sources: interface, CSV file, synthetic generator."""

from confluence_bot.data.base import AccountSummary, BarSource, normalize_ohlcv
from confluence_bot.data.csv_source import CsvBarSource, load_csv
from confluence_bot.data.mock_source import MockBarSource, generate_bars

__all__ = [
    "AccountSummary",
    "BarSource",
    "normalize_ohlcv",
    "CsvBarSource",
    "load_csv",
    "MockBarSource",
    "generate_bars",
]
