"""Confluence bot: XAU/USD signal generation, risk management and backtesting."""

__version__ = "0.1.0"
