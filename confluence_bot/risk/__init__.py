"""Risk management: admission gate, position sizing, trailing stop, daily session."""

from confluence_bot.risk.manager import RiskManager, RiskResult, SessionState

__all__ = ["RiskManager", "RiskResult", "SessionState"]
