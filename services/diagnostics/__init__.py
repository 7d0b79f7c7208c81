from .trade_debugger import DebugReport, DebugStep, StepStatus, TradeDebugger

__all__ = ["DebugReport", "DebugStep", "StepStatus", "TradeDebugger"]
