from .validator import TradeValidator

__all__ = ["TradeValidator"]
