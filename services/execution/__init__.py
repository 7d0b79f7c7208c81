from .executor import OrderExecutor

__all__ = ["OrderExecutor"]
