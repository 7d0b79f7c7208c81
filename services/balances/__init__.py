from .cache import BalanceCache, DUST_THRESHOLD

__all__ = ["BalanceCache", "DUST_THRESHOLD"]
