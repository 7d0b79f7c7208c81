from __future__ import annotations

import time
from dataclasses import dataclass, replace
from typing import Callable, Dict, Generic, Optional, TypeVar

# Seconds from an arbitrary origin; only differences are meaningful
Clock = Callable[[], float]

T = TypeVar("T")


def monotonic_clock() -> float:
    return time.monotonic()


@dataclass(frozen=True)
class CacheState(Generic[T]):
    """Read-through cache contents with their age bookkeeping.

    Pure value: `refreshed` and `invalidated` return new states, the owning
    cache swaps them in.
    """

    refresh_interval: float
    value: Optional[T] = None
    last_refresh: Optional[float] = None

    @property
    def is_empty(self) -> bool:
        return not self.value

    def age(self, now: float) -> Optional[float]:
        if self.last_refresh is None:
            return None
        return now - self.last_refresh

    def is_stale(self, now: float) -> bool:
        """True when never refreshed or older than the refresh interval."""
        age = self.age(now)
        return age is None or age > self.refresh_interval

    def needs_refresh(self, now: float, force: bool = False) -> bool:
        return force or self.is_empty or self.is_stale(now)

    def refreshed(self, value: T, now: float) -> "CacheState[T]":
        return replace(self, value=value, last_refresh=now)

    def invalidated(self) -> "CacheState[T]":
        """Keep the last value but force the next read to refetch."""
        return replace(self, last_refresh=None)


def snapshot(values: Optional[Dict]) -> Dict:
    """Shallow copy handed to readers so they never hold the cache's dict."""
    return dict(values or {})
