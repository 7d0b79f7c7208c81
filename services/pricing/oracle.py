"""
USD reference prices with a refresh window and a hardcoded fallback table.

The oracle never fails: when the feed is down it serves the fallback table
and treats it as fresh for one interval, so an outage costs at most one
feed call per window.
"""

import asyncio
from decimal import Decimal
from typing import Dict, Mapping, Optional

from core.logging import get_logger
from core.trading.cache_state import CacheState, Clock, monotonic_clock, snapshot
from core.trading.interfaces import PriceFeed
from core.trading.models import PriceTable

logger = get_logger(__name__, component="price_oracle")

# Assets queried from the feed, with their per-asset fallback price
FALLBACK_PRICES: Dict[str, Decimal] = {
    "XXBT": Decimal("45000"),
    "XETH": Decimal("2500"),
    "XXRP": Decimal("0.6"),
    "XLTC": Decimal("100"),
    "ADA": Decimal("0.5"),
    "DOT": Decimal("7"),
}

# Short codes that must resolve to the same price as the native code
SHORT_CODES: Dict[str, str] = {
    "XXBT": "XBT",
    "XETH": "ETH",
    "XXRP": "XRP",
    "XLTC": "LTC",
}

USD_CODES = ("ZUSD", "USD")
DEFAULT_PRICE = Decimal("1")


def build_price_table(quotes: Mapping[str, Decimal]) -> PriceTable:
    """Expand native-code quotes into a table with short aliases and USD."""
    table: PriceTable = {}
    for asset, price in quotes.items():
        table[asset] = price
        if asset in SHORT_CODES:
            table[SHORT_CODES[asset]] = price
    for code in USD_CODES:
        table[code] = Decimal("1")
    return table


def fallback_price_table() -> PriceTable:
    return build_price_table(FALLBACK_PRICES)


def price_table_lookup(prices: Mapping[str, Decimal], asset: str, normalized: Optional[str] = None) -> Decimal:
    """Price of an asset; unknown assets are worth 1, never absent or zero."""
    for code in (normalized, asset):
        if code and prices.get(code):
            return prices[code]
    return DEFAULT_PRICE


class PriceOracle:
    """Read-through cache over a `PriceFeed`."""

    def __init__(self, feed: PriceFeed, refresh_interval: float = 60.0,
                 clock: Clock = monotonic_clock):
        self.feed = feed
        self.clock = clock
        self._state: CacheState[PriceTable] = CacheState(refresh_interval=refresh_interval)
        self._refresh_lock = asyncio.Lock()

    @property
    def state(self) -> CacheState[PriceTable]:
        return self._state

    async def get_prices(self) -> PriceTable:
        if self._state.needs_refresh(self.clock()):
            async with self._refresh_lock:
                # Another caller may have refreshed while we waited
                if self._state.needs_refresh(self.clock()):
                    self._state = self._state.refreshed(await self._fetch(), self.clock())
        return snapshot(self._state.value)

    async def price_of(self, asset: str) -> Decimal:
        return price_table_lookup(await self.get_prices(), asset)

    async def _fetch(self) -> PriceTable:
        try:
            raw = await self.feed.get_spot_prices(list(FALLBACK_PRICES))
        except Exception as e:
            logger.warning("Failed to fetch crypto prices, using fallback values", error=str(e))
            return fallback_price_table()

        quotes: Dict[str, Decimal] = {}
        missing = []
        for asset, fallback in FALLBACK_PRICES.items():
            price = self._parse_price(raw.get(asset) if isinstance(raw, Mapping) else None)
            if price is None:
                missing.append(asset)
                price = fallback
            quotes[asset] = price

        if missing:
            logger.warning("Price feed response incomplete, fallback used", assets=missing)
        logger.info("Crypto prices updated successfully")
        return build_price_table(quotes)

    @staticmethod
    def _parse_price(value) -> Optional[Decimal]:
        if value is None or isinstance(value, bool):
            return None
        try:
            price = Decimal(str(value))
        except ArithmeticError:
            return None
        if not price.is_finite() or price <= 0:
            return None
        return price
