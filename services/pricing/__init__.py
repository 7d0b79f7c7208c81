"""USD reference pricing: cached oracle and the public spot-price feed."""

from .oracle import PriceOracle, price_table_lookup, fallback_price_table, FALLBACK_PRICES
from .coingecko_feed import CoinGeckoPriceFeed

__all__ = [
    "PriceOracle",
    "price_table_lookup",
    "fallback_price_table",
    "FALLBACK_PRICES",
    "CoinGeckoPriceFeed",
]
