"""CoinGecko simple-price adapter implementing the `PriceFeed` protocol."""

from typing import Dict, Optional, Sequence

import httpx

from core.logging import get_logger
from core.utils.exceptions import PriceFeedError

logger = get_logger(__name__, component="price_feed")

COINGECKO_IDS: Dict[str, str] = {
    "XXBT": "bitcoin",
    "XETH": "ethereum",
    "XXRP": "ripple",
    "XLTC": "litecoin",
    "ADA": "cardano",
    "DOT": "polkadot",
}


class CoinGeckoPriceFeed:
    """Fetches USD spot prices for the supported assets in one request."""

    def __init__(self, base_url: str = "https://api.coingecko.com/api/v3",
                 timeout: float = 10.0, client: Optional[httpx.AsyncClient] = None):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._client = client

    async def get_spot_prices(self, assets: Sequence[str]) -> Dict[str, float]:
        ids = {COINGECKO_IDS[a]: a for a in assets if a in COINGECKO_IDS}
        if not ids:
            return {}

        params = {"ids": ",".join(ids), "vs_currencies": "usd"}
        try:
            if self._client is not None:
                response = await self._client.get(
                    f"{self.base_url}/simple/price", params=params, timeout=self.timeout
                )
            else:
                async with httpx.AsyncClient(timeout=self.timeout) as client:
                    response = await client.get(f"{self.base_url}/simple/price", params=params)
            response.raise_for_status()
            data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            raise PriceFeedError(f"Price feed request failed: {e}") from e

        if not isinstance(data, dict):
            raise PriceFeedError("Price feed returned a non-object payload")

        prices: Dict[str, float] = {}
        for coin_id, asset in ids.items():
            entry = data.get(coin_id)
            if isinstance(entry, dict) and isinstance(entry.get("usd"), (int, float)):
                prices[asset] = float(entry["usd"])
        logger.debug("Spot prices fetched", assets=sorted(prices))
        return prices
