"""
Currency-pair normalization between human and exchange-native notation.

Human pairs look like ``BTC/USD``; the exchange names assets ``XXBT`` and
``ZUSD`` and trades them as ``XBTUSD``. Every input string normalizes to a
(base, quote) pair: unknown pairs are left for the validator to judge.
"""

from typing import Dict, Tuple, Union

ASSET_ALIASES: Dict[str, str] = {
    "BTC": "XXBT",
    "XBT": "XXBT",
    "BITCOIN": "XXBT",
    "ETH": "XETH",
    "ETHEREUM": "XETH",
    "XRP": "XXRP",
    "RIPPLE": "XXRP",
    "LTC": "XLTC",
    "LITECOIN": "XLTC",
    "USD": "ZUSD",
}

KNOWN_PAIRS: Dict[str, Tuple[str, str]] = {
    "XBTUSD": ("XXBT", "ZUSD"),
    "ETHUSD": ("XETH", "ZUSD"),
    "XRPUSD": ("XXRP", "ZUSD"),
    "LTCUSD": ("XLTC", "ZUSD"),
    "ADAUSD": ("ADA", "ZUSD"),
    "DOTUSD": ("DOT", "ZUSD"),
}

# Asset code used inside exchange pair names (XXBT trades as XBT)
EXCHANGE_ALTNAMES: Dict[str, str] = {
    "XXBT": "XBT",
    "XETH": "ETH",
    "XXRP": "XRP",
    "XLTC": "LTC",
    "ZUSD": "USD",
}

DISPLAY_NAMES: Dict[str, str] = {
    "XXBT": "BTC",
    "XETH": "ETH",
    "XXRP": "XRP",
    "XLTC": "LTC",
    "ZUSD": "USD",
}

DEFAULT_QUOTE = "ZUSD"

PairLike = Union[str, Tuple[str, str]]


class PairNormalizer:
    """Stateless pair and asset-code mapping."""

    def normalize_asset(self, code: str) -> str:
        upper = code.strip().upper()
        return ASSET_ALIASES.get(upper, upper)

    def display_asset(self, code: str) -> str:
        asset = self.normalize_asset(code)
        return DISPLAY_NAMES.get(asset, asset)

    def to_canonical(self, pair: str) -> Tuple[str, str]:
        """Split any pair string into exchange-native (base, quote)."""
        if "/" in pair:
            base, quote = pair.split("/", 1)
            return self.normalize_asset(base), self.normalize_asset(quote)

        code = pair.strip().upper()
        if code in KNOWN_PAIRS:
            return KNOWN_PAIRS[code]

        if code.endswith("USD") and len(code) > 3:
            return self.normalize_asset(code[:-3]), DEFAULT_QUOTE

        return code, DEFAULT_QUOTE

    def to_exchange_notation(self, pair: PairLike) -> str:
        base, quote = self._resolve(pair)
        return EXCHANGE_ALTNAMES.get(base, base) + EXCHANGE_ALTNAMES.get(quote, quote)

    def to_display_pair(self, pair: PairLike) -> str:
        """Human ``BASE/QUOTE`` name; the key for per-pair limits."""
        base, quote = self._resolve(pair)
        return f"{DISPLAY_NAMES.get(base, base)}/{DISPLAY_NAMES.get(quote, quote)}"

    def _resolve(self, pair: PairLike) -> Tuple[str, str]:
        if isinstance(pair, tuple):
            base, quote = pair
            return self.normalize_asset(base), self.normalize_asset(quote)
        return self.to_canonical(pair)
