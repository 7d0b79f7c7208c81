from __future__ import annotations

from typing import Any, Dict, Protocol, Sequence, runtime_checkable

from core.trading.models import ExchangeCredentials, OrderRequest


@runtime_checkable
class ExchangeGateway(Protocol):
    """Remote RPC boundary in front of the exchange account.

    Both calls answer with either `{"error": [<free text>, ...]}` or
    `{"result": {...}}`. An unreachable gateway or a payload that is not a
    JSON object raises `GatewayTransportError`.
    """

    async def get_balance(self, credentials: ExchangeCredentials) -> Dict[str, Any]:
        ...

    async def place_order(self, credentials: ExchangeCredentials, order: OrderRequest) -> Dict[str, Any]:
        ...


@runtime_checkable
class PriceFeed(Protocol):
    """Spot USD prices keyed by exchange-native asset code."""

    async def get_spot_prices(self, assets: Sequence[str]) -> Dict[str, float]:
        ...
