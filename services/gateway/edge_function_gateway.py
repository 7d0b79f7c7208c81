"""
HTTP adapter for the remote exchange RPC function.

The function signs and forwards requests to the exchange; this side only
posts an action payload and hands back whatever JSON object comes back.
Business errors arrive inside that object (``{"error": [...]}``) and are left
for the caller to classify.
"""

from typing import Any, Dict, Optional

import httpx

from core.logging import get_logger
from core.trading.models import ExchangeCredentials, OrderRequest
from core.utils.exceptions import GatewayTransportError

logger = get_logger(__name__, component="exchange_gateway")


class EdgeFunctionGateway:
    """`ExchangeGateway` over an authenticated HTTP POST endpoint."""

    def __init__(self, url: str, token: str = "", timeout: float = 15.0,
                 client: Optional[httpx.AsyncClient] = None):
        self.url = url
        self.token = token
        self.timeout = timeout
        self._client = client

    async def get_balance(self, credentials: ExchangeCredentials) -> Dict[str, Any]:
        return await self._invoke("getBalance", credentials)

    async def place_order(self, credentials: ExchangeCredentials, order: OrderRequest) -> Dict[str, Any]:
        return await self._invoke("placeOrder", credentials, order.to_payload())

    def _headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    async def _invoke(self, action: str, credentials: ExchangeCredentials,
                      extra: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        body: Dict[str, Any] = {
            "action": action,
            "apiKey": credentials.api_key,
            "apiSecret": credentials.api_secret.get_secret_value(),
        }
        if extra:
            body.update(extra)

        logger.debug("Invoking exchange function", action=action)
        try:
            if self._client is not None:
                response = await self._client.post(
                    self.url, json=body, headers=self._headers(), timeout=self.timeout
                )
            else:
                async with httpx.AsyncClient(timeout=self.timeout) as client:
                    response = await client.post(self.url, json=body, headers=self._headers())
        except (httpx.HTTPError, httpx.InvalidURL, httpx.StreamError) as e:
            raise GatewayTransportError(
                f"{type(e).__name__}: {e}" if str(e) else type(e).__name__,
                operation=action,
            ) from e

        if response.status_code >= 400:
            raise GatewayTransportError(
                f"Gateway returned HTTP {response.status_code}",
                operation=action,
                status_code=response.status_code,
                details={"body": response.text[:500]},
            )

        try:
            payload = response.json()
        except ValueError as e:
            raise GatewayTransportError(
                "Gateway returned a non-JSON body",
                operation=action,
                status_code=response.status_code,
            ) from e

        if not isinstance(payload, dict):
            raise GatewayTransportError(
                "Gateway returned a non-object payload",
                operation=action,
                status_code=response.status_code,
            )
        return payload
