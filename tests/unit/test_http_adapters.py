"""
Adapter tests over httpx.MockTransport: no network is touched.
"""

import json
import pytest
import httpx
from decimal import Decimal

from core.trading.interfaces import ExchangeGateway, PriceFeed
from core.trading.models import OrderRequest, Side, TradeProposal
from core.utils.exceptions import GatewayTransportError, PriceFeedError
from services.gateway.edge_function_gateway import EdgeFunctionGateway
from services.pricing.coingecko_feed import CoinGeckoPriceFeed

GATEWAY_URL = "https://gateway.test/functions/v1/kraken-api"


def client_for(handler):
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


class TestEdgeFunctionGateway:

    @pytest.mark.asyncio
    async def test_get_balance_posts_action_and_credentials(self, credentials):
        seen = {}

        def handler(request):
            seen["body"] = json.loads(request.content)
            seen["auth"] = request.headers.get("Authorization")
            return httpx.Response(200, json={"error": [], "result": {"ZUSD": "10.0"}})

        async with client_for(handler) as client:
            gateway = EdgeFunctionGateway(GATEWAY_URL, token="anon-token", client=client)
            payload = await gateway.get_balance(credentials)

        assert payload == {"error": [], "result": {"ZUSD": "10.0"}}
        assert seen["body"] == {"action": "getBalance", "apiKey": "test_key", "apiSecret": "test_secret"}
        assert seen["auth"] == "Bearer anon-token"

    @pytest.mark.asyncio
    async def test_place_order_sends_order_fields(self, credentials):
        seen = {}

        def handler(request):
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"error": [], "result": {"txid": ["OTX-9"]}})

        order = OrderRequest.from_proposal(
            TradeProposal(pair="BTC/USD", side=Side.SELL, amount=Decimal("0.019")), "XBTUSD")

        async with client_for(handler) as client:
            gateway = EdgeFunctionGateway(GATEWAY_URL, client=client)
            payload = await gateway.place_order(credentials, order)

        assert payload["result"]["txid"] == ["OTX-9"]
        assert seen["body"]["action"] == "placeOrder"
        assert seen["body"]["pair"] == "XBTUSD"
        assert seen["body"]["type"] == "sell"
        assert seen["body"]["ordertype"] == "market"
        assert seen["body"]["volume"] == "0.019"
        assert "price" not in seen["body"]

    @pytest.mark.asyncio
    async def test_business_errors_are_returned_not_raised(self, credentials):
        def handler(request):
            return httpx.Response(200, json={"error": ["EOrder:Insufficient funds"]})

        async with client_for(handler) as client:
            payload = await EdgeFunctionGateway(GATEWAY_URL, client=client).get_balance(credentials)

        assert payload == {"error": ["EOrder:Insufficient funds"]}

    @pytest.mark.asyncio
    async def test_http_error_status_raises_transport_error(self, credentials):
        def handler(request):
            return httpx.Response(500, text="internal error")

        async with client_for(handler) as client:
            gateway = EdgeFunctionGateway(GATEWAY_URL, client=client)
            with pytest.raises(GatewayTransportError) as exc_info:
                await gateway.get_balance(credentials)

        assert exc_info.value.status_code == 500
        assert exc_info.value.operation == "getBalance"

    @pytest.mark.asyncio
    async def test_connection_error_raises_transport_error(self, credentials):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        async with client_for(handler) as client:
            gateway = EdgeFunctionGateway(GATEWAY_URL, client=client)
            with pytest.raises(GatewayTransportError):
                await gateway.get_balance(credentials)

    @pytest.mark.asyncio
    async def test_invalid_url_raises_transport_error(self, credentials):
        def handler(request):
            raise AssertionError("no request expected")

        async with client_for(handler) as client:
            gateway = EdgeFunctionGateway("https://gateway.test:99999/kraken-api", client=client)
            with pytest.raises(GatewayTransportError) as exc_info:
                await gateway.get_balance(credentials)

        assert exc_info.value.operation == "getBalance"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("content", [b"<html>oops</html>", b"[1, 2, 3]"])
    async def test_non_object_body_raises_transport_error(self, credentials, content):
        def handler(request):
            return httpx.Response(200, content=content)

        async with client_for(handler) as client:
            gateway = EdgeFunctionGateway(GATEWAY_URL, client=client)
            with pytest.raises(GatewayTransportError):
                await gateway.get_balance(credentials)


class TestCoinGeckoPriceFeed:

    @pytest.mark.asyncio
    async def test_prices_mapped_back_to_asset_codes(self):
        seen = {}

        def handler(request):
            seen["params"] = dict(request.url.params)
            return httpx.Response(200, json={"bitcoin": {"usd": 61000}, "ethereum": {"usd": 3000.5}})

        async with client_for(handler) as client:
            feed = CoinGeckoPriceFeed(base_url="https://prices.test/api/v3", client=client)
            prices = await feed.get_spot_prices(["XXBT", "XETH", "DOT"])

        assert prices == {"XXBT": 61000.0, "XETH": 3000.5}
        assert seen["params"]["vs_currencies"] == "usd"
        assert set(seen["params"]["ids"].split(",")) == {"bitcoin", "ethereum", "polkadot"}

    @pytest.mark.asyncio
    async def test_unknown_assets_skip_the_request(self):
        def handler(request):
            raise AssertionError("no request expected")

        async with client_for(handler) as client:
            feed = CoinGeckoPriceFeed(client=client)
            assert await feed.get_spot_prices(["FOO"]) == {}

    @pytest.mark.asyncio
    async def test_http_error_raises_price_feed_error(self):
        def handler(request):
            return httpx.Response(429, json={"status": "rate limited"})

        async with client_for(handler) as client:
            feed = CoinGeckoPriceFeed(client=client)
            with pytest.raises(PriceFeedError):
                await feed.get_spot_prices(["XXBT"])


def test_adapters_satisfy_protocols():
    assert isinstance(EdgeFunctionGateway(GATEWAY_URL), ExchangeGateway)
    assert isinstance(CoinGeckoPriceFeed(), PriceFeed)
