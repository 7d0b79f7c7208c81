"""
Pytest configuration and shared fixtures for Order Guard tests.
"""
import pytest
from typing import Any, Dict, List
from unittest.mock import AsyncMock

from pydantic import SecretStr

from core.config.settings import Settings, ExchangeSettings, CacheSettings, ValidationSettings
from core.trading.models import ExchangeCredentials
from services.balances.cache import BalanceCache
from services.execution.executor import OrderExecutor
from services.pairs.normalizer import PairNormalizer
from services.pricing.oracle import PriceOracle


class FakeClock:
    """Manually advanced clock for cache freshness tests."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class RecordingGateway:
    """In-memory gateway returning canned payloads and recording every call."""

    def __init__(self, balance: Dict[str, Any] = None, order_response: Dict[str, Any] = None):
        self.balance_response = {"error": [], "result": balance or {}}
        self.order_response = order_response or {
            "error": [],
            "result": {"txid": ["OABCDE-12345-FGHIJK"], "descr": {"order": "buy 0.01 ETHUSD @ market"}},
        }
        self.balance_calls = 0
        self.orders: List[Any] = []

    async def get_balance(self, credentials):
        self.balance_calls += 1
        return self.balance_response

    async def place_order(self, credentials, order):
        self.orders.append(order)
        return self.order_response


@pytest.fixture
def test_settings():
    """Test settings configuration."""
    return Settings(
        environment="testing",
        exchange=ExchangeSettings(
            api_key="test_key",
            api_secret=SecretStr("test_secret"),
            gateway_url="https://gateway.test/functions/v1/kraken-api",
            gateway_token=SecretStr("anon-token"),
        ),
        cache=CacheSettings(balance_refresh_seconds=30.0, price_refresh_seconds=60.0),
        validation=ValidationSettings(),
    )


@pytest.fixture
def credentials():
    return ExchangeCredentials(api_key="test_key", api_secret=SecretStr("test_secret"))


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def normalizer():
    return PairNormalizer()


@pytest.fixture
def mock_price_feed():
    """Price feed double that is always up with round numbers."""
    feed = AsyncMock()
    feed.get_spot_prices.return_value = {
        "XXBT": 50000.0,
        "XETH": 2500.0,
        "XXRP": 0.5,
        "XLTC": 100.0,
        "ADA": 0.5,
        "DOT": 7.0,
    }
    return feed


@pytest.fixture
def mock_gateway():
    gateway = AsyncMock()
    gateway.get_balance.return_value = {"error": [], "result": {"ZUSD": "1000.0000"}}
    gateway.place_order.return_value = {"error": [], "result": {"txid": ["OTX-1"]}}
    return gateway


@pytest.fixture
def make_executor(credentials, clock, mock_price_feed, normalizer):
    """Build an executor wired to the given gateway and balances."""

    def _make(gateway, settings: ValidationSettings = None) -> OrderExecutor:
        balance_cache = BalanceCache(gateway, credentials, refresh_interval=30.0, clock=clock)
        oracle = PriceOracle(mock_price_feed, refresh_interval=60.0, clock=clock)
        return OrderExecutor(
            gateway, credentials, balance_cache, oracle,
            normalizer=normalizer,
            settings=settings or ValidationSettings(),
        )

    return _make


@pytest.fixture
def recording_gateway():
    return RecordingGateway
