# Dependency injection container for the order guard core
from dataclasses import dataclass
from typing import Dict, Optional

import httpx
from dependency_injector import containers, providers

from core.config.settings import Settings
from core.trading.cache_state import Clock, monotonic_clock
from core.trading.interfaces import ExchangeGateway, PriceFeed
from core.trading.models import ExchangeCredentials
from services.balances.cache import BalanceCache
from services.diagnostics.trade_debugger import TradeDebugger
from services.execution.executor import OrderExecutor
from services.gateway.edge_function_gateway import EdgeFunctionGateway
from services.pairs.normalizer import PairNormalizer
from services.pricing.coingecko_feed import CoinGeckoPriceFeed
from services.pricing.oracle import PriceOracle


def credentials_from_settings(settings: Settings) -> Optional[ExchangeCredentials]:
    """Configured credentials, or None when the account is not set up."""
    if not settings.has_credentials():
        return None
    return ExchangeCredentials(
        api_key=settings.exchange.api_key,
        api_secret=settings.exchange.api_secret,
    )


def build_gateway(settings: Settings, client: Optional[httpx.AsyncClient] = None) -> EdgeFunctionGateway:
    return EdgeFunctionGateway(
        url=settings.exchange.gateway_url,
        token=settings.exchange.gateway_token.get_secret_value(),
        timeout=settings.exchange.request_timeout_seconds,
        client=client,
    )


@dataclass
class ExchangeSession:
    """Caches and executor bound to one credential set."""
    credentials: ExchangeCredentials
    balance_cache: BalanceCache
    price_oracle: PriceOracle
    executor: OrderExecutor


class ExchangeSessionRegistry:
    """One session per (exchange, credentials) for the process lifetime.

    Two callers holding the same API key share one balance cache, so an
    order placed by either invalidates the balances both see.
    """

    def __init__(self, settings: Settings, gateway: ExchangeGateway, price_feed: PriceFeed,
                 normalizer: Optional[PairNormalizer] = None, clock: Clock = monotonic_clock):
        self.settings = settings
        self.gateway = gateway
        self.price_feed = price_feed
        self.normalizer = normalizer or PairNormalizer()
        self.clock = clock
        self._sessions: Dict[str, ExchangeSession] = {}

    def session(self, credentials: ExchangeCredentials) -> ExchangeSession:
        key = f"{self.settings.exchange.name}:{credentials.cache_key}"
        existing = self._sessions.get(key)
        if existing is not None:
            return existing

        balance_cache = BalanceCache(
            self.gateway, credentials,
            refresh_interval=self.settings.cache.balance_refresh_seconds,
            clock=self.clock,
        )
        price_oracle = PriceOracle(
            self.price_feed,
            refresh_interval=self.settings.cache.price_refresh_seconds,
            clock=self.clock,
        )
        executor = OrderExecutor(
            self.gateway, credentials, balance_cache, price_oracle,
            normalizer=self.normalizer,
            settings=self.settings.validation,
            exchange_name=self.settings.exchange.name,
        )
        session = ExchangeSession(credentials, balance_cache, price_oracle, executor)
        self._sessions[key] = session
        return session

    def __len__(self) -> int:
        return len(self._sessions)


class AppContainer(containers.DeclarativeContainer):
    """Application dependency injection container"""

    # Configuration
    settings = providers.Singleton(Settings)

    credentials = providers.Singleton(credentials_from_settings, settings=settings)

    clock = providers.Object(monotonic_clock)

    # Shared HTTP connection pool for the gateway and the price feed
    http_client = providers.Singleton(httpx.AsyncClient)

    gateway = providers.Singleton(build_gateway, settings=settings, client=http_client)

    price_feed = providers.Singleton(
        CoinGeckoPriceFeed,
        base_url=settings.provided.price_feed.base_url,
        timeout=settings.provided.price_feed.timeout_seconds,
        client=http_client,
    )

    pair_normalizer = providers.Singleton(PairNormalizer)

    price_oracle = providers.Singleton(
        PriceOracle,
        feed=price_feed,
        refresh_interval=settings.provided.cache.price_refresh_seconds,
        clock=clock,
    )

    balance_cache = providers.Singleton(
        BalanceCache,
        gateway=gateway,
        credentials=credentials,
        refresh_interval=settings.provided.cache.balance_refresh_seconds,
        clock=clock,
    )

    order_executor = providers.Factory(
        OrderExecutor,
        gateway=gateway,
        credentials=credentials,
        balance_cache=balance_cache,
        price_oracle=price_oracle,
        normalizer=pair_normalizer,
        settings=settings.provided.validation,
        exchange_name=settings.provided.exchange.name,
    )

    trade_debugger = providers.Factory(
        TradeDebugger,
        executor=order_executor,
        credentials=credentials,
    )
