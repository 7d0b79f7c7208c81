"""
Account balance cache in front of the remote gateway.

Balances are read through with a refresh window and invalidated after every
successful order. A failed refresh raises: validating against wrong balances
is worse than not validating at all.
"""

import asyncio
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Mapping

from core.logging import get_logger
from core.trading.cache_state import CacheState, Clock, monotonic_clock, snapshot
from core.trading.interfaces import ExchangeGateway
from core.trading.models import (
    AssetBalance,
    AssetHolding,
    ExchangeCredentials,
    ExchangeErrorKind,
    PortfolioSummary,
)
from core.trading.error_classifier import classify_error_list
from core.utils.exceptions import BalanceFetchError, GatewayTransportError, create_error_context
from services.pricing.oracle import price_table_lookup

logger = get_logger(__name__, component="balance_cache")

# Holdings at or below this are left out of portfolio summaries
DUST_THRESHOLD = Decimal("0.0001")


class BalanceCache:
    """Read-through cache of per-asset balances for one credential set."""

    def __init__(self, gateway: ExchangeGateway, credentials: ExchangeCredentials,
                 refresh_interval: float = 30.0, clock: Clock = monotonic_clock):
        self.gateway = gateway
        self.credentials = credentials
        self.clock = clock
        self._state: CacheState[AssetBalance] = CacheState(refresh_interval=refresh_interval)
        self._refresh_lock = asyncio.Lock()
        # Bumped by every invalidate so an in-flight fetch cannot mark itself fresh
        self._generation = 0

    @property
    def state(self) -> CacheState[AssetBalance]:
        return self._state

    async def get_balances(self, force_refresh: bool = False) -> AssetBalance:
        if self._state.needs_refresh(self.clock(), force_refresh):
            async with self._refresh_lock:
                # A forced read always refetches; otherwise re-check after waiting
                if force_refresh or self._state.needs_refresh(self.clock()):
                    generation = self._generation
                    balances = await self._fetch()
                    self._state = self._state.refreshed(balances, self.clock())
                    if generation != self._generation:
                        logger.debug("Balances invalidated during refresh")
                        self._state = self._state.invalidated()
        return snapshot(self._state.value)

    def invalidate(self) -> None:
        """Force the next read to go to the gateway."""
        self._generation += 1
        self._state = self._state.invalidated()
        logger.debug("Balance cache invalidated")

    async def test_connection(self) -> bool:
        logger.info("Testing exchange connection...")
        try:
            await self.get_balances(force_refresh=True)
        except BalanceFetchError as e:
            logger.error("Exchange connection test failed", **create_error_context(e, "test_connection"))
            return False
        logger.info("Exchange connection test successful")
        return True

    def portfolio_summary(self, prices: Mapping[str, Decimal]) -> PortfolioSummary:
        """Per-asset USD valuation of the cached balances."""
        holdings: Dict[str, AssetHolding] = {}
        total = Decimal("0")
        for asset, balance in (self._state.value or {}).items():
            if balance > DUST_THRESHOLD:
                usd_value = balance * price_table_lookup(prices, asset)
                holdings[asset] = AssetHolding(balance=balance, usd_value=usd_value)
                total += usd_value
        return PortfolioSummary(holdings=holdings, total_usd_value=total)

    async def _fetch(self) -> AssetBalance:
        logger.info("Fetching account balance...")
        try:
            response = await self.gateway.get_balance(self.credentials)
        except GatewayTransportError as e:
            logger.error("Gateway invocation failed", **create_error_context(e, "get_balance"))
            raise BalanceFetchError(
                f"Function invocation failed: {e.message}",
                kind=ExchangeErrorKind.UNCLASSIFIED,
                raw_message=e.message,
                details={"transport": True},
            ) from e
        except Exception as e:
            logger.error("Unexpected gateway failure", **create_error_context(e, "get_balance"))
            raise BalanceFetchError(
                f"Function invocation failed: {str(e) or type(e).__name__}",
                kind=ExchangeErrorKind.UNCLASSIFIED,
                raw_message=str(e) or type(e).__name__,
                details={"transport": True},
            ) from e

        balances = self._parse_response(response)
        logger.info("Portfolio balance updated", assets=len(balances))
        return balances

    def _parse_response(self, response: Any) -> AssetBalance:
        if not isinstance(response, Mapping):
            raise self._malformed("Balance response is not an object", response)

        errors = response.get("error")
        if isinstance(errors, str):
            errors = [errors]
        if errors:
            kind, raw_message = classify_error_list(errors)
            logger.error("Exchange returned error", error_kind=kind.value, raw_message=raw_message)
            raise BalanceFetchError(f"Exchange error: {raw_message}", kind=kind, raw_message=raw_message)

        result = response.get("result")
        if not isinstance(result, Mapping):
            raise self._malformed("No balance data received from exchange", response)

        balances: AssetBalance = {}
        for asset, raw in result.items():
            try:
                quantity = Decimal(str(raw))
            except (InvalidOperation, ValueError):
                raise self._malformed(f"Unparsable balance for {asset}: {raw!r}", response)
            if not quantity.is_finite() or quantity < 0:
                raise self._malformed(f"Invalid balance for {asset}: {raw!r}", response)
            balances[str(asset)] = quantity
        return balances

    @staticmethod
    def _malformed(message: str, response: Any) -> BalanceFetchError:
        logger.error(message, response=repr(response)[:500])
        return BalanceFetchError(
            message,
            kind=ExchangeErrorKind.UNCLASSIFIED,
            raw_message=message,
            details={"malformed": True},
        )
