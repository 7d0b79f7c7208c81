import asyncio
import pytest
from decimal import Decimal
from unittest.mock import AsyncMock

from core.utils.exceptions import PriceFeedError
from services.pricing.oracle import (
    FALLBACK_PRICES,
    PriceOracle,
    fallback_price_table,
    price_table_lookup,
)


class TestPriceOracle:

    @pytest.mark.asyncio
    async def test_prices_include_short_codes_and_usd(self, mock_price_feed, clock):
        oracle = PriceOracle(mock_price_feed, refresh_interval=60.0, clock=clock)
        prices = await oracle.get_prices()

        assert prices["XXBT"] == Decimal("50000.0")
        assert prices["XBT"] == prices["XXBT"]
        assert prices["ETH"] == prices["XETH"]
        assert prices["ZUSD"] == Decimal("1")
        assert prices["USD"] == Decimal("1")

    @pytest.mark.asyncio
    async def test_feed_queried_for_all_supported_assets(self, mock_price_feed, clock):
        oracle = PriceOracle(mock_price_feed, clock=clock)
        await oracle.get_prices()

        assets = mock_price_feed.get_spot_prices.await_args.args[0]
        assert set(assets) == set(FALLBACK_PRICES)

    @pytest.mark.asyncio
    async def test_reads_within_interval_hit_feed_once(self, mock_price_feed, clock):
        oracle = PriceOracle(mock_price_feed, refresh_interval=60.0, clock=clock)
        await oracle.get_prices()
        clock.advance(59)
        await oracle.get_prices()
        assert mock_price_feed.get_spot_prices.await_count == 1

        clock.advance(2)
        await oracle.get_prices()
        assert mock_price_feed.get_spot_prices.await_count == 2

    @pytest.mark.asyncio
    async def test_feed_failure_serves_fallback_table(self, clock):
        feed = AsyncMock()
        feed.get_spot_prices.side_effect = PriceFeedError("feed down")
        oracle = PriceOracle(feed, refresh_interval=60.0, clock=clock)

        prices = await oracle.get_prices()

        assert prices == fallback_price_table()
        assert prices["XXBT"] == Decimal("45000")

    @pytest.mark.asyncio
    async def test_fallback_counts_as_fresh_for_one_interval(self, clock):
        feed = AsyncMock()
        feed.get_spot_prices.side_effect = RuntimeError("boom")
        oracle = PriceOracle(feed, refresh_interval=60.0, clock=clock)

        await oracle.get_prices()
        await oracle.get_prices()
        assert feed.get_spot_prices.await_count == 1

    @pytest.mark.asyncio
    async def test_missing_and_invalid_fields_fall_back_per_asset(self, clock):
        feed = AsyncMock()
        feed.get_spot_prices.return_value = {"XXBT": 61000.0, "XETH": -5, "XXRP": "nan"}
        oracle = PriceOracle(feed, clock=clock)

        prices = await oracle.get_prices()

        assert prices["XXBT"] == Decimal("61000.0")
        assert prices["XETH"] == FALLBACK_PRICES["XETH"]
        assert prices["XXRP"] == FALLBACK_PRICES["XXRP"]
        assert prices["DOT"] == FALLBACK_PRICES["DOT"]

    @pytest.mark.asyncio
    async def test_concurrent_readers_share_one_refresh(self, clock):
        calls = 0

        async def slow_prices(assets):
            nonlocal calls
            calls += 1
            await asyncio.sleep(0.01)
            return {"XXBT": 50000.0}

        feed = AsyncMock()
        feed.get_spot_prices.side_effect = slow_prices
        oracle = PriceOracle(feed, clock=clock)

        results = await asyncio.gather(*(oracle.get_prices() for _ in range(5)))

        assert calls == 1
        assert all(r["XXBT"] == Decimal("50000.0") for r in results)

    @pytest.mark.asyncio
    async def test_price_of_unknown_asset_is_one(self, mock_price_feed, clock):
        oracle = PriceOracle(mock_price_feed, clock=clock)
        assert await oracle.price_of("SOL") == Decimal("1")
        assert await oracle.price_of("XBT") == Decimal("50000.0")


def test_price_lookup_prefers_normalized_code():
    prices = {"XXBT": Decimal("50000"), "BTC": Decimal("1")}
    assert price_table_lookup(prices, "BTC", normalized="XXBT") == Decimal("50000")
    assert price_table_lookup(prices, "UNKNOWN") == Decimal("1")


def test_zero_price_treated_as_missing():
    assert price_table_lookup({"DOT": Decimal("0")}, "DOT") == Decimal("1")
