"""Tests for the price cache."""

import asyncio
from decimal import Decimal
from unittest.mock import AsyncMock

import pytest

from solana_whale_tracker.aggregator.price_cache import PriceCache
from solana_whale_tracker.exceptions import SourceUnavailable


class FakeClock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def client() -> AsyncMock:
    client = AsyncMock()
    client.get_current_price.return_value = Decimal("0.0123")
    return client


class TestPriceCache:
    """Tests for PriceCache."""

    @pytest.mark.asyncio
    async def test_reuses_price_within_ttl(self, client: AsyncMock, clock: FakeClock) -> None:
        cache = PriceCache(client, ttl_seconds=60, clock=clock)

        assert await cache.get_price() == Decimal("0.0123")
        clock.now += 30
        assert await cache.get_price() == Decimal("0.0123")

        assert client.get_current_price.await_count == 1

    @pytest.mark.asyncio
    async def test_refreshes_after_ttl(self, client: AsyncMock, clock: FakeClock) -> None:
        cache = PriceCache(client, ttl_seconds=60, clock=clock)
        await cache.get_price()

        client.get_current_price.return_value = Decimal("0.02")
        clock.now += 61

        assert await cache.get_price() == Decimal("0.02")
        assert client.get_current_price.await_count == 2

    @pytest.mark.asyncio
    async def test_serves_stale_price_when_source_fails(
        self, client: AsyncMock, clock: FakeClock
    ) -> None:
        cache = PriceCache(client, ttl_seconds=60, clock=clock)
        await cache.get_price()

        client.get_current_price.side_effect = SourceUnavailable("price API down")
        clock.now += 120

        assert await cache.get_price() == Decimal("0.0123")
        assert cache.last_price == Decimal("0.0123")

    @pytest.mark.asyncio
    async def test_zero_when_never_fetched(self, client: AsyncMock, clock: FakeClock) -> None:
        client.get_current_price.side_effect = SourceUnavailable("price API down")
        cache = PriceCache(client, ttl_seconds=60, clock=clock)

        assert await cache.get_price() == Decimal("0")
        assert cache.last_price is None

    @pytest.mark.asyncio
    async def test_concurrent_callers_share_one_fetch(self, client: AsyncMock, clock: FakeClock) -> None:
        async def slow_price() -> Decimal:
            await asyncio.sleep(0.01)
            return Decimal("0.5")

        client.get_current_price.side_effect = slow_price
        cache = PriceCache(client, ttl_seconds=60, clock=clock)

        prices = await asyncio.gather(*(cache.get_price() for _ in range(5)))

        assert prices == [Decimal("0.5")] * 5
        assert client.get_current_price.await_count == 1

    @pytest.mark.asyncio
    async def test_invalidate_forces_refresh(self, client: AsyncMock, clock: FakeClock) -> None:
        cache = PriceCache(client, ttl_seconds=60, clock=clock)
        await cache.get_price()

        cache.invalidate()
        await cache.get_price()

        assert client.get_current_price.await_count == 2
