"""Tests for market snapshot aggregation."""

from datetime import UTC, datetime, timedelta
from decimal import Decimal
from unittest.mock import AsyncMock

import pytest

from solana_whale_tracker.aggregator.models import distribution_score
from solana_whale_tracker.aggregator.snapshot import MarketSnapshotAggregator
from solana_whale_tracker.storage.database import DatabaseManager
from solana_whale_tracker.storage.repos import TransactionRepository, WhaleRepository

NOW = datetime(2026, 10, 19, 12, 0, tzinfo=UTC)


@pytest.fixture
def price_cache() -> AsyncMock:
    cache = AsyncMock()
    cache.get_price.return_value = Decimal("0.5")
    return cache


@pytest.fixture
def aggregator(db: DatabaseManager, price_cache: AsyncMock) -> MarketSnapshotAggregator:
    return MarketSnapshotAggregator(db, price_cache, window_hours=24, top_whales=100)


@pytest.fixture
async def seeded_db(db: DatabaseManager, transaction_factory) -> DatabaseManager:
    async with db.get_async_session() as session:
        whales = WhaleRepository(session)
        await whales.upsert_balance("WhaleA", Decimal("300000"), observed_at=NOW)
        await whales.upsert_balance("WhaleB", Decimal("100000"), observed_at=NOW)
        await whales.upsert_balance("WhaleC", Decimal("150000"), observed_at=NOW)
        await whales.deactivate_missing(["WhaleA", "WhaleB"])

        txs = TransactionRepository(session)
        await txs.insert(
            transaction_factory("recent-buy", "400000", whale_address="WhaleA", block_time=NOW - timedelta(hours=2))
        )
        await txs.insert(
            transaction_factory(
                "recent-sell", "200000", whale_address="WhaleB", type="sell", block_time=NOW - timedelta(hours=20)
            )
        )
        await txs.insert(
            transaction_factory("stale", "900000", whale_address="WhaleA", block_time=NOW - timedelta(hours=30))
        )
    return db


class TestDistributionScore:
    """Tests for distribution_score."""

    def test_single_holder_scores_zero(self) -> None:
        assert distribution_score(Decimal("500"), Decimal("500")) == Decimal("0")

    def test_no_supply_scores_zero(self) -> None:
        assert distribution_score(Decimal("0"), Decimal("0")) == Decimal("0")

    def test_spread_supply(self) -> None:
        assert distribution_score(Decimal("25"), Decimal("100")) == Decimal("75.00")

    def test_rounds_to_two_decimals(self) -> None:
        assert distribution_score(Decimal("1"), Decimal("3")) == Decimal("66.67")

    def test_clamped_to_range(self) -> None:
        assert distribution_score(Decimal("150"), Decimal("100")) == Decimal("0")
        assert distribution_score(Decimal("-10"), Decimal("100")) == Decimal("100")


class TestBuildSnapshot:
    """Tests for MarketSnapshotAggregator.build_snapshot."""

    @pytest.mark.asyncio
    async def test_snapshot_covers_trailing_window(
        self, seeded_db: DatabaseManager, aggregator: MarketSnapshotAggregator
    ) -> None:
        snapshot = await aggregator.build_snapshot(NOW)

        assert snapshot.as_of == NOW
        assert snapshot.price == Decimal("0.5")
        assert snapshot.whale_count == 2
        assert [w.address for w in snapshot.whales] == ["WhaleA", "WhaleB"]
        assert [t.signature for t in snapshot.transactions] == ["recent-buy", "recent-sell"]
        assert snapshot.volume_24h == Decimal("300000.00")
        assert snapshot.avg_transaction_size == Decimal("300000")
        assert snapshot.buy_count == 1
        assert snapshot.sell_count == 1
        assert snapshot.distribution_score == Decimal("25.00")

    @pytest.mark.asyncio
    async def test_empty_registry(self, aggregator: MarketSnapshotAggregator) -> None:
        snapshot = await aggregator.build_snapshot(NOW)

        assert snapshot.whale_count == 0
        assert snapshot.transactions == ()
        assert snapshot.volume_24h == Decimal("0")
        assert snapshot.avg_transaction_size == Decimal("0")
        assert snapshot.distribution_score == Decimal("0")

    @pytest.mark.asyncio
    async def test_to_dict_is_json_safe(
        self, seeded_db: DatabaseManager, aggregator: MarketSnapshotAggregator
    ) -> None:
        data = (await aggregator.build_snapshot(NOW)).to_dict()

        assert data["volume_24h"] == "300000.00"
        assert data["whale_count"] == 2
        assert data["transactions"][0]["signature"] == "recent-buy"


class TestMetrics:
    """Tests for whale metrics and activity stats."""

    @pytest.mark.asyncio
    async def test_whale_metrics(self, seeded_db: DatabaseManager, aggregator: MarketSnapshotAggregator) -> None:
        metrics = await aggregator.get_whale_metrics()

        assert metrics.total_whales == 2
        assert metrics.total_balance == Decimal("400000")
        assert metrics.top_whale_balance == Decimal("300000")
        assert metrics.distribution_score == Decimal("25.00")
        assert metrics.to_dict()["price"] == "0.5"

    @pytest.mark.asyncio
    async def test_unknown_timeframe_falls_back_to_24h(
        self, aggregator: MarketSnapshotAggregator
    ) -> None:
        report = await aggregator.get_activity_stats("90d")
        assert report.timeframe == "24h"

    @pytest.mark.asyncio
    async def test_activity_stats_counts_recent(
        self, db: DatabaseManager, aggregator: MarketSnapshotAggregator, transaction_factory
    ) -> None:
        now = datetime.now(UTC)
        async with db.get_async_session() as session:
            txs = TransactionRepository(session)
            await txs.insert(transaction_factory("a", "20000", block_time=now - timedelta(minutes=10)))
            await txs.insert(transaction_factory("b", "20000", type="sell", block_time=now - timedelta(hours=3)))

        hourly = await aggregator.get_activity_stats("1h")
        daily = await aggregator.get_activity_stats("24h")

        assert hourly.total_transactions == 1
        assert daily.total_transactions == 2
        assert daily.sell_transactions == 1
