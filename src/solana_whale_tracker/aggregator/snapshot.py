"""Market snapshot aggregation.

Builds the point-in-time view the alert engine evaluates against, plus the
whale metrics and activity summaries published to live subscribers.
"""

import logging
from datetime import UTC, datetime, timedelta
from decimal import Decimal
from typing import TYPE_CHECKING

from solana_whale_tracker.aggregator.models import (
    ActivityReport,
    MarketSnapshot,
    WhaleMetrics,
    distribution_score,
)
from solana_whale_tracker.storage.repos import TransactionRepository, WhaleRepository

if TYPE_CHECKING:
    from solana_whale_tracker.aggregator.price_cache import PriceCache
    from solana_whale_tracker.storage.database import DatabaseManager

logger = logging.getLogger(__name__)

DEFAULT_WINDOW_HOURS = 24
DEFAULT_TOP_WHALES = 100

TIMEFRAMES: dict[str, timedelta] = {
    "1h": timedelta(hours=1),
    "24h": timedelta(hours=24),
    "7d": timedelta(days=7),
}


class MarketSnapshotAggregator:
    """Reads the registry and transaction history into snapshots.

    Read-only apart from the price cache it refreshes.
    """

    def __init__(
        self,
        db: "DatabaseManager",
        price_cache: "PriceCache",
        *,
        window_hours: int = DEFAULT_WINDOW_HOURS,
        top_whales: int = DEFAULT_TOP_WHALES,
    ) -> None:
        self._db = db
        self._price_cache = price_cache
        self._window = timedelta(hours=window_hours)
        self._top_whales = top_whales

    async def build_snapshot(self, now: datetime | None = None) -> MarketSnapshot:
        """Build a fresh snapshot of the trailing window ending at ``now``."""
        as_of = now or datetime.now(UTC)
        since = as_of - self._window

        price = await self._price_cache.get_price()
        async with self._db.get_async_session() as session:
            whale_repo = WhaleRepository(session)
            whales = await whale_repo.list_top_active(self._top_whales)
            balance_stats = await whale_repo.get_balance_stats()
            transactions = await TransactionRepository(session).list_since(since)

        amounts = [t.amount for t in transactions]
        volume = sum((t.value_usd for t in transactions), Decimal("0"))
        avg_size = sum(amounts, Decimal("0")) / len(amounts) if amounts else Decimal("0")

        snapshot = MarketSnapshot(
            whales=tuple(whales),
            transactions=tuple(transactions),
            price=price,
            volume_24h=volume,
            avg_transaction_size=avg_size,
            whale_count=balance_stats.whale_count,
            as_of=as_of,
            buy_count=sum(1 for t in transactions if t.type == "buy"),
            sell_count=sum(1 for t in transactions if t.type == "sell"),
            distribution_score=distribution_score(
                balance_stats.max_balance, balance_stats.total_balance
            ),
        )
        logger.debug(
            "Built snapshot: %d whales, %d transactions, volume=%s, price=%s",
            snapshot.whale_count,
            len(transactions),
            volume,
            price,
        )
        return snapshot

    async def get_whale_metrics(self) -> WhaleMetrics:
        """Aggregate balance metrics over active whales."""
        price = await self._price_cache.get_price()
        async with self._db.get_async_session() as session:
            stats = await WhaleRepository(session).get_balance_stats()
        return WhaleMetrics(
            total_whales=stats.whale_count,
            total_balance=stats.total_balance,
            avg_balance=stats.avg_balance,
            top_whale_balance=stats.max_balance,
            distribution_score=distribution_score(stats.max_balance, stats.total_balance),
            price=price,
            as_of=datetime.now(UTC),
        )

    async def get_activity_stats(self, timeframe: str = "24h") -> ActivityReport:
        """Transaction activity over ``1h``, ``24h`` or ``7d``.

        Unknown timeframes fall back to ``24h``.
        """
        if timeframe not in TIMEFRAMES:
            logger.debug("Unknown timeframe %r, using 24h", timeframe)
            timeframe = "24h"
        since = datetime.now(UTC) - TIMEFRAMES[timeframe]
        async with self._db.get_async_session() as session:
            stats = await TransactionRepository(session).activity_stats(since)
        return ActivityReport(
            timeframe=timeframe,
            since=since,
            total_transactions=stats.total_transactions,
            total_volume_usd=stats.total_volume_usd,
            buy_transactions=stats.buy_transactions,
            sell_transactions=stats.sell_transactions,
            avg_transaction_size=stats.avg_transaction_size,
        )
