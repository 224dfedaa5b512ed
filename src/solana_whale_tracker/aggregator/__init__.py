"""Market snapshot aggregation and price caching."""

from solana_whale_tracker.aggregator.models import (
    ActivityReport,
    MarketSnapshot,
    WhaleMetrics,
    distribution_score,
)
from solana_whale_tracker.aggregator.price_cache import PriceCache
from solana_whale_tracker.aggregator.snapshot import MarketSnapshotAggregator

__all__ = [
    "ActivityReport",
    "MarketSnapshot",
    "MarketSnapshotAggregator",
    "PriceCache",
    "WhaleMetrics",
    "distribution_score",
]
