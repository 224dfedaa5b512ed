"""Storage layer - Database schemas and repositories."""

from solana_whale_tracker.storage.database import DatabaseManager, create_async_db_engine, to_async_url
from solana_whale_tracker.storage.models import (
    AlertModel,
    AlertTriggerModel,
    Base,
    TransactionModel,
    WhaleModel,
)
from solana_whale_tracker.storage.repos import (
    ActivityStats,
    AlertDTO,
    AlertRepository,
    AlertTriggerDTO,
    AlertTriggerRepository,
    TransactionDTO,
    TransactionRepository,
    WhaleBalanceStats,
    WhaleDTO,
    WhaleRepository,
    WhaleUpsertResult,
    compute_change_pct,
)

__all__ = [
    "ActivityStats",
    "AlertDTO",
    "AlertModel",
    "AlertRepository",
    "AlertTriggerDTO",
    "AlertTriggerModel",
    "AlertTriggerRepository",
    "Base",
    "DatabaseManager",
    "TransactionDTO",
    "TransactionModel",
    "TransactionRepository",
    "WhaleBalanceStats",
    "WhaleDTO",
    "WhaleModel",
    "WhaleRepository",
    "WhaleUpsertResult",
    "compute_change_pct",
    "create_async_db_engine",
    "to_async_url",
]
