"""Pytest configuration and fixtures."""

from collections.abc import Callable
from datetime import UTC, datetime
from decimal import Decimal
from typing import Any

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from solana_whale_tracker.aggregator.models import MarketSnapshot
from solana_whale_tracker.storage.database import DatabaseManager
from solana_whale_tracker.storage.models import Base
from solana_whale_tracker.storage.repos import TransactionDTO

TOKEN_MINT = "DnUsQnwNot38V9JbisNC18VHZkae1eKK5N2Dgy55pump"


@pytest.fixture
def token_mint() -> str:
    """Mint of the tracked token."""
    return TOKEN_MINT


@pytest.fixture
async def async_engine():
    """Create an async SQLite engine shared by every session in a test."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        echo=False,
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
async def async_session(async_engine) -> AsyncSession:
    """Create an async session for testing."""
    session_factory = async_sessionmaker(bind=async_engine, expire_on_commit=False)
    async with session_factory() as session:
        yield session


@pytest.fixture
def db(async_engine) -> DatabaseManager:
    """Database manager bound to the in-memory engine."""
    return DatabaseManager.from_engine(async_engine)


def _make_transaction(
    signature: str,
    amount: str,
    *,
    whale_address: str = "Whale1111111111111111111111111111",
    type: str = "buy",
    price: str = "0.5",
    block_time: datetime | None = None,
) -> TransactionDTO:
    amount_dec = Decimal(amount)
    price_dec = Decimal(price)
    return TransactionDTO(
        signature=signature,
        whale_address=whale_address,
        type=type,
        amount=amount_dec,
        price=price_dec,
        value_usd=(amount_dec * price_dec).quantize(Decimal("0.01")),
        block_time=block_time or datetime.now(UTC),
    )


@pytest.fixture
def transaction_factory() -> Callable[..., TransactionDTO]:
    """Build transaction DTOs; value_usd is amount times price."""
    return _make_transaction


@pytest.fixture
def snapshot_factory() -> Callable[..., MarketSnapshot]:
    """Build market snapshots with sensible defaults."""

    def factory(**kwargs: Any) -> MarketSnapshot:
        whales = tuple(kwargs.pop("whales", ()))
        values: dict[str, Any] = {
            "whales": whales,
            "transactions": tuple(kwargs.pop("transactions", ())),
            "price": Decimal("0.5"),
            "volume_24h": Decimal("0"),
            "avg_transaction_size": Decimal("0"),
            "whale_count": len(whales),
            "as_of": datetime(2026, 10, 19, 12, 0, tzinfo=UTC),
        }
        values.update(kwargs)
        return MarketSnapshot(**values)

    return factory
