"""Repository pattern implementations for data access.

This module provides clean data access abstractions for whale accounts,
whale transactions, alert definitions and alert triggers.
"""

from __future__ import annotations

import copy
import logging
from dataclasses import dataclass
from datetime import UTC, datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Any

from sqlalchemy import func, select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert

from solana_whale_tracker.exceptions import PersistenceConflict
from solana_whale_tracker.storage.models import (
    AlertModel,
    AlertTriggerModel,
    TransactionModel,
    WhaleModel,
)

if TYPE_CHECKING:
    from collections.abc import Iterable

    from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)

_ZERO = Decimal("0")
_HUNDRED = Decimal("100")


def _as_utc(value: datetime | None) -> datetime | None:
    """Attach UTC to naive datetimes (SQLite drops tzinfo on the way back)."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


def _as_decimal(value: Any) -> Decimal:
    if value is None:
        return _ZERO
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def _dialect_insert(session: AsyncSession, model: type[Any]) -> Any:
    """Return a dialect-specific INSERT supporting ON CONFLICT clauses.

    Built against the table so value keys are column names.
    """
    if session.get_bind().dialect.name == "postgresql":
        return pg_insert(model.__table__)
    return sqlite_insert(model.__table__)


def compute_change_pct(old_balance: Decimal, new_balance: Decimal) -> Decimal:
    """Percent change from ``old_balance`` to ``new_balance``.

    Returns 0 when the prior balance is zero rather than dividing by it.
    """
    if old_balance == 0:
        return _ZERO
    return (new_balance - old_balance) / old_balance * _HUNDRED


# ============================================================================
# Whales
# ============================================================================


@dataclass
class WhaleDTO:
    """Data transfer object for whale accounts."""

    address: str
    balance: Decimal
    balance_usd: Decimal | None = None
    change_24h: Decimal = _ZERO
    transaction_count_24h: int = 0
    last_activity: datetime | None = None
    first_seen: datetime | None = None
    is_active: bool = True
    updated_at: datetime | None = None

    @classmethod
    def from_model(cls, model: WhaleModel) -> WhaleDTO:
        """Create DTO from SQLAlchemy model."""
        return cls(
            address=model.address,
            balance=_as_decimal(model.balance),
            balance_usd=_as_decimal(model.balance_usd) if model.balance_usd is not None else None,
            change_24h=_as_decimal(model.change_24h),
            transaction_count_24h=model.transaction_count_24h or 0,
            last_activity=_as_utc(model.last_activity),
            first_seen=_as_utc(model.first_seen),
            is_active=bool(model.is_active),
            updated_at=_as_utc(model.updated_at),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "address": self.address,
            "balance": str(self.balance),
            "balance_usd": str(self.balance_usd) if self.balance_usd is not None else None,
            "change_24h": str(self.change_24h),
            "transaction_count_24h": self.transaction_count_24h,
            "last_activity": self.last_activity.isoformat() if self.last_activity else None,
            "first_seen": self.first_seen.isoformat() if self.first_seen else None,
            "is_active": self.is_active,
        }


@dataclass(frozen=True)
class WhaleUpsertResult:
    """Outcome of a whale upsert."""

    whale: WhaleDTO
    created: bool


@dataclass(frozen=True)
class WhaleBalanceStats:
    """Aggregate balance statistics over active whales."""

    whale_count: int
    total_balance: Decimal
    avg_balance: Decimal
    max_balance: Decimal


class WhaleRepository:
    """Repository for whale account data access."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get_by_address(self, address: str) -> WhaleDTO | None:
        result = await self.session.execute(select(WhaleModel).where(WhaleModel.address == address))
        model = result.scalar_one_or_none()
        return WhaleDTO.from_model(model) if model else None

    async def upsert_balance(
        self,
        address: str,
        balance: Decimal,
        *,
        observed_at: datetime,
        price: Decimal | None = None,
    ) -> WhaleUpsertResult:
        """Insert a newly discovered whale or refresh an existing one.

        On update, ``change_24h`` is computed against the balance stored
        before this call. On insert, ``first_seen`` is set to
        ``observed_at`` and ``change_24h`` to zero. ``first_seen`` is never
        modified afterwards.

        Args:
            address: Owner address of the holder.
            balance: Current token balance.
            observed_at: When the balance was observed.
            price: Optional current token price for ``balance_usd``.

        Returns:
            WhaleUpsertResult with the stored row and whether it was created.
        """
        balance_usd = (balance * price).quantize(Decimal("0.01")) if price else None

        existing = await self.session.execute(
            select(WhaleModel).where(WhaleModel.address == address)
        )
        model = existing.scalar_one_or_none()

        if model is None:
            stmt = _dialect_insert(self.session, WhaleModel).values(
                address=address,
                balance=balance,
                balance_usd=balance_usd,
                change_24h=_ZERO,
                transaction_count_24h=0,
                last_activity=observed_at,
                first_seen=observed_at,
                is_active=True,
                updated_at=observed_at,
            )
            stmt = stmt.on_conflict_do_nothing(index_elements=["address"])
            result = await self.session.execute(stmt)
            if result.rowcount == 1:
                await self.session.flush()
                return WhaleUpsertResult(
                    whale=WhaleDTO(
                        address=address,
                        balance=balance,
                        balance_usd=balance_usd,
                        last_activity=observed_at,
                        first_seen=observed_at,
                        updated_at=observed_at,
                    ),
                    created=True,
                )
            # Lost an insert race with a concurrent writer: fall through to update.
            existing = await self.session.execute(
                select(WhaleModel).where(WhaleModel.address == address)
            )
            model = existing.scalar_one()

        change = compute_change_pct(_as_decimal(model.balance), balance)
        model.balance = balance
        model.balance_usd = balance_usd
        model.change_24h = change.quantize(Decimal("0.0001"))
        model.last_activity = observed_at
        model.is_active = True
        model.updated_at = observed_at
        await self.session.flush()
        return WhaleUpsertResult(whale=WhaleDTO.from_model(model), created=False)

    async def deactivate_missing(self, active_addresses: Iterable[str]) -> int:
        """Soft-deactivate active whales not present in ``active_addresses``.

        Returns:
            Number of whales deactivated.
        """
        keep = set(active_addresses)
        result = await self.session.execute(
            select(WhaleModel.address).where(WhaleModel.is_active.is_(True))
        )
        stale = [addr for addr in result.scalars().all() if addr not in keep]
        if not stale:
            return 0
        await self.session.execute(
            update(WhaleModel)
            .where(WhaleModel.address.in_(stale))
            .values(is_active=False, updated_at=datetime.now(UTC))
        )
        await self.session.flush()
        return len(stale)

    async def record_activity(self, address: str, *, at: datetime) -> None:
        """Bump a whale's activity counter after a new transaction is stored."""
        await self.session.execute(
            update(WhaleModel)
            .where(WhaleModel.address == address)
            .values(
                last_activity=at,
                transaction_count_24h=WhaleModel.transaction_count_24h + 1,
                updated_at=datetime.now(UTC),
            )
        )
        await self.session.flush()

    async def list_top_active(self, limit: int) -> list[WhaleDTO]:
        """Active whales ordered by balance, largest first."""
        result = await self.session.execute(
            select(WhaleModel)
            .where(WhaleModel.is_active.is_(True))
            .order_by(WhaleModel.balance.desc())
            .limit(limit)
        )
        return [WhaleDTO.from_model(m) for m in result.scalars().all()]

    async def count_active(self) -> int:
        result = await self.session.execute(
            select(func.count()).select_from(WhaleModel).where(WhaleModel.is_active.is_(True))
        )
        return int(result.scalar_one())

    async def get_balance_stats(self) -> WhaleBalanceStats:
        """Count, total, average and max balance over active whales."""
        result = await self.session.execute(
            select(
                func.count(),
                func.sum(WhaleModel.balance),
                func.avg(WhaleModel.balance),
                func.max(WhaleModel.balance),
            ).where(WhaleModel.is_active.is_(True))
        )
        count, total, avg, top = result.one()
        return WhaleBalanceStats(
            whale_count=int(count or 0),
            total_balance=_as_decimal(total),
            avg_balance=_as_decimal(avg),
            max_balance=_as_decimal(top),
        )


# ============================================================================
# Transactions
# ============================================================================


@dataclass
class TransactionDTO:
    """Data transfer object for whale transactions."""

    signature: str
    whale_address: str
    type: str
    amount: Decimal
    price: Decimal
    value_usd: Decimal
    block_time: datetime
    slot: int | None = None
    counterparty: str | None = None
    metadata: dict[str, Any] | None = None
    created_at: datetime | None = None

    @classmethod
    def from_model(cls, model: TransactionModel) -> TransactionDTO:
        return cls(
            signature=model.signature,
            whale_address=model.whale_address,
            type=model.type,
            amount=_as_decimal(model.amount),
            price=_as_decimal(model.price),
            value_usd=_as_decimal(model.value_usd),
            block_time=_as_utc(model.block_time),  # type: ignore[arg-type]
            slot=model.slot,
            counterparty=model.counterparty,
            metadata=model.metadata_json,
            created_at=_as_utc(model.created_at),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "signature": self.signature,
            "whale_address": self.whale_address,
            "type": self.type,
            "amount": str(self.amount),
            "price": str(self.price),
            "value_usd": str(self.value_usd),
            "block_time": self.block_time.isoformat(),
            "slot": self.slot,
            "counterparty": self.counterparty,
            "metadata": self.metadata,
        }


@dataclass(frozen=True)
class ActivityStats:
    """Aggregated transaction activity over a time range."""

    total_transactions: int = 0
    total_volume_usd: Decimal = _ZERO
    buy_transactions: int = 0
    sell_transactions: int = 0
    avg_transaction_size: Decimal = _ZERO


class TransactionRepository:
    """Repository for persisted whale transactions."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get_by_signature(self, signature: str) -> TransactionDTO | None:
        result = await self.session.execute(
            select(TransactionModel).where(TransactionModel.signature == signature)
        )
        model = result.scalar_one_or_none()
        return TransactionDTO.from_model(model) if model else None

    async def existing_signatures(self, signatures: Iterable[str]) -> set[str]:
        """Return the subset of ``signatures`` already stored."""
        wanted = list(dict.fromkeys(signatures))
        if not wanted:
            return set()
        result = await self.session.execute(
            select(TransactionModel.signature).where(TransactionModel.signature.in_(wanted))
        )
        return set(result.scalars().all())

    async def insert(self, dto: TransactionDTO) -> None:
        """Insert a transaction keyed by its signature.

        Uses ON CONFLICT DO NOTHING so concurrent writers never fail the
        session on a duplicate.

        Raises:
            PersistenceConflict: If the signature is already stored.
        """
        stmt = _dialect_insert(self.session, TransactionModel).values(
            signature=dto.signature,
            whale_address=dto.whale_address,
            type=dto.type,
            amount=dto.amount,
            price=dto.price,
            value_usd=dto.value_usd,
            block_time=dto.block_time,
            slot=dto.slot,
            counterparty=dto.counterparty,
            metadata=dto.metadata,
            created_at=datetime.now(UTC),
        )
        stmt = stmt.on_conflict_do_nothing(index_elements=["signature"])
        result = await self.session.execute(stmt)
        if result.rowcount != 1:
            raise PersistenceConflict(f"transaction {dto.signature} already stored")
        await self.session.flush()

    async def list_since(self, since: datetime) -> list[TransactionDTO]:
        """Transactions with ``block_time >= since``, newest first."""
        result = await self.session.execute(
            select(TransactionModel)
            .where(TransactionModel.block_time >= since)
            .order_by(TransactionModel.block_time.desc())
        )
        return [TransactionDTO.from_model(m) for m in result.scalars().all()]

    async def list_recent(self, limit: int = 20) -> list[TransactionDTO]:
        result = await self.session.execute(
            select(TransactionModel).order_by(TransactionModel.block_time.desc()).limit(limit)
        )
        return [TransactionDTO.from_model(m) for m in result.scalars().all()]

    async def list_for_whale(self, address: str, limit: int = 50) -> list[TransactionDTO]:
        result = await self.session.execute(
            select(TransactionModel)
            .where(TransactionModel.whale_address == address)
            .order_by(TransactionModel.block_time.desc())
            .limit(limit)
        )
        return [TransactionDTO.from_model(m) for m in result.scalars().all()]

    async def activity_stats(self, since: datetime) -> ActivityStats:
        """Aggregate counts and volume for transactions since ``since``."""
        txs = await self.list_since(since)
        if not txs:
            return ActivityStats()
        total_amount = sum((t.amount for t in txs), _ZERO)
        return ActivityStats(
            total_transactions=len(txs),
            total_volume_usd=sum((t.value_usd for t in txs), _ZERO),
            buy_transactions=sum(1 for t in txs if t.type == "buy"),
            sell_transactions=sum(1 for t in txs if t.type == "sell"),
            avg_transaction_size=total_amount / len(txs),
        )


# ============================================================================
# Alerts
# ============================================================================


@dataclass
class AlertDTO:
    """Data transfer object for alert definitions.

    ``conditions`` holds the raw stored condition dictionaries; parsing into
    typed conditions happens in the alert engine.
    """

    name: str
    conditions: list[dict[str, Any]]
    actions: list[str]
    id: str | None = None
    description: str | None = None
    is_active: bool = True
    triggered_count: int = 0
    last_triggered: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @classmethod
    def from_model(cls, model: AlertModel) -> AlertDTO:
        return cls(
            id=model.id,
            name=model.name,
            description=model.description,
            conditions=list(model.conditions or []),
            actions=list(model.actions or []),
            is_active=bool(model.is_active),
            triggered_count=model.triggered_count or 0,
            last_triggered=_as_utc(model.last_triggered),
            created_at=_as_utc(model.created_at),
            updated_at=_as_utc(model.updated_at),
        )


class AlertRepository:
    """Repository for alert definitions."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def create(self, dto: AlertDTO) -> AlertDTO:
        now = datetime.now(UTC)
        model = AlertModel(
            name=dto.name,
            description=dto.description,
            conditions=copy.deepcopy(dto.conditions),
            actions=list(dto.actions),
            is_active=dto.is_active,
            triggered_count=dto.triggered_count,
            last_triggered=dto.last_triggered,
            created_at=now,
            updated_at=now,
        )
        if dto.id:
            model.id = dto.id
        self.session.add(model)
        await self.session.flush()
        return AlertDTO.from_model(model)

    async def get(self, alert_id: str) -> AlertDTO | None:
        result = await self.session.execute(select(AlertModel).where(AlertModel.id == alert_id))
        model = result.scalar_one_or_none()
        return AlertDTO.from_model(model) if model else None

    async def list_all(self) -> list[AlertDTO]:
        result = await self.session.execute(select(AlertModel).order_by(AlertModel.created_at))
        return [AlertDTO.from_model(m) for m in result.scalars().all()]

    async def list_active(self) -> list[AlertDTO]:
        result = await self.session.execute(
            select(AlertModel).where(AlertModel.is_active.is_(True)).order_by(AlertModel.created_at)
        )
        return [AlertDTO.from_model(m) for m in result.scalars().all()]

    async def update_definition(
        self,
        alert_id: str,
        *,
        name: str | None = None,
        description: str | None = None,
        conditions: list[dict[str, Any]] | None = None,
        actions: list[str] | None = None,
    ) -> AlertDTO | None:
        values: dict[str, Any] = {"updated_at": datetime.now(UTC)}
        if name is not None:
            values["name"] = name
        if description is not None:
            values["description"] = description
        if conditions is not None:
            values["conditions"] = copy.deepcopy(conditions)
        if actions is not None:
            values["actions"] = list(actions)
        await self.session.execute(update(AlertModel).where(AlertModel.id == alert_id).values(**values))
        await self.session.flush()
        return await self.get(alert_id)

    async def set_active(self, alert_id: str, active: bool) -> None:
        """Toggle an alert between Active and Inactive."""
        await self.session.execute(
            update(AlertModel)
            .where(AlertModel.id == alert_id)
            .values(is_active=active, updated_at=datetime.now(UTC))
        )
        await self.session.flush()

    async def record_trigger(self, alert_id: str, *, triggered_at: datetime) -> None:
        """Increment ``triggered_count`` in SQL and stamp ``last_triggered``."""
        await self.session.execute(
            update(AlertModel)
            .where(AlertModel.id == alert_id)
            .values(
                triggered_count=AlertModel.triggered_count + 1,
                last_triggered=triggered_at,
            )
        )
        await self.session.flush()


# ============================================================================
# Alert triggers
# ============================================================================


@dataclass
class AlertTriggerDTO:
    """Data transfer object for the alert trigger log."""

    alert_id: str
    conditions: list[dict[str, Any]]
    data: dict[str, Any]
    message: str
    success: bool = True
    triggered_at: datetime | None = None
    id: str | None = None

    @classmethod
    def from_model(cls, model: AlertTriggerModel) -> AlertTriggerDTO:
        return cls(
            id=model.id,
            alert_id=model.alert_id,
            triggered_at=_as_utc(model.triggered_at),
            conditions=list(model.conditions or []),
            data=dict(model.data or {}),
            message=model.message,
            success=bool(model.success),
        )


class AlertTriggerRepository:
    """Repository for the append-only alert trigger log."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def insert(self, dto: AlertTriggerDTO) -> AlertTriggerDTO:
        """Append a trigger record.

        ``conditions`` and ``data`` are deep-copied so later edits to the
        alert or the snapshot never rewrite history.
        """
        model = AlertTriggerModel(
            alert_id=dto.alert_id,
            triggered_at=dto.triggered_at or datetime.now(UTC),
            conditions=copy.deepcopy(dto.conditions),
            data=copy.deepcopy(dto.data),
            message=dto.message,
            success=dto.success,
        )
        self.session.add(model)
        await self.session.flush()
        return AlertTriggerDTO.from_model(model)

    async def set_success(self, trigger_id: str, success: bool) -> None:
        """Record the aggregate delivery outcome for a trigger."""
        await self.session.execute(
            update(AlertTriggerModel)
            .where(AlertTriggerModel.id == trigger_id)
            .values(success=success)
        )
        await self.session.flush()

    async def list_for_alert(self, alert_id: str, limit: int = 50) -> list[AlertTriggerDTO]:
        result = await self.session.execute(
            select(AlertTriggerModel)
            .where(AlertTriggerModel.alert_id == alert_id)
            .order_by(AlertTriggerModel.triggered_at.desc())
            .limit(limit)
        )
        return [AlertTriggerDTO.from_model(m) for m in result.scalars().all()]

    async def list_recent(self, limit: int = 50) -> list[AlertTriggerDTO]:
        result = await self.session.execute(
            select(AlertTriggerModel).order_by(AlertTriggerModel.triggered_at.desc()).limit(limit)
        )
        return [AlertTriggerDTO.from_model(m) for m in result.scalars().all()]
