"""SQLAlchemy models for persistent storage.

This module defines the database schema for whale accounts, their
transactions, alert definitions and the append-only alert trigger log.
"""

from __future__ import annotations

import uuid
from datetime import UTC, datetime
from decimal import Decimal
from typing import Any

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


def _utcnow() -> datetime:
    return datetime.now(UTC)


def _new_id() -> str:
    return str(uuid.uuid4())


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""

    pass


class WhaleModel(Base):
    """A discovered holder of the tracked token.

    Rows are never deleted; ``is_active`` is cleared when the holder drops
    below the whale threshold so historical transactions stay attributable.
    """

    __tablename__ = "whales"

    address: Mapped[str] = mapped_column(String(64), primary_key=True)
    balance: Mapped[Decimal] = mapped_column(Numeric(30, 9), nullable=False)
    balance_usd: Mapped[Decimal | None] = mapped_column(Numeric(30, 2), nullable=True)
    change_24h: Mapped[Decimal] = mapped_column(Numeric(20, 4), nullable=False, default=Decimal("0"))
    transaction_count_24h: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    last_activity: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    first_seen: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow)

    __table_args__ = (
        Index("idx_whales_balance", "balance"),
        Index("idx_whales_last_activity", "last_activity"),
        Index("idx_whales_active_balance", "is_active", "balance"),
    )


class TransactionModel(Base):
    """A classified token transfer made by a whale (write-once)."""

    __tablename__ = "transactions"

    signature: Mapped[str] = mapped_column(String(128), primary_key=True)
    whale_address: Mapped[str] = mapped_column(
        String(64), ForeignKey("whales.address"), nullable=False
    )
    type: Mapped[str] = mapped_column(String(8), nullable=False)  # buy/sell/transfer
    amount: Mapped[Decimal] = mapped_column(Numeric(30, 9), nullable=False)
    price: Mapped[Decimal] = mapped_column(Numeric(20, 10), nullable=False)
    value_usd: Mapped[Decimal] = mapped_column(Numeric(30, 2), nullable=False)
    block_time: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    slot: Mapped[int | None] = mapped_column(Integer, nullable=True)
    counterparty: Mapped[str | None] = mapped_column(String(64), nullable=True)
    metadata_json: Mapped[dict[str, Any] | None] = mapped_column("metadata", JSON, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow)

    __table_args__ = (
        Index("idx_transactions_whale_block_time", "whale_address", "block_time"),
        Index("idx_transactions_block_time", "block_time"),
        Index("idx_transactions_type", "type"),
    )


class AlertModel(Base):
    """A user-defined alert rule."""

    __tablename__ = "alerts"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    conditions: Mapped[list[dict[str, Any]]] = mapped_column(JSON, nullable=False)
    actions: Mapped[list[str]] = mapped_column(JSON, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    triggered_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    last_triggered: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow)

    __table_args__ = (Index("idx_alerts_active", "is_active"),)


class AlertTriggerModel(Base):
    """Append-only record of an alert firing."""

    __tablename__ = "alert_triggers"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    alert_id: Mapped[str] = mapped_column(String(36), ForeignKey("alerts.id"), nullable=False)
    triggered_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow)
    conditions: Mapped[list[dict[str, Any]]] = mapped_column(JSON, nullable=False)
    data: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    success: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    __table_args__ = (
        Index("idx_alert_triggers_alert", "alert_id"),
        Index("idx_alert_triggers_triggered_at", "triggered_at"),
    )
