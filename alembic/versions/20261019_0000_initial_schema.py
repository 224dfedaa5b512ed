"""Initial schema for whales, transactions, alerts and alert triggers.

Revision ID: 001_initial
Revises:
Create Date: 2026-10-19 00:00:00.000000+00:00
"""

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = "001_initial"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # Whale registry
    op.create_table(
        "whales",
        sa.Column("address", sa.String(64), nullable=False),
        sa.Column("balance", sa.Numeric(30, 9), nullable=False),
        sa.Column("balance_usd", sa.Numeric(30, 2), nullable=True),
        sa.Column("change_24h", sa.Numeric(20, 4), nullable=False, server_default="0"),
        sa.Column("transaction_count_24h", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("last_activity", sa.DateTime(timezone=True), nullable=True),
        sa.Column("first_seen", sa.DateTime(timezone=True), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("address"),
    )
    op.create_index("idx_whales_balance", "whales", ["balance"])
    op.create_index("idx_whales_last_activity", "whales", ["last_activity"])
    op.create_index("idx_whales_active_balance", "whales", ["is_active", "balance"])

    # Whale transactions (signature is the dedup key)
    op.create_table(
        "transactions",
        sa.Column("signature", sa.String(128), nullable=False),
        sa.Column("whale_address", sa.String(64), nullable=False),
        sa.Column("type", sa.String(8), nullable=False),
        sa.Column("amount", sa.Numeric(30, 9), nullable=False),
        sa.Column("price", sa.Numeric(20, 10), nullable=False),
        sa.Column("value_usd", sa.Numeric(30, 2), nullable=False),
        sa.Column("block_time", sa.DateTime(timezone=True), nullable=False),
        sa.Column("slot", sa.Integer(), nullable=True),
        sa.Column("counterparty", sa.String(64), nullable=True),
        sa.Column("metadata", sa.JSON(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("signature"),
        sa.ForeignKeyConstraint(["whale_address"], ["whales.address"]),
    )
    op.create_index(
        "idx_transactions_whale_block_time", "transactions", ["whale_address", "block_time"]
    )
    op.create_index("idx_transactions_block_time", "transactions", ["block_time"])
    op.create_index("idx_transactions_type", "transactions", ["type"])

    # Alert definitions
    op.create_table(
        "alerts",
        sa.Column("id", sa.String(36), nullable=False),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("conditions", sa.JSON(), nullable=False),
        sa.Column("actions", sa.JSON(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("triggered_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("last_triggered", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("idx_alerts_active", "alerts", ["is_active"])

    # Append-only trigger log
    op.create_table(
        "alert_triggers",
        sa.Column("id", sa.String(36), nullable=False),
        sa.Column("alert_id", sa.String(36), nullable=False),
        sa.Column("triggered_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("conditions", sa.JSON(), nullable=False),
        sa.Column("data", sa.JSON(), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("success", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["alert_id"], ["alerts.id"]),
    )
    op.create_index("idx_alert_triggers_alert", "alert_triggers", ["alert_id"])
    op.create_index("idx_alert_triggers_triggered_at", "alert_triggers", ["triggered_at"])


def downgrade() -> None:
    op.drop_index("idx_alert_triggers_triggered_at", table_name="alert_triggers")
    op.drop_index("idx_alert_triggers_alert", table_name="alert_triggers")
    op.drop_table("alert_triggers")
    op.drop_index("idx_alerts_active", table_name="alerts")
    op.drop_table("alerts")
    op.drop_index("idx_transactions_type", table_name="transactions")
    op.drop_index("idx_transactions_block_time", table_name="transactions")
    op.drop_index("idx_transactions_whale_block_time", table_name="transactions")
    op.drop_table("transactions")
    op.drop_index("idx_whales_active_balance", table_name="whales")
    op.drop_index("idx_whales_last_activity", table_name="whales")
    op.drop_index("idx_whales_balance", table_name="whales")
    op.drop_table("whales")
