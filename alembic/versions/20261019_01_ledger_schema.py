"""Ledger schema for positions, period credits, balances and run audit

Revision ID: 20261019_01
Revises: None
Create Date: 2026-10-19
"""
# pylint: disable=no-member,invalid-name,wrong-import-order

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = "20261019_01"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

_MONEY = sa.Numeric(20, 8)


def upgrade() -> None:
    """Upgrade schema."""

    op.execute("CREATE EXTENSION IF NOT EXISTS pgcrypto")

    op.create_table(
        "account_balance",
        sa.Column("owner_id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("total_balance", _MONEY, nullable=False, server_default=sa.text("0")),
        sa.Column("created_at_utc", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.Column("updated_at_utc", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
    )

    op.create_table(
        "investment_position",
        sa.Column("position_id", postgresql.UUID(as_uuid=True), primary_key=True, server_default=sa.text("gen_random_uuid()")),
        sa.Column(
            "owner_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("account_balance.owner_id", name="fk_investment_position_owner"),
            nullable=False,
        ),
        sa.Column("plan_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("principal", _MONEY, nullable=False),
        sa.Column("period_rate", sa.Numeric(12, 8), nullable=False),
        sa.Column("period_unit", sa.Text(), nullable=False),
        sa.Column("total_periods", sa.Integer(), nullable=False),
        sa.Column("started_at_utc", sa.DateTime(timezone=True), nullable=False),
        sa.Column("status", sa.Text(), nullable=False, server_default=sa.text("'active'")),
        sa.Column("accumulated_profit", _MONEY, nullable=False, server_default=sa.text("0")),
        sa.Column("ended_at_utc", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at_utc", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.Column("updated_at_utc", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.CheckConstraint("principal > 0", name="ck_investment_position_principal_positive"),
        sa.CheckConstraint("period_rate > 0", name="ck_investment_position_period_rate_positive"),
        sa.CheckConstraint("period_unit in ('hour', 'day')", name="ck_investment_position_period_unit"),
        sa.CheckConstraint("total_periods > 0", name="ck_investment_position_total_periods_positive"),
        sa.CheckConstraint("status in ('active', 'completed', 'cancelled')", name="ck_investment_position_status"),
        sa.CheckConstraint("accumulated_profit >= 0", name="ck_investment_position_accumulated_profit"),
        sa.CheckConstraint(
            "(status = 'active') = (ended_at_utc IS NULL)",
            name="ck_investment_position_ended_at_matches_status",
        ),
    )
    op.create_index("ix_investment_position_status", "investment_position", ["status"])
    op.create_index("ix_investment_position_owner_id", "investment_position", ["owner_id"])

    op.create_table(
        "period_credit",
        sa.Column("period_credit_id", postgresql.UUID(as_uuid=True), primary_key=True, server_default=sa.text("gen_random_uuid()")),
        sa.Column(
            "position_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("investment_position.position_id", name="fk_period_credit_position"),
            nullable=False,
        ),
        sa.Column("period_index", sa.Integer(), nullable=False),
        sa.Column("amount", _MONEY, nullable=False),
        sa.Column("period_at_utc", sa.DateTime(timezone=True), nullable=False),
        sa.Column("created_at_utc", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.UniqueConstraint("position_id", "period_index", name="uq_period_credit_position_period"),
        sa.CheckConstraint("period_index >= 1", name="ck_period_credit_period_index"),
        sa.CheckConstraint("amount > 0", name="ck_period_credit_amount_positive"),
    )
    op.create_index("ix_period_credit_created_at_utc", "period_credit", ["created_at_utc"])

    op.create_table(
        "transaction_log",
        sa.Column("transaction_log_id", postgresql.UUID(as_uuid=True), primary_key=True, server_default=sa.text("gen_random_uuid()")),
        sa.Column(
            "owner_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("account_balance.owner_id", name="fk_transaction_log_owner"),
            nullable=False,
        ),
        sa.Column("kind", sa.Text(), nullable=False),
        sa.Column("amount", _MONEY, nullable=False),
        sa.Column(
            "position_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("investment_position.position_id", name="fk_transaction_log_position"),
            nullable=True,
        ),
        sa.Column(
            "period_credit_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("period_credit.period_credit_id", name="fk_transaction_log_period_credit"),
            nullable=True,
        ),
        sa.Column("status", sa.Text(), nullable=False, server_default=sa.text("'completed'")),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("created_at_utc", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.CheckConstraint(
            "kind in ('profit', 'principal_return', 'deposit', 'withdrawal', 'investment')",
            name="ck_transaction_log_kind",
        ),
        sa.CheckConstraint("status in ('pending', 'completed', 'failed')", name="ck_transaction_log_status"),
        sa.CheckConstraint("kind <> 'profit' OR period_credit_id IS NOT NULL", name="ck_transaction_log_profit_credit"),
        sa.UniqueConstraint("period_credit_id", name="uq_transaction_log_period_credit"),
    )
    op.create_index("ix_transaction_log_owner_created", "transaction_log", ["owner_id", "created_at_utc"])
    op.create_index("ix_transaction_log_position_id", "transaction_log", ["position_id"])

    op.create_table(
        "distribution_run",
        sa.Column("distribution_run_id", postgresql.UUID(as_uuid=True), primary_key=True, server_default=sa.text("gen_random_uuid()")),
        sa.Column("run_type", sa.Text(), nullable=False, server_default=sa.text("'scheduled'")),
        sa.Column("job_name", sa.Text(), nullable=False),
        sa.Column("as_of_utc", sa.DateTime(timezone=True), nullable=False),
        sa.Column("status", sa.Text(), nullable=False),
        sa.Column("credited_count", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("skipped_count", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("completed_count", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("error_count", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("started_at_utc", sa.DateTime(timezone=True), nullable=False),
        sa.Column("ended_at_utc", sa.DateTime(timezone=True), nullable=True),
        sa.Column("duration_ms", sa.BigInteger(), nullable=True),
        sa.Column("error_code", sa.Text(), nullable=True),
        sa.Column("error_message", sa.Text(), nullable=True),
        sa.Column("diagnostics", postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column("created_at_utc", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.CheckConstraint("status in ('started', 'success', 'failed')", name="ck_distribution_run_status"),
        sa.CheckConstraint("run_type in ('scheduled', 'manual')", name="ck_distribution_run_run_type"),
    )
    op.create_index(
        "ix_distribution_run_started_distribution_run",
        "distribution_run",
        [sa.text("started_at_utc DESC"), sa.text("distribution_run_id DESC")],
    )


def downgrade() -> None:
    """Downgrade schema."""

    op.drop_index("ix_distribution_run_started_distribution_run", table_name="distribution_run")
    op.drop_table("distribution_run")
    op.drop_index("ix_transaction_log_position_id", table_name="transaction_log")
    op.drop_index("ix_transaction_log_owner_created", table_name="transaction_log")
    op.drop_table("transaction_log")
    op.drop_index("ix_period_credit_created_at_utc", table_name="period_credit")
    op.drop_table("period_credit")
    op.drop_index("ix_investment_position_owner_id", table_name="investment_position")
    op.drop_index("ix_investment_position_status", table_name="investment_position")
    op.drop_table("investment_position")
    op.drop_table("account_balance")
