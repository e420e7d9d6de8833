"""Regression tests for the Alembic ledger schema migration."""

from __future__ import annotations

from uuid import uuid4

import pytest
from sqlalchemy import create_engine, inspect, text
from sqlalchemy.exc import IntegrityError
from alembic import command
from alembic.config import Config


def test_migrations_apply_and_are_idempotent(migrated_database_url: str) -> None:
    """Apply migrations on a fresh DB and verify idempotent re-run.

    Returns:
        None: Assertions validate migration behavior.

    Raises:
        AssertionError: Raised when expected migration artifacts are missing.
    """

    command.upgrade(Config("alembic.ini"), "head")

    verification_engine = create_engine(migrated_database_url)
    try:
        table_names = set(inspect(verification_engine).get_table_names())
        assert {
            "account_balance",
            "investment_position",
            "period_credit",
            "transaction_log",
            "distribution_run",
            "alembic_version",
        }.issubset(table_names)

        with verification_engine.connect() as connection:
            constraint_names = {
                row[0]
                for row in connection.execute(
                    text(
                        "SELECT conname FROM pg_constraint "
                        "WHERE conname IN ("
                        "'uq_period_credit_position_period',"
                        "'uq_transaction_log_period_credit',"
                        "'ck_investment_position_status',"
                        "'ck_transaction_log_kind'"
                        ")"
                    )
                ).fetchall()
            }
        assert constraint_names == {
            "uq_period_credit_position_period",
            "uq_transaction_log_period_credit",
            "ck_investment_position_status",
            "ck_transaction_log_kind",
        }
    finally:
        verification_engine.dispose()


def test_migration_rejects_duplicate_period_credit(migrated_database_url: str) -> None:
    """The schema itself refuses a second credit for the same period."""

    owner_id = uuid4()
    position_id = uuid4()
    engine = create_engine(migrated_database_url)
    try:
        with engine.begin() as connection:
            connection.execute(text("INSERT INTO account_balance (owner_id) VALUES (:owner_id)"), {"owner_id": owner_id})
            connection.execute(
                text(
                    "INSERT INTO investment_position ("
                    "position_id, owner_id, principal, period_rate, period_unit, total_periods, started_at_utc"
                    ") VALUES (:position_id, :owner_id, 1000, 0.001, 'hour', 24, now())"
                ),
                {"position_id": position_id, "owner_id": owner_id},
            )
            connection.execute(
                text(
                    "INSERT INTO period_credit (position_id, period_index, amount, period_at_utc) "
                    "VALUES (:position_id, 1, 1.00, now())"
                ),
                {"position_id": position_id},
            )

        with pytest.raises(IntegrityError):
            with engine.begin() as connection:
                connection.execute(
                    text(
                        "INSERT INTO period_credit (position_id, period_index, amount, period_at_utc) "
                        "VALUES (:position_id, 1, 1.00, now())"
                    ),
                    {"position_id": position_id},
                )
    finally:
        engine.dispose()


def test_migration_downgrade_removes_ledger_tables(migrated_database_url: str) -> None:
    """Downgrade to base drops every ledger table."""

    command.downgrade(Config("alembic.ini"), "base")

    engine = create_engine(migrated_database_url)
    try:
        table_names = set(inspect(engine).get_table_names())
    finally:
        engine.dispose()
    assert "period_credit" not in table_names
    assert "investment_position" not in table_names
