"""Database service for positions, period credits, balances and the transaction log.

Each unit of work is one PostgreSQL transaction. Double credit is prevented by
the `uq_period_credit_position_period` unique constraint, never by a
check-then-insert sequence, and balances are changed only by in-database
increments.
"""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy import Connection, Engine, text
from sqlalchemy.exc import SQLAlchemyError

from profit_ledger.domain import POSITION_STATUS_ACTIVE

from .interfaces import (
    BalanceRecord,
    LedgerStorePort,
    LedgerUnitOfWorkPort,
    PeriodCreditInsertRequest,
    PeriodCreditRecord,
    PositionRecord,
    PositionTerms,
    ProfitSummaryRecord,
    TransactionLogAppendRequest,
    TransactionLogRecord,
    TransientStorageError,
)

_POSITION_COLUMNS = (
    "position_id, owner_id, plan_id, principal, period_rate, period_unit, total_periods, "
    "started_at_utc, status, accumulated_profit, ended_at_utc, created_at_utc"
)
_PERIOD_CREDIT_COLUMNS = "period_credit_id, position_id, period_index, amount, period_at_utc, created_at_utc"
_TRANSACTION_LOG_COLUMNS = (
    "transaction_log_id, owner_id, kind, amount, position_id, period_credit_id, status, description, created_at_utc"
)


class SQLAlchemyLedgerUnitOfWork(LedgerUnitOfWorkPort):
    """Ledger operations bound to one open SQLAlchemy transaction."""

    def __init__(self, connection: Connection):
        """Bind the unit of work to an open transactional connection.

        Args:
            connection: Connection with an active transaction.

        Raises:
            ValueError: Raised when connection is None.
        """

        if connection is None:
            raise ValueError("connection must not be None")
        self._connection = connection

    def db_position_lock_for_update(self, position_id: UUID) -> PositionRecord | None:
        row = self._connection.execute(
            text(f"SELECT {_POSITION_COLUMNS} FROM investment_position WHERE position_id = :position_id FOR UPDATE"),
            {"position_id": position_id},
        ).mappings().first()
        if row is None:
            return None
        return _db_ledger_map_position_row(row)

    def db_period_credit_insert_if_absent(self, request: PeriodCreditInsertRequest) -> PeriodCreditRecord | None:
        if request.period_index < 1:
            raise ValueError("request.period_index must be >= 1")
        if request.amount <= 0:
            raise ValueError("request.amount must be positive")

        row = self._connection.execute(
            text(
                "INSERT INTO period_credit (position_id, period_index, amount, period_at_utc) "
                "VALUES (:position_id, :period_index, :amount, :period_at_utc) "
                "ON CONFLICT ON CONSTRAINT uq_period_credit_position_period DO NOTHING "
                f"RETURNING {_PERIOD_CREDIT_COLUMNS}"
            ),
            {
                "position_id": request.position_id,
                "period_index": request.period_index,
                "amount": request.amount,
                "period_at_utc": request.period_at_utc,
            },
        ).mappings().first()
        if row is None:
            return None
        return _db_ledger_map_period_credit_row(row)

    def db_period_credit_list_indices(self, position_id: UUID) -> list[int]:
        rows = self._connection.execute(
            text("SELECT period_index FROM period_credit WHERE position_id = :position_id ORDER BY period_index"),
            {"position_id": position_id},
        ).mappings().all()
        return [int(row["period_index"]) for row in rows]

    def db_position_add_accumulated_profit(
        self,
        position_id: UUID,
        amount: Decimal,
        full_term_amount: Decimal,
    ) -> Decimal:
        row = self._connection.execute(
            text(
                "UPDATE investment_position SET "
                "accumulated_profit = accumulated_profit + :amount, "
                "updated_at_utc = now() "
                "WHERE position_id = :position_id AND status = :active_status "
                "AND accumulated_profit + :amount <= :full_term_amount "
                "RETURNING accumulated_profit"
            ),
            {
                "position_id": position_id,
                "amount": amount,
                "full_term_amount": full_term_amount,
                "active_status": POSITION_STATUS_ACTIVE,
            },
        ).mappings().first()
        if row is None:
            raise LookupError("position is not active or credit would exceed the full-term amount")
        return Decimal(row["accumulated_profit"])

    def db_position_mark_completed(self, position_id: UUID, ended_at_utc: datetime) -> PositionRecord:
        row = self._connection.execute(
            text(
                "UPDATE investment_position SET "
                "status = 'completed', ended_at_utc = :ended_at_utc, updated_at_utc = now() "
                "WHERE position_id = :position_id AND status = :active_status "
                f"RETURNING {_POSITION_COLUMNS}"
            ),
            {
                "position_id": position_id,
                "ended_at_utc": ended_at_utc,
                "active_status": POSITION_STATUS_ACTIVE,
            },
        ).mappings().first()
        if row is None:
            raise LookupError("position is not active")
        return _db_ledger_map_position_row(row)

    def db_balance_increment(self, owner_id: UUID, amount: Decimal) -> Decimal:
        row = self._connection.execute(
            text(
                "UPDATE account_balance SET "
                "total_balance = total_balance + :amount, "
                "updated_at_utc = now() "
                "WHERE owner_id = :owner_id "
                "RETURNING total_balance"
            ),
            {"owner_id": owner_id, "amount": amount},
        ).mappings().first()
        if row is None:
            raise LookupError(f"balance aggregate not found for owner_id={owner_id}")
        return Decimal(row["total_balance"])

    def db_transaction_log_append(self, request: TransactionLogAppendRequest) -> TransactionLogRecord:
        row = self._connection.execute(
            text(
                "INSERT INTO transaction_log ("
                "owner_id, kind, amount, position_id, period_credit_id, status, description"
                ") VALUES ("
                ":owner_id, :kind, :amount, :position_id, :period_credit_id, 'completed', :description"
                ") "
                f"RETURNING {_TRANSACTION_LOG_COLUMNS}"
            ),
            {
                "owner_id": request.owner_id,
                "kind": request.kind,
                "amount": request.amount,
                "position_id": request.position_id,
                "period_credit_id": request.period_credit_id,
                "description": request.description,
            },
        ).mappings().one()
        return _db_ledger_map_transaction_log_row(row)


class SQLAlchemyLedgerStoreService(LedgerStorePort):
    """SQLAlchemy-backed ledger store.

    Reads run on short-lived connections. Writes happen only through
    `db_ledger_unit_of_work`, which wraps one `Engine.begin()` transaction.
    """

    def __init__(self, engine: Engine):
        """Initialize ledger store service.

        Args:
            engine: SQLAlchemy engine used for all persistence operations.

        Raises:
            ValueError: Raised when engine is None.
        """

        if engine is None:
            raise ValueError("engine must not be None")
        self._engine = engine

    @contextmanager
    def db_ledger_unit_of_work(self) -> Iterator[SQLAlchemyLedgerUnitOfWork]:
        """Open one atomic unit of work.

        Yields:
            SQLAlchemyLedgerUnitOfWork: Operations bound to the open transaction.

        Raises:
            TransientStorageError: Raised when any statement, the commit or the rollback fails.
        """

        try:
            with self._engine.begin() as connection:
                yield SQLAlchemyLedgerUnitOfWork(connection=connection)
        except SQLAlchemyError as error:
            raise TransientStorageError("ledger unit of work failed") from error

    def db_position_list_active(self) -> list[PositionRecord]:
        try:
            with self._engine.connect() as connection:
                rows = connection.execute(
                    text(
                        f"SELECT {_POSITION_COLUMNS} FROM investment_position "
                        "WHERE status = :active_status "
                        "ORDER BY started_at_utc ASC, position_id ASC"
                    ),
                    {"active_status": POSITION_STATUS_ACTIVE},
                ).mappings().all()
                return [_db_ledger_map_position_row(row) for row in rows]
        except SQLAlchemyError as error:
            raise TransientStorageError("failed to list active positions") from error

    def db_position_list_term_elapsed(self, as_of_utc: datetime) -> list[PositionRecord]:
        try:
            with self._engine.connect() as connection:
                rows = connection.execute(
                    text(
                        f"SELECT {_POSITION_COLUMNS} FROM investment_position "
                        "WHERE status = :active_status "
                        "AND started_at_utc + total_periods * "
                        "(CASE period_unit WHEN 'hour' THEN INTERVAL '1 hour' ELSE INTERVAL '1 day' END) "
                        "<= :as_of_utc "
                        "ORDER BY started_at_utc ASC, position_id ASC"
                    ),
                    {"active_status": POSITION_STATUS_ACTIVE, "as_of_utc": as_of_utc},
                ).mappings().all()
                return [_db_ledger_map_position_row(row) for row in rows]
        except SQLAlchemyError as error:
            raise TransientStorageError("failed to list term-elapsed positions") from error

    def db_position_get_by_id(self, position_id: UUID) -> PositionRecord | None:
        try:
            with self._engine.connect() as connection:
                row = connection.execute(
                    text(f"SELECT {_POSITION_COLUMNS} FROM investment_position WHERE position_id = :position_id"),
                    {"position_id": position_id},
                ).mappings().first()
                if row is None:
                    return None
                return _db_ledger_map_position_row(row)
        except SQLAlchemyError as error:
            raise TransientStorageError("failed to fetch position by id") from error

    def db_period_credit_list_for_position(self, position_id: UUID) -> list[PeriodCreditRecord]:
        try:
            with self._engine.connect() as connection:
                rows = connection.execute(
                    text(
                        f"SELECT {_PERIOD_CREDIT_COLUMNS} FROM period_credit "
                        "WHERE position_id = :position_id ORDER BY period_index ASC"
                    ),
                    {"position_id": position_id},
                ).mappings().all()
                return [_db_ledger_map_period_credit_row(row) for row in rows]
        except SQLAlchemyError as error:
            raise TransientStorageError("failed to list period credits") from error

    def db_transaction_log_list_for_owner(
        self,
        owner_id: UUID,
        kind: str | None,
        limit: int,
        offset: int,
    ) -> list[TransactionLogRecord]:
        if limit < 1:
            raise ValueError("limit must be >= 1")
        if offset < 0:
            raise ValueError("offset must be >= 0")

        try:
            with self._engine.connect() as connection:
                rows = connection.execute(
                    text(
                        f"SELECT {_TRANSACTION_LOG_COLUMNS} FROM transaction_log "
                        "WHERE owner_id = :owner_id "
                        "AND (CAST(:kind AS TEXT) IS NULL OR kind = :kind) "
                        "ORDER BY created_at_utc DESC, transaction_log_id DESC "
                        "LIMIT :limit OFFSET :offset"
                    ),
                    {"owner_id": owner_id, "kind": kind, "limit": limit, "offset": offset},
                ).mappings().all()
                return [_db_ledger_map_transaction_log_row(row) for row in rows]
        except SQLAlchemyError as error:
            raise TransientStorageError("failed to list owner transaction log entries") from error

    def db_transaction_log_total_for_owner(self, owner_id: UUID, kind: str) -> Decimal:
        try:
            with self._engine.connect() as connection:
                total = connection.execute(
                    text(
                        "SELECT COALESCE(SUM(amount), 0) FROM transaction_log "
                        "WHERE owner_id = :owner_id AND kind = :kind"
                    ),
                    {"owner_id": owner_id, "kind": kind},
                ).scalar()
                return Decimal(total)
        except SQLAlchemyError as error:
            raise TransientStorageError("failed to total owner transaction log entries") from error

    def db_balance_get(self, owner_id: UUID) -> BalanceRecord | None:
        try:
            with self._engine.connect() as connection:
                row = connection.execute(
                    text("SELECT owner_id, total_balance, updated_at_utc FROM account_balance WHERE owner_id = :owner_id"),
                    {"owner_id": owner_id},
                ).mappings().first()
                if row is None:
                    return None
                return BalanceRecord(
                    owner_id=row["owner_id"],
                    total_balance=Decimal(row["total_balance"]),
                    updated_at_utc=row["updated_at_utc"],
                )
        except SQLAlchemyError as error:
            raise TransientStorageError("failed to fetch balance aggregate") from error

    def db_profit_summary(self, credited_since_utc: datetime) -> ProfitSummaryRecord:
        try:
            with self._engine.connect() as connection:
                row = connection.execute(
                    text(
                        "SELECT "
                        "(SELECT COUNT(*) FROM investment_position WHERE status = :active_status) "
                        "AS active_position_count, "
                        "(SELECT COALESCE(SUM(principal), 0) FROM investment_position WHERE status = :active_status) "
                        "AS active_principal_total, "
                        "(SELECT COALESCE(SUM(amount), 0) FROM period_credit) AS profit_credited_total, "
                        "(SELECT COALESCE(SUM(amount), 0) FROM period_credit WHERE created_at_utc >= :credited_since_utc) "
                        "AS profit_credited_since"
                    ),
                    {"active_status": POSITION_STATUS_ACTIVE, "credited_since_utc": credited_since_utc},
                ).mappings().one()
                return ProfitSummaryRecord(
                    active_position_count=int(row["active_position_count"]),
                    active_principal_total=Decimal(row["active_principal_total"]),
                    profit_credited_total=Decimal(row["profit_credited_total"]),
                    profit_credited_since=Decimal(row["profit_credited_since"]),
                    credited_since_utc=credited_since_utc,
                )
        except SQLAlchemyError as error:
            raise TransientStorageError("failed to compute profit summary") from error


def _db_ledger_map_position_row(row: Any) -> PositionRecord:
    """Map SQLAlchemy row mapping to typed position record.

    Args:
        row: SQLAlchemy mapping row.

    Returns:
        PositionRecord: Typed position record.

    Raises:
        KeyError: Raised when a required column is missing.
    """

    return PositionRecord(
        position_id=row["position_id"],
        owner_id=row["owner_id"],
        plan_id=row["plan_id"],
        terms=PositionTerms(
            principal=Decimal(row["principal"]),
            period_rate=Decimal(row["period_rate"]),
            period_unit=row["period_unit"],
            total_periods=int(row["total_periods"]),
        ),
        started_at_utc=row["started_at_utc"],
        status=row["status"],
        accumulated_profit=Decimal(row["accumulated_profit"]),
        ended_at_utc=row["ended_at_utc"],
        created_at_utc=row["created_at_utc"],
    )


def _db_ledger_map_period_credit_row(row: Any) -> PeriodCreditRecord:
    return PeriodCreditRecord(
        period_credit_id=row["period_credit_id"],
        position_id=row["position_id"],
        period_index=int(row["period_index"]),
        amount=Decimal(row["amount"]),
        period_at_utc=row["period_at_utc"],
        created_at_utc=row["created_at_utc"],
    )


def _db_ledger_map_transaction_log_row(row: Any) -> TransactionLogRecord:
    return TransactionLogRecord(
        transaction_log_id=row["transaction_log_id"],
        owner_id=row["owner_id"],
        kind=row["kind"],
        amount=Decimal(row["amount"]),
        position_id=row["position_id"],
        period_credit_id=row["period_credit_id"],
        status=row["status"],
        description=row["description"],
        created_at_utc=row["created_at_utc"],
    )
