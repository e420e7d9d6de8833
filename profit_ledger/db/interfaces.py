"""Typed interfaces for database-layer services.

All SQL access must remain in the db package and its submodules. Every balance
mutation is routed through `LedgerUnitOfWorkPort.db_balance_increment`, which
must be an atomic in-database increment.
"""

from __future__ import annotations

from contextlib import AbstractContextManager
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Any, Protocol
from uuid import UUID

from profit_ledger.domain import HealthStatus


class TransientStorageError(RuntimeError):
    """Raised when a ledger store operation cannot be completed or committed."""


class DatabaseHealthPort(Protocol):
    """Port definition for database connectivity verification."""

    def db_connection_label(self) -> str:
        """Return a stable label for the active database connection target.

        Returns:
            str: Database target label for diagnostics.

        Raises:
            RuntimeError: Raised when connection metadata is unavailable.
        """

    def db_check_health(self) -> HealthStatus:
        """Check database connectivity and return deterministic health payload.

        Returns:
            HealthStatus: Database health status payload.

        Raises:
            ConnectionError: Raised when database cannot be reached.
        """


@dataclass(frozen=True)
class PositionTerms:
    """Immutable accrual terms of one position.

    Attributes:
        principal: Committed capital amount.
        period_rate: Profit fraction credited per period.
        period_unit: Accrual period unit label (`hour` or `day`).
        total_periods: Number of periods in the position term.
    """

    principal: Decimal
    period_rate: Decimal
    period_unit: str
    total_periods: int


@dataclass(frozen=True)
class PositionRecord:
    """Persistence model for one position row.

    Attributes:
        position_id: Unique position identifier.
        owner_id: Owning user identifier.
        plan_id: Optional plan reference.
        terms: Immutable accrual terms.
        started_at_utc: Term start timestamp in UTC.
        status: Lifecycle status (`active`, `completed`, `cancelled`).
        accumulated_profit: Profit credited so far.
        ended_at_utc: Completion timestamp, set once the position leaves `active`.
        created_at_utc: Persistence row creation timestamp in UTC.
    """

    position_id: UUID
    owner_id: UUID
    plan_id: UUID | None
    terms: PositionTerms
    started_at_utc: datetime
    status: str
    accumulated_profit: Decimal
    ended_at_utc: datetime | None
    created_at_utc: datetime


@dataclass(frozen=True)
class PeriodCreditInsertRequest:
    """Input payload for one guarded period credit insert.

    Attributes:
        position_id: Credited position identifier.
        period_index: One-based period index.
        amount: Credited amount.
        period_at_utc: Nominal period boundary timestamp.
    """

    position_id: UUID
    period_index: int
    amount: Decimal
    period_at_utc: datetime


@dataclass(frozen=True)
class PeriodCreditRecord:
    """Persistence model for one immutable period credit row.

    Attributes:
        period_credit_id: Unique credit row identifier.
        position_id: Credited position identifier.
        period_index: One-based period index.
        amount: Credited amount.
        period_at_utc: Nominal period boundary timestamp.
        created_at_utc: Persistence row creation timestamp in UTC.
    """

    period_credit_id: UUID
    position_id: UUID
    period_index: int
    amount: Decimal
    period_at_utc: datetime
    created_at_utc: datetime


@dataclass(frozen=True)
class TransactionLogAppendRequest:
    """Input payload for one append-only transaction log entry.

    Attributes:
        owner_id: Balance owner identifier.
        kind: Entry kind (`profit`, `principal_return`).
        amount: Signed balance change amount.
        position_id: Related position identifier.
        period_credit_id: Related period credit row for profit entries.
        description: Human-readable entry description.
    """

    owner_id: UUID
    kind: str
    amount: Decimal
    position_id: UUID
    period_credit_id: UUID | None
    description: str


@dataclass(frozen=True)
class TransactionLogRecord:
    """Persistence model for one transaction log row.

    Attributes:
        transaction_log_id: Unique entry identifier.
        owner_id: Balance owner identifier.
        kind: Entry kind.
        amount: Balance change amount.
        position_id: Related position identifier.
        period_credit_id: Related period credit row, when any.
        status: Entry status.
        description: Human-readable entry description.
        created_at_utc: Persistence row creation timestamp in UTC.
    """

    transaction_log_id: UUID
    owner_id: UUID
    kind: str
    amount: Decimal
    position_id: UUID | None
    period_credit_id: UUID | None
    status: str
    description: str | None
    created_at_utc: datetime


@dataclass(frozen=True)
class BalanceRecord:
    """Persistence model for one balance aggregate row.

    Attributes:
        owner_id: Balance owner identifier.
        total_balance: Current total balance.
        updated_at_utc: Last mutation timestamp in UTC.
    """

    owner_id: UUID
    total_balance: Decimal
    updated_at_utc: datetime


@dataclass(frozen=True)
class ProfitSummaryRecord:
    """Aggregate profit figures for administrator display.

    Attributes:
        active_position_count: Number of active positions.
        active_principal_total: Principal committed in active positions.
        profit_credited_total: Profit credited across all positions.
        profit_credited_since: Profit credited at or after `credited_since_utc`.
        credited_since_utc: Lower bound used for `profit_credited_since`.
    """

    active_position_count: int
    active_principal_total: Decimal
    profit_credited_total: Decimal
    profit_credited_since: Decimal
    credited_since_utc: datetime


@dataclass(frozen=True)
class DistributionRunCounts:
    """Outcome counters of one distribution run.

    Attributes:
        credited_count: Periods newly credited.
        skipped_count: Periods found already credited.
        completed_count: Positions completed.
        error_count: Failed units reported by the run.
    """

    credited_count: int = 0
    skipped_count: int = 0
    completed_count: int = 0
    error_count: int = 0


@dataclass(frozen=True)
class DistributionRunState:
    """Runtime lifecycle and outcome state for one distribution run.

    Attributes:
        status: Run status (`started`, `success`, `failed`).
        started_at_utc: Run start timestamp in UTC.
        ended_at_utc: Optional run end timestamp in UTC.
        duration_ms: Optional run duration in milliseconds.
        error_code: Optional deterministic error code.
        error_message: Optional human-readable error message.
        diagnostics: Optional structured timeline payload.
    """

    status: str
    started_at_utc: datetime
    ended_at_utc: datetime | None
    duration_ms: int | None
    error_code: str | None
    error_message: str | None
    diagnostics: list[dict[str, Any]] | None


@dataclass(frozen=True)
class DistributionRunRecord:
    """Persistence model for one distribution run audit row.

    Attributes:
        distribution_run_id: Unique run identifier.
        run_type: Trigger source (`scheduled`, `manual`).
        job_name: Executed job name.
        as_of_utc: Injected evaluation instant used by the run.
        counts: Outcome counters.
        state: Runtime lifecycle and outcome state values.
        created_at_utc: Persistence row creation timestamp in UTC.
    """

    distribution_run_id: UUID
    run_type: str
    job_name: str
    as_of_utc: datetime
    counts: DistributionRunCounts
    state: DistributionRunState
    created_at_utc: datetime


class LedgerUnitOfWorkPort(Protocol):
    """Port for operations sharing one atomic ledger transaction.

    Every method runs inside the transaction opened by
    `LedgerStorePort.db_ledger_unit_of_work`; nothing is visible to other
    transactions until that context exits without an exception.
    """

    def db_position_lock_for_update(self, position_id: UUID) -> PositionRecord | None:
        """Lock one position row for the rest of the unit and return it.

        Args:
            position_id: Position identifier.

        Returns:
            PositionRecord | None: Locked position row, or None when absent.

        Raises:
            TransientStorageError: Raised when the statement fails.
        """

    def db_period_credit_insert_if_absent(self, request: PeriodCreditInsertRequest) -> PeriodCreditRecord | None:
        """Insert a period credit unless (position, period index) already exists.

        Args:
            request: Period credit insert payload.

        Returns:
            PeriodCreditRecord | None: Inserted row, or None on uniqueness conflict.

        Raises:
            TransientStorageError: Raised when the statement fails.
        """

    def db_period_credit_list_indices(self, position_id: UUID) -> list[int]:
        """List credited period indices of one position in ascending order.

        Args:
            position_id: Position identifier.

        Returns:
            list[int]: Ascending credited period indices.

        Raises:
            TransientStorageError: Raised when the statement fails.
        """

    def db_position_add_accumulated_profit(
        self,
        position_id: UUID,
        amount: Decimal,
        full_term_amount: Decimal,
    ) -> Decimal:
        """Increment accumulated profit of an active position within its cap.

        Args:
            position_id: Position identifier.
            amount: Credited amount.
            full_term_amount: Maximum accumulated profit allowed for the position.

        Returns:
            Decimal: Accumulated profit after the increment.

        Raises:
            LookupError: Raised when the position is not active or the cap would be exceeded.
            TransientStorageError: Raised when the statement fails.
        """

    def db_position_mark_completed(self, position_id: UUID, ended_at_utc: datetime) -> PositionRecord:
        """Transition an active position to `completed`.

        Args:
            position_id: Position identifier.
            ended_at_utc: Completion timestamp.

        Returns:
            PositionRecord: Updated position row.

        Raises:
            LookupError: Raised when the position is not active.
            TransientStorageError: Raised when the statement fails.
        """

    def db_balance_increment(self, owner_id: UUID, amount: Decimal) -> Decimal:
        """Atomically add an amount to one balance aggregate.

        Args:
            owner_id: Balance owner identifier.
            amount: Signed amount to add.

        Returns:
            Decimal: Total balance after the increment.

        Raises:
            LookupError: Raised when the balance row does not exist.
            TransientStorageError: Raised when the statement fails.
        """

    def db_transaction_log_append(self, request: TransactionLogAppendRequest) -> TransactionLogRecord:
        """Append one transaction log entry.

        Args:
            request: Entry payload.

        Returns:
            TransactionLogRecord: Inserted entry.

        Raises:
            TransientStorageError: Raised when the statement fails.
        """


class LedgerStorePort(Protocol):
    """Port definition for ledger reads and atomic units of work."""

    def db_ledger_unit_of_work(self) -> AbstractContextManager[LedgerUnitOfWorkPort]:
        """Open one atomic unit of work.

        The unit commits when the context exits normally and rolls back when it
        exits with an exception.

        Returns:
            AbstractContextManager[LedgerUnitOfWorkPort]: Unit of work context.

        Raises:
            TransientStorageError: Raised when the transaction cannot begin or commit.
        """

    def db_position_list_active(self) -> list[PositionRecord]:
        """List all active positions ordered by start time and id.

        Returns:
            list[PositionRecord]: Active positions.

        Raises:
            TransientStorageError: Raised when the read fails.
        """

    def db_position_list_term_elapsed(self, as_of_utc: datetime) -> list[PositionRecord]:
        """List active positions whose full term has elapsed at `as_of_utc`.

        Args:
            as_of_utc: Evaluation instant.

        Returns:
            list[PositionRecord]: Completion candidates.

        Raises:
            TransientStorageError: Raised when the read fails.
        """

    def db_position_get_by_id(self, position_id: UUID) -> PositionRecord | None:
        """Fetch one position by id.

        Args:
            position_id: Position identifier.

        Returns:
            PositionRecord | None: Matching row or None.

        Raises:
            TransientStorageError: Raised when the read fails.
        """

    def db_period_credit_list_for_position(self, position_id: UUID) -> list[PeriodCreditRecord]:
        """List period credits of one position ordered by period index.

        Args:
            position_id: Position identifier.

        Returns:
            list[PeriodCreditRecord]: Credit rows.

        Raises:
            TransientStorageError: Raised when the read fails.
        """

    def db_transaction_log_list_for_owner(
        self,
        owner_id: UUID,
        kind: str | None,
        limit: int,
        offset: int,
    ) -> list[TransactionLogRecord]:
        """List transaction log entries of one owner, newest first.

        Args:
            owner_id: Balance owner identifier.
            kind: Entry kind filter, or None for every kind.
            limit: Maximum number of entries.
            offset: Number of entries to skip.

        Returns:
            list[TransactionLogRecord]: Entries ordered by creation time descending.

        Raises:
            TransientStorageError: Raised when the read fails.
        """

    def db_transaction_log_total_for_owner(self, owner_id: UUID, kind: str) -> Decimal:
        """Sum transaction log amounts of one owner and kind.

        Args:
            owner_id: Balance owner identifier.
            kind: Entry kind to sum.

        Returns:
            Decimal: Total amount, zero when there are no entries.

        Raises:
            TransientStorageError: Raised when the read fails.
        """

    def db_balance_get(self, owner_id: UUID) -> BalanceRecord | None:
        """Fetch one balance aggregate.

        Args:
            owner_id: Balance owner identifier.

        Returns:
            BalanceRecord | None: Balance row or None.

        Raises:
            TransientStorageError: Raised when the read fails.
        """

    def db_profit_summary(self, credited_since_utc: datetime) -> ProfitSummaryRecord:
        """Compute aggregate profit figures.

        Args:
            credited_since_utc: Lower bound for the recent-credit total.

        Returns:
            ProfitSummaryRecord: Summary figures.

        Raises:
            TransientStorageError: Raised when the read fails.
        """


class DistributionRunRepositoryPort(Protocol):
    """Port definition for distribution run audit persistence and reads."""

    def db_distribution_run_create_started(
        self,
        run_type: str,
        job_name: str,
        as_of_utc: datetime,
    ) -> DistributionRunRecord:
        """Create a new started distribution run row.

        Args:
            run_type: Trigger source (`scheduled`, `manual`).
            job_name: Executed job name.
            as_of_utc: Injected evaluation instant.

        Returns:
            DistributionRunRecord: Newly created run row with `started` status.

        Raises:
            ValueError: Raised when an input value is invalid.
            TransientStorageError: Raised when persistence fails.
        """

    def db_distribution_run_finalize(
        self,
        distribution_run_id: UUID,
        status: str,
        counts: DistributionRunCounts,
        error_code: str | None,
        error_message: str | None,
        diagnostics: list[dict[str, Any]] | None,
    ) -> DistributionRunRecord:
        """Finalize a started run to success or failed.

        Args:
            distribution_run_id: Run identifier to finalize.
            status: Final status (`success` or `failed`).
            counts: Outcome counters.
            error_code: Optional deterministic error code.
            error_message: Optional human-readable error message.
            diagnostics: Optional structured timeline payload.

        Returns:
            DistributionRunRecord: Updated run row after finalization.

        Raises:
            LookupError: Raised when the run id is not found.
            ValueError: Raised when status is invalid.
            TransientStorageError: Raised when persistence fails.
        """

    def db_distribution_run_get_by_id(self, distribution_run_id: UUID) -> DistributionRunRecord | None:
        """Fetch one distribution run by primary key.

        Args:
            distribution_run_id: Run identifier.

        Returns:
            DistributionRunRecord | None: Matching run row, or None when absent.

        Raises:
            TransientStorageError: Raised when the read fails.
        """

    def db_distribution_run_list(self, limit: int, offset: int) -> list[DistributionRunRecord]:
        """List distribution runs ordered by latest start timestamp and id.

        Args:
            limit: Max rows to return.
            offset: Rows to skip.

        Returns:
            list[DistributionRunRecord]: Deterministically ordered run rows.

        Raises:
            ValueError: Raised when pagination arguments are invalid.
        """
