"""Position lifecycle transitions after the term elapses.

Completion runs a catch-up distribution first, then, in one unit of work,
verifies full period coverage, marks the position completed, returns the
principal to the owner balance and appends the `principal_return` entry.
"""

from __future__ import annotations

import logging
from datetime import datetime
from uuid import UUID

from profit_ledger.db import LedgerStorePort, PositionRecord, TransactionLogAppendRequest
from profit_ledger.domain import (
    POSITION_STATUS_ACTIVE,
    TRANSACTION_KIND_PRINCIPAL_RETURN,
    domain_parse_period_unit,
)

from .engine import ProfitDistributionEngine
from .errors import CatchUpFailedError, IncompleteCoverageError, PositionNotFoundError, TermNotElapsedError
from .interfaces import CompletionErrorEntry, CompletionResult
from .periods import period_compute_due

logger = logging.getLogger(__name__)


class PositionLifecycleManager:
    """Complete term-elapsed positions and return their principal."""

    def __init__(self, store: LedgerStorePort, engine: ProfitDistributionEngine):
        """Initialize lifecycle dependencies.

        Args:
            store: Ledger store providing reads and units of work.
            engine: Distribution engine used for the catch-up pass.

        Returns:
            None: Initializer does not return values.

        Raises:
            ValueError: Raised when a dependency is None.
        """

        if store is None:
            raise ValueError("store must not be None")
        if engine is None:
            raise ValueError("engine must not be None")
        self._store = store
        self._engine = engine

    def complete_expired(self, now_utc: datetime) -> CompletionResult:
        """Complete every active position whose full term has elapsed.

        Positions whose catch-up or coverage check fails stay active and are
        reported in `errors`.

        Args:
            now_utc: Offset-aware evaluation instant.

        Returns:
            CompletionResult: Completion aggregates.

        Raises:
            ValueError: Raised when now_utc is offset-naive.
            TransientStorageError: Raised when candidates cannot be listed.
        """

        _lifecycle_validate_now(now_utc)
        candidates = self._store.db_position_list_term_elapsed(now_utc)

        completed_position_ids: list[UUID] = []
        already_final = 0
        catch_up_credited = 0
        errors: list[CompletionErrorEntry] = []

        for position in candidates:
            try:
                outcome, credited = self._lifecycle_complete(position=position, now_utc=now_utc)
            except Exception as error:
                logger.warning("completion failed for position %s: %s", position.position_id, error)
                errors.append(
                    CompletionErrorEntry(position_id=position.position_id, reason=f"{type(error).__name__}: {error}")
                )
                continue

            catch_up_credited += credited
            if outcome:
                completed_position_ids.append(position.position_id)
            else:
                already_final += 1

        logger.info(
            "position completion as_of=%s candidates=%d completed=%d already_final=%d errors=%d",
            now_utc.isoformat(),
            len(candidates),
            len(completed_position_ids),
            already_final,
            len(errors),
        )
        return CompletionResult(
            completed=len(completed_position_ids),
            already_final=already_final,
            catch_up_credited=catch_up_credited,
            errors=tuple(errors),
            completed_position_ids=tuple(completed_position_ids),
        )

    def complete_position(self, position_id: UUID, now_utc: datetime) -> CompletionResult:
        """Complete one position on operator request.

        Args:
            position_id: Position to complete.
            now_utc: Offset-aware evaluation instant.

        Returns:
            CompletionResult: Single-position completion outcome.

        Raises:
            ValueError: Raised when now_utc is offset-naive.
            PositionNotFoundError: Raised when the position does not exist.
            LookupError: Raised when the owner balance row is missing at completion.
            TermNotElapsedError: Raised when the position term has not elapsed.
            IncompleteCoverageError: Raised when period credits are still missing after catch-up.
        """

        _lifecycle_validate_now(now_utc)
        position = self._store.db_position_get_by_id(position_id)
        if position is None:
            raise PositionNotFoundError(f"position {position_id} was not found")
        if position.status != POSITION_STATUS_ACTIVE:
            return CompletionResult(already_final=1)

        due_periods = period_compute_due(
            started_at_utc=position.started_at_utc,
            period_duration=domain_parse_period_unit(position.terms.period_unit).duration,
            total_periods=position.terms.total_periods,
            now_utc=now_utc,
        )
        if not due_periods.full_term_reached:
            raise TermNotElapsedError(
                f"position {position_id} has {position.terms.total_periods - len(due_periods.indices)} "
                "period(s) remaining"
            )

        completed, credited = self._lifecycle_complete(position=position, now_utc=now_utc)
        if not completed:
            return CompletionResult(already_final=1, catch_up_credited=credited)
        return CompletionResult(
            completed=1,
            catch_up_credited=credited,
            completed_position_ids=(position.position_id,),
        )

    def _lifecycle_complete(self, position: PositionRecord, now_utc: datetime) -> tuple[bool, int]:
        """Catch up missing credits and complete one position.

        Args:
            position: Term-elapsed candidate.
            now_utc: Evaluation instant, also stored as the end timestamp.

        Returns:
            tuple[bool, int]: Whether the position was completed here, and catch-up credits.

        Raises:
            CatchUpFailedError: Raised when catch-up credits fail.
            IncompleteCoverageError: Raised when period credits are missing.
            LookupError: Raised when the balance row is missing.
        """

        catch_up = self._engine.distribute_position(position=position, now_utc=now_utc)
        if catch_up.errors:
            raise CatchUpFailedError(f"catch-up credit failed: {catch_up.errors[0].reason}")

        with self._store.db_ledger_unit_of_work() as unit:
            locked_position = unit.db_position_lock_for_update(position.position_id)
            if locked_position is None or locked_position.status != POSITION_STATUS_ACTIVE:
                return False, catch_up.credited

            credited_indices = set(unit.db_period_credit_list_indices(locked_position.position_id))
            missing_indices = [
                index
                for index in range(1, locked_position.terms.total_periods + 1)
                if index not in credited_indices
            ]
            if missing_indices:
                raise IncompleteCoverageError(locked_position.position_id, missing_indices)

            unit.db_position_mark_completed(position_id=locked_position.position_id, ended_at_utc=now_utc)
            unit.db_balance_increment(owner_id=locked_position.owner_id, amount=locked_position.terms.principal)
            unit.db_transaction_log_append(
                TransactionLogAppendRequest(
                    owner_id=locked_position.owner_id,
                    kind=TRANSACTION_KIND_PRINCIPAL_RETURN,
                    amount=locked_position.terms.principal,
                    position_id=locked_position.position_id,
                    period_credit_id=None,
                    description=f"Principal return for completed position {locked_position.position_id}",
                )
            )

        logger.info(
            "position %s completed principal=%s accumulated_profit=%s",
            position.position_id,
            locked_position.terms.principal,
            locked_position.accumulated_profit,
        )
        return True, catch_up.credited


def _lifecycle_validate_now(now_utc: datetime) -> None:
    if now_utc is None or now_utc.tzinfo is None or now_utc.utcoffset() is None:
        raise ValueError("now_utc must be an offset-aware datetime")
