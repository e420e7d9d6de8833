"""Profit distribution engine.

For each active position the engine computes due periods and credits every
missing one in ascending order. Each (position, period) credit is a separate
unit of work holding the position row lock, the guarded credit insert, the
accumulated-profit update, the balance increment and the `profit` log entry.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal
from enum import Enum

from profit_ledger.db import (
    LedgerStorePort,
    PeriodCreditInsertRequest,
    PositionRecord,
    PositionTerms,
    TransactionLogAppendRequest,
)
from profit_ledger.domain import (
    DEFAULT_CURRENCY_QUANTUM,
    POSITION_STATUS_ACTIVE,
    TRANSACTION_KIND_PROFIT,
    domain_parse_period_unit,
    domain_quantize_money,
)

from .errors import ConfigurationError
from .guard import GuardOutcome, guard_reserve_period
from .interfaces import DistributionErrorEntry, DistributionResult, PositionDistributionResult
from .periods import period_boundary_at, period_compute_due

logger = logging.getLogger(__name__)


class _CreditOutcome(str, Enum):
    CREDITED = "credited"
    ALREADY_CREDITED = "already_credited"
    POSITION_NOT_ACTIVE = "position_not_active"


@dataclass(frozen=True)
class PositionSchedule:
    """Validated accrual schedule of one position.

    Attributes:
        period_duration: Length of one period.
        period_profit: Exact unrounded profit of one period, `principal × period_rate`.
        full_term_amount: Full-term cap, `principal × period_rate × total_periods` rounded half-up.
        currency_quantum: Smallest currency unit of credited amounts.
    """

    period_duration: timedelta
    period_profit: Decimal
    full_term_amount: Decimal
    currency_quantum: Decimal = DEFAULT_CURRENCY_QUANTUM

    def amount_for_period(self, period_index: int) -> Decimal:
        """Return the amount credited for one period.

        Each credit is the rounded cumulative entitlement through `period_index`
        minus the rounded entitlement through the previous period, so credits
        1..k always sum to `round(period_profit × k)` and the full term sums to
        `full_term_amount` exactly.

        Args:
            period_index: One-based period index.

        Returns:
            Decimal: Positive amount rounded to the currency quantum.

        Raises:
            ValueError: Raised when period_index is below 1.
        """

        if period_index < 1:
            raise ValueError("period_index must be >= 1")
        through_period = domain_quantize_money(self.period_profit * period_index, self.currency_quantum)
        through_previous = domain_quantize_money(self.period_profit * (period_index - 1), self.currency_quantum)
        return through_period - through_previous


def distribution_resolve_schedule(
    terms: PositionTerms,
    currency_quantum: Decimal = DEFAULT_CURRENCY_QUANTUM,
) -> PositionSchedule:
    """Validate position terms and derive the accrual schedule.

    Profit is `principal × period_rate` per period without compounding. Rounding
    half-up to the currency quantum is applied to the cumulative entitlement, so
    accumulated profit never exceeds `principal × period_rate × total_periods`
    rounded once.

    Args:
        terms: Position accrual terms.
        currency_quantum: Smallest currency unit.

    Returns:
        PositionSchedule: Validated schedule.

    Raises:
        ConfigurationError: Raised when any term is non-positive or unknown, or the
            per-period profit is below the currency quantum.
    """

    try:
        period_unit = domain_parse_period_unit(terms.period_unit)
    except ValueError as error:
        raise ConfigurationError(str(error)) from error

    if terms.principal <= 0:
        raise ConfigurationError(f"principal must be positive, got {terms.principal}")
    if terms.period_rate <= 0:
        raise ConfigurationError(f"period_rate must be positive, got {terms.period_rate}")
    if terms.total_periods < 1:
        raise ConfigurationError(f"total_periods must be positive, got {terms.total_periods}")

    # Below one quantum per period some credits would be zero.
    period_profit = terms.principal * terms.period_rate
    if period_profit < currency_quantum:
        raise ConfigurationError(
            f"period profit {period_profit} is below the currency quantum {currency_quantum} "
            f"for principal={terms.principal} period_rate={terms.period_rate}"
        )

    return PositionSchedule(
        period_duration=period_unit.duration,
        period_profit=period_profit,
        full_term_amount=domain_quantize_money(period_profit * terms.total_periods, currency_quantum),
        currency_quantum=currency_quantum,
    )


class ProfitDistributionEngine:
    """Credit due periods of active positions exactly once."""

    def __init__(self, store: LedgerStorePort, currency_quantum: Decimal = DEFAULT_CURRENCY_QUANTUM):
        """Initialize engine dependencies.

        Args:
            store: Ledger store providing reads and units of work.
            currency_quantum: Smallest currency unit for credited amounts.

        Returns:
            None: Initializer does not return values.

        Raises:
            ValueError: Raised when store is None or quantum is not positive.
        """

        if store is None:
            raise ValueError("store must not be None")
        if currency_quantum <= 0:
            raise ValueError("currency_quantum must be positive")
        self._store = store
        self._currency_quantum = currency_quantum

    def distribute(self, now_utc: datetime) -> DistributionResult:
        """Credit every due, uncredited period of every active position.

        Per-position and per-period failures are aggregated into the result and
        never stop the batch.

        Args:
            now_utc: Offset-aware evaluation instant.

        Returns:
            DistributionResult: Credited, skipped and error aggregates.

        Raises:
            ValueError: Raised when now_utc is offset-naive.
            TransientStorageError: Raised when active positions cannot be listed.
        """

        _distribution_validate_now(now_utc)

        active_positions = self._store.db_position_list_active()
        credited = 0
        skipped = 0
        errors: list[DistributionErrorEntry] = []
        fully_accrued_position_ids = []

        for position in active_positions:
            position_result = self.distribute_position(position=position, now_utc=now_utc)
            credited += position_result.credited
            skipped += position_result.skipped
            errors.extend(position_result.errors)
            if position_result.fully_accrued:
                fully_accrued_position_ids.append(position.position_id)

        logger.info(
            "profit distribution as_of=%s positions=%d credited=%d skipped=%d errors=%d",
            now_utc.isoformat(),
            len(active_positions),
            credited,
            skipped,
            len(errors),
        )
        return DistributionResult(
            credited=credited,
            skipped=skipped,
            errors=tuple(errors),
            fully_accrued_position_ids=tuple(fully_accrued_position_ids),
        )

    def distribute_position(self, position: PositionRecord, now_utc: datetime) -> PositionDistributionResult:
        """Credit due periods of one position in ascending index order.

        The first failed period stops this position so credits stay contiguous;
        the next invocation resumes from the gap.

        Args:
            position: Position row as read at batch start.
            now_utc: Offset-aware evaluation instant.

        Returns:
            PositionDistributionResult: Outcome for this position.

        Raises:
            ValueError: Raised when position is None or now_utc is offset-naive.
        """

        if position is None:
            raise ValueError("position must not be None")
        _distribution_validate_now(now_utc)

        try:
            schedule = distribution_resolve_schedule(position.terms, self._currency_quantum)
            due_periods = period_compute_due(
                started_at_utc=position.started_at_utc,
                period_duration=schedule.period_duration,
                total_periods=position.terms.total_periods,
                now_utc=now_utc,
            )
        except ValueError as error:
            logger.warning("position %s excluded from distribution: %s", position.position_id, error)
            return self._position_result(
                position=position,
                errors=[_distribution_error_entry(position, None, error)],
                accumulated_profit=position.accumulated_profit,
                full_term_amount=None,
            )

        credited = 0
        skipped = 0
        errors: list[DistributionErrorEntry] = []
        accumulated_profit = position.accumulated_profit

        if not due_periods.indices:
            return self._position_result(
                position=position,
                errors=errors,
                accumulated_profit=accumulated_profit,
                full_term_amount=schedule.full_term_amount,
            )

        try:
            committed_indices = {
                credit.period_index
                for credit in self._store.db_period_credit_list_for_position(position.position_id)
            }
        except Exception as error:
            logger.warning("position %s credit lookup failed: %s", position.position_id, error)
            return self._position_result(
                position=position,
                errors=[_distribution_error_entry(position, None, error)],
                accumulated_profit=accumulated_profit,
                full_term_amount=schedule.full_term_amount,
            )

        for period_index in due_periods.indices:
            if period_index in committed_indices:
                skipped += 1
                continue

            try:
                outcome, accumulated_profit = self._distribution_credit_period(
                    position=position,
                    period_index=period_index,
                    schedule=schedule,
                )
            except Exception as error:
                logger.warning(
                    "credit failed for position %s period %d: %s",
                    position.position_id,
                    period_index,
                    error,
                )
                errors.append(_distribution_error_entry(position, period_index, error))
                break

            if outcome is _CreditOutcome.CREDITED:
                credited += 1
            elif outcome is _CreditOutcome.ALREADY_CREDITED:
                skipped += 1
            else:
                logger.info("position %s left active status during distribution", position.position_id)
                break

        return PositionDistributionResult(
            position_id=position.position_id,
            credited=credited,
            skipped=skipped,
            errors=tuple(errors),
            accumulated_profit=accumulated_profit,
            fully_accrued=accumulated_profit >= schedule.full_term_amount,
        )

    def _distribution_credit_period(
        self,
        position: PositionRecord,
        period_index: int,
        schedule: PositionSchedule,
    ) -> tuple[_CreditOutcome, Decimal]:
        """Credit one period inside its own unit of work.

        Args:
            position: Position being credited.
            period_index: One-based period index.
            schedule: Validated schedule of the position.

        Returns:
            tuple[_CreditOutcome, Decimal]: Outcome and accumulated profit seen by the unit.

        Raises:
            LookupError: Raised when the balance row is missing or the profit cap would be exceeded.
            TransientStorageError: Raised when the unit cannot commit.
        """

        amount = schedule.amount_for_period(period_index)

        with self._store.db_ledger_unit_of_work() as unit:
            locked_position = unit.db_position_lock_for_update(position.position_id)
            if locked_position is None:
                return _CreditOutcome.POSITION_NOT_ACTIVE, position.accumulated_profit
            if locked_position.status != POSITION_STATUS_ACTIVE:
                return _CreditOutcome.POSITION_NOT_ACTIVE, locked_position.accumulated_profit

            reservation = guard_reserve_period(
                unit,
                PeriodCreditInsertRequest(
                    position_id=locked_position.position_id,
                    period_index=period_index,
                    amount=amount,
                    period_at_utc=period_boundary_at(
                        locked_position.started_at_utc,
                        schedule.period_duration,
                        period_index,
                    ),
                ),
            )
            if reservation.outcome is GuardOutcome.ALREADY_CREDITED:
                return _CreditOutcome.ALREADY_CREDITED, locked_position.accumulated_profit

            accumulated_profit = unit.db_position_add_accumulated_profit(
                position_id=locked_position.position_id,
                amount=amount,
                full_term_amount=schedule.full_term_amount,
            )
            unit.db_balance_increment(owner_id=locked_position.owner_id, amount=amount)
            unit.db_transaction_log_append(
                TransactionLogAppendRequest(
                    owner_id=locked_position.owner_id,
                    kind=TRANSACTION_KIND_PROFIT,
                    amount=amount,
                    position_id=locked_position.position_id,
                    period_credit_id=reservation.credit.period_credit_id,
                    description=(
                        f"Period {period_index}/{locked_position.terms.total_periods} profit "
                        f"for position {locked_position.position_id}"
                    ),
                )
            )
            return _CreditOutcome.CREDITED, accumulated_profit

    def _position_result(
        self,
        position: PositionRecord,
        errors: list[DistributionErrorEntry],
        accumulated_profit: Decimal,
        full_term_amount: Decimal | None,
    ) -> PositionDistributionResult:
        return PositionDistributionResult(
            position_id=position.position_id,
            credited=0,
            skipped=0,
            errors=tuple(errors),
            accumulated_profit=accumulated_profit,
            fully_accrued=full_term_amount is not None and accumulated_profit >= full_term_amount,
        )


def _distribution_error_entry(
    position: PositionRecord,
    period_index: int | None,
    error: Exception,
) -> DistributionErrorEntry:
    return DistributionErrorEntry(
        position_id=position.position_id,
        period_index=period_index,
        reason=f"{type(error).__name__}: {error}",
    )


def _distribution_validate_now(now_utc: datetime) -> None:
    if now_utc is None or now_utc.tzinfo is None or now_utc.utcoffset() is None:
        raise ValueError("now_utc must be an offset-aware datetime")
