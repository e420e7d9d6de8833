"""At-most-once period credit reservation.

The guard relies only on the `(position_id, period_index)` unique constraint of
the ledger store. A conflicting row is an expected outcome, not an error, and
leaves the unit of work without mutations.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from profit_ledger.db import LedgerUnitOfWorkPort, PeriodCreditInsertRequest, PeriodCreditRecord


class GuardOutcome(str, Enum):
    """Result of one reservation attempt."""

    RESERVED = "reserved"
    ALREADY_CREDITED = "already_credited"


@dataclass(frozen=True)
class GuardReservation:
    """Reservation attempt result.

    Attributes:
        outcome: Reservation outcome.
        credit: Inserted credit row when reserved, otherwise None.
    """

    outcome: GuardOutcome
    credit: PeriodCreditRecord | None


def guard_reserve_period(unit: LedgerUnitOfWorkPort, request: PeriodCreditInsertRequest) -> GuardReservation:
    """Reserve one (position, period index) pair inside an open unit of work.

    On `RESERVED` the caller must apply the balance update and transaction log
    entry in the same unit before it commits.

    Args:
        unit: Open ledger unit of work.
        request: Period credit to insert.

    Returns:
        GuardReservation: `RESERVED` with the new row, or `ALREADY_CREDITED`.

    Raises:
        ValueError: Raised when unit or request is None.
        TransientStorageError: Raised by the unit when the insert fails.
    """

    if unit is None:
        raise ValueError("unit must not be None")
    if request is None:
        raise ValueError("request must not be None")

    inserted_credit = unit.db_period_credit_insert_if_absent(request)
    if inserted_credit is None:
        return GuardReservation(outcome=GuardOutcome.ALREADY_CREDITED, credit=None)
    return GuardReservation(outcome=GuardOutcome.RESERVED, credit=inserted_credit)
