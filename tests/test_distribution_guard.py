"""Tests for at-most-once period credit reservation."""

from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal
from uuid import uuid4

import pytest

from profit_ledger.db import PeriodCreditInsertRequest, PeriodCreditRecord
from profit_ledger.distribution import GuardOutcome, guard_reserve_period

_PERIOD_AT_UTC = datetime(2026, 1, 1, 1, 0, tzinfo=timezone.utc)


class _UnitStub:
    """Unit-of-work stub enforcing a unique (position, period) key."""

    def __init__(self):
        """Initialize empty credit storage.

        Returns:
            None: Initializer does not return values.
        """

        self.inserted: dict[tuple, PeriodCreditRecord] = {}
        self.insert_calls = 0

    def db_period_credit_insert_if_absent(self, request: PeriodCreditInsertRequest) -> PeriodCreditRecord | None:
        """Insert unless the key already exists.

        Args:
            request: Credit insert request.

        Returns:
            PeriodCreditRecord | None: Inserted row, or None on conflict.
        """

        self.insert_calls += 1
        key = (request.position_id, request.period_index)
        if key in self.inserted:
            return None
        record = PeriodCreditRecord(
            period_credit_id=uuid4(),
            position_id=request.position_id,
            period_index=request.period_index,
            amount=request.amount,
            period_at_utc=request.period_at_utc,
            created_at_utc=_PERIOD_AT_UTC,
        )
        self.inserted[key] = record
        return record


def _build_request(position_id, period_index: int) -> PeriodCreditInsertRequest:
    return PeriodCreditInsertRequest(
        position_id=position_id,
        period_index=period_index,
        amount=Decimal("1.00"),
        period_at_utc=_PERIOD_AT_UTC,
    )


def test_guard_reserve_period_reserves_first_attempt() -> None:
    """First reservation inserts the credit row."""

    unit = _UnitStub()
    position_id = uuid4()

    reservation = guard_reserve_period(unit, _build_request(position_id, 1))

    assert reservation.outcome is GuardOutcome.RESERVED
    assert reservation.credit is not None
    assert reservation.credit.period_index == 1


def test_guard_reserve_period_reports_already_credited_without_error() -> None:
    """A conflicting reservation is an outcome, not an exception."""

    unit = _UnitStub()
    position_id = uuid4()
    guard_reserve_period(unit, _build_request(position_id, 1))

    reservation = guard_reserve_period(unit, _build_request(position_id, 1))

    assert reservation.outcome is GuardOutcome.ALREADY_CREDITED
    assert reservation.credit is None
    assert len(unit.inserted) == 1


def test_guard_reserve_period_keys_by_position_and_index() -> None:
    """Same index on another position, or another index, is independent."""

    unit = _UnitStub()
    first_position_id = uuid4()
    second_position_id = uuid4()

    outcomes = [
        guard_reserve_period(unit, _build_request(first_position_id, 1)).outcome,
        guard_reserve_period(unit, _build_request(first_position_id, 2)).outcome,
        guard_reserve_period(unit, _build_request(second_position_id, 1)).outcome,
    ]

    assert outcomes == [GuardOutcome.RESERVED] * 3


def test_guard_reserve_period_rejects_missing_inputs() -> None:
    """None inputs are programming errors."""

    with pytest.raises(ValueError):
        guard_reserve_period(None, _build_request(uuid4(), 1))
    with pytest.raises(ValueError):
        guard_reserve_period(_UnitStub(), None)
