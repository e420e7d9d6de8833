"""Typed domain models shared across runtime layers.

This module provides simple data contracts and value helpers for cross-layer
communication between the ledger store, distribution engine and surfaces.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from enum import Enum

POSITION_STATUS_ACTIVE = "active"
POSITION_STATUS_COMPLETED = "completed"
POSITION_STATUS_CANCELLED = "cancelled"

TRANSACTION_KIND_PROFIT = "profit"
TRANSACTION_KIND_PRINCIPAL_RETURN = "principal_return"

DEFAULT_CURRENCY_QUANTUM = Decimal("0.01")


class PeriodUnit(str, Enum):
    """Accrual period unit of a position."""

    HOUR = "hour"
    DAY = "day"

    @property
    def duration(self) -> timedelta:
        """Return the fixed wall-clock length of one period.

        Returns:
            timedelta: One hour or one day.

        Raises:
            RuntimeError: This property does not raise runtime errors.
        """

        if self is PeriodUnit.HOUR:
            return timedelta(hours=1)
        return timedelta(days=1)


@dataclass(frozen=True)
class HealthStatus:
    """Health response contract used by health-check surfaces.

    Attributes:
        status: Overall status text for service health.
        detail: Additional message suitable for operational diagnostics.
    """

    status: str
    detail: str


def domain_quantize_money(value: Decimal, quantum: Decimal = DEFAULT_CURRENCY_QUANTUM) -> Decimal:
    """Round a monetary amount half-up to the smallest currency unit.

    Args:
        value: Exact decimal amount.
        quantum: Smallest currency unit, for example `Decimal("0.01")`.

    Returns:
        Decimal: Rounded amount with the quantum exponent.

    Raises:
        ValueError: Raised when inputs are not finite decimals or quantum is not positive.
    """

    if not isinstance(value, Decimal) or not isinstance(quantum, Decimal):
        raise ValueError("value and quantum must be Decimal instances")
    if quantum <= 0:
        raise ValueError("quantum must be positive")
    try:
        return value.quantize(quantum, rounding=ROUND_HALF_UP)
    except InvalidOperation as error:
        raise ValueError(f"cannot quantize value={value} to quantum={quantum}") from error


def domain_parse_period_unit(value: str) -> PeriodUnit:
    """Parse a persisted period unit label.

    Args:
        value: Period unit label (`hour` or `day`).

    Returns:
        PeriodUnit: Parsed period unit.

    Raises:
        ValueError: Raised when the label is unknown.
    """

    normalized_value = str(value).strip().lower()
    try:
        return PeriodUnit(normalized_value)
    except ValueError as error:
        raise ValueError(f"unsupported period_unit={value}") from error
