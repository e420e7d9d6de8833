"""Period schedule computation for position profit accrual.

Everything here is pure: no storage access, no clock reads. Elapsed time is
measured from the position start timestamp, not from calendar boundaries, and
the number of due periods is clamped to the position term.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal

from .errors import ConfigurationError


@dataclass(frozen=True)
class DuePeriods:
    """Periods of one position that are due at an evaluation instant.

    Attributes:
        indices: Ascending one-based period indices eligible for credit.
        elapsed_periods: Whole periods elapsed since start, before clamping.
        full_term_reached: Whether the whole term has elapsed.
    """

    indices: tuple[int, ...]
    elapsed_periods: int
    full_term_reached: bool


@dataclass(frozen=True)
class PositionProgress:
    """Progress snapshot of one position for operator display.

    Attributes:
        periods_elapsed: Whole periods elapsed, clamped to the term.
        periods_credited: Periods already credited.
        periods_remaining: Periods of the term not yet elapsed.
        progress_percentage: Elapsed share of the term, 0 to 100 with two decimals.
        full_term_reached: Whether the whole term has elapsed.
        next_period_due_at_utc: Boundary of the next period, or None after the term.
        term_ends_at_utc: Boundary of the final period.
    """

    periods_elapsed: int
    periods_credited: int
    periods_remaining: int
    progress_percentage: Decimal
    full_term_reached: bool
    next_period_due_at_utc: datetime | None
    term_ends_at_utc: datetime


def period_compute_due(
    started_at_utc: datetime,
    period_duration: timedelta,
    total_periods: int,
    now_utc: datetime,
) -> DuePeriods:
    """Compute the ordered period indices due for credit.

    `N = floor((now - start) / duration)` clamped to `total_periods`; the result
    is `1..N`. An instant before the start yields no periods.

    Args:
        started_at_utc: Offset-aware position start timestamp.
        period_duration: Length of one period.
        total_periods: Number of periods in the term.
        now_utc: Offset-aware evaluation instant.

    Returns:
        DuePeriods: Due indices and term status.

    Raises:
        ConfigurationError: Raised when duration or total periods is not positive.
        ValueError: Raised when a timestamp is offset-naive.
    """

    _period_validate_schedule(period_duration=period_duration, total_periods=total_periods)
    _period_validate_aware(started_at_utc, "started_at_utc")
    _period_validate_aware(now_utc, "now_utc")

    if now_utc < started_at_utc:
        return DuePeriods(indices=(), elapsed_periods=0, full_term_reached=False)

    elapsed_periods = (now_utc - started_at_utc) // period_duration
    due_count = min(elapsed_periods, total_periods)
    return DuePeriods(
        indices=tuple(range(1, due_count + 1)),
        elapsed_periods=elapsed_periods,
        full_term_reached=elapsed_periods >= total_periods,
    )


def period_boundary_at(started_at_utc: datetime, period_duration: timedelta, period_index: int) -> datetime:
    """Return the nominal boundary timestamp a period index represents.

    Args:
        started_at_utc: Position start timestamp.
        period_duration: Length of one period.
        period_index: One-based period index.

    Returns:
        datetime: `start + index × duration`.

    Raises:
        ValueError: Raised when period index is below 1.
    """

    if period_index < 1:
        raise ValueError("period_index must be >= 1")
    return started_at_utc + period_duration * period_index


def period_build_progress(
    started_at_utc: datetime,
    period_duration: timedelta,
    total_periods: int,
    periods_credited: int,
    now_utc: datetime,
) -> PositionProgress:
    """Build a progress snapshot for one position.

    Args:
        started_at_utc: Offset-aware position start timestamp.
        period_duration: Length of one period.
        total_periods: Number of periods in the term.
        periods_credited: Number of period credits recorded.
        now_utc: Offset-aware evaluation instant.

    Returns:
        PositionProgress: Progress snapshot.

    Raises:
        ConfigurationError: Raised when duration or total periods is not positive.
        ValueError: Raised when credited count is negative or a timestamp is offset-naive.
    """

    if periods_credited < 0:
        raise ValueError("periods_credited must be >= 0")

    due_periods = period_compute_due(
        started_at_utc=started_at_utc,
        period_duration=period_duration,
        total_periods=total_periods,
        now_utc=now_utc,
    )
    periods_elapsed = len(due_periods.indices)
    progress_percentage = (Decimal(periods_elapsed) * Decimal(100) / Decimal(total_periods)).quantize(Decimal("0.01"))

    next_period_due_at_utc = None
    if not due_periods.full_term_reached:
        next_period_due_at_utc = period_boundary_at(started_at_utc, period_duration, periods_elapsed + 1)

    return PositionProgress(
        periods_elapsed=periods_elapsed,
        periods_credited=periods_credited,
        periods_remaining=total_periods - periods_elapsed,
        progress_percentage=progress_percentage,
        full_term_reached=due_periods.full_term_reached,
        next_period_due_at_utc=next_period_due_at_utc,
        term_ends_at_utc=started_at_utc + period_duration * total_periods,
    )


def _period_validate_schedule(period_duration: timedelta, total_periods: int) -> None:
    if not isinstance(period_duration, timedelta) or period_duration <= timedelta(0):
        raise ConfigurationError(f"period duration must be positive, got {period_duration}")
    if isinstance(total_periods, bool) or not isinstance(total_periods, int) or total_periods < 1:
        raise ConfigurationError(f"total_periods must be a positive integer, got {total_periods}")


def _period_validate_aware(value: datetime, field_name: str) -> None:
    if value.tzinfo is None or value.utcoffset() is None:
        raise ValueError(f"{field_name} must be offset-aware")
