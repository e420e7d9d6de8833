"""Profit distribution and position lifecycle package."""

from .engine import PositionSchedule, ProfitDistributionEngine, distribution_resolve_schedule
from .errors import (
    CatchUpFailedError,
    ConfigurationError,
    IncompleteCoverageError,
    PositionNotFoundError,
    TermNotElapsedError,
)
from .guard import GuardOutcome, GuardReservation, guard_reserve_period
from .interfaces import (
    CompletionErrorEntry,
    CompletionResult,
    DistributionErrorEntry,
    DistributionResult,
    PositionDistributionResult,
)
from .lifecycle import PositionLifecycleManager
from .periods import (
    DuePeriods,
    PositionProgress,
    period_boundary_at,
    period_build_progress,
    period_compute_due,
)

__all__ = [
    "CatchUpFailedError",
    "CompletionErrorEntry",
    "CompletionResult",
    "ConfigurationError",
    "DistributionErrorEntry",
    "DistributionResult",
    "DuePeriods",
    "GuardOutcome",
    "GuardReservation",
    "IncompleteCoverageError",
    "PositionDistributionResult",
    "PositionLifecycleManager",
    "PositionNotFoundError",
    "PositionProgress",
    "PositionSchedule",
    "ProfitDistributionEngine",
    "TermNotElapsedError",
    "distribution_resolve_schedule",
    "guard_reserve_period",
    "period_boundary_at",
    "period_build_progress",
    "period_compute_due",
]
