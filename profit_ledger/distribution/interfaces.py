"""Typed result contracts for distribution and lifecycle operations."""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from uuid import UUID


@dataclass(frozen=True)
class DistributionErrorEntry:
    """One failed credit attempt.

    Attributes:
        position_id: Affected position.
        period_index: Affected period, or None when the whole position failed validation.
        reason: Error type and message.
    """

    position_id: UUID
    period_index: int | None
    reason: str


@dataclass(frozen=True)
class PositionDistributionResult:
    """Credit outcome for one position.

    Attributes:
        position_id: Processed position.
        credited: Periods newly credited.
        skipped: Periods already credited.
        errors: Failed credit attempts.
        accumulated_profit: Latest known accumulated profit.
        fully_accrued: Whether accumulated profit equals the full-term amount.
    """

    position_id: UUID
    credited: int
    skipped: int
    errors: tuple[DistributionErrorEntry, ...]
    accumulated_profit: Decimal
    fully_accrued: bool


@dataclass(frozen=True)
class DistributionResult:
    """Aggregate outcome of one `distribute` invocation.

    Attributes:
        credited: Periods newly credited.
        skipped: Periods already credited.
        errors: Failed credit attempts.
        fully_accrued_position_ids: Positions whose full-term profit is credited.
    """

    credited: int = 0
    skipped: int = 0
    errors: tuple[DistributionErrorEntry, ...] = field(default_factory=tuple)
    fully_accrued_position_ids: tuple[UUID, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class CompletionErrorEntry:
    """One position that could not be completed.

    Attributes:
        position_id: Affected position.
        reason: Error type and message.
    """

    position_id: UUID
    reason: str


@dataclass(frozen=True)
class CompletionResult:
    """Aggregate outcome of one completion invocation.

    Attributes:
        completed: Positions transitioned to `completed`.
        already_final: Candidates that were no longer active when locked.
        catch_up_credited: Periods credited by the pre-completion catch-up.
        errors: Positions left active with the failure reason.
        completed_position_ids: Identifiers of completed positions.
    """

    completed: int = 0
    already_final: int = 0
    catch_up_credited: int = 0
    errors: tuple[CompletionErrorEntry, ...] = field(default_factory=tuple)
    completed_position_ids: tuple[UUID, ...] = field(default_factory=tuple)
