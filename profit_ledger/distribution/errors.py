"""Error types raised by distribution and lifecycle components."""

from __future__ import annotations

from uuid import UUID


class ConfigurationError(ValueError):
    """Raised when position terms cannot be credited safely.

    A position with a non-positive rate, period duration, principal or term, or
    with a per-period profit below the currency quantum, is excluded from
    crediting until its terms are corrected.
    """


class IncompleteCoverageError(RuntimeError):
    """Raised when a term-elapsed position still lacks period credits."""

    def __init__(self, position_id: UUID, missing_indices: list[int]):
        self.position_id = position_id
        self.missing_indices = list(missing_indices)
        preview = ", ".join(str(index) for index in self.missing_indices[:10])
        if len(self.missing_indices) > 10:
            preview += ", ..."
        super().__init__(
            f"position {position_id} is missing {len(self.missing_indices)} period credit(s): {preview}"
        )


class TermNotElapsedError(RuntimeError):
    """Raised when completion is requested before the position term has elapsed."""


class CatchUpFailedError(RuntimeError):
    """Raised when the pre-completion catch-up could not credit every due period."""


class PositionNotFoundError(LookupError):
    """Raised when an operator action names a position that does not exist."""
