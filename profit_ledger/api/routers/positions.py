"""Position API router for progress, credit history and manual completion."""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime
from uuid import UUID

from fastapi import APIRouter, Query, status
from fastapi.responses import JSONResponse

from profit_ledger.db import LedgerStorePort, PeriodCreditRecord, PositionRecord, TransientStorageError
from profit_ledger.distribution import (
    CatchUpFailedError,
    IncompleteCoverageError,
    PositionLifecycleManager,
    PositionNotFoundError,
    PositionProgress,
    TermNotElapsedError,
    period_build_progress,
)
from profit_ledger.domain import domain_parse_period_unit

from .errors import api_default_clock, api_error_response, api_resolve_as_of

logger = logging.getLogger(__name__)


def api_create_positions_router(
    ledger_store: LedgerStorePort,
    lifecycle_manager: PositionLifecycleManager,
    clock: Callable[[], datetime] | None = None,
) -> APIRouter:
    """Create position router with detail, credits and completion endpoints.

    Args:
        ledger_store: Ledger store used for position reads.
        lifecycle_manager: Lifecycle manager used for manual completion.
        clock: Optional UTC clock used when a request omits `as_of`.

    Returns:
        APIRouter: Router exposing position APIs.

    Raises:
        ValueError: Raised when dependencies are invalid.
    """

    if ledger_store is None:
        raise ValueError("ledger_store must not be None")
    if lifecycle_manager is None:
        raise ValueError("lifecycle_manager must not be None")

    effective_clock = clock or api_default_clock
    router = APIRouter(prefix="/positions", tags=["positions"])

    @router.get("/{position_id}")
    def api_position_detail(position_id: UUID, as_of: datetime | None = Query(default=None)) -> JSONResponse:
        """Return one position with its accrual progress.

        Args:
            position_id: Position identifier.
            as_of: Optional offset-aware evaluation instant for progress.

        Returns:
            JSONResponse: Position payload or 404 when absent.
        """

        as_of_utc = api_resolve_as_of(as_of, effective_clock)
        if isinstance(as_of_utc, JSONResponse):
            return as_of_utc

        position = ledger_store.db_position_get_by_id(position_id)
        if position is None:
            return api_error_response(status.HTTP_404_NOT_FOUND, "POSITION_NOT_FOUND", "position not found")

        credits = ledger_store.db_period_credit_list_for_position(position_id)
        progress = None
        try:
            progress = period_build_progress(
                started_at_utc=position.started_at_utc,
                period_duration=domain_parse_period_unit(position.terms.period_unit).duration,
                total_periods=position.terms.total_periods,
                periods_credited=len(credits),
                now_utc=as_of_utc,
            )
        except ValueError as error:
            logger.warning("progress unavailable for position %s: %s", position_id, error)

        payload = api_serialize_position_record(position)
        payload["as_of_utc"] = as_of_utc.isoformat()
        payload["progress"] = _api_serialize_progress(progress)
        return JSONResponse(content=payload, status_code=status.HTTP_200_OK)

    @router.get("/{position_id}/credits")
    def api_position_credit_list(position_id: UUID) -> JSONResponse:
        """Return the ordered period credits of one position.

        Args:
            position_id: Position identifier.

        Returns:
            JSONResponse: Credit list payload or 404 when the position is absent.
        """

        position = ledger_store.db_position_get_by_id(position_id)
        if position is None:
            return api_error_response(status.HTTP_404_NOT_FOUND, "POSITION_NOT_FOUND", "position not found")

        credits = ledger_store.db_period_credit_list_for_position(position_id)
        payload = {
            "position_id": str(position_id),
            "total_periods": position.terms.total_periods,
            "items": [api_serialize_period_credit_record(credit) for credit in credits],
        }
        return JSONResponse(content=payload, status_code=status.HTTP_200_OK)

    @router.post("/{position_id}/complete")
    def api_position_complete(position_id: UUID, as_of: datetime | None = Query(default=None)) -> JSONResponse:
        """Complete one term-elapsed position on operator request.

        Args:
            position_id: Position identifier.
            as_of: Optional offset-aware evaluation instant.

        Returns:
            JSONResponse: Completion payload, 404 when the position is absent or 409 when completion is refused.
        """

        as_of_utc = api_resolve_as_of(as_of, effective_clock)
        if isinstance(as_of_utc, JSONResponse):
            return as_of_utc

        try:
            completion = lifecycle_manager.complete_position(position_id=position_id, now_utc=as_of_utc)
        except PositionNotFoundError:
            return api_error_response(status.HTTP_404_NOT_FOUND, "POSITION_NOT_FOUND", "position not found")
        except LookupError as error:
            logger.error("manual completion of position %s hit missing ledger rows: %s", position_id, error)
            return api_error_response(status.HTTP_409_CONFLICT, "LEDGER_ROW_MISSING", str(error))
        except TermNotElapsedError as error:
            return api_error_response(status.HTTP_409_CONFLICT, "TERM_NOT_ELAPSED", str(error))
        except IncompleteCoverageError as error:
            return api_error_response(status.HTTP_409_CONFLICT, "INCOMPLETE_COVERAGE", str(error))
        except CatchUpFailedError as error:
            return api_error_response(status.HTTP_409_CONFLICT, "CATCH_UP_FAILED", str(error))
        except ValueError as error:
            return api_error_response(status.HTTP_400_BAD_REQUEST, "INVALID_POSITION_TERMS", str(error))
        except TransientStorageError as error:
            logger.error("manual completion of position %s failed: %s", position_id, error)
            return api_error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, "STORAGE_UNAVAILABLE", str(error))

        payload = {
            "position_id": str(position_id),
            "as_of_utc": as_of_utc.isoformat(),
            "status": "completed" if completion.completed else "already_final",
            "catch_up_credited": completion.catch_up_credited,
        }
        return JSONResponse(content=payload, status_code=status.HTTP_200_OK)

    return router


def api_serialize_position_record(position: PositionRecord) -> dict[str, object]:
    """Serialize typed position row to JSON response payload.

    Args:
        position: Typed position record.

    Returns:
        dict[str, object]: JSON-serializable position payload with decimal strings.
    """

    return {
        "position_id": str(position.position_id),
        "owner_id": str(position.owner_id),
        "plan_id": str(position.plan_id) if position.plan_id else None,
        "principal": str(position.terms.principal),
        "period_rate": str(position.terms.period_rate),
        "period_unit": position.terms.period_unit,
        "total_periods": position.terms.total_periods,
        "started_at_utc": position.started_at_utc.isoformat(),
        "status": position.status,
        "accumulated_profit": str(position.accumulated_profit),
        "ended_at_utc": position.ended_at_utc.isoformat() if position.ended_at_utc else None,
        "created_at_utc": position.created_at_utc.isoformat(),
    }


def api_serialize_period_credit_record(credit: PeriodCreditRecord) -> dict[str, object]:
    """Serialize typed period credit row to JSON response payload.

    Args:
        credit: Typed period credit record.

    Returns:
        dict[str, object]: JSON-serializable credit payload.
    """

    return {
        "period_credit_id": str(credit.period_credit_id),
        "period_index": credit.period_index,
        "amount": str(credit.amount),
        "period_at_utc": credit.period_at_utc.isoformat(),
        "created_at_utc": credit.created_at_utc.isoformat(),
    }


def _api_serialize_progress(progress: PositionProgress | None) -> dict[str, object] | None:
    if progress is None:
        return None
    return {
        "periods_elapsed": progress.periods_elapsed,
        "periods_credited": progress.periods_credited,
        "periods_remaining": progress.periods_remaining,
        "progress_percentage": str(progress.progress_percentage),
        "full_term_reached": progress.full_term_reached,
        "next_period_due_at_utc": progress.next_period_due_at_utc.isoformat()
        if progress.next_period_due_at_utc
        else None,
        "term_ends_at_utc": progress.term_ends_at_utc.isoformat(),
    }
