"""Distribution API router for run triggers, run audit reads and profit summary."""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime
from uuid import UUID

from fastapi import APIRouter, Query, status
from fastapi.responses import JSONResponse

from profit_ledger.config import AppSettings
from profit_ledger.db import DistributionRunRecord, DistributionRunRepositoryPort, LedgerStorePort
from profit_ledger.distribution import CompletionResult, DistributionResult
from profit_ledger.jobs import (
    DISTRIBUTION_CYCLE_JOB_NAME,
    DISTRIBUTION_UNEXPECTED_ERROR_CODE,
    POSITION_COMPLETION_JOB_NAME,
    PROFIT_DISTRIBUTION_JOB_NAME,
    JobExecutionResult,
    JobOrchestratorPort,
)

from .errors import api_default_clock, api_error_response, api_resolve_as_of

logger = logging.getLogger(__name__)


def api_create_distribution_router(
    settings: AppSettings,
    ledger_store: LedgerStorePort,
    run_repository: DistributionRunRepositoryPort,
    distribution_orchestrator: JobOrchestratorPort,
    clock: Callable[[], datetime] | None = None,
) -> APIRouter:
    """Create distribution router with trigger, run list/detail and summary endpoints.

    Args:
        settings: Runtime settings used for pagination defaults.
        ledger_store: Ledger store used for summary reads.
        run_repository: Distribution run audit repository.
        distribution_orchestrator: Job orchestrator for trigger execution.
        clock: Optional UTC clock used when a request omits `as_of`.

    Returns:
        APIRouter: Router exposing distribution APIs.

    Raises:
        ValueError: Raised when dependencies are invalid.
    """

    if settings is None:
        raise ValueError("settings must not be None")
    if ledger_store is None:
        raise ValueError("ledger_store must not be None")
    if run_repository is None:
        raise ValueError("run_repository must not be None")
    if distribution_orchestrator is None:
        raise ValueError("distribution_orchestrator must not be None")

    effective_clock = clock or api_default_clock
    router = APIRouter(prefix="/distribution", tags=["distribution"])

    def _api_trigger(job_name: str, as_of: datetime | None) -> JSONResponse:
        as_of_utc = api_resolve_as_of(as_of, effective_clock)
        if isinstance(as_of_utc, JSONResponse):
            return as_of_utc
        try:
            execution_result = distribution_orchestrator.job_execute(job_name=job_name, as_of_utc=as_of_utc)
        except ValueError as error:
            return api_error_response(status.HTTP_400_BAD_REQUEST, "INVALID_REQUEST", str(error))
        except RuntimeError as error:
            logger.error("distribution trigger %s failed: %s", job_name, error)
            return api_error_response(
                status.HTTP_500_INTERNAL_SERVER_ERROR,
                DISTRIBUTION_UNEXPECTED_ERROR_CODE,
                str(error),
            )
        return JSONResponse(
            content=api_serialize_job_execution_result(execution_result),
            status_code=status.HTTP_200_OK,
        )

    @router.post("/run")
    def api_distribution_run_trigger(as_of: datetime | None = Query(default=None)) -> JSONResponse:
        """Credit every due period of every active position.

        Args:
            as_of: Optional offset-aware evaluation instant.

        Returns:
            JSONResponse: Execution result payload.
        """

        return _api_trigger(PROFIT_DISTRIBUTION_JOB_NAME, as_of)

    @router.post("/complete-expired")
    def api_distribution_complete_expired_trigger(as_of: datetime | None = Query(default=None)) -> JSONResponse:
        """Complete every active position whose term has elapsed.

        Args:
            as_of: Optional offset-aware evaluation instant.

        Returns:
            JSONResponse: Execution result payload.
        """

        return _api_trigger(POSITION_COMPLETION_JOB_NAME, as_of)

    @router.post("/cycle")
    def api_distribution_cycle_trigger(as_of: datetime | None = Query(default=None)) -> JSONResponse:
        """Run distribution followed by completion with one evaluation instant.

        Args:
            as_of: Optional offset-aware evaluation instant.

        Returns:
            JSONResponse: Execution result payload.
        """

        return _api_trigger(DISTRIBUTION_CYCLE_JOB_NAME, as_of)

    @router.get("/runs")
    def api_distribution_run_list(
        limit: int = Query(default=settings.api_default_limit, ge=1),
        offset: int = Query(default=0, ge=0),
    ) -> JSONResponse:
        """Return distribution runs ordered by latest first.

        Args:
            limit: Max rows to return, capped by `api_max_limit`.
            offset: Rows to skip.

        Returns:
            JSONResponse: Runs list payload.
        """

        applied_limit = min(limit, settings.api_max_limit)
        run_rows = run_repository.db_distribution_run_list(limit=applied_limit, offset=offset)
        payload = {
            "items": [api_serialize_distribution_run_record(run_record) for run_record in run_rows],
            "page": {
                "limit": limit,
                "applied_limit": applied_limit,
                "offset": offset,
                "returned": len(run_rows),
            },
        }
        return JSONResponse(content=payload, status_code=status.HTTP_200_OK)

    @router.get("/runs/{distribution_run_id}")
    def api_distribution_run_detail(distribution_run_id: UUID) -> JSONResponse:
        """Return one distribution run detail payload.

        Args:
            distribution_run_id: Run identifier.

        Returns:
            JSONResponse: Run detail payload or 404 when absent.
        """

        run_record = run_repository.db_distribution_run_get_by_id(distribution_run_id)
        if run_record is None:
            return api_error_response(status.HTTP_404_NOT_FOUND, "RUN_NOT_FOUND", "distribution run not found")
        return JSONResponse(
            content=api_serialize_distribution_run_record(run_record),
            status_code=status.HTTP_200_OK,
        )

    @router.get("/summary")
    def api_distribution_summary(as_of: datetime | None = Query(default=None)) -> JSONResponse:
        """Return aggregate profit figures, with today's credits measured from UTC midnight.

        Args:
            as_of: Optional offset-aware evaluation instant.

        Returns:
            JSONResponse: Summary payload.
        """

        as_of_utc = api_resolve_as_of(as_of, effective_clock)
        if isinstance(as_of_utc, JSONResponse):
            return as_of_utc

        credited_since_utc = as_of_utc.replace(hour=0, minute=0, second=0, microsecond=0)
        summary = ledger_store.db_profit_summary(credited_since_utc=credited_since_utc)
        payload = {
            "as_of_utc": as_of_utc.isoformat(),
            "active_position_count": summary.active_position_count,
            "active_principal_total": str(summary.active_principal_total),
            "profit_credited_total": str(summary.profit_credited_total),
            "profit_credited_since": str(summary.profit_credited_since),
            "credited_since_utc": summary.credited_since_utc.isoformat(),
        }
        return JSONResponse(content=payload, status_code=status.HTTP_200_OK)

    return router


def api_serialize_job_execution_result(execution_result: JobExecutionResult) -> dict[str, object]:
    """Serialize one job execution result to a JSON response payload.

    Args:
        execution_result: Typed execution result.

    Returns:
        dict[str, object]: JSON-serializable execution payload.
    """

    return {
        "job_name": execution_result.job_name,
        "status": execution_result.status,
        "as_of_utc": execution_result.as_of_utc.isoformat(),
        "distribution_run_id": str(execution_result.distribution_run_id)
        if execution_result.distribution_run_id
        else None,
        "counts": {
            "credited_count": execution_result.counts.credited_count,
            "skipped_count": execution_result.counts.skipped_count,
            "completed_count": execution_result.counts.completed_count,
            "error_count": execution_result.counts.error_count,
        },
        "distribution": _api_serialize_distribution_result(execution_result.distribution),
        "completion": _api_serialize_completion_result(execution_result.completion),
    }


def api_serialize_distribution_run_record(run_record: DistributionRunRecord) -> dict[str, object]:
    """Serialize typed distribution run row to JSON response payload.

    Args:
        run_record: Typed distribution run record.

    Returns:
        dict[str, object]: JSON-serializable run payload.
    """

    return {
        "distribution_run_id": str(run_record.distribution_run_id),
        "run_type": run_record.run_type,
        "job_name": run_record.job_name,
        "as_of_utc": run_record.as_of_utc.isoformat(),
        "status": run_record.state.status,
        "credited_count": run_record.counts.credited_count,
        "skipped_count": run_record.counts.skipped_count,
        "completed_count": run_record.counts.completed_count,
        "error_count": run_record.counts.error_count,
        "started_at_utc": run_record.state.started_at_utc.isoformat(),
        "ended_at_utc": run_record.state.ended_at_utc.isoformat() if run_record.state.ended_at_utc else None,
        "duration_ms": run_record.state.duration_ms,
        "error_code": run_record.state.error_code,
        "error_message": run_record.state.error_message,
        "diagnostics": run_record.state.diagnostics,
        "created_at_utc": run_record.created_at_utc.isoformat(),
    }


def _api_serialize_distribution_result(result: DistributionResult | None) -> dict[str, object] | None:
    if result is None:
        return None
    return {
        "credited": result.credited,
        "skipped": result.skipped,
        "errors": [
            {
                "position_id": str(entry.position_id),
                "period_index": entry.period_index,
                "reason": entry.reason,
            }
            for entry in result.errors
        ],
        "fully_accrued_position_ids": [str(position_id) for position_id in result.fully_accrued_position_ids],
    }


def _api_serialize_completion_result(result: CompletionResult | None) -> dict[str, object] | None:
    if result is None:
        return None
    return {
        "completed": result.completed,
        "already_final": result.already_final,
        "catch_up_credited": result.catch_up_credited,
        "errors": [{"position_id": str(entry.position_id), "reason": entry.reason} for entry in result.errors],
        "completed_position_ids": [str(position_id) for position_id in result.completed_position_ids],
    }
