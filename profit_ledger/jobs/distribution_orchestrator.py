"""Job-layer orchestrator for profit distribution and position completion runs."""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime, timezone

from profit_ledger.db import DistributionRunCounts, DistributionRunRepositoryPort
from profit_ledger.distribution import (
    CompletionResult,
    DistributionResult,
    PositionLifecycleManager,
    ProfitDistributionEngine,
)
from profit_ledger.domain import domain_build_stage_event

from .interfaces import JobExecutionResult, JobOrchestratorPort

logger = logging.getLogger(__name__)

PROFIT_DISTRIBUTION_JOB_NAME = "profit_distribution"
POSITION_COMPLETION_JOB_NAME = "position_completion"
DISTRIBUTION_CYCLE_JOB_NAME = "distribution_cycle"
DISTRIBUTION_UNEXPECTED_ERROR_CODE = "DISTRIBUTION_UNEXPECTED_ERROR"


def _job_default_clock() -> datetime:
    return datetime.now(timezone.utc)


class DistributionJobOrchestrator(JobOrchestratorPort):
    """Concrete orchestrator running distribution stages with run audit."""

    def __init__(
        self,
        engine: ProfitDistributionEngine,
        lifecycle_manager: PositionLifecycleManager,
        run_repository: DistributionRunRepositoryPort | None = None,
        run_type: str = "scheduled",
        clock: Callable[[], datetime] | None = None,
    ):
        """Initialize orchestrator dependencies.

        Args:
            engine: Profit distribution engine.
            lifecycle_manager: Position lifecycle manager.
            run_repository: Optional run audit repository.
            run_type: Trigger source recorded on audit rows (`scheduled`, `manual`).
            clock: Optional UTC clock used when no evaluation instant is given.

        Returns:
            None: Initializer does not return values.

        Raises:
            ValueError: Raised when dependencies or run type are invalid.
        """

        if engine is None:
            raise ValueError("engine must not be None")
        if lifecycle_manager is None:
            raise ValueError("lifecycle_manager must not be None")
        if run_type not in {"scheduled", "manual"}:
            raise ValueError("run_type must be one of: scheduled, manual")

        self._engine = engine
        self._lifecycle_manager = lifecycle_manager
        self._run_repository = run_repository
        self._run_type = run_type
        self._clock = clock or _job_default_clock

    def job_supported_names(self) -> tuple[str, ...]:
        """Return supported job names.

        Returns:
            tuple[str, ...]: Supported job names.

        Raises:
            RuntimeError: This implementation does not raise runtime errors.
        """

        return (
            PROFIT_DISTRIBUTION_JOB_NAME,
            POSITION_COMPLETION_JOB_NAME,
            DISTRIBUTION_CYCLE_JOB_NAME,
        )

    def job_execute(self, job_name: str, as_of_utc: datetime | None = None) -> JobExecutionResult:
        """Execute one distribution workflow and record its audit row.

        Aggregated per-position failures do not fail the run; they are counted
        in `error_count`. Only a stage that cannot run at all fails the run.

        Args:
            job_name: Name of job to execute.
            as_of_utc: Optional offset-aware evaluation instant.

        Returns:
            JobExecutionResult: Final execution status payload.

        Raises:
            ValueError: Raised when job name is unsupported or as_of_utc is offset-naive.
            RuntimeError: Raised for unexpected execution failures after finalization.
        """

        normalized_job_name = job_name.strip()
        if normalized_job_name not in self.job_supported_names():
            raise ValueError(f"unsupported job_name={normalized_job_name}")

        effective_as_of_utc = as_of_utc if as_of_utc is not None else self._clock()
        if effective_as_of_utc.tzinfo is None or effective_as_of_utc.utcoffset() is None:
            raise ValueError("as_of_utc must be an offset-aware datetime")

        timeline: list[dict[str, object]] = [
            domain_build_stage_event(
                stage="run",
                status="started",
                details={"job_name": normalized_job_name, "as_of_utc": effective_as_of_utc.isoformat()},
            )
        ]
        run_record = None
        if self._run_repository is not None:
            run_record = self._run_repository.db_distribution_run_create_started(
                run_type=self._run_type,
                job_name=normalized_job_name,
                as_of_utc=effective_as_of_utc,
            )

        distribution_result: DistributionResult | None = None
        completion_result: CompletionResult | None = None
        try:
            if normalized_job_name in {PROFIT_DISTRIBUTION_JOB_NAME, DISTRIBUTION_CYCLE_JOB_NAME}:
                distribution_result = self._job_run_distribution(effective_as_of_utc, timeline)
            if normalized_job_name in {POSITION_COMPLETION_JOB_NAME, DISTRIBUTION_CYCLE_JOB_NAME}:
                completion_result = self._job_run_completion(effective_as_of_utc, timeline)

            counts = _job_build_counts(distribution_result, completion_result)
            timeline.append(domain_build_stage_event(stage="run", status="success"))
            distribution_run_id = None
            if run_record is not None:
                finalized = self._run_repository.db_distribution_run_finalize(
                    distribution_run_id=run_record.distribution_run_id,
                    status="success",
                    counts=counts,
                    error_code=None,
                    error_message=None,
                    diagnostics=timeline,
                )
                distribution_run_id = finalized.distribution_run_id
            return JobExecutionResult(
                job_name=normalized_job_name,
                status="success",
                as_of_utc=effective_as_of_utc,
                counts=counts,
                distribution_run_id=distribution_run_id,
                distribution=distribution_result,
                completion=completion_result,
            )
        except Exception as error:
            logger.exception("job %s failed as_of=%s", normalized_job_name, effective_as_of_utc.isoformat())
            timeline.append(
                domain_build_stage_event(
                    stage="run",
                    status="failed",
                    details={
                        "error_type": type(error).__name__,
                        "error_message": str(error),
                        "failed_at_utc": _job_default_clock().isoformat(),
                    },
                )
            )
            if run_record is not None:
                self._run_repository.db_distribution_run_finalize(
                    distribution_run_id=run_record.distribution_run_id,
                    status="failed",
                    counts=_job_build_counts(distribution_result, completion_result),
                    error_code=DISTRIBUTION_UNEXPECTED_ERROR_CODE,
                    error_message=str(error),
                    diagnostics=timeline,
                )
            raise RuntimeError(f"{normalized_job_name} execution failed") from error

    def _job_run_distribution(self, as_of_utc: datetime, timeline: list[dict[str, object]]) -> DistributionResult:
        timeline.append(domain_build_stage_event(stage="distribution", status="started"))
        result = self._engine.distribute(as_of_utc)
        timeline.append(
            domain_build_stage_event(
                stage="distribution",
                status="completed",
                details={
                    "credited": result.credited,
                    "skipped": result.skipped,
                    "error_count": len(result.errors),
                    "fully_accrued_position_count": len(result.fully_accrued_position_ids),
                    "errors": [
                        {
                            "position_id": str(entry.position_id),
                            "period_index": entry.period_index,
                            "reason": entry.reason,
                        }
                        for entry in result.errors
                    ],
                },
            )
        )
        return result

    def _job_run_completion(self, as_of_utc: datetime, timeline: list[dict[str, object]]) -> CompletionResult:
        timeline.append(domain_build_stage_event(stage="completion", status="started"))
        result = self._lifecycle_manager.complete_expired(as_of_utc)
        timeline.append(
            domain_build_stage_event(
                stage="completion",
                status="completed",
                details={
                    "completed": result.completed,
                    "already_final": result.already_final,
                    "catch_up_credited": result.catch_up_credited,
                    "error_count": len(result.errors),
                    "errors": [
                        {"position_id": str(entry.position_id), "reason": entry.reason}
                        for entry in result.errors
                    ],
                },
            )
        )
        return result


def _job_build_counts(
    distribution_result: DistributionResult | None,
    completion_result: CompletionResult | None,
) -> DistributionRunCounts:
    credited_count = 0
    skipped_count = 0
    completed_count = 0
    error_count = 0
    if distribution_result is not None:
        credited_count += distribution_result.credited
        skipped_count += distribution_result.skipped
        error_count += len(distribution_result.errors)
    if completion_result is not None:
        credited_count += completion_result.catch_up_credited
        completed_count += completion_result.completed
        error_count += len(completion_result.errors)
    return DistributionRunCounts(
        credited_count=credited_count,
        skipped_count=skipped_count,
        completed_count=completed_count,
        error_count=error_count,
    )
