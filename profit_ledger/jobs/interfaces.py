"""Typed interfaces for job-layer orchestration responsibilities."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Protocol
from uuid import UUID

from profit_ledger.db import DistributionRunCounts
from profit_ledger.distribution import CompletionResult, DistributionResult


@dataclass(frozen=True)
class JobExecutionResult:
    """Result contract for one orchestrated distribution workflow.

    Attributes:
        job_name: Job identifier.
        status: Final execution state.
        as_of_utc: Evaluation instant used by every stage of the job.
        counts: Outcome counters persisted on the run audit row.
        distribution_run_id: Audit row identifier when run audit is enabled.
        distribution: Distribution stage result when the job ran it.
        completion: Completion stage result when the job ran it.
    """

    job_name: str
    status: str
    as_of_utc: datetime
    counts: DistributionRunCounts = field(default_factory=DistributionRunCounts)
    distribution_run_id: UUID | None = None
    distribution: DistributionResult | None = None
    completion: CompletionResult | None = None


class JobOrchestratorPort(Protocol):
    """Port definition for orchestrating distribution and completion jobs."""

    def job_supported_names(self) -> tuple[str, ...]:
        """Return the set of workflow names this orchestrator can execute.

        Returns:
            tuple[str, ...]: Deterministic list of supported job names.

        Raises:
            RuntimeError: Raised when supported job metadata is unavailable.
        """

    def job_execute(self, job_name: str, as_of_utc: datetime | None = None) -> JobExecutionResult:
        """Execute one named workflow in the job layer.

        Args:
            job_name: Workflow name.
            as_of_utc: Optional evaluation instant; the orchestrator clock is used when omitted.

        Returns:
            JobExecutionResult: Final execution status payload.

        Raises:
            RuntimeError: Raised when job execution fails.
        """
