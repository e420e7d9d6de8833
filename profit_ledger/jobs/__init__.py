"""Job layer package for workflow orchestration boundaries."""

from .distribution_orchestrator import (
    DISTRIBUTION_CYCLE_JOB_NAME,
    DISTRIBUTION_UNEXPECTED_ERROR_CODE,
    POSITION_COMPLETION_JOB_NAME,
    PROFIT_DISTRIBUTION_JOB_NAME,
    DistributionJobOrchestrator,
)
from .interfaces import JobExecutionResult, JobOrchestratorPort

__all__ = [
    "DISTRIBUTION_CYCLE_JOB_NAME",
    "DISTRIBUTION_UNEXPECTED_ERROR_CODE",
    "POSITION_COMPLETION_JOB_NAME",
    "PROFIT_DISTRIBUTION_JOB_NAME",
    "DistributionJobOrchestrator",
    "JobExecutionResult",
    "JobOrchestratorPort",
]
