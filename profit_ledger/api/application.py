"""FastAPI application factory for the profit ledger service."""

from collections.abc import Callable
from datetime import datetime

from fastapi import FastAPI

from profit_ledger.config import AppSettings
from profit_ledger.db import DatabaseHealthPort, DistributionRunRepositoryPort, LedgerStorePort
from profit_ledger.distribution import PositionLifecycleManager
from profit_ledger.jobs import JobOrchestratorPort

from .routers import (
    api_create_distribution_router,
    api_create_health_router,
    api_create_owners_router,
    api_create_positions_router,
)


def create_api_application(
    settings: AppSettings,
    db_health_service: DatabaseHealthPort,
    ledger_store: LedgerStorePort,
    run_repository: DistributionRunRepositoryPort,
    distribution_orchestrator: JobOrchestratorPort,
    lifecycle_manager: PositionLifecycleManager,
    clock: Callable[[], datetime] | None = None,
) -> FastAPI:
    """Create the FastAPI application instance for the service.

    Args:
        settings: Validated application settings used for runtime metadata.
        db_health_service: Database health service used by health endpoints.
        ledger_store: Ledger store used for position, owner and summary reads.
        run_repository: Distribution run repository for list/detail APIs.
        distribution_orchestrator: Job orchestrator for trigger execution.
        lifecycle_manager: Lifecycle manager for manual position completion.
        clock: Optional UTC clock used when requests omit `as_of`.

    Returns:
        FastAPI: Framework application instance with all routers mounted.

    Raises:
        ValueError: Raised when a router dependency is invalid.
    """
    application = FastAPI(title="Profit Ledger")

    @application.get("/", tags=["foundation"])
    def foundation_index() -> dict[str, str]:
        """Return a minimal service descriptor.

        Returns:
            dict[str, str]: Service name, readiness and environment label.
        """

        return {
            "service": "profit-ledger",
            "status": "ready",
            "environment": settings.environment_name,
        }

    application.include_router(api_create_health_router(db_health_service=db_health_service))
    application.include_router(
        api_create_distribution_router(
            settings=settings,
            ledger_store=ledger_store,
            run_repository=run_repository,
            distribution_orchestrator=distribution_orchestrator,
            clock=clock,
        )
    )
    application.include_router(
        api_create_positions_router(
            ledger_store=ledger_store,
            lifecycle_manager=lifecycle_manager,
            clock=clock,
        )
    )
    application.include_router(api_create_owners_router(settings=settings, ledger_store=ledger_store))

    return application
