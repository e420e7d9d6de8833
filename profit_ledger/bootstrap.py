"""Application bootstrap wiring for startup validation and dependency assembly."""

from __future__ import annotations

from dataclasses import dataclass

from fastapi import FastAPI
from sqlalchemy import Engine

from profit_ledger.api import create_api_application
from profit_ledger.config import AppSettings, config_load_settings
from profit_ledger.db import (
    SQLAlchemyDatabaseHealthService,
    SQLAlchemyDistributionRunService,
    SQLAlchemyLedgerStoreService,
    db_create_engine,
)
from profit_ledger.distribution import PositionLifecycleManager, ProfitDistributionEngine
from profit_ledger.jobs import DistributionJobOrchestrator


@dataclass(frozen=True)
class BootstrapComponents:
    """Wired runtime components shared by HTTP and CLI surfaces.

    Attributes:
        database_engine: Shared SQLAlchemy engine.
        ledger_store: SQLAlchemy ledger store service.
        run_repository: SQLAlchemy distribution run audit service.
        engine: Profit distribution engine.
        lifecycle_manager: Position lifecycle manager.
        orchestrator: Distribution job orchestrator.
    """

    database_engine: Engine
    ledger_store: SQLAlchemyLedgerStoreService
    run_repository: SQLAlchemyDistributionRunService
    engine: ProfitDistributionEngine
    lifecycle_manager: PositionLifecycleManager
    orchestrator: DistributionJobOrchestrator


def bootstrap_create_components(settings: AppSettings, run_type: str) -> BootstrapComponents:
    """Wire storage, distribution and job components from validated settings.

    Args:
        settings: Validated runtime settings.
        run_type: Run type recorded on distribution run audit rows.

    Returns:
        BootstrapComponents: Wired runtime components.

    Raises:
        ValueError: Raised when run type is invalid.
    """

    database_engine = db_create_engine(database_url=settings.database_url)
    ledger_store = SQLAlchemyLedgerStoreService(engine=database_engine)
    run_repository = SQLAlchemyDistributionRunService(engine=database_engine)
    engine = ProfitDistributionEngine(store=ledger_store, currency_quantum=settings.currency_quantum)
    lifecycle_manager = PositionLifecycleManager(store=ledger_store, engine=engine)
    orchestrator = DistributionJobOrchestrator(
        engine=engine,
        lifecycle_manager=lifecycle_manager,
        run_repository=run_repository,
        run_type=run_type,
    )
    return BootstrapComponents(
        database_engine=database_engine,
        ledger_store=ledger_store,
        run_repository=run_repository,
        engine=engine,
        lifecycle_manager=lifecycle_manager,
        orchestrator=orchestrator,
    )


def bootstrap_create_application() -> FastAPI:
    """Assemble the runtime application after validating startup configuration.

    Returns:
        FastAPI: Fully initialized FastAPI application instance.

    Raises:
        SettingsLoadError: Raised when startup configuration validation fails.
    """

    settings = config_load_settings()
    components = bootstrap_create_components(settings=settings, run_type=settings.distribution_run_type)
    db_health_service = SQLAlchemyDatabaseHealthService(engine=components.database_engine)
    return create_api_application(
        settings=settings,
        db_health_service=db_health_service,
        ledger_store=components.ledger_store,
        run_repository=components.run_repository,
        distribution_orchestrator=components.orchestrator,
        lifecycle_manager=components.lifecycle_manager,
    )


def bootstrap_create_distribution_orchestrator() -> DistributionJobOrchestrator:
    """Build the distribution orchestrator for non-HTTP trigger surfaces.

    Runs started here are recorded with the `scheduled` run type.

    Returns:
        DistributionJobOrchestrator: Fully wired orchestrator instance.

    Raises:
        SettingsLoadError: Raised when startup configuration validation fails.
    """

    settings = config_load_settings()
    return bootstrap_create_components(settings=settings, run_type="scheduled").orchestrator
