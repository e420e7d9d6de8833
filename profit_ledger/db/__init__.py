"""Database layer package for all SQL and persistence boundaries."""

from .distribution_run import SQLAlchemyDistributionRunService
from .health import SQLAlchemyDatabaseHealthService
from .interfaces import (
    BalanceRecord,
    DatabaseHealthPort,
    DistributionRunCounts,
    DistributionRunRecord,
    DistributionRunRepositoryPort,
    DistributionRunState,
    LedgerStorePort,
    LedgerUnitOfWorkPort,
    PeriodCreditInsertRequest,
    PeriodCreditRecord,
    PositionRecord,
    PositionTerms,
    ProfitSummaryRecord,
    TransactionLogAppendRequest,
    TransactionLogRecord,
    TransientStorageError,
)
from .ledger_store import SQLAlchemyLedgerStoreService, SQLAlchemyLedgerUnitOfWork
from .session import db_create_engine

__all__ = [
    "BalanceRecord",
    "DatabaseHealthPort",
    "DistributionRunCounts",
    "DistributionRunRecord",
    "DistributionRunRepositoryPort",
    "DistributionRunState",
    "LedgerStorePort",
    "LedgerUnitOfWorkPort",
    "PeriodCreditInsertRequest",
    "PeriodCreditRecord",
    "PositionRecord",
    "PositionTerms",
    "ProfitSummaryRecord",
    "TransactionLogAppendRequest",
    "TransactionLogRecord",
    "TransientStorageError",
    "SQLAlchemyDatabaseHealthService",
    "SQLAlchemyDistributionRunService",
    "SQLAlchemyLedgerStoreService",
    "SQLAlchemyLedgerUnitOfWork",
    "db_create_engine",
]
