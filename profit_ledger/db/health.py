"""Database health service implementations for connectivity checks."""

from sqlalchemy import Engine, text
from sqlalchemy.exc import SQLAlchemyError

from profit_ledger.domain import HealthStatus

from .interfaces import DatabaseHealthPort

_LEDGER_TABLES = ("investment_position", "period_credit", "account_balance", "transaction_log", "distribution_run")


class SQLAlchemyDatabaseHealthService(DatabaseHealthPort):
    """Database health service verifying connectivity and ledger schema presence."""

    def __init__(self, engine: Engine):
        """Initialize database health service.

        Args:
            engine: SQLAlchemy engine used for connectivity checks.

        Raises:
            ValueError: Raised when engine is None.
        """

        if engine is None:
            raise ValueError("engine must not be None")
        self._engine = engine

    def db_connection_label(self) -> str:
        """Return the target database URL for diagnostics with the password hidden.

        Returns:
            str: Rendered engine URL string.
        """

        return self._engine.url.render_as_string(hide_password=True)

    def db_check_health(self) -> HealthStatus:
        """Verify connectivity and that every ledger table is reachable.

        Returns:
            HealthStatus: Health payload with status and diagnostic detail.

        Raises:
            ConnectionError: Raised when connectivity check fails or a ledger table is missing.
        """

        try:
            with self._engine.connect() as connection:
                missing_tables = [
                    table_name
                    for table_name in _LEDGER_TABLES
                    if connection.execute(text("SELECT to_regclass(:table_name)"), {"table_name": table_name}).scalar()
                    is None
                ]
        except SQLAlchemyError as error:
            raise ConnectionError("database connectivity check failed") from error

        if missing_tables:
            raise ConnectionError(f"ledger schema incomplete, missing tables: {', '.join(missing_tables)}")
        return HealthStatus(status="ok", detail="database connectivity and ledger schema verified")
