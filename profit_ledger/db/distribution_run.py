"""Database service for distribution run audit persistence.

Run rows are history only. Overlapping runs are allowed because every credit
and completion is idempotent at the ledger level.
"""

from __future__ import annotations

import json
from datetime import datetime
from typing import Any
from uuid import UUID

from sqlalchemy import Engine, text
from sqlalchemy.exc import SQLAlchemyError

from .interfaces import (
    DistributionRunCounts,
    DistributionRunRecord,
    DistributionRunRepositoryPort,
    DistributionRunState,
    TransientStorageError,
)

_RUN_COLUMNS = (
    "distribution_run_id, run_type, job_name, as_of_utc, status, "
    "credited_count, skipped_count, completed_count, error_count, "
    "started_at_utc, ended_at_utc, duration_ms, error_code, error_message, diagnostics, created_at_utc"
)


class SQLAlchemyDistributionRunService(DistributionRunRepositoryPort):
    """SQLAlchemy-backed distribution run audit service."""

    def __init__(self, engine: Engine):
        """Initialize distribution run persistence service.

        Args:
            engine: SQLAlchemy engine used for all persistence operations.

        Returns:
            None: This initializer does not return a value.

        Raises:
            ValueError: Raised when engine is None.
        """

        if engine is None:
            raise ValueError("engine must not be None")
        self._engine = engine

    def db_distribution_run_create_started(
        self,
        run_type: str,
        job_name: str,
        as_of_utc: datetime,
    ) -> DistributionRunRecord:
        """Create a started run row.

        Args:
            run_type: Trigger source (`scheduled`, `manual`).
            job_name: Executed job name.
            as_of_utc: Injected evaluation instant.

        Returns:
            DistributionRunRecord: Newly created started run.

        Raises:
            ValueError: Raised when required inputs are blank or run type is unknown.
            TransientStorageError: Raised when persistence fails.
        """

        normalized_run_type = self._validate_non_empty_text(run_type, "run_type")
        if normalized_run_type not in {"scheduled", "manual"}:
            raise ValueError("run_type must be one of: scheduled, manual")
        normalized_job_name = self._validate_non_empty_text(job_name, "job_name")
        if as_of_utc is None or as_of_utc.tzinfo is None:
            raise ValueError("as_of_utc must be an offset-aware datetime")

        try:
            with self._engine.begin() as connection:
                created_row = connection.execute(
                    text(
                        "INSERT INTO distribution_run ("
                        "run_type, job_name, as_of_utc, status, started_at_utc"
                        ") VALUES ("
                        ":run_type, :job_name, :as_of_utc, 'started', now()"
                        ") "
                        "RETURNING distribution_run_id"
                    ),
                    {
                        "run_type": normalized_run_type,
                        "job_name": normalized_job_name,
                        "as_of_utc": as_of_utc,
                    },
                ).mappings().one()

                return self._db_fetch_run_by_id_or_raise(
                    connection=connection,
                    distribution_run_id=created_row["distribution_run_id"],
                )
        except SQLAlchemyError as error:
            raise TransientStorageError("failed to create started distribution run") from error

    def db_distribution_run_finalize(
        self,
        distribution_run_id: UUID,
        status: str,
        counts: DistributionRunCounts,
        error_code: str | None,
        error_message: str | None,
        diagnostics: list[dict[str, Any]] | None,
    ) -> DistributionRunRecord:
        """Finalize one run with deterministic end timestamp and duration.

        Args:
            distribution_run_id: Run identifier.
            status: Final status (`success` or `failed`).
            counts: Outcome counters.
            error_code: Optional deterministic error code.
            error_message: Optional human-readable message.
            diagnostics: Optional structured timeline payload.

        Returns:
            DistributionRunRecord: Finalized run row.

        Raises:
            LookupError: Raised when run is not found.
            ValueError: Raised when final status is invalid.
            TransientStorageError: Raised when persistence fails.
        """

        if status not in {"success", "failed"}:
            raise ValueError("status must be one of: success, failed")

        diagnostics_payload = None
        if diagnostics is not None:
            diagnostics_payload = json.dumps(diagnostics, default=str)

        try:
            with self._engine.begin() as connection:
                updated_row = connection.execute(
                    text(
                        "UPDATE distribution_run SET "
                        "status = :status, "
                        "credited_count = :credited_count, "
                        "skipped_count = :skipped_count, "
                        "completed_count = :completed_count, "
                        "error_count = :error_count, "
                        "ended_at_utc = now(), "
                        "duration_ms = GREATEST(0, CAST(EXTRACT(EPOCH FROM (now() - started_at_utc)) * 1000 AS BIGINT)), "
                        "error_code = :error_code, "
                        "error_message = :error_message, "
                        "diagnostics = CAST(:diagnostics AS jsonb) "
                        "WHERE distribution_run_id = :distribution_run_id "
                        "RETURNING distribution_run_id"
                    ),
                    {
                        "status": status,
                        "credited_count": counts.credited_count,
                        "skipped_count": counts.skipped_count,
                        "completed_count": counts.completed_count,
                        "error_count": counts.error_count,
                        "error_code": error_code,
                        "error_message": error_message,
                        "diagnostics": diagnostics_payload,
                        "distribution_run_id": distribution_run_id,
                    },
                ).mappings().first()
                if updated_row is None:
                    raise LookupError("distribution run not found")

                return self._db_fetch_run_by_id_or_raise(connection=connection, distribution_run_id=distribution_run_id)
        except SQLAlchemyError as error:
            raise TransientStorageError("failed to finalize distribution run") from error

    def db_distribution_run_get_by_id(self, distribution_run_id: UUID) -> DistributionRunRecord | None:
        """Fetch one distribution run by id.

        Args:
            distribution_run_id: Run identifier.

        Returns:
            DistributionRunRecord | None: Matching run row or None.

        Raises:
            TransientStorageError: Raised when database read fails.
        """

        try:
            with self._engine.connect() as connection:
                row = connection.execute(
                    text(f"SELECT {_RUN_COLUMNS} FROM distribution_run WHERE distribution_run_id = :distribution_run_id"),
                    {"distribution_run_id": distribution_run_id},
                ).mappings().first()
                if row is None:
                    return None
                return self._map_distribution_run_record(row)
        except SQLAlchemyError as error:
            raise TransientStorageError("failed to fetch distribution run by id") from error

    def db_distribution_run_list(self, limit: int, offset: int) -> list[DistributionRunRecord]:
        """List runs with deterministic default ordering.

        Args:
            limit: Maximum number of rows.
            offset: Number of rows to skip.

        Returns:
            list[DistributionRunRecord]: Ordered run rows.

        Raises:
            ValueError: Raised when limit or offset are invalid.
            TransientStorageError: Raised when database read fails.
        """

        if limit < 1:
            raise ValueError("limit must be >= 1")
        if offset < 0:
            raise ValueError("offset must be >= 0")

        try:
            with self._engine.connect() as connection:
                rows = connection.execute(
                    text(
                        f"SELECT {_RUN_COLUMNS} FROM distribution_run "
                        "ORDER BY started_at_utc DESC, distribution_run_id DESC "
                        "LIMIT :limit OFFSET :offset"
                    ),
                    {"limit": limit, "offset": offset},
                ).mappings().all()

                return [self._map_distribution_run_record(row) for row in rows]
        except SQLAlchemyError as error:
            raise TransientStorageError("failed to list distribution runs") from error

    def _db_fetch_run_by_id_or_raise(self, connection, distribution_run_id: UUID) -> DistributionRunRecord:
        """Fetch one run inside active transaction and raise when missing.

        Args:
            connection: Active SQLAlchemy connection.
            distribution_run_id: Run identifier.

        Returns:
            DistributionRunRecord: Matching row.

        Raises:
            LookupError: Raised when row cannot be found.
        """

        row = connection.execute(
            text(f"SELECT {_RUN_COLUMNS} FROM distribution_run WHERE distribution_run_id = :distribution_run_id"),
            {"distribution_run_id": distribution_run_id},
        ).mappings().first()
        if row is None:
            raise LookupError("distribution run not found")
        return self._map_distribution_run_record(row)

    def _map_distribution_run_record(self, row: Any) -> DistributionRunRecord:
        """Map SQLAlchemy row mapping to typed distribution run record.

        Args:
            row: SQLAlchemy mapping row.

        Returns:
            DistributionRunRecord: Typed run record.

        Raises:
            TypeError: Raised when row structure is incompatible.
        """

        diagnostics_value = row["diagnostics"]
        if diagnostics_value is not None and not isinstance(diagnostics_value, list):
            raise TypeError("distribution_run.diagnostics must be a JSON array when present")

        return DistributionRunRecord(
            distribution_run_id=row["distribution_run_id"],
            run_type=row["run_type"],
            job_name=row["job_name"],
            as_of_utc=row["as_of_utc"],
            counts=DistributionRunCounts(
                credited_count=int(row["credited_count"]),
                skipped_count=int(row["skipped_count"]),
                completed_count=int(row["completed_count"]),
                error_count=int(row["error_count"]),
            ),
            state=DistributionRunState(
                status=row["status"],
                started_at_utc=row["started_at_utc"],
                ended_at_utc=row["ended_at_utc"],
                duration_ms=row["duration_ms"],
                error_code=row["error_code"],
                error_message=row["error_message"],
                diagnostics=diagnostics_value,
            ),
            created_at_utc=row["created_at_utc"],
        )

    def _validate_non_empty_text(self, value: str, field_name: str) -> str:
        """Validate required text input and return stripped value.

        Args:
            value: Candidate string value.
            field_name: Field name for error reporting.

        Returns:
            str: Stripped non-empty value.

        Raises:
            ValueError: Raised when value is blank.
        """

        if not isinstance(value, str):
            raise ValueError(f"{field_name} must be a string")
        stripped_value = value.strip()
        if not stripped_value:
            raise ValueError(f"{field_name} must not be blank")
        return stripped_value
