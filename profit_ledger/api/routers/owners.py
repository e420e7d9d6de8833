"""Owner API router for profit history and totals."""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Query, status
from fastapi.responses import JSONResponse

from profit_ledger.config import AppSettings
from profit_ledger.db import LedgerStorePort, TransactionLogRecord
from profit_ledger.domain import TRANSACTION_KIND_PROFIT

from .errors import api_error_response


def api_create_owners_router(settings: AppSettings, ledger_store: LedgerStorePort) -> APIRouter:
    """Create owner router with the profit history endpoint.

    Args:
        settings: Application settings providing list limits.
        ledger_store: Ledger store used for balance and transaction log reads.

    Returns:
        APIRouter: Router exposing owner APIs.

    Raises:
        ValueError: Raised when dependencies are invalid.
    """

    if settings is None:
        raise ValueError("settings must not be None")
    if ledger_store is None:
        raise ValueError("ledger_store must not be None")

    router = APIRouter(prefix="/owners", tags=["owners"])

    @router.get("/{owner_id}/profits")
    def api_owner_profit_history(
        owner_id: UUID,
        limit: int = Query(default=settings.api_default_limit, ge=1),
        offset: int = Query(default=0, ge=0),
    ) -> JSONResponse:
        """Return credited profit entries of one owner, newest first, with totals.

        Args:
            owner_id: Balance owner identifier.
            limit: Max entries to return, capped by `api_max_limit`.
            offset: Entries to skip.

        Returns:
            JSONResponse: Profit history payload or 404 when the owner has no balance.
        """

        balance = ledger_store.db_balance_get(owner_id)
        if balance is None:
            return api_error_response(status.HTTP_404_NOT_FOUND, "OWNER_NOT_FOUND", "owner balance not found")

        applied_limit = min(limit, settings.api_max_limit)
        entries = ledger_store.db_transaction_log_list_for_owner(
            owner_id,
            kind=TRANSACTION_KIND_PROFIT,
            limit=applied_limit,
            offset=offset,
        )
        payload = {
            "owner_id": str(owner_id),
            "total_balance": str(balance.total_balance),
            "profit_total": str(ledger_store.db_transaction_log_total_for_owner(owner_id, TRANSACTION_KIND_PROFIT)),
            "items": [api_serialize_transaction_log_record(entry) for entry in entries],
            "page": {
                "limit": limit,
                "applied_limit": applied_limit,
                "offset": offset,
                "returned": len(entries),
            },
        }
        return JSONResponse(content=payload, status_code=status.HTTP_200_OK)

    return router


def api_serialize_transaction_log_record(entry: TransactionLogRecord) -> dict[str, object]:
    """Serialize typed transaction log row to JSON response payload.

    Args:
        entry: Typed transaction log record.

    Returns:
        dict[str, object]: JSON-serializable entry payload with decimal strings.
    """

    return {
        "transaction_log_id": str(entry.transaction_log_id),
        "kind": entry.kind,
        "amount": str(entry.amount),
        "position_id": str(entry.position_id) if entry.position_id else None,
        "period_credit_id": str(entry.period_credit_id) if entry.period_credit_id else None,
        "status": entry.status,
        "description": entry.description,
        "created_at_utc": entry.created_at_utc.isoformat(),
    }
