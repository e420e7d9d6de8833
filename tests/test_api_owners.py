"""Tests for the owner profit history endpoint."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from uuid import uuid4

from fastapi.testclient import TestClient

from profit_ledger.api.application import create_api_application
from profit_ledger.config import AppSettings
from profit_ledger.distribution import PositionLifecycleManager, ProfitDistributionEngine
from profit_ledger.domain import HealthStatus
from profit_ledger.jobs import DistributionJobOrchestrator

_START_UTC = datetime(2026, 1, 1, 0, 0, tzinfo=timezone.utc)
_CLOCK_UTC = _START_UTC + timedelta(hours=6, minutes=30)


class _HealthyDatabaseService:
    """Health double reporting a reachable database."""

    def db_connection_label(self) -> str:
        return "postgresql://test"

    def db_check_health(self) -> HealthStatus:
        return HealthStatus(status="ok", detail="database connectivity verified")


def _build_client(ledger_store, run_repository, settings: AppSettings | None = None) -> TestClient:
    engine = ProfitDistributionEngine(store=ledger_store)
    lifecycle_manager = PositionLifecycleManager(store=ledger_store, engine=engine)
    application = create_api_application(
        settings=settings or AppSettings(environment_name="test"),
        db_health_service=_HealthyDatabaseService(),
        ledger_store=ledger_store,
        run_repository=run_repository,
        distribution_orchestrator=DistributionJobOrchestrator(
            engine=engine,
            lifecycle_manager=lifecycle_manager,
            run_repository=run_repository,
        ),
        lifecycle_manager=lifecycle_manager,
        clock=lambda: _CLOCK_UTC,
    )
    return TestClient(application)


def test_api_owner_profits_lists_profit_entries_with_totals(ledger_store, run_repository) -> None:
    """History carries only profit entries while the balance includes returned principal."""

    running_position = ledger_store.seed_position(principal="1000", total_periods=24)
    ledger_store.seed_position(principal="2000", total_periods=3, owner_id=running_position.owner_id)
    client = _build_client(ledger_store, run_repository)
    client.post("/distribution/cycle")

    response = client.get(f"/owners/{running_position.owner_id}/profits")

    body = response.json()
    assert response.status_code == 200
    assert body["owner_id"] == str(running_position.owner_id)
    assert body["profit_total"] == "12.00"
    assert body["total_balance"] == "2012.00"
    assert body["page"]["returned"] == 9
    assert {item["kind"] for item in body["items"]} == {"profit"}
    assert all(item["period_credit_id"] is not None for item in body["items"])


def test_api_owner_profits_pages_newest_first(ledger_store, run_repository) -> None:
    """Paging returns the latest entries first and caps the limit."""

    position = ledger_store.seed_position(total_periods=24)
    client = _build_client(
        ledger_store,
        run_repository,
        settings=AppSettings(environment_name="test", api_default_limit=2, api_max_limit=3),
    )
    client.post("/distribution/run")

    first_page = client.get(f"/owners/{position.owner_id}/profits").json()
    capped_page = client.get(f"/owners/{position.owner_id}/profits", params={"limit": 50, "offset": 4}).json()

    assert [item["description"] for item in first_page["items"]] == [
        f"Period 6/24 profit for position {position.position_id}",
        f"Period 5/24 profit for position {position.position_id}",
    ]
    assert capped_page["page"] == {"limit": 50, "applied_limit": 3, "offset": 4, "returned": 2}
    assert capped_page["profit_total"] == "6.00"


def test_api_owner_profits_returns_404_for_unknown_owner(ledger_store, run_repository) -> None:
    """Owners without a balance row produce a deterministic not-found payload."""

    client = _build_client(ledger_store, run_repository)

    response = client.get(f"/owners/{uuid4()}/profits")

    assert response.status_code == 404
    assert response.json()["code"] == "OWNER_NOT_FOUND"


def test_api_owner_profits_rejects_invalid_paging(ledger_store, run_repository) -> None:
    """Non-positive limits are rejected by request validation."""

    position = ledger_store.seed_position(total_periods=24)
    client = _build_client(ledger_store, run_repository)

    response = client.get(f"/owners/{position.owner_id}/profits", params={"limit": 0})

    assert response.status_code == 422
