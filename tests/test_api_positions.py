"""Tests for position detail, credit history and manual completion endpoints."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from uuid import uuid4

from fastapi.testclient import TestClient

from profit_ledger.api.application import create_api_application
from profit_ledger.config import AppSettings
from profit_ledger.distribution import PositionLifecycleManager, ProfitDistributionEngine
from profit_ledger.domain import POSITION_STATUS_COMPLETED, HealthStatus
from profit_ledger.jobs import DistributionJobOrchestrator

_START_UTC = datetime(2026, 1, 1, 0, 0, tzinfo=timezone.utc)
_CLOCK_UTC = _START_UTC + timedelta(hours=6, minutes=30)


class _HealthyDatabaseService:
    """Health double reporting a reachable database."""

    def db_connection_label(self) -> str:
        return "postgresql://test"

    def db_check_health(self) -> HealthStatus:
        return HealthStatus(status="ok", detail="database connectivity verified")


def _build_client(ledger_store, run_repository) -> TestClient:
    engine = ProfitDistributionEngine(store=ledger_store)
    lifecycle_manager = PositionLifecycleManager(store=ledger_store, engine=engine)
    application = create_api_application(
        settings=AppSettings(environment_name="test"),
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


def test_api_position_detail_reports_progress(ledger_store, run_repository) -> None:
    """Detail payload carries decimal strings and accrual progress."""

    position = ledger_store.seed_position(total_periods=24)
    client = _build_client(ledger_store, run_repository)
    client.post("/distribution/run")

    response = client.get(f"/positions/{position.position_id}")

    body = response.json()
    assert response.status_code == 200
    assert body["principal"] == "1000"
    assert body["period_unit"] == "hour"
    assert body["status"] == "active"
    assert body["accumulated_profit"] == "6.00"
    assert body["progress"]["periods_elapsed"] == 6
    assert body["progress"]["periods_credited"] == 6
    assert body["progress"]["periods_remaining"] == 18
    assert body["progress"]["progress_percentage"] == "25.00"
    assert body["progress"]["next_period_due_at_utc"] == "2026-01-01T07:00:00+00:00"


def test_api_position_detail_without_progress_for_unknown_unit(ledger_store, run_repository) -> None:
    """Misconfigured terms still return the position, without progress."""

    position = ledger_store.seed_position(period_unit="fortnight")
    client = _build_client(ledger_store, run_repository)

    response = client.get(f"/positions/{position.position_id}")

    assert response.status_code == 200
    assert response.json()["progress"] is None


def test_api_position_detail_returns_404_for_unknown_id(ledger_store, run_repository) -> None:
    """Unknown positions produce a deterministic not-found payload."""

    client = _build_client(ledger_store, run_repository)

    response = client.get(f"/positions/{uuid4()}")

    assert response.status_code == 404
    assert response.json()["code"] == "POSITION_NOT_FOUND"


def test_api_position_credit_list_is_ordered_by_index(ledger_store, run_repository) -> None:
    """Credit history lists periods in ascending index order."""

    position = ledger_store.seed_position(total_periods=24)
    client = _build_client(ledger_store, run_repository)
    client.post("/distribution/run", params={"as_of": "2026-01-01T03:00:00+00:00"})

    response = client.get(f"/positions/{position.position_id}/credits")

    body = response.json()
    assert response.status_code == 200
    assert body["total_periods"] == 24
    assert [item["period_index"] for item in body["items"]] == [1, 2, 3]
    assert body["items"][0]["amount"] == "1.00"
    assert body["items"][0]["period_at_utc"] == "2026-01-01T01:00:00+00:00"


def test_api_position_complete_succeeds_after_term(ledger_store, run_repository) -> None:
    """Manual completion catches up and completes a term-elapsed position."""

    position = ledger_store.seed_position(total_periods=6)
    client = _build_client(ledger_store, run_repository)

    response = client.post(f"/positions/{position.position_id}/complete")

    assert response.status_code == 200
    assert response.json()["status"] == "completed"
    assert response.json()["catch_up_credited"] == 6
    assert ledger_store.positions[position.position_id].status == POSITION_STATUS_COMPLETED

    repeat_response = client.post(f"/positions/{position.position_id}/complete")

    assert repeat_response.status_code == 200
    assert repeat_response.json()["status"] == "already_final"


def test_api_position_complete_returns_409_before_term(ledger_store, run_repository) -> None:
    """Completion is refused while periods remain."""

    position = ledger_store.seed_position(total_periods=24)
    client = _build_client(ledger_store, run_repository)

    response = client.post(f"/positions/{position.position_id}/complete")

    assert response.status_code == 409
    assert response.json()["code"] == "TERM_NOT_ELAPSED"


def test_api_position_complete_returns_409_when_catch_up_fails(ledger_store, run_repository) -> None:
    """A failed catch-up leaves the position active and is reported as a conflict."""

    position = ledger_store.seed_position(total_periods=6)
    ledger_store.fail_credit_keys.add((position.position_id, 2))
    client = _build_client(ledger_store, run_repository)

    response = client.post(f"/positions/{position.position_id}/complete")

    assert response.status_code == 409
    assert response.json()["code"] == "CATCH_UP_FAILED"
    assert ledger_store.positions[position.position_id].status == "active"


def test_api_position_complete_returns_404_for_unknown_id(ledger_store, run_repository) -> None:
    """Unknown positions cannot be completed."""

    client = _build_client(ledger_store, run_repository)

    response = client.post(f"/positions/{uuid4()}/complete")

    assert response.status_code == 404


def test_api_position_complete_rejects_naive_as_of(ledger_store, run_repository) -> None:
    """Completion instants must carry an offset."""

    position = ledger_store.seed_position(total_periods=6)
    client = _build_client(ledger_store, run_repository)

    response = client.post(f"/positions/{position.position_id}/complete", params={"as_of": "2026-01-01T08:00:00"})

    assert response.status_code == 400
    assert response.json()["code"] == "INVALID_AS_OF"


def test_api_position_complete_reports_missing_balance_as_conflict(ledger_store, run_repository) -> None:
    """A missing balance row during completion is not reported as an unknown position."""

    position = ledger_store.seed_position(total_periods=6)
    client = _build_client(ledger_store, run_repository)
    client.post("/distribution/run")
    del ledger_store.balances[position.owner_id]

    response = client.post(f"/positions/{position.position_id}/complete")

    assert response.status_code == 409
    assert response.json()["code"] == "LEDGER_ROW_MISSING"
    assert ledger_store.positions[position.position_id].status == "active"
