import pytest
from fastapi.testclient import TestClient

from lendmarket.core import health as health_module
from lendmarket.main import app

client = TestClient(app)


@pytest.fixture(autouse=True)
def _mock_env(monkeypatch):
    monkeypatch.setattr(health_module.settings, "environment", "test")
    yield


def _patch_checks(monkeypatch, db_status: dict, redis_status: dict) -> None:
    async def fake_db(database):
        return db_status

    async def fake_redis():
        return redis_status

    monkeypatch.setattr(health_module, "_check_db", fake_db)
    monkeypatch.setattr(health_module, "_check_redis", fake_redis)


def test_health_live_returns_ok() -> None:
    response = client.get("/api/v1/health/live")
    assert response.status_code == 200
    payload = response.json()["data"]
    assert payload.get("status") == "ok"
    assert "timestamp" in payload


def test_health_ready_ok(monkeypatch) -> None:
    _patch_checks(monkeypatch, {"status": "ok"}, {"status": "ok"})

    response = client.get("/api/v1/health/ready")
    assert response.status_code == 200
    payload = response.json()["data"]
    assert payload["status"] == "ok"
    assert payload["ready"] is True
    assert payload["environment"] == "test"
    assert payload["checks"]["database"]["status"] == "ok"


def test_health_ready_degraded(monkeypatch) -> None:
    _patch_checks(monkeypatch, {"status": "error", "error": "unreachable"}, {"status": "ok"})

    response = client.get("/api/v1/health")
    assert response.status_code == 200
    payload = response.json()["data"]
    assert payload["status"] == "degraded"
    assert payload["ready"] is False
    assert payload["checks"]["database"]["error"] == "unreachable"


def test_status_summary_includes_version(monkeypatch) -> None:
    _patch_checks(monkeypatch, {"status": "ok"}, {"status": "ok"})

    response = client.get("/api/v1/status/summary")
    assert response.status_code == 200
    payload = response.json()["data"]
    assert payload["version"] == "0.1.0"
    assert payload["checks"]["api"]["version"] == "0.1.0"


@pytest.mark.asyncio
async def test_db_check_reports_uninitialised_database() -> None:
    result = await health_module._check_db(app.state.database)
    assert result["status"] == "error"
