import pytest
from fastapi.testclient import TestClient

from app.core import health
from app.main import app
from app.services.broadcast import hub


@pytest.fixture
def health_client(monkeypatch):
    async def _db_ok():
        return {"status": "ok"}

    monkeypatch.setattr(health, "_check_db", _db_ok)
    return TestClient(app)


def test_live(health_client):
    response = health_client.get("/api/health/live")

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["status"] == "ok"
    assert data["version"] == health.APP_VERSION


def test_ready_reports_checks_and_connections(health_client):
    hub.open()
    hub.open()

    response = health_client.get("/api/health/ready")

    data = response.json()["data"]
    assert data["ready"] is True
    assert data["checks"]["fanout"]["backend"] == "local"
    assert data["sseConnections"] == 2


def test_ready_degraded_when_database_down(health_client, monkeypatch):
    async def _db_down():
        return {"status": "error", "error": "connection refused"}

    monkeypatch.setattr(health, "_check_db", _db_down)

    data = health_client.get("/api/health").json()["data"]

    assert data["status"] == "degraded"
    assert data["ready"] is False


def test_request_id_is_echoed(health_client):
    response = health_client.get("/api/health/live", headers={"X-Request-ID": "req-123"})

    assert response.headers["x-request-id"] == "req-123"
    assert health_client.get("/api/health/live").headers["x-request-id"]
