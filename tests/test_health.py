from fastapi.testclient import TestClient

from main import app

client = TestClient(app)


def test_health_endpoint():
    resp = client.get("/api/v1/health")
    assert resp.status_code == 200
    body = resp.json()
    assert body.get("status") in {"healthy", "unhealthy"}
    assert "timestamp" in body or body.get("status") == "unhealthy"
    assert body["components"]["database"] == "healthy"


def test_health_reports_background_components_when_not_started():
    body = client.get("/api/v1/health").json()
    assert body["components"]["scheduler"] == "disabled"
    assert body["components"]["notifier"] == "disabled"


def test_database_health_endpoint():
    resp = client.get("/api/v1/health/database")
    assert resp.status_code == 200
    body = resp.json()
    assert body["success"] is True
    assert body["data"]["status"] == "healthy"


def test_unknown_route_uses_standard_envelope():
    resp = client.get("/api/v1/does-not-exist")
    assert resp.status_code == 404
    body = resp.json()
    assert body["success"] is False
    assert body["status_code"] == 404
