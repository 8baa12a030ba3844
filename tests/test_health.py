"""
Liveness and index endpoints. None of these touch upstream services.
"""
from fastapi.testclient import TestClient
from dashboard.main import APP_NAME, APP_VERSION, app

client = TestClient(app)


def test_health_reports_ok_with_uptime():
    response = client.get("/health")
    assert response.status_code == 200

    data = response.json()
    assert data["status"] == "ok"
    assert data["uptime"] >= 0
    assert data["timestamp"].endswith("Z")


def test_home_points_at_health():
    response = client.get("/")
    assert response.status_code == 200
    assert "/health" in response.json()["message"]


def test_api_index_reports_name_and_version():
    """/api identifies the service for display clients."""
    assert client.get("/api").json() == {"name": APP_NAME, "version": APP_VERSION}
