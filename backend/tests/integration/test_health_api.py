"""
Integration tests for GET /v1/health.
"""


def test_health_reports_dependencies(test_client):
    response = test_client.get("/v1/health")

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "ok"
    assert data["service"] == "reframe"
    assert data["checks"]["db"] == "ok"
    assert data["checks"]["redis"] == "not_configured"
    assert data["checks"]["ai"] == "configured"


def test_health_without_credential(test_client, unconfigured_settings):
    from reframe.config import get_settings
    from reframe.main import app

    app.dependency_overrides[get_settings] = lambda: unconfigured_settings

    response = test_client.get("/v1/health")

    assert response.status_code == 200
    assert response.json()["checks"]["ai"] == "not_configured"
