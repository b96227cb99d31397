"""
Health, readiness and metrics endpoint tests
"""

from fastapi.testclient import TestClient


def test_health_endpoint(client: TestClient):
    """Test /health endpoint"""
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"


def test_ready_endpoint(client: TestClient):
    """Database reachable, Redis not needed while rate limiting is off"""
    response = client.get("/ready")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "ok"
    assert data["database"] == "connected"
    assert data["redis"] == "disabled"


def test_metrics_endpoint(client: TestClient):
    client.post(
        "/api/v1/vaults",
        json={"name": "Metrics", "creator_identity": "ana@example.com", "member_identities": []},
    )

    response = client.get("/metrics")

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/plain")
    assert "vaults_created_total" in response.text
    assert "http_requests_total" in response.text


def test_metrics_requires_token_when_private(client: TestClient, monkeypatch):
    from friendvault.infrastructure.settings import get_settings

    settings = get_settings()
    monkeypatch.setattr(settings, "METRICS_PUBLIC", False)
    monkeypatch.setattr(settings, "METRICS_TOKEN", "scrape-token")

    assert client.get("/metrics").status_code == 403
    assert client.get("/metrics", headers={"X-Metrics-Token": "wrong"}).status_code == 403
    assert client.get("/metrics", headers={"X-Metrics-Token": "scrape-token"}).status_code == 200


def test_trace_id_in_error_response(client: TestClient):
    """Unknown routes still answer with an error envelope carrying the trace id"""
    response = client.get("/nonexistent-endpoint")
    assert response.status_code == 404
    data = response.json()
    assert data["success"] is False
    assert data["error"] == "NOT_FOUND"
    assert data["trace_id"] is not None
    assert response.headers["X-Trace-ID"] == data["trace_id"]
