"""
Tests for the health check API router.

Validates the liveness and detailed status payloads.
"""

from __future__ import annotations

from fastapi.testclient import TestClient

from vocali_api import __version__


class TestHealthCheck:
    def test_health_returns_200(self, client: TestClient):
        resp = client.get("/health")
        assert resp.status_code == 200

    def test_health_response_shape(self, client: TestClient):
        data = client.get("/health").json()
        assert data["success"] is True
        assert data["message"] == "Vocali API is running"
        assert data["timestamp"]
        assert data["version"] == __version__

    def test_trailing_slash_served_directly(self, client: TestClient):
        resp = client.get("/health/", follow_redirects=False)
        assert resp.status_code == 200
        assert resp.json()["success"] is True

    def test_head_request(self, client: TestClient):
        resp = client.head("/health")
        assert resp.status_code == 200

    def test_health_ignores_cors_state(self, client: TestClient):
        resp = client.get("/health", headers={"Origin": "https://evil.example"})
        assert resp.status_code == 200
        assert resp.json()["success"] is True


class TestHealthStatus:
    def test_status_response_shape(self, client: TestClient):
        resp = client.get("/health/status")
        assert resp.status_code == 200
        data = resp.json()
        assert data["success"] is True
        assert data["status"] == "healthy"
        assert data["timestamp"]
        assert data["version"] == __version__
        assert data["uptime"] >= 0

    def test_memory_statistics(self, client: TestClient):
        memory = client.get("/health/status").json()["memory"]
        assert memory["rss"] > 0
        assert memory["vms"] > 0

    def test_status_head_and_trailing_slash(self, client: TestClient):
        assert client.head("/health/status").status_code == 200
        assert client.get("/health/status/", follow_redirects=False).status_code == 200


class TestMetrics:
    def test_metrics_exposed(self, client: TestClient):
        client.get("/health")
        resp = client.get("/metrics/")
        assert resp.status_code == 200
        assert "api_requests_total" in resp.text
