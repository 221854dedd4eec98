"""Tests for per-request logging and request metrics."""

from __future__ import annotations

from fastapi.testclient import TestClient
from prometheus_client import REGISTRY
from structlog.testing import capture_logs

BASE = "/api/v1/transcriptions"


def _requests(method: str, endpoint: str, status: str) -> float:
    value = REGISTRY.get_sample_value(
        "api_requests_total",
        {"method": method, "endpoint": endpoint, "status": status},
    )
    return value or 0.0


class TestRequestLogging:
    def test_successful_request_logged(self, client: TestClient):
        with capture_logs() as logs:
            client.get(f"{BASE}/ping")
        event = next(e for e in logs if e["event"] == "http_request")
        assert event["method"] == "GET"
        assert event["path"] == f"{BASE}/ping"
        assert event["status"] == 200
        assert event["duration_ms"] >= 0
        assert event["ip"] == "testclient"

    def test_unmatched_route_logged_with_status(self, client: TestClient):
        with capture_logs() as logs:
            client.get("/no/such/route")
        event = next(e for e in logs if e["event"] == "http_request")
        assert event["status"] == 404

    def test_crashing_handler_still_logged(self, client: TestClient):
        with capture_logs() as logs:
            resp = client.get(f"{BASE}/faults/crash")
        assert resp.status_code == 500
        events = [e["event"] for e in logs]
        assert "http_request" in events
        assert "request_failed" in events
        event = next(e for e in logs if e["event"] == "http_request")
        assert event["status"] == 500

    def test_crashing_handler_counted(self, client: TestClient):
        endpoint = f"{BASE}/faults/crash"
        before = _requests("GET", endpoint, "500")
        client.get(endpoint)
        assert _requests("GET", endpoint, "500") == before + 1
