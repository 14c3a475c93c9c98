"""Response envelope, error mapping and operational endpoint tests."""

from __future__ import annotations

from unittest.mock import MagicMock

from fastapi.testclient import TestClient

from conftest import auth, make_settings
from saveai.infrastructure import create_app
from saveai.infrastructure.middleware import SECURITY_HEADERS


def _failing_history_app(services, env: str) -> TestClient:
    failing = MagicMock()
    failing.select.side_effect = RuntimeError("relation search_history does not exist")
    services.store = failing
    return TestClient(create_app(make_settings(env=env), services))


def test_success_envelope(client):
    response = client.get("/api/history", headers=auth())

    assert response.json() == {"success": True, "data": []}
    assert response.headers["X-Request-ID"].startswith("req_")


def test_request_ids_are_unique(client):
    first = client.get("/api/history", headers=auth()).headers["X-Request-ID"]
    second = client.get("/api/history", headers=auth()).headers["X-Request-ID"]

    assert first != second


def test_invalid_json_body(client):
    response = client.post(
        "/api/search",
        content=b'{"query": ',
        headers={**auth(), "Content-Type": "application/json"},
    )

    assert response.status_code == 400
    assert response.json() == {"success": False, "error": "Invalid request"}


def test_internal_error_in_development_has_details(services):
    client = _failing_history_app(services, "development")

    response = client.get("/api/history", headers=auth())

    assert response.status_code == 500
    assert response.json() == {
        "success": False,
        "error": "Internal Server Error",
        "details": "relation search_history does not exist",
    }


def test_internal_error_in_production_is_generic(services):
    client = _failing_history_app(services, "production")

    response = client.get("/api/history", headers=auth())

    assert response.status_code == 500
    assert response.json() == {"success": False, "error": "Internal Server Error", "details": "An error occurred"}
    assert "Traceback" not in response.text


def test_unknown_route(client):
    response = client.get("/api/does-not-exist")

    assert response.status_code == 404
    assert response.json() == {"success": False, "error": "Endpoint not found"}


def test_method_not_allowed(client):
    response = client.put("/api/saved", headers=auth())

    assert response.status_code == 405
    assert response.json() == {"success": False, "error": "Method not allowed"}


def test_security_headers(client):
    response = client.get("/api/history", headers=auth())

    for header, value in SECURITY_HEADERS.items():
        assert response.headers[header] == value


def test_health(client):
    response = client.get("/health")

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["data"]["status"] == "healthy"
    assert body["data"]["checks"]["ai_providers"] == ["mock"]
    assert body["data"]["checks"]["rate_limiter"] == "disabled"


def test_health_reports_store_outage(services, settings):
    store = MagicMock()
    store.ping.return_value = False
    services.store = store
    client = TestClient(create_app(settings, services))

    response = client.get("/health")

    assert response.status_code == 503
    assert response.json()["data"]["checks"]["store"]["status"] == "error"


def test_metrics(client):
    client.get("/api/history", headers=auth())

    response = client.get("/metrics")

    assert response.status_code == 200
    assert "request_completed" in response.text
