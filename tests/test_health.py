"""
tests/test_health.py -- Integration tests for GET /api/v1/health.

Covers:
  - 200 response with status, version, and components fields
  - components.database reports the store round trip
  - No authentication required
"""

from __future__ import annotations

from sqlalchemy.exc import OperationalError

from api.main import app


def test_health_returns_200_with_components(api_client):
    """Health endpoint returns 200 with status, version, and components."""
    resp = api_client.get("/api/v1/health")
    assert resp.status_code == 200
    data = resp.json()
    assert data["status"] == "healthy"
    assert "version" in data
    assert data["components"] == {"app": "ok", "database": "ok"}


def test_health_no_auth_required(api_client):
    """Health endpoint is accessible without any authentication headers."""
    api_client.cookies.clear()
    resp = api_client.get("/api/v1/health", headers={})
    assert resp.status_code == 200


def test_health_reports_database_error(api_client, monkeypatch):
    """A failing database is reported in components, not as a 500."""

    def broken_ping() -> bool:
        raise OperationalError("SELECT 1", {}, Exception("disk I/O error"))

    monkeypatch.setattr(app.state.user_store, "ping", broken_ping)
    resp = api_client.get("/api/v1/health")
    assert resp.status_code == 200
    assert resp.json()["components"]["database"] == "error"
