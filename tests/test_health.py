"""
tests/test_health.py -- Integration tests for GET /api/v1/health.

Covers:
  - 200 response with status, version, and components fields
  - each store reports 'ok' when reachable, 'error' (status degraded) when not
  - No authentication required
"""

from __future__ import annotations

from unittest.mock import patch


def test_health_returns_200_with_components(api_client):
    client, _clock, _store = api_client
    resp = client.get("/api/v1/health")
    assert resp.status_code == 200
    data = resp.json()
    assert data["status"] == "healthy"
    assert "version" in data
    assert data["components"] == {"app": "ok", "database": "ok", "chapters": "ok"}


def test_health_reports_unreachable_store(api_client):
    client, _clock, store = api_client
    with patch.object(store, "ping", side_effect=RuntimeError("gone")):
        data = client.get("/api/v1/health").json()
    assert data["status"] == "degraded"
    assert data["components"]["database"] == "error"


def test_health_no_auth_required(api_client):
    client, _clock, _store = api_client
    resp = client.get("/api/v1/health", headers={})
    assert resp.status_code == 200
