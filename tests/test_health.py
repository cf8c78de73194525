"""
tests/test_health.py -- Integration tests for GET /api/health and the error envelope.

Covers:
  - 200 response with status and version
  - No authentication required
  - Unknown paths and methods still answer with the structured error envelope
"""

from __future__ import annotations


def test_health_returns_200(client):
    """Health endpoint returns 200 with status and version."""
    resp = client.get("/api/health")
    assert resp.status_code == 200
    data = resp.json()
    assert data["status"] == "ok"
    assert "version" in data


def test_health_no_auth_required(client):
    resp = client.get("/api/health", headers={})
    assert resp.status_code == 200


def test_unknown_path_uses_error_envelope(client):
    resp = client.get("/api/does-not-exist")
    assert resp.status_code == 404
    assert resp.json()["error"]["code"] == "http_404"


def test_wrong_method_uses_error_envelope(client):
    resp = client.patch("/api/health")
    assert resp.status_code == 405
    assert "error" in resp.json()
