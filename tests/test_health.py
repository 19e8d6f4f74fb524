"""
tests/test_health.py -- Integration tests for the root, health and fallback routes.

Covers:
  - GET / returns the running banner with a timestamp
  - GET /health reports store connectivity, no auth required
  - Unknown routes return the JSON 404 envelope with the path
  - Security headers are present on every response
"""

from __future__ import annotations


def test_root_banner(client):
    resp = client.get("/")
    assert resp.status_code == 200
    data = resp.json()
    assert data["message"] == "Jewellery Stock Management API is running!"
    assert data["status"] == "success"
    assert "timestamp" in data


def test_health_reports_database_connected(client):
    resp = client.get("/health", headers={})
    assert resp.status_code == 200
    data = resp.json()
    assert data["status"] == "healthy"
    assert data["database"] == "connected"


def test_unknown_route_is_json_404(client):
    resp = client.get("/api/auth/nope")
    assert resp.status_code == 404
    assert resp.json() == {"message": "Route not found", "code": "not_found", "path": "/api/auth/nope"}


def test_wrong_method_is_not_a_404(client):
    resp = client.get("/api/auth/login")
    assert resp.status_code == 405


def test_security_headers_present(client):
    resp = client.get("/")
    assert resp.headers["X-Content-Type-Options"] == "nosniff"
    assert resp.headers["X-Frame-Options"] == "DENY"
    assert "Referrer-Policy" in resp.headers
