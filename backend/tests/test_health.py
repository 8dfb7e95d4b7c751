"""Tests for the healthcheck endpoint."""

from __future__ import annotations


def test_health_endpoint_returns_ok(client):
    """The healthcheck endpoint should return a JSON payload with status ok."""

    response = client.get("/api/health")

    assert response.status_code == 200
    assert response.get_json() == {"status": "ok"}


def test_health_reports_unreachable_database(client, monkeypatch):
    from sqlalchemy.exc import OperationalError

    from backend.app.extensions import db

    def broken_execute(*args, **kwargs):
        raise OperationalError("SELECT 1", {}, Exception("connection refused"))

    monkeypatch.setattr(db.session, "execute", broken_execute)

    response = client.get("/api/health")

    assert response.status_code == 503
    assert response.get_json() == {"status": "error", "database": "unavailable"}
