"""Tests for health endpoints."""

from unittest.mock import patch

from fastapi.testclient import TestClient


def test_health_check(client: TestClient):
    """Test health endpoint."""
    response = client.get("/health")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "healthy"
    assert data["service"] == "tokendrop-api"


def test_readiness_check(client: TestClient, session_factory):
    """Ready once the database answers and migrations are at head."""
    with patch("tokendrop_api.main.SessionLocal", session_factory), \
            patch("tokendrop_api.main._migrations_at_head", return_value=True):
        response = client.get("/ready")
    assert response.status_code == 200
    assert response.json()["status"] == "ready"


def test_readiness_reports_pending_migrations(client: TestClient, session_factory):
    with patch("tokendrop_api.main.SessionLocal", session_factory), \
            patch("tokendrop_api.main._migrations_at_head", return_value=False):
        response = client.get("/ready")
    assert response.status_code == 503
    assert response.json()["checks"] == {"database": True, "migrations": False}


def test_readiness_database_down(client: TestClient):
    with patch("tokendrop_api.main.SessionLocal") as mock_session_local:
        mock_session_local.return_value.execute.side_effect = RuntimeError("connection refused")
        response = client.get("/ready")
    assert response.status_code == 503
    assert response.json()["checks"]["database"] is False


def test_root(client: TestClient):
    """Test root endpoint."""
    response = client.get("/")
    assert response.status_code == 200
    data = response.json()
    assert data["service"] == "TOKENDROP API"
