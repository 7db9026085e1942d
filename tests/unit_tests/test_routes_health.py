"""Test suite for health check endpoints."""

from unittest.mock import AsyncMock
from unittest.mock import MagicMock

from fastapi import status

from tests.consts import API_BASE


class TestHealthEndpoint:
    """Tests for GET /api/health."""

    def test_health_check_success(self, client):
        response = client.get(f"{API_BASE}/health")

        assert response.status_code == status.HTTP_200_OK
        data = response.json()
        assert data["status"] == "healthy"
        assert data["service"] == "Consultation Workflow API"
        assert data["workflow_enabled"] is True
        assert "timestamp" in data

    def test_health_check_without_workflow(self, client_without_workflow):
        response = client_without_workflow.get(f"{API_BASE}/health")

        assert response.status_code == status.HTTP_200_OK
        assert response.json()["workflow_enabled"] is False

    def test_health_check_sets_request_id(self, client):
        response = client.get(f"{API_BASE}/health", headers={"X-Request-ID": "req-123"})

        assert response.headers["X-Request-ID"] == "req-123"


class TestReadinessEndpoint:
    """Tests for GET /api/health/ready."""

    def test_not_configured(self, client_without_workflow):
        response = client_without_workflow.get(f"{API_BASE}/health/ready")

        assert response.status_code == status.HTTP_503_SERVICE_UNAVAILABLE
        assert response.json()["database"] == "not_configured"

    def test_database_reachable(self, app, client_without_workflow):
        app.state.db_pool = MagicMock()
        app.state.db_pool.health_check = AsyncMock(return_value=True)

        response = client_without_workflow.get(f"{API_BASE}/health/ready")

        assert response.status_code == status.HTTP_200_OK
        assert response.json()["database"] == "ok"

    def test_database_unreachable(self, app, client_without_workflow):
        app.state.db_pool = MagicMock()
        app.state.db_pool.health_check = AsyncMock(return_value=False)

        response = client_without_workflow.get(f"{API_BASE}/health/ready")

        assert response.status_code == status.HTTP_503_SERVICE_UNAVAILABLE
        assert response.json()["database"] == "unreachable"
