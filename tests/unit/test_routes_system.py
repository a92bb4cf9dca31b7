"""
Tests for /health, /api and the catch-all route
"""
from datetime import datetime
from unittest.mock import MagicMock

from fastapi.testclient import TestClient

from harpernet_api.app import create_app
from harpernet_api.config import Settings

ROUTE_NOT_FOUND = {"success": False, "error": "Route not found"}


class TestHealth:
    """Liveness endpoint"""

    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["status"] == "healthy"
        assert data["service"] == "harpernet-api"
        assert data["version"] == "1.0.0"
        assert data["uptime"] >= 0
        assert datetime.fromisoformat(data["timestamp"]).tzinfo is not None

    def test_health_reports_configured_version(self, make_app):
        with TestClient(make_app(version="4.5.6")) as client:
            assert client.get("/health").json()["version"] == "4.5.6"

    def test_health_independent_of_database(self):
        engine = MagicMock()
        engine.connect.side_effect = RuntimeError("database is down")
        app = create_app(Settings(environment="test"), engine)

        client = TestClient(app)
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json()["success"] is True
        engine.connect.assert_not_called()


class TestApiInfo:
    """Capability listing"""

    def test_api_info(self, client):
        response = client.get("/api")
        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["message"] == "HarperNet.org Quiz Results API"
        assert set(data["endpoints"]) == {
            "POST /api/quiz-results",
            "GET /api/quiz-results/stats",
            "GET /api/quiz-results/analytics",
            "GET /health",
        }


class TestCatchAll:
    """Unmatched routes"""

    def test_unknown_path(self, client):
        response = client.get("/does-not-exist")
        assert response.status_code == 404
        assert response.json() == ROUTE_NOT_FOUND

    def test_unknown_api_path(self, client):
        response = client.post("/api/unknown", json={})
        assert response.status_code == 404
        assert response.json() == ROUTE_NOT_FOUND

    def test_unsupported_method(self, client):
        response = client.delete("/health")
        assert response.status_code == 404
        assert response.json() == ROUTE_NOT_FOUND
