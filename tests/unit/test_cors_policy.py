"""
Tests for the origin allow-list
"""
from fastapi.testclient import TestClient

from harpernet_api.middleware.cors_policy import OriginPolicy

CORS_REJECTION = {"success": False, "error": "Not allowed by CORS"}


class TestOriginPolicy:
    """Accept/reject decisions"""

    def test_missing_origin_always_allowed(self):
        policy = OriginPolicy(["https://harpernet.org"])
        assert policy.is_allowed(None)
        assert policy.is_allowed("")

    def test_listed_origin_allowed(self):
        policy = OriginPolicy(["https://harpernet.org"])
        assert policy.is_allowed("https://harpernet.org")
        assert policy.is_allowed("https://harpernet.org/")

    def test_unlisted_origin_rejected(self):
        policy = OriginPolicy(["https://harpernet.org"])
        assert not policy.is_allowed("https://evil.example")
        assert not policy.is_allowed("http://harpernet.org")

    def test_allow_all_accepts_anything(self):
        policy = OriginPolicy([], allow_all=True)
        assert policy.is_allowed("https://evil.example")


class TestCORSMiddleware:
    """Origin policy applied through the full application"""

    def test_foreign_origin_rejected_outside_development(self, client):
        response = client.get("/health", headers={"Origin": "https://evil.example"})
        assert response.status_code == 403
        assert response.json() == CORS_REJECTION

    def test_foreign_origin_never_reaches_persistence(self, client, submission, db_session):
        from harpernet_api.models import QuizResult

        response = client.post(
            "/api/quiz-results",
            json=submission,
            headers={"Origin": "https://evil.example"},
        )
        assert response.status_code == 403
        assert db_session.query(QuizResult).count() == 0

    def test_no_origin_allowed(self, client):
        response = client.get("/health")
        assert response.status_code == 200

    def test_allowed_origin_gets_cors_headers(self, client):
        response = client.get("/health", headers={"Origin": "https://harpernet.org"})
        assert response.status_code == 200
        assert response.headers["access-control-allow-origin"] == "https://harpernet.org"
        assert response.headers["access-control-allow-credentials"] == "true"

    def test_preflight_for_allowed_origin(self, client):
        response = client.options(
            "/api/quiz-results",
            headers={
                "Origin": "http://localhost:5173",
                "Access-Control-Request-Method": "POST",
                "Access-Control-Request-Headers": "content-type",
            },
        )
        assert response.status_code == 200
        assert response.headers["access-control-allow-origin"] == "http://localhost:5173"

    def test_preflight_for_foreign_origin_rejected(self, client):
        response = client.options(
            "/api/quiz-results",
            headers={
                "Origin": "https://evil.example",
                "Access-Control-Request-Method": "POST",
            },
        )
        assert response.status_code == 403
        assert response.json() == CORS_REJECTION

    def test_development_allows_any_origin(self, make_app):
        app = make_app(environment="development")
        with TestClient(app) as client:
            response = client.get("/health", headers={"Origin": "https://evil.example"})
        assert response.status_code == 200
        assert response.headers["access-control-allow-origin"] == "https://evil.example"

    def test_production_rejects_foreign_origin(self, make_app):
        app = make_app(environment="production")
        with TestClient(app) as client:
            response = client.get("/api", headers={"Origin": "https://evil.example"})
            no_origin = client.get("/api")
        assert response.status_code == 403
        assert response.json() == CORS_REJECTION
        assert no_origin.status_code == 200
