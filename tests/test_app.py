"""End-to-end tests for the assembled application."""

from fastapi.testclient import TestClient

from mindbridge.app.core.config import settings
from mindbridge.app.db import async_session
from mindbridge.app.main import create_app
from mindbridge.app.middleware.rate_limit import InMemoryWindowStore


def _sqlite_url(path) -> str:
    return f"sqlite+aiosqlite:////{str(path).lstrip('/')}"


class TestMiddlewareStack:

    def test_rejections_carry_security_headers_and_request_id(self, client):
        resp = client.get("/api/therapists", params={"search": "'; DROP TABLE users; --"})
        assert resp.status_code == 400
        assert resp.headers["X-Frame-Options"] == "DENY"
        assert "X-Request-ID" in resp.headers

    def test_allowed_response_headers(self, client):
        resp = client.get("/api/therapists", params={"search": "anxiety"})
        assert resp.status_code == 200
        assert resp.headers["X-RateLimit-Limit"] == "200"
        assert resp.headers["Content-Security-Policy"].startswith("default-src 'self'")
        assert resp.headers["Cache-Control"] == "public, max-age=300"

    def test_dashboard_redirects_anonymous_to_login(self, client):
        resp = client.get("/dashboard", follow_redirects=False)
        assert resp.status_code == 307
        assert resp.headers["location"] == "/login"

    def test_login_page_is_public(self, client):
        resp = client.get("/login")
        assert resp.status_code == 200
        assert "Sign in" in resp.text

    def test_admin_dashboard_redirects_user(self, client, auth_headers):
        resp = client.get(
            "/dashboard/admin",
            headers=auth_headers("u1", "user"),
            follow_redirects=False,
        )
        assert resp.status_code == 307
        assert resp.headers["location"] == "/dashboard"

    def test_admin_dashboard_for_admin(self, client, auth_headers):
        resp = client.get("/dashboard/admin", headers=auth_headers("a1", "admin"))
        assert resp.status_code == 200

    def test_store_shared_with_app_state(self, app, window_store, client):
        client.get("/api/chatbot/greeting")
        assert app.state.window_store is window_store
        assert "api:testclient" in window_store

    def test_validation_errors_are_400(self, client):
        resp = client.post("/api/chatbot/messages", json={})
        assert resp.status_code == 400
        assert resp.json()["error"] == "Validation Failed"


def test_lifespan_bootstraps_admin_and_sweeper(tmp_path, monkeypatch) -> None:
    monkeypatch.setattr(settings, "database_url", _sqlite_url(tmp_path / "lifespan.db"))
    monkeypatch.setattr(settings, "admin_email", "Admin@MindBridge.ng")
    monkeypatch.setattr(settings, "admin_password", "Adm1n!Pass")
    monkeypatch.setattr(settings, "environment", "test")
    async_session.get_async_engine.cache_clear()
    monkeypatch.setattr(async_session, "_session_maker", None)

    app = create_app(store=InMemoryWindowStore())
    with TestClient(app) as client:
        assert app.state.sweeper.running is True

        resp = client.post(
            "/api/auth/login",
            json={"email": "admin@mindbridge.ng", "password": "Adm1n!Pass"},
        )
        assert resp.status_code == 200, resp.text
        token = resp.json()["access_token"]

        stats = client.get(
            "/api/admin?action=system_stats",
            headers={"Authorization": f"Bearer {token}"},
        )
        assert stats.status_code == 200
        assert stats.json()["stats"]["totalUsers"] == 1

    assert app.state.sweeper.running is False
