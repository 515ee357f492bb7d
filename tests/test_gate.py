"""Tests for the request gate and its middleware."""

from datetime import datetime, timedelta, timezone

import pytest
from fastapi import FastAPI, Request
from fastapi.testclient import TestClient

from mindbridge.app.core.config import Settings
from mindbridge.app.core.security import AuthToken, create_access_token
from mindbridge.app.middleware.gate import (
    Gate,
    GateMiddleware,
    GateReason,
    RouteRule,
    RouteTable,
    default_route_table,
    extract_token,
    get_client_ip,
    is_api_path,
)
from mindbridge.app.middleware.rate_limit import (
    FixedWindowLimiter,
    InMemoryWindowStore,
    LimitPolicy,
)

EXPIRES = datetime.now(timezone.utc) + timedelta(hours=1)
TOKENS = {
    "admin-token": AuthToken(subject_id="a1", role="admin", expires_at=EXPIRES),
    "user-token": AuthToken(subject_id="u1", role="user", expires_at=EXPIRES),
}


def fake_verify(raw: str):
    return TOKENS.get(raw)


class FakeClock:
    def __init__(self, now: int = 1_000_000):
        self.now = now

    def __call__(self) -> int:
        return self.now


def make_app(gate: Gate) -> FastAPI:
    app = FastAPI()
    app.add_middleware(GateMiddleware, gate=gate)

    @app.get("/api/admin")
    async def admin(request: Request):
        return {"subject": request.state.auth_token.subject_id}

    @app.get("/api/users/profile")
    async def profile(request: Request):
        return {"subject": request.state.auth_token.subject_id}

    @app.get("/api/therapists")
    async def therapists():
        return {"therapists": []}

    @app.post("/api/auth/register")
    async def register():
        return {"ok": True}

    @app.get("/api/chatbot/greeting")
    async def greeting(request: Request):
        token = request.state.auth_token
        return {"subject": token.subject_id if token else None}

    @app.get("/dashboard")
    async def dashboard():
        return {"page": "dashboard"}

    @app.get("/dashboard/admin")
    async def admin_dashboard():
        return {"page": "admin"}

    @app.get("/")
    async def home():
        return {"page": "home"}

    return app


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store():
    return InMemoryWindowStore()


@pytest.fixture
def gate(store, clock):
    return Gate(
        limiter=FixedWindowLimiter(store, clock=clock),
        routes=default_route_table(Settings()),
        verify_token=fake_verify,
    )


@pytest.fixture
def client(gate):
    return TestClient(make_app(gate))


class TestRouteTable:

    def test_longest_prefix_wins(self):
        table = default_route_table(Settings())
        assert table.match("/api/admin").name == "admin"
        assert table.match("/api/admin/stats").name == "admin"
        assert table.match("/api/auth/register").name == "register"
        assert table.match("/api/auth/login").name == "api"
        assert table.match("/dashboard/admin").name == "admin-dashboard"
        assert table.match("/dashboard/sessions").name == "dashboard"
        assert table.match("/") is None

    def test_prefix_does_not_match_sibling_paths(self):
        rule = RouteRule(name="admin", prefix="/api/admin")
        assert rule.matches("/api/admin") is True
        assert rule.matches("/api/admin/x") is True
        assert rule.matches("/api/administrators") is False

    def test_fallback_uses_settings(self):
        config = Settings(rate_limit_requests_per_window=7, rate_limit_window_ms=5000)
        rule = default_route_table(config).match("/api/chatbot/messages")
        assert rule.policy.limit == 7
        assert rule.policy.window_ms == 5000

    def test_custom_table(self):
        table = RouteTable([RouteRule(name="all", prefix="/")])
        assert table.match("/anything").name == "all"


class TestHelpers:

    def _request(self, headers=None, client=("10.0.0.1", 1234)):
        scope = {
            "type": "http",
            "method": "GET",
            "path": "/",
            "headers": [(k.lower().encode(), v.encode()) for k, v in (headers or {}).items()],
            "client": client,
            "query_string": b"",
        }
        return Request(scope)

    def test_client_ip_prefers_first_forwarded_for(self):
        request = self._request({"X-Forwarded-For": "203.0.113.5, 10.0.0.2"})
        assert get_client_ip(request) == "203.0.113.5"

    def test_client_ip_falls_back_to_real_ip(self):
        request = self._request({"X-Real-IP": "198.51.100.7"})
        assert get_client_ip(request) == "198.51.100.7"

    def test_client_ip_falls_back_to_socket(self):
        assert get_client_ip(self._request()) == "10.0.0.1"

    def test_client_ip_unknown(self):
        assert get_client_ip(self._request(client=None)) == "unknown"

    def test_extract_bearer_token(self):
        request = self._request({"Authorization": "Bearer abc"})
        assert extract_token(request, "session") == "abc"

    def test_extract_cookie_token(self):
        request = self._request({"Cookie": "session=xyz"})
        assert extract_token(request, "session") == "xyz"

    def test_extract_missing_token(self):
        assert extract_token(self._request(), "session") is None

    def test_is_api_path(self):
        assert is_api_path("/api/health") is True
        assert is_api_path("/dashboard") is False


class TestScreening:

    def test_sql_injection_rejected(self, client):
        response = client.get("/api/therapists", params={"search": "'; DROP TABLE users; --"})
        assert response.status_code == 400
        assert response.json() == {
            "error": "Bad Request",
            "message": "Invalid request parameters",
        }

    def test_ordinary_text_passes(self, client):
        response = client.get("/api/therapists", params={"search": "I feel anxious"})
        assert response.status_code == 200

    def test_screening_runs_before_rate_limit(self, client, store):
        client.get("/api/therapists", params={"q": "<script>"})
        assert len(store) == 0

    def test_screening_applies_to_pages(self, client):
        response = client.get("/", params={"next": "../../etc/passwd"})
        assert response.status_code == 400


class TestRateLimit:

    def test_headers_on_allowed_response(self, client, clock):
        response = client.get("/api/therapists")
        assert response.status_code == 200
        assert response.headers["X-RateLimit-Limit"] == "200"
        assert response.headers["X-RateLimit-Remaining"] == "199"
        assert response.headers["X-RateLimit-Reset"] == str(clock.now + 60_000)

    def test_registration_limited_to_three(self, client, clock):
        for _ in range(3):
            assert client.post("/api/auth/register").status_code == 200

        response = client.post("/api/auth/register")
        assert response.status_code == 429
        body = response.json()
        assert body["error"] == "Too Many Requests"
        assert body["message"] == "Too many registration attempts. Please try again later."
        assert body["retryAfter"] == 3600
        assert response.headers["Retry-After"] == "3600"
        assert response.headers["X-RateLimit-Limit"] == "3"
        assert response.headers["X-RateLimit-Remaining"] == "0"
        assert response.headers["X-RateLimit-Reset"] == str(clock.now + 3_600_000)

    def test_window_expiry_allows_again(self, client, clock):
        for _ in range(3):
            client.post("/api/auth/register")
        assert client.post("/api/auth/register").status_code == 429

        clock.now += 3_600_000
        assert client.post("/api/auth/register").status_code == 200

    def test_clients_limited_separately(self, client):
        for _ in range(3):
            client.post("/api/auth/register", headers={"X-Forwarded-For": "1.1.1.1"})
        blocked = client.post("/api/auth/register", headers={"X-Forwarded-For": "1.1.1.1"})
        other = client.post("/api/auth/register", headers={"X-Forwarded-For": "2.2.2.2"})
        assert blocked.status_code == 429
        assert other.status_code == 200

    def test_routes_limited_separately(self, client):
        for _ in range(3):
            client.post("/api/auth/register")
        assert client.post("/api/auth/register").status_code == 429
        assert client.get("/api/therapists").status_code == 200

    def test_unprotected_page_has_no_rate_headers(self, client):
        response = client.get("/")
        assert response.status_code == 200
        assert "X-RateLimit-Limit" not in response.headers

    def test_rate_limit_before_auth(self, store, clock):
        gate = Gate(
            limiter=FixedWindowLimiter(store, clock=clock),
            routes=RouteTable([
                RouteRule(
                    name="admin",
                    prefix="/api/admin",
                    policy=LimitPolicy(limit=1, window_ms=60_000, message="Admin rate limit exceeded"),
                    protected=True,
                    admin=True,
                ),
            ]),
            verify_token=fake_verify,
        )
        client = TestClient(make_app(gate))
        assert client.get("/api/admin").status_code == 401
        response = client.get("/api/admin")
        assert response.status_code == 429
        assert response.json()["message"] == "Admin rate limit exceeded"

    def test_disabled_rate_limit(self, store, clock):
        gate = Gate(
            limiter=FixedWindowLimiter(store, clock=clock),
            verify_token=fake_verify,
            rate_limit_enabled=False,
        )
        client = TestClient(make_app(gate))
        for _ in range(5):
            assert client.post("/api/auth/register").status_code == 200
        assert len(store) == 0

    def test_development_relaxes_limits(self, store, clock):
        gate = Gate(
            limiter=FixedWindowLimiter(store, clock=clock),
            verify_token=fake_verify,
            environment="development",
        )
        client = TestClient(make_app(gate))
        for _ in range(10):
            assert client.post("/api/auth/register").status_code == 200


class BrokenLimiter(FixedWindowLimiter):
    def decide(self, key, policy):
        raise RuntimeError("store unavailable")


class TestLimiterFailure:

    def test_fail_open_by_default(self, store):
        gate = Gate(limiter=BrokenLimiter(store), verify_token=fake_verify)
        client = TestClient(make_app(gate))
        response = client.get("/api/therapists")
        assert response.status_code == 200
        assert "X-RateLimit-Limit" not in response.headers

    def test_fail_closed(self, store):
        gate = Gate(limiter=BrokenLimiter(store), verify_token=fake_verify, fail_closed=True)
        client = TestClient(make_app(gate))
        response = client.get("/api/therapists")
        assert response.status_code == 429
        assert response.json()["retryAfter"] == 60


class TestAuth:

    def test_admin_api_without_token(self, client):
        response = client.get("/api/admin")
        assert response.status_code == 401
        assert response.json() == {
            "error": "Unauthorized",
            "message": "Authentication required",
        }

    def test_admin_api_with_user_token(self, client):
        response = client.get("/api/admin", headers={"Authorization": "Bearer user-token"})
        assert response.status_code == 403
        assert response.json() == {
            "error": "Forbidden",
            "message": "Admin access required",
        }

    def test_admin_api_with_admin_token(self, client):
        response = client.get("/api/admin", headers={"Authorization": "Bearer admin-token"})
        assert response.status_code == 200
        assert response.json() == {"subject": "a1"}

    def test_invalid_token_rejected(self, client):
        response = client.get("/api/users/profile", headers={"Authorization": "Bearer forged"})
        assert response.status_code == 401

    def test_profile_with_user_token(self, client):
        response = client.get("/api/users/profile", headers={"Authorization": "Bearer user-token"})
        assert response.status_code == 200
        assert response.json() == {"subject": "u1"}

    def test_session_cookie_accepted(self, client):
        client.cookies.set("mindbridge_session", "user-token")
        response = client.get("/api/users/profile")
        assert response.status_code == 200

    def test_dashboard_redirects_to_login(self, client):
        response = client.get("/dashboard", follow_redirects=False)
        assert response.status_code == 307
        assert response.headers["location"] == "/login"

    def test_admin_dashboard_redirects_non_admin(self, client):
        response = client.get(
            "/dashboard/admin",
            headers={"Authorization": "Bearer user-token"},
            follow_redirects=False,
        )
        assert response.status_code == 307
        assert response.headers["location"] == "/dashboard"

    def test_admin_dashboard_for_admin(self, client):
        response = client.get("/dashboard/admin", headers={"Authorization": "Bearer admin-token"})
        assert response.status_code == 200

    def test_public_route_exposes_optional_token(self, client):
        anonymous = client.get("/api/chatbot/greeting")
        assert anonymous.json() == {"subject": None}

        signed_in = client.get("/api/chatbot/greeting", headers={"Authorization": "Bearer user-token"})
        assert signed_in.json() == {"subject": "u1"}

    def test_verifier_errors_treated_as_invalid(self, store):
        def exploding(raw):
            raise RuntimeError("key server down")

        gate = Gate(limiter=FixedWindowLimiter(store), verify_token=exploding)
        client = TestClient(make_app(gate))
        response = client.get("/api/admin", headers={"Authorization": "Bearer admin-token"})
        assert response.status_code == 401

    def test_real_jwt_verifier(self, store):
        gate = Gate(limiter=FixedWindowLimiter(store))
        client = TestClient(make_app(gate))
        token = create_access_token("admin-1", "admin")
        response = client.get("/api/admin", headers={"Authorization": f"Bearer {token}"})
        assert response.status_code == 200
        assert response.json() == {"subject": "admin-1"}


class TestEvaluate:

    def _request(self, path, query=b"", headers=None):
        return Request({
            "type": "http",
            "method": "GET",
            "path": path,
            "headers": [(k.lower().encode(), v.encode()) for k, v in (headers or {}).items()],
            "client": ("10.0.0.1", 1234),
            "query_string": query,
        })

    def test_first_rejection_wins(self, gate, store):
        decision = gate.evaluate(self._request("/api/admin", query=b"q=%3Cscript%3E"))
        assert decision.allowed is False
        assert decision.reason == GateReason.INPUT_REJECTED
        assert len(store) == 0

    def test_allowed_decision_carries_rate_and_token(self, gate):
        decision = gate.evaluate(
            self._request("/api/admin", headers={"Authorization": "Bearer admin-token"})
        )
        assert decision.allowed is True
        assert decision.rate.limit == 20
        assert decision.rate.remaining == 19
        assert decision.token.subject_id == "a1"

    def test_rate_key_namespaced_by_rule(self, gate, store):
        gate.evaluate(self._request("/api/therapists"))
        assert "therapists:10.0.0.1" in store
