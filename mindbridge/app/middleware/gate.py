"""Request gate applied in front of every route.

The gate runs three checks in a fixed order and stops at the first
rejection:

1. input screening of query parameters (400)
2. fixed-window rate limiting per client key (429)
3. token and role checks for protected routes (401 / 403, or a redirect
   for page routes)

Each check is a plain function of a ``GateContext`` returning a
``GateDecision``; ``Gate.evaluate`` is the only driver. Requests that pass
are forwarded unchanged and get ``X-RateLimit-*`` headers on the way out.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, List, Optional, Sequence

from fastapi import Request, Response
from fastapi.responses import JSONResponse, RedirectResponse
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from mindbridge.app.core.config import Settings, settings as default_settings
from mindbridge.app.core.logging import get_log_context, get_logger
from mindbridge.app.core.security import AuthToken, decode_access_token
from mindbridge.app.exceptions import (
    AuthenticationError,
    AuthorizationError,
    InputRejectedError,
    MindBridgeException,
    RateLimitedError,
)
from mindbridge.app.middleware.rate_limit import (
    FixedWindowLimiter,
    LimitPolicy,
    RateLimitResult,
    now_ms,
    retry_after_seconds,
)
from mindbridge.app.middleware.screening import find_suspicious_value

logger = get_logger(__name__)

TokenVerifier = Callable[[str], Optional[AuthToken]]

LOGIN_PATH = "/login"
DASHBOARD_PATH = "/dashboard"


class GateReason(str, Enum):
    INPUT_REJECTED = "input_rejected"
    RATE_LIMITED = "rate_limited"
    UNAUTHENTICATED = "unauthenticated"
    UNAUTHORIZED = "unauthorized"


@dataclass(frozen=True)
class RouteRule:
    """Gate configuration for every path under ``prefix``.

    A prefix ending in ``/`` matches anything below it; otherwise it matches
    the exact path and its sub-paths.
    """
    name: str
    prefix: str
    policy: Optional[LimitPolicy] = None
    protected: bool = False
    admin: bool = False

    def matches(self, path: str) -> bool:
        if self.prefix.endswith("/"):
            return path.startswith(self.prefix)
        return path == self.prefix or path.startswith(self.prefix + "/")


class RouteTable:
    """Resolves a path to the most specific ``RouteRule``."""

    def __init__(self, rules: Sequence[RouteRule]):
        # Longest prefix first so /api/admin wins over /api/
        self._rules = sorted(rules, key=lambda r: len(r.prefix), reverse=True)

    def match(self, path: str) -> Optional[RouteRule]:
        for rule in self._rules:
            if rule.matches(path):
                return rule
        return None

    def __iter__(self):
        return iter(self._rules)


def default_route_table(config: Settings = default_settings) -> RouteTable:
    """Route rules for the MindBridge API and dashboard pages."""
    return RouteTable([
        RouteRule(
            name="register",
            prefix="/api/auth/register",
            policy=LimitPolicy(
                limit=3,
                window_ms=60 * 60 * 1000,
                message="Too many registration attempts. Please try again later.",
            ),
        ),
        RouteRule(
            name="therapists",
            prefix="/api/therapists",
            policy=LimitPolicy(
                limit=200,
                window_ms=60_000,
                message="Too many therapist search requests",
            ),
        ),
        RouteRule(
            name="health",
            prefix="/api/health",
            policy=LimitPolicy(limit=50, window_ms=60_000, message="Rate limit exceeded"),
        ),
        RouteRule(
            name="admin",
            prefix="/api/admin",
            policy=LimitPolicy(limit=20, window_ms=60_000, message="Admin rate limit exceeded"),
            protected=True,
            admin=True,
        ),
        RouteRule(
            name="profile",
            prefix="/api/users/profile",
            policy=LimitPolicy(limit=50, window_ms=60_000, message="Rate limit exceeded"),
            protected=True,
        ),
        RouteRule(
            name="api",
            prefix="/api/",
            policy=LimitPolicy(
                limit=config.rate_limit_requests_per_window,
                window_ms=config.rate_limit_window_ms,
                message=config.rate_limit_message,
            ),
        ),
        RouteRule(name="admin-dashboard", prefix="/dashboard/admin", protected=True, admin=True),
        RouteRule(name="dashboard", prefix=DASHBOARD_PATH, protected=True),
    ])


def get_client_ip(request: Request) -> str:
    """Resolve the client address used as the rate limit key.

    Prefers the first hop of ``X-Forwarded-For``, then ``X-Real-IP`` and
    ``CF-Connecting-IP``, then the direct peer, else ``"unknown"``.
    """
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first

    for header in ("x-real-ip", "cf-connecting-ip"):
        value = request.headers.get(header, "").strip()
        if value:
            return value

    if request.client and request.client.host:
        return request.client.host

    return "unknown"


def extract_token(request: Request, cookie_name: str) -> Optional[str]:
    """Get the raw token from the Bearer header or the session cookie."""
    auth = request.headers.get("Authorization", "")
    if auth.startswith("Bearer "):
        token = auth[len("Bearer "):].strip()
        if token:
            return token
    return request.cookies.get(cookie_name) or None


def is_api_path(path: str) -> bool:
    return path.startswith("/api/")


@dataclass
class GateContext:
    """Per-request inputs shared by the gate checks."""
    request: Request
    path: str
    client_ip: str
    rule: Optional[RouteRule]

    @property
    def is_api(self) -> bool:
        return is_api_path(self.path)


@dataclass
class GateDecision:
    """Outcome of one gate check, or of the whole gate."""
    allowed: bool
    reason: Optional[GateReason] = None
    rejection: Optional[MindBridgeException] = None
    redirect_to: Optional[str] = None
    rate: Optional[RateLimitResult] = None
    token: Optional[AuthToken] = None

    @classmethod
    def allow(
        cls,
        rate: Optional[RateLimitResult] = None,
        token: Optional[AuthToken] = None,
    ) -> "GateDecision":
        return cls(allowed=True, rate=rate, token=token)

    @classmethod
    def deny(
        cls,
        reason: GateReason,
        rejection: MindBridgeException,
        redirect_to: Optional[str] = None,
    ) -> "GateDecision":
        return cls(allowed=False, reason=reason, rejection=rejection, redirect_to=redirect_to)


@dataclass
class Gate:
    """Composes screening, rate limiting and auth into one decision.

    Args:
        limiter: Limiter backed by the (injected) window store
        routes: Route table deciding policy and protection per path
        verify_token: Returns verified claims or None for a raw token
        rate_limit_enabled: When False the rate check always passes
        fail_closed: Reject (429) instead of allowing when the limiter errors
        environment: Policies are relaxed in ``development``
        cookie_name: Session cookie consulted when there is no Bearer header
    """
    limiter: FixedWindowLimiter
    routes: RouteTable = field(default_factory=default_route_table)
    verify_token: TokenVerifier = decode_access_token
    rate_limit_enabled: bool = True
    fail_closed: bool = False
    environment: str = "production"
    cookie_name: str = "mindbridge_session"

    @classmethod
    def from_settings(
        cls,
        limiter: FixedWindowLimiter,
        config: Settings = default_settings,
        routes: Optional[RouteTable] = None,
        verify_token: TokenVerifier = decode_access_token,
    ) -> "Gate":
        return cls(
            limiter=limiter,
            routes=routes or default_route_table(config),
            verify_token=verify_token,
            rate_limit_enabled=config.rate_limit_enabled,
            fail_closed=config.rate_limit_fail_closed,
            environment=config.environment,
            cookie_name=config.session_cookie_name,
        )

    def context_for(self, request: Request) -> GateContext:
        path = request.url.path
        return GateContext(
            request=request,
            path=path,
            client_ip=get_client_ip(request),
            rule=self.routes.match(path),
        )

    def screen_input(self, ctx: GateContext) -> GateDecision:
        param = find_suspicious_value(ctx.request.query_params.multi_items())
        if param is not None:
            return GateDecision.deny(GateReason.INPUT_REJECTED, InputRejectedError())
        return GateDecision.allow()

    def check_rate_limit(self, ctx: GateContext) -> GateDecision:
        if not self.rate_limit_enabled or ctx.rule is None or ctx.rule.policy is None:
            return GateDecision.allow()

        policy = ctx.rule.policy.for_environment(self.environment)
        key = f"{ctx.rule.name}:{ctx.client_ip}"
        try:
            result = self.limiter.decide(key, policy)
        except Exception:
            logger.exception(
                "Rate limiter failed",
                extra=get_log_context(client_ip=ctx.client_ip, path=ctx.path),
            )
            if not self.fail_closed:
                return GateDecision.allow()
            return GateDecision.deny(
                GateReason.RATE_LIMITED,
                RateLimitedError(
                    retry_after=retry_after_seconds(policy.window_ms, 0),
                    limit=policy.limit,
                    reset_at=now_ms() + policy.window_ms,
                    message=policy.message,
                ),
            )

        if not result.allowed:
            return GateDecision.deny(
                GateReason.RATE_LIMITED,
                RateLimitedError(
                    retry_after=result.retry_after or 0,
                    limit=result.limit,
                    reset_at=result.reset_at,
                    message=policy.message,
                ),
            )
        return GateDecision.allow(rate=result)

    def check_auth(self, ctx: GateContext) -> GateDecision:
        raw = extract_token(ctx.request, self.cookie_name)
        token: Optional[AuthToken] = None
        if raw:
            try:
                token = self.verify_token(raw)
            except Exception:
                # Verifier failures are treated as an invalid token.
                logger.exception(
                    "Token verification failed",
                    extra=get_log_context(client_ip=ctx.client_ip, path=ctx.path),
                )
                token = None

        if ctx.rule is None or not ctx.rule.protected:
            return GateDecision.allow(token=token)

        if token is None:
            return GateDecision.deny(
                GateReason.UNAUTHENTICATED,
                AuthenticationError(),
                redirect_to=None if ctx.is_api else LOGIN_PATH,
            )

        if ctx.rule.admin and not token.is_admin:
            return GateDecision.deny(
                GateReason.UNAUTHORIZED,
                AuthorizationError(),
                redirect_to=None if ctx.is_api else DASHBOARD_PATH,
            )

        return GateDecision.allow(token=token)

    def evaluate(self, request: Request) -> GateDecision:
        """Run every check in order; the first rejection wins."""
        ctx = self.context_for(request)
        checks: List[Callable[[GateContext], GateDecision]] = [
            self.screen_input,
            self.check_rate_limit,
            self.check_auth,
        ]

        passed = GateDecision.allow()
        for check in checks:
            decision = check(ctx)
            if not decision.allowed:
                logger.warning(
                    f"Request rejected by gate: {decision.reason.value}",
                    extra=get_log_context(
                        client_ip=ctx.client_ip,
                        path=ctx.path,
                        method=request.method,
                        gate_reason=decision.reason.value,
                    ),
                )
                return decision
            passed.rate = decision.rate or passed.rate
            passed.token = decision.token or passed.token
        return passed


class GateMiddleware(BaseHTTPMiddleware):
    """Middleware running the ``Gate`` in front of every route.

    Verified token claims are stored in ``request.state.auth_token`` for the
    route handlers.
    """

    def __init__(self, app, gate: Gate):
        super().__init__(app)
        self.gate = gate

    def _reject(self, decision: GateDecision) -> Response:
        if decision.redirect_to:
            return RedirectResponse(url=decision.redirect_to, status_code=307)
        exc = decision.rejection or InputRejectedError()
        return JSONResponse(
            status_code=exc.status_code,
            content=exc.to_response(),
            headers=exc.headers,
        )

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint
    ) -> Response:
        decision = self.gate.evaluate(request)
        if not decision.allowed:
            return self._reject(decision)

        request.state.auth_token = decision.token
        response = await call_next(request)

        if decision.rate is not None:
            response.headers["X-RateLimit-Limit"] = str(decision.rate.limit)
            response.headers["X-RateLimit-Remaining"] = str(decision.rate.remaining)
            response.headers["X-RateLimit-Reset"] = str(decision.rate.reset_at)

        return response
