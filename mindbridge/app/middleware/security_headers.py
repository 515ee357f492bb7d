"""Security headers added to every response."""

from typing import Dict, Optional

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

CONTENT_SECURITY_POLICY = (
    "default-src 'self'; "
    "script-src 'self' 'unsafe-eval' 'unsafe-inline' https://js.stripe.com; "
    "style-src 'self' 'unsafe-inline' https://fonts.googleapis.com; "
    "font-src 'self' https://fonts.gstatic.com; "
    "img-src 'self' data: https:; "
    "connect-src 'self' https://api.openai.com https://api.stripe.com; "
    "frame-src 'self' https://js.stripe.com; "
    "object-src 'none'; "
    "base-uri 'self';"
)

DEFAULT_SECURITY_HEADERS: Dict[str, str] = {
    "X-Frame-Options": "DENY",
    "X-Content-Type-Options": "nosniff",
    "X-XSS-Protection": "1; mode=block",
    "Referrer-Policy": "strict-origin-when-cross-origin",
    "Permissions-Policy": "camera=self, microphone=self, geolocation=self",
    "Content-Security-Policy": CONTENT_SECURITY_POLICY,
}

# Headers that advertise the server stack
STRIPPED_HEADERS = ("x-powered-by", "server")


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Adds browser hardening headers to all responses.

    Registered outside the gate so rejections (400/401/403/429) carry the
    headers too.
    """

    def __init__(self, app, headers: Optional[Dict[str, str]] = None):
        super().__init__(app)
        self.headers = headers or DEFAULT_SECURITY_HEADERS

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint
    ) -> Response:
        response = await call_next(request)

        for name in STRIPPED_HEADERS:
            if name in response.headers:
                del response.headers[name]

        for name, value in self.headers.items():
            response.headers[name] = value

        return response
