"""Middleware package for the MindBridge backend."""

from mindbridge.app.middleware.auth import require_admin, require_user
from mindbridge.app.middleware.gate import Gate, GateMiddleware, default_route_table
from mindbridge.app.middleware.request_id import RequestIdMiddleware, get_request_id
from mindbridge.app.middleware.security_headers import SecurityHeadersMiddleware

__all__ = [
    "require_admin",
    "require_user",
    "Gate",
    "GateMiddleware",
    "default_route_table",
    "RequestIdMiddleware",
    "get_request_id",
    "SecurityHeadersMiddleware",
]
