"""FastAPI auth dependencies for route handlers.

The gate middleware verifies tokens before a handler runs and leaves the
claims on ``request.state.auth_token``. These dependencies read them back,
verifying the request themselves when a router is mounted without the gate
(e.g. in tests).
"""

from typing import Annotated, Optional

from fastapi import Depends, Request

from mindbridge.app.core.config import settings
from mindbridge.app.core.security import AuthToken, decode_access_token
from mindbridge.app.exceptions import AuthenticationError, AuthorizationError
from mindbridge.app.middleware.gate import extract_token


def get_auth_token(request: Request) -> Optional[AuthToken]:
    """Return the verified claims for this request, if any."""
    token = getattr(request.state, "auth_token", None)
    if token is not None:
        return token

    raw = extract_token(request, settings.session_cookie_name)
    if not raw:
        return None
    return decode_access_token(raw)


def require_user(request: Request) -> AuthToken:
    """Require any authenticated user.

    Raises:
        AuthenticationError: 401 if the token is missing or invalid
    """
    token = get_auth_token(request)
    if token is None:
        raise AuthenticationError()
    return token


def require_admin(request: Request) -> AuthToken:
    """Require an authenticated admin.

    Raises:
        AuthenticationError: 401 if the token is missing or invalid
        AuthorizationError: 403 if the token's role is not ``admin``
    """
    token = require_user(request)
    if not token.is_admin:
        raise AuthorizationError()
    return token


CurrentUser = Annotated[AuthToken, Depends(require_user)]
CurrentAdmin = Annotated[AuthToken, Depends(require_admin)]
