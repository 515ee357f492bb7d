"""Custom exceptions for the MindBridge backend."""

from typing import Any, Dict, Mapping, Optional, Sequence


class MindBridgeException(Exception):
    """Base class for application exceptions with HTTP status code.

    Subclasses define ``status_code`` and ``error`` so both the gate
    middleware and the app-level exception handler render the same
    ``{error, message}`` body.
    """
    status_code: int = 500
    error: str = "Internal Server Error"

    def __init__(
        self,
        message: str = "Internal server error",
        headers: Optional[Dict[str, str]] = None,
    ):
        self.message = message
        self.headers = headers or {}
        super().__init__(message)

    def to_response(self) -> Dict[str, Any]:
        return {"error": self.error, "message": self.message}


class InputRejectedError(MindBridgeException):
    """Raised when a request parameter matches a suspicious pattern.

    Maps to HTTP 400 Bad Request. The message stays generic so the matched
    pattern is not disclosed to the caller.
    """
    status_code = 400
    error = "Bad Request"

    def __init__(self, message: str = "Invalid request parameters"):
        super().__init__(message)


class RateLimitedError(MindBridgeException):
    """Raised when a client key has used up its window.

    Maps to HTTP 429 Too Many Requests. ``retry_after`` is in whole seconds.
    """
    status_code = 429
    error = "Too Many Requests"

    def __init__(
        self,
        retry_after: int,
        limit: int,
        reset_at: int,
        message: str = "Rate limit exceeded. Please try again later.",
    ):
        self.retry_after = retry_after
        self.limit = limit
        self.reset_at = reset_at
        super().__init__(
            message,
            headers={
                "Retry-After": str(retry_after),
                "X-RateLimit-Limit": str(limit),
                "X-RateLimit-Remaining": "0",
                "X-RateLimit-Reset": str(reset_at),
            },
        )

    def to_response(self) -> Dict[str, Any]:
        body = super().to_response()
        body["retryAfter"] = self.retry_after
        return body


class AuthenticationError(MindBridgeException):
    """Raised when the auth token is missing, malformed or expired.

    Maps to HTTP 401 Unauthorized.
    """
    status_code = 401
    error = "Unauthorized"

    def __init__(self, message: str = "Authentication required"):
        super().__init__(message)


class AuthorizationError(MindBridgeException):
    """Raised when a valid token lacks the role a route requires.

    Maps to HTTP 403 Forbidden.
    """
    status_code = 403
    error = "Forbidden"

    def __init__(self, message: str = "Admin access required"):
        super().__init__(message)


def validation_error_content(errors: Sequence[Mapping[str, Any]]) -> Dict[str, Any]:
    """Render pydantic validation errors as a ``Validation Failed`` body."""
    return {
        "error": "Validation Failed",
        "message": "Invalid input data",
        "details": [
            {
                "field": ".".join(str(p) for p in err.get("loc", ()) if p != "body"),
                "message": err.get("msg", ""),
            }
            for err in errors
        ],
    }
