"""Request IDs and access logging.

Every response carries ``X-Request-ID`` (the caller's value when supplied,
else a new UUID) and one access log record is written per request with the
status code and duration, so gate rejections can be correlated with the
warning the gate logs for them.
"""

import time
import uuid

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from mindbridge.app.core.logging import get_log_context, get_logger

logger = get_logger("mindbridge.access")

MAX_REQUEST_ID_LENGTH = 128


class RequestIdMiddleware(BaseHTTPMiddleware):
    """Tags each request with an ID and logs its outcome."""

    def __init__(self, app, header_name: str = "X-Request-ID"):
        super().__init__(app)
        self.header_name = header_name

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint
    ) -> Response:
        request_id = request.headers.get(self.header_name, "").strip()
        if not request_id or len(request_id) > MAX_REQUEST_ID_LENGTH:
            request_id = str(uuid.uuid4())
        request.state.request_id = request_id

        started = time.perf_counter()
        response = await call_next(request)
        response.headers[self.header_name] = request_id

        logger.info(
            f"{request.method} {request.url.path} {response.status_code}",
            extra=get_log_context(
                request_id=request_id,
                method=request.method,
                path=request.url.path,
                status_code=response.status_code,
                duration_ms=round((time.perf_counter() - started) * 1000, 2),
            ),
        )
        return response


def get_request_id(request: Request) -> str:
    """Request ID assigned by the middleware, or ``"unknown"``."""
    return getattr(request.state, "request_id", "unknown")
