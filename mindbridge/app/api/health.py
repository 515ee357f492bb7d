"""Health check endpoint.

The database probe is bounded by ``health_db_timeout_seconds`` and the
whole report is cached for ``health_cache_seconds`` so monitoring traffic
does not hit the database on every poll.
"""

import asyncio
import time
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Tuple

from fastapi import APIRouter, Request, status
from fastapi.responses import JSONResponse
from sqlalchemy import text

from mindbridge.app.core.config import settings
from mindbridge.app.core.logging import get_logger
from mindbridge.app.db.async_session import get_async_engine

logger = get_logger(__name__)

router = APIRouter(prefix="/api/health", tags=["health"])

_STARTED_AT = time.monotonic()


class HealthCache:
    """Last health report and its status code, valid for ``ttl`` seconds."""

    def __init__(self) -> None:
        self._entry: Optional[Tuple[float, Dict[str, Any], int]] = None

    def get(self, ttl: float) -> Optional[Tuple[Dict[str, Any], int]]:
        if self._entry is None:
            return None
        stored_at, report, status_code = self._entry
        if time.monotonic() - stored_at >= ttl:
            return None
        return report, status_code

    def put(self, report: Dict[str, Any], status_code: int) -> None:
        self._entry = (time.monotonic(), report, status_code)

    def clear(self) -> None:
        self._entry = None


def get_health_cache(request: Request) -> HealthCache:
    """Per-application report cache, created on first use."""
    cache = getattr(request.app.state, "health_cache", None)
    if cache is None:
        cache = HealthCache()
        request.app.state.health_cache = cache
    return cache


async def check_database() -> None:
    """Run ``SELECT 1``; raises on any connection failure."""
    engine = get_async_engine()
    async with engine.connect() as conn:
        await conn.execute(text("SELECT 1"))


@router.get("")
async def health(request: Request) -> JSONResponse:
    """Report service health; 503 when the database is unreachable."""
    health_cache = get_health_cache(request)
    cached = health_cache.get(settings.health_cache_seconds)
    if cached is not None:
        report, status_code = cached
        return JSONResponse(status_code=status_code, content={**report, "cached": True})

    started = time.perf_counter()
    database = "connected"
    try:
        await asyncio.wait_for(check_database(), timeout=settings.health_db_timeout_seconds)
    except asyncio.TimeoutError:
        logger.error("Health check database probe timed out")
        database = "disconnected"
    except Exception as e:
        logger.error(f"Health check database probe failed: {e}")
        database = "disconnected"

    healthy = database == "connected"
    report = {
        "status": "healthy" if healthy else "unhealthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "uptime": round(time.monotonic() - _STARTED_AT, 3),
        "responseTime": round((time.perf_counter() - started) * 1000, 2),
        "environment": settings.environment,
        "version": settings.app_version,
        "services": {
            "database": database,
            "api": "operational",
        },
    }
    status_code = status.HTTP_200_OK if healthy else status.HTTP_503_SERVICE_UNAVAILABLE
    health_cache.put(report, status_code)
    return JSONResponse(status_code=status_code, content={**report, "cached": False})
