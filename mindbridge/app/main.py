from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from mindbridge.app.api.admin import router as admin_router
from mindbridge.app.api.auth import router as auth_router
from mindbridge.app.api.chatbot import router as chatbot_router
from mindbridge.app.api.health import HealthCache, router as health_router
from mindbridge.app.api.maintenance import router as maintenance_router
from mindbridge.app.api.pages import router as pages_router
from mindbridge.app.api.profile import router as profile_router
from mindbridge.app.api.therapists import router as therapists_router
from mindbridge.app.core.config import settings
from mindbridge.app.core.logging import get_logger, setup_logging
from mindbridge.app.db import models  # noqa: F401 - import to register models
from mindbridge.app.db.async_session import close_async_engine
from mindbridge.app.db.init_db import ensure_admin_account, init_database, verify_connection
from mindbridge.app.exceptions import MindBridgeException, validation_error_content
from mindbridge.app.middleware.gate import Gate, GateMiddleware
from mindbridge.app.middleware.rate_limit import (
    FixedWindowLimiter,
    InMemoryWindowStore,
    WindowStore,
    WindowSweeper,
)
from mindbridge.app.middleware.request_id import RequestIdMiddleware, get_request_id
from mindbridge.app.middleware.security_headers import SecurityHeadersMiddleware


def create_app(
    store: Optional[WindowStore] = None,
    gate: Optional[Gate] = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        store: Window store shared by the gate and the sweeper. A fresh
            in-memory store is created when omitted.
        gate: Pre-built gate, mainly for tests. Must use ``store`` if both
            are given.

    Returns:
        Configured FastAPI application instance
    """
    setup_logging()
    logger = get_logger(__name__)

    window_store = store or InMemoryWindowStore()
    if gate is None:
        gate = Gate.from_settings(FixedWindowLimiter(window_store))
    sweeper = WindowSweeper(
        window_store,
        interval_seconds=settings.rate_limit_sweep_interval_seconds,
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        """Create tables, bootstrap the admin and run the window sweeper."""
        if not await verify_connection():
            logger.error("Database connection failed!")
            raise RuntimeError("Cannot connect to database")

        await init_database(drop_first=False)
        await ensure_admin_account()
        await sweeper.start()

        logger.info(
            "Application startup complete",
            extra={
                "environment": settings.environment,
                "rate_limit_enabled": settings.rate_limit_enabled,
            },
        )

        yield

        await sweeper.stop()
        await close_async_engine()

        logger.info("Application shutdown complete")

    app = FastAPI(
        title="MindBridge",
        description="Mental health platform API with request gating and rate limiting",
        version=settings.app_version,
        lifespan=lifespan,
    )
    app.state.window_store = window_store
    app.state.gate = gate
    app.state.sweeper = sweeper
    app.state.health_cache = HealthCache()

    # Add middleware (order matters: last added = first executed)
    # Gate (innermost - runs right before routing)
    app.add_middleware(GateMiddleware, gate=gate)

    # Request ID outside the gate so rejections are traceable
    app.add_middleware(RequestIdMiddleware)

    # Security headers on every response, including gate rejections
    app.add_middleware(SecurityHeadersMiddleware)

    # CORS middleware (outermost - handles preflight requests first)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["*"],
        expose_headers=[
            "X-Request-ID",
            "X-RateLimit-Limit",
            "X-RateLimit-Remaining",
            "X-RateLimit-Reset",
            "Retry-After",
        ],
        max_age=600,
    )

    # Include routers
    app.include_router(auth_router)
    app.include_router(therapists_router)
    app.include_router(profile_router)
    app.include_router(admin_router)
    app.include_router(chatbot_router)
    app.include_router(health_router)
    app.include_router(maintenance_router)
    app.include_router(pages_router)

    @app.exception_handler(MindBridgeException)
    async def mindbridge_error_handler(request: Request, exc: MindBridgeException) -> JSONResponse:
        """Render application exceptions raised inside route handlers."""
        return JSONResponse(
            status_code=exc.status_code,
            content=exc.to_response(),
            headers=exc.headers,
        )

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        """Return HTTP 400 with per-field messages for invalid input."""
        return JSONResponse(status_code=400, content=validation_error_content(exc.errors()))

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """Global exception handler for unhandled exceptions.

        The traceback is logged server-side only; debug mode adds the
        exception message to the response.
        """
        request_id = get_request_id(request)
        logger.exception(
            f"Unhandled exception [request_id={request_id}]",
            extra={
                "request_id": request_id,
                "exception_type": type(exc).__name__,
            },
        )

        content = {
            "error": "Internal Server Error",
            "message": str(exc) if settings.debug else "Internal server error",
            "request_id": request_id,
        }
        return JSONResponse(status_code=500, content=content)

    return app


# Create the application instance
app = create_app()
