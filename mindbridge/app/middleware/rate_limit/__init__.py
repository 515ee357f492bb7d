"""Fixed-window rate limiting for the gate middleware.

The window store is an explicit object handed to the limiter and sweeper,
so tests and alternative deployments can supply their own.
"""

from mindbridge.app.middleware.rate_limit.limiter import (
    Clock,
    FixedWindowLimiter,
    now_ms,
    retry_after_seconds,
)
from mindbridge.app.middleware.rate_limit.models import (
    LimitPolicy,
    RateLimitResult,
    RateWindow,
)
from mindbridge.app.middleware.rate_limit.store import (
    InMemoryWindowStore,
    WindowStore,
)
from mindbridge.app.middleware.rate_limit.sweeper import WindowSweeper

__all__ = [
    # Models
    "LimitPolicy",
    "RateLimitResult",
    "RateWindow",
    # Stores
    "WindowStore",
    "InMemoryWindowStore",
    # Limiter
    "Clock",
    "FixedWindowLimiter",
    "now_ms",
    "retry_after_seconds",
    # Sweeper
    "WindowSweeper",
]
