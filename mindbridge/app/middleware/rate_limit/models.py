"""Rate limiting data models.

This module contains dataclasses for rate limit state, policy and results.
All timestamps are epoch milliseconds.
"""

from dataclasses import dataclass, replace
from typing import Optional


@dataclass
class RateWindow:
    """Usage state for one client key in the current fixed window."""
    key: str
    count: int
    reset_at: int


@dataclass(frozen=True)
class LimitPolicy:
    """Per-route limit: at most ``limit`` requests every ``window_ms``."""
    limit: int
    window_ms: int
    message: str = "Rate limit exceeded. Please try again later."

    def __post_init__(self) -> None:
        if self.limit < 1:
            raise ValueError("limit must be at least 1")
        if self.window_ms < 1:
            raise ValueError("window_ms must be at least 1")

    def for_environment(self, environment: str) -> "LimitPolicy":
        """Relax the policy for local development.

        Development servers reload often and hammer the same routes, so the
        limit is raised to at least 200 and the window capped at 30 seconds.
        """
        if environment != "development":
            return self
        return replace(
            self,
            limit=max(self.limit * 3, 200),
            window_ms=min(self.window_ms, 30_000),
        )


@dataclass
class RateLimitResult:
    """Result of a rate limit check."""
    allowed: bool
    limit: int
    remaining: int
    reset_at: int
    retry_after: Optional[int] = None
