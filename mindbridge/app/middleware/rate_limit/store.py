"""Window stores holding per-key rate limit state."""

import threading
from abc import ABC, abstractmethod
from typing import ContextManager, Dict, Optional

from mindbridge.app.core.logging import get_logger
from mindbridge.app.middleware.rate_limit.models import RateWindow

logger = get_logger(__name__)


class WindowStore(ABC):
    """Abstract base class for window stores.

    ``lock`` must be held by callers doing a read-modify-write so that
    concurrent requests for the same key cannot lose increments.
    """

    lock: ContextManager

    @abstractmethod
    def get(self, key: str) -> Optional[RateWindow]:
        """Return the window for ``key`` or None if there is none."""

    @abstractmethod
    def set(self, key: str, window: RateWindow) -> None:
        """Store ``window`` under ``key``."""

    @abstractmethod
    def sweep(self, now: int) -> int:
        """Remove windows whose ``reset_at`` is before ``now``.

        Returns:
            Number of evicted windows
        """

    @abstractmethod
    def reset(self) -> None:
        """Drop all windows."""


class InMemoryWindowStore(WindowStore):
    """Dict-backed window store for a single process.

    Each process keeps its own counters, so behind a load balancer the
    effective limit is multiplied by the number of instances.
    """

    def __init__(self) -> None:
        self._windows: Dict[str, RateWindow] = {}
        # Re-entrant so sweep() may be called while a caller holds the lock.
        self.lock = threading.RLock()

    def get(self, key: str) -> Optional[RateWindow]:
        return self._windows.get(key)

    def set(self, key: str, window: RateWindow) -> None:
        with self.lock:
            self._windows[key] = window

    def sweep(self, now: int) -> int:
        with self.lock:
            expired = [k for k, w in self._windows.items() if w.reset_at < now]
            for key in expired:
                del self._windows[key]
        if expired:
            logger.debug(f"Swept {len(expired)} expired rate limit windows")
        return len(expired)

    def reset(self) -> None:
        with self.lock:
            self._windows.clear()

    def __len__(self) -> int:
        return len(self._windows)

    def __contains__(self, key: str) -> bool:
        return key in self._windows
