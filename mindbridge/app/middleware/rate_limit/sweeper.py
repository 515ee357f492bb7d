"""Background eviction of expired rate limit windows."""

import asyncio
from typing import Optional

from mindbridge.app.core.logging import get_logger
from mindbridge.app.middleware.rate_limit.limiter import Clock, now_ms
from mindbridge.app.middleware.rate_limit.store import WindowStore

logger = get_logger(__name__)


class WindowSweeper:
    """Periodically sweeps a window store, independent of request traffic.

    If the sweeper is never started the store grows with every distinct
    client key for the lifetime of the process.

    Usage:
        sweeper = WindowSweeper(store, interval_seconds=60)
        await sweeper.start()
        ...
        await sweeper.stop()
    """

    def __init__(
        self,
        store: WindowStore,
        interval_seconds: float = 60.0,
        clock: Clock = now_ms,
    ):
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")
        self._store = store
        self._interval = interval_seconds
        self._clock = clock
        self._task: Optional[asyncio.Task] = None
        self._stop_event: Optional[asyncio.Event] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def sweep_once(self) -> int:
        """Evict every window that expired before now."""
        return self._store.sweep(self._clock())

    async def start(self) -> None:
        """Start the background sweep task."""
        if self._task is not None:
            logger.debug("Window sweeper already running")
            return

        # Bound to the running loop, so a new one per start.
        self._stop_event = asyncio.Event()
        self._task = asyncio.create_task(self._run())
        logger.info(f"Started rate limit sweeper (interval: {self._interval}s)")

    async def stop(self) -> None:
        """Stop the background sweep task."""
        if self._task is None:
            return

        self._stop_event.set()
        try:
            await asyncio.wait_for(self._task, timeout=5.0)
        except asyncio.TimeoutError:
            logger.warning("Window sweeper did not stop gracefully, cancelling")
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
        finally:
            self._task = None
            logger.info("Stopped rate limit sweeper")

    async def _run(self) -> None:
        while not self._stop_event.is_set():
            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=self._interval)
            except asyncio.TimeoutError:
                pass
            else:
                break

            try:
                self.sweep_once()
            except Exception as e:
                logger.error(f"Error during rate limit sweep: {e}")
