"""
Cache Janitor

Periodically removes expired entries from the memory tier. Persistent and
shared tiers are left alone: their expired rows are still useful for stale
reads and are cleaned up on their own schedules.
"""

import asyncio
import contextlib
import time
from collections.abc import Callable

from feedcache.core.config.constants import JANITOR_INTERVAL, Stage
from feedcache.core.logging.logger import get_logger, log_stage
from feedcache.infrastructure.cache.memory_tier import MemoryTier

logger = get_logger(__name__)


class CacheJanitor:
    """
    Background sweep of the memory tier.

    Uses flag-based shutdown: ``stop()`` wakes the loop immediately instead
    of waiting out the current interval.
    """

    def __init__(
        self,
        memory_tier: MemoryTier,
        interval: float = JANITOR_INTERVAL,
        clock: Callable[[], float] = time.time,
    ):
        """
        Args:
            memory_tier: Tier to sweep
            interval: Seconds between sweeps
            clock: Time source in epoch seconds
        """
        if interval <= 0:
            raise ValueError("interval must be positive")
        self._memory = memory_tier
        self._interval = interval
        self._clock = clock
        self._task: asyncio.Task | None = None
        self._shutdown_event = asyncio.Event()

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def sweep(self) -> int:
        """
        Delete every memory entry that is no longer fresh.

        Returns:
            int: Number of entries removed
        """
        removed = await self._memory.purge_expired(self._clock())
        if removed:
            log_stage(logger, Stage.JANITOR, "Swept expired memory entries", removed=removed)
        return removed

    def start(self) -> None:
        """Launch the sweep loop on the running event loop (no-op if already running)."""
        if self.is_running:
            return
        self._shutdown_event.clear()
        self._task = asyncio.create_task(self._run())

    async def stop(self) -> None:
        """Signal the loop to exit and wait for it."""
        self._shutdown_event.set()
        if self._task is not None:
            await self._task
            self._task = None

    async def _run(self) -> None:
        log_stage(logger, Stage.JANITOR, "Janitor started", interval_seconds=self._interval)

        while not self._shutdown_event.is_set():
            with contextlib.suppress(asyncio.TimeoutError):
                await asyncio.wait_for(self._shutdown_event.wait(), timeout=self._interval)
            if self._shutdown_event.is_set():
                break

            try:
                await self.sweep()
            except Exception as e:
                # Keep sweeping on the next tick
                logger.error(
                    "Janitor sweep failed",
                    stage=Stage.JANITOR.value,
                    error=str(e),
                    error_type=type(e).__name__,
                    exc_info=True,
                )

        log_stage(logger, Stage.JANITOR, "Janitor stopped")
