"""
Request Coalescer

At most one in-flight fetch per key. Concurrent callers for the same key
await the same asyncio.Task instead of issuing duplicate fetches.

Registration happens synchronously (no await between the pending check and
the insert), so two callers can never both become the owner on one event
loop. The map entry is removed when the task settles, success or failure.
"""

import asyncio
from collections.abc import Awaitable, Callable
from typing import Any

from feedcache.core.config.constants import Stage
from feedcache.core.logging.logger import get_logger, log_stage

logger = get_logger(__name__)


class RequestCoalescer:
    """
    Map of key -> pending task.

    Callers await through ``asyncio.shield``: a caller that is cancelled
    stops waiting, but the shared fetch keeps running for everyone else.
    """

    def __init__(self):
        self._pending: dict[str, asyncio.Task] = {}

    def is_pending(self, key: str) -> bool:
        return key in self._pending

    def pending_count(self) -> int:
        return len(self._pending)

    async def run_exclusive(self, key: str, fn: Callable[[], Awaitable[Any]]) -> Any:
        """
        Run ``fn`` unless a run for ``key`` is already in flight; either way
        return (or raise) that run's outcome.
        """
        task = self._pending.get(key)
        if task is None:
            task = asyncio.ensure_future(fn())
            self._pending[key] = task
            task.add_done_callback(lambda done, key=key: self._settle(key, done))
        else:
            log_stage(logger, Stage.COALESCE, "Joined in-flight request", level="debug", cache_key=key)

        return await asyncio.shield(task)

    def _settle(self, key: str, task: asyncio.Task) -> None:
        if self._pending.get(key) is task:
            del self._pending[key]
        # Mark the outcome retrieved so an unawaited failure is not reported as lost
        if not task.cancelled():
            task.exception()
