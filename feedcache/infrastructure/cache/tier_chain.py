"""
Tier Chain

Orchestrates lookups across the ordered tiers, cheapest first.

Algorithm:
    READ FRESH: memory → persistent → shared; the first fresh hit is copied
                into every cheaper tier, keeping its expiry
    READ STALE: same order, first hit of any age, no copying
    WRITE ALL:  every tier (or the subset a kind policy names), independently

A tier that raises is logged and treated as a miss; no tier failure ever
reaches the caller.
"""

import time
from collections.abc import Awaitable, Callable, Iterable, Sequence
from typing import Any, TypeVar

from feedcache.core.config.constants import CacheTier, Stage
from feedcache.core.interfaces import CacheTierBackend, KeyPredicate
from feedcache.core.logging.logger import get_logger, log_stage
from feedcache.core.models import CacheEntry
from feedcache.infrastructure.cache.base import report_tier_failure

logger = get_logger(__name__)

T = TypeVar("T")


class TierChain:
    """
    Ordered collection of tiers with read-through promotion.

    Usage:
        chain = TierChain([memory, persistent, shared])
        value, tier = await chain.read_fresh("home-feed-limit:10")
        await chain.write_all("home-feed-limit:10", tweets, ttl=900)
    """

    def __init__(self, tiers: Sequence[CacheTierBackend], clock: Callable[[], float] = time.time):
        """
        Args:
            tiers: Tiers ordered cheapest first
            clock: Time source in epoch seconds
        """
        self._tiers = list(tiers)
        self._clock = clock

    @property
    def tiers(self) -> list[CacheTierBackend]:
        return list(self._tiers)

    def get_tier(self, tier: CacheTier) -> CacheTierBackend | None:
        for backend in self._tiers:
            if backend.tier == tier:
                return backend
        return None

    async def _guard(
        self,
        backend: CacheTierBackend,
        operation: str,
        call: Callable[[], Awaitable[T]],
        default: T,
        cache_key: str | None = None,
    ) -> T:
        try:
            return await call()
        except Exception as e:
            report_tier_failure(logger, backend.tier, operation, e, cache_key=cache_key)
            return default

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    async def read_fresh(self, key: str) -> tuple[Any | None, CacheTier | None]:
        """
        Return the first fresh value and the tier that held it.

        On a hit below the first tier, every cheaper tier receives a copy with
        the same ``expires_at`` (remaining TTL), so promotion never extends
        freshness.

        Returns:
            (value, tier), or (None, None) on a miss
        """
        now = self._clock()
        for index, backend in enumerate(self._tiers):
            entry = await self._guard(backend, "get", lambda: backend.get(key), None, cache_key=key)
            if entry is None or not entry.is_fresh(now):
                continue

            if index > 0:
                await self._promote(key, entry, self._tiers[:index], now)
            return entry.value, backend.tier

        return None, None

    async def _promote(
        self, key: str, entry: CacheEntry, targets: Iterable[CacheTierBackend], now: float
    ) -> None:
        promoted = entry.promoted(now)
        for target in targets:
            await self._guard(target, "set", lambda: target.set(key, promoted), False, cache_key=key)

        log_stage(
            logger,
            Stage.PROMOTION,
            "Promoted entry to cheaper tiers",
            level="debug",
            cache_key=key,
            remaining_ttl=round(entry.remaining_ttl(now), 3),
        )

    async def read_stale(self, key: str) -> tuple[Any | None, CacheTier | None]:
        """
        Return the first value of any age and the tier that held it. No promotion.
        """
        for backend in self._tiers:
            entry = await self._guard(backend, "get", lambda: backend.get(key), None, cache_key=key)
            if entry is not None:
                return entry.value, backend.tier
        return None, None

    # -------------------------------------------------------------------------
    # Writes
    # -------------------------------------------------------------------------

    async def write_all(
        self,
        key: str,
        value: Any,
        ttl: float,
        kind: str | None = None,
        source: str | None = None,
        tiers: Iterable[CacheTier] | None = None,
    ) -> dict[CacheTier, bool]:
        """
        Write one entry to every tier (or only to ``tiers``).

        Each tier succeeds or fails on its own; there is no rollback.

        Returns:
            Dict of tier -> stored flag
        """
        entry = CacheEntry.create(key, value, ttl, self._clock(), kind=kind, source=source)
        wanted = set(tiers) if tiers is not None else None

        results: dict[CacheTier, bool] = {}
        for backend in self._tiers:
            if wanted is not None and backend.tier not in wanted:
                continue
            results[backend.tier] = await self._guard(
                backend, "set", lambda: backend.set(key, entry), False, cache_key=key
            )
        return results

    # -------------------------------------------------------------------------
    # Invalidation
    # -------------------------------------------------------------------------

    async def invalidate(self, predicate: KeyPredicate) -> dict[CacheTier, int]:
        """Delete matching keys from every tier; returns per-tier counts."""
        return {
            backend.tier: await self._guard(
                backend, "delete_by_predicate", lambda: backend.delete_by_predicate(predicate), 0
            )
            for backend in self._tiers
        }

    async def invalidate_prefix(self, prefix: str) -> dict[CacheTier, int]:
        """Delete keys starting with ``prefix`` from every tier; returns per-tier counts."""
        return {
            backend.tier: await self._guard(
                backend, "delete_by_prefix", lambda: backend.delete_by_prefix(prefix), 0
            )
            for backend in self._tiers
        }

    async def delete(self, key: str) -> dict[CacheTier, bool]:
        return {
            backend.tier: await self._guard(
                backend, "delete", lambda: backend.delete(key), False, cache_key=key
            )
            for backend in self._tiers
        }
