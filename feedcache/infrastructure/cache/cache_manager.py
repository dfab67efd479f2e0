"""
Tiered Cache Manager

Public entry point of the cache engine. Wires the tiers, the coalescer, the
mutation propagator and the janitor together and exposes the cache-aside
read (``fetch_with_cache``).

Architecture:
    CacheManager (this module)
        ├── TierChain (memory → persistent → shared)
        │   ├── MemoryTier
        │   ├── PersistentTier (+ CountOverrideStore)
        │   └── SharedTier (RedisClient)
        ├── RequestCoalescer (one fetch per key)
        ├── MutationPropagator (partial updates)
        ├── CacheJanitor (memory sweep)
        └── CacheObserver (metrics)
"""

import time
from collections.abc import Awaitable, Callable
from datetime import datetime, timezone
from typing import Any

import redis.asyncio as redis

from feedcache.core.config.constants import TWEET_COLLECTION_NAMESPACES, CacheTier, Stage
from feedcache.core.config.settings import Settings, get_settings
from feedcache.core.exceptions import CoalescedFetchFailed, FetchFailed
from feedcache.core.interfaces import KeyPredicate
from feedcache.core.logging.logger import get_logger, get_thread_id, log_stage
from feedcache.infrastructure.cache.coalescer import RequestCoalescer
from feedcache.infrastructure.cache.janitor import CacheJanitor
from feedcache.infrastructure.cache.memory_tier import MemoryTier
from feedcache.infrastructure.cache.mutation import (
    MutationPropagator,
    RecordUpdater,
    namespace_matcher,
)
from feedcache.infrastructure.cache.persistent_tier import PersistentTier
from feedcache.infrastructure.cache.redis_client import RedisClient
from feedcache.infrastructure.cache.shared_tier import SharedTier
from feedcache.infrastructure.cache.tier_chain import TierChain

logger = get_logger(__name__)

FetchFn = Callable[[], Awaitable[Any]]


# =============================================================================
# OBSERVABILITY
# =============================================================================


class CacheObserver:
    """
    Tracks cache performance metrics and logs operations.

    Metrics Tracked:
    - Hits per tier, misses
    - Callers that joined an in-flight fetch
    - Stale fallbacks and fetch failures
    """

    def __init__(self, logger_instance=None):
        self._logger = logger_instance or logger

        self._hits = {tier: 0 for tier in CacheTier}
        self._misses = 0
        self._coalesced = 0
        self._stale_fallbacks = 0
        self._fetch_failures = 0

    def record_hit(self, tier: CacheTier, key: str) -> None:
        self._hits[tier] += 1
        log_stage(self._logger, Stage.FRESH_READ, f"{tier.value} tier hit", level="debug", cache_key=key)

    def record_miss(self, key: str) -> None:
        self._misses += 1
        log_stage(self._logger, Stage.FRESH_READ, "Cache miss", level="debug", cache_key=key)

    def record_join(self, key: str) -> None:
        self._coalesced += 1

    def record_stale(self, tier: CacheTier, key: str, error: BaseException) -> None:
        self._stale_fallbacks += 1
        log_stage(
            self._logger,
            Stage.STALE_FALLBACK,
            "Fetch failed, serving stale entry",
            level="warning",
            cache_key=key,
            tier=tier.value,
            error=str(error),
            error_type=type(error).__name__,
        )

    def record_failure(self, key: str, error: BaseException) -> None:
        self._fetch_failures += 1
        log_stage(
            self._logger,
            Stage.FETCH,
            "Fetch failed with no cached fallback",
            level="error",
            cache_key=key,
            error=str(error),
            error_type=type(error).__name__,
        )

    def get_stats(self) -> dict[str, Any]:
        """
        Get cache performance statistics.

        Returns:
            Dict with per-tier hits, misses and hit rate
        """
        hits = sum(self._hits.values())
        total = hits + self._misses

        return {
            **{f"{tier.value}_hits": count for tier, count in self._hits.items()},
            "misses": self._misses,
            "total_requests": total,
            "hit_rate": round(hits / total, 3) if total > 0 else 0.0,
            "coalesced_requests": self._coalesced,
            "stale_fallbacks": self._stale_fallbacks,
            "fetch_failures": self._fetch_failures,
        }


# =============================================================================
# PUBLIC API
# =============================================================================


class CacheManager:
    """
    Tiered cache engine.

    Usage:
        cache = create_cache_manager()
        await cache.start()

        tweets = await cache.fetch_with_cache(
            build_cache_key("home-feed", limit=10),
            lambda: api.home_feed(limit=10),
            ttl=CacheDuration.SHORT,
            kind="tweets",
        )

        await cache.patch_record(tweet_id, lambda t: {**t, "likes_count": t["likes_count"] + 1})

        await cache.shutdown()
    """

    def __init__(
        self,
        memory: MemoryTier,
        persistent: PersistentTier | None = None,
        shared: SharedTier | None = None,
        settings: Settings | None = None,
        clock: Callable[[], float] = time.time,
    ):
        """
        Args:
            memory: Memory tier (always present)
            persistent: Persistent tier, or None to run without one
            shared: Shared tier, or None to run without one
            settings: Application settings (defaults to the global settings)
            clock: Time source in epoch seconds shared by every component
        """
        settings = settings or get_settings()

        self._memory = memory
        self._persistent = persistent
        self._shared = shared
        self._clock = clock

        tiers = [tier for tier in (memory, persistent, shared) if tier is not None]
        self._chain = TierChain(tiers, clock=clock)
        self._coalescer = RequestCoalescer()
        self._propagator = MutationPropagator(
            tiers,
            overrides=persistent.overrides if persistent is not None else None,
            counter_fields=settings.cache.CACHE_COUNTER_FIELDS,
            clock=clock,
        )
        self._janitor = CacheJanitor(memory, interval=settings.cache.CACHE_JANITOR_INTERVAL, clock=clock)
        self._observer = CacheObserver()

        self._enabled = settings.ENABLE_CACHING
        self._default_ttl = settings.cache.CACHE_DEFAULT_TTL
        self._kind_tiers = {
            kind: tuple(tier_list) for kind, tier_list in settings.cache.CACHE_KIND_TIERS.items()
        }
        self._started = False

        log_stage(
            logger,
            Stage.INITIALIZATION,
            "Cache manager initialized",
            tiers=[tier.tier.value for tier in tiers],
            memory_max_size=memory.get_max_size(),
            caching_enabled=self._enabled,
        )

    @property
    def chain(self) -> TierChain:
        return self._chain

    @property
    def coalescer(self) -> RequestCoalescer:
        return self._coalescer

    @property
    def janitor(self) -> CacheJanitor:
        return self._janitor

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    async def start(self) -> None:
        """Connect the shared tier and start the janitor."""
        if self._started:
            return

        if self._shared is not None:
            await self._shared.connect()
        self._janitor.start()
        self._started = True

        log_stage(logger, Stage.INITIALIZATION, "Cache manager started")

    async def shutdown(self) -> None:
        """Stop the janitor and release tier resources."""
        await self._janitor.stop()
        if self._shared is not None:
            await self._shared.close()
        if self._persistent is not None:
            self._persistent.close()
        await self._memory.clear()
        self._started = False

        log_stage(logger, Stage.SHUTDOWN, "Cache manager shutdown")

    # -------------------------------------------------------------------------
    # Cache-aside read
    # -------------------------------------------------------------------------

    def _tiers_for(self, kind: str | None) -> tuple[CacheTier, ...] | None:
        if kind is None:
            return None
        return self._kind_tiers.get(kind)

    async def fetch_with_cache(
        self,
        key: str,
        fetch_fn: FetchFn,
        ttl: float | None = None,
        force_refresh: bool = False,
        kind: str | None = None,
        source: str | None = None,
    ) -> Any:
        """
        Return the value for ``key`` from the cheapest fresh tier, fetching
        it (once, however many callers ask) when no tier has it.

        Algorithm:
        1. A load for ``key`` is already running: wait for its result
        2. Otherwise start one; steps 3-5 run inside it, once per key
        3. Fresh hit in any tier (skipped on ``force_refresh``): return it
        4. Otherwise call ``fetch_fn`` and write the result to every tier
        5. Fetch failed: return a stale copy from any tier if one exists

        Args:
            key: Cache key
            fetch_fn: Zero-argument coroutine function producing the value
            ttl: Seconds the written entry stays fresh (default CACHE_DEFAULT_TTL)
            force_refresh: Bypass the fresh read and always fetch
            kind: Explicit entry type; selects the tiers written
            source: Provenance tag stored with the entry

        Raises:
            FetchFailed: fetch failed and no tier held any copy
            CoalescedFetchFailed: same, observed by a caller that joined the fetch
        """
        if not self._enabled:
            return await fetch_fn()

        return await self._run_coalesced(key, fetch_fn, ttl, force_refresh, kind, source)

    async def _run_coalesced(
        self,
        key: str,
        fetch_fn: FetchFn,
        ttl: float | None,
        force_refresh: bool,
        kind: str | None,
        source: str | None,
    ) -> Any:
        # Ownership is decided synchronously, right before registration
        owner = not self._coalescer.is_pending(key)
        if not owner:
            self._observer.record_join(key)

        try:
            return await self._coalescer.run_exclusive(
                key, lambda: self._load(key, fetch_fn, ttl, force_refresh, kind, source)
            )
        except FetchFailed as e:
            if owner:
                raise
            raise CoalescedFetchFailed(e.message, thread_id=e.thread_id, details=e.details) from e.__cause__

    async def _load(
        self,
        key: str,
        fetch_fn: FetchFn,
        ttl: float | None,
        force_refresh: bool,
        kind: str | None,
        source: str | None,
    ) -> Any:
        # Tier read stays inside the coalesced load so late callers join it
        if not force_refresh:
            value, tier = await self._chain.read_fresh(key)
            if tier is not None:
                self._observer.record_hit(tier, key)
                return value
            self._observer.record_miss(key)

        try:
            value = await fetch_fn()
        except Exception as e:
            stale, tier = await self._chain.read_stale(key)
            if tier is not None:
                self._observer.record_stale(tier, key, e)
                return stale

            self._observer.record_failure(key, e)
            raise FetchFailed.from_exception(
                e,
                message=f"Fetch failed for {key} and no cached copy exists",
                thread_id=get_thread_id(),
                cache_key=key,
            ) from e

        ttl = self._default_ttl if ttl is None else ttl
        await self._chain.write_all(key, value, ttl, kind=kind, source=source, tiers=self._tiers_for(kind))
        log_stage(logger, Stage.WRITE_ALL, "Cached fetched value", level="debug", cache_key=key, ttl=ttl)
        return value

    # -------------------------------------------------------------------------
    # Direct access
    # -------------------------------------------------------------------------

    async def get(self, key: str) -> Any | None:
        """Fresh value for ``key`` from any tier, or None."""
        value, tier = await self._chain.read_fresh(key)
        if tier is None:
            self._observer.record_miss(key)
            return None
        self._observer.record_hit(tier, key)
        return value

    async def set(
        self,
        key: str,
        value: Any,
        ttl: float | None = None,
        kind: str | None = None,
        source: str | None = None,
    ) -> dict[CacheTier, bool]:
        ttl = self._default_ttl if ttl is None else ttl
        return await self._chain.write_all(
            key, value, ttl, kind=kind, source=source, tiers=self._tiers_for(kind)
        )

    async def delete(self, key: str) -> dict[CacheTier, bool]:
        return await self._chain.delete(key)

    # -------------------------------------------------------------------------
    # Invalidation and partial updates
    # -------------------------------------------------------------------------

    async def invalidate(self, key_fragment: str) -> int:
        """
        Delete every entry whose key contains ``key_fragment``, in every tier.

        Returns:
            int: Entries removed across tiers
        """
        counts = await self._chain.invalidate(lambda key: key_fragment in key)
        removed = sum(counts.values())
        log_stage(
            logger,
            Stage.INVALIDATION,
            "Invalidated entries by fragment",
            fragment=key_fragment,
            removed=removed,
        )
        return removed

    async def invalidate_prefix(self, prefix: str) -> int:
        """
        Delete every entry whose key starts with ``prefix``, in every tier.

        Example:
            await cache.invalidate_prefix(f"profile-{user_id}")
        """
        counts = await self._chain.invalidate_prefix(prefix)
        removed = sum(counts.values())
        log_stage(logger, Stage.INVALIDATION, "Invalidated entries by prefix", prefix=prefix, removed=removed)
        return removed

    async def patch_collections(
        self, matches_namespace: KeyPredicate, record_id: Any, updater: RecordUpdater
    ) -> int:
        return await self._propagator.patch_collections(matches_namespace, record_id, updater)

    async def patch_record(
        self,
        record_id: Any,
        updater: RecordUpdater,
        namespaces: tuple[str, ...] = TWEET_COLLECTION_NAMESPACES,
    ) -> int:
        """Patch a record inside the collections of ``namespaces`` (home feed and user tweets by default)."""
        return await self.patch_collections(namespace_matcher(*namespaces), record_id, updater)

    async def cleanup_shared_tier(self) -> int:
        """Explicitly delete expired rows from the shared tier."""
        if self._shared is None:
            return 0
        return await self._shared.purge_expired(self._clock())

    # -------------------------------------------------------------------------
    # Monitoring
    # -------------------------------------------------------------------------

    def stats(self) -> dict[str, Any]:
        """
        Get cache performance statistics.

        Returns:
            Dict with hit rates, sizes, and capacity utilization
        """
        memory_size = self._memory.get_size()
        memory_max = self._memory.get_max_size()

        return {
            **self._observer.get_stats(),
            "memory_size": memory_size,
            "memory_max_size": memory_max,
            "memory_capacity_utilization": round(memory_size / memory_max * 100, 2),
            "memory_evictions": self._memory.get_evictions(),
            "pending_fetches": self._coalescer.pending_count(),
            "persistent_enabled": self._persistent is not None and self._persistent.is_open(),
            "shared_enabled": self._shared is not None,
            "janitor_running": self._janitor.is_running,
            "caching_enabled": self._enabled,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }

    async def health_check(self) -> dict[str, Any]:
        """
        Perform health check on every tier.

        Returns:
            Dict with health status for all layers
        """
        health = {
            "status": "healthy",
            "caching_enabled": self._enabled,
            "memory": {
                "status": "healthy",
                "size": self._memory.get_size(),
                "max_size": self._memory.get_max_size(),
            },
            "persistent": None,
            "shared": None,
        }

        if self._persistent is not None:
            if self._persistent.is_open():
                health["persistent"] = {"status": "healthy", "db_path": str(self._persistent.db_path)}
            else:
                health["status"] = "degraded"
                health["persistent"] = {"status": "unavailable"}

        if self._shared is not None:
            try:
                shared_health = await self._shared.health_check()
                health["shared"] = shared_health

                if shared_health.get("status") != "healthy":
                    health["status"] = "degraded"
            except Exception as e:
                health["status"] = "degraded"
                health["shared"] = {"status": "error", "error": str(e)}

        return health


# =============================================================================
# CONSTRUCTION
# =============================================================================


def create_cache_manager(
    settings: Settings | None = None,
    redis_client: redis.Redis | None = None,
    clock: Callable[[], float] | None = None,
) -> CacheManager:
    """
    Build a fully wired cache manager from settings.

    Args:
        settings: Application settings (defaults to the global settings)
        redis_client: Pre-built redis.asyncio client for the shared tier
        clock: Time source in epoch seconds (defaults to time.time)

    Returns:
        CacheManager: New, not yet started engine
    """
    settings = settings or get_settings()
    clock = clock or time.time
    cache_settings = settings.cache

    memory = MemoryTier(max_size=cache_settings.CACHE_MEMORY_MAX_SIZE)
    persistent = PersistentTier(
        cache_settings.CACHE_PERSISTENT_PATH,
        namespace=cache_settings.CACHE_PERSISTENT_NAMESPACE,
        retention=cache_settings.CACHE_PERSISTENT_RETENTION,
        counter_fields=cache_settings.CACHE_COUNTER_FIELDS,
        clock=clock,
    )
    shared = None
    if cache_settings.CACHE_SHARED_ENABLED:
        shared = SharedTier(
            RedisClient(settings, client=redis_client),
            prefix=cache_settings.CACHE_SHARED_PREFIX,
            retention=cache_settings.CACHE_SHARED_RETENTION,
            clock=clock,
        )

    return CacheManager(memory, persistent, shared, settings=settings, clock=clock)


# =============================================================================
# GLOBAL INSTANCE (SINGLETON PATTERN)
# =============================================================================

_cache_manager: CacheManager | None = None


def get_cache_manager() -> CacheManager:
    """
    Get the global cache manager instance (singleton).

    For application wiring only; libraries and tests should build their own
    engine with ``create_cache_manager``.
    """
    global _cache_manager

    if _cache_manager is None:
        _cache_manager = create_cache_manager()

    return _cache_manager


async def close_cache_manager() -> None:
    """Shutdown the global cache manager."""
    global _cache_manager

    if _cache_manager:
        await _cache_manager.shutdown()
        _cache_manager = None
