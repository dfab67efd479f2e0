"""
Shared Tier

Redis-backed storage visible to every client. One JSON document per key:

    "<prefix>:<cache_key>" -> {"cache_key", "data", "source", "expires_at", "stored_at", "kind"}

A write deletes any existing row and inserts the new one. Rows outlive their
freshness by the retention window so stale reads keep working until the
explicit cleanup (``purge_expired``) or Redis expiry removes them.
"""

import math
import re
import time
from collections.abc import Callable
from typing import Any

import orjson

from feedcache.core.config.constants import SHARED_KEY_SEPARATOR, CacheTier, Stage
from feedcache.core.exceptions import CacheError
from feedcache.core.interfaces import KeyPredicate
from feedcache.core.logging.logger import get_logger, log_stage
from feedcache.core.models import CacheEntry
from feedcache.infrastructure.cache.base import report_tier_failure
from feedcache.infrastructure.cache.redis_client import RedisClient

logger = get_logger(__name__)

_GLOB_SPECIAL = re.compile(r"([*?\[\]\\])")

_RECOVERABLE = (CacheError, orjson.JSONDecodeError, orjson.JSONEncodeError, KeyError, ValueError)


def escape_glob(text: str) -> str:
    """Escape Redis MATCH metacharacters so ``text`` matches literally."""
    return _GLOB_SPECIAL.sub(r"\\\1", text)


class SharedTier:
    """
    Entry store on top of RedisClient.

    Every RedisClient error (CacheConnectionError, CacheKeyError) is caught
    here and reported as a miss.
    """

    tier = CacheTier.SHARED

    def __init__(
        self,
        redis_client: RedisClient,
        prefix: str = "market_cache",
        retention: float = 86400,
        clock: Callable[[], float] = time.time,
    ):
        """
        Args:
            redis_client: Client used for every command
            prefix: Key prefix for rows owned by this cache
            retention: Seconds an expired row is kept for stale reads
            clock: Time source in epoch seconds
        """
        self._redis = redis_client
        self._prefix = f"{prefix}{SHARED_KEY_SEPARATOR}"
        self._retention = retention
        self._clock = clock

    async def connect(self) -> bool:
        try:
            await self._redis.connect()
            return True
        except CacheError as e:
            report_tier_failure(logger, self.tier, "connect", e)
            return False

    async def close(self) -> None:
        await self._redis.disconnect()

    def _storage_key(self, key: str) -> str:
        return f"{self._prefix}{key}"

    def _expiry_seconds(self, entry: CacheEntry) -> int:
        return max(1, math.ceil(entry.remaining_ttl(self._clock()) + self._retention))

    @staticmethod
    def _encode(entry: CacheEntry) -> str:
        return orjson.dumps(
            {
                "cache_key": entry.key,
                "data": entry.value,
                "source": entry.source,
                "expires_at": entry.expires_at,
                "stored_at": entry.stored_at,
                "kind": entry.kind,
            }
        ).decode()

    @staticmethod
    def _decode(raw: str) -> CacheEntry:
        row = orjson.loads(raw)
        return CacheEntry(
            key=row["cache_key"],
            value=row["data"],
            stored_at=row["stored_at"],
            expires_at=row["expires_at"],
            kind=row.get("kind"),
            source=row.get("source"),
        )

    async def get(self, key: str) -> CacheEntry | None:
        try:
            raw = await self._redis.get(self._storage_key(key))
            return self._decode(raw) if raw is not None else None
        except _RECOVERABLE as e:
            report_tier_failure(logger, self.tier, "get", e, cache_key=key)
            return None

    async def set(self, key: str, entry: CacheEntry) -> bool:
        storage_key = self._storage_key(key)
        try:
            payload = self._encode(entry)
            await self._redis.delete(storage_key)
            return await self._redis.set(storage_key, payload, ttl=self._expiry_seconds(entry))
        except _RECOVERABLE as e:
            report_tier_failure(logger, self.tier, "set", e, cache_key=key)
            return False

    async def delete(self, key: str) -> bool:
        try:
            return await self._redis.delete(self._storage_key(key)) > 0
        except CacheError as e:
            report_tier_failure(logger, self.tier, "delete", e, cache_key=key)
            return False

    async def _scan(self, key_prefix: str = "") -> list[str]:
        return await self._redis.scan_keys(f"{escape_glob(self._storage_key(key_prefix))}*")

    async def delete_by_predicate(self, predicate: KeyPredicate) -> int:
        offset = len(self._prefix)
        try:
            doomed = [key for key in await self._scan() if predicate(key[offset:])]
            return await self._redis.delete(*doomed)
        except CacheError as e:
            report_tier_failure(logger, self.tier, "delete_by_predicate", e)
            return 0

    async def delete_by_prefix(self, prefix: str) -> int:
        try:
            return await self._redis.delete(*await self._scan(prefix))
        except CacheError as e:
            report_tier_failure(logger, self.tier, "delete_by_prefix", e, prefix=prefix)
            return 0

    async def keys(self) -> list[str]:
        offset = len(self._prefix)
        try:
            return [key[offset:] for key in await self._scan()]
        except CacheError as e:
            report_tier_failure(logger, self.tier, "keys", e)
            return []

    async def purge_expired(self, now: float) -> int:
        """
        Delete every row whose ``expires_at`` has passed.

        This is the explicit cleanup request; ordinary reads never delete rows.
        """
        purged = 0
        for key in await self.keys():
            entry = await self.get(key)
            if entry is not None and not entry.is_fresh(now):
                purged += await self.delete(key)

        log_stage(logger, Stage.INVALIDATION, "Shared tier cleanup finished", purged=purged)
        return purged

    async def health_check(self) -> dict[str, Any]:
        return await self._redis.health_check()
