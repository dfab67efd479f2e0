"""
Memory Tier

Process-local, volatile, size-bounded storage. The cheapest tier: reads and
writes never suspend, so every operation is atomic with respect to other
tasks on the event loop and no lock is needed.
"""

from collections import OrderedDict

from feedcache.core.config.constants import MEMORY_CACHE_MAX_SIZE, CacheTier
from feedcache.core.interfaces import KeyPredicate
from feedcache.core.logging.logger import get_logger
from feedcache.core.models import CacheEntry

logger = get_logger(__name__)


class MemoryTier:
    """
    In-memory entry store with oldest-write eviction.

    Implementation Details:
    - OrderedDict keeps keys in write order, so the front is always the
      entry with the oldest ``stored_at``
    - Reads do not reorder (this is not LRU)
    - In-place patches (``replace``) keep the entry's position
    - When full, ``set`` evicts from the front until there is room
    """

    tier = CacheTier.MEMORY

    def __init__(self, max_size: int = MEMORY_CACHE_MAX_SIZE):
        """
        Args:
            max_size: Maximum number of entries to hold
        """
        if max_size < 1:
            raise ValueError("max_size must be at least 1")
        self._max_size = max_size
        self._entries: OrderedDict[str, CacheEntry] = OrderedDict()
        self._evictions = 0

    async def get(self, key: str) -> CacheEntry | None:
        return self._entries.get(key)

    async def set(self, key: str, entry: CacheEntry) -> bool:
        if key in self._entries:
            # Rewrite counts as a new write for eviction order
            del self._entries[key]

        while len(self._entries) >= self._max_size:
            evicted_key, _ = self._entries.popitem(last=False)
            self._evictions += 1
            logger.debug("Memory tier eviction", cache_key=evicted_key, max_size=self._max_size)

        self._entries[key] = entry
        return True

    async def replace(self, key: str, entry: CacheEntry) -> bool:
        """
        Swap the entry under an existing key without changing eviction order.

        Returns False (and stores nothing) if the key is not resident.
        """
        if key not in self._entries:
            return False
        self._entries[key] = entry
        return True

    async def delete(self, key: str) -> bool:
        return self._entries.pop(key, None) is not None

    async def delete_by_predicate(self, predicate: KeyPredicate) -> int:
        doomed = [key for key in self._entries if predicate(key)]
        for key in doomed:
            del self._entries[key]
        return len(doomed)

    async def delete_by_prefix(self, prefix: str) -> int:
        return await self.delete_by_predicate(lambda key: key.startswith(prefix))

    async def keys(self) -> list[str]:
        return list(self._entries.keys())

    async def purge_expired(self, now: float) -> int:
        """Delete every entry that is no longer fresh at ``now``."""
        expired = [key for key, entry in self._entries.items() if not entry.is_fresh(now)]
        for key in expired:
            del self._entries[key]
        return len(expired)

    async def clear(self) -> None:
        self._entries.clear()

    def get_size(self) -> int:
        """Get current number of entries."""
        return len(self._entries)

    def get_max_size(self) -> int:
        """Get maximum capacity."""
        return self._max_size

    def get_evictions(self) -> int:
        """Number of entries evicted for capacity since creation."""
        return self._evictions
