"""
Cache Tier Protocol

This module defines the protocol every cache tier implements, so the tier
chain, the mutation propagator and tests can treat memory, persistent and
shared storage uniformly.

Architectural Decision: Protocol-based abstraction
- Tier implementations stay independent of each other
- Tests can substitute failing or slow tiers
"""

from collections.abc import Callable
from typing import Protocol, runtime_checkable

from feedcache.core.config.constants import CacheTier
from feedcache.core.models import CacheEntry

KeyPredicate = Callable[[str], bool]


@runtime_checkable
class CacheTierBackend(Protocol):
    """
    Key/value storage of cache entries for one tier.

    Contract:
    - ``get`` never filters by freshness; expired entries are returned.
    - No method raises into caller control flow. I/O failures are logged
      inside the tier and reported as ``None`` / ``False`` / ``0``.
    """

    tier: CacheTier

    async def get(self, key: str) -> CacheEntry | None:
        """
        Get the entry stored under ``key``, expired or not.

        Returns:
            CacheEntry or None if absent or unreadable
        """
        ...

    async def set(self, key: str, entry: CacheEntry) -> bool:
        """
        Store ``entry`` under ``key``, replacing any previous entry.

        Returns:
            bool: True if stored
        """
        ...

    async def delete(self, key: str) -> bool:
        """
        Delete the entry stored under ``key``.

        Returns:
            bool: True if an entry was removed
        """
        ...

    async def delete_by_predicate(self, predicate: KeyPredicate) -> int:
        """
        Delete every entry whose key satisfies ``predicate``.

        Returns:
            int: Number of entries removed
        """
        ...

    async def delete_by_prefix(self, prefix: str) -> int:
        """
        Delete every entry whose key starts with ``prefix``.

        Returns:
            int: Number of entries removed
        """
        ...

    async def keys(self) -> list[str]:
        """
        Snapshot of the keys currently resident in the tier.
        """
        ...

    async def purge_expired(self, now: float) -> int:
        """
        Delete entries whose ``expires_at`` is before ``now``.

        Returns:
            int: Number of entries removed
        """
        ...
