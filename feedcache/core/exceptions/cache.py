"""
Cache-Related Exceptions

All exceptions related to caching operations (tiers, Redis, fetch failures).
"""

from feedcache.core.exceptions.base import FeedCacheError


class CacheError(FeedCacheError):
    """Base exception for cache-related errors."""
    pass


class CacheConnectionError(CacheError):
    """
    Raised when unable to connect to the shared tier (Redis).

    Common causes:
    - Redis server is down
    - Network connectivity issues
    - Incorrect host/port configuration
    """
    pass


class CacheKeyError(CacheError):
    """
    Raised when a Redis key operation fails.

    The shared tier catches it and degrades to a miss.
    """
    pass


class TierIOError(CacheError):
    """
    A single tier's read or write failed (quota, serialization, network).

    Always recovered inside the tier: logged, then treated as absent.
    Never surfaced to callers of the cache engine.
    """
    pass


class FetchFailed(CacheError):
    """
    The live fetch failed and no tier held a stale copy to fall back on.

    The underlying cause is chained as ``__cause__``.
    """
    pass


class CoalescedFetchFailed(FetchFailed):
    """
    Same failure as FetchFailed, observed by a caller that joined another
    caller's in-flight fetch. Handled by any ``except FetchFailed`` clause.
    """
    pass
