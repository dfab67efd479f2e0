"""
feedcache: tiered data cache for feed clients.

Serves data from the cheapest fresh tier, coalesces concurrent fetches,
falls back to stale copies when a fetch fails and patches single records
inside cached collections without invalidating them.
"""

from feedcache.core.config.constants import CacheDuration, CacheTier
from feedcache.core.exceptions import CoalescedFetchFailed, FetchFailed
from feedcache.core.models import CacheEntry, build_cache_key, build_profile_cache_key
from feedcache.infrastructure.cache import CacheManager, create_cache_manager, namespace_matcher

__version__ = "0.1.0"

__all__ = [
    "CacheDuration",
    "CacheEntry",
    "CacheManager",
    "CacheTier",
    "CoalescedFetchFailed",
    "FetchFailed",
    "build_cache_key",
    "build_profile_cache_key",
    "create_cache_manager",
    "namespace_matcher",
]
