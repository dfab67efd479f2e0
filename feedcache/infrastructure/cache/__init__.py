"""
Cache Module

Provides the tiered cache engine (memory → persistent SQLite → shared Redis).
"""

from .cache_manager import (
    CacheManager,
    CacheObserver,
    close_cache_manager,
    create_cache_manager,
    get_cache_manager,
)
from .coalescer import RequestCoalescer
from .janitor import CacheJanitor
from .memory_tier import MemoryTier
from .mutation import MutationPropagator, namespace_matcher
from .persistent_tier import CountOverrideStore, PersistentTier
from .redis_client import RedisClient
from .shared_tier import SharedTier
from .tier_chain import TierChain

__all__ = [
    "CacheManager",
    "CacheObserver",
    "create_cache_manager",
    "get_cache_manager",
    "close_cache_manager",
    "RequestCoalescer",
    "CacheJanitor",
    "MemoryTier",
    "PersistentTier",
    "CountOverrideStore",
    "SharedTier",
    "RedisClient",
    "TierChain",
    "MutationPropagator",
    "namespace_matcher",
]
