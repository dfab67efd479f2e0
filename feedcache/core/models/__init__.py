from .cache_entry import CacheEntry, CountOverride, build_cache_key, build_profile_cache_key

__all__ = [
    "CacheEntry",
    "CountOverride",
    "build_cache_key",
    "build_profile_cache_key",
]
