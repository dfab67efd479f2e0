"""
Exception Module

Structured exception hierarchy for the feed cache engine.

Module Structure:
-----------------
- **base.py**: FeedCacheError base class + ConfigurationError
- **cache.py**: Tier, Redis and fetch exceptions

Usage:
------
```python
from feedcache.core.exceptions import FetchFailed

try:
    feed = await cache.fetch_with_cache(key, load_feed, ttl=15)
except FetchFailed as exc:
    show_retry_button(exc.details["cache_key"])
```
"""

from feedcache.core.exceptions.base import ConfigurationError, FeedCacheError
from feedcache.core.exceptions.cache import (
    CacheConnectionError,
    CacheError,
    CacheKeyError,
    CoalescedFetchFailed,
    FetchFailed,
    TierIOError,
)

__all__ = [
    # Base
    "FeedCacheError",
    "ConfigurationError",
    # Cache
    "CacheError",
    "CacheConnectionError",
    "CacheKeyError",
    "TierIOError",
    "FetchFailed",
    "CoalescedFetchFailed",
]
