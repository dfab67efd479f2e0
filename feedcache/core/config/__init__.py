"""
Configuration Module

Centralized, type-safe configuration for the feed cache engine.

Components:
-----------
- **settings.py**: Pydantic-based configuration with environment variable loading
- **constants.py**: Tier enum, stage identifiers, namespaces and defaults

Usage:
------
```python
from feedcache.core.config import get_settings
from feedcache.core.config.constants import CacheTier, Stage

settings = get_settings()
ttl = settings.cache.CACHE_DEFAULT_TTL
```

Environment Variables:
---------------------
```bash
REDIS_HOST=localhost
CACHE_DEFAULT_TTL=1800
CACHE_MEMORY_MAX_SIZE=1000
CACHE_PERSISTENT_PATH=.feedcache/cache.db
CACHE_KIND_TIERS='{"notifications": ["memory", "persistent"]}'
LOG_LEVEL=INFO
LOG_FORMAT=json
```
"""

from feedcache.core.config.constants import (
    COUNTER_FIELDS,
    DEFAULT_TTL,
    JANITOR_INTERVAL,
    MEMORY_CACHE_MAX_SIZE,
    NAMESPACE_HOME_FEED,
    NAMESPACE_NOTIFICATIONS,
    NAMESPACE_PROFILE,
    NAMESPACE_TWEET_DETAIL,
    NAMESPACE_USER_TWEETS,
    TIER_ORDER,
    TWEET_COLLECTION_NAMESPACES,
    CacheDuration,
    CacheTier,
    Stage,
)
from feedcache.core.config.settings import Settings, get_settings, reload_settings

__all__ = [
    # Settings
    "Settings",
    "get_settings",
    "reload_settings",
    # Enums
    "Stage",
    "CacheTier",
    "CacheDuration",
    "TIER_ORDER",
    # Namespaces
    "NAMESPACE_HOME_FEED",
    "NAMESPACE_USER_TWEETS",
    "NAMESPACE_TWEET_DETAIL",
    "NAMESPACE_NOTIFICATIONS",
    "NAMESPACE_PROFILE",
    "TWEET_COLLECTION_NAMESPACES",
    # Defaults
    "COUNTER_FIELDS",
    "DEFAULT_TTL",
    "JANITOR_INTERVAL",
    "MEMORY_CACHE_MAX_SIZE",
]
