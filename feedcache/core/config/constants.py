"""
System Constants and Enumerations

This module defines system-wide constants and enumerations used across
the feed cache engine.

Architectural Decision: Centralized constants for maintainability
- Single source of truth for magic numbers
- Type-safe enums for tier and stage identifiers
- Easy to update and track changes
"""

from enum import Enum

# ============================================================================
# Stage Identifiers (for structured logging)
# ============================================================================


class Stage(str, Enum):
    """
    Cache engine stages used as the ``stage`` field of log records.

    Format: {SEQUENCE}_{DESCRIPTIVE_NAME}

    Examples:
        log_stage(logger, Stage.FRESH_READ, "Memory tier hit", cache_key=key)
    """

    INITIALIZATION = "0.0_INITIALIZATION"
    COALESCE = "1.0_REQUEST_COALESCING"
    FRESH_READ = "2.0_FRESH_READ"
    PROMOTION = "2.1_TIER_PROMOTION"
    FETCH = "3.0_LIVE_FETCH"
    WRITE_ALL = "4.0_WRITE_ALL_TIERS"
    STALE_FALLBACK = "5.0_STALE_FALLBACK"
    INVALIDATION = "6.0_INVALIDATION"
    PATCH = "7.0_PARTIAL_MUTATION"
    JANITOR = "8.0_JANITOR_SWEEP"
    SHUTDOWN = "9.0_SHUTDOWN"

    # Cross-cutting
    TIER_IO = "T_TIER_IO"
    REDIS = "REDIS"
    LOGGING = "L_LOGGING_OPERATIONS"


# ============================================================================
# Cache Tiers
# ============================================================================


class CacheTier(str, Enum):
    """
    Cache tiers, cheapest first.

    MEMORY: process-local dict (microseconds)
    PERSISTENT: device-local SQLite store (sub-millisecond to milliseconds)
    SHARED: Redis, visible to every client (network round-trip)
    """

    MEMORY = "memory"
    PERSISTENT = "persistent"
    SHARED = "shared"


# Probe order for reads; writes go to every tier in the same order
TIER_ORDER: tuple[CacheTier, ...] = (CacheTier.MEMORY, CacheTier.PERSISTENT, CacheTier.SHARED)


# ============================================================================
# Cache Durations (seconds)
# ============================================================================


class CacheDuration(int, Enum):
    """
    Common TTL presets used by feed collaborators.
    """

    SHORT = 5 * 60
    MEDIUM = 30 * 60
    LONG = 2 * 60 * 60
    VERY_LONG = 24 * 60 * 60


# ============================================================================
# Cache Namespaces
# ============================================================================

NAMESPACE_HOME_FEED = "home-feed"
NAMESPACE_USER_TWEETS = "user-tweets"
NAMESPACE_TWEET_DETAIL = "tweet-detail"
NAMESPACE_NOTIFICATIONS = "notifications"
NAMESPACE_PROFILE = "profile"

# Collections whose records carry mutable counters
TWEET_COLLECTION_NAMESPACES: tuple[str, ...] = (NAMESPACE_HOME_FEED, NAMESPACE_USER_TWEETS)

# ============================================================================
# Storage Key Layout
# ============================================================================

PERSISTENT_CACHE_INFIX = "-cache-"
PERSISTENT_COUNT_INFIX = "-count-"
SHARED_KEY_SEPARATOR = ":"

# ============================================================================
# Defaults
# ============================================================================

MEMORY_CACHE_MAX_SIZE = 1000  # Maximum entries in the memory tier
DEFAULT_TTL = CacheDuration.MEDIUM.value
JANITOR_INTERVAL = 60  # Memory tier sweep period (seconds)

# Counter fields reconciled through count overrides
COUNTER_FIELDS: tuple[str, ...] = (
    "replies_count",
    "likes_count",
    "retweets_count",
    "bookmarks_count",
)

# Record identity field inside cached collections
RECORD_ID_FIELD = "id"
