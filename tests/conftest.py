"""
Pytest Configuration and Shared Test Fixtures

This module provides pytest configuration and reusable fixtures for all tests.
All fixtures defined here are automatically available to all test files.

Time is controlled through ``FakeClock``; every component takes a clock, so
freshness and expiry are tested without sleeping. The shared tier runs on
fakeredis, the persistent tier on a temporary SQLite file.
"""

import fakeredis
import pytest
import pytest_asyncio

from feedcache.core.config.settings import Settings
from feedcache.core.models import CacheEntry
from feedcache.infrastructure.cache.cache_manager import create_cache_manager
from feedcache.infrastructure.cache.memory_tier import MemoryTier
from feedcache.infrastructure.cache.persistent_tier import PersistentTier
from feedcache.infrastructure.cache.redis_client import RedisClient
from feedcache.infrastructure.cache.shared_tier import SharedTier

START_TIME = 1_700_000_000.0


# ============================================================================
# Time
# ============================================================================


class FakeClock:
    """Manually advanced epoch-seconds clock."""

    def __init__(self, now: float = START_TIME):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> float:
        self.now += seconds
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def make_entry(clock):
    """Factory for entries stored at the current fake time."""

    def _make(key: str, value, ttl: float = 60, **kwargs) -> CacheEntry:
        return CacheEntry.create(key, value, ttl, clock(), **kwargs)

    return _make


# ============================================================================
# Settings
# ============================================================================


@pytest.fixture
def test_settings(tmp_path):
    """
    Settings pointing the persistent tier at a temporary file.
    """
    return Settings(
        CACHE_PERSISTENT_PATH=str(tmp_path / "cache.db"),
        CACHE_DEFAULT_TTL=30,
        CACHE_MEMORY_MAX_SIZE=100,
        CACHE_JANITOR_INTERVAL=60,
    )


# ============================================================================
# Tiers
# ============================================================================


@pytest.fixture
def memory_tier():
    return MemoryTier(max_size=100)


@pytest.fixture
def persistent_tier(tmp_path, clock):
    tier = PersistentTier(tmp_path / "cache.db", namespace="feed", retention=3600, clock=clock)
    yield tier
    tier.close()


@pytest_asyncio.fixture
async def fake_redis():
    """
    In-process Redis replacement (no server required).
    """
    client = fakeredis.FakeAsyncRedis(decode_responses=True)
    yield client
    await client.flushall()
    await client.aclose()


@pytest_asyncio.fixture
async def shared_tier(fake_redis, test_settings, clock):
    tier = SharedTier(
        RedisClient(test_settings, client=fake_redis),
        prefix="market_cache",
        retention=3600,
        clock=clock,
    )
    await tier.connect()
    yield tier
    await tier.close()


# ============================================================================
# Engine
# ============================================================================


@pytest_asyncio.fixture
async def cache_manager(test_settings, fake_redis, clock):
    """
    Fully wired engine: memory + temporary SQLite + fakeredis, fake clock.
    """
    manager = create_cache_manager(test_settings, redis_client=fake_redis, clock=clock)
    await manager.start()
    yield manager
    await manager.shutdown()
