"""
Unit Tests for SharedTier

Tests the Redis row layout, retention, prefix operations, explicit cleanup
and failure isolation. Runs against fakeredis.
"""

from unittest.mock import AsyncMock

import orjson
import pytest

from feedcache.core.config.constants import CacheTier
from feedcache.core.exceptions import CacheKeyError
from feedcache.core.interfaces import CacheTierBackend
from feedcache.infrastructure.cache.redis_client import RedisClient
from feedcache.infrastructure.cache.shared_tier import SharedTier, escape_glob


@pytest.mark.unit
class TestSharedTierStorage:
    """Test reads and writes."""

    @pytest.mark.asyncio
    async def test_satisfies_tier_protocol(self, shared_tier):
        assert isinstance(shared_tier, CacheTierBackend)
        assert shared_tier.tier == CacheTier.SHARED

    @pytest.mark.asyncio
    async def test_round_trip_keeps_metadata(self, shared_tier, make_entry):
        entry = make_entry("crypto-top-limit:5", [{"symbol": "BTC"}], ttl=15, kind="assets", source="market-service")

        assert await shared_tier.set(entry.key, entry) is True

        assert await shared_tier.get(entry.key) == entry

    @pytest.mark.asyncio
    async def test_row_layout(self, shared_tier, fake_redis, make_entry):
        entry = make_entry("crypto-top-limit:5", [1], ttl=15, source="market-service")
        await shared_tier.set(entry.key, entry)

        row = orjson.loads(await fake_redis.get("market_cache:crypto-top-limit:5"))

        assert row == {
            "cache_key": "crypto-top-limit:5",
            "data": [1],
            "source": "market-service",
            "expires_at": entry.expires_at,
            "stored_at": entry.stored_at,
            "kind": None,
        }

    @pytest.mark.asyncio
    async def test_row_outlives_freshness_by_retention(self, shared_tier, fake_redis, make_entry):
        entry = make_entry("k", 1, ttl=15)
        await shared_tier.set("k", entry)

        ttl = await fake_redis.ttl("market_cache:k")

        assert 3600 < ttl <= 3615

    @pytest.mark.asyncio
    async def test_get_returns_expired_rows(self, shared_tier, make_entry, clock):
        entry = make_entry("k", 1, ttl=1)
        await shared_tier.set("k", entry)

        clock.advance(100)

        assert await shared_tier.get("k") == entry

    @pytest.mark.asyncio
    async def test_write_replaces_existing_row(self, shared_tier, make_entry):
        await shared_tier.set("k", make_entry("k", "old"))
        await shared_tier.set("k", make_entry("k", "new"))

        assert (await shared_tier.get("k")).value == "new"
        assert await shared_tier.keys() == ["k"]


@pytest.mark.unit
class TestSharedTierDeletion:
    """Test deletion and cleanup."""

    @pytest.mark.asyncio
    async def test_delete(self, shared_tier, make_entry):
        await shared_tier.set("k", make_entry("k", 1))

        assert await shared_tier.delete("k") is True
        assert await shared_tier.delete("k") is False

    @pytest.mark.asyncio
    async def test_delete_by_prefix(self, shared_tier, fake_redis, make_entry):
        for key in ("profile-u1-posts", "profile-u1-likes", "profile-u2-posts"):
            await shared_tier.set(key, make_entry(key, 1))
        await fake_redis.set("other:profile-u1-posts", "untouched")

        assert await shared_tier.delete_by_prefix("profile-u1") == 2
        assert await shared_tier.keys() == ["profile-u2-posts"]
        assert await fake_redis.get("other:profile-u1-posts") == "untouched"

    @pytest.mark.asyncio
    async def test_delete_by_prefix_treats_glob_literally(self, shared_tier, make_entry):
        await shared_tier.set("a*b", make_entry("a*b", 1))
        await shared_tier.set("axb", make_entry("axb", 1))

        assert await shared_tier.delete_by_prefix("a*") == 1
        assert await shared_tier.keys() == ["axb"]

    @pytest.mark.asyncio
    async def test_delete_by_predicate(self, shared_tier, make_entry):
        for key in ("tweet-detail-id:t1", "home-feed-limit:10"):
            await shared_tier.set(key, make_entry(key, 1))

        assert await shared_tier.delete_by_predicate(lambda key: "t1" in key) == 1
        assert await shared_tier.delete_by_predicate(lambda key: False) == 0
        assert await shared_tier.keys() == ["home-feed-limit:10"]

    @pytest.mark.asyncio
    async def test_purge_expired_is_explicit_cleanup(self, shared_tier, make_entry, clock):
        await shared_tier.set("short", make_entry("short", 1, ttl=5))
        await shared_tier.set("long", make_entry("long", 1, ttl=500))

        assert await shared_tier.purge_expired(clock.advance(10)) == 1
        assert await shared_tier.keys() == ["long"]

    def test_escape_glob(self):
        assert escape_glob("a*b?[c]") == r"a\*b\?\[c\]"


@pytest.mark.unit
class TestSharedTierFailures:
    """Test that Redis failures never reach the caller."""

    @pytest.mark.asyncio
    async def test_unconnected_client_reads_as_miss(self, test_settings, make_entry, clock):
        tier = SharedTier(RedisClient(test_settings), clock=clock)

        assert await tier.get("k") is None
        assert await tier.set("k", make_entry("k", 1)) is False
        assert await tier.delete_by_prefix("k") == 0
        assert await tier.keys() == []

    @pytest.mark.asyncio
    async def test_redis_errors_read_as_miss(self, make_entry, clock):
        client = AsyncMock(spec=RedisClient)
        client.get.side_effect = CacheKeyError("Redis GET failed")
        client.delete.side_effect = CacheKeyError("Redis DELETE failed")
        tier = SharedTier(client, clock=clock)

        assert await tier.get("k") is None
        assert await tier.set("k", make_entry("k", 1)) is False

    @pytest.mark.asyncio
    async def test_malformed_row_reads_as_miss(self, shared_tier, fake_redis):
        await fake_redis.set("market_cache:bad", "{not json")

        assert await shared_tier.get("bad") is None

    @pytest.mark.asyncio
    async def test_health_check(self, shared_tier):
        health = await shared_tier.health_check()

        assert health["status"] == "healthy"
        assert health["connected"] is True
