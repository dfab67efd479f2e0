"""
Unit Tests for RedisClient

Tests connection handling, command delegation and error mapping against
fakeredis.
"""

from unittest.mock import AsyncMock

import pytest
import pytest_asyncio
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import ResponseError

from feedcache.core.exceptions import CacheConnectionError, CacheKeyError
from feedcache.infrastructure.cache.redis_client import OperationExecutor, RedisClient


@pytest_asyncio.fixture
async def redis_client(test_settings, fake_redis):
    client = RedisClient(test_settings, client=fake_redis)
    await client.connect()
    yield client
    await client.disconnect()


@pytest.mark.unit
class TestRedisClientConnection:
    """Test connection lifecycle."""

    @pytest.mark.asyncio
    async def test_connect_with_injected_client(self, redis_client):
        assert redis_client.is_connected()
        assert await redis_client.ping() is True

    @pytest.mark.asyncio
    async def test_commands_before_connect_raise(self, test_settings):
        client = RedisClient(test_settings)

        with pytest.raises(CacheConnectionError):
            await client.get("k")

    @pytest.mark.asyncio
    async def test_connect_failure_is_mapped(self, test_settings):
        broken = AsyncMock()
        broken.ping.side_effect = RedisConnectionError("refused")
        client = RedisClient(test_settings, client=broken)

        with pytest.raises(CacheConnectionError) as exc_info:
            await client.connect()

        assert exc_info.value.details["host"] == test_settings.redis.REDIS_HOST
        assert not client.is_connected()

    @pytest.mark.asyncio
    async def test_disconnect_keeps_injected_client_open(self, test_settings, fake_redis):
        client = RedisClient(test_settings, client=fake_redis)
        await client.connect()

        await client.disconnect()

        assert not client.is_connected()
        assert await fake_redis.ping() is True


@pytest.mark.unit
class TestRedisClientCommands:
    """Test command delegation."""

    @pytest.mark.asyncio
    async def test_set_get_delete(self, redis_client, fake_redis):
        assert await redis_client.set("k", "v", ttl=60) is True
        assert await redis_client.get("k") == "v"
        assert 0 < await fake_redis.ttl("k") <= 60
        assert await redis_client.exists("k") == 1

        assert await redis_client.delete("k") == 1
        assert await redis_client.get("k") is None

    @pytest.mark.asyncio
    async def test_delete_without_keys(self, redis_client):
        assert await redis_client.delete() == 0

    @pytest.mark.asyncio
    async def test_scan_keys(self, redis_client):
        for key in ("market_cache:a", "market_cache:b", "other:c"):
            await redis_client.set(key, "1")

        keys = await redis_client.scan_keys("market_cache:*")

        assert sorted(keys) == ["market_cache:a", "market_cache:b"]

    @pytest.mark.asyncio
    async def test_health_check(self, redis_client):
        health = await redis_client.health_check()

        assert health["status"] == "healthy"
        assert health["ping_latency_ms"] is not None

    @pytest.mark.asyncio
    async def test_health_check_when_disconnected(self, test_settings):
        health = await RedisClient(test_settings).health_check()

        assert health["status"] == "unhealthy"
        assert health["error"] == "Client not connected"


@pytest.mark.unit
class TestOperationExecutorErrors:
    """Test that Redis errors surface as CacheKeyError."""

    @pytest.mark.asyncio
    async def test_get_error(self):
        raw = AsyncMock()
        raw.get.side_effect = ResponseError("WRONGTYPE")

        with pytest.raises(CacheKeyError) as exc_info:
            await OperationExecutor(raw).get("k")

        assert exc_info.value.details == {"key": "k"}

    @pytest.mark.asyncio
    async def test_set_error(self):
        raw = AsyncMock()
        raw.set.side_effect = ResponseError("OOM")

        with pytest.raises(CacheKeyError):
            await OperationExecutor(raw).set("k", "v", ttl=1)
