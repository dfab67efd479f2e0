"""
Unit Tests for CacheJanitor

Tests the memory sweep and the background loop lifecycle.
"""

import asyncio
from unittest.mock import AsyncMock

import pytest

from feedcache.infrastructure.cache.janitor import CacheJanitor


@pytest.mark.unit
class TestCacheJanitor:
    """Test suite for CacheJanitor."""

    def test_rejects_non_positive_interval(self, memory_tier):
        with pytest.raises(ValueError):
            CacheJanitor(memory_tier, interval=0)

    @pytest.mark.asyncio
    async def test_sweep_removes_only_expired_memory_entries(
        self, memory_tier, persistent_tier, make_entry, clock
    ):
        await memory_tier.set("short", make_entry("short", 1, ttl=5))
        await memory_tier.set("long", make_entry("long", 1, ttl=500))
        await persistent_tier.set("short", make_entry("short", 1, ttl=5))
        janitor = CacheJanitor(memory_tier, interval=60, clock=clock)
        clock.advance(10)

        assert await janitor.sweep() == 1

        assert await memory_tier.keys() == ["long"]
        assert await persistent_tier.get("short") is not None

    @pytest.mark.asyncio
    async def test_start_and_stop(self, memory_tier, clock):
        janitor = CacheJanitor(memory_tier, interval=0.01, clock=clock)

        janitor.start()
        assert janitor.is_running
        await asyncio.sleep(0.05)
        await janitor.stop()

        assert not janitor.is_running

    @pytest.mark.asyncio
    async def test_loop_sweeps_periodically(self, memory_tier, make_entry, clock):
        await memory_tier.set("k", make_entry("k", 1, ttl=1))
        clock.advance(2)
        janitor = CacheJanitor(memory_tier, interval=0.01, clock=clock)

        janitor.start()
        await asyncio.sleep(0.05)
        await janitor.stop()

        assert memory_tier.get_size() == 0

    @pytest.mark.asyncio
    async def test_loop_survives_sweep_errors(self, memory_tier, clock):
        janitor = CacheJanitor(memory_tier, interval=0.01, clock=clock)
        memory_tier.purge_expired = AsyncMock(side_effect=[RuntimeError("boom"), 0, 0, 0, 0, 0, 0, 0, 0, 0])

        janitor.start()
        await asyncio.sleep(0.05)
        assert janitor.is_running
        await janitor.stop()

        assert memory_tier.purge_expired.await_count >= 2

    @pytest.mark.asyncio
    async def test_start_is_idempotent(self, memory_tier, clock):
        janitor = CacheJanitor(memory_tier, interval=60, clock=clock)

        janitor.start()
        task = janitor._task
        janitor.start()

        assert janitor._task is task
        await janitor.stop()
