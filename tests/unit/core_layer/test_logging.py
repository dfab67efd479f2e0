"""
Unit Tests for Logging Module

Tests logger creation, correlation context, processors and log_stage.
"""

from unittest.mock import MagicMock

import pytest

from feedcache.core.config.constants import Stage
from feedcache.core.logging.logger import (
    MAX_LOGGED_KEY_LENGTH,
    add_log_level_name,
    add_thread_id,
    clear_thread_id,
    get_logger,
    get_thread_id,
    log_stage,
    set_thread_id,
    shorten_cache_keys,
)


@pytest.mark.unit
class TestLoggerCreation:
    """Test logger creation."""

    def test_get_logger_returns_logger_instance(self):
        logger = get_logger(__name__)
        assert hasattr(logger, "info")
        assert hasattr(logger, "warning")


@pytest.mark.unit
class TestThreadContext:
    """Test correlation ID handling."""

    def test_set_and_get_thread_id(self):
        set_thread_id("req-42")
        try:
            assert get_thread_id() == "req-42"
        finally:
            clear_thread_id()

    def test_clear_thread_id(self):
        set_thread_id("req-42")
        clear_thread_id()
        assert get_thread_id() is None

    def test_add_thread_id_processor(self):
        set_thread_id("req-7")
        try:
            event = add_thread_id(None, "info", {"event": "x"})
        finally:
            clear_thread_id()

        assert event["thread_id"] == "req-7"

    def test_add_thread_id_skips_when_unset(self):
        clear_thread_id()
        event = add_thread_id(None, "info", {"event": "x"})
        assert "thread_id" not in event


@pytest.mark.unit
class TestProcessors:
    """Test custom structlog processors."""

    def test_long_cache_keys_are_shortened(self):
        key = "home-feed-" + "-".join(f"p{i}:{i}" for i in range(40))

        event = shorten_cache_keys(None, "info", {"cache_key": key})

        assert event["cache_key"].endswith("...")
        assert len(event["cache_key"]) == MAX_LOGGED_KEY_LENGTH + 3

    def test_short_cache_keys_are_untouched(self):
        event = shorten_cache_keys(None, "info", {"cache_key": "home-feed-limit:10"})
        assert event["cache_key"] == "home-feed-limit:10"

    def test_level_is_upper_cased(self):
        event = add_log_level_name(None, "info", {"level": "warning"})
        assert event["level"] == "WARNING"


@pytest.mark.unit
class TestLogStage:
    """Test stage-tagged logging."""

    def test_log_stage_uses_stage_value(self):
        logger = MagicMock()

        log_stage(logger, Stage.FRESH_READ, "Memory tier hit", cache_key="k")

        logger.info.assert_called_once_with(
            "Memory tier hit", stage=Stage.FRESH_READ.value, cache_key="k"
        )

    def test_log_stage_honours_level(self):
        logger = MagicMock()

        log_stage(logger, "custom", "Stale entry served", level="WARNING")

        logger.warning.assert_called_once_with("Stale entry served", stage="custom")
