"""
Unit Tests for Core Exceptions

Tests the exception hierarchy and its serialization helpers.
"""

import pytest

from feedcache.core.exceptions import (
    CacheConnectionError,
    CacheError,
    CacheKeyError,
    CoalescedFetchFailed,
    ConfigurationError,
    FeedCacheError,
    FetchFailed,
    TierIOError,
)


@pytest.mark.unit
class TestFeedCacheError:
    """Test the base exception class."""

    def test_base_error_creation(self):
        error = FeedCacheError("Test message")
        assert str(error) == "Test message"

    def test_base_error_default_values(self):
        error = FeedCacheError("Test")
        assert error.details == {}
        assert error.thread_id is None

    def test_details_are_copied(self):
        """Test that later changes to the caller's dict do not leak into the error."""
        details = {"cache_key": "home-feed-limit:10"}
        error = FeedCacheError("Test", details=details)

        details["cache_key"] = "changed"

        assert error.details["cache_key"] == "home-feed-limit:10"

    def test_to_dict(self):
        error = FetchFailed("boom", thread_id="t-1", details={"cache_key": "k"})

        assert error.to_dict() == {
            "error_type": "FetchFailed",
            "message": "boom",
            "thread_id": "t-1",
            "details": {"cache_key": "k"},
        }

    def test_from_exception_wraps_original(self):
        original = ConnectionRefusedError("refused")

        error = CacheConnectionError.from_exception(original, host="localhost")

        assert isinstance(error, CacheConnectionError)
        assert error.message == "refused"
        assert error.details["original_error"] == "ConnectionRefusedError"
        assert error.details["host"] == "localhost"

    def test_from_exception_keeps_explicit_message(self):
        error = FetchFailed.from_exception(
            TimeoutError("slow"), message="Fetch failed for k", thread_id="t-1", cache_key="k"
        )

        assert error.message == "Fetch failed for k"
        assert error.thread_id == "t-1"
        assert error.details == {
            "cache_key": "k",
            "original_error": "TimeoutError",
            "original_message": "slow",
        }


@pytest.mark.unit
class TestExceptionHierarchy:
    """Test that callers can catch at the right granularity."""

    @pytest.mark.parametrize(
        "error_class",
        [CacheConnectionError, CacheKeyError, TierIOError, FetchFailed, CoalescedFetchFailed],
    )
    def test_cache_errors_share_a_base(self, error_class):
        assert issubclass(error_class, CacheError)
        assert issubclass(error_class, FeedCacheError)

    def test_coalesced_failure_is_a_fetch_failure(self):
        """Test that one except clause handles owners and waiters alike."""
        with pytest.raises(FetchFailed):
            raise CoalescedFetchFailed("joined fetch failed")

    def test_configuration_error_is_not_a_cache_error(self):
        assert issubclass(ConfigurationError, FeedCacheError)
        assert not issubclass(ConfigurationError, CacheError)
