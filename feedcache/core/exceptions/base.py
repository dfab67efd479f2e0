"""
Base Exception Class

Root of the feed cache error hierarchy. Themed subclasses live in sibling
modules.
"""

from typing import Any


class FeedCacheError(Exception):
    """
    Base exception for all feed cache errors.

    Attributes:
        message: Human-readable description
        thread_id: Correlation ID of the task that hit the error (if set)
        details: Structured context merged into log records
    """

    def __init__(
        self, message: str, thread_id: str | None = None, details: dict[str, Any] | None = None
    ):
        super().__init__(message)
        self.message = message
        self.thread_id = thread_id
        self.details = dict(details or {})

    def to_dict(self) -> dict[str, Any]:
        """Flatten into log-ready fields (``error_type``, ``message``, ``thread_id``, ``details``)."""
        return {
            "error_type": type(self).__name__,
            "message": self.message,
            "thread_id": self.thread_id,
            "details": self.details,
        }

    @classmethod
    def from_exception(
        cls, exc: BaseException, message: str | None = None, thread_id: str | None = None, **details
    ) -> "FeedCacheError":
        """
        Wrap a tier or fetch exception, recording its type and text in ``details``.

        The caller chains the cause itself (``raise ... from exc``).
        """
        details.setdefault("original_error", type(exc).__name__)
        details.setdefault("original_message", str(exc))
        return cls(message or str(exc), thread_id=thread_id, details=details)


class ConfigurationError(FeedCacheError):
    """Raised when configuration is invalid or missing."""
