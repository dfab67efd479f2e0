"""
Structured Logging Module using structlog

This module provides structured logging for the cache engine with:
- Correlation ID injection for request tracing
- Stage identifiers for execution flow
- JSON formatting for log aggregation
- Cache key shortening so long parameterized keys stay readable

Architectural Decision: structlog for production logging
- Context-aware logging with automatic field injection
- JSON output for log aggregation
"""

import logging
import sys
from contextvars import ContextVar
from datetime import datetime, timezone

import structlog
from structlog.types import EventDict, WrappedLogger

from feedcache.core.config.settings import get_settings

# Correlation ID for the logical task currently using the cache
thread_id_ctx: ContextVar[str | None] = ContextVar("thread_id", default=None)

MAX_LOGGED_KEY_LENGTH = 80


def add_thread_id(logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
    """
    Add the correlation ID from the context variable to every log entry.
    """
    thread_id = thread_id_ctx.get()
    if thread_id:
        event_dict["thread_id"] = thread_id
    return event_dict


def add_timestamp(logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
    """Add ISO timestamp to log event."""
    event_dict["timestamp"] = datetime.now(timezone.utc).isoformat()
    return event_dict


def shorten_cache_keys(logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
    """
    Truncate ``cache_key`` fields.

    Keys built from many sorted parameters can run to hundreds of characters;
    the head of the key (namespace and first parameters) is enough to correlate.
    """
    key = event_dict.get("cache_key")
    if isinstance(key, str) and len(key) > MAX_LOGGED_KEY_LENGTH:
        event_dict["cache_key"] = key[:MAX_LOGGED_KEY_LENGTH] + "..."
    return event_dict


def add_log_level_name(logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
    """Convert log level to uppercase."""
    if "level" in event_dict:
        event_dict["level"] = event_dict["level"].upper()
    return event_dict


def setup_logging(log_level: str | None = None, log_format: str | None = None) -> None:
    """
    Setup structured logging with structlog.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_format: Log format ('json' or 'console')
    """
    settings = get_settings()

    log_level = log_level or settings.logging.LOG_LEVEL
    log_format = log_format or settings.logging.LOG_FORMAT

    logging.basicConfig(
        format="%(message)s", stream=sys.stdout, level=getattr(logging, log_level.upper())
    )

    if log_format == "json":
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=True)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            add_thread_id,
            add_timestamp,
            structlog.stdlib.add_log_level,
            add_log_level_name,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            shorten_cache_keys,
            renderer,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """
    Get a structured logger instance.

    Usage:
        logger = get_logger(__name__)
        logger.info("message", key="value", stage="2.0_FRESH_READ")
    """
    return structlog.get_logger(name)


def set_thread_id(thread_id: str) -> None:
    """
    Set the correlation ID for the current task.

    Call this at the start of a unit of work so every cache log line it
    produces can be correlated.
    """
    thread_id_ctx.set(thread_id)


def get_thread_id() -> str | None:
    """Get current correlation ID from context."""
    return thread_id_ctx.get()


def clear_thread_id() -> None:
    """Clear correlation ID from context."""
    thread_id_ctx.set(None)


def log_stage(
    logger: structlog.stdlib.BoundLogger, stage: str, message: str, level: str = "info", **kwargs
) -> None:
    """
    Log a message with stage information.

    Args:
        logger: Logger instance
        stage: Stage identifier (a ``Stage`` member or plain string)
        message: Log message
        level: Log level (debug, info, warning, error, critical)
        **kwargs: Additional fields to log

    Usage:
        log_stage(logger, Stage.FRESH_READ, "Memory tier hit", cache_key="home-feed")
    """
    log_func = getattr(logger, level.lower())
    log_func(message, stage=getattr(stage, "value", stage), **kwargs)
