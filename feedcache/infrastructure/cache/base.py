"""
Shared helpers for tier implementations.
"""

from typing import Any

import structlog

from feedcache.core.config.constants import CacheTier, Stage
from feedcache.core.exceptions import TierIOError


def report_tier_failure(
    logger: structlog.stdlib.BoundLogger,
    tier: CacheTier,
    operation: str,
    exc: BaseException,
    cache_key: str | None = None,
    **details: Any,
) -> TierIOError:
    """
    Log a recovered tier I/O failure as a structured warning.

    The returned TierIOError is never raised; tiers report the failure to
    their caller as a miss (``None`` / ``False`` / ``0``).
    """
    error = TierIOError.from_exception(
        exc,
        message=f"{tier.value} tier {operation} failed",
        tier=tier.value,
        operation=operation,
        cache_key=cache_key,
        **details,
    )
    logger.warning(
        error.message,
        stage=Stage.TIER_IO.value,
        cache_key=cache_key,
        **error.to_dict(),
    )
    return error
