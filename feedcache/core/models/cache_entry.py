"""
Cache entry and key models shared by every tier.
"""

from typing import Any

from pydantic import BaseModel, Field, model_validator


class CacheEntry(BaseModel):
    """
    The unit stored in any tier.

    An entry is fresh while ``now < expires_at``; any entry at all,
    fresh or not, is acceptable for a stale read.
    """
    model_config = {"frozen": True}

    key: str = Field(..., min_length=1, description="Opaque cache key")
    value: Any = Field(..., description="JSON-serializable payload")
    stored_at: float = Field(..., description="Write time (epoch seconds)")
    expires_at: float = Field(..., description="stored_at + ttl (epoch seconds)")
    kind: str | None = Field(default=None, description="Explicit type tag set by the writer")
    source: str | None = Field(default=None, description="Free-form provenance tag")

    @model_validator(mode="after")
    def check_expiry_order(self):
        if self.expires_at < self.stored_at:
            raise ValueError("expires_at must not precede stored_at")
        return self

    @classmethod
    def create(
        cls,
        key: str,
        value: Any,
        ttl: float,
        now: float,
        kind: str | None = None,
        source: str | None = None,
    ) -> "CacheEntry":
        """Build an entry stored at ``now`` that expires ``ttl`` seconds later."""
        return cls(
            key=key,
            value=value,
            stored_at=now,
            expires_at=now + max(ttl, 0.0),
            kind=kind,
            source=source,
        )

    def is_fresh(self, now: float) -> bool:
        return now < self.expires_at

    def remaining_ttl(self, now: float) -> float:
        return max(self.expires_at - now, 0.0)

    def promoted(self, now: float) -> "CacheEntry":
        """
        Copy for a cheaper tier after a hit in a slower one.

        The copy is stored now but keeps the original expiry, so promotion
        never extends the freshness window.
        """
        return self.model_copy(update={"stored_at": min(now, self.expires_at)})

    def with_value(self, value: Any) -> "CacheEntry":
        """Copy with a new payload and unchanged timestamps."""
        return self.model_copy(update={"value": value})


class CountOverride(BaseModel):
    """
    Counter snapshot for one record, newer than what stale cached
    collections may embed.
    """
    model_config = {"frozen": True}

    record_id: str
    counts: dict[str, int] = Field(default_factory=dict)
    updated_at: float


def _format_params(params: dict[str, Any]) -> str:
    return "-".join(f"{name}:{params[name]}" for name in sorted(params))


def build_cache_key(namespace: str, **params: Any) -> str:
    """
    Join a namespace with its parameters sorted by name.

    Equivalent parameter sets map to the same key regardless of order:

        >>> build_cache_key("home-feed", offset=0, limit=10)
        'home-feed-limit:10-offset:0'
    """
    suffix = _format_params(params)
    return f"{namespace}-{suffix}" if suffix else namespace


def build_profile_cache_key(user_id: str, data_type: str, **params: Any) -> str:
    """
    Key for profile content, scoped by user so a prefix clears the whole profile.

        >>> build_profile_cache_key("u1", "posts", limit=20)
        'profile-u1-posts-limit:20'
    """
    return build_cache_key(f"profile-{user_id}-{data_type}", **params)
