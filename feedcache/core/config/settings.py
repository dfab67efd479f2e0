"""
Centralized Configuration Module using Pydantic Settings

This module provides type-safe, environment-based configuration for the
feed cache engine. All configuration is centralized here to ensure
consistency across modules.

Architectural Decision: Pydantic Settings for type safety and validation
- Environment variable loading with .env support
- Type validation at startup (fail fast on misconfiguration)
- Easy testing with override mechanisms
"""

from typing import Literal

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from feedcache.core.config.constants import (
    COUNTER_FIELDS,
    DEFAULT_TTL,
    JANITOR_INTERVAL,
    MEMORY_CACHE_MAX_SIZE,
    CacheTier,
)


class RedisSettings(BaseSettings):
    """
    Redis configuration for the shared tier.

    Architectural Decision: Connection pooling for performance
    - Max connections bounded to protect the server
    - Health checks on idle connections
    """

    REDIS_HOST: str = Field(default="localhost", description="Redis server host")
    REDIS_PORT: int = Field(default=6379, description="Redis server port")
    REDIS_DB: int = Field(default=0, description="Redis database number")
    REDIS_PASSWORD: str | None = Field(default=None, description="Redis password (if required)")
    REDIS_MAX_CONNECTIONS: int = Field(default=50, description="Maximum total connections")
    REDIS_SOCKET_TIMEOUT: int = Field(default=5, description="Socket timeout in seconds")
    REDIS_SOCKET_CONNECT_TIMEOUT: int = Field(default=5, description="Connection timeout in seconds")
    REDIS_HEALTH_CHECK_INTERVAL: int = Field(default=30, description="Health check interval in seconds")

    model_config = SettingsConfigDict(env_prefix="", case_sensitive=True)


class CacheSettings(BaseSettings):
    """
    Tiered cache configuration.

    TTLs and intervals are in seconds.
    """

    CACHE_DEFAULT_TTL: float = Field(default=DEFAULT_TTL, description="Default entry TTL (30 minutes)")
    CACHE_MEMORY_MAX_SIZE: int = Field(default=MEMORY_CACHE_MAX_SIZE, description="Memory tier max entries")
    CACHE_PERSISTENT_PATH: str = Field(default=".feedcache/cache.db", description="Persistent tier SQLite file")
    CACHE_PERSISTENT_NAMESPACE: str = Field(default="feed", description="Persistent tier key namespace")
    CACHE_PERSISTENT_RETENTION: float = Field(
        default=86400, description="Seconds an expired persistent row is kept for stale reads"
    )
    CACHE_SHARED_ENABLED: bool = Field(default=True, description="Enable the Redis shared tier")
    CACHE_SHARED_PREFIX: str = Field(default="market_cache", description="Shared tier key prefix")
    CACHE_SHARED_RETENTION: float = Field(
        default=86400, description="Seconds an expired shared row is kept for stale reads"
    )
    CACHE_JANITOR_INTERVAL: float = Field(default=JANITOR_INTERVAL, description="Memory sweep period")
    CACHE_COUNTER_FIELDS: list[str] = Field(
        default=list(COUNTER_FIELDS), description="Record fields reconciled by count overrides"
    )
    CACHE_KIND_TIERS: dict[str, list[CacheTier]] = Field(
        default={"notifications": [CacheTier.MEMORY, CacheTier.PERSISTENT]},
        description="Tiers written for each explicit entry kind (unlisted kinds use every tier)",
    )

    model_config = SettingsConfigDict(env_prefix="", case_sensitive=True)


class LoggingSettings(BaseSettings):
    """
    Logging configuration for structured logging.

    Architectural Decision: structlog for production-grade logging
    """

    LOG_LEVEL: str = Field(default="INFO", description="Logging level")
    LOG_FORMAT: Literal["json", "console"] = Field(default="json", description="Log output format")

    @field_validator("LOG_LEVEL")
    @classmethod
    def validate_log_level(cls, v):
        """Validate log level."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"LOG_LEVEL must be one of {valid_levels}")
        return v.upper()

    model_config = SettingsConfigDict(env_prefix="", case_sensitive=True)


class Settings(BaseSettings):
    """
    Main settings class that aggregates all configuration sections.

    Usage:
        from feedcache.core.config import get_settings

        settings = get_settings()
        redis_host = settings.redis.REDIS_HOST
        ttl = settings.cache.CACHE_DEFAULT_TTL
    """

    # Redis settings
    REDIS_HOST: str = Field(default="localhost", description="Redis server host")
    REDIS_PORT: int = Field(default=6379, description="Redis server port")
    REDIS_DB: int = Field(default=0, description="Redis database number")
    REDIS_PASSWORD: str | None = Field(default=None, description="Redis password (if required)")
    REDIS_MAX_CONNECTIONS: int = Field(default=50, description="Maximum total connections")
    REDIS_SOCKET_TIMEOUT: int = Field(default=5, description="Socket timeout in seconds")
    REDIS_SOCKET_CONNECT_TIMEOUT: int = Field(default=5, description="Connection timeout in seconds")
    REDIS_HEALTH_CHECK_INTERVAL: int = Field(default=30, description="Health check interval in seconds")

    # Cache settings
    ENABLE_CACHING: bool = Field(default=True, description="Master switch for the tiered cache")
    CACHE_DEFAULT_TTL: float = Field(default=DEFAULT_TTL, description="Default entry TTL (30 minutes)")
    CACHE_MEMORY_MAX_SIZE: int = Field(default=MEMORY_CACHE_MAX_SIZE, description="Memory tier max entries")
    CACHE_PERSISTENT_PATH: str = Field(default=".feedcache/cache.db", description="Persistent tier SQLite file")
    CACHE_PERSISTENT_NAMESPACE: str = Field(default="feed", description="Persistent tier key namespace")
    CACHE_PERSISTENT_RETENTION: float = Field(default=86400, description="Expired persistent row retention")
    CACHE_SHARED_ENABLED: bool = Field(default=True, description="Enable the Redis shared tier")
    CACHE_SHARED_PREFIX: str = Field(default="market_cache", description="Shared tier key prefix")
    CACHE_SHARED_RETENTION: float = Field(default=86400, description="Expired shared row retention")
    CACHE_JANITOR_INTERVAL: float = Field(default=JANITOR_INTERVAL, description="Memory sweep period")
    CACHE_COUNTER_FIELDS: list[str] = Field(default=list(COUNTER_FIELDS), description="Counter fields")
    CACHE_KIND_TIERS: dict[str, list[CacheTier]] = Field(
        default={"notifications": [CacheTier.MEMORY, CacheTier.PERSISTENT]},
        description="Tiers written for each explicit entry kind",
    )

    # Logging settings
    LOG_LEVEL: str = Field(default="INFO", description="Logging level")
    LOG_FORMAT: Literal["json", "console"] = Field(default="json", description="Log output format")

    @field_validator("LOG_LEVEL")
    @classmethod
    def validate_log_level(cls, v):
        """Validate log level."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"LOG_LEVEL must be one of {valid_levels}")
        return v.upper()

    @model_validator(mode="after")
    def validate_cache_bounds(self):
        """Reject sizes and periods that would disable a tier by accident."""
        if self.CACHE_MEMORY_MAX_SIZE < 1:
            raise ValueError("CACHE_MEMORY_MAX_SIZE must be at least 1")
        if self.CACHE_JANITOR_INTERVAL <= 0:
            raise ValueError("CACHE_JANITOR_INTERVAL must be positive")
        if self.CACHE_DEFAULT_TTL < 0:
            raise ValueError("CACHE_DEFAULT_TTL must not be negative")
        return self

    # Nested configuration objects
    @property
    def redis(self) -> "RedisSettings":
        """Get Redis settings."""
        return RedisSettings(
            REDIS_HOST=self.REDIS_HOST,
            REDIS_PORT=self.REDIS_PORT,
            REDIS_DB=self.REDIS_DB,
            REDIS_PASSWORD=self.REDIS_PASSWORD,
            REDIS_MAX_CONNECTIONS=self.REDIS_MAX_CONNECTIONS,
            REDIS_SOCKET_TIMEOUT=self.REDIS_SOCKET_TIMEOUT,
            REDIS_SOCKET_CONNECT_TIMEOUT=self.REDIS_SOCKET_CONNECT_TIMEOUT,
            REDIS_HEALTH_CHECK_INTERVAL=self.REDIS_HEALTH_CHECK_INTERVAL,
        )

    @property
    def cache(self) -> "CacheSettings":
        """Get cache settings."""
        return CacheSettings(
            CACHE_DEFAULT_TTL=self.CACHE_DEFAULT_TTL,
            CACHE_MEMORY_MAX_SIZE=self.CACHE_MEMORY_MAX_SIZE,
            CACHE_PERSISTENT_PATH=self.CACHE_PERSISTENT_PATH,
            CACHE_PERSISTENT_NAMESPACE=self.CACHE_PERSISTENT_NAMESPACE,
            CACHE_PERSISTENT_RETENTION=self.CACHE_PERSISTENT_RETENTION,
            CACHE_SHARED_ENABLED=self.CACHE_SHARED_ENABLED,
            CACHE_SHARED_PREFIX=self.CACHE_SHARED_PREFIX,
            CACHE_SHARED_RETENTION=self.CACHE_SHARED_RETENTION,
            CACHE_JANITOR_INTERVAL=self.CACHE_JANITOR_INTERVAL,
            CACHE_COUNTER_FIELDS=self.CACHE_COUNTER_FIELDS,
            CACHE_KIND_TIERS=self.CACHE_KIND_TIERS,
        )

    @property
    def logging(self) -> "LoggingSettings":
        """Get logging settings."""
        return LoggingSettings(LOG_LEVEL=self.LOG_LEVEL, LOG_FORMAT=self.LOG_FORMAT)

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",  # Ignore extra environment variables
    )


# Global settings instance (singleton pattern)
_settings: Settings | None = None


def get_settings() -> Settings:
    """
    Get the global settings instance (singleton).

    Returns:
        Settings: Global settings instance
    """
    global _settings

    if _settings is None:
        _settings = Settings()

    return _settings


def reload_settings() -> Settings:
    """
    Reload settings (useful for testing).

    Returns:
        Settings: New settings instance
    """
    global _settings
    _settings = Settings()
    return _settings
