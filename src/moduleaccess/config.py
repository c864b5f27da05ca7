"""Configuration contract for the access resolution engine.

This module provides a Pydantic-validated configuration model for the
façade, the snapshot cache and logging.

Embedding services build an ``AccessConfig`` directly or call
``load_access_config_from_env()``. Direct os.environ/os.getenv usage is
forbidden elsewhere in the package for any setting defined here.
"""

from __future__ import annotations

from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from .hierarchy.constants import AccessMode


class LogLevel(str, Enum):
    """Standard log levels."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class AccessConfig(BaseModel):
    """Settings for the access façade, its cache and its logging."""

    # Logging
    log_level: LogLevel = Field(
        default=LogLevel.INFO,
        description="Logging level for the engine",
    )
    log_json: bool = Field(
        default=False,
        description="Use JSON log format (default: plain text)",
    )

    # Cache
    redis_url: Optional[str] = Field(
        default=None,
        description="Redis URL for a shared snapshot cache (None = in-process cache)",
    )
    cache_ttl_seconds: int = Field(
        default=300,
        ge=0,
        description="Lifetime of hierarchy, grant and requirement snapshots (5 minutes)",
    )
    cache_stale_grace_seconds: int = Field(
        default=60,
        ge=0,
        description="How long an expired snapshot may still be served if a refresh fails",
    )
    cache_key_prefix: str = Field(
        default="moduleaccess",
        description="Namespace for shared cache keys",
    )

    # Resolution
    default_mode: AccessMode = Field(
        default=AccessMode.BOTH,
        description="Mode used by check() when the caller passes none",
    )
    full_access_roles: list[str] = Field(
        default_factory=list,
        description="Role ids that bypass all resolution (super-admin roles)",
    )

    @field_validator("redis_url")
    @classmethod
    def validate_redis_url(cls, v: Optional[str]) -> Optional[str]:
        """Validate Redis URL format."""
        if v is None:
            return v
        if not v.startswith(("redis://", "rediss://", "unix://")):
            raise ValueError("Redis URL must start with redis://, rediss://, or unix://")
        return v

    @field_validator("log_level", mode="before")
    @classmethod
    def validate_log_level(cls, v: str | LogLevel) -> LogLevel:
        """Convert string to LogLevel enum."""
        if isinstance(v, LogLevel):
            return v
        if isinstance(v, str):
            try:
                return LogLevel[v.upper()]
            except KeyError:
                raise ValueError(f"Invalid log level: {v}. Must be one of {[e.value for e in LogLevel]}")
        raise ValueError(f"Log level must be string or LogLevel enum, got {type(v)}")

    @field_validator("default_mode", mode="before")
    @classmethod
    def validate_default_mode(cls, v: str | AccessMode) -> AccessMode:
        if isinstance(v, AccessMode):
            return v
        try:
            return AccessMode(str(v).lower())
        except ValueError:
            raise ValueError(f"Invalid access mode: {v}. Must be one of {[m.value for m in AccessMode]}")

    model_config = {
        "use_enum_values": True,
        "extra": "forbid",  # Prevent accidental extra fields
    }


def load_access_config_from_env() -> AccessConfig:
    """Load engine configuration from environment variables.

    This is the ONLY place where os.getenv is allowed for these settings.

    Environment variables:
    - LOG_LEVEL: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    - LOG_JSON: Use JSON log format (true/false, default: false)
    - REDIS_URL: Redis connection URL for the shared snapshot cache
    - ACCESS_CACHE_TTL: Snapshot TTL in seconds (default: 300)
    - ACCESS_CACHE_STALE_GRACE: Stale fallback window in seconds (default: 60)
    - ACCESS_CACHE_PREFIX: Cache key namespace (default: moduleaccess)
    - ACCESS_DEFAULT_MODE: cascade_only | requirement_only | either | both
    - ACCESS_FULL_ACCESS_ROLES: Comma-separated role ids with full access

    Returns:
        AccessConfig instance with values from environment or defaults.
    """
    import os

    roles_raw = os.getenv("ACCESS_FULL_ACCESS_ROLES", "")
    full_access_roles = [r.strip() for r in roles_raw.split(",") if r.strip()]

    return AccessConfig(
        log_level=os.getenv("LOG_LEVEL", "INFO"),
        log_json=os.getenv("LOG_JSON", "false").lower() in ("true", "1", "yes"),
        redis_url=os.getenv("REDIS_URL"),
        cache_ttl_seconds=int(os.getenv("ACCESS_CACHE_TTL", "300")),
        cache_stale_grace_seconds=int(os.getenv("ACCESS_CACHE_STALE_GRACE", "60")),
        cache_key_prefix=os.getenv("ACCESS_CACHE_PREFIX", "moduleaccess"),
        default_mode=os.getenv("ACCESS_DEFAULT_MODE", AccessMode.BOTH.value),
        full_access_roles=full_access_roles,
    )


__all__ = [
    "AccessConfig",
    "LogLevel",
    "load_access_config_from_env",
]
