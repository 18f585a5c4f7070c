"""
Shared configuration management for the console data-sync layer.
"""

from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class BaseConfig(BaseSettings):
    """Base configuration class with common settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="CONSOLE_SYNC_",
        case_sensitive=False,
        extra="allow"
    )

    # Environment
    env: str = Field(default="local")
    log_level: str = Field(default="info")

    # Remote API
    api_base_url: str = Field(default="http://localhost:5000/api")
    request_timeout: float = Field(default=10.0)


class SyncSettings(BaseConfig):
    """Settings for the fetch/cache engine and mutation executor."""

    # Cache keys: namespace:version:METHOD:url[:body_hash]
    cache_namespace: str = Field(default="console")
    cache_version: str = Field(default="v1")
    default_cache_ttl: float = Field(default=300.0)

    # UX floor applied before terminal state transitions (seconds)
    min_loading_duration: float = Field(default=0.4)

    # Session storage
    storage_backend: str = Field(default="memory")
    storage_quota_bytes: int = Field(default=5 * 1024 * 1024)
    redis_url: str = Field(default="redis://localhost:6379/0")
    session_ttl: Optional[int] = Field(default=8 * 60 * 60)

    # Observability
    enable_metrics: bool = Field(default=False)


def get_settings(**overrides) -> SyncSettings:
    """Get sync-layer settings, environment first then explicit overrides."""
    return SyncSettings(**overrides)
