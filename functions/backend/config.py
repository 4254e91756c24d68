"""
Configuration and settings for the seismic monitor backend.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Environment-backed settings for the FastAPI service."""

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    api_prefix: str = Field(default="/api")

    # Database (Postgres expected) for alert preferences
    database_url: Optional[str] = Field(default=None, env="DATABASE_URL")

    # Cache (Redis)
    redis_url: Optional[str] = Field(default=None, env="REDIS_URL")
    redis_socket_timeout_seconds: float = Field(
        default=5.0, env="REDIS_SOCKET_TIMEOUT_SECONDS"
    )

    # LLM / Gemini
    gemini_api_key: Optional[str] = Field(default=None, env="GEMINI_API_KEY")
    gemini_model: str = Field(default="gemini-2.0-flash", env="GEMINI_MODEL")

    # USGS feed
    usgs_feed_url: str = Field(
        default="https://earthquake.usgs.gov/fdsnws/event/1/query",
        env="USGS_FEED_URL",
    )
    request_timeout_seconds: float = Field(
        default=30.0, env="REQUEST_TIMEOUT_SECONDS"
    )

    # Cache lifetimes
    feed_cache_ttl_seconds: int = Field(default=60, env="FEED_CACHE_TTL_SECONDS")
    analysis_cache_ttl_seconds: int = Field(
        default=3600, env="ANALYSIS_CACHE_TTL_SECONDS"
    )

    # Development toggles
    use_in_memory_backends: bool = Field(
        default=False, env="USE_IN_MEMORY_BACKENDS"
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return cached settings instance."""
    return Settings()
