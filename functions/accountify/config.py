"""
Configuration and settings for the Accountify backend.
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

    # Database (Postgres expected, any SQLAlchemy URL works)
    database_url: Optional[str] = Field(default=None)

    # S3-compatible storage
    storage_bucket: Optional[str] = Field(default=None)
    storage_endpoint: Optional[str] = Field(default=None)
    storage_region: Optional[str] = Field(default=None)
    aws_access_key_id: Optional[str] = Field(default=None)
    aws_secret_access_key: Optional[str] = Field(default=None)

    # Realtime change feed (Redis pub/sub)
    redis_url: Optional[str] = Field(default=None)
    realtime_channel: str = Field(default="accountify:changes")

    # Auth
    jwt_secret: str = Field(default="accountify-dev-secret-change-me-in-production")
    jwt_audience: str = Field(default="authenticated")
    jwt_expires_seconds: int = Field(default=3600)

    # HTTP
    cors_origins: list[str] = Field(default_factory=lambda: ["*"])
    max_upload_bytes: int = Field(default=25 * 1024 * 1024)

    log_level: str = Field(default="INFO")

    # Development toggles
    use_in_memory_backends: bool = Field(
        default=False,
        validation_alias="ACCOUNTIFY_USE_IN_MEMORY_BACKENDS",
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return cached settings instance."""
    return Settings()
