"""
Application configuration using Pydantic settings.

Configuration is loaded from environment variables (prefixed with S3SH_)
and an optional .env file. Credentials are not configured here: they come
from the standard AWS provider chain (environment, shared credentials file,
instance role) via boto3.

Resolution order for region and profile is:
    1. Explicit command-line flag
    2. S3SH_* environment variables / .env
    3. boto3's own chain (AWS_REGION, AWS_PROFILE, ~/.aws/config)
"""

from functools import lru_cache
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from ..core.upload.pipeline import DEFAULT_CHUNK_SIZE


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    All settings can be overridden via environment variables, e.g.
    S3SH_REGION=eu-west-1 or S3SH_CHUNK_SIZE=16777216.
    """

    # Remote service
    region: Optional[str] = Field(
        default=None,
        description="Region to use when no --region flag is given. Falls back to boto3's chain."
    )
    profile: Optional[str] = Field(
        default=None,
        description="Named profile from the shared AWS config files."
    )
    endpoint_url: Optional[str] = Field(
        default=None,
        description="Custom endpoint for S3-compatible services (MinIO, R2, Ceph)."
    )
    mock_mode: bool = Field(
        default=False,
        description="Use an in-memory store instead of a real service. For local development."
    )

    # Upload behaviour
    chunk_size: int = Field(
        default=DEFAULT_CHUNK_SIZE,
        description="Bytes read from the source file per chunk. The S3 client combines small chunks into valid parts."
    )

    # Restore behaviour
    restore_days: int = Field(
        default=1,
        description="Days a restored archive copy stays available."
    )
    restore_tier: str = Field(
        default="Standard",
        description="Retrieval tier for restores (Standard, Bulk, Expedited)."
    )

    # Logging
    log_level: str = Field(
        default="WARNING",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)"
    )

    model_config = SettingsConfigDict(
        env_prefix="S3SH_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator("chunk_size", "restore_days")
    @classmethod
    def _must_be_positive(cls, value: int) -> int:
        if value <= 0:
            raise ValueError("must be a positive integer")
        return value

    @field_validator("log_level")
    @classmethod
    def _normalize_log_level(cls, value: str) -> str:
        return value.upper()


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Settings are loaded once per process. For tests, call
    get_settings.cache_clear() to reset.
    """
    return Settings()
