"""
Configuration and settings for the forum backend.
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
    environment: str = Field(default="production", env="ENVIRONMENT")
    log_level: str = Field(default="INFO", env="LOG_LEVEL")

    # Database (Postgres expected)
    database_url: Optional[str] = Field(default=None, env="DATABASE_URL")

    # Supabase auth
    supabase_url: Optional[str] = Field(default=None, env="SUPABASE_URL")
    supabase_anon_key: Optional[str] = Field(default=None, env="SUPABASE_ANON_KEY")
    supabase_service_key: Optional[str] = Field(
        default=None, env="SUPABASE_SERVICE_KEY"
    )

    # Supabase storage through its S3-compatible endpoint
    storage_bucket: str = Field(default="files", env="STORAGE_BUCKET")
    storage_public_url: str = Field(
        default="https://ph.20204.xyz", env="STORAGE_PUBLIC_URL"
    )
    storage_s3_endpoint: Optional[str] = Field(
        default=None, env="STORAGE_S3_ENDPOINT"
    )
    storage_region: Optional[str] = Field(default=None, env="STORAGE_REGION")
    storage_access_key_id: Optional[str] = Field(
        default=None, env="STORAGE_ACCESS_KEY_ID"
    )
    storage_secret_access_key: Optional[str] = Field(
        default=None, env="STORAGE_SECRET_ACCESS_KEY"
    )

    # Verification codes (Redis when configured, otherwise the database)
    redis_url: Optional[str] = Field(default=None, env="REDIS_URL")
    redis_code_prefix: str = Field(default="forum:codes", env="REDIS_CODE_PREFIX")
    verification_code_ttl_seconds: int = Field(
        default=600, env="VERIFICATION_CODE_TTL_SECONDS"
    )
    verification_code_max_attempts: int = Field(
        default=5, env="VERIFICATION_CODE_MAX_ATTEMPTS"
    )

    # Outgoing mail; codes are only logged when no SMTP host is set
    smtp_host: Optional[str] = Field(default=None, env="SMTP_HOST")
    smtp_port: int = Field(default=587, env="SMTP_PORT")
    smtp_username: Optional[str] = Field(default=None, env="SMTP_USERNAME")
    smtp_password: Optional[str] = Field(default=None, env="SMTP_PASSWORD")
    smtp_sender: str = Field(default="noreply@classforum.local", env="SMTP_SENDER")

    # Bootstrap admin account
    admin_username: Optional[str] = Field(default=None, env="ADMIN_USERNAME")
    admin_email: Optional[str] = Field(default=None, env="ADMIN_EMAIL")
    admin_password: Optional[str] = Field(default=None, env="ADMIN_PASSWORD")

    # Development toggles
    use_in_memory_backends: bool = Field(
        default=False, env="USE_IN_MEMORY_BACKENDS"
    )

    @property
    def is_development(self) -> bool:
        return self.environment.lower() == "development"


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return cached settings instance."""
    return Settings()
