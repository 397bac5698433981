"""Configuration management for the VideoTube API."""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", env_prefix="VT_", extra="ignore")

    # Token signing keys
    access_token_secret: str
    refresh_token_secret: str
    access_token_expire_minutes: int = 15
    refresh_token_expire_days: int = 10

    # Database
    database_url: str = "sqlite+aiosqlite:///./dev.db"

    # Redis (only used by the redis like-count cache)
    redis_url: str = "redis://localhost:6379/0"

    # Like-count cache
    like_cache_backend: str = Field(default="memory", pattern="^(memory|redis)$")
    like_cache_capacity: int = Field(default=10000, ge=1)
    like_cache_ttl_seconds: int = Field(default=300, ge=1)

    # Pagination
    page_size_default: int = 10
    page_size_max: int = 100

    # CORS
    frontend_origin: str = "http://localhost:5173"

    # Media storage
    media_storage_backend: str = Field(default="local", pattern="^(local|gcs)$")
    media_local_path: str = Field(default="./uploads")
    media_url_base: str = Field(default="http://localhost:8000")
    max_upload_mb: int = Field(default=200, ge=1)

    # Google Cloud Storage (only needed if media_storage_backend=gcs)
    gcs_bucket_name: str = Field(default="")
    gcs_credentials_file: str = Field(default="")

    # Rate limiting
    rate_limit_enabled: bool = True

    # Environment
    env: str = Field(default="dev", pattern="^(dev|prod)$")


_settings: Settings | None = None


def get_settings() -> Settings:
    """Get cached settings instance (singleton pattern)."""
    global _settings
    if _settings is None:
        _settings = Settings()  # type: ignore[call-arg]
    return _settings
