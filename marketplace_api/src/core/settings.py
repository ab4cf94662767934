from __future__ import annotations

from typing import List, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class AppSettings(BaseSettings):
    """
    Application-level settings for the FastAPI service.

    This is separate from src.db.config.Settings, which focuses on the database layer.
    """

    # FastAPI metadata
    APP_NAME: str = Field(default="Vehicle Marketplace API")
    APP_DESCRIPTION: str = Field(
        default=(
            "Backend API for a vehicle marketplace. Provides listings, search, "
            "messaging, offers, favorites, reviews, moderation and administration."
        )
    )
    APP_VERSION: str = Field(default="0.1.0")

    # CORS
    CORS_ORIGINS: List[str] = Field(
        default_factory=lambda: ["*"],
        description="Comma-separated list or JSON array of allowed origins. Default: *",
    )
    CORS_ALLOW_CREDENTIALS: bool = Field(default=True)
    CORS_ALLOW_METHODS: List[str] = Field(default_factory=lambda: ["*"])
    CORS_ALLOW_HEADERS: List[str] = Field(default_factory=lambda: ["*"])

    # Startup behavior
    RUN_MIGRATIONS_ON_STARTUP: bool = Field(
        default=True,
        description="If true, run Alembic migrations (upgrade head) at app startup.",
    )
    AUTO_SEED: bool = Field(
        default=False,
        description="If true, run minimal database seeding after migrations.",
    )
    SEED_ADMIN_EMAIL: str = Field(default="admin@example.com", description="Email of the seeded admin profile")
    SEED_ADMIN_PASSWORD: str = Field(default="change-me-admin", description="Password of the seeded admin profile")

    # Logging
    LOG_LEVEL: str = Field(default="INFO", description="Root log level name")

    # Tokens
    JWT_SECRET_KEY: str = Field(
        default="change-me", description="Secret used to sign access and refresh tokens"
    )
    JWT_ALGORITHM: str = Field(default="HS256")
    ACCESS_TOKEN_EXPIRE_MINUTES: int = Field(default=60)
    REFRESH_TOKEN_EXPIRE_MINUTES: int = Field(default=60 * 24 * 14)

    # Machine callers
    SYSTEM_API_KEY: Optional[str] = Field(
        default=None, description="Bearer token accepted by POST /offers/expire for system callers"
    )
    CRON_SECRET: Optional[str] = Field(
        default=None, description="Bearer token required by the offer expiration cron endpoint"
    )

    # Uploads
    UPLOAD_DIR: str = Field(default="uploads", description="Directory where uploaded images are written")
    PUBLIC_UPLOAD_BASE_URL: str = Field(
        default="/uploads", description="Public URL prefix under which uploaded files are served"
    )
    MAX_UPLOAD_BYTES: int = Field(default=5 * 1024 * 1024, description="Maximum image size (5MB)")

    # Marketplace rules
    OFFER_EXPIRY_HOURS: int = Field(default=168, description="Lifetime of a new offer in hours")
    SEARCH_CACHE_TTL_SECONDS: int = Field(default=300)
    SEARCH_CACHE_MAX_ENTRIES: int = Field(default=100)

    # Environment label
    ENVIRONMENT: Optional[str] = Field(
        default=None, description="Environment label (dev/test/prod)"
    )

    # Automatically load from .env at runtime.
    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    @field_validator("CORS_ORIGINS", mode="before")
    @classmethod
    def _parse_cors_origins(cls, v):
        """
        Accept both JSON array format and comma-separated formats for CORS origins.
        """
        if v is None:
            return ["*"]
        if isinstance(v, str):
            parts = [p.strip() for p in v.split(",") if p.strip()]
            return parts or ["*"]
        if isinstance(v, list):
            return v or ["*"]
        return ["*"]


# PUBLIC_INTERFACE
def get_app_settings() -> AppSettings:
    """
    Return a new AppSettings instance populated from environment variables.

    Note:
      A new instance is built on each call so tests can change the environment
      between requests.
    """
    return AppSettings()
