"""
Centralized configuration management with validation.

All environment variables are loaded and validated here.
This ensures consistent configuration across the application.
"""
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field
from typing import Optional
from dotenv import load_dotenv

load_dotenv()


class Settings(BaseSettings):
    """Application settings with validation."""

    # Pydantic v2 configuration
    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
        extra="ignore"
    )

    # Database Configuration
    # DATABASE_URL wins when set (tests and local runs point it at SQLite).
    DATABASE_URL: Optional[str] = Field(default=None)
    POSTGRES_USER: str = Field(default="postgres")
    POSTGRES_PASSWORD: str = Field(default="postgres")
    POSTGRES_DB: str = Field(default="centurion")
    POSTGRES_HOST: str = Field(default="postgres")
    POSTGRES_PORT: int = Field(default=5432)

    # Database Pool Configuration
    DB_POOL_SIZE: int = Field(default=20)
    DB_MAX_OVERFLOW: int = Field(default=10)
    DB_POOL_TIMEOUT: int = Field(default=30)
    DB_POOL_RECYCLE: int = Field(default=3600)  # 1 hour

    # JWT Authentication - REQUIRED for token verification
    # Must be set via environment variable, never use default in production
    SECRET_KEY: str = Field(
        default=...,  # Required - no default
        description="JWT signing key. Must be cryptographically secure (32+ chars). "
                    "Generate with: python -c \"import secrets; print(secrets.token_urlsafe(32))\""
    )
    ACCESS_TOKEN_EXPIRE_MINUTES: int = Field(default=60 * 24)

    # Logging Configuration
    LOG_LEVEL: str = Field(default="INFO")
    LOG_FORMAT: str = Field(default="json")  # json or text

    # Environment
    ENVIRONMENT: str = Field(default="development")
    DEBUG: bool = Field(default=False)

    # CORS - comma-separated list of allowed origins for production
    CORS_ORIGINS: Optional[str] = Field(default=None)

    # Sentry Error Tracking
    SENTRY_DSN: Optional[str] = Field(default=None)
    SENTRY_TRACES_SAMPLE_RATE: float = Field(default=0.1)

    # Engagement engine
    # Trailing window (days, today inclusive) used by the attention score.
    ATTENTION_LOOKBACK_DAYS: int = Field(default=14, ge=1)
    # A member is "active" when their last check-in falls inside this window.
    ACTIVE_MEMBER_WINDOW_DAYS: int = Field(default=7, ge=1)
    # Program weeks [1..N] counted by the questionnaire completion ratio.
    QUESTIONNAIRE_WINDOW_WEEKS: int = Field(default=4, ge=1)
    # Caps concurrent per-member score computations in batch views.
    ENGAGEMENT_MAX_WORKERS: int = Field(default=8, ge=1, le=64)
    # Last tier of the check-in cadence resolver.
    DEFAULT_CHECK_IN_FREQUENCY_DAYS: int = Field(default=7, ge=1, le=90)


# Global settings instance
settings = Settings()
