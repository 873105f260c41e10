"""
Configuration module for the Care-Coord hospital backend.
Loads settings from environment variables (and an optional .env file).
"""

from pydantic_settings import BaseSettings
from pydantic import Field


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Application Configuration
    app_host: str = Field(
        default="0.0.0.0",
        alias="APP_HOST",
        description="Host to bind the application"
    )
    app_port: int = Field(
        default=8000,
        alias="APP_PORT",
        description="Port to bind the application"
    )

    # Logging
    log_level: str = Field(
        default="INFO",
        alias="LOG_LEVEL",
        description="Logging level"
    )

    # Booking Configuration
    default_base_appointment_fee: int = Field(
        default=1200,
        alias="DEFAULT_BASE_APPOINTMENT_FEE",
        description="Base appointment fee used when the global config document is missing"
    )
    reference_cache_ttl_seconds: int = Field(
        default=300,
        alias="REFERENCE_CACHE_TTL_SECONDS",
        description="How long doctor/department/lab catalogue lookups are cached"
    )

    # Sessions
    session_ttl_hours: int = Field(
        default=24,
        alias="SESSION_TTL_HOURS",
        description="Lifetime of patient, doctor and lab operator sessions"
    )
    admin_session_ttl_hours: int = Field(
        default=2,
        alias="ADMIN_SESSION_TTL_HOURS",
        description="Lifetime of admin sessions"
    )
    admin_email: str = Field(
        default="admin@carecoord.local",
        alias="ADMIN_EMAIL",
        description="Admin sign-in email"
    )
    admin_password_hash: str = Field(
        default="",
        alias="ADMIN_PASSWORD_HASH",
        description="Admin password hash in 'salt$digest' form (see auth.hash_password)"
    )

    # Realtime
    subscription_poll_seconds: float = Field(
        default=2.0,
        alias="SUBSCRIPTION_POLL_SECONDS",
        description="Polling interval for collection change subscriptions"
    )

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"


# Global settings instance
settings = Settings()
