"""
Application settings with validation using pydantic-settings.
Validates all required environment variables at startup.
"""
import socket
from datetime import time
from urllib.parse import quote_plus
from typing import Optional
from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def _resolve_db_host(host: str) -> str:
    """Resolve DB host to IP so asyncpg avoids getaddrinfo in asyncio context (e.g. in Docker)."""
    if not host or host in ("localhost", "127.0.0.1"):
        return host
    try:
        return socket.gethostbyname(host)
    except socket.gaierror:
        return host


CAPACITY_MODES = ("advisory", "atomic")


class Settings(BaseSettings):
    """Application settings with validation."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Database configuration
    DATABASE_URL: Optional[str] = Field(default=None, description="Full async SQLAlchemy URL (overrides DB_* fields)")
    DB_USER: str = Field(default="postgres", description="PostgreSQL username")
    DB_PASSWORD: str = Field(default="", description="PostgreSQL password")
    DB_NAME: str = Field(default="slots", description="PostgreSQL database name")
    DB_HOST: str = Field(default="localhost", description="PostgreSQL host")
    DB_PORT: str = Field(default="5432", description="PostgreSQL port")

    # Database pool configuration
    DB_POOL_SIZE: int = Field(default=20, description="Database connection pool size")
    DB_MAX_OVERFLOW: int = Field(default=40, description="Database max overflow connections")
    DB_POOL_RECYCLE: int = Field(default=3600, description="Database connection recycle time (seconds)")

    # Security configuration
    JWT_SECRET: Optional[str] = Field(default=None, description="Secret for vendor identity tokens (required in production)")

    # CORS configuration
    ALLOWED_ORIGINS: str = Field(default="", description="Comma-separated list of allowed CORS origins")

    # Environment
    ENVIRONMENT: str = Field(default="production", description="Environment: development or production")
    LOG_LEVEL: str = Field(default="INFO", description="Logging level")

    # Opening hours used when a date has neither an override nor a standing rule
    DEFAULT_OPEN_TIME: time = Field(default=time(18, 30), description="Default opening time")
    DEFAULT_CLOSE_TIME: time = Field(default=time(22, 0), description="Default closing time")
    DEFAULT_SLOT_MINUTES: int = Field(default=15, description="Default slot length in minutes")

    # Capacity
    DEFAULT_MAX_PER_SLOT: int = Field(default=10, description="max_per_slot for a freshly created vendor")
    CAPACITY_MODE: str = Field(default="advisory", description="advisory (check-then-act) or atomic (conditional write)")

    # Day view refresh
    SYNC_INTERVAL_SECONDS: float = Field(default=5.0, description="Background refresh interval of a day view")

    @field_validator("ENVIRONMENT")
    @classmethod
    def validate_environment(cls, v: str) -> str:
        """Validate environment value."""
        if v not in ("development", "production"):
            raise ValueError("ENVIRONMENT must be 'development' or 'production'")
        return v

    @field_validator("LOG_LEVEL")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level."""
        valid_levels = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")
        if v.upper() not in valid_levels:
            raise ValueError(f"LOG_LEVEL must be one of {valid_levels}")
        return v.upper()

    @field_validator("CAPACITY_MODE")
    @classmethod
    def validate_capacity_mode(cls, v: str) -> str:
        v = v.lower()
        if v not in CAPACITY_MODES:
            raise ValueError(f"CAPACITY_MODE must be one of {CAPACITY_MODES}")
        return v

    @model_validator(mode="after")
    def validate_defaults(self) -> "Settings":
        if self.DEFAULT_SLOT_MINUTES <= 0:
            raise ValueError("DEFAULT_SLOT_MINUTES must be greater than 0")
        if self.DEFAULT_MAX_PER_SLOT < 0:
            raise ValueError("DEFAULT_MAX_PER_SLOT must not be negative")
        if self.SYNC_INTERVAL_SECONDS <= 0:
            raise ValueError("SYNC_INTERVAL_SECONDS must be greater than 0")
        return self

    def validate_production_settings(self) -> list[str]:
        """
        Validate that all required settings are present in production.
        Returns list of missing settings.
        """
        errors = []

        if self.ENVIRONMENT == "production":
            if not self.JWT_SECRET:
                errors.append("JWT_SECRET is required in production")
            if not self.ALLOWED_ORIGINS:
                errors.append("ALLOWED_ORIGINS is required in production")

        return errors

    @property
    def db_url(self) -> str:
        """Get database URL. Resolve host to IP so connections work in Docker/async context."""
        if self.DATABASE_URL:
            return self.DATABASE_URL
        host = _resolve_db_host(self.DB_HOST)
        password = quote_plus(self.DB_PASSWORD)
        return f"postgresql+asyncpg://{self.DB_USER}:{password}@{host}:{self.DB_PORT}/{self.DB_NAME}"

    @property
    def is_production(self) -> bool:
        """Check if running in production."""
        return self.ENVIRONMENT == "production"

    @property
    def allowed_origins_list(self) -> list[str]:
        """Get list of allowed CORS origins."""
        if not self.ALLOWED_ORIGINS:
            return []
        return [origin.strip() for origin in self.ALLOWED_ORIGINS.split(",") if origin.strip()]


# Global settings instance
_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """Get application settings (singleton)."""
    global _settings
    if _settings is None:
        _settings = Settings()
        # Validate production settings
        errors = _settings.validate_production_settings()
        if errors:
            error_msg = "Configuration errors:\n" + "\n".join(f"  - {e}" for e in errors)
            raise ValueError(error_msg)
    return _settings
