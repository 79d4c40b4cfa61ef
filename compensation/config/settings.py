"""
Application settings.

Loads configuration from environment variables using pydantic-settings.
Business rules (commission table, caps, ranks) are not configured here:
they live in the versioned settings record, see
compensation.services.settings_service.
"""

from loguru import logger
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from compensation.config.operational_constants import (
    DEFAULT_CONFLICT_RETRIES,
    DEFAULT_LOCK_TIMEOUT_SECONDS,
    DEFAULT_RETRY_BASE_DELAY_SECONDS,
    DEFAULT_RUN_CONCURRENCY,
    DEFAULT_RUN_TIMEOUT_SECONDS,
)


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Database
    database_url: str
    database_echo: bool = False

    # Redis (for Dramatiq and run locks)
    redis_host: str = "localhost"
    redis_port: int = 6379
    redis_password: str | None = None
    redis_db: int = 0

    # Application
    environment: str = "production"
    debug: bool = False
    log_level: str = "INFO"
    log_file: str | None = "logs/compensation.log"

    # HTTP
    api_host: str = "0.0.0.0"
    api_port: int = Field(default=8080, ge=1, le=65535)
    health_check_port: int = Field(
        default=8081, ge=1, le=65535, description="Health check HTTP server port"
    )

    # Commission runs
    run_timeout_seconds: int = Field(
        default=DEFAULT_RUN_TIMEOUT_SECONDS,
        gt=0,
        description="Time budget of a single commission run",
    )
    run_concurrency: int = Field(
        default=DEFAULT_RUN_CONCURRENCY,
        ge=1,
        le=64,
        description="Members processed in parallel within a run",
    )

    # Member locks and retries
    lock_timeout_seconds: float = Field(
        default=DEFAULT_LOCK_TIMEOUT_SECONDS, gt=0
    )
    max_conflict_retries: int = Field(default=DEFAULT_CONFLICT_RETRIES, ge=0)
    retry_base_delay_seconds: float = Field(
        default=DEFAULT_RETRY_BASE_DELAY_SECONDS, ge=0
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Normalize and validate log level."""
        level = v.upper()
        if level not in {"TRACE", "DEBUG", "INFO", "SUCCESS", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unknown log level: {v}")
        return level

    @field_validator("database_url")
    @classmethod
    def validate_database_url(cls, v: str) -> str:
        """Async engine requires an async driver."""
        if v.startswith("postgresql://"):
            logger.warning(
                "DATABASE_URL uses sync driver, switching to postgresql+asyncpg"
            )
            return v.replace("postgresql://", "postgresql+asyncpg://", 1)
        return v

    @property
    def is_production(self) -> bool:
        """Check if running in production."""
        return self.environment == "production"


settings = Settings()
