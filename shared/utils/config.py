"""
Configuration management using pydantic-settings.
Loads configuration from environment variables and .env file.
"""

from functools import lru_cache
from typing import Literal
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    # Database Configuration (metric store, read-only)
    DB_HOST: str = "localhost"
    DB_PORT: int = 5432
    DB_USER: str = "postgres"
    DB_PASSWORD: str = "postgres"
    DB_NAME: str = "copilot_metrics"
    DB_URL: str | None = None  # Optional: full URL overrides individual settings

    # Database Connection Pool Settings
    DATABASE_POOL_SIZE: int = 10
    DATABASE_MAX_OVERFLOW: int = 20
    DATABASE_POOL_PRE_PING: bool = True  # Verify connections before using
    DATABASE_POOL_RECYCLE: int = 3600  # Recycle connections after 1 hour
    DATABASE_ECHO: bool = False  # Echo SQL queries to console (debug only)

    @property
    def DATABASE_URL(self) -> str:
        """Construct database URL from individual components."""
        if self.DB_URL:
            return self.DB_URL
        return f"postgresql://{self.DB_USER}:{self.DB_PASSWORD}@{self.DB_HOST}:{self.DB_PORT}/{self.DB_NAME}"

    # Snapshot Cache Configuration
    SNAPSHOT_TTL_SECONDS: int = 600  # 10 minutes
    SNAPSHOT_MAX_ENTRIES: int = 50

    # Metrics Configuration
    METRICS_CONFIG_PATH: str | None = None  # Overrides config/metrics
    SEGMENT_PREFIX: str = "section_"

    # Application Configuration
    APP_NAME: str = "Copilot Usage Metrics Engine"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False
    LOG_LEVEL: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    LOG_FILE: str | None = None


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.
    Uses lru_cache to ensure settings are loaded only once.
    """
    return Settings()


# Global settings instance
settings = get_settings()
