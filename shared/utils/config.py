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

    # Database Configuration
    DB_HOST: str = "localhost"
    DB_PORT: int = 5432
    DB_USER: str = "postgres"
    DB_PASSWORD: str = "postgres"
    DB_NAME: str = "docgen"
    DATABASE_URL_OVERRIDE: str | None = None  # Full SQLAlchemy URL, e.g. sqlite+aiosqlite:///./docgen.db

    # Database Connection Pool Settings
    DATABASE_POOL_SIZE: int = 10
    DATABASE_MAX_OVERFLOW: int = 20
    DATABASE_POOL_PRE_PING: bool = True
    DATABASE_POOL_RECYCLE: int = 3600
    DATABASE_ECHO: bool = False

    @property
    def DATABASE_URL(self) -> str:
        """Construct database URL from individual components."""
        if self.DATABASE_URL_OVERRIDE:
            return self.DATABASE_URL_OVERRIDE
        return f"postgresql://{self.DB_USER}:{self.DB_PASSWORD}@{self.DB_HOST}:{self.DB_PORT}/{self.DB_NAME}"

    # Application Configuration
    APP_NAME: str = "Document Generation Engine"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False
    LOG_LEVEL: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    LOG_FILE: str | None = None  # e.g. logs/worker.log

    # Job Poller
    GENERATION_POLL_INTERVAL_MS: int = 500
    GENERATION_MAX_BATCH_SIZE: int = 10
    GENERATION_MIN_BATCH_SIZE: int = 1
    GENERATION_MAX_CONCURRENT_JOBS: int = 2
    GENERATION_ADAPTIVE_BATCH_ENABLED: bool = True
    GENERATION_FAST_THRESHOLD_MS: int = 2000
    GENERATION_SLOW_THRESHOLD_MS: int = 5000
    GENERATION_INSTANCE_ID: str | None = None  # Defaults to <hostname>-<pid>

    # Rendering
    GENERATION_MAX_DOCUMENT_SIZE_MB: int = 50
    GENERATION_SCRIPT_TIMEOUT_MS: int = 1000
    GENERATION_MAX_RENDER_NODES: int = 100_000
    GENERATION_RETENTION_DAYS: int = 7

    # Content Store
    CONTENT_STORE_TYPE: Literal["memory", "s3"] = "memory"
    S3_BUCKET: str = "documents"
    S3_ENDPOINT_URL: str | None = None
    S3_REGION: str = "us-east-1"
    S3_ACCESS_KEY_ID: str | None = None
    S3_SECRET_ACCESS_KEY: str | None = None

    @property
    def max_document_size_bytes(self) -> int:
        """Get max rendered document size in bytes."""
        return self.GENERATION_MAX_DOCUMENT_SIZE_MB * 1024 * 1024


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.
    Uses lru_cache to ensure settings are loaded only once.
    """
    return Settings()


# Global settings instance
settings = get_settings()
