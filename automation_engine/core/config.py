"""Application configuration using pydantic-settings."""

from functools import lru_cache
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        env_prefix="AUTOMATION_",
    )

    # Server settings
    host: str = "0.0.0.0"
    port: int = 8000
    reload: bool = False
    log_level: Literal["debug", "info", "warning", "error"] = "info"

    # Application settings
    app_name: str = "Automation Engine"
    app_version: str = "0.1.0"
    debug: bool = False

    # CORS settings
    cors_origins: list[str] = ["*"]
    cors_allow_credentials: bool = True
    cors_allow_methods: list[str] = ["*"]
    cors_allow_headers: list[str] = ["*"]

    # Execution settings
    default_concurrency_limit: int | None = None  # None = unbounded
    default_backoff: Literal["linear", "fixed", "exponential"] = "linear"
    default_retry_attempts: int = 3
    default_retry_delay_ms: int = 1000
    cancellation_grace_ms: int = 5000
    http_timeout_ms: int = 30000
    max_delay_ms: int = 300000

    # Storage settings
    max_run_records: int = 100
    workflows_dir: str | None = None


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


# Global settings instance
settings = get_settings()
