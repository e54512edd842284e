"""
Application settings using Pydantic BaseSettings.

Environment-driven configuration; enterprise-specific values live in the
enterprise ``.config`` files loaded by :mod:`otter.config.enterprise`.
"""

from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application configuration settings."""

    # Logging configuration
    log_level: str = Field(default="INFO", description="Logging level")
    log_format: str = Field(default="console", description="Log format: json or console")
    log_file: Path | None = Field(default=None, description="Optional log file path")

    # Enterprise selection
    enterprise: str | None = Field(
        default=None, description="Enterprise code, e.g. csu, ccc or demo"
    )
    config_dir: Path = Field(
        default=Path("config"), description="Directory holding <code>.config files"
    )
    cache_dir: Path = Field(
        default=Path("cache"), description="Root directory for per-enterprise caches"
    )

    # Google Sheets API configuration
    google_api_key: str | None = Field(
        default=None, description="Overrides api.google_api_key from the enterprise config"
    )
    sheets_base_url: str = Field(
        default="https://sheets.googleapis.com", description="Google Sheets API base URL"
    )

    # HTTP client configuration
    http_timeout: int = Field(default=30, description="HTTP request timeout in seconds")
    http_retries: int = Field(default=3, description="Number of HTTP attempts")

    # Cache configuration
    cache_ttl: int | None = Field(
        default=None,
        description="Cache time-to-live in seconds; defaults to the enterprise setting",
    )

    dry_run: bool = Field(
        default=False, description="Dry run mode - fetch but never write the cache"
    )

    model_config = {
        "env_prefix": "OTTER_",
        "env_file": ".env",
        "case_sensitive": False,
        "extra": "ignore",
    }


def get_settings() -> Settings:
    """Get application settings instance."""
    return Settings()
