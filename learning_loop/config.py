"""
Configuration management for Learning Loop.
"""

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings, read from LOOP_* environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="LOOP_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Database
    database_url: str = Field(
        default="sqlite:///.learning-loop/loop.db",
        description="SQLAlchemy URL of the run store",
    )

    # Logging
    log_level: str = Field(default="WARNING")
    log_format: str = Field(default="console", description="console or json")

    # Query
    default_max_runs: int = Field(default=10, ge=1)
    insight_limit: int = Field(default=5, ge=1)
    top_pattern_limit: int = Field(default=5, ge=1)

    # CLI
    list_runs_default: int = Field(default=20, ge=1)


@lru_cache
def get_settings() -> Settings:
    """Get application settings."""
    return Settings()
