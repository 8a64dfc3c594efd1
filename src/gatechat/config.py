"""Session configuration using Pydantic Settings."""

from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Settings loaded from ``GATECHAT_*`` environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="GATECHAT_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Gateway
    session_key: str = Field(default="main")
    history_limit: int = Field(default=50, ge=1)

    # Run reconciliation
    dedupe_by_seq: bool = Field(default=True)
    finished_run_memory: int = Field(default=256, ge=0)
    run_timeout_seconds: float | None = Field(default=None, gt=0)

    # Logging
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(default="WARNING")
    log_format: Literal["json", "text"] = Field(default="text")


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
