"""
Runtime configuration, read from the environment (and `.env` when present).
"""

from __future__ import annotations

from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings - reads from environment variables"""

    # Completion API
    openai_api_key: str = ""
    openai_model: str = "gpt-3.5-turbo"
    completion_timeout: float = Field(default=20.0, gt=0, description="Seconds before a completion call is abandoned")
    completion_max_retries: int = Field(default=1, ge=0, le=3, description="Extra attempts for transient failures")

    # Supabase (auth + persistence)
    supabase_url: str = ""
    supabase_key: str = ""

    log_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_file=".env" if Path(".env").exists() else None,
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
    )


def get_settings() -> Settings:
    return Settings()
