"""Application settings powered by Pydantic BaseSettings."""

import logging
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from src.fetch.config import FetchConfig
from src.settings.sync import SyncConfig


class AppSettings(BaseSettings):
    """Centralized environment configuration."""

    model_config = SettingsConfigDict(
        env_prefix="GHSYNC_",
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    github_token: str | None = Field(default=None, validation_alias="GITHUB_TOKEN")
    db_path: Path = Path("data/ghsync.sqlite")
    api_url: str = "https://api.github.com"
    log_level: str = "INFO"
    json_logs: bool = True

    shared_ttl_seconds: int = 300
    user_ttl_seconds: int | None = None
    max_attempts: int = 8
    foreground_timeout_seconds: float = 10.0
    background_timeout_seconds: float = 30.0

    @property
    def log_level_value(self) -> int:
        """Return the numeric logging level, defaulting to INFO."""
        return logging.getLevelNamesMapping().get(self.log_level.upper(), logging.INFO)

    def sync_config(self) -> SyncConfig:
        """Build the sync engine configuration from environment overrides."""
        return SyncConfig(
            shared_ttl_seconds=self.shared_ttl_seconds,
            user_ttl_seconds=self.user_ttl_seconds,
            max_attempts=self.max_attempts,
            foreground_timeout_seconds=self.foreground_timeout_seconds,
            background_timeout_seconds=self.background_timeout_seconds,
        )

    def fetch_config(self) -> FetchConfig:
        """Build the upstream client configuration."""
        return FetchConfig(
            base_url=self.api_url,
            default_timeout_seconds=self.background_timeout_seconds,
        )


def get_settings() -> AppSettings:
    """Get a settings instance."""
    return AppSettings()
