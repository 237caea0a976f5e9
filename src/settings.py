"""Application configuration settings."""
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Game settings loaded from environment variables (prefix GAME2048_)."""

    app_name: str = "2048 Game API"
    app_version: str = "1.0.0"

    # Board settings
    board_size: int = 4
    start_tiles: int = 2
    win_tile: int = 2048

    # Auto play
    search_depth: int = 3
    autoplay_interval: float = 0.25

    # JSON file used by the CLI to keep the game and best score between runs
    state_file: Optional[str] = ".2048_state.json"

    rate_limit: str = "100/minute"
    log_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_prefix="GAME2048_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )


_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """Get the settings instance, creating it on first use."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings
