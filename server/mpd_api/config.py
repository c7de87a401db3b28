"""Application configuration from environment and .env file."""

from __future__ import annotations

import logging

from pydantic import BaseModel
from pydantic_settings import BaseSettings


class MPDConfig(BaseModel):
    host: str = "localhost"
    port: int = 6600
    timeout: float = 10  # Connect timeout in seconds


class Settings(BaseSettings):
    # MPD settings
    mpd_host: str = "localhost"
    mpd_port: int = 6600
    mpd_timeout: float = 10

    # HTTP server settings
    api_host: str = "0.0.0.0"
    api_port: int = 3000

    log_level: str = "INFO"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False

    @property
    def mpd(self) -> MPDConfig:
        return MPDConfig(
            host=self.mpd_host,
            port=self.mpd_port,
            timeout=self.mpd_timeout,
        )



def resolve_log_level(name: str) -> int | None:
    """Map a level name to its number, or None if logging does not know it."""
    level = logging.getLevelName(name.strip().upper())
    return level if isinstance(level, int) else None


_settings: Settings | None = None


def get_settings() -> Settings:
    """Get settings, loaded from the environment once per process."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings
