"""
Configuration management for nutview.

This module uses Pydantic's BaseSettings to manage configuration
through environment variables. It provides a centralized and typed
way to handle client settings.
"""
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Client settings.

    These settings are loaded from NUTVIEW_* environment variables.
    """

    # NUT Server Configuration
    NUT_HOST: str = "localhost"
    NUT_PORT: int = 3493
    NUT_USERNAME: str = ""
    NUT_PASSWORD: str = ""

    # Polling configuration
    POLL_INTERVAL: float = 2.0  # seconds

    # Socket timeouts
    CONNECT_TIMEOUT: float = 10.0  # seconds
    READ_TIMEOUT: float = 10.0  # seconds

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: Literal["text", "json"] = "text"
    LOG_TRAFFIC: bool = False  # echo every protocol line at DEBUG

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        env_prefix="NUTVIEW_",
        extra="ignore",
    )


settings = Settings()
