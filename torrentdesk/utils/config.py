"""Configuration management using pydantic-settings."""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Literal


class Settings(BaseSettings):
    """Application settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # Session timing (seconds)
    tick_interval: float = Field(2.0, gt=0)
    metadata_poll_interval: float = Field(1.0, gt=0)

    # Rate limit input unit (bytes per typed unit, kb/s)
    rate_unit: int = Field(1024, gt=0)

    # Logging
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"

    # Paths
    download_path: str = "/downloads"

    # aria2 daemon
    aria2_spawn: bool = True
    aria2_host: str = "http://localhost"
    aria2_port: int = 6800
    aria2_secret: str = ""
    aria2_startup_delay: float = 2.0
    bt_listen_port: str = "6881-6999"

    # API Server
    api_host: str = "127.0.0.1"
    api_port: int = 6500


settings = Settings()
