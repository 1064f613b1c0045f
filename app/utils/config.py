"""
Configuration management for unpackd.

Runtime settings come from environment variables and .env files through
pydantic-settings. The watched paths and their rules live in a JSON file
read by ``read_config``.
"""

import json
from functools import lru_cache
from pathlib import Path

from pydantic import ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from app.models.schemas import WatchConfig
from domains.release_watch.errors import ConfigError


class Settings(BaseSettings):
    """Application settings loaded from environment."""

    # Rule file
    config_file: Path = Path("~/.unpackdrc")

    # Logging
    log_level: str = "INFO"

    # Watcher Configuration
    poll_interval: float = 0.5  # seconds between listener stop checks
    max_nesting: int = 16  # archives nested inside archives

    model_config = SettingsConfigDict(
        env_prefix="UNPACKD_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    def get_config_file(self) -> Path:
        """Return the rule file path with ``~`` expanded."""
        return self.config_file.expanduser()


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


def read_config(filename: Path) -> WatchConfig:
    """
    Read and validate the JSON rule file.

    Args:
        filename: Path to the configuration file

    Returns:
        Validated configuration remembering its source file

    Raises:
        ConfigError: If the file cannot be read, parsed or validated
    """
    filename = Path(filename).expanduser()
    try:
        data = json.loads(filename.read_text(encoding="utf-8"))
    except OSError as e:
        raise ConfigError(f"failed to read {filename}: {e}") from e
    except json.JSONDecodeError as e:
        raise ConfigError(f"malformed json in {filename}: {e}") from e

    try:
        cfg = WatchConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigError(f"invalid config {filename}: {e}") from e

    cfg._filename = filename
    return cfg
