"""
HotSwap Configuration Module.

Centralizes ambient settings (logging, watcher, build, supervisor)
using Pydantic Settings. Per-session restart options live in
utils.options.
Requires Python 3.11+.
"""

from functools import lru_cache
from pathlib import Path

from dotenv import load_dotenv
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Load .env file into os.environ at module import time
# This ensures nested BaseSettings classes can read the values
_env_file = Path(__file__).parent.parent / ".env"
if _env_file.exists():
    load_dotenv(_env_file)
else:
    # Try current working directory
    load_dotenv()


class WatcherSettings(BaseSettings):
    """Directory watcher settings."""

    model_config = SettingsConfigDict(env_prefix="WATCHER_")

    queue_size: int = Field(default=1024, ge=1, description="Capacity of the event channel")
    follow_symlinks: bool = Field(default=False)
    polling: bool = Field(default=False, description="Use the polling observer instead of native events")
    polling_interval: float = Field(default=1.0, gt=0.0)

    ignore_patterns: list[str] = Field(
        default=[".git", ".hg", ".svn", "node_modules", "vendor"],
        description="Directory names that are never registered",
    )

    @field_validator("ignore_patterns", mode="before")
    @classmethod
    def parse_ignore_patterns(cls, v: str | list[str]) -> list[str]:
        """Parse ignore patterns from comma-separated string or list."""
        if isinstance(v, str):
            return [p.strip() for p in v.split(",") if p.strip()]
        return v


class BuildSettings(BaseSettings):
    """External toolchain settings."""

    model_config = SettingsConfigDict(env_prefix="BUILD_")

    toolchain: str = Field(default="go", description="Build command, split shell-style")
    timeout_seconds: float | None = Field(default=None, gt=0.0)


class SupervisorSettings(BaseSettings):
    """Child process supervision settings."""

    model_config = SettingsConfigDict(env_prefix="SUPERVISOR_")

    # None waits for the old child indefinitely
    terminate_timeout_seconds: float | None = Field(default=10.0, gt=0.0)


class LoggingSettings(BaseSettings):
    """Logging configuration settings."""

    model_config = SettingsConfigDict(env_prefix="LOG_")

    level: str = Field(default="INFO")
    format: str = Field(default="console")  # "json" or "console"


class Settings(BaseSettings):
    """Main application settings aggregating all sub-settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application metadata
    app_name: str = Field(default="HotSwap")
    app_version: str = Field(default="0.1.0")

    # Sub-settings
    watcher: WatcherSettings = Field(default_factory=WatcherSettings)
    build: BuildSettings = Field(default_factory=BuildSettings)
    supervisor: SupervisorSettings = Field(default_factory=SupervisorSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """
    Get cached application settings.

    Returns singleton instance of Settings for performance.
    """
    return Settings()
