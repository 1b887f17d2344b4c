"""
WorkTrace Configuration.

Centralized configuration management using Pydantic Settings.
Loads configuration from environment variables.
"""

import os
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


def get_xdg_data_dir() -> str:
    """
    Get XDG-compliant data directory for WorkTrace.

    Follows XDG Base Directory Specification:
    - Uses $XDG_DATA_HOME/worktrace if XDG_DATA_HOME is set
    - Falls back to $HOME/.local/share/worktrace if not set
    - Returns relative path .worktrace if HOME not available (dev/testing)

    Returns:
        str: Path to data directory
    """
    xdg_data_home = os.getenv("XDG_DATA_HOME")
    if xdg_data_home:
        return str(Path(xdg_data_home) / "worktrace")

    home = os.getenv("HOME")
    if home:
        return str(Path(home) / ".local" / "share" / "worktrace")

    # Fallback for development/testing environments without HOME
    return ".worktrace"


def get_xdg_state_dir() -> str:
    """
    Get XDG-compliant state directory for WorkTrace logs.

    Follows XDG Base Directory Specification:
    - Uses $XDG_STATE_HOME/worktrace/logs if XDG_STATE_HOME is set
    - Falls back to $HOME/.local/state/worktrace/logs if not set
    - Returns relative path ./logs if HOME not available (dev/testing)

    Returns:
        str: Path to state/logs directory
    """
    xdg_state_home = os.getenv("XDG_STATE_HOME")
    if xdg_state_home:
        return str(Path(xdg_state_home) / "worktrace" / "logs")

    home = os.getenv("HOME")
    if home:
        return str(Path(home) / ".local" / "state" / "worktrace" / "logs")

    return "./logs"


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Database
    database_url: str = f"sqlite:///{get_xdg_data_dir()}/worktrace.db"

    # Idle policy
    idle_threshold_minutes: float = 5  # Max gap still counted as continuous presence
    idle_check_interval_seconds: float = 30  # Idle sweep period

    # Git discovery feed
    git_poll_interval_seconds: float = 10  # HEAD polling interval per repository
    git_backfill_days: int = 7  # Scan commits this far back when a root is added (0 = off)
    git_backfill_limit: int = 50  # Maximum commits considered during backfill

    # Allocation
    allocation_lookback_days: int = 14  # Stale-session cutoff when no prior work item (0 = off)
    allocation_timezone: str = "UTC"  # Timezone used to bucket sessions by calendar date

    # API
    api_host: str = "127.0.0.1"
    api_port: int = 8731

    # Tracking
    tracked_roots: list[str] = []  # Workspace roots tracked on startup

    # Application
    environment: str = "production"  # "development" echoes SQL

    # Logging
    log_level: str = "INFO"
    log_dir: str = ""  # XDG-compliant log directory (defaults to XDG state dir if empty)
    log_format: str = "standard"  # standard or json
    log_console_enabled: bool = True  # Enable console (stdout/stderr) logging
    log_file_enabled: bool = True  # Enable file-based logging
    log_max_bytes: int = 10_485_760  # 10MB per log file
    log_backup_count: int = 5  # Keep 5 backup files

    @property
    def log_directory(self) -> Path:
        """Get the log directory path, using XDG default if not specified."""
        if self.log_dir:
            return Path(self.log_dir).expanduser()
        return Path(get_xdg_state_dir())


# Global settings instance
settings = Settings()
