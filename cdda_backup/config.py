"""Configuration management for CDDA Backup.

Stores and retrieves user settings from a JSON config file in the
platform-appropriate application data directory, and resolves them
into the immutable :class:`Settings` value the watcher and writer run on.
"""

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from cdda_backup.platform_utils import (
    get_config_dir as _platform_config_dir,
)
from cdda_backup.platform_utils import (
    get_log_path as _platform_log_path,
)

logger = logging.getLogger(__name__)

DEFAULT_TIMESTAMP_FORMAT = "%Y-%m-%d %H-%M-%S"
MIN_POLL_INTERVAL = 0.05

DEFAULT_CONFIG: dict[str, Any] = {
    "save_directory": "",  # CDDA "save" folder; must be set by the user
    "backup_folder_name": "Backups",
    "timestamp_format": DEFAULT_TIMESTAMP_FORMAT,  # strftime pattern
    "grace_period_seconds": 5.0,
    "poll_interval_seconds": 1.0,
    "log_level": "INFO",
    # ---- log rotation ----
    "max_log_size_mb": 10,  # rotate log when it exceeds this size
    "log_backup_count": 3,  # number of rotated log files to keep
}


class ConfigurationError(RuntimeError):
    """Raised when the configuration cannot produce usable settings."""


def get_config_dir() -> Path:
    """Return the platform-appropriate application config directory."""
    return _platform_config_dir()


def get_config_path() -> Path:
    """Return the path to the configuration file."""
    return get_config_dir() / "config.json"


def get_log_path() -> Path:
    """Return the path to the log file."""
    return _platform_log_path()


@dataclass(frozen=True)
class Settings:
    """Resolved, immutable settings shared by the watcher and the writer."""

    watched_root: Path
    backup_folder_name: str
    timestamp_format: str = DEFAULT_TIMESTAMP_FORMAT
    grace_period: float = 5.0
    poll_interval: float = 1.0

    @property
    def backup_directory(self) -> Path:
        """Folder inside the watched root that receives the archives."""
        return self.watched_root / self.backup_folder_name


class Config:
    """Configuration manager backed by a JSON file."""

    def __init__(self, path: Path | None = None):
        """Load config from *path*, falling back to the platform default."""
        self._path = path or get_config_path()
        self._data: dict[str, Any] = dict(DEFAULT_CONFIG)
        self.load()

    @property
    def path(self) -> Path:
        """Return the location of the backing JSON file."""
        return self._path

    # ---- persistence ----

    def load(self) -> None:
        """Load configuration from disk, applying defaults for missing keys."""
        if self._path.exists():
            try:
                with open(self._path, encoding="utf-8") as fh:
                    stored = json.load(fh)
                if not isinstance(stored, dict):
                    raise ValueError("top-level JSON value is not an object")
                # Merge stored values over defaults so new keys get defaults
                self._data = {**DEFAULT_CONFIG, **stored}
                logger.info("Configuration loaded from %s", self._path)
            except (json.JSONDecodeError, ValueError, OSError) as exc:
                logger.warning("Could not read config (%s); using defaults.", exc)
                self._data = dict(DEFAULT_CONFIG)
        else:
            self._data = dict(DEFAULT_CONFIG)
            self.save()
            logger.info("Created default configuration at %s", self._path)

    def save(self) -> None:
        """Persist the current configuration to disk."""
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            with open(self._path, "w", encoding="utf-8") as fh:
                json.dump(self._data, fh, indent=2)
            logger.info("Configuration saved.")
        except OSError as exc:
            logger.error("Failed to save configuration: %s", exc)

    # ---- accessors ----

    @property
    def save_directory(self) -> str:
        """Return the watched save directory."""
        return str(self._data.get("save_directory") or "")

    @save_directory.setter
    def save_directory(self, value: str) -> None:
        """Set the watched save directory."""
        self._data["save_directory"] = str(value).strip()

    @property
    def backup_folder_name(self) -> str:
        """Return the name of the backup folder inside the save directory."""
        return self._data.get("backup_folder_name") or "Backups"

    @backup_folder_name.setter
    def backup_folder_name(self, value: str) -> None:
        """Set the backup folder name."""
        self._data["backup_folder_name"] = value.strip() or "Backups"

    @property
    def timestamp_format(self) -> str:
        """Return the strftime pattern appended to backup names."""
        return self._data.get("timestamp_format") or DEFAULT_TIMESTAMP_FORMAT

    @timestamp_format.setter
    def timestamp_format(self, value: str) -> None:
        """Set the strftime pattern appended to backup names."""
        self._data["timestamp_format"] = value or DEFAULT_TIMESTAMP_FORMAT

    @property
    def grace_period(self) -> float:
        """Return the quiet time in seconds before a save counts as settled."""
        return float(self._data["grace_period_seconds"])

    @grace_period.setter
    def grace_period(self, value: float) -> None:
        """Set the grace period (minimum 0 s)."""
        self._data["grace_period_seconds"] = max(0.0, float(value))

    @property
    def poll_interval(self) -> float:
        """Return how often, in seconds, pending saves are checked."""
        return float(self._data["poll_interval_seconds"])

    @poll_interval.setter
    def poll_interval(self, value: float) -> None:
        """Set the poll interval (minimum 50 ms)."""
        self._data["poll_interval_seconds"] = max(MIN_POLL_INTERVAL, float(value))

    @property
    def log_level(self) -> str:
        """Return the current logging level name."""
        return self._data.get("log_level", "INFO")

    @log_level.setter
    def log_level(self, value: str) -> None:
        """Set the logging level name."""
        self._data["log_level"] = value.upper()

    # ---- log rotation ----

    @property
    def max_log_size_mb(self) -> int:
        """Return the maximum log file size in MB before rotation."""
        return int(self._data.get("max_log_size_mb", 10))

    @max_log_size_mb.setter
    def max_log_size_mb(self, value: int) -> None:
        """Set the maximum log file size in MB (minimum 1)."""
        self._data["max_log_size_mb"] = max(1, int(value))

    @property
    def log_backup_count(self) -> int:
        """Return the number of rotated log backups to keep."""
        return int(self._data.get("log_backup_count", 3))

    @log_backup_count.setter
    def log_backup_count(self, value: int) -> None:
        """Set the number of rotated log backups to keep."""
        self._data["log_backup_count"] = max(0, int(value))

    # ---- convenience ----

    def is_configured(self) -> bool:
        """Return True when the save directory is set."""
        return bool(self.save_directory)

    def to_settings(self) -> Settings:
        """
        Resolve the stored values into a :class:`Settings`.

        Raises ConfigurationError when the save directory is unset or a
        timing value is unusable.
        """
        if not self.is_configured():
            raise ConfigurationError(
                "Save directory has not been set! Edit "
                f"{self._path} and point 'save_directory' at your CDDA save directory."
            )
        try:
            grace = float(self._data["grace_period_seconds"])
            poll = float(self._data["poll_interval_seconds"])
        except (TypeError, ValueError) as exc:
            raise ConfigurationError(f"Invalid timing setting: {exc}") from exc
        if grace < 0:
            raise ConfigurationError(f"grace_period_seconds must be >= 0, got {grace}")
        if poll < MIN_POLL_INTERVAL:
            raise ConfigurationError(
                f"poll_interval_seconds must be >= {MIN_POLL_INTERVAL}, got {poll}"
            )

        root = Path(self.save_directory).expanduser().resolve()
        return Settings(
            watched_root=root,
            backup_folder_name=self.backup_folder_name,
            timestamp_format=self.timestamp_format,
            grace_period=grace,
            poll_interval=poll,
        )
