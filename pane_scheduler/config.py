"""
Scheduler configuration management.

Resolves where the scheduler keeps its files and loads optional daemon
and logging settings from a JSON file in the settings directory.

Settings directory priority:
1. PANE_SCHEDULER_DIR environment variable
2. $XDG_CONFIG_HOME/pane-scheduler
3. Default: ~/.config/pane-scheduler
"""

import json
import logging
import os
from dataclasses import dataclass, asdict
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from dotenv import load_dotenv

load_dotenv()

logger = logging.getLogger(__name__)

SETTINGS_DIR_NAME = "pane-scheduler"
SCHEDULES_FILE_NAME = "schedules.json"
SETTINGS_FILE_NAME = "settings.json"

DEFAULT_DAEMON_INTERVAL = 60.0  # seconds


def settings_dir() -> Path:
    """Get the settings directory from environment or default."""
    if os.environ.get('PANE_SCHEDULER_DIR'):
        return Path(os.environ['PANE_SCHEDULER_DIR']).expanduser()
    if os.environ.get('XDG_CONFIG_HOME'):
        return Path(os.environ['XDG_CONFIG_HOME']).expanduser() / SETTINGS_DIR_NAME
    return Path.home() / ".config" / SETTINGS_DIR_NAME


def schedules_path() -> Path:
    """Get the path to the schedules JSON file."""
    if os.environ.get('PANE_SCHEDULER_SCHEDULES_FILE'):
        return Path(os.environ['PANE_SCHEDULER_SCHEDULES_FILE']).expanduser()
    return settings_dir() / SCHEDULES_FILE_NAME


def _get_default_log_file() -> str:
    """Get default log file path from environment or default."""
    if os.environ.get('PANE_SCHEDULER_LOG_DIR'):
        return str(Path(os.environ['PANE_SCHEDULER_LOG_DIR']).expanduser() / "scheduler.log")
    return str(settings_dir() / "logs" / "scheduler.log")


@dataclass
class LoggingConfig:
    """Logging configuration."""
    level: str = "INFO"
    file: Optional[str] = None  # Set dynamically in __post_init__
    max_bytes: int = 10 * 1024 * 1024  # 10MB
    backup_count: int = 5

    def __post_init__(self):
        if self.file is None:
            self.file = _get_default_log_file()


class SchedulerSettings:
    """
    Daemon and logging settings.

    Loaded from settings.json in the settings directory when it exists,
    otherwise defaults are used.
    """

    def __init__(self, settings_path: Optional[Union[str, Path]] = None):
        """
        Initialize scheduler settings.

        Args:
            settings_path: Path to settings file. If None, uses the settings directory.
        """
        if settings_path:
            self.settings_path = Path(settings_path)
        else:
            self.settings_path = settings_dir() / SETTINGS_FILE_NAME
        self.daemon_interval: float = DEFAULT_DAEMON_INTERVAL
        self.logging: LoggingConfig = LoggingConfig()

        if self.settings_path.exists():
            self.load()
        else:
            logger.debug(f"No settings found at {self.settings_path}, using defaults")

    def load(self):
        """Load settings from JSON file."""
        try:
            with open(self.settings_path, 'r') as f:
                data = json.load(f)

            if 'daemon_interval' in data:
                self.daemon_interval = float(data['daemon_interval'])

            if 'logging' in data:
                self.logging = LoggingConfig(**data['logging'])

            logger.debug(f"Loaded settings from {self.settings_path}")

        except (OSError, ValueError, TypeError) as e:
            logger.error(f"Failed to load settings from {self.settings_path}: {e}")
            raise ValueError(f"invalid settings file {self.settings_path}: {e}") from e

    def save(self):
        """Save settings to JSON file."""
        self.settings_path.parent.mkdir(parents=True, exist_ok=True)

        with open(self.settings_path, 'w') as f:
            json.dump(self.to_dict(), f, indent=2)

        logger.info(f"Saved settings to {self.settings_path}")

    def to_dict(self) -> Dict[str, Any]:
        return {
            'daemon_interval': self.daemon_interval,
            'logging': asdict(self.logging),
        }

    def validate(self) -> List[str]:
        """
        Validate settings.

        Returns:
            List of validation errors (empty if valid)
        """
        errors = []

        if self.daemon_interval <= 0:
            errors.append("'daemon_interval' must be positive")

        if logging.getLevelName(self.logging.level.upper()) not in (
            logging.DEBUG, logging.INFO, logging.WARNING, logging.ERROR, logging.CRITICAL
        ):
            errors.append(f"unknown logging level '{self.logging.level}'")

        if self.logging.max_bytes < 0:
            errors.append("'logging.max_bytes' cannot be negative")

        return errors

    def __repr__(self):
        return f"SchedulerSettings(interval={self.daemon_interval}, path={self.settings_path})"
