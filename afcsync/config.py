"""Configuration management for afcsync.

Settings are stored as JSON in ``~/.config/afcsync/config.json``. The
directory can be moved with ``AFCSYNC_CONFIG_DIR``; the device and local
roots can be overridden with ``AFCSYNC_DEVICE_ROOT`` and
``AFCSYNC_LOCAL_ROOT``.
"""

import json
import logging
import os
from pathlib import Path
from typing import Any, Optional

from .exceptions import AfcSyncConfigError
from .utils import (
    DEFAULT_CHUNK_SIZE,
    DEFAULT_IMPORTANT_DIRECTORIES,
    DEFAULT_MAX_ATTEMPTS,
)

logger = logging.getLogger(__name__)

CONFIG_FILE_NAME = "config.json"


class Config:
    """Reads and writes the afcsync configuration file."""

    def __init__(self, config_dir: Optional[Path] = None):
        """Initialize configuration.

        Args:
            config_dir: Directory holding the config file. Defaults to
                ``AFCSYNC_CONFIG_DIR`` or ``~/.config/afcsync``.
        """
        if config_dir is None:
            env_dir = os.environ.get("AFCSYNC_CONFIG_DIR")
            config_dir = (
                Path(env_dir) if env_dir else Path.home() / ".config" / "afcsync"
            )
        self.config_dir = Path(config_dir)

    def get_config_path(self) -> Path:
        return self.config_dir / CONFIG_FILE_NAME

    def load(self) -> dict[str, Any]:
        """Load the configuration file, returning an empty dict if it is missing.

        Raises:
            AfcSyncConfigError: If the file exists but is not a JSON object
        """
        path = self.get_config_path()
        if not path.exists():
            return {}
        try:
            with open(path, encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise AfcSyncConfigError(f"Cannot read config file {path}: {e}") from e
        if not isinstance(data, dict):
            raise AfcSyncConfigError(f"Config file {path} must contain a JSON object")
        return data

    def _save(self, updates: dict[str, Any]) -> None:
        data = self.load()
        for key, value in updates.items():
            if value is None:
                data.pop(key, None)
            else:
                data[key] = value
        self.config_dir.mkdir(parents=True, exist_ok=True)
        path = self.get_config_path()
        with open(path, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2, sort_keys=True)
        logger.debug(f"Saved configuration to {path}")

    def is_configured(self) -> bool:
        """True if a device root is known."""
        return self.get_device_root() is not None

    def get_device_root(self) -> Optional[Path]:
        value = os.environ.get("AFCSYNC_DEVICE_ROOT") or self.load().get("device_root")
        return Path(value).expanduser() if value else None

    def save_device_root(self, device_root: Optional[Path]) -> None:
        self._save({"device_root": str(device_root) if device_root else None})

    def get_local_root(self) -> Optional[Path]:
        value = os.environ.get("AFCSYNC_LOCAL_ROOT") or self.load().get("local_root")
        return Path(value).expanduser() if value else None

    def save_local_root(self, local_root: Optional[Path]) -> None:
        self._save({"local_root": str(local_root) if local_root else None})

    def get_device_id(self) -> Optional[str]:
        return self.load().get("device_id")

    def save_device_id(self, device_id: Optional[str]) -> None:
        self._save({"device_id": device_id})

    def get_important_directories(self) -> list[str]:
        directories = self.load().get("important_directories")
        if not directories:
            return list(DEFAULT_IMPORTANT_DIRECTORIES)
        if not isinstance(directories, list) or not all(
            isinstance(d, str) for d in directories
        ):
            raise AfcSyncConfigError("important_directories must be a list of paths")
        return directories

    def save_important_directories(self, directories: Optional[list[str]]) -> None:
        self._save({"important_directories": directories or None})

    def _get_positive_int(self, key: str, default: int) -> int:
        value = self.load().get(key, default)
        if not isinstance(value, int) or isinstance(value, bool) or value <= 0:
            raise AfcSyncConfigError(f"{key} must be a positive integer, got {value!r}")
        return value

    def get_chunk_size(self) -> int:
        return self._get_positive_int("chunk_size", DEFAULT_CHUNK_SIZE)

    def get_max_attempts(self) -> int:
        return self._get_positive_int("max_attempts", DEFAULT_MAX_ATTEMPTS)


config = Config()
