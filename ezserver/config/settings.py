"""
User settings for ezserver.

Settings live in ``config.yaml`` inside the platform's user config
directory. Values from the file are layered over ``default_settings`` so
a partial file is enough. A ``Settings`` instance is created once by the
entry point and handed to the components that need it.
"""

import copy
import logging
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml
from platformdirs import user_config_dir, user_data_dir

from ..constants import DOWNLOAD_CHUNK_SIZE, DOWNLOAD_TIMEOUT_SECONDS, FIRST_BOOT_STOP_DELAY_SECONDS

logger = logging.getLogger(__name__)

APP_NAME = "ezserver"
SETTINGS_FILE_NAME = "config.yaml"


def default_settings(data_dir: Path) -> Dict[str, Any]:
    """Settings used for every key the user file leaves out."""
    return {
        "registry": {
            "file": str(Path.home() / "ezserver.json"),
        },
        "downloads": {
            "timeout": DOWNLOAD_TIMEOUT_SECONDS,
            "chunk_size": DOWNLOAD_CHUNK_SIZE,
        },
        "first_boot": {
            "enabled": True,
            "stop_delay": FIRST_BOOT_STOP_DELAY_SECONDS,
        },
        "logging": {
            "level": "INFO",
            "file_logging": True,
            "log_file": str(data_dir / "logs" / "ezserver.log"),
            "max_log_size": "10MB",
            "backup_count": 5,
        },
        "ui": {
            "colored_output": True,
            "confirmation_prompts": True,
        },
    }


def layer(base: Dict[str, Any], overrides: Dict[str, Any]) -> Dict[str, Any]:
    """Copy of ``base`` with ``overrides`` applied section by section."""
    layered = copy.deepcopy(base)
    for key, value in overrides.items():
        if isinstance(value, dict) and isinstance(layered.get(key), dict):
            layered[key] = layer(layered[key], value)
        else:
            layered[key] = value
    return layered


class Settings:
    """ezserver settings backed by a YAML file."""

    def __init__(
        self,
        config_dir: Optional[Union[str, Path]] = None,
        data_dir: Optional[Union[str, Path]] = None,
    ) -> None:
        """
        Load the settings file, writing the defaults if there is none.

        Args:
            config_dir: Directory of config.yaml, defaults to the user config dir
            data_dir: Directory for logs, defaults to the user data dir
        """
        self.config_dir = Path(config_dir or user_config_dir(APP_NAME))
        self.data_dir = Path(data_dir or user_data_dir(APP_NAME))
        self.config_file = self.config_dir / SETTINGS_FILE_NAME

        self.config_dir.mkdir(parents=True, exist_ok=True)
        self.data_dir.mkdir(parents=True, exist_ok=True)

        self._defaults = default_settings(self.data_dir)
        self._values = self._read()

    def _read(self) -> Dict[str, Any]:
        if not self.config_file.exists():
            logger.debug(f"No settings at {self.config_file}, writing defaults")
            self._write(self._defaults)
            return copy.deepcopy(self._defaults)

        try:
            with open(self.config_file, "r", encoding="utf-8") as f:
                user_values = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            logger.warning(f"Cannot read settings from {self.config_file}: {e}. Using defaults.")
            return copy.deepcopy(self._defaults)

        if not isinstance(user_values, dict):
            logger.warning(f"Ignoring {self.config_file}: expected a mapping of sections")
            return copy.deepcopy(self._defaults)
        return layer(self._defaults, user_values)

    def _write(self, values: Dict[str, Any]) -> bool:
        try:
            with open(self.config_file, "w", encoding="utf-8") as f:
                yaml.safe_dump(values, f, default_flow_style=False, sort_keys=False)
        except OSError as e:
            logger.error(f"Cannot write settings to {self.config_file}: {e}")
            return False
        logger.debug(f"Settings written to {self.config_file}")
        return True

    def get(self, key: str, default: Any = None) -> Any:
        """Look up a dotted key such as ``first_boot.stop_delay``."""
        node: Any = self._values
        for part in key.split("."):
            if not isinstance(node, dict) or part not in node:
                return default
            node = node[part]
        return node

    def set(self, key: str, value: Any) -> None:
        """Set a dotted key in memory; ``save_config`` persists it."""
        *sections, name = key.split(".")
        node = self._values
        for section in sections:
            node = node.setdefault(section, {})
        node[name] = value

    def save_config(self) -> bool:
        return self._write(self._values)

    def reset_to_defaults(self) -> None:
        self._values = copy.deepcopy(self._defaults)
        self.save_config()
        logger.info("Settings reset to defaults")

    @property
    def registry_file(self) -> Path:
        """JSON file holding the managed servers."""
        return Path(self.get("registry.file")).expanduser()

    @property
    def stop_delay(self) -> float:
        """Seconds between the ready line and ``stop`` on a first boot."""
        return float(self.get("first_boot.stop_delay", FIRST_BOOT_STOP_DELAY_SECONDS))

    @property
    def download_timeout(self) -> float:
        return float(self.get("downloads.timeout", DOWNLOAD_TIMEOUT_SECONDS))

    @property
    def chunk_size(self) -> int:
        return int(self.get("downloads.chunk_size", DOWNLOAD_CHUNK_SIZE))
