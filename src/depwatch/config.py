# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Configuration loading and validation for depwatch."""

import logging
import re
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

logger = logging.getLogger(__name__)

CONFIG_FILENAME = ".depwatch.yml"


class Config:
    """Configuration for the dependency usage engine.

    Loads configuration from .depwatch.yml with validation and defaults.
    Problems with the file never raise: invalid entries are logged and the
    default is used instead.
    """

    DEFAULTS = {
        # Regular expressions; matching dependency names are never reported
        "module_ignore_list": [],
        "debounce_ms": 500,
        "cache_dir": ".depcheck",
        "cache_file": "cache.json",
        "install_dir": "node_modules",
        "manifest_filename": "package.json",
        "max_concurrent_reads": 64,
        "watch_files": True,
    }

    def __init__(self, config_path: Optional[Path] = None):
        """Initialize configuration.

        Args:
            config_path: Path to configuration file. If None, uses
                .depwatch.yml in the current directory.
        """
        if config_path is None:
            config_path = Path.cwd() / CONFIG_FILENAME

        self.config_path = config_path
        self._config: Dict[str, Any] = {}
        self._load_config()

    @classmethod
    def for_project(cls, project_root: Path) -> "Config":
        """Load .depwatch.yml from a project root."""
        return cls(config_path=Path(project_root) / CONFIG_FILENAME)

    def _load_config(self) -> None:
        """Load and validate configuration from file."""
        if not self.config_path.exists():
            logger.info(f"Configuration file not found at {self.config_path}, using defaults")
            self._config = self.DEFAULTS.copy()
            return

        try:
            with open(self.config_path, encoding="utf-8") as f:
                loaded_config = yaml.safe_load(f)

            if loaded_config is None:
                logger.warning("Configuration file is empty, using defaults")
                self._config = self.DEFAULTS.copy()
                return

            if not isinstance(loaded_config, dict):
                logger.warning(
                    f"Configuration file must contain a YAML dictionary, "
                    f"got {type(loaded_config)}, using defaults"
                )
                self._config = self.DEFAULTS.copy()
                return

            self._config = self.DEFAULTS.copy()
            self._validate_and_merge(loaded_config)

        except yaml.YAMLError as e:
            logger.warning(
                f"Error parsing configuration file {self.config_path}: {e}, using defaults"
            )
            self._config = self.DEFAULTS.copy()
        except OSError as e:
            logger.warning(
                f"Error reading configuration file {self.config_path}: {e}, using defaults"
            )
            self._config = self.DEFAULTS.copy()

    def _validate_and_merge(self, loaded_config: Dict[str, Any]) -> None:
        """Validate loaded configuration and merge with defaults.

        Invalid parameters are logged as warnings and defaults are used.
        """
        for key, value in loaded_config.items():
            if key not in self.DEFAULTS:
                logger.warning(f"Unknown configuration parameter '{key}', ignoring")
                continue

            if not self._validate_parameter(key, value):
                logger.warning(
                    f"Invalid value for '{key}': {value}, using default {self.DEFAULTS[key]}"
                )
                continue

            self._config[key] = value

    def _validate_parameter(self, key: str, value: Any) -> bool:
        """Validate a configuration parameter.

        Returns:
            True if valid, False if invalid
        """
        expected_type = type(self.DEFAULTS[key])
        # bool is a subclass of int; reject True/False for numeric settings
        if not isinstance(value, expected_type) or (
            expected_type is int and isinstance(value, bool)
        ):
            return False

        if key == "debounce_ms":
            return bool(0 <= value <= 60000)
        elif key == "max_concurrent_reads":
            return bool(value > 0)
        elif key == "module_ignore_list":
            return all(isinstance(p, str) and _is_valid_regex(p) for p in value)
        elif key in ("cache_dir", "cache_file", "install_dir", "manifest_filename"):
            # Plain names relative to the project root
            return bool(value) and "/" not in value and "\\" not in value and value != ".."

        return True

    @property
    def module_ignore_list(self) -> List[str]:
        """Regular expressions for dependency names to exclude from reports."""
        value = self._config["module_ignore_list"]
        assert isinstance(value, list)
        return value

    @property
    def debounce_ms(self) -> int:
        """Delay before a burst of edits to one file is processed."""
        value = self._config["debounce_ms"]
        assert isinstance(value, int)
        return value

    @property
    def debounce_seconds(self) -> float:
        return self.debounce_ms / 1000.0

    @property
    def cache_dir(self) -> str:
        """Hidden project-local directory holding the cache file."""
        value = self._config["cache_dir"]
        assert isinstance(value, str)
        return value

    @property
    def cache_file(self) -> str:
        value = self._config["cache_file"]
        assert isinstance(value, str)
        return value

    @property
    def install_dir(self) -> str:
        """Dependency install directory skipped by the walk."""
        value = self._config["install_dir"]
        assert isinstance(value, str)
        return value

    @property
    def manifest_filename(self) -> str:
        value = self._config["manifest_filename"]
        assert isinstance(value, str)
        return value

    @property
    def max_concurrent_reads(self) -> int:
        """Upper bound on concurrent file reads during a full scan."""
        value = self._config["max_concurrent_reads"]
        assert isinstance(value, int)
        return value

    @property
    def watch_files(self) -> bool:
        """Whether the server watches the project directory for changes."""
        value = self._config["watch_files"]
        assert isinstance(value, bool)
        return value


def _is_valid_regex(pattern: str) -> bool:
    try:
        re.compile(pattern)
    except re.error:
        return False
    return True
