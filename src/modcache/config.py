# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Configuration loading and validation for the module location cache.

Settings come from two places, applied in order:
1. An optional ``.modcache.yml`` file in the working directory
2. Keyword overrides passed by the host program (``CacheConfig(cache_file=...)``)

File values are validated leniently (invalid entries are logged and the default
is kept). Programmatic overrides are validated strictly and raise
ConfigurationError, since a host passing a bad value is a programming error.
"""

import logging
import os
import tempfile
from pathlib import Path
from typing import Any, Callable, Dict, Optional, Tuple, Union

import yaml

from modcache.version import __version__

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_FILENAME = ".modcache.yml"

DEFAULT_CACHE_FILE = os.path.join(tempfile.gettempdir(), "module-locations-cache.json")
# Relative to cache_scope, so each project keeps its own seed
DEFAULT_STARTUP_FILE = "module-locations-startup.json"

StatusCallback = Callable[[str], None]


class ConfigurationError(ValueError):
    """Raised when a programmatic configuration override is invalid."""

    pass


def _no_status(_message: str) -> None:
    return None


class CacheConfig:
    """Configuration for a ModuleLocationCache instance.

    Established once when the cache starts and held for the process lifetime.
    Relative ``cache_file`` and ``startup_file`` values are resolved against
    ``cache_scope``.
    """

    # None means "computed when the config is created" (cwd, package version)
    DEFAULTS: Dict[str, Any] = {
        "cache_scope": None,
        "cache_file": DEFAULT_CACHE_FILE,
        "startup_file": DEFAULT_STARTUP_FILE,
        "save_timeout": 1000,
        "version_tag": None,
        "dependency_markers": ["site-packages", "dist-packages"],
    }

    def __init__(
        self,
        config_path: Optional[Path] = None,
        status_callback: Optional[StatusCallback] = None,
        **overrides: Any,
    ):
        """Initialize configuration.

        Args:
            config_path: Path to a YAML configuration file. If None, uses
                .modcache.yml in the current working directory.
            status_callback: Sink for human-readable status messages.
            **overrides: Values taking precedence over the file. Falsy values
                are ignored and leave the file/default value in place.

        Raises:
            ConfigurationError: If an override is unknown or invalid.
        """
        if config_path is None:
            config_path = Path.cwd() / DEFAULT_CONFIG_FILENAME

        self.config_path = config_path
        self._config: Dict[str, Any] = {}
        self._load_config()
        self._apply_overrides(overrides)

        if status_callback is not None and not callable(status_callback):
            raise ConfigurationError(f"status_callback must be callable, got {status_callback!r}")
        self._status_callback: StatusCallback = status_callback or _no_status

        if self._config["cache_scope"] is None:
            self._config["cache_scope"] = os.getcwd()
        if self._config["version_tag"] is None:
            self._config["version_tag"] = __version__

    def _load_config(self) -> None:
        """Load and validate configuration from file."""
        self._config = self.DEFAULTS.copy()

        if not self.config_path.exists():
            logger.debug(f"Configuration file not found at {self.config_path}, using defaults")
            return

        try:
            with open(self.config_path, encoding="utf-8") as f:
                loaded_config = yaml.safe_load(f)
        except yaml.YAMLError as e:
            logger.warning(
                f"Error parsing configuration file {self.config_path}: {e}, using defaults"
            )
            return
        except OSError as e:
            logger.warning(
                f"Could not read configuration file {self.config_path}: {e}, using defaults"
            )
            return

        if loaded_config is None:
            logger.warning("Configuration file is empty, using defaults")
            return

        if not isinstance(loaded_config, dict):
            logger.warning(
                f"Configuration file must contain a YAML dictionary, "
                f"got {type(loaded_config)}, using defaults"
            )
            return

        for key, value in loaded_config.items():
            if key not in self.DEFAULTS:
                logger.warning(f"Unknown configuration parameter '{key}', ignoring")
                continue

            normalized = self._normalize(key, value)
            if normalized is None:
                logger.warning(
                    f"Invalid value for '{key}': {value}, using default {self.DEFAULTS[key]}"
                )
                continue

            self._config[key] = normalized

    def _apply_overrides(self, overrides: Dict[str, Any]) -> None:
        for key, value in overrides.items():
            if key not in self.DEFAULTS:
                raise ConfigurationError(f"Unknown configuration parameter '{key}'")
            if not value:
                continue

            normalized = self._normalize(key, value)
            if normalized is None:
                raise ConfigurationError(f"Invalid value for '{key}': {value!r}")
            self._config[key] = normalized

    def _normalize(self, key: str, value: Any) -> Any:
        """Validate a parameter and convert it to its stored form.

        Returns:
            The normalized value, or None if the value is invalid.
        """
        if key in ("cache_scope", "cache_file", "startup_file"):
            if isinstance(value, (str, os.PathLike)) and os.fspath(value):
                return os.fspath(value)
            return None

        if key == "save_timeout":
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                return None
            return value if value > 0 else None

        if key == "version_tag":
            # YAML reads an unquoted 1.0 as a float
            if isinstance(value, bool):
                return None
            if isinstance(value, (int, float)):
                return str(value)
            return value if isinstance(value, str) and value else None

        if key == "dependency_markers":
            if not isinstance(value, (list, tuple)) or not value:
                return None
            for marker in value:
                if not isinstance(marker, str) or not marker or "/" in marker or "\\" in marker:
                    return None
            return list(value)

        return None

    def _resolve_file(self, value: str) -> str:
        if os.path.isabs(value):
            return os.path.normpath(value)
        return os.path.normpath(os.path.join(self.cache_scope, value))

    @property
    def cache_scope(self) -> str:
        """Directory boundary; paths outside it are never cached."""
        value = self._config["cache_scope"]
        assert isinstance(value, str)
        return os.path.abspath(value)

    @property
    def cache_file(self) -> str:
        """Volatile, frequently rewritten cache document."""
        return self._resolve_file(self._config["cache_file"])

    @property
    def startup_file(self) -> str:
        """Stable startup seed document, typically committed with the project."""
        return self._resolve_file(self._config["startup_file"])

    @property
    def save_timeout(self) -> Union[int, float]:
        """Debounce delay in milliseconds before a pending save is flushed."""
        value = self._config["save_timeout"]
        assert isinstance(value, (int, float))
        return value

    @property
    def version_tag(self) -> Optional[str]:
        """Invalidation token stored in persisted documents."""
        return self._config["version_tag"]

    @property
    def dependency_markers(self) -> Tuple[str, ...]:
        """Path segments identifying third-party dependency directories."""
        return tuple(self._config["dependency_markers"])

    @property
    def status_callback(self) -> StatusCallback:
        return self._status_callback

    def __repr__(self) -> str:
        return (
            f"CacheConfig(cache_scope={self.cache_scope!r}, cache_file={self.cache_file!r}, "
            f"startup_file={self.startup_file!r}, save_timeout={self.save_timeout!r}, "
            f"version_tag={self.version_tag!r})"
        )
