"""
Configuration management for PlayIt.

Loads TOML config, fills in defaults and validates every tunable parameter
against strict bounds at startup.
"""

import copy
import os
from pathlib import Path
from typing import Dict, Any, Optional
import toml
import logging

from .errors import PlayitError

logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = "PLAYIT_CONFIG_PATH"
DEFAULT_CONFIG_PATH = "playit.toml"


class ConfigError(PlayitError):
    """Raised when config validation fails."""
    pass


class Config:
    """Configuration loader and validator."""

    PARAM_BOUNDS = {
        "storage": {
            "music_dir": str,
            "playlist_path": str,
        },
        "daemon": {
            "pid_file": str,
            "log_file": str,
            "verify_liveness": bool,
        },
        "playback": {
            "sample_rate": (8000, 192000),
            "buffer_seconds": (0.01, 2.0),
            "channels": (1, 2),
        },
        "download": {
            "timeout_seconds": (1, 600),
            "chunk_size": (1024, 1024 * 1024),
        },
    }

    DEFAULT_CONFIG = {
        "config_version": "1.0",
        "storage": {
            "music_dir": "music",
            "playlist_path": "playlist.json",
        },
        "daemon": {
            "pid_file": "playit.pid",
            "log_file": "playit.log",
            "verify_liveness": False,
        },
        "playback": {
            "sample_rate": 44100,
            "buffer_seconds": 0.1,
            "channels": 2,
        },
        "download": {
            "timeout_seconds": 30,
            "chunk_size": 32 * 1024,
        },
    }

    def __init__(self, config_dict: Optional[Dict[str, Any]] = None, source_path: Optional[Path] = None):
        """Initialize config from dictionary."""
        self.data = copy.deepcopy(config_dict) if config_dict is not None else self.defaults()
        self.source_path = source_path
        self._validate()

    @classmethod
    def defaults(cls) -> Dict[str, Any]:
        """Return a fresh copy of the default configuration."""
        return copy.deepcopy(cls.DEFAULT_CONFIG)

    @classmethod
    def load(cls, config_path: Optional[str] = None) -> "Config":
        """
        Load config from TOML file.

        Args:
            config_path: Path to playit.toml. If None, uses PLAYIT_CONFIG_PATH env var
                        or defaults to playit.toml in the working directory.

        Returns:
            Config instance.

        Raises:
            ConfigError: If config is invalid or unreadable.
        """
        if config_path is None:
            config_path = os.getenv(CONFIG_ENV_VAR, DEFAULT_CONFIG_PATH)

        config_path = Path(config_path)

        if not config_path.exists():
            logger.warning(f"Config file not found: {config_path}. Using defaults.")
            return cls(cls.defaults())

        try:
            config_dict = toml.load(config_path)
        except (OSError, toml.TomlDecodeError) as e:
            raise ConfigError(f"Failed to load config from {config_path}: {e}")

        logger.info(f"Loaded config from {config_path}")
        return cls(config_dict, source_path=config_path.resolve())

    def _validate(self) -> None:
        """
        Validate all config parameters against their bounds.

        Raises:
            ConfigError: If any parameter is out of bounds or has the wrong type.
        """
        for section, params in self.PARAM_BOUNDS.items():
            if section not in self.data:
                logger.debug(f"Missing config section: {section}. Using defaults.")
                self.data[section] = copy.deepcopy(self.DEFAULT_CONFIG.get(section, {}))
                continue

            section_data = self.data[section]
            if not isinstance(section_data, dict):
                raise ConfigError(f"Config section [{section}] must be a table")

            for param, bounds in params.items():
                if param not in section_data:
                    default_val = self.DEFAULT_CONFIG.get(section, {}).get(param)
                    if default_val is not None:
                        logger.debug(f"Missing param {section}.{param}. Using default: {default_val}")
                        section_data[param] = default_val
                    continue

                value = section_data[param]

                # Typed parameters (paths, flags)
                if isinstance(bounds, type):
                    if not isinstance(value, bounds):
                        raise ConfigError(
                            f"Parameter {section}.{param}={value!r} must be of type {bounds.__name__}"
                        )
                    continue

                # Numeric ranges
                min_val, max_val = bounds
                if isinstance(value, bool) or not isinstance(value, (int, float)):
                    raise ConfigError(f"Parameter {section}.{param}={value!r} must be numeric")
                if not (min_val <= value <= max_val):
                    raise ConfigError(
                        f"Parameter {section}.{param}={value} out of bounds "
                        f"[{min_val}, {max_val}]"
                    )

        logger.debug("✅ Config validation passed")

    def get(self, section: str, param: str, default: Any = None) -> Any:
        """Get a config parameter safely."""
        return self.data.get(section, {}).get(param, default)

    def __getitem__(self, section: str) -> Dict[str, Any]:
        """Allow dict-like access: config["playback"]"""
        return self.data.get(section, {})

    # Resolved paths

    @property
    def music_dir(self) -> Path:
        return Path(self.get("storage", "music_dir"))

    @property
    def playlist_path(self) -> Path:
        return Path(self.get("storage", "playlist_path"))

    @property
    def pid_file(self) -> Path:
        return Path(self.get("daemon", "pid_file"))

    @property
    def log_file(self) -> Path:
        return Path(self.get("daemon", "log_file"))

    @property
    def buffer_frames(self) -> int:
        """Output buffer size in frames (one tenth of a second by default)."""
        return int(self.get("playback", "sample_rate") * self.get("playback", "buffer_seconds"))

    def __repr__(self) -> str:
        version = self.data.get('config_version', 'unknown')
        return f"Config(version={version})"
