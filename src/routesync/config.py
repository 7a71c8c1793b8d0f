"""Configuration management for routesync.

Handles loading configuration from TOML files and environment variables
with proper precedence.
"""

from __future__ import annotations

import os
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

if sys.version_info >= (3, 11):
    import tomllib
else:
    import tomli as tomllib

from routesync.models.history import DEFAULT_STORAGE_KEY
from routesync.services.paginator import DEFAULT_LOAD_LATENCY, DEFAULT_PAGE_SIZE
from routesync.services.tracker import TrackingOptions

DEFAULT_CONFIG_PATH = Path.home() / ".config" / "routesync" / "config.toml"
LOCAL_CONFIG_NAME = ".routesync.toml"
DEFAULT_DATA_DIR = Path("./data")


@dataclass
class DataConfig:
    """Data storage configuration."""

    directory: Path = field(default_factory=lambda: DEFAULT_DATA_DIR)


@dataclass
class TrackingConfig:
    """Position stream and tick configuration."""

    high_accuracy: bool = True
    timeout_ms: int = 10_000
    max_age_ms: int = 1_000
    tick_interval: float = 1.0

    def to_options(self) -> TrackingOptions:
        return TrackingOptions(
            high_accuracy=self.high_accuracy,
            timeout_ms=self.timeout_ms,
            max_age_ms=self.max_age_ms,
            tick_interval_s=self.tick_interval,
        )


@dataclass
class HistoryConfig:
    """History storage and pagination configuration."""

    storage_key: str = DEFAULT_STORAGE_KEY
    page_size: int = DEFAULT_PAGE_SIZE
    load_latency: float = DEFAULT_LOAD_LATENCY


@dataclass
class Config:
    """Main configuration container."""

    data: DataConfig = field(default_factory=DataConfig)
    tracking: TrackingConfig = field(default_factory=TrackingConfig)
    history: HistoryConfig = field(default_factory=HistoryConfig)
    config_path: Path | None = None


def _get_env_value(key: str, default: str = "") -> str:
    """Get environment variable value."""
    return os.environ.get(key, default)


def _find_config_path() -> Path:
    """Locate the configuration file when none was given explicitly."""
    if env_config := _get_env_value("ROUTESYNC_CONFIG"):
        return Path(env_config)
    local = Path(LOCAL_CONFIG_NAME)
    if local.exists():
        return local
    return DEFAULT_CONFIG_PATH


def load_config(config_path: Path | None = None) -> Config:
    """Load configuration from file and environment variables.

    Configuration is loaded with the following precedence (highest to lowest):
    1. Environment variables
    2. Configuration file
    3. Default values

    Args:
        config_path: Path to configuration file. If None, uses
            ``ROUTESYNC_CONFIG``, then ``./.routesync.toml``, then the
            default location.

    Returns:
        Populated Config object.

    Raises:
        ValueError: If the file contains invalid values.
    """
    config = Config()

    if config_path is None:
        config_path = _find_config_path()

    config.config_path = config_path

    if config_path.exists():
        config = _load_from_file(config_path, config)

    config = _apply_env_overrides(config)

    return config


def _load_from_file(path: Path, config: Config) -> Config:
    """Load configuration from TOML file.

    Args:
        path: Path to TOML file.
        config: Existing config to update.

    Returns:
        Updated Config object.
    """
    with open(path, "rb") as f:
        try:
            data = tomllib.load(f)
        except tomllib.TOMLDecodeError as e:
            raise ValueError(f"Invalid configuration file {path}: {e}") from e

    if "data" in data:
        data_section = data["data"]
        if "directory" in data_section:
            config.data.directory = Path(data_section["directory"]).expanduser()

    if "tracking" in data:
        tracking = data["tracking"]
        config.tracking.high_accuracy = bool(
            tracking.get("high_accuracy", config.tracking.high_accuracy)
        )
        config.tracking.timeout_ms = int(tracking.get("timeout_ms", config.tracking.timeout_ms))
        config.tracking.max_age_ms = int(tracking.get("max_age_ms", config.tracking.max_age_ms))
        config.tracking.tick_interval = float(
            tracking.get("tick_interval", config.tracking.tick_interval)
        )

    if "history" in data:
        history = data["history"]
        config.history.storage_key = str(history.get("storage_key", config.history.storage_key))
        config.history.page_size = int(history.get("page_size", config.history.page_size))
        config.history.load_latency = float(
            history.get("load_latency", config.history.load_latency)
        )

    _validate(config)
    return config


def _apply_env_overrides(config: Config) -> Config:
    """Apply environment variable overrides to configuration.

    Args:
        config: Config to update.

    Returns:
        Updated Config object.
    """
    if data_dir := _get_env_value("ROUTESYNC_DATA_DIR"):
        config.data.directory = Path(data_dir)

    if page_size := _get_env_value("ROUTESYNC_PAGE_SIZE"):
        try:
            config.history.page_size = int(page_size)
        except ValueError as e:
            raise ValueError(f"ROUTESYNC_PAGE_SIZE must be an integer, got {page_size!r}") from e

    _validate(config)
    return config


def _validate(config: Config) -> None:
    if config.history.page_size < 1:
        raise ValueError(f"history.page_size must be at least 1, got {config.history.page_size}")
    if config.tracking.tick_interval <= 0:
        raise ValueError(
            f"tracking.tick_interval must be positive, got {config.tracking.tick_interval}"
        )


def config_to_dict(config: Config) -> dict[str, Any]:
    """Flatten the effective configuration for display."""
    return {
        "config_path": str(config.config_path) if config.config_path else None,
        "data": {"directory": str(config.data.directory)},
        "tracking": {
            "high_accuracy": config.tracking.high_accuracy,
            "timeout_ms": config.tracking.timeout_ms,
            "max_age_ms": config.tracking.max_age_ms,
            "tick_interval": config.tracking.tick_interval,
        },
        "history": {
            "storage_key": config.history.storage_key,
            "page_size": config.history.page_size,
            "load_latency": config.history.load_latency,
        },
    }


def ensure_data_dir(config: Config) -> Path:
    """Ensure data directory exists and return its path.

    Args:
        config: Configuration with data directory setting.

    Returns:
        Path to data directory.
    """
    data_dir = config.data.directory.resolve()
    data_dir.mkdir(parents=True, exist_ok=True)
    return data_dir
