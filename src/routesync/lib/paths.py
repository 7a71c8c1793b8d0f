"""Filesystem layout of the routesync data directory.

    <data_dir>/
        history/
            fitnessRoutes.json    serialized history snapshot
        logs/
            routesync-<timestamp>.log
"""

from __future__ import annotations

from pathlib import Path

HISTORY_DIRNAME = "history"
LOGS_DIRNAME = "logs"


def get_history_dir(data_dir: Path) -> Path:
    """Directory holding persisted history snapshots."""
    return data_dir / HISTORY_DIRNAME


def get_logs_dir(data_dir: Path) -> Path:
    """Directory holding log files."""
    return data_dir / LOGS_DIRNAME


def get_snapshot_path(directory: Path, key: str) -> Path:
    """Get the file backing a persisted key.

    Args:
        directory: Store directory.
        key: Storage key, used verbatim as the file stem.

    Returns:
        Path to ``<key>.json`` inside ``directory``.

    Raises:
        ValueError: If the key would escape the store directory.
    """
    if not key or "/" in key or "\\" in key or key.startswith("."):
        raise ValueError(f"Invalid storage key: {key!r}")
    return directory / f"{key}.json"
