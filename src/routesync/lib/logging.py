"""Logging configuration for routesync.

Messages go to stderr and to a timestamped file under the data
directory's ``logs/`` folder, so replays and history edits leave a trace.
"""

from __future__ import annotations

import logging
import sys
from datetime import datetime
from pathlib import Path

logger = logging.getLogger("routesync")

CONSOLE_FORMAT = "%(message)s"
FILE_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def setup_logging(
    log_dir: Path,
    console_level: int = logging.INFO,
    file_level: int = logging.DEBUG,
    quiet: bool = False,
) -> Path:
    """Attach console and file handlers to the ``routesync`` logger.

    Handlers from an earlier call are closed first, so the CLI can be
    invoked repeatedly in one process.

    Args:
        log_dir: Directory receiving ``routesync-<timestamp>.log``.
        console_level: Level for stderr output.
        file_level: Level for the log file.
        quiet: Raise the console level to WARNING.

    Returns:
        Path of the log file.
    """
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.setLevel(min(console_level, file_level))

    console = logging.StreamHandler(sys.stderr)
    console.setLevel(max(console_level, logging.WARNING) if quiet else console_level)
    console.setFormatter(logging.Formatter(CONSOLE_FORMAT))
    logger.addHandler(console)

    log_dir.mkdir(parents=True, exist_ok=True)
    # sortable basic ISO 8601 stamp
    log_file = log_dir / f"routesync-{datetime.now():%Y%m%dT%H%M%S}.log"
    file_handler = logging.FileHandler(log_file, encoding="utf-8")
    file_handler.setLevel(file_level)
    file_handler.setFormatter(logging.Formatter(FILE_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
    logger.addHandler(file_handler)

    logger.debug("Writing log to %s", log_file)
    return log_file
