"""Shared fixtures for routesync tests."""

from __future__ import annotations

import logging
from collections.abc import Generator
from pathlib import Path

import pytest
from click.testing import CliRunner

from routesync.lib.paths import get_history_dir
from routesync.models.history import HistoryStore, InMemoryStore, JsonFileStore
from routesync.models.session import CompletedSession, Position

BASE_MS = 1_700_000_000_000


def make_session(index: int, points: int = 3, speed_deg_per_fix: float = 0.001) -> CompletedSession:
    """Build a completed session heading north, one fix every 10 seconds."""
    started_at = BASE_MS + index * 3_600_000
    positions = tuple(
        Position(
            latitude=40.0 + i * speed_deg_per_fix,
            longitude=-75.0,
            captured_at=started_at + i * 10_000,
        )
        for i in range(points)
    )
    distance = 0.1112 * (points - 1) * (speed_deg_per_fix / 0.001)
    duration = (points - 1) * 10.0
    return CompletedSession(
        id=f"route-{started_at + duration * 1000:.0f}-{index:08x}",
        positions=positions,
        distance_km=distance,
        duration_sec=duration,
        avg_speed_kmh=distance / duration * 3600,
        started_at=started_at,
        ended_at=started_at + int(duration * 1000),
    )


def write_fixes(path: Path, rows: list[tuple[float, float, int]]) -> Path:
    """Write a fixes CSV file."""
    lines = ["latitude,longitude,captured_at"]
    lines += [f"{lat},{lng},{ts}" for lat, lng, ts in rows]
    path.write_text("\n".join(lines) + "\n")
    return path


@pytest.fixture(autouse=True)
def _reset_routesync_logging() -> Generator[None, None, None]:
    """Drop handlers installed by CLI runs so later tests don't log to closed streams."""
    yield
    logger = logging.getLogger("routesync")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.setLevel(logging.NOTSET)


@pytest.fixture
def memory_store() -> InMemoryStore:
    return InMemoryStore()


@pytest.fixture
def history(memory_store: InMemoryStore) -> HistoryStore:
    return HistoryStore(memory_store)


@pytest.fixture
def cli_runner() -> CliRunner:
    return CliRunner()


@pytest.fixture
def cli_data_dir(tmp_path: Path) -> Path:
    """Data directory holding seven saved sessions (index 6 is most recent)."""
    data_dir = tmp_path / "data"
    store = HistoryStore(JsonFileStore(get_history_dir(data_dir)))
    for i in range(7):
        store.add(make_session(i, speed_deg_per_fix=0.001 if i % 2 else 0.0002))
    return data_dir


@pytest.fixture
def cli_env(tmp_path: Path, cli_data_dir: Path) -> dict[str, str]:
    """Environment pointing the CLI at the test data and a fast config."""
    config_path = tmp_path / "config.toml"
    config_path.write_text("[history]\nload_latency = 0.0\n")
    return {
        "ROUTESYNC_CONFIG": str(config_path),
        "ROUTESYNC_DATA_DIR": str(cli_data_dir),
    }
