"""CLI integration tests for history commands."""

from __future__ import annotations

import json
from pathlib import Path

from routesync.cli import main
from routesync.lib.paths import get_history_dir
from routesync.models.history import DEFAULT_STORAGE_KEY, HistoryStore, JsonFileStore


def _stored(data_dir: Path) -> HistoryStore:
    store = HistoryStore(JsonFileStore(get_history_dir(data_dir)))
    store.load_all()
    return store


class TestHistoryList:
    """Tests for routesync history list."""

    def test_first_page(self, cli_runner, cli_env: dict[str, str]) -> None:
        """Verify the first page shows five of seven sessions."""
        result = cli_runner.invoke(main, ["history", "list"], env=cli_env)

        assert result.exit_code == 0, f"Command failed: {result.output}"
        assert result.output.count("route-") == 5
        assert "Showing 5 of 7" in result.output
        assert "--pages 2" in result.output

    def test_all_pages_json(self, cli_runner, cli_data_dir: Path, cli_env: dict[str, str]) -> None:
        """Verify --pages reveals the rest, most recent first."""
        result = cli_runner.invoke(main, ["--json", "history", "list", "--pages", "2"], env=cli_env)

        assert result.exit_code == 0, f"Command failed: {result.output}"
        data = json.loads(result.output)
        assert data["total"] == 7
        assert data["revealed"] == 7
        assert data["has_more"] is False
        ids = [s["id"] for s in data["sessions"]]
        assert ids == [s.id for s in _stored(cli_data_dir).sessions]

    def test_empty_history(self, cli_runner, cli_env: dict[str, str], tmp_path: Path) -> None:
        """Verify an empty data directory lists nothing."""
        env = {**cli_env, "ROUTESYNC_DATA_DIR": str(tmp_path / "empty")}

        result = cli_runner.invoke(main, ["history", "list"], env=env)

        assert result.exit_code == 0, f"Command failed: {result.output}"
        assert "No routes recorded yet" in result.output

    def test_corrupt_history_lists_nothing(
        self, cli_runner, cli_data_dir: Path, cli_env: dict[str, str]
    ) -> None:
        """Verify corrupted history is treated as empty, not fatal."""
        (get_history_dir(cli_data_dir) / f"{DEFAULT_STORAGE_KEY}.json").write_text("{oops")

        result = cli_runner.invoke(main, ["--json", "history", "list"], env=cli_env)

        assert result.exit_code == 0, f"Command failed: {result.output}"
        assert json.loads(result.output)["total"] == 0


class TestHistoryShowDelete:
    """Tests for show and delete."""

    def test_show(self, cli_runner, cli_data_dir: Path, cli_env: dict[str, str]) -> None:
        """Verify show prints positions and bounds."""
        session = _stored(cli_data_dir).sessions[0]

        result = cli_runner.invoke(main, ["--json", "history", "show", session.id], env=cli_env)

        assert result.exit_code == 0, f"Command failed: {result.output}"
        data = json.loads(result.output)
        assert data["id"] == session.id
        assert len(data["positions"]) == session.point_count
        assert data["bounds"]["min_lat"] == 40.0

    def test_show_unknown(self, cli_runner, cli_env: dict[str, str]) -> None:
        """Verify showing a missing session fails."""
        result = cli_runner.invoke(main, ["history", "show", "route-missing"], env=cli_env)

        assert result.exit_code == 1
        assert "No session with id route-missing" in result.output

    def test_delete(self, cli_runner, cli_data_dir: Path, cli_env: dict[str, str]) -> None:
        """Verify delete removes exactly one session."""
        session = _stored(cli_data_dir).sessions[2]

        result = cli_runner.invoke(main, ["history", "delete", session.id], env=cli_env)

        assert result.exit_code == 0, f"Command failed: {result.output}"
        store = _stored(cli_data_dir)
        assert len(store) == 6
        assert store.get(session.id) is None


class TestHistoryClear:
    """Tests for routesync history clear."""

    def test_clear_with_yes(self, cli_runner, cli_data_dir: Path, cli_env: dict[str, str]) -> None:
        """Verify clear empties history and later loads return nothing."""
        result = cli_runner.invoke(main, ["history", "clear", "--yes"], env=cli_env)

        assert result.exit_code == 0, f"Command failed: {result.output}"
        assert "Cleared 7 sessions" in result.output
        assert _stored(cli_data_dir).load_all() == []
        assert not (get_history_dir(cli_data_dir) / f"{DEFAULT_STORAGE_KEY}.json").exists()

    def test_clear_declined(self, cli_runner, cli_data_dir: Path, cli_env: dict[str, str]) -> None:
        """Verify answering no keeps history."""
        result = cli_runner.invoke(main, ["history", "clear"], env=cli_env, input="n\n")

        assert result.exit_code == 1
        assert len(_stored(cli_data_dir)) == 7

    def test_clear_twice(self, cli_runner, cli_env: dict[str, str]) -> None:
        """Verify clearing an empty history succeeds."""
        cli_runner.invoke(main, ["history", "clear", "--yes"], env=cli_env)
        result = cli_runner.invoke(main, ["history", "clear", "--yes"], env=cli_env)

        assert result.exit_code == 0, f"Command failed: {result.output}"
        assert "Cleared 0 sessions" in result.output
