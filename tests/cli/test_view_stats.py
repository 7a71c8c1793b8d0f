"""CLI integration tests for view stats command."""

from __future__ import annotations

import json

from routesync.cli import main


class TestViewStats:
    """Tests for routesync view stats command."""

    def test_view_stats_outputs_totals(self, cli_runner, cli_env: dict[str, str]) -> None:
        """Verify stats output includes totals."""
        result = cli_runner.invoke(main, ["view", "stats"], env=cli_env)

        assert result.exit_code == 0, f"Command failed: {result.output}"
        assert "Total sessions: 7" in result.output
        assert "Total distance:" in result.output

    def test_view_stats_json_output(self, cli_runner, cli_env: dict[str, str]) -> None:
        """Verify --json produces valid JSON with totals."""
        # --json is a global option, must come before subcommand
        result = cli_runner.invoke(main, ["--json", "view", "stats"], env=cli_env)

        assert result.exit_code == 0, f"Command failed: {result.output}"
        data = json.loads(result.output)
        assert data["totals"]["sessions"] == 7
        assert data["longest"] is not None

    def test_view_stats_by_type(self, cli_runner, cli_env: dict[str, str]) -> None:
        """Verify --by-type shows breakdown by activity type."""
        result = cli_runner.invoke(main, ["--json", "view", "stats", "--by-type"], env=cli_env)

        assert result.exit_code == 0, f"Command failed: {result.output}"
        by_type = json.loads(result.output)["by_type"]
        assert by_type["Jogging"]["sessions"] == 4
        assert by_type["Cycling"]["sessions"] == 3

    def test_view_stats_with_verbose(self, cli_runner, cli_env: dict[str, str]) -> None:
        """Verify stats works with verbose flag."""
        result = cli_runner.invoke(main, ["-v", "view", "stats"], env=cli_env)

        assert result.exit_code == 0, f"Command failed: {result.output}"
