"""Command-line interface for routesync.

Provides CLI commands for replaying recorded tracks through the tracking
engine, browsing and managing route history, and viewing statistics.
"""

from __future__ import annotations

import asyncio
import json
import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import TYPE_CHECKING, Any

import click

from routesync import __version__
from routesync.config import DEFAULT_CONFIG_PATH, config_to_dict, ensure_data_dir, load_config
from routesync.errors import RouteSyncError, StreamError, StreamErrorKind

if TYPE_CHECKING:
    from routesync.config import Config
    from routesync.models.history import HistoryStore
    from routesync.models.session import CompletedSession


class JSONOutput:
    """Helper for JSON output formatting."""

    def __init__(self, enabled: bool = False) -> None:
        self.enabled = enabled
        self._data: dict[str, Any] = {}

    def set(self, key: str, value: Any) -> None:
        """Set a value in the output."""
        self._data[key] = value

    def update(self, data: dict[str, Any]) -> None:
        """Update with multiple values."""
        self._data.update(data)

    def output(self) -> None:
        """Print JSON output if enabled."""
        if self.enabled:
            click.echo(json.dumps(self._data, indent=2, default=str))


class Context:
    """CLI context holding shared configuration and state."""

    def __init__(self) -> None:
        self.config: Config | None = None
        self.verbose: int = 0
        self.quiet: bool = False
        self.json_output: bool = False
        self.output: JSONOutput = JSONOutput()

    def log(self, message: str, level: int = 0) -> None:
        """Log a message if verbosity allows.

        Args:
            message: Message to log.
            level: Required verbosity level (0=normal, 1=-v, 2=-vv).
        """
        if self.json_output:
            return
        if self.quiet and level == 0:
            return
        if level <= self.verbose or level == 0:
            click.echo(message)

    def error(self, message: str) -> None:
        """Log an error message."""
        if self.json_output:
            self.output.set("error", message)
            self.output.set("status", "error")
        else:
            click.echo(f"Error: {message}", err=True)

    def fail(self, message: str, exit_code: int = 1) -> None:
        """Report an error and exit."""
        self.error(message)
        if self.json_output:
            self.output.output()
        sys.exit(exit_code)


pass_context = click.make_pass_decorator(Context, ensure=True)


def _require_config(ctx: Context) -> Config:
    if ctx.config is None:
        ctx.fail("Configuration not loaded")
    assert ctx.config is not None
    return ctx.config


def _open_history(config: Config) -> HistoryStore:
    """Open and load the history stored in the data directory."""
    from routesync.lib.paths import get_history_dir
    from routesync.models.history import HistoryStore, JsonFileStore

    data_dir = ensure_data_dir(config)
    history = HistoryStore(JsonFileStore(get_history_dir(data_dir)), key=config.history.storage_key)
    history.load_all()
    return history


def _format_when(epoch_ms: int) -> str:
    return datetime.fromtimestamp(epoch_ms / 1000).strftime("%Y-%m-%d %H:%M")


def _session_summary(session: CompletedSession) -> dict[str, Any]:
    return {
        "id": session.id,
        "activity_type": session.activity_type.value,
        "started_at": session.started_at,
        "ended_at": session.ended_at,
        "distance_km": round(session.distance_km, 3),
        "duration_sec": round(session.duration_sec, 1),
        "avg_speed_kmh": round(session.avg_speed_kmh, 2),
        "points": session.point_count,
    }


def _session_line(session: CompletedSession) -> str:
    from routesync.views.stats import format_duration

    return (
        f"{session.id}  {_format_when(session.started_at)}  "
        f"{session.activity_type.value:<8} {session.distance_km:7.2f} km  "
        f"{format_duration(session.duration_sec):>8}  "
        f"{session.avg_speed_kmh:5.1f} km/h  {session.point_count} pts"
    )


@click.group()
@click.option(
    "--config",
    "-c",
    "config_path",
    type=click.Path(exists=False, path_type=Path),
    default=None,
    help=f"Configuration file path (default: {DEFAULT_CONFIG_PATH})",
)
@click.option(
    "--data-dir",
    "-d",
    type=click.Path(exists=False, path_type=Path),
    default=None,
    help="Data directory path (default: ./data)",
)
@click.option(
    "--verbose",
    "-v",
    count=True,
    help="Increase verbosity (can be repeated: -v, -vv)",
)
@click.option(
    "--quiet",
    "-q",
    is_flag=True,
    help="Suppress non-error output",
)
@click.option(
    "--json",
    "json_output",
    is_flag=True,
    help="Output in JSON format",
)
@click.version_option(version=__version__, prog_name="routesync")
@pass_context
def main(
    ctx: Context,
    config_path: Path | None,
    data_dir: Path | None,
    verbose: int,
    quiet: bool,
    json_output: bool,
) -> None:
    """RouteSync GPS route tracking CLI.

    Replay recorded tracks through the tracking engine, browse your
    route history and view statistics.
    """
    from routesync.lib.logging import setup_logging
    from routesync.lib.paths import get_logs_dir

    ctx.verbose = verbose
    ctx.quiet = quiet
    ctx.json_output = json_output
    ctx.output = JSONOutput(json_output)

    try:
        ctx.config = load_config(config_path)
    except ValueError as e:
        ctx.fail(str(e), exit_code=2)

    if data_dir is not None:
        ctx.config.data.directory = data_dir

    console_level = logging.WARNING
    if verbose == 1:
        console_level = logging.INFO
    elif verbose >= 2:
        console_level = logging.DEBUG
    if json_output:
        # keep stdout parseable; only errors reach the console
        console_level = logging.ERROR
    setup_logging(
        log_dir=get_logs_dir(ensure_data_dir(ctx.config)),
        console_level=console_level,
        quiet=quiet and not json_output,
    )


@main.group()
def track() -> None:
    """Run tracking sessions."""
    pass


class _ReplayClock:
    """Clock following the timestamps of replayed fixes."""

    def __init__(self, now: int) -> None:
        self.now = now

    def __call__(self) -> int:
        return self.now


@track.command(name="replay")
@click.argument(
    "fixes_file",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
)
@click.option(
    "--offline",
    is_flag=True,
    help="Simulate a device without connectivity",
)
@click.option(
    "--fail-after",
    type=click.IntRange(min=0),
    help="Inject a position stream failure after N fixes",
)
@click.option(
    "--fail-kind",
    type=click.Choice([kind.value for kind in StreamErrorKind]),
    default=StreamErrorKind.UNKNOWN.value,
    show_default=True,
    help="Kind of injected failure",
)
@pass_context
def replay(
    ctx: Context,
    fixes_file: Path,
    offline: bool,
    fail_after: int | None,
    fail_kind: str,
) -> None:
    """Replay recorded fixes as a live tracking session.

    FIXES_FILE is a CSV file with latitude, longitude and captured_at
    (epoch milliseconds) columns. The clock follows the fix timestamps
    and ticks once after every fix. The session is stopped at the end
    and saved to history when it has at least two fixes.
    """
    from routesync.services.connectivity import StaticConnectivity
    from routesync.services.sources import ManualTicker, ReplayPositionStream, load_fixes
    from routesync.services.tracker import SessionController, epoch_ms

    config = _require_config(ctx)

    try:
        fixes = load_fixes(fixes_file)
        history = _open_history(config)

        stream = ReplayPositionStream(
            fixes,
            fail_after=fail_after,
            fail_kind=StreamErrorKind(fail_kind),
        )
        ticker = ManualTicker()
        clock = _ReplayClock(fixes[0].captured_at if fixes else epoch_ms())
        errors: list[StreamError] = []

        controller = SessionController(
            stream,
            ticker,
            history,
            connectivity=StaticConnectivity(online=not offline),
            clock=clock,
            options=config.tracking.to_options(),
            on_error=errors.append,
        )
        controller.start()

        def advance(position: Any) -> None:
            clock.now = position.captured_at

        delivered = stream.play(before_each=advance, after_each=lambda _position: ticker.fire())
        ctx.log(f"Replayed {delivered} of {len(fixes)} fixes", level=1)

        if errors:
            ctx.fail(str(errors[0]), exit_code=2)

        metrics = controller.metrics
        session = controller.stop()
        if controller.last_save_error is not None:
            ctx.fail(f"Could not save session: {controller.last_save_error}")

    except (RouteSyncError, ValueError) as e:
        ctx.fail(str(e), exit_code=2)

    if ctx.json_output:
        ctx.output.update({
            "status": "success",
            "fixes": delivered,
            "committed": session is not None,
            "metrics": metrics.to_dict(),
            "session": _session_summary(session) if session else None,
        })
        ctx.output.output()
    elif session is None:
        ctx.log("Session discarded: fewer than two fixes")
    else:
        ctx.log(f"Saved {_session_line(session)}")


@main.group()
def history() -> None:
    """Browse and manage route history."""
    pass


async def _reveal_pages(paginator: Any, pages: int) -> None:
    for _ in range(pages - 1):
        if not paginator.has_more:
            break
        await paginator.request_more()


@history.command(name="list")
@click.option(
    "--pages",
    type=click.IntRange(min=1),
    default=1,
    show_default=True,
    help="Number of pages to reveal",
)
@pass_context
def list_cmd(ctx: Context, pages: int) -> None:
    """List saved sessions, most recent first."""
    from routesync.services.paginator import HistoryPaginator

    config = _require_config(ctx)

    try:
        store = _open_history(config)
        paginator = HistoryPaginator(
            store,
            page_size=config.history.page_size,
            latency_s=config.history.load_latency,
        )
        asyncio.run(_reveal_pages(paginator, pages))
        visible = paginator.visible()
    except (RouteSyncError, ValueError) as e:
        ctx.fail(str(e), exit_code=2)

    if ctx.json_output:
        ctx.output.update({
            "total": paginator.total,
            "revealed": paginator.revealed_count,
            "has_more": paginator.has_more,
            "sessions": [_session_summary(s) for s in visible],
        })
        ctx.output.output()
        return

    if not visible:
        ctx.log("No routes recorded yet")
        return
    for session in visible:
        ctx.log(_session_line(session))
    ctx.log(f"\nShowing {paginator.revealed_count} of {paginator.total}")
    if paginator.has_more:
        ctx.log(f"More available: use --pages {pages + 1}")


@history.command(name="show")
@click.argument("session_id")
@pass_context
def show(ctx: Context, session_id: str) -> None:
    """Show one saved session."""
    config = _require_config(ctx)
    session = _open_history(config).get(session_id)
    if session is None:
        ctx.fail(f"No session with id {session_id}")
    assert session is not None

    bounds = session.bounds
    if ctx.json_output:
        ctx.output.update(_session_summary(session))
        ctx.output.set("positions", [p.to_dict() for p in session.positions])
        ctx.output.set(
            "bounds",
            None
            if bounds is None
            else {
                "min_lat": bounds.min_lat,
                "max_lat": bounds.max_lat,
                "min_lng": bounds.min_lng,
                "max_lng": bounds.max_lng,
            },
        )
        ctx.output.output()
        return

    ctx.log(_session_line(session))
    ctx.log(f"Started: {_format_when(session.started_at)}")
    ctx.log(f"Ended:   {_format_when(session.ended_at)}")
    if bounds is not None:
        ctx.log(
            f"Bounds:  {bounds.min_lat:.6f},{bounds.min_lng:.6f} - "
            f"{bounds.max_lat:.6f},{bounds.max_lng:.6f}"
        )
    for position in session.positions:
        ctx.log(f"  {position.latitude:.6f}, {position.longitude:.6f}  @{position.captured_at}", level=1)


@history.command(name="delete")
@click.argument("session_id")
@pass_context
def delete(ctx: Context, session_id: str) -> None:
    """Delete one saved session."""
    config = _require_config(ctx)
    if not _open_history(config).delete(session_id):
        ctx.fail(f"No session with id {session_id}")

    if ctx.json_output:
        ctx.output.update({"status": "success", "deleted": session_id})
        ctx.output.output()
    else:
        ctx.log(f"Deleted {session_id}")


@history.command(name="clear")
@click.option(
    "--yes",
    is_flag=True,
    help="Do not ask for confirmation",
)
@pass_context
def clear(ctx: Context, yes: bool) -> None:
    """Delete all saved sessions."""
    config = _require_config(ctx)
    store = _open_history(config)
    count = len(store)

    if not yes and not ctx.json_output:
        click.confirm("Are you sure you want to clear all route history?", abort=True)

    store.clear()
    if ctx.json_output:
        ctx.output.update({"status": "success", "cleared": count})
        ctx.output.output()
    else:
        ctx.log(f"Cleared {count} sessions")


@main.group()
def view() -> None:
    """View route history data."""
    pass


@view.command(name="stats")
@click.option(
    "--by-type",
    is_flag=True,
    help="Break down by activity type",
)
@pass_context
def stats(ctx: Context, by_type: bool) -> None:
    """Display route statistics."""
    from routesync.views.stats import calculate_stats, format_stats

    config = _require_config(ctx)

    try:
        result = calculate_stats(_open_history(config), by_type=by_type)
    except Exception as e:
        ctx.fail(f"Stats calculation failed: {e}")

    if ctx.json_output:
        ctx.output.update(result)
        ctx.output.output()
    else:
        ctx.log(format_stats(result))


@main.command()
@click.option("--offline", is_flag=True, help="Report the device as offline")
@click.option("--effective-type", help="Effective connection type (e.g. 4g)")
@click.option("--downlink", type=float, help="Downlink bandwidth in Mbps")
@click.option("--rtt", type=int, help="Round-trip time in ms")
@click.option("--save-data", is_flag=True, help="Data saver enabled")
@pass_context
def network(
    ctx: Context,
    offline: bool,
    effective_type: str | None,
    downlink: float | None,
    rtt: int | None,
    save_data: bool,
) -> None:
    """Classify a network connection and whether tracking may start."""
    from routesync.services.connectivity import (
        NetworkInfo,
        StaticConnectivity,
        connection_quality,
    )

    info = None
    if effective_type or downlink is not None or rtt is not None or save_data:
        info = NetworkInfo(
            effective_type=effective_type,
            downlink_mbps=downlink,
            rtt_ms=rtt,
            save_data=save_data,
        )
    signal = StaticConnectivity(online=not offline, info=info)
    quality = connection_quality(signal.network_info())

    if ctx.json_output:
        ctx.output.update({
            "online": signal.is_online(),
            "tracking_allowed": signal.is_online(),
            "quality": quality.label,
            "score": quality.score,
            "network_info": info.to_dict() if info else None,
        })
        ctx.output.output()
        return

    if not signal.is_online():
        ctx.log("Offline: tracking is disabled until the connection returns")
        return
    ctx.log(f"Online: {quality.label} quality ({quality.score}%)")
    if info is None:
        ctx.log("Network details not available")
    elif info.save_data:
        ctx.log("Data saver is enabled")


@main.command(name="config")
@pass_context
def show_config(ctx: Context) -> None:
    """Show the effective configuration."""
    config = _require_config(ctx)
    data = config_to_dict(config)
    if ctx.json_output:
        ctx.output.update(data)
        ctx.output.output()
        return
    ctx.log(f"Config file: {data['config_path']}")
    for section in ("data", "tracking", "history"):
        ctx.log(f"[{section}]")
        for key, value in data[section].items():
            ctx.log(f"{key} = {value}")


if __name__ == "__main__":
    main()
