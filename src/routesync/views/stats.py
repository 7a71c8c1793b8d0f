"""Statistics over completed sessions."""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any

from routesync.models.session import CompletedSession


def _summarize(sessions: list[CompletedSession]) -> dict[str, Any]:
    distance = sum(s.distance_km for s in sessions)
    duration = sum(s.duration_sec for s in sessions)
    return {
        "sessions": len(sessions),
        "distance_km": round(distance, 3),
        "duration_sec": round(duration, 1),
        "avg_speed_kmh": round(distance / duration * 3600, 2) if duration > 0 else 0.0,
        "points": sum(s.point_count for s in sessions),
    }


def calculate_stats(
    sessions: Iterable[CompletedSession],
    by_type: bool = False,
) -> dict[str, Any]:
    """Calculate totals over completed sessions.

    Args:
        sessions: Sessions to summarize.
        by_type: Include a breakdown by activity type.

    Returns:
        Dictionary with ``totals``, ``longest`` and optionally ``by_type``.
    """
    items = list(sessions)
    result: dict[str, Any] = {"totals": _summarize(items)}

    longest = max(items, key=lambda s: s.distance_km, default=None)
    result["longest"] = (
        {
            "id": longest.id,
            "distance_km": round(longest.distance_km, 3),
            "duration_sec": round(longest.duration_sec, 1),
        }
        if longest is not None
        else None
    )

    if by_type:
        groups: dict[str, list[CompletedSession]] = {}
        for session in items:
            groups.setdefault(session.activity_type.value, []).append(session)
        result["by_type"] = {name: _summarize(group) for name, group in sorted(groups.items())}

    return result


def format_duration(seconds: float) -> str:
    """Format seconds as ``H:MM:SS`` or ``M:SS``."""
    total = int(seconds)
    hours, rest = divmod(total, 3600)
    minutes, secs = divmod(rest, 60)
    if hours > 0:
        return f"{hours}:{minutes:02d}:{secs:02d}"
    return f"{minutes}:{secs:02d}"


def format_stats(result: dict[str, Any]) -> str:
    """Render statistics as text."""
    totals = result["totals"]
    lines = [
        f"Total sessions: {totals['sessions']}",
        f"Total distance: {totals['distance_km']:.2f} km",
        f"Total time: {format_duration(totals['duration_sec'])}",
        f"Average speed: {totals['avg_speed_kmh']:.1f} km/h",
    ]
    longest = result.get("longest")
    if longest:
        lines.append(f"Longest: {longest['id']} ({longest['distance_km']:.2f} km)")
    if "by_type" in result:
        lines.append("")
        lines.append("By type:")
        for name, summary in result["by_type"].items():
            lines.append(
                f"  {name}: {summary['sessions']} sessions, {summary['distance_km']:.2f} km"
            )
    return "\n".join(lines)
