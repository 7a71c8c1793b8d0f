"""Position, metrics and completed-session models.

Completed sessions serialize to the JSON shape used by the persisted
history: ``{id, positions: [{lat, lng, timestamp}], distance, duration,
avgSpeed, startTime, endTime}`` with millisecond timestamps.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from enum import Enum
from typing import Any

from routesync.lib.geo import Bounds, route_bounds


@dataclass(frozen=True, slots=True)
class Position:
    """A single position fix.

    Attributes:
        latitude: Latitude in decimal degrees.
        longitude: Longitude in decimal degrees.
        captured_at: Unix epoch milliseconds.
    """

    latitude: float
    longitude: float
    captured_at: int

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary.

        Returns:
            Dictionary representation.
        """
        return {
            "lat": self.latitude,
            "lng": self.longitude,
            "timestamp": self.captured_at,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Position:
        """Create from dictionary.

        Args:
            data: Dictionary with ``lat``, ``lng`` and ``timestamp``.

        Returns:
            Position instance.
        """
        return cls(
            latitude=float(data["lat"]),
            longitude=float(data["lng"]),
            captured_at=int(data["timestamp"]),
        )


@dataclass(frozen=True, slots=True)
class Metrics:
    """Live motion metrics of a session."""

    distance_km: float = 0.0
    duration_sec: float = 0.0
    avg_speed_kmh: float = 0.0
    current_speed_kmh: float = 0.0

    def to_dict(self) -> dict[str, float]:
        return {
            "distance_km": self.distance_km,
            "duration_sec": self.duration_sec,
            "avg_speed_kmh": self.avg_speed_kmh,
            "current_speed_kmh": self.current_speed_kmh,
        }


class ActivityType(str, Enum):
    """Activity guessed from average speed."""

    WALKING = "Walking"
    JOGGING = "Jogging"
    RUNNING = "Running"
    CYCLING = "Cycling"


def classify_activity(avg_speed_kmh: float) -> ActivityType:
    """Classify an activity by its average speed.

    Args:
        avg_speed_kmh: Average speed in km/h.

    Returns:
        Walking below 5 km/h, jogging below 15, running below 25,
        cycling otherwise.
    """
    if avg_speed_kmh < 5:
        return ActivityType.WALKING
    if avg_speed_kmh < 15:
        return ActivityType.JOGGING
    if avg_speed_kmh < 25:
        return ActivityType.RUNNING
    return ActivityType.CYCLING


def new_session_id(ended_at: int) -> str:
    """Generate a unique session id stamped with the stop time."""
    return f"route-{ended_at}-{uuid.uuid4().hex[:8]}"


@dataclass(frozen=True, slots=True)
class CompletedSession:
    """A finished tracking session as stored in history."""

    id: str
    positions: tuple[Position, ...]
    distance_km: float
    duration_sec: float
    avg_speed_kmh: float
    started_at: int
    ended_at: int

    @property
    def point_count(self) -> int:
        return len(self.positions)

    @property
    def activity_type(self) -> ActivityType:
        return classify_activity(self.avg_speed_kmh)

    @property
    def bounds(self) -> Bounds | None:
        return route_bounds(self.positions)

    def to_dict(self) -> dict[str, Any]:
        """Convert session to dictionary for JSON serialization.

        Returns:
            Dictionary representation.
        """
        return {
            "id": self.id,
            "positions": [p.to_dict() for p in self.positions],
            "distance": self.distance_km,
            "duration": self.duration_sec,
            "avgSpeed": self.avg_speed_kmh,
            "startTime": self.started_at,
            "endTime": self.ended_at,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> CompletedSession:
        """Create a CompletedSession from a dictionary.

        Args:
            data: Dictionary with session data.

        Returns:
            CompletedSession instance.

        Raises:
            KeyError: If a required field is missing.
            TypeError: If a field has the wrong type.
            ValueError: If a field cannot be converted.
        """
        if not isinstance(data, dict):
            raise TypeError(f"Expected an object, got {type(data).__name__}")

        positions = data["positions"]
        if not isinstance(positions, list):
            raise TypeError("'positions' must be a list")

        return cls(
            id=str(data["id"]),
            positions=tuple(Position.from_dict(p) for p in positions),
            distance_km=float(data["distance"]),
            duration_sec=float(data["duration"]),
            avg_speed_kmh=float(data["avgSpeed"]),
            started_at=int(data["startTime"]),
            ended_at=int(data["endTime"]),
        )
