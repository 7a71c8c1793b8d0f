"""Incremental motion metrics.

Two independent triggers feed the accumulator: ``observe`` on every new
position fix (distance and instantaneous speed) and ``tick`` on a fixed
cadence (duration and average speed). Duration keeps advancing between
fixes because of the second one.
"""

from __future__ import annotations

import logging
from dataclasses import replace

from routesync.lib.geo import distance_km
from routesync.models.session import Metrics, Position

logger = logging.getLogger("routesync.metrics")


def _speed_kmh(distance: float, elapsed_sec: float) -> float:
    if elapsed_sec <= 0:
        return 0.0
    return (distance / elapsed_sec) * 3600.0


class MetricsAccumulator:
    """Running distance, duration and speed of one session."""

    def __init__(self, started_at: int = 0) -> None:
        self.total_distance_km = 0.0
        self.last_position: Position | None = None
        self.session_started_at = started_at
        self._metrics = Metrics()

    @property
    def metrics(self) -> Metrics:
        """Last published metrics."""
        return self._metrics

    def reset(self, started_at: int) -> None:
        """Start accumulating a new session.

        Args:
            started_at: Session start, epoch milliseconds.
        """
        self.total_distance_km = 0.0
        self.last_position = None
        self.session_started_at = started_at
        self._metrics = Metrics()

    def observe(self, position: Position) -> Metrics:
        """Account for a new position fix.

        Duplicate or backwards timestamps yield a current speed of 0.

        Args:
            position: The new fix.

        Returns:
            Metrics with updated distance and current speed.
        """
        previous = self.last_position
        self.last_position = position
        if previous is None:
            return self._metrics

        leg_km = distance_km(previous, position)
        elapsed_sec = (position.captured_at - previous.captured_at) / 1000.0
        self.total_distance_km += leg_km
        current = _speed_kmh(leg_km, elapsed_sec)

        logger.debug("Leg %.4f km over %.1f s (%.1f km/h)", leg_km, elapsed_sec, current)
        self._metrics = replace(
            self._metrics,
            distance_km=self.total_distance_km,
            current_speed_kmh=current,
        )
        return self._metrics

    def tick(self, now: int) -> Metrics:
        """Advance duration and average speed to ``now``.

        Args:
            now: Current time, epoch milliseconds.

        Returns:
            Metrics with updated duration and average speed.
        """
        duration = max(0.0, (now - self.session_started_at) / 1000.0)
        avg = _speed_kmh(self.total_distance_km, duration) if self.total_distance_km > 0 else 0.0
        self._metrics = replace(self._metrics, duration_sec=duration, avg_speed_kmh=avg)
        return self._metrics
