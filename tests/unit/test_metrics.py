"""Unit tests for the metrics accumulator."""

from __future__ import annotations

import math

import pytest

from routesync.models.session import Metrics, Position
from routesync.services.metrics import MetricsAccumulator


def _pos(lat: float, ts: int, lng: float = -75.0) -> Position:
    return Position(latitude=lat, longitude=lng, captured_at=ts)


class TestObserve:
    """Tests for position observation."""

    def test_first_fix_has_no_distance(self) -> None:
        """Verify a single fix produces no distance or speed."""
        acc = MetricsAccumulator()
        acc.reset(0)

        metrics = acc.observe(_pos(40.0, 0))

        assert metrics == Metrics()
        assert acc.last_position == _pos(40.0, 0)

    def test_example_scenario(self) -> None:
        """Verify 0.001 deg north in 10 s is ~0.111 km at ~40 km/h."""
        acc = MetricsAccumulator()
        acc.reset(0)
        acc.observe(_pos(40.0, 0))

        metrics = acc.observe(_pos(40.001, 10_000))

        assert metrics.distance_km == pytest.approx(0.1112, abs=1e-3)
        assert metrics.current_speed_kmh == pytest.approx(40.0, abs=0.1)
        assert metrics.duration_sec == 0.0
        assert metrics.avg_speed_kmh == 0.0

    def test_identical_timestamps_give_zero_speed(self) -> None:
        """Verify duplicate timestamps never divide by zero."""
        acc = MetricsAccumulator()
        acc.reset(0)
        acc.observe(_pos(40.0, 5_000))

        metrics = acc.observe(_pos(40.001, 5_000))

        assert metrics.current_speed_kmh == 0.0
        assert metrics.distance_km > 0
        assert math.isfinite(metrics.current_speed_kmh)

    def test_backwards_timestamps_give_zero_speed(self) -> None:
        """Verify a fix older than the previous one yields zero speed."""
        acc = MetricsAccumulator()
        acc.reset(0)
        acc.observe(_pos(40.0, 10_000))

        metrics = acc.observe(_pos(40.001, 9_000))

        assert metrics.current_speed_kmh == 0.0
        assert acc.last_position == _pos(40.001, 9_000)

    def test_distance_accumulates(self) -> None:
        """Verify distance is the running total of legs."""
        acc = MetricsAccumulator()
        acc.reset(0)
        for i in range(4):
            metrics = acc.observe(_pos(40.0 + i * 0.001, i * 10_000))

        assert metrics.distance_km == pytest.approx(3 * 0.1112, abs=3e-3)
        assert acc.total_distance_km == metrics.distance_km

    def test_observe_keeps_tick_values(self) -> None:
        """Verify observing a fix leaves duration and average untouched."""
        acc = MetricsAccumulator()
        acc.reset(0)
        acc.observe(_pos(40.0, 0))
        acc.observe(_pos(40.001, 10_000))
        ticked = acc.tick(10_000)

        metrics = acc.observe(_pos(40.002, 20_000))

        assert metrics.duration_sec == ticked.duration_sec
        assert metrics.avg_speed_kmh == ticked.avg_speed_kmh


class TestTick:
    """Tests for the time-driven updates."""

    def test_tick_after_example(self) -> None:
        """Verify tick(10s) gives duration 10 and average ~40 km/h."""
        acc = MetricsAccumulator()
        acc.reset(0)
        acc.observe(_pos(40.0, 0))
        acc.observe(_pos(40.001, 10_000))

        metrics = acc.tick(10_000)

        assert metrics.duration_sec == 10.0
        assert metrics.avg_speed_kmh == pytest.approx(40.0, abs=0.1)
        assert metrics.current_speed_kmh == pytest.approx(40.0, abs=0.1)

    def test_duration_advances_without_fixes(self) -> None:
        """Verify duration keeps growing between fixes."""
        acc = MetricsAccumulator()
        acc.reset(1_000)

        assert acc.tick(2_000).duration_sec == 1.0
        assert acc.tick(31_000).duration_sec == 30.0

    def test_no_distance_means_zero_average(self) -> None:
        """Verify average speed is zero before any distance."""
        acc = MetricsAccumulator()
        acc.reset(0)

        assert acc.tick(60_000).avg_speed_kmh == 0.0

    def test_tick_at_start_time(self) -> None:
        """Verify ticking at the start time does not divide by zero."""
        acc = MetricsAccumulator()
        acc.reset(0)
        acc.total_distance_km = 1.0

        metrics = acc.tick(0)

        assert metrics.duration_sec == 0.0
        assert metrics.avg_speed_kmh == 0.0


def test_reset_clears_state() -> None:
    """Verify reset starts from scratch."""
    acc = MetricsAccumulator()
    acc.reset(0)
    acc.observe(_pos(40.0, 0))
    acc.observe(_pos(40.001, 10_000))
    acc.tick(10_000)

    acc.reset(50_000)

    assert acc.total_distance_km == 0.0
    assert acc.last_position is None
    assert acc.session_started_at == 50_000
    assert acc.metrics == Metrics()
