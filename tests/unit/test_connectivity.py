"""Unit tests for connectivity classification."""

from __future__ import annotations

import pytest

from routesync.services.connectivity import (
    ConnectionQuality,
    NetworkInfo,
    StaticConnectivity,
    connection_quality,
)


@pytest.mark.parametrize(
    "downlink,expected",
    [
        (None, ConnectionQuality.UNKNOWN),
        (0.0, ConnectionQuality.UNKNOWN),
        (0.4, ConnectionQuality.POOR),
        (1.0, ConnectionQuality.FAIR),
        (4.9, ConnectionQuality.FAIR),
        (5.0, ConnectionQuality.GOOD),
        (10.0, ConnectionQuality.EXCELLENT),
        (250.0, ConnectionQuality.EXCELLENT),
    ],
)
def test_connection_quality(downlink: float | None, expected: ConnectionQuality) -> None:
    """Verify downlink thresholds map to quality buckets."""
    assert connection_quality(NetworkInfo(downlink_mbps=downlink)) is expected


def test_missing_info_is_unknown() -> None:
    """Verify a platform without network details degrades to unknown."""
    quality = connection_quality(None)

    assert quality is ConnectionQuality.UNKNOWN
    assert quality.score == 0
    assert quality.label == "unknown"


def test_quality_scores() -> None:
    """Verify each bucket carries its score."""
    assert [q.score for q in ConnectionQuality] == [100, 75, 50, 25, 0]


class TestStaticConnectivity:
    """Tests for StaticConnectivity."""

    def test_listeners_see_changes_only(self) -> None:
        """Verify listeners fire when the state actually changes."""
        signal = StaticConnectivity(online=True)
        seen: list[bool] = []
        signal.add_listener(seen.append)

        signal.set_online(True)
        signal.set_online(False)
        signal.set_online(False)
        signal.set_online(True)

        assert seen == [False, True]
        assert signal.is_online()

    def test_network_info(self) -> None:
        """Verify network info is optional and replaceable."""
        signal = StaticConnectivity()
        assert signal.network_info() is None

        info = NetworkInfo(effective_type="4g", downlink_mbps=12.0, rtt_ms=50)
        signal.set_network_info(info)

        assert signal.network_info() == info
        assert info.to_dict()["effective_type"] == "4g"
