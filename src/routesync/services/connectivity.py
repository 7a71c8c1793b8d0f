"""Connectivity signal and connection-quality classification.

Only the online/offline state gates anything (starting a session).
Richer network details are informational and may be missing entirely.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import Any, Protocol

logger = logging.getLogger("routesync.connectivity")

OnlineCallback = Callable[[bool], None]


@dataclass(frozen=True, slots=True)
class NetworkInfo:
    """Best-effort description of the current connection."""

    effective_type: str | None = None
    downlink_mbps: float | None = None
    rtt_ms: int | None = None
    save_data: bool = False
    connection_type: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "effective_type": self.effective_type,
            "downlink_mbps": self.downlink_mbps,
            "rtt_ms": self.rtt_ms,
            "save_data": self.save_data,
            "connection_type": self.connection_type,
        }


class ConnectionQuality(Enum):
    """Connection quality bucket and its score out of 100."""

    EXCELLENT = ("excellent", 100)
    GOOD = ("good", 75)
    FAIR = ("fair", 50)
    POOR = ("poor", 25)
    UNKNOWN = ("unknown", 0)

    def __init__(self, label: str, score: int) -> None:
        self.label = label
        self.score = score


def connection_quality(info: NetworkInfo | None) -> ConnectionQuality:
    """Classify a connection by its downlink bandwidth.

    Args:
        info: Network details, or None when the platform gives none.

    Returns:
        Excellent from 10 Mbps, good from 5, fair from 1, poor below,
        unknown without a downlink figure.
    """
    if info is None or not info.downlink_mbps:
        return ConnectionQuality.UNKNOWN
    if info.downlink_mbps >= 10:
        return ConnectionQuality.EXCELLENT
    if info.downlink_mbps >= 5:
        return ConnectionQuality.GOOD
    if info.downlink_mbps >= 1:
        return ConnectionQuality.FAIR
    return ConnectionQuality.POOR


class ConnectivitySignal(Protocol):
    """Online/offline state with change notification."""

    def is_online(self) -> bool: ...

    def add_listener(self, callback: OnlineCallback) -> None: ...

    def network_info(self) -> NetworkInfo | None: ...


class StaticConnectivity:
    """Connectivity signal whose state is set by the owner."""

    def __init__(self, online: bool = True, info: NetworkInfo | None = None) -> None:
        self._online = online
        self._info = info
        self._listeners: list[OnlineCallback] = []

    def is_online(self) -> bool:
        return self._online

    def network_info(self) -> NetworkInfo | None:
        return self._info

    def add_listener(self, callback: OnlineCallback) -> None:
        self._listeners.append(callback)

    def set_online(self, online: bool) -> None:
        """Update the state, notifying listeners on change."""
        if online == self._online:
            return
        self._online = online
        logger.info("Connectivity changed: %s", "online" if online else "offline")
        for callback in list(self._listeners):
            callback(online)

    def set_network_info(self, info: NetworkInfo | None) -> None:
        self._info = info
