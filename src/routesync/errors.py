"""Exceptions raised by the tracking engine and history store."""

from __future__ import annotations

from enum import Enum


class RouteSyncError(Exception):
    """Base exception for routesync errors."""


class CapabilityUnavailable(RouteSyncError):
    """Raised when no position stream is available on this platform."""

    def __init__(self, message: str = "Geolocation is not supported on this device.") -> None:
        super().__init__(message)


class ConnectivityRequired(RouteSyncError):
    """Raised when tracking is requested while the device reports offline."""

    def __init__(
        self, message: str = "You need an internet connection to start tracking."
    ) -> None:
        super().__init__(message)


class StreamErrorKind(str, Enum):
    """Classification of position stream failures."""

    PERMISSION_DENIED = "permission_denied"
    POSITION_UNAVAILABLE = "position_unavailable"
    TIMEOUT = "timeout"
    UNKNOWN = "unknown"


STREAM_ERROR_MESSAGES: dict[StreamErrorKind, str] = {
    StreamErrorKind.PERMISSION_DENIED: "Location access denied by user.",
    StreamErrorKind.POSITION_UNAVAILABLE: "Location information unavailable.",
    StreamErrorKind.TIMEOUT: "Location request timed out.",
    StreamErrorKind.UNKNOWN: "Unknown error occurred.",
}


class StreamError(RouteSyncError):
    """Raised (or reported) when the position stream fails mid-session."""

    def __init__(self, kind: StreamErrorKind, detail: str | None = None) -> None:
        self.kind = kind
        self.detail = detail
        message = f"Error getting location: {STREAM_ERROR_MESSAGES[kind]}"
        if detail:
            message = f"{message} ({detail})"
        super().__init__(message)


class PersistenceCorrupt(RouteSyncError):
    """Raised when persisted history cannot be deserialized."""

    def __init__(self, key: str, cause: Exception) -> None:
        self.key = key
        self.cause = cause
        super().__init__(f"Stored history under '{key}' is unreadable: {cause}")
