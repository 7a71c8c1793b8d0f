"""Position streams and tickers driving a tracking session.

The session controller only sees the ``PositionStream`` and ``Ticker``
protocols. This module also provides the concrete sources used by the
command line and the tests: a stream replaying recorded fixes, a ticker
driven by a background timer and one fired by hand.
"""

from __future__ import annotations

import csv
import itertools
import logging
import threading
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

from routesync.errors import StreamError, StreamErrorKind
from routesync.models.session import Position

logger = logging.getLogger("routesync.sources")

PositionCallback = Callable[[Position], None]
ErrorCallback = Callable[[StreamError], None]
TickCallback = Callable[[], None]

FIX_FIELDS = ("latitude", "longitude", "captured_at")


@dataclass(frozen=True, slots=True)
class StreamOptions:
    """Options passed to a position stream on subscribe."""

    high_accuracy: bool = True
    timeout_ms: int = 10_000
    max_age_ms: int = 1_000


class PositionStream(Protocol):
    """Asynchronous source of position fixes."""

    @property
    def available(self) -> bool: ...

    def subscribe(
        self,
        on_position: PositionCallback,
        on_error: ErrorCallback,
        options: StreamOptions,
    ) -> int: ...

    def unsubscribe(self, handle: int) -> None: ...


class Ticker(Protocol):
    """Periodic timer."""

    def subscribe(self, callback: TickCallback, interval_s: float) -> int: ...

    def unsubscribe(self, handle: int) -> None: ...


def _parse_fix(row: dict[str, str]) -> Position:
    latitude = float(row["latitude"].strip())
    longitude = float(row["longitude"].strip())
    if not -90.0 <= latitude <= 90.0:
        raise ValueError(f"latitude out of range: {latitude}")
    if not -180.0 <= longitude <= 180.0:
        raise ValueError(f"longitude out of range: {longitude}")
    return Position(
        latitude=latitude,
        longitude=longitude,
        captured_at=int(row["captured_at"].strip()),
    )


def load_fixes(csv_path: str | Path) -> list[Position]:
    """Load recorded fixes from a CSV file.

    The file needs ``latitude``, ``longitude`` and ``captured_at``
    (epoch milliseconds) columns.

    Args:
        csv_path: Path to the CSV file.

    Returns:
        Fixes in file order.

    Raises:
        ValueError: If a column is missing or a row is invalid.
    """
    p = Path(csv_path)
    fixes: list[Position] = []
    with p.open("r", encoding="utf-8", newline="") as f:
        reader = csv.DictReader(f)
        missing = [name for name in FIX_FIELDS if name not in (reader.fieldnames or ())]
        if missing:
            raise ValueError(f"{p.name}: missing columns {', '.join(missing)}")
        for line_no, row in enumerate(reader, start=2):
            try:
                fixes.append(_parse_fix(row))
            except (ValueError, TypeError, AttributeError) as e:
                raise ValueError(f"{p.name}:{line_no}: invalid fix: {e}") from e
    logger.debug("Loaded %d fixes from %s", len(fixes), p)
    return fixes


class ReplayPositionStream:
    """Position stream replaying a fixed list of fixes.

    Fixes are delivered by ``push``/``play`` on the caller's thread.
    ``fail_after`` injects a stream failure once that many fixes have
    been delivered.
    """

    def __init__(
        self,
        fixes: Iterable[Position] = (),
        available: bool = True,
        fail_after: int | None = None,
        fail_kind: StreamErrorKind = StreamErrorKind.UNKNOWN,
    ) -> None:
        self.fixes = list(fixes)
        self._available = available
        self.fail_after = fail_after
        self.fail_kind = fail_kind
        self.last_options: StreamOptions | None = None
        self._ids = itertools.count(1)
        self._subscribers: dict[int, tuple[PositionCallback, ErrorCallback]] = {}

    @property
    def available(self) -> bool:
        return self._available

    @property
    def active(self) -> bool:
        return bool(self._subscribers)

    def subscribe(
        self,
        on_position: PositionCallback,
        on_error: ErrorCallback,
        options: StreamOptions,
    ) -> int:
        handle = next(self._ids)
        self._subscribers[handle] = (on_position, on_error)
        self.last_options = options
        return handle

    def unsubscribe(self, handle: int) -> None:
        self._subscribers.pop(handle, None)

    def push(self, position: Position) -> None:
        """Deliver one fix to every subscriber."""
        for on_position, _ in list(self._subscribers.values()):
            on_position(position)

    def fail(self, kind: StreamErrorKind, detail: str | None = None) -> None:
        """Deliver a classified failure to every subscriber."""
        error = StreamError(kind, detail)
        for _, on_error in list(self._subscribers.values()):
            on_error(error)

    def play(
        self,
        before_each: PositionCallback | None = None,
        after_each: PositionCallback | None = None,
    ) -> int:
        """Deliver the recorded fixes in order.

        Playback ends early once nobody is subscribed.

        Args:
            before_each: Called with each fix before it is delivered.
            after_each: Called with each fix after it was delivered.

        Returns:
            Number of fixes delivered.
        """
        delivered = 0
        for position in self.fixes:
            if not self._subscribers:
                break
            if self.fail_after is not None and delivered >= self.fail_after:
                self.fail(self.fail_kind, f"after {delivered} fixes")
                break
            if before_each is not None:
                before_each(position)
            self.push(position)
            delivered += 1
            if after_each is not None:
                after_each(position)
        return delivered


class ManualTicker:
    """Ticker fired explicitly with ``fire``."""

    def __init__(self) -> None:
        self._ids = itertools.count(1)
        self._callbacks: dict[int, TickCallback] = {}

    @property
    def active(self) -> bool:
        return bool(self._callbacks)

    def subscribe(self, callback: TickCallback, interval_s: float) -> int:
        handle = next(self._ids)
        self._callbacks[handle] = callback
        return handle

    def unsubscribe(self, handle: int) -> None:
        self._callbacks.pop(handle, None)

    def fire(self) -> None:
        for callback in list(self._callbacks.values()):
            callback()


class _Repeater:
    def __init__(self, callback: TickCallback, interval_s: float) -> None:
        self.callback = callback
        self.interval_s = interval_s
        self.cancelled = threading.Event()
        self._lock = threading.Lock()
        self._timer: threading.Timer | None = None

    def arm(self) -> None:
        with self._lock:
            if self.cancelled.is_set():
                return
            self._timer = threading.Timer(self.interval_s, self._run)
            self._timer.daemon = True
            self._timer.start()

    def _run(self) -> None:
        if self.cancelled.is_set():
            return
        try:
            self.callback()
        except Exception:
            logger.exception("Tick callback failed")
        self.arm()

    def cancel(self) -> None:
        with self._lock:
            self.cancelled.set()
            if self._timer is not None:
                self._timer.cancel()


class IntervalTicker:
    """Ticker calling back on a background timer thread.

    Each subscription re-arms a daemon ``threading.Timer`` after every
    tick until it is unsubscribed.
    """

    def __init__(self) -> None:
        self._ids = itertools.count(1)
        self._repeaters: dict[int, _Repeater] = {}

    def subscribe(self, callback: TickCallback, interval_s: float) -> int:
        if interval_s <= 0:
            raise ValueError(f"interval must be positive, got {interval_s}")
        handle = next(self._ids)
        repeater = _Repeater(callback, interval_s)
        self._repeaters[handle] = repeater
        repeater.arm()
        return handle

    def unsubscribe(self, handle: int) -> None:
        repeater = self._repeaters.pop(handle, None)
        if repeater is not None:
            repeater.cancel()
