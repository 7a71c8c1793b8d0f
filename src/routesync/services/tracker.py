"""Tracking session state machine.

A ``SessionController`` owns the in-progress session: the buffer of
position fixes, the metrics accumulator and the subscriptions to the
position stream and the ticker. Lifecycle::

    IDLE --start--> ACTIVE --pause--> PAUSED --resume--> ACTIVE
    ACTIVE|PAUSED --stop--> IDLE      (commits sessions with >= 2 fixes)
    ACTIVE --stream error--> IDLE     (session discarded)

Every transition out of ACTIVE unsubscribes both sources before it
returns. Each subscription is tagged with a generation number and
callbacks from an older generation are dropped, so a fix delivered
late by another thread never lands in a stopped session.
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum

from routesync.errors import CapabilityUnavailable, ConnectivityRequired, StreamError
from routesync.models.history import HistoryStore
from routesync.models.session import CompletedSession, Metrics, Position, new_session_id
from routesync.services.connectivity import ConnectivitySignal, StaticConnectivity
from routesync.services.metrics import MetricsAccumulator
from routesync.services.sources import PositionStream, StreamOptions, Ticker

logger = logging.getLogger("routesync.tracker")


def epoch_ms() -> int:
    """Current wall-clock time in epoch milliseconds."""
    return int(time.time() * 1000)


class TrackingState(str, Enum):
    IDLE = "idle"
    ACTIVE = "active"
    PAUSED = "paused"


@dataclass(frozen=True, slots=True)
class TrackingOptions:
    """Position stream options and tick cadence for a session."""

    high_accuracy: bool = True
    timeout_ms: int = 10_000
    max_age_ms: int = 1_000
    tick_interval_s: float = 1.0

    def stream_options(self) -> StreamOptions:
        return StreamOptions(
            high_accuracy=self.high_accuracy,
            timeout_ms=self.timeout_ms,
            max_age_ms=self.max_age_ms,
        )


class SessionController:
    """Start, pause, resume and stop tracking sessions."""

    def __init__(
        self,
        stream: PositionStream | None,
        ticker: Ticker,
        history: HistoryStore,
        connectivity: ConnectivitySignal | None = None,
        clock: Callable[[], int] = epoch_ms,
        options: TrackingOptions | None = None,
        on_error: Callable[[StreamError], None] | None = None,
        on_metrics: Callable[[Metrics], None] | None = None,
    ) -> None:
        """Initialize the controller.

        Args:
            stream: Position stream, or None when the platform has none.
            ticker: Periodic timer for duration updates.
            history: Store receiving completed sessions.
            connectivity: Online/offline signal (always online if omitted).
            clock: Returns the current time in epoch milliseconds.
            options: Stream options and tick cadence.
            on_error: Called when a stream failure aborts the session.
            on_metrics: Called whenever metrics are republished.
        """
        self.stream = stream
        self.ticker = ticker
        self.history = history
        self.connectivity = connectivity if connectivity is not None else StaticConnectivity()
        self.clock = clock
        self.options = options or TrackingOptions()
        self.on_error = on_error
        self.on_metrics = on_metrics

        self._lock = threading.RLock()
        self._state = TrackingState.IDLE
        self._accumulator = MetricsAccumulator()
        self._positions: list[Position] = []
        self._metrics = Metrics()
        self._started_at: int | None = None
        self._generation = 0
        self._stream_handle: int | None = None
        self._ticker_handle: int | None = None
        self.last_error: StreamError | None = None
        self.last_save_error: OSError | None = None

    @property
    def state(self) -> TrackingState:
        return self._state

    @property
    def is_tracking(self) -> bool:
        return self._state is TrackingState.ACTIVE

    @property
    def positions(self) -> tuple[Position, ...]:
        with self._lock:
            return tuple(self._positions)

    @property
    def current_position(self) -> Position | None:
        with self._lock:
            return self._positions[-1] if self._positions else None

    @property
    def metrics(self) -> Metrics:
        return self._metrics

    @property
    def started_at(self) -> int | None:
        return self._started_at

    def start(self) -> None:
        """Begin a new session.

        Starting from PAUSED discards the paused session. Starting while
        ACTIVE does nothing.

        Raises:
            CapabilityUnavailable: If there is no usable position stream.
            ConnectivityRequired: If the device reports offline.
        """
        with self._lock:
            if self._state is TrackingState.ACTIVE:
                return
            if self.stream is None or not self.stream.available:
                raise CapabilityUnavailable()
            if not self.connectivity.is_online():
                raise ConnectivityRequired()

            if self._state is TrackingState.PAUSED:
                logger.info("Discarding paused session (%d points)", len(self._positions))

            self._started_at = self.clock()
            self._accumulator.reset(self._started_at)
            self._positions = []
            self.last_error = None
            self.last_save_error = None
            self._publish(self._accumulator.metrics)
            self._subscribe()
            self._state = TrackingState.ACTIVE
            logger.info("Tracking started")

    def pause(self) -> None:
        """Suspend tracking, keeping the buffered fixes and metrics."""
        with self._lock:
            if self._state is not TrackingState.ACTIVE:
                return
            self._unsubscribe()
            self._state = TrackingState.PAUSED
            logger.info("Tracking paused (%d points)", len(self._positions))

    def resume(self) -> None:
        """Continue a paused session.

        Raises:
            CapabilityUnavailable: If the position stream went away.
            ConnectivityRequired: If the device reports offline.
        """
        with self._lock:
            if self._state is not TrackingState.PAUSED:
                return
            if self.stream is None or not self.stream.available:
                raise CapabilityUnavailable()
            if not self.connectivity.is_online():
                raise ConnectivityRequired()
            self._subscribe()
            self._state = TrackingState.ACTIVE
            logger.info("Tracking resumed")

    def stop(self) -> CompletedSession | None:
        """End the session and commit it to history.

        Sessions with fewer than two fixes are dropped. A session that cannot
        be written to the history store is dropped too; the write error is
        logged and kept in ``last_save_error``.

        Returns:
            The committed session, or None if nothing was committed.
        """
        with self._lock:
            if self._state is TrackingState.IDLE:
                return None
            self._unsubscribe()

            committed: CompletedSession | None = None
            try:
                if len(self._positions) > 1:
                    ended_at = self.clock()
                    committed = CompletedSession(
                        id=new_session_id(ended_at),
                        positions=tuple(self._positions),
                        distance_km=self._metrics.distance_km,
                        duration_sec=self._metrics.duration_sec,
                        avg_speed_kmh=self._metrics.avg_speed_kmh,
                        started_at=self._started_at or ended_at,
                        ended_at=ended_at,
                    )
                    try:
                        self.history.add(committed)
                    except OSError as e:
                        logger.warning("Could not save session %s: %s", committed.id, e)
                        self.last_save_error = e
                        committed = None
                else:
                    logger.info("Session discarded: %d point(s)", len(self._positions))
            finally:
                self._reset_session()
            return committed

    def _subscribe(self) -> None:
        self._generation += 1
        generation = self._generation
        assert self.stream is not None
        self._stream_handle = self.stream.subscribe(
            lambda position: self._handle_position(generation, position),
            lambda error: self._handle_error(generation, error),
            self.options.stream_options(),
        )
        self._ticker_handle = self.ticker.subscribe(
            lambda: self._handle_tick(generation),
            self.options.tick_interval_s,
        )

    def _unsubscribe(self) -> None:
        # Bumping the generation first invalidates callbacks already in flight
        self._generation += 1
        if self._stream_handle is not None and self.stream is not None:
            self.stream.unsubscribe(self._stream_handle)
        if self._ticker_handle is not None:
            self.ticker.unsubscribe(self._ticker_handle)
        self._stream_handle = None
        self._ticker_handle = None

    def _reset_session(self) -> None:
        self._positions = []
        self._started_at = None
        self._accumulator.reset(0)
        self._state = TrackingState.IDLE
        self._publish(Metrics())

    def _is_current(self, generation: int) -> bool:
        return generation == self._generation and self._state is TrackingState.ACTIVE

    def _handle_position(self, generation: int, position: Position) -> None:
        with self._lock:
            if not self._is_current(generation):
                logger.debug("Dropping stale fix at %d", position.captured_at)
                return
            self._positions.append(position)
            self._publish(self._accumulator.observe(position))

    def _handle_tick(self, generation: int) -> None:
        with self._lock:
            if not self._is_current(generation):
                return
            self._publish(self._accumulator.tick(self.clock()))

    def _handle_error(self, generation: int, error: StreamError) -> None:
        with self._lock:
            if not self._is_current(generation):
                return
            logger.warning("%s; session discarded", error)
            self._unsubscribe()
            self._reset_session()
            self.last_error = error
        if self.on_error is not None:
            self.on_error(error)

    def _publish(self, metrics: Metrics) -> None:
        self._metrics = metrics
        if self.on_metrics is not None:
            self.on_metrics(metrics)
