"""Completed-session history and its persistent store.

History is kept most-recent-first and saved as a whole snapshot on every
mutation. Snapshots go through a ``KeyValueStore`` so the backing medium
can be swapped (a JSON file per key on disk, or a dict in tests).
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from collections.abc import Callable, Iterator
from pathlib import Path
from typing import Protocol

from routesync.errors import PersistenceCorrupt
from routesync.lib.paths import get_snapshot_path
from routesync.models.session import CompletedSession

logger = logging.getLogger("routesync.history")

DEFAULT_STORAGE_KEY = "fitnessRoutes"


class KeyValueStore(Protocol):
    """String key-value persistence."""

    def get(self, key: str) -> str | None: ...

    def set(self, key: str, value: str) -> None: ...

    def remove(self, key: str) -> None: ...


class InMemoryStore:
    """Key-value store held in a dict."""

    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self.data: dict[str, str] = dict(initial or {})

    def get(self, key: str) -> str | None:
        return self.data.get(key)

    def set(self, key: str, value: str) -> None:
        self.data[key] = value

    def remove(self, key: str) -> None:
        self.data.pop(key, None)


class JsonFileStore:
    """Key-value store keeping one ``<key>.json`` file per key.

    Writes go to a temporary file in the same directory and are moved
    into place with ``os.replace``, so readers see either the previous
    snapshot or the new one.
    """

    def __init__(self, directory: Path) -> None:
        self.directory = directory

    def get(self, key: str) -> str | None:
        path = get_snapshot_path(self.directory, key)
        if not path.exists():
            return None
        return path.read_text(encoding="utf-8")

    def set(self, key: str, value: str) -> None:
        path = get_snapshot_path(self.directory, key)
        self.directory.mkdir(parents=True, exist_ok=True)

        fd, tmp_name = tempfile.mkstemp(dir=self.directory, prefix=f".{key}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(value)
            os.replace(tmp_name, path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

    def remove(self, key: str) -> None:
        get_snapshot_path(self.directory, key).unlink(missing_ok=True)


def serialize_sessions(sessions: list[CompletedSession] | tuple[CompletedSession, ...]) -> str:
    """Serialize sessions to the persisted JSON array."""
    return json.dumps([s.to_dict() for s in sessions])


def deserialize_sessions(text: str) -> list[CompletedSession]:
    """Parse the persisted JSON array.

    Raises:
        ValueError: If the text is not a JSON array of sessions.
        KeyError: If a session is missing a field.
        TypeError: If a field has the wrong type.
    """
    data = json.loads(text)
    if not isinstance(data, list):
        raise ValueError(f"Expected a JSON array, got {type(data).__name__}")
    return [CompletedSession.from_dict(item) for item in data]


class HistoryStore:
    """Most-recent-first collection of completed sessions."""

    def __init__(self, store: KeyValueStore, key: str = DEFAULT_STORAGE_KEY) -> None:
        """Initialize the history store.

        Args:
            store: Persistent key-value store.
            key: Key under which the snapshot is saved.
        """
        self.store = store
        self.key = key
        self.last_load_error: PersistenceCorrupt | None = None
        self._sessions: list[CompletedSession] = []
        self._listeners: list[Callable[[HistoryStore], None]] = []

    def __len__(self) -> int:
        return len(self._sessions)

    def __iter__(self) -> Iterator[CompletedSession]:
        return iter(tuple(self._sessions))

    @property
    def sessions(self) -> tuple[CompletedSession, ...]:
        return tuple(self._sessions)

    def add_listener(self, callback: Callable[[HistoryStore], None]) -> None:
        """Register a callback invoked after every mutation."""
        self._listeners.append(callback)

    def load_all(self) -> list[CompletedSession]:
        """Load persisted history, replacing the in-memory collection.

        Malformed data is treated as an empty history: the problem is
        logged as a warning and kept in ``last_load_error``. Stored
        sessions with fewer than two positions are skipped.

        Returns:
            Sessions, most recent first.
        """
        self.last_load_error = None
        try:
            raw = self.store.get(self.key)
            sessions = deserialize_sessions(raw) if raw is not None else []
        except (ValueError, KeyError, TypeError, RecursionError) as e:
            self.last_load_error = PersistenceCorrupt(self.key, e)
            logger.warning("Ignoring stored history: %s", self.last_load_error)
            sessions = []
        self._sessions = []
        for session in sessions:
            if session.point_count < 2:
                logger.warning(
                    "Skipping stored session %s with %d point(s)",
                    session.id,
                    session.point_count,
                )
                continue
            self._sessions.append(session)
        logger.debug("Loaded %d sessions from '%s'", len(self._sessions), self.key)
        self._notify()
        return list(self._sessions)

    def add(self, session: CompletedSession) -> None:
        """Prepend a session and persist the collection.

        The in-memory history is left unchanged when the write fails.
        """
        sessions = [session, *self._sessions]
        self.store.set(self.key, serialize_sessions(sessions))
        self._sessions = sessions
        logger.info(
            "Saved session %s (%.3f km, %d points)",
            session.id,
            session.distance_km,
            session.point_count,
        )
        self._notify()

    def get(self, session_id: str) -> CompletedSession | None:
        for session in self._sessions:
            if session.id == session_id:
                return session
        return None

    def delete(self, session_id: str) -> bool:
        """Remove one session.

        Args:
            session_id: Id of the session to remove.

        Returns:
            True if a session was removed.
        """
        remaining = [s for s in self._sessions if s.id != session_id]
        if len(remaining) == len(self._sessions):
            return False
        self._sessions = remaining
        if self._sessions:
            self._save()
        else:
            self.store.remove(self.key)
        logger.info("Deleted session %s", session_id)
        self._notify()
        return True

    def clear(self) -> None:
        """Remove all sessions and the persisted snapshot."""
        self._sessions = []
        self.store.remove(self.key)
        logger.info("Cleared route history")
        self._notify()

    def _save(self) -> None:
        self.store.set(self.key, serialize_sessions(self._sessions))

    def _notify(self) -> None:
        for callback in list(self._listeners):
            callback(self)
