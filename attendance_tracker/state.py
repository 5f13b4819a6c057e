# state.py
"""Persisted state: the attendance time series and the progress record."""

from __future__ import annotations

import fcntl
import json
import logging
import os
import tempfile
import threading
import time
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Iterator, List, Optional, Protocol

from .models import AttendanceEntry, ProgressState

LOGGER = logging.getLogger(__name__)

DEFAULT_PROGRESS = ProgressState(message="Awaiting start...", progress=0)


def write_json_atomic(path: Path, data: Any) -> None:
    """Write ``data`` next to ``path`` and swap it in, so readers never see half a file."""
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", dir=str(path.parent))
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as handle:
            json.dump(data, handle, ensure_ascii=False, indent=2)
        os.replace(tmp_name, path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise


class AttendanceStore(Protocol):
    def read_all(self) -> List[AttendanceEntry]: ...

    def upsert(self, entry: AttendanceEntry) -> None: ...


def upsert_entry(entries: List[AttendanceEntry], entry: AttendanceEntry) -> List[AttendanceEntry]:
    """Replace the row with the same date in place, or append."""
    updated = list(entries)
    for index, existing in enumerate(updated):
        if existing.date == entry.date:
            updated[index] = entry
            LOGGER.info("Updated entry for %s with status %s", entry.date, entry.day_status)
            return updated
    updated.append(entry)
    LOGGER.info("Added entry for %s with status %s", entry.date, entry.day_status)
    return updated


class MemoryAttendanceStore:
    """Time series held in a list; for tests and embedding."""

    def __init__(self, entries: Optional[List[AttendanceEntry]] = None) -> None:
        self._entries: List[AttendanceEntry] = list(entries or [])

    def read_all(self) -> List[AttendanceEntry]:
        return list(self._entries)

    def upsert(self, entry: AttendanceEntry) -> None:
        self._entries = upsert_entry(self._entries, entry)


class JsonAttendanceStore:
    """Time series kept as a JSON array in ``attendance.json``."""

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)

    def read_all(self) -> List[AttendanceEntry]:
        try:
            raw = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            LOGGER.info("%s missing -> empty time series", self.path)
            return []

        try:
            data = json.loads(raw)
            return [AttendanceEntry.from_dict(item) for item in data]
        except (json.JSONDecodeError, KeyError, TypeError, ValueError) as exc:
            # this file is the system of record, refuse to guess
            raise ValueError(f"corrupt attendance file {self.path}: {exc}") from exc

    def upsert(self, entry: AttendanceEntry) -> None:
        entries = upsert_entry(self.read_all(), entry)
        write_json_atomic(self.path, [e.to_dict() for e in entries])


class RunLock:
    """Exclusive ``flock`` on a file in the data directory, held for one run.

    The kernel drops the lock when the holder exits, so a crashed run never
    leaves it stale.
    """

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)
        self._handle = None

    def acquire(self) -> bool:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        handle = self.path.open("w")
        try:
            fcntl.flock(handle, fcntl.LOCK_EX | fcntl.LOCK_NB)
        except BlockingIOError:
            handle.close()
            return False
        handle.write(f"{os.getpid()}\n")
        handle.flush()
        self._handle = handle
        return True

    def release(self) -> None:
        if self._handle is None:
            return
        fcntl.flock(self._handle, fcntl.LOCK_UN)
        self._handle.close()
        self._handle = None


class ProgressStore(Protocol):
    def read(self) -> ProgressState: ...

    def write(self, state: ProgressState) -> None: ...


class MemoryProgressStore:
    def __init__(self) -> None:
        self._state = DEFAULT_PROGRESS

    def read(self) -> ProgressState:
        return self._state

    def write(self, state: ProgressState) -> None:
        self._state = state


class JsonProgressStore:
    """Progress record in ``scrape-status.json``, read by other processes."""

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)

    def read(self) -> ProgressState:
        try:
            raw = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return DEFAULT_PROGRESS

        try:
            return ProgressState.from_dict(json.loads(raw))
        except (json.JSONDecodeError, TypeError, ValueError):
            LOGGER.warning("%s unreadable -> default progress", self.path)
            return DEFAULT_PROGRESS

    def write(self, state: ProgressState) -> None:
        write_json_atomic(self.path, state.to_dict())


ProgressListener = Callable[[ProgressState], None]


class ProgressReporter:
    """Single writer of the current progress record.

    Pollers read through :meth:`snapshot`; in-process consumers may instead
    :meth:`subscribe` and get every update pushed to them.
    """

    def __init__(
        self, store: ProgressStore, clock: Callable[[], datetime] = datetime.now
    ) -> None:
        self._store = store
        self._clock = clock
        self._listeners: List[ProgressListener] = []
        self._lock = threading.Lock()

    def update(self, message: str, progress: int) -> ProgressState:
        if not -1 <= progress <= 100:
            raise ValueError(f"progress must be within [-1, 100], got {progress}")

        state = ProgressState(message=message, progress=progress, timestamp=self._clock())
        try:
            self._store.write(state)
        except OSError:
            # a lost progress update must not abort the pull itself
            LOGGER.exception("Failed to write progress %r", state)

        with self._lock:
            listeners = list(self._listeners)
        for listener in listeners:
            try:
                listener(state)
            except Exception:  # noqa: BLE001
                LOGGER.exception("Progress listener %r failed", listener)
        return state

    def snapshot(self) -> ProgressState:
        return self._store.read()

    def subscribe(self, listener: ProgressListener) -> Callable[[], None]:
        """Register ``listener``; returns a function that unregisters it."""
        with self._lock:
            self._listeners.append(listener)

        def unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe


def poll_progress(
    read: Callable[[], ProgressState],
    *,
    interval: float = 1.0,
    sleep: Callable[[float], None] = time.sleep,
    max_polls: Optional[int] = None,
) -> Iterator[ProgressState]:
    """Yield the progress record every ``interval`` seconds until it is terminal.

    Stale or repeated values are yielded as-is; the consumer decides what to
    show. ``max_polls`` bounds the loop for callers that cannot wait forever.
    """
    polls = 0
    while True:
        state = read()
        polls += 1
        yield state
        if state.is_terminal:
            return
        if max_polls is not None and polls >= max_polls:
            LOGGER.warning("Gave up polling after %d reads at %d%%", polls, state.progress)
            return
        sleep(interval)
