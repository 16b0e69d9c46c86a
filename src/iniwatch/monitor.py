"""Debounced file-change monitor.

Raw filesystem notifications fire several times per logical save (a
temp-file write, a rename, attribute changes). :class:`StableChangeMonitor`
collects them and emits at most one :class:`SettleSignal` per tick once the
file has been written. A rename or remove of the watched path re-arms the
watch on the next tick, which follows editors that save via rename and
Kubernetes ConfigMap volumes that swap a symlink.

Inotify and FSEvents watch directories, so the watch is placed on the
parent directory of the file's resolved (symlink-free) location and events
are filtered to the file itself.
"""

from __future__ import annotations

import logging
import os
import queue
import threading
import time
from collections.abc import Iterator
from dataclasses import dataclass
from enum import StrEnum
from pathlib import Path

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer
from watchdog.observers.api import BaseObserver

from iniwatch.errors import WatchLostError

logger = logging.getLogger(__name__)

DEFAULT_TICK_SECONDS = 1.0


class FileOp(StrEnum):
    WRITE = "write"
    RENAME = "rename"
    REMOVE = "remove"


@dataclass(frozen=True)
class SettleSignal:
    """The watched file was written and has been quiet for a tick."""

    path: Path


def _src(path: str | bytes) -> str:
    return os.path.normpath(os.fsdecode(path))


class _Handler(FileSystemEventHandler):
    """Translates watchdog events for one file into :class:`FileOp` values.

    Runs on the observer thread; it only forwards ops to the monitor.
    """

    def __init__(self, monitor: StableChangeMonitor, targets: set[str], watch_dir: str) -> None:
        self._monitor = monitor
        self._targets = targets
        self._watch_dir = watch_dir

    def on_modified(self, event: FileSystemEvent) -> None:
        if not event.is_directory and _src(event.src_path) in self._targets:
            self._monitor.notify(FileOp.WRITE)

    def on_created(self, event: FileSystemEvent) -> None:
        if not event.is_directory and _src(event.src_path) in self._targets:
            self._monitor.notify(FileOp.WRITE)

    def on_deleted(self, event: FileSystemEvent) -> None:
        src = _src(event.src_path)
        if src in self._targets or (event.is_directory and src == self._watch_dir):
            self._monitor.notify(FileOp.REMOVE)

    def on_moved(self, event: FileSystemEvent) -> None:
        if _src(event.src_path) in self._targets:
            self._monitor.notify(FileOp.RENAME)
        elif event.dest_path and _src(event.dest_path) in self._targets:
            # Something was moved over the file, e.g. an editor's temp file.
            self._monitor.notify(FileOp.RENAME)


class StableChangeMonitor:
    """Watches one file and yields a signal per settled change.

    Usage::

        with StableChangeMonitor(path, tick_interval=1.0) as monitor:
            for signal in monitor.signals():
                reload(signal.path)

    All debounce state lives in the thread iterating :meth:`signals`. The
    watchdog observer thread only pushes ops onto a queue.

    Args:
        path: File to watch. Symlinks are followed.
        tick_interval: Seconds per debounce tick.
        cancel: Cancellation token. When set, :meth:`signals` returns at
            its next wait. A private token is created when omitted.
    """

    def __init__(
        self,
        path: Path | str,
        tick_interval: float = DEFAULT_TICK_SECONDS,
        cancel: threading.Event | None = None,
    ) -> None:
        if tick_interval <= 0:
            raise ValueError(f"tick_interval must be positive, got {tick_interval!r}")
        self._path = Path(path)
        self._tick = tick_interval
        self._cancel = cancel if cancel is not None else threading.Event()
        self._ops: queue.Queue[FileOp | None] = queue.Queue()
        self._lock = threading.Lock()
        self._observer: BaseObserver | None = None

    @property
    def path(self) -> Path:
        return self._path

    @property
    def is_armed(self) -> bool:
        """Whether a filesystem subscription is currently held."""
        return self._observer is not None

    def start(self) -> None:
        """Establish the filesystem subscription.

        Raises:
            WatchLostError: If the file or its directory does not exist.
        """
        self._arm()

    def notify(self, op: FileOp) -> None:
        """Record a raw filesystem operation on the watched file."""
        logger.debug("Raw %s event on %s", op, self._path)
        self._ops.put(op)

    def interrupt(self) -> None:
        """Wake :meth:`signals` so it re-checks the cancellation token."""
        self._ops.put(None)

    def signals(self) -> Iterator[SettleSignal]:
        """Yield one :class:`SettleSignal` per settled tick.

        Returns when the cancellation token is set. The subscription is
        released when the generator finishes.

        Raises:
            WatchLostError: When the file was renamed or removed and did not
                reappear by the next tick.
        """
        last_write: FileOp | None = None
        pending: FileOp | None = None
        deadline = time.monotonic() + self._tick
        try:
            while not self._cancel.is_set():
                remaining = deadline - time.monotonic()
                if remaining > 0:
                    try:
                        op = self._ops.get(timeout=remaining)
                    except queue.Empty:
                        pass
                    else:
                        if op is FileOp.WRITE:
                            last_write = op
                        elif op is not None:
                            pending = op
                        continue

                deadline = time.monotonic() + self._tick

                if pending is not None:
                    # The path may now point at a different inode; watch it again.
                    self._rearm()
                    logger.debug("Re-armed watch on %s after %s", self._path, pending)
                    last_write = pending
                    pending = None
                    continue

                if last_write is None:
                    continue

                last_write = None
                yield SettleSignal(self._path)
        finally:
            self._disarm()

    def release(self) -> None:
        """Release the subscription without touching the cancellation token."""
        self._disarm()

    def stop(self) -> None:
        """Cancel the monitor and release the subscription. Idempotent."""
        self._cancel.set()
        self.interrupt()
        self._disarm()

    def _arm(self) -> None:
        with self._lock:
            if self._cancel.is_set():
                return
            resolved = os.path.realpath(self._path)
            if not os.path.isfile(resolved):
                raise WatchLostError(f"watched file disappeared: '{self._path}' does not exist")
            watch_dir = os.path.dirname(resolved)
            targets = {os.path.normpath(os.path.abspath(self._path)), resolved}

            observer = Observer()
            observer.schedule(_Handler(self, targets, watch_dir), watch_dir, recursive=False)
            observer.daemon = True
            try:
                observer.start()
            except OSError as e:
                raise WatchLostError(f"watched file disappeared: {e}") from e
            self._observer = observer
        logger.info("Watching %s (tick=%.2fs)", self._path, self._tick)

    def _disarm(self) -> None:
        with self._lock:
            observer = self._observer
            self._observer = None
        if observer is not None:
            observer.stop()
            observer.join(timeout=5.0)
            logger.debug("Released watch on %s", self._path)

    def _rearm(self) -> None:
        self._disarm()
        self._arm()

    def __enter__(self) -> StableChangeMonitor:
        self.start()
        return self

    def __exit__(self, *args: object) -> None:
        self.stop()
