"""Watch sessions: live change events for one configuration file.

A :class:`WatchSession` owns a single background thread. The thread arms a
:class:`~iniwatch.monitor.StableChangeMonitor`, re-reads the file on every
settle signal, diffs it against the last good snapshot, and publishes the
resulting :class:`~iniwatch.differ.ChangeEvent` items on a queue. Failures
are published as error events on the same queue; only :meth:`close` ends
the stream.

State machine::

    idle -> starting -> active -> (reconnecting <-> starting -> active) -> stopped
"""

from __future__ import annotations

import logging
import queue
import threading
from collections.abc import Callable, Iterator
from enum import StrEnum
from pathlib import Path

from iniwatch.differ import ChangeEvent, diff_snapshots
from iniwatch.errors import ParseError, SourceReadError, WatchLostError
from iniwatch.monitor import DEFAULT_TICK_SECONDS, StableChangeMonitor
from iniwatch.parser import parse_ini, read_source
from iniwatch.snapshot import Snapshot

logger = logging.getLogger(__name__)

DEFAULT_RECONNECT_SECONDS = 1.0

EventFilter = Callable[[ChangeEvent], ChangeEvent | None]


class SessionState(StrEnum):
    IDLE = "idle"
    STARTING = "starting"
    ACTIVE = "active"
    RECONNECTING = "reconnecting"
    STOPPED = "stopped"


class WatchSession:
    """Publishes change events for one file until closed.

    Usage::

        with WatchSession(path).start() as session:
            for event in session:
                print(event)

    The retained snapshot starts as ``initial`` (empty by default). Each
    time the watch becomes active the file is read once and diffed, so the
    first activation reports every entry as added, and changes made while
    the watch was lost are reported after reconnecting.

    Args:
        path: Configuration file to watch.
        parser: Turns raw bytes into a Snapshot. Defaults to :func:`parse_ini`.
        initial: Snapshot to diff the first read against.
        tick_interval: Debounce tick of the underlying monitor, in seconds.
        reconnect_interval: Seconds to wait before re-arming a lost watch.
        event_filter: Called with every key event; returns the event to
            publish (possibly rewritten) or None to drop it. Error events
            are never filtered.
        on_snapshot: Called from the session thread with every snapshot
            that parsed successfully, after it becomes the retained one.
    """

    def __init__(
        self,
        path: Path | str,
        parser: Callable[[bytes], Snapshot] = parse_ini,
        *,
        initial: Snapshot | None = None,
        tick_interval: float = DEFAULT_TICK_SECONDS,
        reconnect_interval: float = DEFAULT_RECONNECT_SECONDS,
        event_filter: EventFilter | None = None,
        on_snapshot: Callable[[Snapshot], None] | None = None,
    ) -> None:
        if reconnect_interval <= 0:
            raise ValueError(f"reconnect_interval must be positive, got {reconnect_interval!r}")
        self._path = Path(path)
        self._parser = parser
        self._snapshot = initial if initial is not None else Snapshot.empty()
        self._tick = tick_interval
        self._reconnect = reconnect_interval
        self._filter = event_filter
        self._on_snapshot = on_snapshot
        self._events: queue.Queue[ChangeEvent | None] = queue.Queue()
        self._cancel = threading.Event()
        self._close_lock = threading.Lock()
        self._closed = False
        self._started = False
        self._monitor: StableChangeMonitor | None = None
        self._state = SessionState.IDLE
        self._thread = threading.Thread(target=self._run, name="iniwatch-session", daemon=True)

    @property
    def path(self) -> Path:
        return self._path

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def snapshot(self) -> Snapshot:
        """The last successfully parsed snapshot. Snapshots are immutable."""
        return self._snapshot

    @property
    def closed(self) -> bool:
        return self._closed

    def start(self) -> WatchSession:
        """Start the background thread. Returns self for chaining."""
        with self._close_lock:
            if self._started or self._closed:
                return self
            self._started = True
        self._thread.start()
        return self

    def next_event(self, timeout: float | None = None) -> ChangeEvent | None:
        """Return the next event.

        Returns:
            The event, or None if the timeout expired or the stream is closed.
        """
        try:
            event = self._events.get(timeout=timeout)
        except queue.Empty:
            return None
        if event is None:
            # Leave the end-of-stream marker for other readers.
            self._events.put(None)
        return event

    def __iter__(self) -> Iterator[ChangeEvent]:
        """Yield events until the session is closed and drained."""
        while True:
            event = self.next_event()
            if event is None:
                return
            yield event

    def close(self, timeout: float = 5.0) -> None:
        """Cancel the session and close the event stream. Idempotent.

        Events queued before cancellation are still delivered to readers;
        nothing is published afterwards. The state only becomes stopped once
        the session thread has released its watch, which may be after this
        returns if the thread does not exit within ``timeout``.
        """
        with self._close_lock:
            if self._closed:
                return
            self._closed = True

        self._cancel.set()
        monitor = self._monitor
        if monitor is not None:
            monitor.interrupt()
        if self._thread.is_alive() and threading.current_thread() is not self._thread:
            self._thread.join(timeout=timeout)
            if self._thread.is_alive():
                logger.warning(
                    "Watch session for %s did not stop within %.1f s", self._path, timeout
                )
        if not self._thread.is_alive():
            self._state = SessionState.STOPPED
        self._events.put(None)
        logger.info("Stopped watching %s", self._path)

    def _run(self) -> None:
        """Session loop: arm, stay active until the watch is lost, back off, repeat."""
        try:
            self._loop()
        finally:
            if self._cancel.is_set():
                self._state = SessionState.STOPPED

    def _loop(self) -> None:
        while not self._cancel.is_set():
            self._state = SessionState.STARTING
            monitor = StableChangeMonitor(self._path, self._tick, cancel=self._cancel)
            try:
                monitor.start()
            except (WatchLostError, OSError) as e:
                logger.warning("Cannot watch %s: %s", self._path, e)
                self._publish(ChangeEvent.error(f"while watching '{self._path}': {e}"))
                self._backoff()
                continue

            self._monitor = monitor
            self._state = SessionState.ACTIVE
            logger.info("Watch active on %s", self._path)
            try:
                self._refresh()
                for _signal in monitor.signals():
                    self._refresh()
            except WatchLostError as e:
                logger.warning("Lost watch on %s: %s", self._path, e)
                self._publish(ChangeEvent.error(e))
                self._backoff()
            finally:
                monitor.release()
                self._monitor = None

    def _backoff(self) -> None:
        if self._cancel.is_set():
            return
        self._state = SessionState.RECONNECTING
        logger.debug("Retrying watch on %s in %.1f s", self._path, self._reconnect)
        self._cancel.wait(self._reconnect)

    def _refresh(self) -> None:
        """Re-read the file and publish what changed since the retained snapshot."""
        try:
            new = self._parser(read_source(self._path))
        except (SourceReadError, ParseError) as e:
            logger.warning("Keeping previous config for %s: %s", self._path, e)
            self._publish(ChangeEvent.error(e))
            return
        except Exception as e:
            logger.exception("Unexpected error loading %s", self._path)
            self._publish(ChangeEvent.error(e))
            return

        events = diff_snapshots(self._snapshot, new)
        if events:
            logger.info("%s changed: %d event(s)", self._path, len(events))
        for event in events:
            if self._filter is not None:
                scoped = self._filter(event)
                if scoped is None:
                    continue
                event = scoped
            self._publish(event)
        self._snapshot = new
        if self._on_snapshot is not None:
            self._on_snapshot(new)

    def _publish(self, event: ChangeEvent) -> None:
        if self._cancel.is_set():
            return
        self._events.put(event)

    def __enter__(self) -> WatchSession:
        return self

    def __exit__(self, *args: object) -> None:
        self.close()
