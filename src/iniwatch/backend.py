"""Read-only INI backend for configuration-parsing libraries.

Provide a file and a section to get values from. If no section is given,
keys are read from the root of the document and sections are treated as
key groups. With a section, every key lives inside it and a grouped key is
addressed by its joined name, e.g. ``database/debug``.
"""

from __future__ import annotations

import logging
import threading
from pathlib import Path

from iniwatch.differ import ChangeEvent
from iniwatch.errors import NotFoundError, UnsupportedError
from iniwatch.monitor import DEFAULT_TICK_SECONDS
from iniwatch.parser import parse_ini, read_source
from iniwatch.session import DEFAULT_RECONNECT_SECONDS, WatchSession
from iniwatch.snapshot import KEY_SEPARATOR, Key, Pair, Snapshot

logger = logging.getLogger(__name__)


class IniBackend:
    """Serves keys from an INI document and watches it for changes.

    Use :meth:`from_file` or :meth:`from_buffer` to construct one. The
    document is parsed on first access and cached. While a watch is active,
    every successfully parsed version of the file replaces the cache, so
    :meth:`get` and :meth:`list` follow the published events.

    Args:
        file_name: Path of the document (also used in error messages).
        section: Root section to read keys from. Empty for the whole document.
        data: Document content. When None the file is read on first access.
    """

    def __init__(self, file_name: Path | str, section: str = "", data: bytes | None = None) -> None:
        self._file_name = Path(file_name)
        self._section = section
        self._data = data
        self._file_backed = data is None
        self._snapshot: Snapshot | None = None
        self._lock = threading.Lock()
        self._sessions: list[WatchSession] = []
        self._closed = False

    @classmethod
    def from_file(cls, path: Path | str, section: str = "") -> IniBackend:
        """Create a backend that reads and watches ``path``."""
        return cls(path, section)

    @classmethod
    def from_buffer(cls, data: bytes | str, file_name: Path | str, section: str = "") -> IniBackend:
        """Create a backend over in-memory content. It cannot be watched."""
        if isinstance(data, str):
            data = data.encode("utf-8")
        return cls(file_name, section, data=data)

    @property
    def file_name(self) -> Path:
        return self._file_name

    def _load(self) -> Snapshot:
        with self._lock:
            if self._snapshot is None:
                if self._data is None:
                    self._data = read_source(self._file_name)
                self._snapshot = parse_ini(self._data)
                logger.debug("Parsed %s: %d keys", self._file_name, len(self._snapshot))
            return self._snapshot

    def _store(self, snapshot: Snapshot) -> None:
        with self._lock:
            self._snapshot = snapshot

    def get(self, key: Key) -> Pair:
        """Retrieve the value stored under ``key``.

        Raises:
            NotFoundError: If the section or key does not exist.
            SourceReadError: If the file cannot be read.
            ParseError: If the document is malformed.
        """
        snapshot = self._load()
        if self._section:
            if self._section not in snapshot.groups():
                raise NotFoundError(f"non-existent section '{self._section}'")
            lookup = Key(self._section, key.join(KEY_SEPARATOR))
        else:
            lookup = key

        pair = snapshot.find(lookup)
        if pair is None:
            raise NotFoundError(f"key '{key}' not found in '{self._file_name}'")
        return Pair(key, pair.value)

    def list(self, group: str = "") -> list[Pair]:
        """Retrieve all keys and values under a group.

        Without a root section, an empty group lists the whole document.

        Raises:
            NotFoundError: If the root section does not exist.
        """
        snapshot = self._load()
        if self._section:
            if self._section not in snapshot.groups():
                raise NotFoundError(f"non-existent section '{self._section}'")
            pairs = [Pair(self._unscope(p.key), p.value) for p in snapshot.group(self._section)]
            if group:
                pairs = [p for p in pairs if p.key.group == group]
            return pairs
        if group:
            return snapshot.group(group)
        return snapshot.list()

    def set(self, key: Key, value: str) -> None:
        """Writing is not supported; the backend is read-only."""
        raise UnsupportedError(f"cannot set '{key}': the INI backend is read-only")

    def watch(
        self,
        key: Key | None = None,
        *,
        tick_interval: float = DEFAULT_TICK_SECONDS,
        reconnect_interval: float = DEFAULT_RECONNECT_SECONDS,
    ) -> WatchSession:
        """Start watching the file for changes.

        The whole document is diffed on every change; ``key`` only narrows
        which events are published. A key with a group publishes events for
        that group alone.

        Returns:
            A started :class:`WatchSession`. Close it, or this backend, to stop.

        Raises:
            UnsupportedError: For buffer-backed or closed backends.
        """
        if not self._file_backed:
            raise UnsupportedError("cannot watch a backend created from a buffer")
        if self._closed:
            raise UnsupportedError("backend is closed")

        group = key.group if key is not None else ""

        def scope(event: ChangeEvent) -> ChangeEvent | None:
            event_key = event.key
            if event_key is None:
                return event
            if self._section:
                if event_key.group != self._section:
                    return None
                event_key = self._unscope(event_key)
            if group and event_key.group != group:
                return None
            if event_key is event.key:
                return event
            return ChangeEvent(event.kind, event_key, event.value)

        session = WatchSession(
            self._file_name,
            tick_interval=tick_interval,
            reconnect_interval=reconnect_interval,
            event_filter=scope,
            on_snapshot=self._store,
        )
        with self._lock:
            self._sessions = [s for s in self._sessions if not s.closed]
            self._sessions.append(session)
        return session.start()

    def get_root_key(self) -> str:
        """Return the root section used to store all other keys."""
        return self._section

    def close(self) -> None:
        """Cancel all watches. Idempotent."""
        with self._lock:
            self._closed = True
            sessions, self._sessions = self._sessions, []
        for session in sessions:
            session.close()

    def _unscope(self, key: Key) -> Key:
        return Key.split(key.name, KEY_SEPARATOR)

    def __enter__(self) -> IniBackend:
        return self

    def __exit__(self, *args: object) -> None:
        self.close()
