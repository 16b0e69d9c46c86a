"""Change detection between two snapshots of the same document."""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum

from iniwatch.snapshot import Key, Snapshot


class ChangeKind(StrEnum):
    ADDED = "added"
    UPDATED = "updated"
    DELETED = "deleted"
    ERROR = "error"


@dataclass(frozen=True)
class ChangeEvent:
    """One change published by a watch.

    Attributes:
        kind: What happened to the key, or ``error`` for a watch-level failure.
        key: The affected key. None for error events.
        value: The new value for added/updated keys, the last known value
            for deleted keys, None for errors.
        cause: Human-readable failure description for error events.
    """

    kind: ChangeKind
    key: Key | None = None
    value: str | None = None
    cause: str | None = None

    @classmethod
    def added(cls, key: Key, value: str) -> ChangeEvent:
        return cls(ChangeKind.ADDED, key, value)

    @classmethod
    def updated(cls, key: Key, value: str) -> ChangeEvent:
        return cls(ChangeKind.UPDATED, key, value)

    @classmethod
    def deleted(cls, key: Key, last_value: str) -> ChangeEvent:
        return cls(ChangeKind.DELETED, key, last_value)

    @classmethod
    def error(cls, cause: str | BaseException) -> ChangeEvent:
        return cls(ChangeKind.ERROR, cause=str(cause))

    @property
    def is_error(self) -> bool:
        return self.kind is ChangeKind.ERROR

    def __str__(self) -> str:
        if self.is_error:
            return f"error: {self.cause}"
        return f"{self.kind} {self.key} = {self.value!r}"


def diff_snapshots(old: Snapshot, new: Snapshot) -> list[ChangeEvent]:
    """Compute the events that turn ``old`` into ``new``.

    The first pass walks ``old`` and reports deletions and value updates;
    the second walks ``new`` and reports additions. Keys are matched on
    both group and name, so equally named keys in different groups never
    alias each other.

    Args:
        old: The previously retained snapshot (empty on first load).
        new: The freshly parsed snapshot.

    Returns:
        Events in deterministic order: everything from the first pass in
        ``old``'s document order, then additions in ``new``'s order.
    """
    events: list[ChangeEvent] = []

    for pair in old:
        current = new.find(pair.key)
        if current is None:
            events.append(ChangeEvent.deleted(pair.key, pair.value))
        elif current.value != pair.value:
            events.append(ChangeEvent.updated(pair.key, current.value))

    for pair in new:
        if pair.key not in old:
            events.append(ChangeEvent.added(pair.key, pair.value))

    return events
