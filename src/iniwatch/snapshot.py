"""Immutable key/value snapshots of a parsed configuration document."""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from dataclasses import dataclass

from iniwatch.errors import NotFoundError

KEY_SEPARATOR = "/"


@dataclass(frozen=True)
class Key:
    """Identifies one configuration entry.

    Attributes:
        group: Section name. The empty string is the ungrouped root.
        name: Entry name within the group.
    """

    group: str = ""
    name: str = ""

    def join(self, sep: str = KEY_SEPARATOR) -> str:
        """Return the key as a single name, e.g. ``database/debug``."""
        if not self.group:
            return self.name
        return f"{self.group}{sep}{self.name}"

    @classmethod
    def split(cls, text: str, sep: str = KEY_SEPARATOR) -> Key:
        """Inverse of :meth:`join`. Only the first separator splits."""
        group, found, name = text.partition(sep)
        if not found:
            return cls(name=text)
        return cls(group=group, name=name)

    def __str__(self) -> str:
        return self.join()


@dataclass(frozen=True)
class Pair:
    """A key and its raw string value."""

    key: Key
    value: str


class Snapshot:
    """The entire document state at one point in time.

    Pairs keep their insertion order for enumeration, and are indexed by
    key for constant-time lookup. Two snapshots compare equal when they hold
    the same keys with the same values, regardless of order.

    Args:
        pairs: Pairs in document order. A repeated key keeps its first
            position and takes the last value.
    """

    __slots__ = ("_index",)

    def __init__(self, pairs: Iterable[Pair] = ()) -> None:
        index: dict[Key, Pair] = {}
        for pair in pairs:
            index[pair.key] = pair
        self._index = index

    @classmethod
    def empty(cls) -> Snapshot:
        return cls()

    def get(self, key: Key) -> Pair:
        """Return the pair stored under ``key``.

        Raises:
            NotFoundError: If the key is not present.
        """
        pair = self._index.get(key)
        if pair is None:
            raise NotFoundError(f"key '{key}' not found")
        return pair

    def find(self, key: Key) -> Pair | None:
        """Return the pair stored under ``key``, or None."""
        return self._index.get(key)

    def list(self) -> list[Pair]:
        """Return every pair in document order."""
        return list(self._index.values())

    def group(self, name: str) -> list[Pair]:
        """Return the pairs of one group in document order."""
        return [p for p in self._index.values() if p.key.group == name]

    def groups(self) -> list[str]:
        """Return group names in order of first appearance."""
        seen: dict[str, None] = {}
        for key in self._index:
            seen.setdefault(key.group, None)
        return list(seen)

    def __contains__(self, key: object) -> bool:
        return key in self._index

    def __iter__(self) -> Iterator[Pair]:
        return iter(self._index.values())

    def __len__(self) -> int:
        return len(self._index)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Snapshot):
            return NotImplemented
        return self._index == other._index

    def __repr__(self) -> str:
        return f"Snapshot({self.list()!r})"
