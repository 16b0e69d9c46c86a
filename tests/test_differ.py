"""Tests for iniwatch.differ module."""

import pytest

from iniwatch.differ import ChangeEvent, ChangeKind, diff_snapshots
from iniwatch.parser import parse_ini
from iniwatch.snapshot import Key, Pair, Snapshot


def _snap(*entries: tuple[str, str, str]) -> Snapshot:
    return Snapshot(Pair(Key(group, name), value) for group, name, value in entries)


class TestChangeEvent:
    def test_constructors_set_kind(self) -> None:
        key = Key("", "one")
        assert ChangeEvent.added(key, "v").kind is ChangeKind.ADDED
        assert ChangeEvent.updated(key, "v").kind is ChangeKind.UPDATED
        assert ChangeEvent.deleted(key, "v").kind is ChangeKind.DELETED

    def test_error_carries_cause_and_no_key(self) -> None:
        event = ChangeEvent.error(ValueError("bad things"))
        assert event.is_error
        assert event.key is None
        assert event.cause == "bad things"

    def test_frozen(self) -> None:
        event = ChangeEvent.added(Key("", "one"), "1")
        with pytest.raises(AttributeError):
            event.value = "2"  # type: ignore[misc]

    def test_str(self) -> None:
        assert str(ChangeEvent.added(Key("db", "host"), "x")) == "added db/host = 'x'"
        assert str(ChangeEvent.error("gone")) == "error: gone"


class TestDiffSnapshots:
    def test_identical_snapshots_yield_nothing(self) -> None:
        snapshot = _snap(("", "one", "1"), ("db", "host", "localhost"))
        assert diff_snapshots(snapshot, snapshot) == []

    def test_equal_content_different_order_yields_nothing(self) -> None:
        old = _snap(("", "a", "1"), ("", "b", "2"))
        new = _snap(("", "b", "2"), ("", "a", "1"))
        assert diff_snapshots(old, new) == []

    def test_empty_old_yields_one_added_per_entry(self) -> None:
        new = _snap(("", "one", "1"), ("db", "host", "h"), ("db", "port", "5432"))
        events = diff_snapshots(Snapshot.empty(), new)
        assert events == [
            ChangeEvent.added(Key("", "one"), "1"),
            ChangeEvent.added(Key("db", "host"), "h"),
            ChangeEvent.added(Key("db", "port"), "5432"),
        ]

    def test_empty_new_yields_one_deleted_per_entry(self) -> None:
        old = _snap(("", "one", "1"), ("db", "host", "h"))
        events = diff_snapshots(old, Snapshot.empty())
        assert events == [
            ChangeEvent.deleted(Key("", "one"), "1"),
            ChangeEvent.deleted(Key("db", "host"), "h"),
        ]

    def test_value_change_is_single_update_with_new_value(self) -> None:
        old = _snap(("", "one", "this is one value"))
        new = _snap(("", "one", "updated"))
        assert diff_snapshots(old, new) == [ChangeEvent.updated(Key("", "one"), "updated")]

    def test_deleted_carries_last_value(self) -> None:
        old = _snap(("", "one", "updated"))
        events = diff_snapshots(old, Snapshot.empty())
        assert events == [ChangeEvent.deleted(Key("", "one"), "updated")]

    def test_same_name_in_different_groups_never_aliases(self) -> None:
        old = _snap(("g1", "k", "v"))
        new = _snap(("g2", "k", "v"))
        events = diff_snapshots(old, new)
        assert events == [
            ChangeEvent.deleted(Key("g1", "k"), "v"),
            ChangeEvent.added(Key("g2", "k"), "v"),
        ]

    def test_deletions_and_updates_precede_additions(self) -> None:
        old = _snap(("", "keep", "1"), ("", "change", "a"), ("", "drop", "x"))
        new = _snap(("", "fresh", "n"), ("", "change", "b"), ("", "keep", "1"))
        events = diff_snapshots(old, new)
        assert events == [
            ChangeEvent.updated(Key("", "change"), "b"),
            ChangeEvent.deleted(Key("", "drop"), "x"),
            ChangeEvent.added(Key("", "fresh"), "n"),
        ]

    def test_event_kinds_match_key_presence(self) -> None:
        old = _snap(("", "a", "1"), ("", "b", "2"), ("s", "c", "3"), ("s", "d", "4"))
        new = _snap(("", "a", "1"), ("", "b", "20"), ("s", "e", "5"), ("t", "c", "3"))
        events = diff_snapshots(old, new)
        reported = set()
        for event in events:
            assert event.key is not None
            reported.add(event.key)
            if event.kind is ChangeKind.DELETED:
                assert event.key not in new
                assert old.get(event.key).value == event.value
            elif event.kind is ChangeKind.ADDED:
                assert event.key not in old
                assert new.get(event.key).value == event.value
            else:
                assert event.kind is ChangeKind.UPDATED
                assert old.get(event.key).value != new.get(event.key).value
                assert new.get(event.key).value == event.value
        for key in {p.key for p in old} | {p.key for p in new}:
            if key not in reported:
                assert old.get(key).value == new.get(key).value

    def test_shared_names_across_groups_diffed_against_itself(self) -> None:
        snapshot = parse_ini(b"debug=true\n[database]\ndebug=false\n")
        assert len(snapshot) == 2
        assert diff_snapshots(snapshot, parse_ini(b"debug=true\n[database]\ndebug=false\n")) == []
