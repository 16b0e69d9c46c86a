"""Tests for iniwatch.parser module."""

from pathlib import Path

import pytest

from iniwatch.errors import ParseError, SourceReadError
from iniwatch.parser import load_snapshot, parse_ini, read_source
from iniwatch.snapshot import Key


class TestParseIni:
    def test_root_keys_have_empty_group(self) -> None:
        snapshot = parse_ini(b"one=this is one value\ntwo=this is two value\n")
        assert snapshot.get(Key("", "one")).value == "this is one value"
        assert snapshot.get(Key("", "two")).value == "this is two value"

    def test_sections_become_groups(self) -> None:
        snapshot = parse_ini(b"one=true\n\n[candy-bars]\nsnickers=300 Cals\nm&ms=400 Cals\n")
        assert snapshot.groups() == ["", "candy-bars"]
        assert snapshot.get(Key("candy-bars", "m&ms")).value == "400 Cals"

    def test_same_name_in_root_and_section(self) -> None:
        snapshot = parse_ini(b"debug=true\n[database]\ndebug=false\n")
        assert snapshot.get(Key("", "debug")).value == "true"
        assert snapshot.get(Key("database", "debug")).value == "false"

    def test_document_order_root_first(self) -> None:
        snapshot = parse_ini(b"a=1\n[s]\nb=2\nc=3\n[t]\nd=4\n")
        assert [p.key.join() for p in snapshot] == ["a", "s/b", "s/c", "t/d"]

    def test_indented_document(self) -> None:
        data = b"""
            one=true

            [candy-bars]
            snickers=300 Cals
            fruit-snacks=100 Cals
        """
        snapshot = parse_ini(data)
        assert snapshot.get(Key("", "one")).value == "true"
        assert snapshot.get(Key("candy-bars", "fruit-snacks")).value == "100 Cals"

    def test_values_stay_raw_strings(self) -> None:
        snapshot = parse_ini(b"count=42\nflag=yes\npath=%(home)s/x\n")
        assert snapshot.get(Key("", "count")).value == "42"
        assert snapshot.get(Key("", "flag")).value == "yes"
        assert snapshot.get(Key("", "path")).value == "%(home)s/x"

    def test_names_are_case_sensitive(self) -> None:
        snapshot = parse_ini(b"Name=a\nname=b\n")
        assert snapshot.get(Key("", "Name")).value == "a"
        assert snapshot.get(Key("", "name")).value == "b"

    def test_comments_are_ignored(self) -> None:
        snapshot = parse_ini(b"# heading\n; other\nkey=value # trailing\n")
        assert snapshot.list() == [snapshot.get(Key("", "key"))]
        assert snapshot.get(Key("", "key")).value == "value"

    def test_colon_delimiter(self) -> None:
        assert parse_ini(b"host: localhost\n").get(Key("", "host")).value == "localhost"

    def test_empty_value(self) -> None:
        assert parse_ini(b"one=\n").get(Key("", "one")).value == ""

    def test_duplicate_key_last_wins(self) -> None:
        snapshot = parse_ini(b"one=first\none=second\n")
        assert len(snapshot) == 1
        assert snapshot.get(Key("", "one")).value == "second"

    def test_empty_document(self) -> None:
        assert len(parse_ini(b"")) == 0

    def test_accepts_str(self) -> None:
        assert parse_ini("one=1\n").get(Key("", "one")).value == "1"

    def test_section_name_is_trimmed(self) -> None:
        snapshot = parse_ini(b"[ database ]\ndebug=false\n")
        assert [p.key for p in snapshot] == [Key("database", "debug")]
        assert snapshot.get(Key("database", "debug")).value == "false"

    def test_utf8_bom_is_stripped(self) -> None:
        snapshot = parse_ini("\ufeffone=1\n".encode())
        assert snapshot.get(Key("", "one")).value == "1"

    def test_line_without_delimiter_raises(self) -> None:
        with pytest.raises(ParseError, match="malformed"):
            parse_ini(b"one=1\nthis line is not a key\n")

    def test_invalid_utf8_raises(self) -> None:
        with pytest.raises(ParseError, match="UTF-8"):
            parse_ini(b"one=\xff\xfe\n")


class TestReadSource:
    def test_reads_bytes(self, tmp_path: Path) -> None:
        path = tmp_path / "app.ini"
        path.write_bytes(b"one=1\n")
        assert read_source(path) == b"one=1\n"

    def test_missing_file_raises_source_read_error(self, tmp_path: Path) -> None:
        with pytest.raises(SourceReadError, match="missing.ini"):
            read_source(tmp_path / "missing.ini")

    def test_source_read_error_chains_os_error(self, tmp_path: Path) -> None:
        with pytest.raises(SourceReadError) as exc_info:
            read_source(tmp_path / "missing.ini")
        assert isinstance(exc_info.value.__cause__, OSError)

    def test_load_snapshot(self, tmp_path: Path) -> None:
        path = tmp_path / "app.ini"
        path.write_text("[database]\nhost=db\n")
        assert load_snapshot(path).get(Key("database", "host")).value == "db"
