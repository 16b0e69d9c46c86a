"""Reading and parsing INI documents into snapshots."""

from __future__ import annotations

import configparser
import logging
from pathlib import Path

from iniwatch.errors import ParseError, SourceReadError
from iniwatch.snapshot import Key, Pair, Snapshot

logger = logging.getLogger(__name__)

# configparser rejects keys that appear before the first section header, so
# root-level keys are parsed under this header and reported with group "".
_ROOT_SECTION = "\x00root"
_DEFAULT_SECTION = "\x00default"


def _new_parser() -> configparser.ConfigParser:
    parser = configparser.ConfigParser(
        default_section=_DEFAULT_SECTION,
        interpolation=None,
        strict=False,
        delimiters=("=", ":"),
        comment_prefixes=("#", ";"),
        inline_comment_prefixes=("#", ";"),
        empty_lines_in_values=False,
    )
    # Keep names exactly as written; the default lower-cases them.
    parser.optionxform = str  # type: ignore[assignment,method-assign]
    return parser


def parse_ini(data: bytes | str) -> Snapshot:
    """Parse an INI document into a snapshot.

    Values stay raw strings. Leading indentation is ignored, so multi-line
    continuation values are not supported.

    Args:
        data: Raw document content.

    Returns:
        Snapshot with root keys first, then each section in document order.

    Raises:
        ParseError: If the content is not UTF-8 or not valid INI.
    """
    if isinstance(data, bytes):
        try:
            text = data.decode("utf-8-sig")
        except UnicodeDecodeError as e:
            raise ParseError(f"document is not valid UTF-8: {e}") from e
    else:
        text = data

    lines = [line.strip() for line in text.splitlines()]
    parser = _new_parser()
    try:
        parser.read_string("\n".join([f"[{_ROOT_SECTION}]", *lines]) + "\n")
    except configparser.Error as e:
        raise ParseError(f"malformed INI document: {e}") from e

    pairs: list[Pair] = []
    for section in parser.sections():
        # configparser keeps the spaces inside "[ name ]".
        group = "" if section == _ROOT_SECTION else section.strip()
        for name, value in parser[section].items():
            pairs.append(Pair(Key(group, name), value if value is not None else ""))
    return Snapshot(pairs)


def read_source(path: Path | str) -> bytes:
    """Read the raw bytes of a configuration file.

    Raises:
        SourceReadError: If the file cannot be read.
    """
    try:
        return Path(path).read_bytes()
    except OSError as e:
        raise SourceReadError(f"while reading ini '{path}': {e}") from e


def load_snapshot(path: Path | str) -> Snapshot:
    """Read and parse ``path`` in one step."""
    snapshot = parse_ini(read_source(path))
    logger.debug("Loaded %d keys from %s", len(snapshot), path)
    return snapshot
