"""Error taxonomy for iniwatch.

Every error raised by the library derives from :class:`IniWatchError` so
callers can catch the whole family with one clause.
"""


class IniWatchError(Exception):
    """Base class for all iniwatch errors."""


class SourceReadError(IniWatchError):
    """The configuration source could not be read (permissions, missing file)."""


class ParseError(IniWatchError):
    """The configuration document is malformed."""


class WatchLostError(IniWatchError):
    """The watched file vanished and the watch could not be re-established."""


class UnsupportedError(IniWatchError, NotImplementedError):
    """The operation is not supported by this read-only backend."""


class NotFoundError(IniWatchError, KeyError):
    """A key or group is absent from the current snapshot."""

    def __str__(self) -> str:
        # KeyError quotes its argument; keep the message readable.
        return str(self.args[0]) if self.args else ""
