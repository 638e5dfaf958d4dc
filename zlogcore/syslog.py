"""Writers that route records to the matching syslog priority."""

from __future__ import annotations

from typing import Any

from .levels import Level

CEE_PREFIX = "@cee:"

# Level -> name of the syslog writer method; None drops the record.
_METHODS = {
    Level.TRACE: None,
    Level.DEBUG: "debug",
    Level.INFO: "info",
    Level.WARN: "warning",
    Level.ERROR: "err",
    Level.FATAL: "emerg",
    Level.PANIC: "crit",
    Level.NO_LEVEL: "info",
}


class SyslogLevelWriter:
    """Calls the syslog writer method that matches each record's level.

    The wrapped writer needs write(bytes) and the methods debug, info,
    warning, err, emerg and crit, each taking a string.
    """

    def __init__(self, writer: Any, prefix: str = "") -> None:
        self.writer = writer
        self.prefix = prefix

    def write(self, data: bytes) -> int:
        written = 0
        if self.prefix:
            written += self.writer.write(self.prefix.encode("utf-8")) or 0
        return written + (self.writer.write(data) or 0)

    def write_level(self, level: Level, data: bytes) -> int:
        try:
            method = _METHODS[level]
        except (KeyError, TypeError):
            raise ValueError("invalid level") from None
        if method is not None:
            message = self.prefix + bytes(data).decode("utf-8", "replace")
            getattr(self.writer, method)(message)
        # The prefix is not part of the record, so it is not counted.
        return len(data)


def syslog_cee_writer(writer: Any) -> SyslogLevelWriter:
    """Wrap writer so that every JSON record carries the CEE prefix."""
    return SyslogLevelWriter(writer, CEE_PREFIX)