"""Log severity levels."""

from __future__ import annotations

import enum


class Level(enum.IntEnum):
    """Severity of a log event; higher values are more severe."""

    TRACE = -1
    DEBUG = 0
    INFO = 1
    WARN = 2
    ERROR = 3
    FATAL = 4
    PANIC = 5
    NO_LEVEL = 6
    DISABLED = 7

    def __str__(self) -> str:
        return _NAMES[self]

    def __format__(self, spec: str) -> str:
        return format(str(self), spec)


_NAMES = {
    Level.TRACE: "trace",
    Level.DEBUG: "debug",
    Level.INFO: "info",
    Level.WARN: "warn",
    Level.ERROR: "error",
    Level.FATAL: "fatal",
    Level.PANIC: "panic",
    Level.DISABLED: "disabled",
    Level.NO_LEVEL: "",
}

_BY_NAME = {name: level for level, name in _NAMES.items()}


def parse_level(text: str) -> Level:
    """Return the level whose name is text; raise ValueError for unknown names."""
    try:
        return _BY_NAME[text]
    except KeyError:
        raise ValueError(
            f"Unknown Level String: '{text}', defaulting to NoLevel"
        ) from None