"""Output writers that may receive the level of each record."""

from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import Any

from .levels import Level


class ShortWriteError(OSError):
    """A writer accepted fewer bytes than it was given."""

    def __init__(self, message: str = "short write") -> None:
        super().__init__(message)


def _written(result: Any, data: bytes) -> int:
    return len(data) if result is None else int(result)


class _Discard:
    def write(self, data: bytes) -> int:
        return len(data)


@dataclass
class LevelWriterAdapter:
    """Gives a plain writer a write_level method that ignores the level."""

    writer: Any

    def write(self, data: bytes) -> int:
        return _written(self.writer.write(data), data)

    def write_level(self, level: Level, data: bytes) -> int:
        return self.write(data)


def as_level_writer(writer: Any) -> Any:
    """Return writer if it takes levels, else wrap it; None discards output."""
    if writer is None:
        return LevelWriterAdapter(_Discard())
    if callable(getattr(writer, "write_level", None)):
        return writer
    return LevelWriterAdapter(writer)


class SyncWriter:
    """Serialises every write to the wrapped writer with a lock."""

    def __init__(self, writer: Any) -> None:
        self._writer = as_level_writer(writer)
        self._lock = threading.Lock()

    def write(self, data: bytes) -> int:
        with self._lock:
            return _written(self._writer.write(data), data)

    def write_level(self, level: Level, data: bytes) -> int:
        with self._lock:
            return _written(self._writer.write_level(level, data), data)


class MultiLevelWriter:
    """Duplicates every write to all writers, like tee(1).

    Every writer is tried even when one fails; the first failure is raised
    once all have been written to.
    """

    def __init__(self, *writers: Any) -> None:
        self.writers = tuple(as_level_writer(w) for w in writers)

    def _fan_out(self, data: bytes, call) -> int:
        written = 0
        first_error = None
        for writer in self.writers:
            try:
                n = _written(call(writer), data)
            except Exception as exc:
                if first_error is None:
                    first_error = exc
                continue
            if first_error is None:
                written = n
                if n != len(data):
                    first_error = ShortWriteError()
        if first_error is not None:
            raise first_error
        return written

    def write(self, data: bytes) -> int:
        return self._fan_out(data, lambda w: w.write(data))

    def write_level(self, level: Level, data: bytes) -> int:
        return self._fan_out(data, lambda w: w.write_level(level, data))