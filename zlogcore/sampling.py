"""Samplers that decide which log events are kept."""

from __future__ import annotations

import random
import threading
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Optional, Union

from .levels import Level


class Sampler(ABC):
    """Decides whether an event is part of the sample."""

    @abstractmethod
    def sample(self, level: Level) -> bool:
        """Return True to keep the event, False to drop it."""


class RandomSampler(Sampler):
    """Keeps on average one event out of n, regardless of level."""

    def __init__(self, n: int, rng: Optional[random.Random] = None) -> None:
        self.n = n
        self._rng = rng if rng is not None else random.Random()

    def sample(self, level: Level) -> bool:
        if self.n <= 0:
            return False
        return self._rng.randrange(self.n) == 0

    def __repr__(self) -> str:
        return f"RandomSampler({self.n})"


@dataclass
class BasicSampler(Sampler):
    """Keeps every n-th event, starting with the first."""

    n: int
    _counter: int = field(default=0, init=False, repr=False)
    _lock: threading.Lock = field(
        default_factory=threading.Lock, init=False, repr=False, compare=False
    )

    def sample(self, level: Level) -> bool:
        if self.n == 1:
            return True
        with self._lock:
            self._counter = (self._counter + 1) & 0xFFFFFFFF
            count = self._counter
        return count % self.n == 1


def _period_ns(period: Union[timedelta, float, int]) -> int:
    if isinstance(period, timedelta):
        return (period.days * 86400 + period.seconds) * 1_000_000_000 + period.microseconds * 1000
    return int(period * 1_000_000_000)


@dataclass
class BurstSampler(Sampler):
    """Lets `burst` events through per period, then defers to next_sampler.

    The period is a timedelta or a number of seconds. Without a next sampler,
    events past the burst are dropped.
    """

    burst: int
    period: Union[timedelta, float, int] = 0
    next_sampler: Optional[Sampler] = None
    _counter: int = field(default=0, init=False, repr=False)
    _reset_at: int = field(default=0, init=False, repr=False)
    _lock: threading.Lock = field(
        default_factory=threading.Lock, init=False, repr=False, compare=False
    )

    def sample(self, level: Level) -> bool:
        period = _period_ns(self.period)
        if self.burst > 0 and period > 0 and self._increment(period) <= self.burst:
            return True
        if self.next_sampler is None:
            return False
        return self.next_sampler.sample(level)

    def _increment(self, period: int) -> int:
        now = time.monotonic_ns()
        with self._lock:
            if now > self._reset_at:
                self._counter = 1
                self._reset_at = now + period
            else:
                self._counter += 1
            return self._counter


@dataclass
class LevelSampler(Sampler):
    """Applies a separate sampler per level; unset levels are always kept."""

    trace_sampler: Optional[Sampler] = None
    debug_sampler: Optional[Sampler] = None
    info_sampler: Optional[Sampler] = None
    warn_sampler: Optional[Sampler] = None
    error_sampler: Optional[Sampler] = None

    def sample(self, level: Level) -> bool:
        chosen = {
            Level.TRACE: self.trace_sampler,
            Level.DEBUG: self.debug_sampler,
            Level.INFO: self.info_sampler,
            Level.WARN: self.warn_sampler,
            Level.ERROR: self.error_sampler,
        }.get(level)
        if chosen is None:
            return True
        return chosen.sample(level)