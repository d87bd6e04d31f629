"""
Clock -- injectable source of the current time.

Selection, execution, rollback planning and analytics never call
``datetime.now()`` themselves; they ask the Clock they were built with.
``SystemClock`` is the only place wall time enters the system.

Rollback risk depends on whole days elapsed since an operation finished,
so tests pin time with ``DeterministicClock`` and move it explicitly.
"""

from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone

SECONDS_PER_DAY = 86400


class Clock(ABC):
    """
    Time provider handed to services through their constructors.

    Guarantees:
        ``now()`` is timezone-aware and expressed in UTC.
    """

    @abstractmethod
    def now(self) -> datetime:
        ...


class SystemClock(Clock):
    """Wall-clock time in UTC."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class DeterministicClock(Clock):
    """
    Clock that only moves when told to.

    Guarantees:
        Repeated ``now()`` calls return the same instant until
        ``advance()`` or ``advance_days()`` is called.
    """

    def __init__(self, start: datetime | None = None):
        self._start = start or datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc)
        self._elapsed = timedelta()

    def now(self) -> datetime:
        return self._start + self._elapsed

    def advance(self, seconds: int = 1) -> None:
        self._elapsed += timedelta(seconds=seconds)

    def advance_days(self, days: int) -> None:
        self.advance(days * SECONDS_PER_DAY)
