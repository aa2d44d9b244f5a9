"""
Clock -- injectable time source.

Responsibility:
    Gives services a single place to ask for "now" so that request creation
    timestamps, transition log entries and DPR dates can be pinned in tests.

Architecture position:
    Kernel > Domain -- pure, zero I/O (SystemClock is the one sanctioned
    boundary for reading wall-clock time).

Failure modes:
    None.
"""

from abc import ABC, abstractmethod
from datetime import date, datetime, timedelta, timezone


class Clock(ABC):
    """
    Abstract clock interface.

    Guarantees:
        - ``now()`` returns a timezone-aware UTC ``datetime``.
        - ``today()`` is the date part of ``now()``.
    """

    @abstractmethod
    def now(self) -> datetime:
        ...

    def today(self) -> date:
        return self.now().date()


class SystemClock(Clock):
    """Wall-clock time in UTC."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class DeterministicClock(Clock):
    """
    Test clock with controlled time.

    ``now()`` keeps returning the same instant until ``advance()`` moves it.
    """

    def __init__(self, fixed_time: datetime | None = None):
        self._fixed_time = fixed_time or datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc)
        self._offset = timedelta(0)

    def now(self) -> datetime:
        return self._fixed_time + self._offset

    def advance(self, seconds: int = 1) -> None:
        self._offset += timedelta(seconds=seconds)
