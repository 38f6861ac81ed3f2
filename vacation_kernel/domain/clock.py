"""
Clock -- injectable source of "now" and "today".

Responsibility:
    Workflow code asks a Clock for the current time instead of calling
    ``datetime.now()``.  Submission validation ("start date not in the
    past") and every ``decided_at`` / ``updated_at`` stamp go through it.

Architecture position:
    Kernel > Domain.  SystemClock is the only place that reads the system
    time.

Invariants enforced:
    - ``now()`` is always timezone-aware; stamps are normalized to UTC when
      stored.
    - ``today()`` is the calendar date in the clock's own timezone, which
      is the configured ``calendar.timezone`` in production.
"""

from abc import ABC, abstractmethod
from datetime import date, datetime, timedelta, timezone, tzinfo

_DEFAULT_TEST_TIME = datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


class Clock(ABC):
    """Time source injected into stores and the workflow engine."""

    @abstractmethod
    def now(self) -> datetime:
        ...

    def now_utc(self) -> datetime:
        return self.now().astimezone(timezone.utc)

    def today(self) -> date:
        return self.now().date()


class SystemClock(Clock):
    """Wall-clock time in ``tz`` (UTC by default)."""

    def __init__(self, tz: tzinfo = timezone.utc):
        self._tz = tz

    def now(self) -> datetime:
        return datetime.now(self._tz)


class DeterministicClock(Clock):
    """
    Clock that only moves when told to.

    Guarantees:
        - ``now()`` is stable across calls until ``advance``, ``advance_days``,
          ``tick`` or ``set_time`` moves it.
        - ``tick()`` moves exactly one second forward and returns the new time.
    """

    def __init__(self, fixed_time: datetime | None = None):
        self._current = fixed_time or _DEFAULT_TEST_TIME

    def now(self) -> datetime:
        return self._current

    def set_time(self, time: datetime) -> None:
        self._current = time

    def advance(self, seconds: int = 1) -> None:
        self._current += timedelta(seconds=seconds)

    def advance_days(self, days: int = 1) -> None:
        self._current += timedelta(days=days)

    def tick(self) -> datetime:
        self.advance(1)
        return self._current
