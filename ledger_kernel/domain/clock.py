"""
Injectable time source.

Services never call ``datetime.now()`` or ``date.today()``.  Default PO and
payment dates, reference day stamps (``PO-YYYYMMDD-NNN``), void timestamps
and the overdue cutoff all come from the Clock handed to the coordinator,
so a test can pin "today" and a cron run can sweep as of any date.

SystemClock is the one sanctioned I/O boundary for time in the kernel.
"""

from abc import ABC, abstractmethod
from datetime import date, datetime, time, timedelta, timezone

# 2026-01-15 12:00 UTC
DEFAULT_TEST_TIME = datetime(2026, 1, 15, 12, 0, tzinfo=timezone.utc)


class Clock(ABC):
    """Source of the current instant; ``now()`` is always timezone-aware."""

    @abstractmethod
    def now(self) -> datetime: ...

    def now_utc(self) -> datetime:
        return self.now().astimezone(timezone.utc)

    def today(self) -> date:
        """Ledger business date: the UTC calendar day of ``now()``."""
        return self.now_utc().date()


class SystemClock(Clock):
    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class DeterministicClock(Clock):
    """
    Clock that only moves when told to.

    Safe to share between threads in tests: readers only ever see a
    complete datetime value.
    """

    def __init__(self, fixed_time: datetime | None = None):
        self._current = fixed_time or DEFAULT_TEST_TIME

    def now(self) -> datetime:
        return self._current

    def set_time(self, moment: datetime) -> None:
        self._current = moment

    def set_date(self, day: date) -> None:
        """Move to noon UTC on ``day``."""
        self._current = datetime.combine(day, time(12, 0), tzinfo=timezone.utc)

    def advance(self, seconds: int = 1) -> None:
        self._current += timedelta(seconds=seconds)

    def advance_days(self, days: int) -> None:
        self._current += timedelta(days=days)
