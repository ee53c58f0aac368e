"""
Clock -- injectable time source for the records office.

Every timestamp the system writes (Date/Time IN, history entries, session
expiry) and every office-local date it derives (tracking ID dates, report
periods) comes from a Clock passed to the service constructor.  Nothing in
``records_kernel`` calls ``datetime.now()`` directly except SystemClock.

Storage is UTC; ``today()`` converts to the office timezone, so a record
received at 07:00 Manila time carries that morning's date even though it
is still the previous day in UTC.
"""

from abc import ABC, abstractmethod
from datetime import date, datetime, timedelta, timezone
from zoneinfo import ZoneInfo


class Clock(ABC):
    """Source of the current instant, always timezone-aware UTC."""

    @abstractmethod
    def now(self) -> datetime:
        ...

    def today(self, timezone_name: str) -> date:
        """Office-local calendar date of ``now()``."""
        return self.now().astimezone(ZoneInfo(timezone_name)).date()


class SystemClock(Clock):
    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class DeterministicClock(Clock):
    """
    Clock frozen at a chosen instant; tests move it explicitly.

    Defaults to 2024-01-15 09:00 UTC, which is 17:00 the same day in
    Asia/Manila.
    """

    DEFAULT_INSTANT = datetime(2024, 1, 15, 9, 0, 0, tzinfo=timezone.utc)

    def __init__(self, fixed_time: datetime | None = None):
        self._instant = fixed_time or self.DEFAULT_INSTANT

    def now(self) -> datetime:
        return self._instant

    def set_time(self, time: datetime) -> None:
        self._instant = time

    def advance(self, seconds: float = 1) -> None:
        """Move forward; ``advance(61 * 60)`` skips past a 60 minute TTL."""
        self._instant += timedelta(seconds=seconds)
