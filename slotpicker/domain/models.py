"""
Domain models for ranges, slots, busy intervals and daily windows.
"""

from dataclasses import dataclass
from typing import Optional, Sequence

import pendulum
from pendulum import DateTime

from .exceptions import InvalidRange

WEEKDAY_NAMES = (
    "sunday",
    "monday",
    "tuesday",
    "wednesday",
    "thursday",
    "friday",
    "saturday",
)

ALL_DAYS = tuple(range(7))


def weekday_index(dt: DateTime) -> int:
    """Return the weekday of ``dt`` numbered 0=Sunday .. 6=Saturday."""
    return dt.isoweekday() % 7


@dataclass(frozen=True)
class TimeRange:
    """
    Represents an immutable time range with start and end datetime.

    Invariant: start must be before end.
    """
    start: DateTime
    end: DateTime

    def __post_init__(self):
        if self.start >= self.end:
            raise InvalidRange(f"Start time {self.start} must be before end time {self.end}")

    def duration_minutes(self) -> int:
        """Return the duration in minutes."""
        return int((self.end - self.start).total_seconds() / 60)

    def __str__(self) -> str:
        return f"{self.start.format('YYYY-MM-DD HH:mm')} - {self.end.format('YYYY-MM-DD HH:mm')}"


@dataclass(frozen=True)
class Slot:
    """
    A candidate bookable interval ``[start, end)``.

    Two slots are equal when both their start and end instants match.
    """
    start: DateTime
    end: DateTime

    def duration_minutes(self) -> int:
        """Return the duration in minutes."""
        return int((self.end - self.start).total_seconds() / 60)

    def format_display(self, timezone: Optional[str] = None) -> str:
        """
        Format the slot for display.
        Format: Weekday, YYYY-MM-DD | HH:mm - HH:mm (N min)
        """
        start = self.start.in_timezone(timezone) if timezone else self.start
        end = self.end.in_timezone(timezone) if timezone else self.end

        weekday = WEEKDAY_NAMES[weekday_index(start)].capitalize()
        date_str = start.format("YYYY-MM-DD")
        time_str = f"{start.format('HH:mm')} - {end.format('HH:mm')}"

        return f"{weekday}, {date_str} | {time_str} ({self.duration_minutes()} min)"


@dataclass(frozen=True)
class BusyInterval:
    """An interval reported busy by a calendar; no ordering is enforced."""
    start: DateTime
    end: DateTime


@dataclass(frozen=True)
class TimeOfDay:
    """A wall-clock time used by daily windows."""
    hour: int
    minute: int = 0
    second: int = 0

    @classmethod
    def from_parts(cls, parts: Sequence[int]) -> "TimeOfDay":
        """Build from ``[hour]``, ``[hour, minute]`` or ``[hour, minute, second]``."""
        if not 1 <= len(parts) <= 3:
            raise ValueError(f"Time of day needs 1 to 3 parts, got {list(parts)}")
        return cls(*parts)

    def on(self, dt: DateTime) -> DateTime:
        """Combine ``dt``'s calendar date (in its own timezone) with this time."""
        return dt.set(hour=self.hour, minute=self.minute, second=self.second, microsecond=0)


@dataclass(frozen=True)
class DailyWindow:
    """
    Recurring time-of-day range evaluated in ``timezone``.
    """
    timezone: str
    from_time: TimeOfDay
    to_time: TimeOfDay

    def contains(self, slot: Slot) -> bool:
        """
        Check ``slot`` against this window on the slot's own local day.

        The day is the one the slot starts on in ``timezone``; a slot running
        past midnight is measured against that day's closing time.
        """
        local_start = slot.start.in_timezone(self.timezone)
        local_end = slot.end.in_timezone(self.timezone)

        if local_start < self.from_time.on(local_start):
            return False
        if local_end > self.to_time.on(local_start):
            return False
        return True


def now_utc() -> DateTime:
    """Default clock used to discard past slots."""
    return pendulum.now("UTC")
