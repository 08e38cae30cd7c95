"""
Candidate slot generation and window constraints.

Pure domain logic: no I/O, no calendar access.
"""

from typing import Callable, Iterable, List, Optional

from pendulum import DateTime

from .exceptions import InvalidDuration, InvalidRange
from .models import ALL_DAYS, DailyWindow, Slot, now_utc, weekday_index


def validate_request(start: DateTime, end: DateTime, slot_duration: int) -> None:
    """Reject inputs that would make generation meaningless or endless."""
    if slot_duration <= 0:
        raise InvalidDuration(f"Slot duration must be greater than zero, got {slot_duration}")
    if end <= start:
        raise InvalidRange(f"Range end {end} must be after range start {start}")


def generate_candidates(start: DateTime, end: DateTime, slot_duration: int) -> List[Slot]:
    """
    Produce the evenly spaced slot grid for a requested range.

    The grid starts at local midnight of ``start``'s day. A slot is only kept
    when its end lies strictly before ``end``, so a slot ending exactly on the
    boundary is dropped.

    Raises:
        InvalidDuration: If slot_duration is not positive
        InvalidRange: If end is not after start
    """
    validate_request(start, end, slot_duration)

    slots: List[Slot] = []
    current = start.start_of("day")

    while current < end:
        slot_end = current.add(minutes=slot_duration)
        if slot_end >= end:
            break
        slots.append(Slot(start=current, end=slot_end))
        current = slot_end

    return slots


class WindowFilter:
    """
    Discards candidates outside allowed weekdays, daily windows, or in the past.

    Checks, all of which must pass:
    1. Start and end fall on allowed weekdays (0=Sunday .. 6=Saturday)
    2. Naive bounds: the range's own start/end dates combined with the daily
       times, in the caller's timezone
    3. The timezone-qualified daily window on each slot's own local day
    4. The slot starts after now
    """

    def __init__(
        self,
        days: Iterable[int] = ALL_DAYS,
        daily: Optional[DailyWindow] = None,
        clock: Callable[[], DateTime] = now_utc,
    ):
        self.days = frozenset(days)
        self.daily = daily
        self.clock = clock

    def apply(self, candidates: List[Slot], start: DateTime, end: DateTime) -> List[Slot]:
        """Return the candidates that pass every check, order preserved."""
        lower, upper = self._naive_bounds(start, end)
        now = self.clock()

        return [
            slot for slot in candidates
            if self._on_allowed_days(slot)
            and lower < slot.start
            and slot.end < upper
            and (self.daily is None or self.daily.contains(slot))
            and slot.start > now
        ]

    def _on_allowed_days(self, slot: Slot) -> bool:
        return (
            weekday_index(slot.start) in self.days
            and weekday_index(slot.end) in self.days
        )

    def _naive_bounds(self, start: DateTime, end: DateTime):
        """
        Coarse bounds anchored to the requested range's own dates.

        Without a daily window the range itself is the bound.
        """
        if self.daily is None:
            return start, end
        return self.daily.from_time.on(start), self.daily.to_time.on(end)


def filter_candidates(
    candidates: List[Slot],
    start: DateTime,
    end: DateTime,
    *,
    days: Iterable[int] = ALL_DAYS,
    daily: Optional[DailyWindow] = None,
    clock: Callable[[], DateTime] = now_utc,
) -> List[Slot]:
    """Convenience wrapper around :class:`WindowFilter`."""
    return WindowFilter(days=days, daily=daily, clock=clock).apply(candidates, start, end)
