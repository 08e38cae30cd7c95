"""
Removal of candidate slots that sit inside busy intervals.
"""

from typing import Iterable, List

from .models import BusyInterval, Slot


def conflicts_with(slot: Slot, busy: BusyInterval, padding_minutes: int = 0) -> bool:
    """
    Check whether the padded slot lies strictly inside ``busy``.

    This is a containment test: a slot that only overlaps the edge of a busy
    interval does not conflict.
    """
    padded_start = slot.start.subtract(minutes=padding_minutes)
    padded_end = slot.end.add(minutes=padding_minutes)
    return padded_start > busy.start and padded_end < busy.end


def remove_conflicts(
    slots: List[Slot],
    busy_intervals: Iterable[BusyInterval],
    padding_minutes: int = 0,
) -> List[Slot]:
    """Return the slots that conflict with no busy interval, order preserved."""
    busy = list(busy_intervals)
    if not busy:
        return list(slots)

    return [
        slot for slot in slots
        if not any(conflicts_with(slot, interval, padding_minutes) for interval in busy)
    ]
