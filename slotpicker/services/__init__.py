"""
Service layer helpers that orchestrate adapters and domain logic.
"""

from .busy_sources import (
    MAX_CONCURRENT_FETCHES,
    BusyIntervalSource,
    CalendarProvider,
    MultiCalendarSource,
    StaticSource,
)
from .slot_finder import SlotFinderService, compute_slots

__all__ = [
    "MAX_CONCURRENT_FETCHES",
    "BusyIntervalSource",
    "CalendarProvider",
    "MultiCalendarSource",
    "SlotFinderService",
    "StaticSource",
    "compute_slots",
]
