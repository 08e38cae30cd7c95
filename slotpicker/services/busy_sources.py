"""
Busy-interval sources consumed by the slot finder.

A source only has to answer one question: which intervals are busy within a
range for a given identity. ``MultiCalendarSource`` fans that question out to
every calendar of a provider, with a bounded number of requests in flight.
"""

from __future__ import annotations

import asyncio
import logging
from typing import List, Optional, Protocol, Sequence

from ..domain.models import BusyInterval, TimeRange

logger = logging.getLogger(__name__)

MAX_CONCURRENT_FETCHES = 5


class BusyIntervalSource(Protocol):
    """Protocol describing what the slot finder needs from a calendar backend."""

    async def fetch_busy_intervals(
        self,
        time_range: TimeRange,
        identity: Optional[str] = None,
    ) -> List[BusyInterval]:
        """Return busy intervals within ``time_range`` for ``identity``."""


class CalendarProvider(Protocol):
    """Blocking calendar API client that knows about individual calendars."""

    def list_calendars(self, identity: Optional[str] = None) -> List[str]:
        """Return the calendar ids visible for ``identity``."""

    def get_busy_intervals(
        self,
        calendar_id: str,
        time_range: TimeRange,
        identity: Optional[str] = None,
    ) -> List[BusyInterval]:
        """Return busy intervals of a single calendar."""


class MultiCalendarSource:
    """
    Merges busy intervals from several calendars of one provider.

    One fetch is issued per calendar, at most ``max_concurrency`` at a time.
    The merged list is only returned once every fetch has finished; the first
    failure propagates and no partial result is returned.
    """

    def __init__(
        self,
        provider: CalendarProvider,
        calendar_ids: Optional[Sequence[str]] = None,
        max_concurrency: int = MAX_CONCURRENT_FETCHES,
    ) -> None:
        if max_concurrency < 1:
            raise ValueError("max_concurrency must be at least 1")
        self._provider = provider
        self._calendar_ids = list(calendar_ids or [])
        self._max_concurrency = max_concurrency

    async def fetch_busy_intervals(
        self,
        time_range: TimeRange,
        identity: Optional[str] = None,
    ) -> List[BusyInterval]:
        calendar_ids = self._calendar_ids or await asyncio.to_thread(
            self._provider.list_calendars, identity
        )
        logger.debug("Fetching busy intervals from %d calendar(s)", len(calendar_ids))

        semaphore = asyncio.Semaphore(self._max_concurrency)

        async def fetch_one(calendar_id: str) -> List[BusyInterval]:
            async with semaphore:
                return await asyncio.to_thread(
                    self._provider.get_busy_intervals,
                    calendar_id,
                    time_range,
                    identity,
                )

        results = await asyncio.gather(*(fetch_one(cid) for cid in calendar_ids))

        merged: List[BusyInterval] = []
        for intervals in results:
            merged.extend(intervals)
        return merged


class StaticSource:
    """
    Source returning a fixed list of busy intervals.

    For library callers that already hold busy data and want to run
    ``compute_slots`` without a calendar provider.
    """

    def __init__(self, intervals: Sequence[BusyInterval]) -> None:
        self._intervals = list(intervals)

    async def fetch_busy_intervals(
        self,
        time_range: TimeRange,
        identity: Optional[str] = None,
    ) -> List[BusyInterval]:
        return list(self._intervals)
