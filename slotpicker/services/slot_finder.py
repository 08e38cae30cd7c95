"""
Application service computing available meeting slots.

The service runs the pipeline: candidate generation, window filtering,
busy-interval retrieval, conflict removal, the optional caller filter and
finally weighted sampling. Calendar access is injected through the
``BusyIntervalSource`` protocol so the real Microsoft Graph adapter, an ICS
feed or a stub in tests can be plugged in.
"""

from __future__ import annotations

import asyncio
import logging
import random
import time
from typing import Any, Callable, List, Mapping, Optional, Union

from pendulum import DateTime

from ..config import SlotQuery
from ..domain.candidates import WindowFilter, generate_candidates
from ..domain.conflicts import remove_conflicts
from ..domain.exceptions import BusyIntervalSourceError, SlotPickerError
from ..domain.models import BusyInterval, Slot, TimeRange, now_utc
from ..domain.sampler import WeightedSampler
from .busy_sources import BusyIntervalSource

logger = logging.getLogger(__name__)

LogFunction = Callable[..., None]
SlotFilter = Callable[[Slot], bool]


def log_to_logger(*values: Any) -> None:
    """Default log sink: join the values and write them at DEBUG level."""
    logger.debug(" ".join(str(value) for value in values))


class SlotFinderService:
    """
    Orchestrates slot generation, busy-time retrieval and sampling.

    Without a busy source no conflict checking happens.
    """

    def __init__(
        self,
        busy_source: Optional[BusyIntervalSource] = None,
        *,
        slot_filter: Optional[SlotFilter] = None,
        log: Optional[LogFunction] = None,
        rng: Optional[random.Random] = None,
        clock: Callable[[], DateTime] = now_utc,
    ) -> None:
        self._busy_source = busy_source
        self._slot_filter = slot_filter
        self._log = log or log_to_logger
        self._rng = rng
        self._clock = clock

    async def find_slots(
        self,
        query: Union[SlotQuery, Mapping[str, Any]],
        *,
        identity: Optional[str] = None,
    ) -> List[Slot]:
        """
        Compute the ordered list of available (and possibly sampled) slots.

        Raises:
            InvalidDuration: If the slot duration is not positive
            InvalidRange: If the range does not end after it starts
            BusyIntervalSourceError: If busy intervals cannot be fetched
        """
        if not isinstance(query, SlotQuery):
            query = SlotQuery.model_validate(query)

        candidates = self.generate_candidates(query)

        busy_intervals = await self.fetch_busy_intervals(
            time_range=TimeRange(start=query.start, end=query.end),
            identity=identity,
        )

        return self.calculate_slots(query, candidates, busy_intervals)

    def generate_candidates(self, query: SlotQuery) -> List[Slot]:
        """Generate the raw grid and apply weekday, daily and past constraints."""
        candidates = generate_candidates(query.start, query.end, query.slot_duration)
        self._log("Generated", len(candidates), "candidate slots")

        window_filter = WindowFilter(days=query.days, daily=query.window, clock=self._clock)
        return window_filter.apply(candidates, query.start, query.end)

    async def fetch_busy_intervals(
        self,
        *,
        time_range: TimeRange,
        identity: Optional[str] = None,
    ) -> List[BusyInterval]:
        """Fetch busy intervals from the configured source, if any."""
        if self._busy_source is None:
            self._log("Busy intervals: skipped")
            return []

        started = time.perf_counter()
        try:
            busy_intervals = await self._busy_source.fetch_busy_intervals(time_range, identity)
        except SlotPickerError:
            raise
        except Exception as exc:
            raise BusyIntervalSourceError(f"Failed to fetch busy intervals: {exc}") from exc

        elapsed = time.perf_counter() - started
        self._log("Fetched", len(busy_intervals), f"busy intervals in {elapsed:.3f}s")
        return list(busy_intervals)

    def calculate_slots(
        self,
        query: SlotQuery,
        candidates: List[Slot],
        busy_intervals: List[BusyInterval],
    ) -> List[Slot]:
        """Remove conflicts, apply the caller's filter and sample."""
        available = remove_conflicts(candidates, busy_intervals, query.padding)

        if self._slot_filter is not None:
            available = [slot for slot in available if self._slot_filter(slot)]

        if not query.count:
            return available

        sampler = WeightedSampler(
            query.sampling,
            timezone=query.timezone,
            rng=self._rng,
            log=self._log,
        )
        recommended = sampler.sample(available)
        self._log("Recommended", len(recommended), "slots")
        return recommended


def compute_slots(
    query: Union[SlotQuery, Mapping[str, Any]],
    *,
    busy_source: Optional[BusyIntervalSource] = None,
    slot_filter: Optional[SlotFilter] = None,
    log: Optional[LogFunction] = None,
    identity: Optional[str] = None,
    rng: Optional[random.Random] = None,
    clock: Callable[[], DateTime] = now_utc,
) -> List[Slot]:
    """
    Synchronous entry point; runs :meth:`SlotFinderService.find_slots` in a
    fresh event loop. Use the service directly from async code.
    """
    service = SlotFinderService(
        busy_source,
        slot_filter=slot_filter,
        log=log,
        rng=rng,
        clock=clock,
    )
    return asyncio.run(service.find_slots(query, identity=identity))
