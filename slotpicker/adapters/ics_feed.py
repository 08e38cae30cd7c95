"""
Busy-interval source reading an iCalendar (ICS) feed from a URL or file.
"""

import asyncio
import logging
from datetime import date, datetime, time, timedelta
from pathlib import Path
from typing import Dict, Iterator, List, Optional, Set, Tuple, Union

import pendulum
import requests
from dateutil.rrule import rrulestr
from icalendar import Calendar
from pendulum import DateTime

from ..domain.exceptions import IcsFeedError
from ..domain.models import BusyInterval, TimeRange

logger = logging.getLogger(__name__)


def _as_datetime(value: Union[date, datetime], timezone) -> DateTime:
    """Normalise an ICS date or (naive) datetime to an aware pendulum DateTime."""
    if not isinstance(value, datetime):
        value = datetime.combine(value, time.min)
    if value.tzinfo is None:
        return pendulum.instance(value, tz=timezone)
    return pendulum.instance(value)


def _date_list(component, name: str) -> List[Union[date, datetime]]:
    """Values of a property that may repeat and hold several dates each (EXDATE)."""
    prop = component.get(name)
    if prop is None:
        return []
    if not isinstance(prop, list):
        prop = [prop]
    return [item.dt for entry in prop for item in entry.dts]


class IcsFeedSource:
    """
    Reads busy intervals from an ICS feed.

    Cancelled and transparent (free) events are ignored. Recurring events are
    expanded with their RRULE within the requested range, minus EXDATEs and
    occurrences replaced by a RECURRENCE-ID override. Floating times and
    all-day events are read in ``timezone``.
    """

    def __init__(self, location: str, timezone: str = "UTC", timeout: float = 30):
        self.location = location
        self.timezone = timezone
        self.timeout = timeout

    async def fetch_busy_intervals(
        self,
        time_range: TimeRange,
        identity: Optional[str] = None,
    ) -> List[BusyInterval]:
        """Download and parse the feed; ``identity`` is not used by ICS feeds."""
        return await asyncio.to_thread(self.load, time_range)

    def load(self, time_range: TimeRange) -> List[BusyInterval]:
        """
        Blocking read of the feed.

        Raises:
            IcsFeedError: If the feed cannot be read or parsed
        """
        calendar = self._parse(self._read())
        events = calendar.walk("VEVENT")
        overridden = self._overridden_occurrences(events)
        busy: List[BusyInterval] = []

        for component in events:
            if str(component.get("STATUS", "")).upper() == "CANCELLED":
                continue
            if str(component.get("TRANSP", "OPAQUE")).upper() == "TRANSPARENT":
                continue
            try:
                skipped = overridden.get(str(component.get("UID", "")), set())
                for start, end in self._occurrences(component, time_range, skipped):
                    busy.append(BusyInterval(start=start, end=end))
            except (KeyError, ValueError, TypeError, AttributeError) as exc:
                logger.warning("Skipping unparseable event %s: %s", component.get("SUMMARY", "?"), exc)

        return busy

    def _read(self) -> bytes:
        if self.location.startswith(("http://", "https://", "webcal://")):
            url = self.location.replace("webcal://", "https://", 1)
            try:
                response = requests.get(url, timeout=self.timeout)
                response.raise_for_status()
            except requests.exceptions.RequestException as exc:
                raise IcsFeedError(f"Failed to download ICS feed {url}: {exc}") from exc
            return response.content

        try:
            return Path(self.location).read_bytes()
        except OSError as exc:
            raise IcsFeedError(f"Failed to read ICS file {self.location}: {exc}") from exc

    def _parse(self, raw: bytes) -> Calendar:
        try:
            return Calendar.from_ical(raw)
        except ValueError as exc:
            raise IcsFeedError(f"Invalid ICS data in {self.location}: {exc}") from exc

    def _overridden_occurrences(self, events) -> Dict[str, Set[DateTime]]:
        """
        Map UID to the original starts that a RECURRENCE-ID event replaces.

        Overrides count even when cancelled: the series must not report the
        original time either way.
        """
        overridden: Dict[str, Set[DateTime]] = {}
        for component in events:
            recurrence_id = component.get("RECURRENCE-ID")
            if recurrence_id is None:
                continue
            uid = str(component.get("UID", ""))
            overridden.setdefault(uid, set()).add(_as_datetime(recurrence_id.dt, self.timezone))
        return overridden

    def _occurrences(
        self,
        component,
        time_range: TimeRange,
        skipped: Set[DateTime] = frozenset(),
    ) -> Iterator[Tuple[DateTime, DateTime]]:
        """Yield (start, end) for every occurrence overlapping ``time_range``."""
        raw_start = component.get("DTSTART").dt
        start = _as_datetime(raw_start, self.timezone)

        if component.get("DTEND") is not None:
            end = _as_datetime(component.get("DTEND").dt, self.timezone)
        elif component.get("DURATION") is not None:
            end = start + component.get("DURATION").dt
        elif not isinstance(raw_start, datetime):
            end = start.add(days=1)
        else:
            end = start

        rrule = component.get("RRULE")
        if not rrule or component.get("RECURRENCE-ID") is not None:
            if start < time_range.end and end > time_range.start:
                yield start, end
            return

        duration = timedelta(seconds=(end - start).total_seconds())
        exdates = _date_list(component, "EXDATE")
        excluded_days = {value for value in exdates if not isinstance(value, datetime)}
        excluded = {_as_datetime(value, start.tzinfo) for value in exdates if isinstance(value, datetime)}
        excluded |= skipped

        # The rule runs on local wall time so that DST shifts keep the clock time
        # and date-only or local UNTIL values are accepted.
        try:
            rule = rrulestr(rrule.to_ical().decode("utf-8"), dtstart=start.naive(), ignoretz=True)
            until = rrule.get("UNTIL")
            if until:
                rule = rule.replace(until=self._local_until(until[0], start))
        except ValueError as exc:
            logger.warning(
                "Could not expand recurrence of %s, keeping its first occurrence: %s",
                component.get("SUMMARY", "?"),
                exc,
            )
            if start < time_range.end and end > time_range.start:
                yield start, end
            return

        for occurrence in rule:
            occurrence_start = pendulum.instance(occurrence, tz=start.tzinfo)
            if occurrence_start >= time_range.end:
                break
            if occurrence_start in excluded or occurrence.date() in excluded_days:
                continue
            occurrence_end = occurrence_start + duration
            if occurrence_end > time_range.start:
                yield occurrence_start, occurrence_end

    @staticmethod
    def _local_until(value: Union[date, datetime], start: DateTime) -> datetime:
        """UNTIL as naive wall time in the event's zone; a bare date includes that whole day."""
        if not isinstance(value, datetime):
            return datetime.combine(value, time.max)
        return _as_datetime(value, start.tzinfo).in_timezone(start.tzinfo).naive()
