"""
Mock calendar provider for running without Azure authentication.
"""

import json
from pathlib import Path
from typing import Any, Dict, List, Optional

import pendulum

from ..domain.models import BusyInterval, TimeRange, weekday_index
from .graph_client import BUSY_STATUSES

DEFAULT_DATA_FILE = Path(__file__).parent / "mock_calendar_data.json"


class MockGraphClient:
    """
    Mock client that simulates the Microsoft Graph calendar provider.

    Events in the data file are recurring weekly entries (``weekday`` 0=Sunday,
    wall-clock ``start``/``end`` in ``timezone``), so the mock always has data
    for whatever range is searched.
    """

    def __init__(self, timezone: str = "Europe/Berlin", data_file: Optional[Path] = None):
        self.timezone = timezone
        self.data_file = data_file or DEFAULT_DATA_FILE
        self._data = self._load_calendar_data()

    def _load_calendar_data(self) -> Dict[str, Any]:
        """Load mock calendar data from the JSON file."""
        if not self.data_file.exists():
            return {"calendars": [], "events": []}

        with open(self.data_file, "r", encoding="utf-8") as f:
            return json.load(f)

    def list_calendars(self, identity: Optional[str] = None) -> List[str]:
        owner = identity or "me"
        return [
            calendar["id"]
            for calendar in self._data.get("calendars", [])
            if calendar.get("owner", "me").lower() == owner.lower()
        ]

    def get_busy_intervals(
        self,
        calendar_id: str,
        time_range: TimeRange,
        identity: Optional[str] = None,
    ) -> List[BusyInterval]:
        events = [
            event for event in self._data.get("events", [])
            if event.get("calendarId") == calendar_id
            and event.get("showAs", "busy").lower() in BUSY_STATUSES
        ]

        busy: List[BusyInterval] = []
        day = time_range.start.in_timezone(self.timezone).start_of("day")
        last_day = time_range.end.in_timezone(self.timezone)

        while day <= last_day:
            for event in events:
                if event["weekday"] != weekday_index(day):
                    continue
                start = self._at(day, event["start"])
                end = self._at(day, event["end"])
                # Keep events that overlap the requested window
                if start < time_range.end and end > time_range.start:
                    busy.append(BusyInterval(start=start, end=end))
            day = day.add(days=1)

        return busy

    @staticmethod
    def _at(day: pendulum.DateTime, clock: str) -> pendulum.DateTime:
        hour, minute = (int(part) for part in clock.split(":"))
        return day.set(hour=hour, minute=minute, second=0, microsecond=0)

    def test_connection(self) -> Dict[str, Any]:
        """Mock connection test."""
        return {
            "displayName": "Mock User",
            "mail": "mock.user@example.com",
            "userPrincipalName": "mock.user@example.com",
        }
