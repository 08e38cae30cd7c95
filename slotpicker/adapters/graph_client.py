"""
Microsoft Graph API client for reading busy times from calendars.
"""

import logging
from typing import Any, Dict, Iterator, List, Optional

import pendulum
import requests
from pendulum import DateTime

from ..domain.exceptions import CalendarAPIError
from ..domain.models import BusyInterval, TimeRange

logger = logging.getLogger(__name__)

# showAs values we treat as "busy"
BUSY_STATUSES = {"busy", "tentative", "oof", "workingelsewhere"}


class GraphClient:
    """
    Calendar provider backed by Microsoft Graph.

    Calendars are listed via ``/calendars`` and busy times read from each
    calendar's ``calendarView``. All times are requested in UTC.
    """

    GRAPH_API_ENDPOINT = "https://graph.microsoft.com/v1.0"

    def __init__(self, access_token: str, timeout: float = 30):
        """
        Initialize the Graph API client.

        Args:
            access_token: Valid Microsoft Graph access token
            timeout: Per-request timeout in seconds
        """
        self.access_token = access_token
        self.timeout = timeout
        self.headers = {
            "Authorization": f"Bearer {access_token}",
            "Content-Type": "application/json",
            "Prefer": 'outlook.timezone="UTC"',
        }

    def _owner_path(self, identity: Optional[str]) -> str:
        if identity is None:
            return f"{self.GRAPH_API_ENDPOINT}/me"
        return f"{self.GRAPH_API_ENDPOINT}/users/{identity}"

    def list_calendars(self, identity: Optional[str] = None) -> List[str]:
        """
        List the calendar ids of ``identity`` (the signed-in user when None).

        Raises:
            CalendarAPIError: If API call fails
        """
        url = f"{self._owner_path(identity)}/calendars"
        return [
            calendar["id"]
            for calendar in self._get_paged(url, params={"$select": "id,name"})
            if "id" in calendar
        ]

    def get_busy_intervals(
        self,
        calendar_id: str,
        time_range: TimeRange,
        identity: Optional[str] = None,
    ) -> List[BusyInterval]:
        """
        Get the busy intervals of one calendar within ``time_range``.

        Raises:
            CalendarAPIError: If API call fails
        """
        url = f"{self._owner_path(identity)}/calendars/{calendar_id}/calendarView"
        params = {
            "startDateTime": time_range.start.in_timezone("UTC").to_iso8601_string(),
            "endDateTime": time_range.end.in_timezone("UTC").to_iso8601_string(),
            "$select": "showAs,start,end,isCancelled",
        }
        return self._parse_events(self._get_paged(url, params=params))

    def _get_paged(self, url: str, params: Optional[Dict[str, str]] = None) -> Iterator[Dict[str, Any]]:
        """Yield the items of a collection, following ``@odata.nextLink``."""
        next_url: Optional[str] = url
        next_params = params

        while next_url:
            try:
                response = requests.get(
                    next_url,
                    headers=self.headers,
                    params=next_params,
                    timeout=self.timeout,
                )
                response.raise_for_status()
                data = response.json()
            except requests.exceptions.RequestException as e:
                raise CalendarAPIError(f"Failed to fetch calendar data from Microsoft Graph: {e}") from e
            except ValueError as e:
                raise CalendarAPIError(f"Invalid JSON from Microsoft Graph: {e}") from e

            yield from data.get("value", [])

            # nextLink already carries the query string
            next_url = data.get("@odata.nextLink")
            next_params = None

    def _parse_events(self, events) -> List[BusyInterval]:
        """
        Convert calendarView events to busy intervals.

        Event format:
        {
            "showAs": "busy",
            "isCancelled": false,
            "start": {"dateTime": "2024-11-25T09:00:00.0000000", "timeZone": "UTC"},
            "end": {"dateTime": "2024-11-25T10:00:00.0000000", "timeZone": "UTC"}
        }
        """
        busy: List[BusyInterval] = []

        for event in events:
            if event.get("isCancelled"):
                continue
            if event.get("showAs", "busy").lower() not in BUSY_STATUSES:
                continue

            try:
                start = self._parse_datetime(event["start"])
                end = self._parse_datetime(event["end"])
            except (KeyError, ValueError) as e:
                logger.warning("Could not parse calendar event: %s", e)
                continue

            busy.append(BusyInterval(start=start, end=end))

        return busy

    def _parse_datetime(self, value: Dict[str, str]) -> DateTime:
        """
        Parse a Graph ``dateTimeTimeZone`` object to a pendulum DateTime.
        """
        dt = pendulum.parse(value["dateTime"], tz=value.get("timeZone") or "UTC")

        if isinstance(dt, DateTime):
            return dt

        raise ValueError(f"Could not parse datetime: {value['dateTime']}")

    def test_connection(self) -> Dict[str, Any]:
        """
        Test the connection and authentication by fetching user profile.

        Returns:
            User profile data

        Raises:
            CalendarAPIError: If connection test fails
        """
        url = f"{self.GRAPH_API_ENDPOINT}/me"

        try:
            response = requests.get(url, headers=self.headers, timeout=10)
            response.raise_for_status()
            return response.json()

        except requests.exceptions.RequestException as e:
            raise CalendarAPIError(f"Connection test failed: {e}") from e
