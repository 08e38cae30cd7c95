"""
Tests for the ICS feed source.
"""

import asyncio

import pendulum
import pytest
import requests

from slotpicker.adapters import ics_feed
from slotpicker.adapters.ics_feed import IcsFeedSource
from slotpicker.domain.exceptions import IcsFeedError
from slotpicker.domain.models import TimeRange

FEED = """BEGIN:VCALENDAR
VERSION:2.0
PRODID:-//slotpicker//tests//EN
BEGIN:VEVENT
UID:standup
DTSTART:20300107T100000Z
DTEND:20300107T110000Z
SUMMARY:Standup
END:VEVENT
BEGIN:VEVENT
UID:free
DTSTART:20300108T100000Z
DTEND:20300108T110000Z
TRANSP:TRANSPARENT
SUMMARY:Focus (free)
END:VEVENT
BEGIN:VEVENT
UID:cancelled
DTSTART:20300109T100000Z
DTEND:20300109T110000Z
STATUS:CANCELLED
SUMMARY:Cancelled
END:VEVENT
BEGIN:VEVENT
UID:weekly
DTSTART:20300101T140000Z
DTEND:20300101T150000Z
RRULE:FREQ=WEEKLY;COUNT=10
SUMMARY:Weekly sync
END:VEVENT
BEGIN:VEVENT
UID:holiday
DTSTART;VALUE=DATE:20300110
SUMMARY:Holiday
END:VEVENT
BEGIN:VEVENT
UID:outside
DTSTART:20300201T100000Z
DTEND:20300201T110000Z
SUMMARY:Next month
END:VEVENT
END:VCALENDAR
"""

RANGE = TimeRange(
    start=pendulum.parse("2030-01-07T00:00:00Z"),
    end=pendulum.parse("2030-01-12T00:00:00Z"),
)


@pytest.fixture
def feed_file(tmp_path):
    path = tmp_path / "calendar.ics"
    path.write_text(FEED, encoding="utf-8")
    return path


def test_reads_busy_events_from_file(feed_file):
    source = IcsFeedSource(str(feed_file), timezone="UTC")

    busy = sorted(asyncio.run(source.fetch_busy_intervals(RANGE)), key=lambda b: b.start)

    assert [(b.start, b.end) for b in busy] == [
        (pendulum.parse("2030-01-07T10:00:00Z"), pendulum.parse("2030-01-07T11:00:00Z")),
        (pendulum.parse("2030-01-08T14:00:00Z"), pendulum.parse("2030-01-08T15:00:00Z")),
        (pendulum.parse("2030-01-10T00:00:00Z"), pendulum.parse("2030-01-11T00:00:00Z")),
    ]


def test_all_day_events_use_the_feed_timezone(feed_file):
    source = IcsFeedSource(str(feed_file), timezone="Europe/Berlin")

    busy = source.load(RANGE)

    holiday = [b for b in busy if (b.end - b.start).total_seconds() == 24 * 3600]
    assert holiday[0].start == pendulum.parse("2030-01-09T23:00:00Z")


def test_downloads_feed_over_http(monkeypatch):
    class FakeResponse:
        content = FEED.encode("utf-8")

        def raise_for_status(self):
            return None

    requested = []

    def fake_get(url, timeout=None):
        requested.append(url)
        return FakeResponse()

    monkeypatch.setattr(ics_feed.requests, "get", fake_get)

    busy = IcsFeedSource("webcal://example.com/cal.ics").load(RANGE)

    assert requested == ["https://example.com/cal.ics"]
    assert len(busy) == 3


def test_download_failure_raises_feed_error(monkeypatch):
    def fake_get(url, timeout=None):
        raise requests.exceptions.ConnectionError("unreachable")

    monkeypatch.setattr(ics_feed.requests, "get", fake_get)

    with pytest.raises(IcsFeedError, match="unreachable"):
        IcsFeedSource("https://example.com/cal.ics").load(RANGE)


def test_missing_file_raises_feed_error(tmp_path):
    with pytest.raises(IcsFeedError):
        IcsFeedSource(str(tmp_path / "missing.ics")).load(RANGE)


NARROW_RANGE = TimeRange(
    start=pendulum.parse("2030-01-07T00:00:00Z"),
    end=pendulum.parse("2030-01-09T00:00:00Z"),
)


def _load(tmp_path, *events, timezone="UTC"):
    lines = ["BEGIN:VCALENDAR", "VERSION:2.0", "PRODID:-//slotpicker//tests//EN", *events, "END:VCALENDAR"]
    path = tmp_path / "recurring.ics"
    path.write_text("\n".join(lines) + "\n", encoding="utf-8")
    busy = IcsFeedSource(str(path), timezone=timezone).load(NARROW_RANGE)
    return sorted(((b.start, b.end) for b in busy), key=lambda pair: pair[0])


def _utc(value):
    return pendulum.parse(value)


def test_all_day_series_with_date_until(tmp_path):
    busy = _load(
        tmp_path,
        "BEGIN:VEVENT",
        "UID:ooo",
        "DTSTART;VALUE=DATE:20300101",
        "RRULE:FREQ=DAILY;UNTIL=20300120",
        "SUMMARY:Out of office",
        "END:VEVENT",
    )

    assert busy == [
        (_utc("2030-01-07T00:00:00Z"), _utc("2030-01-08T00:00:00Z")),
        (_utc("2030-01-08T00:00:00Z"), _utc("2030-01-09T00:00:00Z")),
    ]


def test_zoned_series_with_local_until(tmp_path):
    busy = _load(
        tmp_path,
        "BEGIN:VEVENT",
        "UID:daily",
        "DTSTART;TZID=Europe/Berlin:20300101T090000",
        "DTEND;TZID=Europe/Berlin:20300101T100000",
        "RRULE:FREQ=DAILY;UNTIL=20300131T090000",
        "SUMMARY:Daily",
        "END:VEVENT",
    )

    assert busy == [
        (_utc("2030-01-07T08:00:00Z"), _utc("2030-01-07T09:00:00Z")),
        (_utc("2030-01-08T08:00:00Z"), _utc("2030-01-08T09:00:00Z")),
    ]


def test_exdates_remove_occurrences(tmp_path):
    busy = _load(
        tmp_path,
        "BEGIN:VEVENT",
        "UID:sync",
        "DTSTART:20300101T140000Z",
        "DTEND:20300101T150000Z",
        "RRULE:FREQ=DAILY;COUNT=30",
        "EXDATE:20300108T140000Z",
        "SUMMARY:Sync",
        "END:VEVENT",
        "BEGIN:VEVENT",
        "UID:ooo",
        "DTSTART;VALUE=DATE:20300101",
        "RRULE:FREQ=DAILY;UNTIL=20300120",
        "EXDATE;VALUE=DATE:20300107",
        "SUMMARY:Out of office",
        "END:VEVENT",
    )

    assert busy == [
        (_utc("2030-01-07T14:00:00Z"), _utc("2030-01-07T15:00:00Z")),
        (_utc("2030-01-08T00:00:00Z"), _utc("2030-01-09T00:00:00Z")),
    ]


def test_overridden_occurrences_replace_the_series(tmp_path):
    busy = _load(
        tmp_path,
        "BEGIN:VEVENT",
        "UID:sync",
        "DTSTART:20300101T140000Z",
        "DTEND:20300101T150000Z",
        "RRULE:FREQ=DAILY;COUNT=30",
        "SUMMARY:Sync",
        "END:VEVENT",
        "BEGIN:VEVENT",
        "UID:sync",
        "RECURRENCE-ID:20300108T140000Z",
        "DTSTART:20300108T160000Z",
        "DTEND:20300108T170000Z",
        "SUMMARY:Sync (moved)",
        "END:VEVENT",
        "BEGIN:VEVENT",
        "UID:sync",
        "RECURRENCE-ID:20300107T140000Z",
        "DTSTART:20300107T140000Z",
        "DTEND:20300107T150000Z",
        "STATUS:CANCELLED",
        "SUMMARY:Sync (cancelled)",
        "END:VEVENT",
    )

    assert busy == [(_utc("2030-01-08T16:00:00Z"), _utc("2030-01-08T17:00:00Z"))]


def test_unreadable_rule_keeps_first_occurrence(tmp_path, caplog):
    with caplog.at_level("WARNING", logger="slotpicker.adapters.ics_feed"):
        busy = _load(
            tmp_path,
            "BEGIN:VEVENT",
            "UID:odd",
            "DTSTART:20300107T100000Z",
            "DTEND:20300107T110000Z",
            "RRULE:FREQ=DAILY;X-ODD=1",
            "SUMMARY:Odd rule",
            "END:VEVENT",
        )

    assert busy == [(_utc("2030-01-07T10:00:00Z"), _utc("2030-01-07T11:00:00Z"))]
    assert "Could not expand recurrence" in caplog.text
