"""
Tests for candidate generation and window filtering.
"""

import pendulum
import pytest

from slotpicker.domain.candidates import WindowFilter, filter_candidates, generate_candidates
from slotpicker.domain.exceptions import InvalidDuration, InvalidRange
from slotpicker.domain.models import DailyWindow, TimeOfDay, weekday_index

MONDAY = pendulum.parse("2030-01-07T00:00:00Z")
FRIDAY = pendulum.parse("2030-01-11T00:00:00Z")


def _clock(value: str = "2029-12-01T00:00:00Z"):
    moment = pendulum.parse(value)
    return lambda: moment


def _utc_window(start_hour: int = 12, end_hour: int = 16, tz: str = "UTC") -> DailyWindow:
    return DailyWindow(timezone=tz, from_time=TimeOfDay(start_hour), to_time=TimeOfDay(end_hour))


class TestGenerateCandidates:
    """Tests for the raw slot grid."""

    def test_grid_starts_at_local_midnight(self):
        start = pendulum.parse("2030-01-07T10:17:00", tz="Europe/Berlin")
        end = start.add(hours=2)

        slots = generate_candidates(start, end, 30)

        assert slots[0].start == pendulum.parse("2030-01-07T00:00:00", tz="Europe/Berlin")

    def test_slots_are_contiguous_and_sized(self):
        slots = generate_candidates(MONDAY, MONDAY.add(hours=3), 45)

        for slot in slots:
            assert slot.end == slot.start.add(minutes=45)
        for previous, current in zip(slots, slots[1:]):
            assert previous.end == current.start
            assert previous.start < current.start

    def test_slot_ending_on_boundary_is_dropped(self):
        """Only slots ending strictly before the range end are kept."""
        slots = generate_candidates(MONDAY, MONDAY.add(hours=2), 30)

        assert len(slots) == 3
        assert slots[-1].end == MONDAY.add(minutes=90)

    def test_full_range_count(self):
        """Four days of 30 minute slots minus the boundary slot."""
        slots = generate_candidates(MONDAY, FRIDAY, 30)

        assert len(slots) == 4 * 48 - 1

    @pytest.mark.parametrize("duration", [0, -15])
    def test_non_positive_duration_is_rejected(self, duration):
        with pytest.raises(InvalidDuration):
            generate_candidates(MONDAY, FRIDAY, duration)

    def test_empty_or_reversed_range_is_rejected(self):
        with pytest.raises(InvalidRange):
            generate_candidates(FRIDAY, MONDAY, 30)
        with pytest.raises(InvalidRange):
            generate_candidates(MONDAY, MONDAY, 30)


class TestWindowFilter:
    """Tests for weekday, daily window and past constraints."""

    def test_weekday_daily_window_scenario(self):
        """
        Monday to Friday 00:00 UTC, 12:00-16:00 UTC on weekdays.

        Eight slots fit the window on each of Mon-Thu; Monday 12:00 does not
        start strictly after the range's own 12:00 and is removed.
        """
        candidates = generate_candidates(MONDAY, FRIDAY, 30)

        slots = filter_candidates(
            candidates,
            MONDAY,
            FRIDAY,
            days=[1, 2, 3, 4, 5],
            daily=_utc_window(),
            clock=_clock(),
        )

        assert len(slots) == 31
        assert slots[0].start == pendulum.parse("2030-01-07T12:30:00Z")
        assert slots[-1].end == pendulum.parse("2030-01-10T16:00:00Z")
        for slot in slots:
            assert 12 <= slot.start.hour < 16
            assert slot.end.hour < 16 or (slot.end.hour == 16 and slot.end.minute == 0)

        per_day = {}
        for slot in slots:
            per_day.setdefault(slot.start.day, []).append(slot)
        assert [len(per_day[day]) for day in sorted(per_day)] == [7, 8, 8, 8]

    def test_weekday_constraint_excludes_weekends(self):
        start = pendulum.parse("2030-01-11T00:00:00Z")  # Friday
        end = pendulum.parse("2030-01-15T00:00:00Z")  # Tuesday

        slots = filter_candidates(
            generate_candidates(start, end, 30),
            start,
            end,
            days=[1, 2, 3, 4, 5],
            daily=_utc_window(),
            clock=_clock(),
        )

        assert len(slots) == 7 + 8  # Friday (first slot removed) and Monday
        for slot in slots:
            assert weekday_index(slot.start) not in (0, 6)
            assert weekday_index(slot.end) not in (0, 6)

    def test_slot_ending_on_disallowed_day_is_removed(self):
        """Without a daily window the range itself bounds the slots."""
        start = pendulum.parse("2030-01-11T00:00:00Z")  # Friday
        end = pendulum.parse("2030-01-13T00:00:00Z")

        slots = filter_candidates(
            generate_candidates(start, end, 30),
            start,
            end,
            days=[5],
            clock=_clock(),
        )

        # 00:00 is not strictly after the range start, 23:30 ends on Saturday
        assert len(slots) == 46
        assert slots[0].start == start.add(minutes=30)
        assert slots[-1].end == pendulum.parse("2030-01-11T23:30:00Z")

    def test_naive_bounds_use_the_range_dates(self):
        """
        Kolkata 12:00-16:00 is 06:30-10:30 UTC; Monday's slots do not start
        after Monday 12:00 in the range's own timezone and are dropped.
        """
        slots = filter_candidates(
            generate_candidates(MONDAY, FRIDAY, 30),
            MONDAY,
            FRIDAY,
            daily=_utc_window(tz="Asia/Kolkata"),
            clock=_clock(),
        )

        assert len(slots) == 24
        assert slots[0].start == pendulum.parse("2030-01-08T06:30:00Z")
        for slot in slots:
            local = slot.start.in_timezone("Asia/Kolkata")
            assert 12 <= local.hour < 16

    def test_past_slots_are_removed(self):
        window_filter = WindowFilter(
            days=[1, 2, 3, 4, 5],
            daily=_utc_window(),
            clock=_clock("2030-01-09T00:00:00Z"),
        )

        slots = window_filter.apply(generate_candidates(MONDAY, FRIDAY, 30), MONDAY, FRIDAY)

        assert len(slots) == 16
        assert all(slot.start.day in (9, 10) for slot in slots)

    def test_slot_starting_now_is_removed(self):
        window_filter = WindowFilter(clock=_clock("2030-01-07T12:00:00Z"))

        slots = window_filter.apply(generate_candidates(MONDAY, FRIDAY, 30), MONDAY, FRIDAY)

        assert slots[0].start == pendulum.parse("2030-01-07T12:30:00Z")

    def test_order_is_preserved_and_nothing_survives_in_the_past(self):
        candidates = generate_candidates(MONDAY, FRIDAY, 30)

        assert filter_candidates(candidates, MONDAY, FRIDAY, clock=_clock("2031-01-01T00:00:00Z")) == []

        kept = filter_candidates(candidates, MONDAY, FRIDAY, clock=_clock())
        assert kept == sorted(kept, key=lambda slot: slot.start)
