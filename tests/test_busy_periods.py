"""
Tests for busy-period construction and the free/busy partition.
"""

import pendulum

from availability_engine.domain.busy_periods import (
    build_busy_periods,
    busy_window,
    day_busy_segments,
)
from availability_engine.domain.intervals import gaps_between_sorted
from availability_engine.domain.models import BusyOrigin, WorkingDay
from availability_engine.domain.timezones import TimezoneOffset

MONDAY = pendulum.date(2024, 11, 25)


def _utc(value: str):
    return pendulum.parse(value, tz="UTC")


class TestDayBusySegments:
    """Tests for the single-day busy segment builder."""

    def test_working_day_segments(self):
        """Off-hours before and after the window plus every break."""
        working_day = WorkingDay.model_validate({
            "start": "09:00", "end": "17:00", "breaks": [{"start": "12:00", "end": "13:00"}]
        })

        segments = day_busy_segments(MONDAY, working_day, TimezoneOffset.parse("+00:00"))

        assert [(s.start, s.end, s.origin) for s in segments] == [
            (_utc("2024-11-25 00:00"), _utc("2024-11-25 09:00"), BusyOrigin.OUTSIDE_HOURS),
            (_utc("2024-11-25 17:00"), _utc("2024-11-26 00:00"), BusyOrigin.OUTSIDE_HOURS),
            (_utc("2024-11-25 12:00"), _utc("2024-11-25 13:00"), BusyOrigin.BREAK),
        ]

    def test_non_working_day_is_fully_busy(self):
        """A day without a plan is blocked from midnight to midnight."""
        for working_day in (None, WorkingDay()):
            segments = day_busy_segments(MONDAY, working_day, TimezoneOffset.parse("+00:00"))

            assert len(segments) == 1
            assert segments[0].start == _utc("2024-11-25 00:00")
            assert segments[0].end == _utc("2024-11-26 00:00")

    def test_segments_follow_provider_offset(self):
        """Provider-local 09:00 at +02:00 is 07:00 UTC."""
        working_day = WorkingDay.model_validate({"start": "09:00", "end": "17:00"})

        segments = day_busy_segments(MONDAY, working_day, TimezoneOffset.parse("+02:00"))

        assert segments[0].start == _utc("2024-11-24 22:00")
        assert segments[0].end == _utc("2024-11-25 07:00")
        assert segments[1].start == _utc("2024-11-25 15:00")


class TestBuildBusyPeriods:
    """Tests for the three-day busy list."""

    def test_window_covers_three_provider_days(self, make_provider):
        provider = make_provider(timezone="+01:00")

        window = busy_window(provider, MONDAY)

        assert window.start == _utc("2024-11-23 23:00")
        assert window.end == _utc("2024-11-26 23:00")

    def test_busy_list_is_sorted_and_includes_appointments(self, make_provider, make_appointment):
        provider = make_provider()
        appointment = make_appointment("2024-11-25 10:00", "2024-11-25 10:30")

        busy = build_busy_periods(provider, MONDAY, [appointment])

        starts = [interval.start for interval in busy]
        assert starts == sorted(starts)
        assert any(
            interval.origin == BusyOrigin.APPOINTMENT and interval.start == _utc("2024-11-25 10:00")
            for interval in busy
        )

    def test_excluded_and_far_away_appointments_are_ignored(self, make_provider, make_appointment):
        provider = make_provider()
        edited = make_appointment("2024-11-25 10:00", "2024-11-25 10:30", appointment_id="a1")
        far_away = make_appointment("2024-12-02 10:00", "2024-12-02 10:30", appointment_id="a2")

        busy = build_busy_periods(provider, MONDAY, [edited, far_away], exclude_appointment_ids=["a1"])

        assert not any(interval.origin == BusyOrigin.APPOINTMENT for interval in busy)

    def test_free_and_busy_partition_the_window(self, make_provider, make_appointment):
        """Free periods and busy periods cover the window without overlapping."""
        provider = make_provider(
            timezone="+03:00",
            breaks=[{"start": "12:00", "end": "13:00"}],
        )
        appointments = [
            make_appointment("2024-11-25 07:00", "2024-11-25 08:00"),
            make_appointment("2024-11-25 07:30", "2024-11-25 07:45"),
            make_appointment("2024-11-26 11:00", "2024-11-26 11:30"),
        ]

        busy = build_busy_periods(provider, MONDAY, appointments)
        free = gaps_between_sorted(busy)
        window = busy_window(provider, MONDAY)

        for period in free:
            assert not any(period.overlaps(interval) for interval in busy)

        reach = window.start
        for interval in sorted(busy + free, key=lambda i: i.start):
            assert interval.start <= reach
            reach = max(reach, interval.end)
        assert reach == window.end

    def test_fully_busy_window_has_no_free_period(self, make_provider):
        """A provider who never works has no free time at all."""
        provider = make_provider(days=())

        assert gaps_between_sorted(build_busy_periods(provider, MONDAY, [])) == []
