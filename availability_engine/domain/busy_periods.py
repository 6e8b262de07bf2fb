"""
Busy-period construction for a provider around a target date.

The target day is padded with its two neighbours because converting a
provider-local slot to the customer's timezone can move it across midnight.
"""

from typing import Iterable, List

from pendulum import Date

from .intervals import sort_by_start
from .models import Appointment, BusyInterval, BusyOrigin, Provider, TimeInterval, WorkingDay
from .timezones import TimezoneOffset


def window_days(selected_date: Date) -> List[Date]:
    """Return the previous, selected and next calendar days."""
    return [selected_date.subtract(days=1), selected_date, selected_date.add(days=1)]


def busy_window(provider: Provider, selected_date: Date) -> TimeInterval:
    """The three-day span, in provider-local days, that busy periods cover."""
    days = window_days(selected_date)
    offset = provider.offset
    return TimeInterval(
        start=offset.start_of_day(days[0]),
        end=offset.start_of_day(days[-1].add(days=1)),
    )


def day_busy_segments(
    day: Date,
    working_day: WorkingDay | None,
    offset: TimezoneOffset,
) -> List[BusyInterval]:
    """
    Compute the busy segments of one provider-local calendar day.

    A working day yields [00:00, start), [end, 24:00) and its breaks.
    A non-working day is busy from 00:00 to 24:00. Either way the day is
    bounded at both midnights, so consecutive days tile without gaps at
    their seams.
    """
    day_start = offset.start_of_day(day)
    day_end = offset.start_of_day(day.add(days=1))

    if working_day is None or not working_day.is_working():
        return [BusyInterval(start=day_start, end=day_end, origin=BusyOrigin.OUTSIDE_HOURS)]

    segments = [
        BusyInterval(
            start=day_start,
            end=offset.localize(day, working_day.start),
            origin=BusyOrigin.OUTSIDE_HOURS,
        ),
        BusyInterval(
            start=offset.localize(day, working_day.end),
            end=day_end,
            origin=BusyOrigin.OUTSIDE_HOURS,
        ),
    ]

    for brk in working_day.breaks:
        segments.append(
            BusyInterval(
                start=offset.localize(day, brk.start),
                end=offset.localize(day, brk.end),
                origin=BusyOrigin.BREAK,
            )
        )

    return segments


def build_busy_periods(
    provider: Provider,
    selected_date: Date,
    appointments: Iterable[Appointment],
    exclude_appointment_ids: Iterable[str] = (),
) -> List[BusyInterval]:
    """
    Merge non-working hours, breaks and appointments into one sorted list.

    Args:
        provider: Provider whose working plan applies
        selected_date: Target calendar date
        appointments: The provider's appointments around the target date
        exclude_appointment_ids: Appointments to ignore (an appointment being
            edited must not conflict with itself)

    Returns:
        Busy intervals sorted by start, spanning the three-day window
    """
    offset = provider.offset
    excluded = set(exclude_appointment_ids)
    window = busy_window(provider, selected_date)

    periods: List[BusyInterval] = []

    for day in window_days(selected_date):
        periods.extend(
            day_busy_segments(day, provider.working_plan.for_date(day), offset)
        )

    for appointment in appointments:
        if appointment.id is not None and appointment.id in excluded:
            continue
        if not appointment.interval.overlaps(window):
            continue
        periods.append(
            BusyInterval(
                start=appointment.start_datetime,
                end=appointment.end_datetime,
                origin=BusyOrigin.APPOINTMENT,
            )
        )

    return sort_by_start(periods)
