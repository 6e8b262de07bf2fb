"""
Slot calculation for services that accept several attendants at once.

Multi-attendant services do not treat booked appointments as busy time.
Instead each candidate slot is kept while the number of attendants already
reserved for it stays below the service capacity.
"""

from typing import Iterable, List

from pendulum import Date, DateTime

from .busy_periods import window_days
from .intervals import subtract_all
from .models import Appointment, Provider, Service, TimeInterval, WorkingDay
from .timezones import TimezoneOffset


def working_periods(
    day: Date,
    working_day: WorkingDay | None,
    offset: TimezoneOffset,
    unavailabilities: Iterable[Appointment] = (),
) -> List[TimeInterval]:
    """
    Get the bookable sub-periods of one provider-local day.

    Starts from the full working window, then removes breaks and blocked
    periods with interval subtraction.
    """
    if working_day is None or not working_day.is_working():
        return []

    periods = [
        TimeInterval(
            start=offset.localize(day, working_day.start),
            end=offset.localize(day, working_day.end),
        )
    ]

    breaks = [
        TimeInterval(start=offset.localize(day, brk.start), end=offset.localize(day, brk.end))
        for brk in working_day.breaks
    ]
    periods = subtract_all(periods, breaks)

    blocked = [
        appointment.interval
        for appointment in unavailabilities
        if appointment.is_unavailable
    ]
    return subtract_all(periods, blocked)


def reserved_attendants(
    reservations: Iterable[Appointment],
    service_id: str,
    slot_start: DateTime,
    slot_end: DateTime,
    exclude_appointment_ids: Iterable[str] = (),
) -> int:
    """
    Count appointments of a service that overlap a candidate slot.

    An appointment ending exactly at ``slot_start`` or starting exactly at
    ``slot_end`` does not count.
    """
    excluded = set(exclude_appointment_ids)
    return sum(
        1
        for appointment in reservations
        if not appointment.is_unavailable
        and appointment.service_id == service_id
        and appointment.id not in excluded
        and appointment.overlaps(slot_start, slot_end)
    )


def capacity_periods(
    provider: Provider,
    selected_date: Date,
    unavailabilities: Iterable[Appointment],
) -> List[TimeInterval]:
    """Bookable sub-periods across the three-day window around a date."""
    blocked = [appointment for appointment in unavailabilities if appointment.is_unavailable]
    periods: List[TimeInterval] = []

    for day in window_days(selected_date):
        periods.extend(
            working_periods(day, provider.working_plan.for_date(day), provider.offset, blocked)
        )

    return periods


def capacity_slot_starts(
    provider: Provider,
    selected_date: Date,
    service: Service,
    unavailabilities: Iterable[Appointment],
    reservations: Iterable[Appointment],
    step_minutes: int,
    exclude_appointment_ids: Iterable[str] = (),
) -> List[DateTime]:
    """
    Slide a service-length window across every bookable sub-period.

    Args:
        provider: Provider whose working plan applies
        selected_date: Target calendar date
        service: Multi-attendant service being booked
        unavailabilities: The provider's blocked periods
        reservations: Existing appointments of the service
        step_minutes: Distance between candidate starts
        exclude_appointment_ids: Appointments to ignore when counting

    Returns:
        UTC start instants whose reserved count is below capacity
    """
    reservations = list(reservations)
    excluded = list(exclude_appointment_ids)
    starts: List[DateTime] = []

    for period in capacity_periods(provider, selected_date, unavailabilities):
        slot_start = period.start
        slot_end = slot_start.add(minutes=service.duration_minutes)

        while slot_end <= period.end:
            reserved = reserved_attendants(
                reservations, service.id, slot_start, slot_end, excluded
            )
            if reserved < service.attendants_number:
                starts.append(slot_start.in_timezone("UTC"))

            slot_start = slot_start.add(minutes=step_minutes)
            slot_end = slot_end.add(minutes=step_minutes)

    return starts
