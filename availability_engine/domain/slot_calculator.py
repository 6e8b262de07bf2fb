"""
Core business logic for calculating bookable appointment slots.

This is the heart of the application - pure domain logic without any
external dependencies (no API calls, no database, no I/O). Callers fetch
the provider, service and appointments and hand them in.
"""

from typing import Iterable, List

from pendulum import Date, DateTime

from .busy_periods import build_busy_periods
from .capacity import capacity_periods, capacity_slot_starts, reserved_attendants
from .intervals import gaps_between_sorted
from .models import Appointment, AvailabilityType, Provider, Service, Slot, TimeInterval
from .timezones import TimezoneOffset


class SlotCalculator:
    """
    Calculates bookable slots for one provider, service and date.

    Algorithm:
    1. Build busy periods (off-hours, breaks, appointments) for the previous,
       selected and next provider-local days
    2. Extract the free periods between them
    3. Quantize free periods into service-length start times
       (multi-attendant services use the capacity path instead of 1-3)
    4. Convert starts to the customer's timezone, keep the selected date,
       de-duplicate and sort
    5. Drop starts that fall inside the advance booking lead time
    """

    def __init__(
        self,
        flexible_step_minutes: int = 5,
        multi_attendant_step_minutes: int = 15,
        book_advance_timeout: int = 30,
    ):
        self.flexible_step_minutes = flexible_step_minutes
        self.multi_attendant_step_minutes = multi_attendant_step_minutes
        self.book_advance_timeout = book_advance_timeout

    def find_available_slots(
        self,
        *,
        provider: Provider,
        service: Service,
        selected_date: Date,
        customer_offset: TimezoneOffset,
        now: DateTime,
        provider_appointments: Iterable[Appointment],
        service_appointments: Iterable[Appointment] = (),
        exclude_appointment_ids: Iterable[str] = (),
    ) -> List[Slot]:
        """
        Find all bookable slots on a date, in the customer's timezone.

        Args:
            provider: Provider delivering the service
            service: Requested service
            selected_date: Date picked by the customer (customer-local)
            customer_offset: Customer timezone offset
            now: Current instant
            provider_appointments: The provider's appointments around the date
            service_appointments: Appointments of the service around the date,
                only needed for multi-attendant services
            exclude_appointment_ids: Appointments that must not count as conflicts

        Returns:
            Slots sorted by local start time
        """
        excluded = list(exclude_appointment_ids)
        provider_appointments = list(provider_appointments)

        if service.is_multi_attendant:
            starts = capacity_slot_starts(
                provider=provider,
                selected_date=selected_date,
                service=service,
                unavailabilities=provider_appointments,
                reservations=service_appointments,
                step_minutes=self.step_minutes(service),
                exclude_appointment_ids=excluded,
            )
        else:
            free = self.free_periods(provider, selected_date, provider_appointments, excluded)
            starts = self.generate_slot_starts(
                free, service.duration_minutes, self.step_minutes(service)
            )

        slots = self.to_customer_slots(starts, selected_date, customer_offset)
        return self.apply_lead_time(slots, selected_date, customer_offset, now)

    def step_minutes(self, service: Service) -> int:
        """Distance between candidate starts for a service."""
        if service.availabilities_type == AvailabilityType.FIXED:
            return service.duration_minutes
        if service.is_multi_attendant:
            return self.multi_attendant_step_minutes
        return self.flexible_step_minutes

    def free_periods(
        self,
        provider: Provider,
        selected_date: Date,
        appointments: Iterable[Appointment],
        exclude_appointment_ids: Iterable[str] = (),
    ) -> List[TimeInterval]:
        """Free periods across the three-day window around a date."""
        busy = build_busy_periods(provider, selected_date, appointments, exclude_appointment_ids)
        return gaps_between_sorted(busy)

    def generate_slot_starts(
        self,
        free_periods: Iterable[TimeInterval],
        duration_minutes: int,
        step_minutes: int,
    ) -> List[DateTime]:
        """
        Quantize free periods into start times.

        Example (duration 30, step 5):
        Free: 09:00 - 09:45
        Result: [09:00, 09:05, 09:10, 09:15]
        """
        starts: List[DateTime] = []

        for period in free_periods:
            current = period.start
            while current.add(minutes=duration_minutes) <= period.end:
                starts.append(current.in_timezone("UTC"))
                current = current.add(minutes=step_minutes)

        return starts

    def to_customer_slots(
        self,
        starts: Iterable[DateTime],
        selected_date: Date,
        customer_offset: TimezoneOffset,
    ) -> List[Slot]:
        """
        Convert start instants to customer-local slots on the selected date.

        Starts from the neighbouring days only survive if the timezone shift
        moves them onto the selected date. The same local time reached from
        two sources is kept once.
        """
        slots: dict[str, Slot] = {}

        for start in starts:
            if customer_offset.local_date(start) != selected_date:
                continue
            slot = Slot.from_instant(start, customer_offset)
            slots.setdefault(slot.display, slot)

        return [slots[display] for display in sorted(slots)]

    def apply_lead_time(
        self,
        slots: List[Slot],
        selected_date: Date,
        customer_offset: TimezoneOffset,
        now: DateTime,
    ) -> List[Slot]:
        """
        Drop slots that start at or before ``now + book_advance_timeout``.

        Only dates up to the one the lead time reaches are affected; earlier
        dates lose every slot, later dates are returned untouched.
        """
        today = customer_offset.local_date(now)
        if selected_date < today:
            return []

        threshold = now.add(minutes=self.book_advance_timeout)
        if selected_date > customer_offset.local_date(threshold):
            return slots

        return [slot for slot in slots if slot.start > threshold]

    def is_slot_available(
        self,
        *,
        provider: Provider,
        service: Service,
        start: DateTime,
        provider_appointments: Iterable[Appointment],
        service_appointments: Iterable[Appointment] = (),
        exclude_appointment_ids: Iterable[str] = (),
    ) -> bool:
        """
        Check that ``[start, start + duration)`` still fits one free period.

        For multi-attendant services the slot must fit a bookable sub-period
        and still have a free attendant place.
        """
        requested = TimeInterval(start=start, end=start.add(minutes=service.duration_minutes))
        provider_date = provider.offset.local_date(start)
        excluded = list(exclude_appointment_ids)
        provider_appointments = list(provider_appointments)

        if service.is_multi_attendant:
            periods = capacity_periods(provider, provider_date, provider_appointments)
            if not any(period.contains(requested) for period in periods):
                return False
            reserved = reserved_attendants(
                service_appointments, service.id, requested.start, requested.end, excluded
            )
            return reserved < service.attendants_number

        free = self.free_periods(provider, provider_date, provider_appointments, excluded)
        return any(period.contains(requested) for period in free)
