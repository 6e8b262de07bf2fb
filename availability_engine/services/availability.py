"""
Application services for querying availability and committing bookings.

The service fetches providers, services and appointments through a store
adapter and delegates the slot calculation to the domain-level
``SlotCalculator``. Depending on a protocol keeps the CLI thin and lets tests
plug in the in-memory store.
"""

from __future__ import annotations

import logging
from datetime import date, time
from typing import Callable, List, Optional, Protocol, Sequence, Tuple

import pendulum
from pendulum import Date, DateTime

from ..domain.busy_periods import busy_window
from ..domain.exceptions import InputError, SlotUnavailableError
from ..domain.models import ANY_PROVIDER, Appointment, AvailabilityResult, Provider, Service, Slot
from ..domain.slot_calculator import SlotCalculator
from ..domain.timezones import TimezoneOffset, parse_clock_time, parse_date

logger = logging.getLogger(__name__)


class AppointmentStore(Protocol):
    """Protocol describing the persistence behaviour needed by the service."""

    def get_provider(self, provider_id: str) -> Optional[Provider]:
        """Return a provider, or None when it does not exist."""

    def get_service(self, service_id: str) -> Optional[Service]:
        """Return a service, or None when it does not exist."""

    def providers_for_service(self, service_id: str) -> List[Provider]:
        """Return the providers offering a service, in a stable order."""

    def get_appointment(self, appointment_id: str) -> Optional[Appointment]:
        """Return an appointment, or None when it does not exist."""

    def appointments_for_provider(
        self, provider_id: str, start: DateTime, end: DateTime
    ) -> List[Appointment]:
        """Return a provider's appointments overlapping [start, end)."""

    def appointments_for_service(
        self, service_id: str, start: DateTime, end: DateTime
    ) -> List[Appointment]:
        """Return a service's appointments overlapping [start, end)."""

    def commit_appointment(
        self, appointment: Appointment, guard: Callable[[], bool]
    ) -> Appointment:
        """Store the appointment if ``guard()`` holds, else raise SlotUnavailableError."""


def is_any_provider(provider_id: Optional[str]) -> bool:
    return provider_id in (None, "", ANY_PROVIDER)


class AvailabilityService:
    """
    Orchestrates data retrieval, slot calculation and guarded booking.

    The provider chosen for an "any provider" request is resolved once and
    passed explicitly to every later step.
    """

    def __init__(
        self,
        store: AppointmentStore,
        slot_calculator: SlotCalculator,
        clock: Callable[[], DateTime] | None = None,
    ) -> None:
        self._store = store
        self._slot_calculator = slot_calculator
        self._clock = clock or (lambda: pendulum.now("UTC"))

    def find_slots(
        self,
        *,
        provider_id: Optional[str],
        service_id: str,
        selected_date: str | date,
        timezone: str | TimezoneOffset,
        now: DateTime | None = None,
        exclude_appointment_id: Optional[str] = None,
    ) -> AvailabilityResult:
        """
        Compute the bookable slots of a date in the customer's timezone.

        Unknown providers or services yield an empty result rather than an
        error.

        Raises:
            InputError: If the date or timezone offset is malformed
        """
        day = parse_date(selected_date)
        offset = TimezoneOffset.parse(timezone)
        now = now or self._clock()
        excluded = [exclude_appointment_id] if exclude_appointment_id else []

        result = AvailabilityResult(provider_id=None, date=day, timezone=str(offset))

        service = self._store.get_service(service_id)
        if service is None:
            logger.debug("Service %s not found, no availability", service_id)
            return result

        if is_any_provider(provider_id):
            provider, slots = self.resolve_any_provider(service, day, offset, now, excluded)
        else:
            provider = self._store.get_provider(provider_id)
            if provider is not None and not provider.offers(service.id):
                logger.debug("Provider %s does not offer service %s", provider_id, service.id)
                provider = None
            if provider is not None:
                slots = self._slots_for(provider, service, day, offset, now, excluded)

        if provider is None:
            return result

        result.provider_id = provider.id
        result.slots = slots
        logger.debug(
            "Found %d slot(s) for provider %s on %s", len(result.slots), provider.id, day
        )
        return result

    def get_available_hours(self, **kwargs) -> List[str]:
        """Same as ``find_slots`` but returns the ``HH:MM`` strings only."""
        return self.find_slots(**kwargs).hours

    def providers_for_service(self, service_id: str) -> List[Provider]:
        return self._store.providers_for_service(service_id)

    def resolve_any_provider(
        self,
        service: Service,
        selected_date: Date,
        offset: TimezoneOffset,
        now: DateTime,
        exclude_appointment_ids: Sequence[str] = (),
    ) -> Tuple[Optional[Provider], List[Slot]]:
        """
        Pick the provider with the most slots on a date.

        Ties keep the first provider encountered. Returns the provider with
        the slots it won with, or ``(None, [])`` when no provider has any slot.
        """
        best: Optional[Provider] = None
        best_slots: List[Slot] = []

        for provider in self._store.providers_for_service(service.id):
            slots = self._slots_for(
                provider, service, selected_date, offset, now, exclude_appointment_ids
            )
            if len(slots) > len(best_slots):
                best = provider
                best_slots = slots

        if best is not None:
            logger.debug("Resolved any-provider to %s (%d slots)", best.id, len(best_slots))
        return best, best_slots

    def is_slot_available(
        self,
        provider: Provider,
        service: Service,
        start: DateTime,
        exclude_appointment_ids: Sequence[str] = (),
    ) -> bool:
        """Re-run the free-period computation and check the slot still fits."""
        window = busy_window(provider, provider.offset.local_date(start))
        provider_appointments = self._store.appointments_for_provider(
            provider.id, window.start, window.end
        )
        service_appointments: List[Appointment] = []
        if service.is_multi_attendant:
            service_appointments = self._store.appointments_for_service(
                service.id, window.start, window.end
            )

        return self._slot_calculator.is_slot_available(
            provider=provider,
            service=service,
            start=start,
            provider_appointments=provider_appointments,
            service_appointments=service_appointments,
            exclude_appointment_ids=exclude_appointment_ids,
        )

    def book(
        self,
        *,
        provider_id: Optional[str],
        service_id: str,
        selected_date: str | date,
        start_time: str | time,
        timezone: str | TimezoneOffset,
        customer_id: Optional[str] = None,
        now: DateTime | None = None,
        appointment_id: Optional[str] = None,
    ) -> Appointment:
        """
        Validate a chosen slot and commit the appointment.

        Args:
            provider_id: Provider id, or None / ``any-provider``
            service_id: Requested service
            selected_date: Customer-local date (YYYY-MM-DD)
            start_time: Customer-local start (HH:MM)
            timezone: Customer timezone offset
            customer_id: Customer the appointment belongs to
            now: Current instant
            appointment_id: Id of an appointment being rescheduled

        Returns:
            The stored appointment

        Raises:
            InputError: If inputs are malformed or reference unknown records
            SlotUnavailableError: If the slot is no longer bookable
        """
        day = parse_date(selected_date)
        at = parse_clock_time(start_time)
        offset = TimezoneOffset.parse(timezone)
        now = now or self._clock()
        excluded = [appointment_id] if appointment_id else []

        service = self._store.get_service(service_id)
        if service is None:
            raise InputError(f"Unknown service '{service_id}'")

        if appointment_id:
            customer_id = self._rescheduled_customer(appointment_id, customer_id)

        start = offset.localize(day, at).in_timezone("UTC")
        end = start.add(minutes=service.duration_minutes)

        if is_any_provider(provider_id):
            provider = self._resolve_provider_for_start(service, day, offset, now, start, excluded)
            if provider is None:
                raise SlotUnavailableError(
                    f"No provider is available for {day.isoformat()} {at.strftime('%H:%M')}"
                )
        else:
            provider = self._store.get_provider(provider_id)
            if provider is None or not provider.offers(service.id):
                raise InputError(f"Provider '{provider_id}' does not offer service '{service.id}'")

        threshold = now.add(minutes=self._slot_calculator.book_advance_timeout)
        if start <= threshold:
            raise SlotUnavailableError(
                f"Slot {at.strftime('%H:%M')} is too close to the current time"
            )

        appointment = Appointment(
            id=appointment_id,
            provider_id=provider.id,
            service_id=service.id,
            customer_id=customer_id,
            start_datetime=start,
            end_datetime=end,
        )

        def guard() -> bool:
            return self.is_slot_available(provider, service, start, excluded)

        try:
            stored = self._store.commit_appointment(appointment, guard)
        except SlotUnavailableError:
            logger.info(
                "Rejected booking for provider %s at %s: slot no longer available",
                provider.id,
                start.to_iso8601_string(),
            )
            raise

        logger.info(
            "Booked appointment %s for provider %s at %s",
            stored.id,
            provider.id,
            start.to_iso8601_string(),
        )
        return stored

    def unavailable_dates(
        self,
        *,
        provider_id: Optional[str],
        service_id: str,
        selected_date: str | date,
        timezone: str | TimezoneOffset,
        now: DateTime | None = None,
        exclude_appointment_id: Optional[str] = None,
    ) -> List[str]:
        """
        List the dates of the selected month that have no bookable slot.

        Past dates are always unavailable. For "any provider" a date is
        available as soon as one provider of the service has a slot.
        """
        day = parse_date(selected_date)
        offset = TimezoneOffset.parse(timezone)
        now = now or self._clock()
        excluded = [exclude_appointment_id] if exclude_appointment_id else []
        today = offset.local_date(now)

        first = day.start_of("month")
        month_days = [first.add(days=i) for i in range(first.days_in_month)]

        service = self._store.get_service(service_id)
        if service is None:
            return [current.isoformat() for current in month_days]

        if is_any_provider(provider_id):
            candidates = self._store.providers_for_service(service.id)
        else:
            provider = self._store.get_provider(provider_id)
            candidates = [provider] if provider is not None and provider.offers(service.id) else []

        unavailable: List[str] = []

        for current in month_days:
            if current < today:
                unavailable.append(current.isoformat())
                continue

            if not any(
                self._slots_for(provider, service, current, offset, now, excluded)
                for provider in candidates
            ):
                unavailable.append(current.isoformat())

        return unavailable

    def _rescheduled_customer(
        self, appointment_id: str, customer_id: Optional[str]
    ) -> Optional[str]:
        """
        Check that an appointment may be rescheduled by a customer.

        Returns the customer the rescheduled appointment belongs to. Without
        an explicit customer the stored one is kept.

        Raises:
            InputError: If the appointment does not exist, is a blocked
                period, or belongs to another customer
        """
        existing = self._store.get_appointment(appointment_id)
        if existing is None or existing.is_unavailable:
            raise InputError(f"Unknown appointment '{appointment_id}'")

        if customer_id is None:
            return existing.customer_id
        if existing.customer_id is not None and existing.customer_id != customer_id:
            raise InputError(f"Appointment '{appointment_id}' belongs to another customer")
        return customer_id

    def _slots_for(
        self,
        provider: Provider,
        service: Service,
        selected_date: Date,
        offset: TimezoneOffset,
        now: DateTime,
        exclude_appointment_ids: Sequence[str],
    ) -> List[Slot]:
        """Fetch appointments around the date and compute one provider's slots."""
        window = busy_window(provider, selected_date)
        provider_appointments = self._store.appointments_for_provider(
            provider.id, window.start, window.end
        )
        service_appointments: List[Appointment] = []
        if service.is_multi_attendant:
            service_appointments = self._store.appointments_for_service(
                service.id, window.start, window.end
            )

        return self._slot_calculator.find_available_slots(
            provider=provider,
            service=service,
            selected_date=selected_date,
            customer_offset=offset,
            now=now,
            provider_appointments=provider_appointments,
            service_appointments=service_appointments,
            exclude_appointment_ids=exclude_appointment_ids,
        )

    def _resolve_provider_for_start(
        self,
        service: Service,
        selected_date: Date,
        offset: TimezoneOffset,
        now: DateTime,
        start: DateTime,
        exclude_appointment_ids: Sequence[str],
    ) -> Optional[Provider]:
        """
        Pick, among providers offering ``start``, the one with the most slots.

        Ties keep the first provider encountered.
        """
        best: Optional[Provider] = None
        best_count = 0

        for provider in self._store.providers_for_service(service.id):
            slots = self._slots_for(
                provider, service, selected_date, offset, now, exclude_appointment_ids
            )
            if not any(slot.start == start for slot in slots):
                continue
            if len(slots) > best_count:
                best = provider
                best_count = len(slots)

        return best
