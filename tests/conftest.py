"""
Shared fixtures for the availability engine tests.

2024-11-25 is a Monday.
"""

import pendulum
import pytest

from availability_engine.adapters.memory_store import InMemoryAppointmentStore
from availability_engine.domain.models import (
    WEEKDAY_NAMES,
    Appointment,
    Provider,
    Service,
)
from availability_engine.domain.slot_calculator import SlotCalculator
from availability_engine.services.availability import AvailabilityService

NOW = pendulum.parse("2024-11-20T08:00:00+00:00")


def working_plan(start="09:00", end="17:00", breaks=None, days=WEEKDAY_NAMES[:5]):
    """Same working window on the given weekdays, nothing on the others."""
    return {
        day: {"start": start, "end": end, "breaks": breaks or []}
        for day in days
    }


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def make_provider():
    def _make(provider_id="1", timezone="+00:00", services=("1",), **plan):
        return Provider(
            id=provider_id,
            name=f"Provider {provider_id}",
            timezone=timezone,
            services=list(services),
            working_plan=working_plan(**plan),
        )
    return _make


@pytest.fixture
def make_service():
    def _make(service_id="1", duration=30, attendants=1, availabilities_type="flexible"):
        return Service(
            id=service_id,
            name=f"Service {service_id}",
            duration_minutes=duration,
            attendants_number=attendants,
            availabilities_type=availabilities_type,
        )
    return _make


@pytest.fixture
def make_appointment():
    def _make(start, end, provider_id="1", service_id="1", appointment_id=None,
              is_unavailable=False, customer_id="c1"):
        return Appointment(
            id=appointment_id,
            provider_id=provider_id,
            service_id=None if is_unavailable else service_id,
            customer_id=None if is_unavailable else customer_id,
            start_datetime=pendulum.parse(start, tz="UTC"),
            end_datetime=pendulum.parse(end, tz="UTC"),
            is_unavailable=is_unavailable,
        )
    return _make


@pytest.fixture
def build_service():
    """Wire an in-memory store into an AvailabilityService."""
    def _build(providers, services, appointments=(), **calculator_options):
        store = InMemoryAppointmentStore(
            providers=providers, services=services, appointments=appointments
        )
        calculator = SlotCalculator(**calculator_options)
        return AvailabilityService(store=store, slot_calculator=calculator), store
    return _build
