"""
Domain layer - Pure business logic without external dependencies.
"""

from .exceptions import AvailabilityError, InputError, SlotUnavailableError, TransientError
from .models import (
    ANY_PROVIDER,
    Appointment,
    AvailabilityResult,
    AvailabilityType,
    BusyInterval,
    BusyOrigin,
    Provider,
    Service,
    Slot,
    TimeInterval,
    WorkingDay,
    WorkingPlan,
)
from .slot_calculator import SlotCalculator
from .timezones import TimezoneOffset

__all__ = [
    "ANY_PROVIDER",
    "Appointment",
    "AvailabilityError",
    "AvailabilityResult",
    "AvailabilityType",
    "BusyInterval",
    "BusyOrigin",
    "InputError",
    "Provider",
    "Service",
    "Slot",
    "SlotCalculator",
    "SlotUnavailableError",
    "TimeInterval",
    "TimezoneOffset",
    "TransientError",
    "WorkingDay",
    "WorkingPlan",
]
