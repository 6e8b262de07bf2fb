"""
Domain-specific exception hierarchy for the availability engine.
"""


class AvailabilityError(Exception):
    """Base class for all engine-level errors."""


class InputError(AvailabilityError, ValueError):
    """Raised when a date, time, timezone offset or record is malformed."""


class SlotUnavailableError(AvailabilityError):
    """Raised when a requested slot is no longer bookable at commit time."""


class TransientError(AvailabilityError):
    """Raised when the appointment store cannot be reached or read."""
