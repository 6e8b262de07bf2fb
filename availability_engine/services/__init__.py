"""
Service layer helpers that orchestrate store adapters and domain logic.
"""

from .availability import AppointmentStore, AvailabilityService

__all__ = ["AppointmentStore", "AvailabilityService"]
