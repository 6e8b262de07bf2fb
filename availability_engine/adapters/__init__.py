"""
Adapters layer - Appointment store implementations.
"""

from .http_store import HttpAppointmentStore
from .memory_store import InMemoryAppointmentStore

__all__ = ["HttpAppointmentStore", "InMemoryAppointmentStore"]
