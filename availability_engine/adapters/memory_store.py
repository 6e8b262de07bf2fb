"""
In-memory appointment store, optionally seeded from a JSON fixture.
"""

import json
import logging
import threading
import uuid
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Optional

from pendulum import DateTime
from pydantic import ValidationError

from ..domain.exceptions import InputError, SlotUnavailableError
from ..domain.models import Appointment, Provider, Service

logger = logging.getLogger(__name__)


class InMemoryAppointmentStore:
    """
    Store that keeps providers, services and appointments in dictionaries.

    Commits run the availability guard and the insert under one lock, so two
    concurrent bookings of the same slot cannot both pass the guard.

    Fixture format:
    {
        "providers": [{"id": "1", "timezone": "+01:00", "services": ["1"],
                       "working_plan": {"monday": {"start": "09:00", ...}}}],
        "services": [{"id": "1", "duration_minutes": 30}],
        "appointments": [{"id": "1", "provider_id": "1", "service_id": "1",
                          "start_datetime": "2024-11-25 10:00:00",
                          "end_datetime": "2024-11-25 10:30:00"}]
    }
    """

    def __init__(
        self,
        providers: Iterable[Provider] = (),
        services: Iterable[Service] = (),
        appointments: Iterable[Appointment] = (),
    ):
        self._lock = threading.RLock()
        self._providers: Dict[str, Provider] = {p.id: p for p in providers}
        self._services: Dict[str, Service] = {s.id: s for s in services}
        self._appointments: Dict[str, Appointment] = {}

        for appointment in appointments:
            self.add_appointment(appointment)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "InMemoryAppointmentStore":
        """
        Build a store from fixture data.

        Raises:
            InputError: If a record is invalid
        """
        if not isinstance(data, dict):
            raise InputError("Store data must contain a mapping at the root level.")

        try:
            providers = [Provider.model_validate(item) for item in data.get("providers", [])]
            services = [Service.model_validate(item) for item in data.get("services", [])]
            appointments = [
                Appointment.model_validate(item) for item in data.get("appointments", [])
            ]
        except ValidationError as exc:
            raise InputError(f"Invalid store data: {exc}") from exc

        return cls(providers=providers, services=services, appointments=appointments)

    @classmethod
    def from_json_file(cls, data_file: Path) -> "InMemoryAppointmentStore":
        """
        Load a store from a JSON fixture file.

        Raises:
            FileNotFoundError: If the file doesn't exist
            InputError: If the file is not valid JSON or holds invalid records
        """
        if not data_file.exists():
            raise FileNotFoundError(f"Data file not found: {data_file}")

        try:
            with open(data_file, "r", encoding="utf-8") as f:
                data = json.load(f)
        except json.JSONDecodeError as exc:
            raise InputError(f"Invalid JSON in {data_file}: {exc}") from exc

        store = cls.from_dict(data)
        logger.debug(
            "Loaded %d provider(s), %d service(s), %d appointment(s) from %s",
            len(store._providers),
            len(store._services),
            len(store._appointments),
            data_file,
        )
        return store

    def get_provider(self, provider_id: str) -> Optional[Provider]:
        with self._lock:
            return self._providers.get(provider_id)

    def get_service(self, service_id: str) -> Optional[Service]:
        with self._lock:
            return self._services.get(service_id)

    def providers_for_service(self, service_id: str) -> List[Provider]:
        with self._lock:
            return [p for p in self._providers.values() if p.offers(service_id)]

    def get_appointment(self, appointment_id: str) -> Optional[Appointment]:
        with self._lock:
            return self._appointments.get(appointment_id)

    def appointments_for_provider(
        self, provider_id: str, start: DateTime, end: DateTime
    ) -> List[Appointment]:
        with self._lock:
            return [
                a for a in self._appointments.values()
                if a.provider_id == provider_id and a.overlaps(start, end)
            ]

    def appointments_for_service(
        self, service_id: str, start: DateTime, end: DateTime
    ) -> List[Appointment]:
        with self._lock:
            return [
                a for a in self._appointments.values()
                if a.service_id == service_id and a.overlaps(start, end)
            ]

    def add_appointment(self, appointment: Appointment) -> Appointment:
        """Store an appointment without any availability check."""
        with self._lock:
            if appointment.id is None:
                appointment = appointment.model_copy(update={"id": uuid.uuid4().hex})
            self._appointments[appointment.id] = appointment
            return appointment

    def commit_appointment(
        self, appointment: Appointment, guard: Callable[[], bool]
    ) -> Appointment:
        """
        Store the appointment if the guard still holds.

        An appointment with an existing id replaces the stored one.

        Raises:
            SlotUnavailableError: If the guard fails
        """
        with self._lock:
            if not guard():
                raise SlotUnavailableError("The selected slot is no longer available")
            return self.add_appointment(appointment)

    def all_appointments(self) -> List[Appointment]:
        with self._lock:
            return list(self._appointments.values())

    def to_dict(self) -> Dict[str, Any]:
        """Serialize the store in the fixture format."""
        with self._lock:
            return {
                "providers": [p.model_dump(mode="json") for p in self._providers.values()],
                "services": [s.model_dump(mode="json") for s in self._services.values()],
                "appointments": [
                    a.model_dump(mode="json") for a in self._appointments.values()
                ],
            }

    def save_json_file(self, data_file: Path) -> None:
        """Write the store back to a JSON fixture file."""
        with open(data_file, "w", encoding="utf-8") as f:
            json.dump(self.to_dict(), f, indent=2)
