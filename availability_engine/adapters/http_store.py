"""
REST client for an external appointment store.
"""

import logging
from typing import Any, Callable, Dict, List, Optional

import requests
from pendulum import DateTime
from pydantic import ValidationError

from ..domain.exceptions import SlotUnavailableError, TransientError
from ..domain.models import Appointment, Provider, Service

logger = logging.getLogger(__name__)


class HttpAppointmentStore:
    """
    Client for a JSON REST store of providers, services and appointments.

    Endpoints:
    - GET  /providers/{id}
    - GET  /providers/{id}/appointments?start=...&end=...
    - GET  /services/{id}
    - GET  /services/{id}/providers
    - GET  /services/{id}/appointments?start=...&end=...
    - GET  /appointments/{id}
    - POST /appointments, PUT /appointments/{id}

    The server is expected to reject a conflicting insert with HTTP 409
    (unique constraint on provider and start, or an attendant-count check).
    """

    def __init__(
        self,
        base_url: str,
        api_token: str | None = None,
        timeout: float = 10,
        session: requests.Session | None = None,
    ):
        """
        Initialize the store client.

        Args:
            base_url: Root URL of the store API
            api_token: Optional bearer token
            timeout: Request timeout in seconds
            session: Optional preconfigured session
        """
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()
        self.headers = {"Content-Type": "application/json"}
        if api_token:
            self.headers["Authorization"] = f"Bearer {api_token}"

    def get_provider(self, provider_id: str) -> Optional[Provider]:
        data = self._get(f"/providers/{provider_id}")
        return None if data is None else self._parse(Provider, data)

    def get_service(self, service_id: str) -> Optional[Service]:
        data = self._get(f"/services/{service_id}")
        return None if data is None else self._parse(Service, data)

    def providers_for_service(self, service_id: str) -> List[Provider]:
        data = self._get(f"/services/{service_id}/providers") or []
        return [self._parse(Provider, item) for item in data]

    def get_appointment(self, appointment_id: str) -> Optional[Appointment]:
        data = self._get(f"/appointments/{appointment_id}")
        return None if data is None else self._parse(Appointment, data)

    def appointments_for_provider(
        self, provider_id: str, start: DateTime, end: DateTime
    ) -> List[Appointment]:
        data = self._get(
            f"/providers/{provider_id}/appointments", params=self._range_params(start, end)
        ) or []
        return [self._parse(Appointment, item) for item in data]

    def appointments_for_service(
        self, service_id: str, start: DateTime, end: DateTime
    ) -> List[Appointment]:
        data = self._get(
            f"/services/{service_id}/appointments", params=self._range_params(start, end)
        ) or []
        return [self._parse(Appointment, item) for item in data]

    def commit_appointment(
        self, appointment: Appointment, guard: Callable[[], bool]
    ) -> Appointment:
        """
        Re-check the slot and send the appointment to the store.

        The check and the write are separate requests here, so the final
        word belongs to the server's conflict check.

        Raises:
            SlotUnavailableError: If the guard fails or the server answers 409
            TransientError: If the store cannot be reached
        """
        if not guard():
            raise SlotUnavailableError("The selected slot is no longer available")

        payload = appointment.model_dump(mode="json", exclude_none=True)

        try:
            if appointment.id is None:
                response = self.session.post(
                    f"{self.base_url}/appointments",
                    headers=self.headers,
                    json=payload,
                    timeout=self.timeout,
                )
            else:
                response = self.session.put(
                    f"{self.base_url}/appointments/{appointment.id}",
                    headers=self.headers,
                    json=payload,
                    timeout=self.timeout,
                )

            if response.status_code == 409:
                raise SlotUnavailableError("The selected slot is no longer available")

            response.raise_for_status()
            data = response.json()

        except requests.exceptions.RequestException as e:
            logger.warning("Failed to store appointment: %s", e)
            raise TransientError(f"Failed to store appointment: {e}") from e

        return self._parse(Appointment, data)

    def _get(self, path: str, params: Dict[str, str] | None = None) -> Any:
        """GET a resource. A 404 answer yields None."""
        try:
            response = self.session.get(
                f"{self.base_url}{path}",
                headers=self.headers,
                params=params,
                timeout=self.timeout,
            )
            if response.status_code == 404:
                return None
            response.raise_for_status()
            return response.json()

        except requests.exceptions.RequestException as e:
            logger.warning("Failed to fetch %s from store: %s", path, e)
            raise TransientError(f"Failed to fetch {path} from store: {e}") from e

        except ValueError as e:
            raise TransientError(f"Store returned invalid JSON for {path}: {e}") from e

    @staticmethod
    def _range_params(start: DateTime, end: DateTime) -> Dict[str, str]:
        return {
            "start": start.in_timezone("UTC").to_iso8601_string(),
            "end": end.in_timezone("UTC").to_iso8601_string(),
        }

    @staticmethod
    def _parse(model, data: Any):
        try:
            return model.model_validate(data)
        except ValidationError as e:
            raise TransientError(f"Store returned an invalid {model.__name__} record: {e}") from e
