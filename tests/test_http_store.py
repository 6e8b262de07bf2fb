"""
Tests for the REST store client.
"""

from typing import Any, Dict, List

import pendulum
import pytest
import requests

from availability_engine.adapters.http_store import HttpAppointmentStore
from availability_engine.domain.exceptions import SlotUnavailableError, TransientError
from availability_engine.domain.models import Appointment


class StubResponse:
    """Minimal stand-in for requests.Response."""

    def __init__(self, status_code: int = 200, payload: Any = None):
        self.status_code = status_code
        self._payload = payload

    def json(self):
        if isinstance(self._payload, Exception):
            raise self._payload
        return self._payload

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.exceptions.HTTPError(f"{self.status_code} error")


class StubSession:
    """Records requests and answers them from a routing table."""

    def __init__(self, routes: Dict[str, Any]):
        self._routes = routes
        self.calls: List[Dict[str, Any]] = []

    def _answer(self, method, url, **kwargs):
        self.calls.append({"method": method, "url": url, **kwargs})
        answer = self._routes[f"{method} {url}"]
        if isinstance(answer, Exception):
            raise answer
        return answer

    def get(self, url, **kwargs):
        return self._answer("GET", url, **kwargs)

    def post(self, url, **kwargs):
        return self._answer("POST", url, **kwargs)

    def put(self, url, **kwargs):
        return self._answer("PUT", url, **kwargs)


BASE = "https://store.example.com/api"

PROVIDER = {"id": 1, "name": "Jane", "timezone": "+01:00", "services": [1], "working_plan": {}}
APPOINTMENT = {
    "id": "a1",
    "provider_id": "1",
    "service_id": "1",
    "start_datetime": "2024-11-25T10:00:00Z",
    "end_datetime": "2024-11-25T10:30:00Z",
}


def _store(routes) -> tuple:
    session = StubSession(routes)
    store = HttpAppointmentStore(BASE + "/", api_token="secret", timeout=5, session=session)
    return store, session


def _new_appointment(appointment_id=None) -> Appointment:
    return Appointment(
        id=appointment_id,
        provider_id="1",
        service_id="1",
        start_datetime=pendulum.datetime(2024, 11, 25, 10, 0, tz="UTC"),
        end_datetime=pendulum.datetime(2024, 11, 25, 10, 30, tz="UTC"),
    )


class TestReads:
    """Tests for GET endpoints."""

    def test_get_provider(self):
        store, session = _store({f"GET {BASE}/providers/1": StubResponse(payload=PROVIDER)})

        provider = store.get_provider("1")

        assert provider.id == "1"
        assert provider.timezone == "+01:00"
        assert session.calls[0]["headers"]["Authorization"] == "Bearer secret"
        assert session.calls[0]["timeout"] == 5

    def test_missing_record_is_none(self):
        store, _ = _store({f"GET {BASE}/services/9": StubResponse(status_code=404)})

        assert store.get_service("9") is None

    def test_get_appointment(self):
        store, _ = _store({
            f"GET {BASE}/appointments/a1": StubResponse(payload=APPOINTMENT),
            f"GET {BASE}/appointments/a2": StubResponse(status_code=404),
        })

        assert store.get_appointment("a1").start_datetime.hour == 10
        assert store.get_appointment("a2") is None

    def test_appointment_range_is_sent_as_utc(self):
        store, session = _store({
            f"GET {BASE}/providers/1/appointments": StubResponse(payload=[APPOINTMENT])
        })

        appointments = store.appointments_for_provider(
            "1",
            pendulum.datetime(2024, 11, 25, 0, 0, tz="Europe/Berlin"),
            pendulum.datetime(2024, 11, 26, 0, 0, tz="Europe/Berlin"),
        )

        assert appointments[0].id == "a1"
        assert session.calls[0]["params"] == {
            "start": "2024-11-24T23:00:00Z",
            "end": "2024-11-25T23:00:00Z",
        }

    def test_connection_error_is_transient(self):
        store, _ = _store({
            f"GET {BASE}/services/1/providers": requests.exceptions.ConnectionError("down")
        })

        with pytest.raises(TransientError):
            store.providers_for_service("1")

    def test_invalid_record_is_transient(self):
        store, _ = _store({
            f"GET {BASE}/providers/1": StubResponse(payload={"id": "1", "timezone": "Berlin"})
        })

        with pytest.raises(TransientError):
            store.get_provider("1")


class TestCommit:
    """Tests for POST and PUT commits."""

    def test_new_appointment_is_posted(self):
        store, session = _store({f"POST {BASE}/appointments": StubResponse(201, APPOINTMENT)})

        stored = store.commit_appointment(_new_appointment(), guard=lambda: True)

        assert stored.id == "a1"
        assert "id" not in session.calls[0]["json"]
        assert session.calls[0]["json"]["provider_id"] == "1"

    def test_existing_appointment_is_put(self):
        store, session = _store({f"PUT {BASE}/appointments/a1": StubResponse(200, APPOINTMENT)})

        store.commit_appointment(_new_appointment("a1"), guard=lambda: True)

        assert session.calls[0]["method"] == "PUT"

    def test_failed_guard_sends_nothing(self):
        store, session = _store({})

        with pytest.raises(SlotUnavailableError):
            store.commit_appointment(_new_appointment(), guard=lambda: False)
        assert session.calls == []

    def test_conflict_is_slot_unavailable(self):
        store, _ = _store({f"POST {BASE}/appointments": StubResponse(409, {"error": "taken"})})

        with pytest.raises(SlotUnavailableError):
            store.commit_appointment(_new_appointment(), guard=lambda: True)

    def test_server_error_is_transient(self):
        store, _ = _store({f"POST {BASE}/appointments": StubResponse(503)})

        with pytest.raises(TransientError):
            store.commit_appointment(_new_appointment(), guard=lambda: True)
