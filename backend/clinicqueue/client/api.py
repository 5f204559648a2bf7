"""
HTTP client for the queue API and the patient/appointment lookup.

Calls are made with a blocking ``requests.Session`` run in a worker thread,
so coroutines awaiting them never block the event loop.
"""

import asyncio
import logging
from datetime import date
from typing import Any, Dict, Iterable, List, Optional

import requests
from pydantic import ValidationError

from ..config import get_settings
from ..models.appointment import Appointment, AppointmentSummary
from ..models.patient import Patient, PatientSummary
from ..models.user import Token
from ..models.queue import (
    QueueEntry,
    QueueEntryCreate,
    QueueEntryUpdate,
    QueueListing,
    QueueOrderItem,
    QueueStats
)
from .errors import ApiError

logger = logging.getLogger(__name__)


class QueueApiClient:
    """Queue API collaborator used by the coordinator."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        token: Optional[str] = None,
        timeout: Optional[float] = None,
        session: Optional[requests.Session] = None
    ):
        settings = get_settings()
        self.base_url = (base_url or settings.API_URL).rstrip("/")
        self.token = token if token is not None else settings.API_TOKEN
        self.timeout = timeout if timeout is not None else settings.REQUEST_TIMEOUT_SECONDS
        self.session = session or requests.Session()

    def _headers(self) -> Dict[str, str]:
        headers = {
            "Content-Type": "application/json",
            "Accept": "application/json",
        }
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    def _request(self, method: str, path: str, **kwargs) -> Any:
        url = f"{self.base_url}{path}"
        try:
            response = self.session.request(
                method, url, headers=self._headers(), timeout=self.timeout, **kwargs
            )
        except requests.exceptions.RequestException as e:
            logger.warning("%s %s failed: %s", method, path, e)
            raise ApiError(f"Network error: {e}") from e

        if response.status_code == 204 or not response.content:
            if response.ok:
                return None
            raise ApiError(
                f"{method} {path} failed: {response.status_code}",
                status_code=response.status_code
            )

        content_type = response.headers.get("content-type", "")
        if "application/json" not in content_type:
            logger.error("Non-JSON response from %s: %s", path, response.text[:100])
            raise ApiError(
                f"Server returned non-JSON response. Status: {response.status_code}",
                status_code=response.status_code
            )

        try:
            data = response.json()
        except ValueError as e:
            logger.error("Invalid JSON from %s: %s", path, response.text[:100])
            raise ApiError(
                f"Server returned invalid JSON. Status: {response.status_code}",
                status_code=response.status_code
            ) from e
        if not response.ok:
            detail = data.get("detail") if isinstance(data, dict) else None
            raise ApiError(detail or response.reason or "Request failed", status_code=response.status_code)
        return data

    async def _call(self, method: str, path: str, **kwargs) -> Any:
        return await asyncio.to_thread(self._request, method, path, **kwargs)

    @staticmethod
    def _parse(model, data):
        try:
            return model.model_validate(data)
        except ValidationError as e:
            raise ApiError(f"Invalid {model.__name__} payload: {e}") from e

    async def login(self, username: str, password: str) -> str:
        """Log in and keep the bearer token for later calls."""
        data = await self._call("POST", "/auth/login", json={"username": username, "password": password})
        self.token = self._parse(Token, data).access_token
        return self.token

    # Queue

    async def list_entries(self) -> QueueListing:
        data = await self._call("GET", "/queue")
        if isinstance(data, list):
            # Older backends answer with a bare list and no source flag.
            return QueueListing(
                entries=[self._parse(QueueEntry, item) for item in data]
            )
        if not isinstance(data, dict):
            raise ApiError("Invalid response from server - not a queue listing")
        return self._parse(QueueListing, data)

    async def get_stats(self) -> QueueStats:
        return self._parse(QueueStats, await self._call("GET", "/queue/stats"))

    async def add_entry(self, data: QueueEntryCreate) -> QueueEntry:
        payload = data.model_dump(exclude_none=True)
        return self._parse(QueueEntry, await self._call("POST", "/queue", json=payload))

    async def update_entry(self, entry_id: str, data: QueueEntryUpdate) -> QueueEntry:
        payload = data.model_dump(mode="json", exclude_none=True)
        return self._parse(QueueEntry, await self._call("PUT", f"/queue/{entry_id}", json=payload))

    async def remove_entry(self, entry_id: str) -> None:
        await self._call("DELETE", f"/queue/{entry_id}")

    async def reorder(self, order: Iterable[QueueOrderItem]) -> None:
        payload = {"queueOrder": [item.model_dump() for item in order]}
        await self._call("PUT", "/queue/reorder", json=payload)

    async def clear_completed(self) -> None:
        await self._call("DELETE", "/queue/completed")

    async def next_entry(self) -> Optional[QueueEntry]:
        try:
            data = await self._call("GET", "/queue/next")
        except ApiError as e:
            if e.is_not_found:
                return None
            raise
        return self._parse(QueueEntry, data)

    # Lookup

    async def list_patients(self) -> List[Patient]:
        data = await self._call("GET", "/patients")
        return [self._parse(Patient, item) for item in data or []]

    async def find_patient_by_id(self, patient_id: str) -> Optional[PatientSummary]:
        try:
            data = await self._call("GET", f"/patients/{patient_id}")
        except ApiError as e:
            if e.is_not_found:
                return None
            raise
        return self._parse(Patient, data).summary()

    async def find_appointment_by_id(self, appointment_id: str) -> Optional[AppointmentSummary]:
        try:
            data = await self._call("GET", f"/appointments/{appointment_id}")
        except ApiError as e:
            if e.is_not_found:
                return None
            raise
        return self._parse(Appointment, data).summary()

    async def list_today_appointments(self) -> List[Appointment]:
        data = await self._call("GET", "/appointments/today")
        return [self._parse(Appointment, item) for item in data or []]


class QueueDirectory:
    """In-memory patient and appointment lookup, reloaded from the API.

    Lookups are synchronous so entries can be resolved while rendering.
    """

    def __init__(
        self,
        patients: Iterable[Patient] = (),
        appointments: Iterable[Appointment] = ()
    ):
        self.patients: Dict[str, Patient] = {}
        self.appointments: Dict[str, Appointment] = {}
        self.update(patients, appointments)

    def update(self, patients: Iterable[Patient] = (), appointments: Iterable[Appointment] = ()):
        for patient in patients:
            self.patients[patient.id] = patient
        for appointment in appointments:
            self.appointments[appointment.id] = appointment

    async def reload(self, api: QueueApiClient):
        """Fetch patients and today's appointments."""
        patients, appointments = await asyncio.gather(
            api.list_patients(),
            api.list_today_appointments()
        )
        self.patients = {}
        self.appointments = {}
        self.update(patients, appointments)

    def find_patient_by_id(self, patient_id: str) -> Optional[PatientSummary]:
        patient = self.patients.get(patient_id)
        return patient.summary() if patient else None

    def find_appointment_by_id(self, appointment_id: str) -> Optional[AppointmentSummary]:
        appointment = self.appointments.get(appointment_id)
        return appointment.summary() if appointment else None

    def appointments_on(self, day: date) -> List[Appointment]:
        return [a for a in self.appointments.values() if a.appointment_date.date() == day]
