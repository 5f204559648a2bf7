"""
Read-only patient and appointment lookup used by the queue.
"""

from datetime import date, datetime, time, timedelta
from typing import Optional, List
from bson import ObjectId
from bson.errors import InvalidId

from ..database import Database
from ..models.appointment import Appointment
from ..models.patient import Patient


def to_object_id(value: str) -> Optional[ObjectId]:
    """Parse an id, returning ``None`` for anything that is not an ObjectId."""
    try:
        return ObjectId(value)
    except (InvalidId, TypeError):
        return None


def _stringify(doc: dict, *fields: str) -> dict:
    doc["_id"] = str(doc["_id"])
    for field in fields:
        if doc.get(field) is not None:
            doc[field] = str(doc[field])
    return doc


class PatientService:
    """Patient lookup."""

    @classmethod
    async def get_patient(cls, patient_id: str) -> Optional[Patient]:
        oid = to_object_id(patient_id)
        if oid is None:
            return None
        patient = await Database.get_collection("patients").find_one({"_id": oid})
        if not patient:
            return None
        return Patient(**_stringify(patient))

    @classmethod
    async def search_patients(cls, query: Optional[str] = None, limit: int = 200) -> List[Patient]:
        """List patients, optionally filtered by name or phone."""
        filter_query = {}
        if query:
            filter_query["$or"] = [
                {"name": {"$regex": query, "$options": "i"}},
                {"phone": {"$regex": query}}
            ]

        cursor = Database.get_collection("patients").find(filter_query).sort("name", 1).limit(limit)
        return [Patient(**_stringify(doc)) async for doc in cursor]


class AppointmentService:
    """Appointment lookup."""

    @classmethod
    async def get_appointment(cls, appointment_id: str) -> Optional[Appointment]:
        oid = to_object_id(appointment_id)
        if oid is None:
            return None
        appointment = await Database.get_collection("appointments").find_one({"_id": oid})
        if not appointment:
            return None
        return Appointment(**_stringify(appointment, "patient_id"))

    @classmethod
    async def list_for_day(cls, day: Optional[date] = None) -> List[Appointment]:
        """Appointments scheduled on ``day`` (default today), by time."""
        day = day or datetime.utcnow().date()
        start = datetime.combine(day, time.min)
        end = start + timedelta(days=1)

        cursor = Database.get_collection("appointments").find({
            "appointment_date": {"$gte": start, "$lt": end}
        }).sort([("appointment_date", 1), ("appointment_time", 1)])
        return [Appointment(**_stringify(doc, "patient_id")) async for doc in cursor]

    @classmethod
    async def set_status(cls, appointment_id: str, status: str) -> bool:
        oid = to_object_id(appointment_id)
        if oid is None:
            return False
        result = await Database.get_collection("appointments").update_one(
            {"_id": oid},
            {"$set": {"status": status, "updated_at": datetime.utcnow()}}
        )
        return result.matched_count > 0
