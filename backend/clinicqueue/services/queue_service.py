"""
Queue management service backing the queue API.
"""

import logging
from datetime import datetime
from typing import Optional, List

from pymongo import ReturnDocument

from ..database import Database
from ..models.appointment import AppointmentStatus
from ..models.queue import (
    QueueEntry,
    QueueEntryCreate,
    QueueEntryUpdate,
    QueueListing,
    QueueOrderItem,
    QueueStats,
    QueueStatus
)
from ..ordering import can_transition, compute_stats, sort_entries
from .patient_service import AppointmentService, PatientService, to_object_id

logger = logging.getLogger(__name__)


class QueueEntryNotFound(LookupError):
    """No queue entry with that id."""


class DuplicateQueueEntry(ValueError):
    """The appointment is already in today's queue."""


class InvalidStatusChange(ValueError):
    """Status change not allowed from the entry's current status."""


class QueueService:
    """Today's waiting-room queue."""

    @staticmethod
    def _today() -> str:
        return datetime.utcnow().strftime("%Y-%m-%d")

    @classmethod
    async def _next_ticket_number(cls, queue_date: str) -> int:
        """Take the next ticket number for the day; numbers are never reused."""
        counters = Database.get_collection("counters")
        counter = await counters.find_one_and_update(
            {"_id": f"queue-{queue_date}"},
            {"$inc": {"seq": 1}},
            upsert=True,
            return_document=ReturnDocument.AFTER
        )
        return counter["seq"]

    @classmethod
    async def _peek_ticket_number(cls, queue_date: str) -> int:
        counters = Database.get_collection("counters")
        counter = await counters.find_one({"_id": f"queue-{queue_date}"})
        return (counter["seq"] if counter else 0) + 1

    @classmethod
    async def _to_entry(cls, doc: dict) -> QueueEntry:
        """Build the API entry, embedding patient and appointment when found."""
        patient = await PatientService.get_patient(doc["patient_ref"])
        patient_ref = patient.summary() if patient else doc["patient_ref"]

        appointment_ref = doc.get("appointment_ref")
        if appointment_ref:
            appointment = await AppointmentService.get_appointment(appointment_ref)
            if appointment:
                appointment_ref = appointment.summary()

        return QueueEntry(
            _id=str(doc["_id"]),
            ticket_number=doc["ticket_number"],
            queue_position=doc.get("queue_position"),
            patient_id=patient_ref,
            appointment_id=appointment_ref,
            is_walk_in=doc["is_walk_in"],
            status=QueueStatus(doc["status"]),
            check_in_time=doc["check_in_time"],
            notes=doc.get("notes")
        )

    @classmethod
    async def _find_doc(cls, entry_id: str) -> dict:
        oid = to_object_id(entry_id)
        doc = await Database.get_collection("queue_entries").find_one({"_id": oid}) if oid else None
        if not doc:
            raise QueueEntryNotFound("Queue entry not found")
        return doc

    @classmethod
    async def list_entries(cls) -> List[QueueEntry]:
        """Today's entries in canonical order."""
        cursor = Database.get_collection("queue_entries").find(
            {"queue_date": cls._today()}
        ).sort("ticket_number", 1)

        entries = [await cls._to_entry(doc) async for doc in cursor]
        return sort_entries(entries)

    @classmethod
    async def get_listing(cls) -> QueueListing:
        return QueueListing(source="live", entries=await cls.list_entries())

    @classmethod
    async def get_stats(cls) -> QueueStats:
        entries = await cls.list_entries()
        return compute_stats(entries, await cls._peek_ticket_number(cls._today()))

    @classmethod
    async def add_entry(cls, data: QueueEntryCreate, created_by: str) -> QueueEntry:
        """Check a patient in and issue the next ticket."""
        entries = Database.get_collection("queue_entries")
        queue_date = cls._today()

        if not await PatientService.get_patient(data.patient_id):
            raise ValueError("Patient not found")

        if data.appointment_id:
            appointment = await AppointmentService.get_appointment(data.appointment_id)
            if not appointment:
                raise ValueError("Appointment not found")
            existing = await entries.find_one({
                "queue_date": queue_date,
                "appointment_ref": data.appointment_id
            })
            if existing:
                raise DuplicateQueueEntry("Patient is already in the queue for this appointment")

        ticket_number = await cls._next_ticket_number(queue_date)
        now = datetime.utcnow()
        entry_doc = {
            "queue_date": queue_date,
            "ticket_number": ticket_number,
            "queue_position": ticket_number,
            "patient_ref": data.patient_id,
            "appointment_ref": data.appointment_id,
            "is_walk_in": data.is_walk_in,
            "status": QueueStatus.WAITING.value,
            "check_in_time": now,
            "start_time": None,
            "end_time": None,
            "notes": data.notes,
            "created_by": created_by,
            "updated_at": now
        }
        result = await entries.insert_one(entry_doc)
        entry_doc["_id"] = result.inserted_id

        if data.appointment_id:
            await AppointmentService.set_status(data.appointment_id, AppointmentStatus.CHECKED_IN.value)

        logger.info("Issued ticket #%d for patient %s", ticket_number, data.patient_id)
        return await cls._to_entry(entry_doc)

    @classmethod
    async def update_entry(cls, entry_id: str, update: QueueEntryUpdate) -> QueueEntry:
        """Change status and/or notes."""
        doc = await cls._find_doc(entry_id)

        update_data = {"updated_at": datetime.utcnow()}
        if update.status is not None and update.status.value != doc["status"]:
            current = QueueStatus(doc["status"])
            if not can_transition(current, update.status):
                raise InvalidStatusChange(
                    f"Cannot change status from {current.value} to {update.status.value}"
                )
            update_data["status"] = update.status.value
            if update.status == QueueStatus.IN_PROGRESS:
                update_data["start_time"] = datetime.utcnow()
            elif update.status == QueueStatus.COMPLETED:
                update_data["end_time"] = datetime.utcnow()

        if update.notes is not None:
            update_data["notes"] = update.notes

        result = await Database.get_collection("queue_entries").find_one_and_update(
            {"_id": doc["_id"]},
            {"$set": update_data},
            return_document=ReturnDocument.AFTER
        )
        return await cls._to_entry(result)

    @classmethod
    async def remove_entry(cls, entry_id: str) -> None:
        doc = await cls._find_doc(entry_id)
        await Database.get_collection("queue_entries").delete_one({"_id": doc["_id"]})
        logger.info("Removed ticket #%d from queue", doc["ticket_number"])

    @classmethod
    async def reorder(cls, order: List[QueueOrderItem]) -> List[QueueEntry]:
        """Store new positions for waiting entries."""
        entries = Database.get_collection("queue_entries")

        docs = []
        for item in order:
            doc = await cls._find_doc(item.id)
            if doc["status"] != QueueStatus.WAITING.value:
                raise ValueError("Only waiting patients can be reordered")
            docs.append((doc, item.position))

        for doc, position in docs:
            await entries.update_one(
                {"_id": doc["_id"]},
                {"$set": {"queue_position": position, "updated_at": datetime.utcnow()}}
            )
        return await cls.list_entries()

    @classmethod
    async def clear_completed(cls) -> int:
        result = await Database.get_collection("queue_entries").delete_many({
            "queue_date": cls._today(),
            "status": QueueStatus.COMPLETED.value
        })
        logger.info("Cleared %d completed queue entries", result.deleted_count)
        return result.deleted_count

    @classmethod
    async def next_entry(cls) -> Optional[QueueEntry]:
        """First waiting patient in queue order."""
        for entry in await cls.list_entries():
            if entry.status == QueueStatus.WAITING:
                return entry
        return None
