"""Pydantic models for the clinic queue."""

from .user import User, UserLogin, UserRole, Token, TokenData
from .patient import Patient, PatientSummary
from .appointment import (
    Appointment,
    AppointmentSummary,
    AppointmentStatus,
    AppointmentType
)
from .queue import (
    QueueEntry,
    QueueEntryCreate,
    QueueEntryUpdate,
    QueueListing,
    QueueOrderItem,
    QueueReorderRequest,
    QueueSnapshot,
    QueueStats,
    QueueStatus
)

__all__ = [
    # User
    "User", "UserLogin", "UserRole", "Token", "TokenData",
    # Patient
    "Patient", "PatientSummary",
    # Appointment
    "Appointment", "AppointmentSummary", "AppointmentStatus", "AppointmentType",
    # Queue
    "QueueEntry", "QueueEntryCreate", "QueueEntryUpdate", "QueueListing",
    "QueueOrderItem", "QueueReorderRequest", "QueueSnapshot", "QueueStats",
    "QueueStatus"
]
