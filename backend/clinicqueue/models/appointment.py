"""
Appointment models used to check patients into the queue.
"""

from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime
from enum import Enum


class AppointmentType(str, Enum):
    """Kinds of visit."""
    CONSULTATION = "Consultation"
    FOLLOW_UP = "Follow-up"
    PROCEDURE = "Procedure"
    TEST = "Test"
    EMERGENCY = "Emergency"
    WALK_IN = "Walk-in"


class AppointmentStatus(str, Enum):
    """Appointment lifecycle states."""
    SCHEDULED = "Scheduled"
    CHECKED_IN = "Checked-in"
    IN_PROGRESS = "In-progress"
    COMPLETED = "Completed"
    CANCELLED = "Cancelled"
    NO_SHOW = "No-show"
    RESCHEDULED = "Rescheduled"


class AppointmentSummary(BaseModel):
    """Appointment fields embedded in a queue entry."""
    id: Optional[str] = Field(None, alias="_id")
    type: str = AppointmentType.CONSULTATION.value
    reason: Optional[str] = None
    status: Optional[str] = None

    class Config:
        populate_by_name = True


class Appointment(BaseModel):
    """Appointment response model."""
    id: str = Field(..., alias="_id")
    patient_id: str
    appointment_date: datetime
    appointment_time: Optional[str] = None
    type: AppointmentType = AppointmentType.CONSULTATION
    reason: Optional[str] = None
    status: AppointmentStatus = AppointmentStatus.SCHEDULED
    notes: Optional[str] = None

    class Config:
        populate_by_name = True

    def summary(self) -> AppointmentSummary:
        return AppointmentSummary(
            _id=self.id,
            type=self.type.value,
            reason=self.reason,
            status=self.status.value
        )
