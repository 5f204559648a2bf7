"""
Queue entry models for the waiting room.
"""

from pydantic import BaseModel, Field, model_validator
from typing import Optional, List, Union, Literal
from datetime import datetime
from enum import Enum

from .patient import PatientSummary
from .appointment import AppointmentSummary


class QueueStatus(str, Enum):
    """Waiting-room entry states."""
    WAITING = "Waiting"
    IN_PROGRESS = "In Progress"
    COMPLETED = "Completed"
    NO_SHOW = "No-show"
    CANCELLED = "Cancelled"


DataSource = Literal["live", "cache"]


class QueueEntryCreate(BaseModel):
    """Check a patient into today's queue."""
    patient_id: str = Field(..., min_length=1)
    appointment_id: Optional[str] = None
    is_walk_in: bool = True
    notes: Optional[str] = None

    @model_validator(mode="after")
    def check_walk_in_exclusive(self):
        if self.is_walk_in and self.appointment_id:
            raise ValueError("A walk-in entry cannot reference an appointment")
        if not self.is_walk_in and not self.appointment_id:
            raise ValueError("An appointment check-in requires appointment_id")
        return self


class QueueEntry(BaseModel):
    """Queue entry as returned by the queue API.

    ``patient_id`` and ``appointment_id`` are either embedded summaries
    (populated by the backend) or bare ids.
    """
    id: str = Field(..., alias="_id")
    ticket_number: int = Field(..., gt=0)
    patient_id: Union[PatientSummary, str]
    appointment_id: Optional[Union[AppointmentSummary, str]] = None
    is_walk_in: bool = True
    status: QueueStatus = QueueStatus.WAITING
    check_in_time: datetime
    notes: Optional[str] = None
    queue_position: Optional[int] = None

    class Config:
        populate_by_name = True

    @model_validator(mode="after")
    def check_walk_in_exclusive(self):
        if self.is_walk_in and self.appointment_id is not None:
            raise ValueError("A walk-in entry cannot reference an appointment")
        if self.queue_position is None:
            self.queue_position = self.ticket_number
        return self


class QueueEntryUpdate(BaseModel):
    """Partial update of a queue entry."""
    status: Optional[QueueStatus] = None
    notes: Optional[str] = None


class QueueOrderItem(BaseModel):
    """New position of one waiting entry."""
    id: str
    position: int = Field(..., ge=0)


class QueueReorderRequest(BaseModel):
    """Reorder the waiting entries."""
    queue_order: List[QueueOrderItem] = Field(..., alias="queueOrder")

    class Config:
        populate_by_name = True


class QueueStats(BaseModel):
    """Counts for today's queue, derived from the entries."""
    total_patients: int = 0
    waiting_patients: int = 0
    in_progress_patients: int = 0
    completed_patients: int = 0
    no_show_patients: int = 0
    cancelled_patients: int = 0
    next_ticket_number: int = 1


class QueueListing(BaseModel):
    """Entry list response; ``source`` is ``cache`` when served from a fallback."""
    source: Optional[DataSource] = None
    entries: List[QueueEntry] = []


class QueueSnapshot(BaseModel):
    """Entries and stats fetched together by the coordinator."""
    entries: List[QueueEntry] = []
    stats: QueueStats = Field(default_factory=QueueStats)
    source: Optional[DataSource] = None
