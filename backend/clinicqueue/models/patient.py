"""
Patient models used by the queue.
"""

from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime


class PatientSummary(BaseModel):
    """Patient fields embedded in a queue entry."""
    id: Optional[str] = Field(None, alias="_id")
    name: str
    phone: Optional[str] = None

    class Config:
        populate_by_name = True


class Patient(BaseModel):
    """Patient response model."""
    id: str = Field(..., alias="_id")
    name: str = Field(..., min_length=1, max_length=100)
    gender: Optional[str] = None
    phone: str
    year_of_birth: Optional[int] = None
    created_at: Optional[datetime] = None

    class Config:
        populate_by_name = True

    def summary(self) -> PatientSummary:
        return PatientSummary(_id=self.id, name=self.name, phone=self.phone)
