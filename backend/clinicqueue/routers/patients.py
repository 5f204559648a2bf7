"""
Patient and appointment lookup routes used by queue screens.
"""

from typing import Optional, List
from fastapi import APIRouter, HTTPException, status, Depends, Query

from ..models.appointment import Appointment
from ..models.patient import Patient
from ..models.user import User
from ..services.patient_service import AppointmentService, PatientService
from .dependencies import require_staff

router = APIRouter(prefix="/patients", tags=["Patients"])
appointments_router = APIRouter(prefix="/appointments", tags=["Appointments"])


@router.get("", response_model=List[Patient], response_model_by_alias=False)
async def search_patients(
    q: Optional[str] = Query(None, description="Search by name or phone"),
    limit: int = Query(200, le=500),
    current_user: User = Depends(require_staff)
):
    return await PatientService.search_patients(query=q, limit=limit)


@router.get("/{patient_id}", response_model=Patient, response_model_by_alias=False)
async def get_patient(
    patient_id: str,
    current_user: User = Depends(require_staff)
):
    patient = await PatientService.get_patient(patient_id)
    if not patient:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Patient not found"
        )
    return patient


@appointments_router.get("/today", response_model=List[Appointment], response_model_by_alias=False)
async def get_todays_appointments(current_user: User = Depends(require_staff)):
    """Appointments scheduled for today."""
    return await AppointmentService.list_for_day()


@appointments_router.get("/{appointment_id}", response_model=Appointment, response_model_by_alias=False)
async def get_appointment(
    appointment_id: str,
    current_user: User = Depends(require_staff)
):
    appointment = await AppointmentService.get_appointment(appointment_id)
    if not appointment:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Appointment not found"
        )
    return appointment
