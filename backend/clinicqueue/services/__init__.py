"""Services package for the clinic queue API."""

from .auth_service import AuthService
from .patient_service import PatientService, AppointmentService
from .queue_service import QueueService

__all__ = [
    "AuthService",
    "PatientService",
    "AppointmentService",
    "QueueService"
]
