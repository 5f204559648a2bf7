"""
Resolution of patient and appointment references on queue entries.

The queue API returns each reference either as an embedded summary or as a
bare id. This module is the only place that looks at that shape; everything
that displays, groups or de-duplicates entries goes through it.
"""

import logging
from typing import Optional, Protocol, Union

from ..models.appointment import AppointmentSummary
from ..models.patient import PatientSummary

logger = logging.getLogger(__name__)

UNKNOWN_PATIENT = "Unknown patient"
WALK_IN_TYPE = "Walk-in"


class Directory(Protocol):
    """Read-only lookup of patients and appointments by id."""

    def find_patient_by_id(self, patient_id: str) -> Optional[PatientSummary]:
        ...

    def find_appointment_by_id(self, appointment_id: str) -> Optional[AppointmentSummary]:
        ...


def reference_id(ref: Union[PatientSummary, AppointmentSummary, str, None]) -> Optional[str]:
    """Id behind a reference, whichever shape it has."""
    if ref is None:
        return None
    if isinstance(ref, str):
        return ref
    return ref.id


def resolve_patient(
    ref: Union[PatientSummary, str, None],
    directory: Optional[Directory] = None
) -> PatientSummary:
    """Normalize a patient reference to a ``PatientSummary``."""
    if isinstance(ref, PatientSummary):
        return ref
    if ref and directory is not None:
        found = directory.find_patient_by_id(ref)
        if found is not None:
            return found
        logger.debug("Patient %s not found in directory", ref)
    return PatientSummary(_id=ref or None, name=UNKNOWN_PATIENT)


def resolve_appointment(
    ref: Union[AppointmentSummary, str, None],
    directory: Optional[Directory] = None
) -> Optional[AppointmentSummary]:
    """Normalize an appointment reference; ``None`` for walk-ins."""
    if ref is None:
        return None
    if isinstance(ref, AppointmentSummary):
        return ref
    if directory is not None:
        found = directory.find_appointment_by_id(ref)
        if found is not None:
            return found
        logger.debug("Appointment %s not found in directory", ref)
    return AppointmentSummary(_id=ref)
