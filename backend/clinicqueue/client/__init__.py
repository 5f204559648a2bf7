"""Client-side queue coordination for front-desk and doctor terminals."""

from .api import QueueApiClient, QueueDirectory
from .cache import LocalQueueCache
from .coordinator import EntryView, Notice, QueueCoordinator
from .errors import (
    ApiError,
    DuplicateCheckInError,
    InvalidTransitionError,
    QueueError,
    QueueValidationError
)
from .references import reference_id, resolve_appointment, resolve_patient

__all__ = [
    "QueueApiClient",
    "QueueDirectory",
    "LocalQueueCache",
    "QueueCoordinator",
    "EntryView",
    "Notice",
    "ApiError",
    "DuplicateCheckInError",
    "InvalidTransitionError",
    "QueueError",
    "QueueValidationError",
    "reference_id",
    "resolve_appointment",
    "resolve_patient"
]
