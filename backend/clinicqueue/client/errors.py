"""
Errors raised by the queue client and coordinator.
"""

from typing import Optional


class QueueError(Exception):
    """Base class for queue client errors."""


class QueueValidationError(QueueError, ValueError):
    """An action was rejected before any network call."""


class InvalidTransitionError(QueueValidationError):
    """A status change not allowed by the waiting-room state machine."""

    def __init__(self, current, new):
        self.current = current
        self.new = new
        super().__init__(f"Cannot change status from {current.value} to {new.value}")


class DuplicateCheckInError(QueueValidationError):
    """The appointment is already in today's queue."""

    def __init__(self, appointment_id: str):
        self.appointment_id = appointment_id
        super().__init__("Patient is already in the queue for this appointment")


class ApiError(QueueError):
    """The queue API could not be reached or answered with an error."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.status_code = status_code
        super().__init__(message)

    @property
    def is_not_found(self) -> bool:
        return self.status_code == 404
