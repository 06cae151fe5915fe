"""
Custom exception classes for better error handling.
Provides specific error types instead of generic exceptions.
"""

from typing import TYPE_CHECKING, List, Optional

if TYPE_CHECKING:
    from models.reports import CycleReport


class DatabaseError(Exception):
    """Base exception for database operations."""

    pass


class StoreUnavailableError(DatabaseError):
    """Raised when the appointment store cannot be read or written."""

    pass


class AppointmentNotFoundError(DatabaseError):
    """Raised when an appointment is not found."""

    pass


class SchedulingError(Exception):
    """Base exception for calendar placement failures."""

    pass


class InvalidIntervalError(SchedulingError):
    """Raised when an appointment does not start before it ends."""

    pass


class OutsideWorkingHoursError(SchedulingError):
    """Raised when an appointment falls outside the stylist's working hours."""

    pass


class SlotOccupiedError(SchedulingError):
    """Raised when an appointment overlaps another booking of the stylist."""

    def __init__(self, message: str, conflicting_ids: Optional[List[int]] = None):
        super().__init__(message)
        self.conflicting_ids = conflicting_ids or []


class ValidationError(Exception):
    """Raised when input validation fails."""

    pass


class InvalidPhoneError(ValidationError):
    """Raised when a phone number cannot be normalized."""

    pass


class NotifierError(Exception):
    """Raised when the outbound messaging provider rejects or fails a send."""

    pass


class ReminderError(Exception):
    """Base exception for reminder scheduling operations."""

    pass


class AlreadyRunningError(ReminderError):
    """Raised when a reminder cycle is requested while one is in progress."""

    pass


class CycleAbortedError(ReminderError):
    """Raised when a reminder cycle stops early on a store failure.

    Carries the partial report of what was already sent and marked.
    """

    def __init__(self, message: str, report: "CycleReport"):
        super().__init__(message)
        self.report = report
