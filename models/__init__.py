"""Pydantic models for data validation and serialization."""

from .appointment import Appointment, AppointmentCreate, AppointmentStatus
from .client import Client
from .placement import ConflictReason, PlacementCandidate, PlacementResult
from .reports import (
    CycleReport,
    DispatchFailure,
    DuplicateGroup,
    DuplicateKey,
    FailureKind,
    ReconcileReport,
)
from .reminder import ReminderEntry, ReminderMessage
from .service import Service
from .working_hours import SalonExtraordinaryDay, StylistVacation, StylistWorkingHours

__all__ = [
    "Appointment",
    "AppointmentCreate",
    "AppointmentStatus",
    "Client",
    "ConflictReason",
    "CycleReport",
    "DispatchFailure",
    "DuplicateGroup",
    "DuplicateKey",
    "FailureKind",
    "PlacementCandidate",
    "PlacementResult",
    "ReconcileReport",
    "ReminderEntry",
    "ReminderMessage",
    "SalonExtraordinaryDay",
    "Service",
    "StylistVacation",
    "StylistWorkingHours",
]
