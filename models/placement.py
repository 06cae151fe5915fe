"""Placement check models used by the conflict engine."""

from datetime import date, time
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field


class ConflictReason(str, Enum):
    """Why a candidate appointment cannot be placed."""

    INVALID_INTERVAL = "invalid_interval"
    OUTSIDE_WORKING_HOURS = "outside_working_hours"
    SLOT_OCCUPIED = "slot_occupied"


class PlacementCandidate(BaseModel):
    """Proposed position of an appointment on a stylist's calendar."""

    stylist_id: int
    date: date
    start: time
    end: time
    exclude_appointment_id: Optional[int] = Field(
        None, description="Appointment being moved; ignored when checking occupancy"
    )


class PlacementResult(BaseModel):
    """Outcome of a placement check.

    `warnings` carries soft issues (break overlap) that do not block booking.
    """

    reason: Optional[ConflictReason] = None
    conflicting_ids: List[int] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.reason is None

    @classmethod
    def conflict(cls, reason: ConflictReason, **kwargs) -> "PlacementResult":
        return cls(reason=reason, **kwargs)
