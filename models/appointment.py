"""Appointment models for the stylist calendar."""

from datetime import date, datetime, time
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, model_validator

from models.client import Client
from models.service import Service


class AppointmentStatus(str, Enum):
    """Appointment lifecycle status."""

    SCHEDULED = "scheduled"
    CANCELLED = "cancelled"
    COMPLETED = "completed"
    NO_SHOW = "no-show"


class Appointment(BaseModel):
    """Appointment model.

    `client` and `service` are only populated by the store's detailed
    queries (the ones the reminder cycle reads).
    """

    id: int
    stylist_id: int
    client_id: int
    service_id: int
    date: date
    start_time: time
    end_time: time
    status: AppointmentStatus = AppointmentStatus.SCHEDULED
    reminder_sent: bool = Field(default=False)
    notes: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    client: Optional[Client] = None
    service: Optional[Service] = None

    class Config:
        use_enum_values = True
        json_schema_extra = {
            "example": {
                "id": 10,
                "stylist_id": 2,
                "client_id": 5,
                "service_id": 3,
                "date": "2025-07-17",
                "start_time": "09:00:00",
                "end_time": "10:00:00",
                "status": "scheduled",
                "reminder_sent": False,
            }
        }

    @model_validator(mode="after")
    def check_interval(self) -> "Appointment":
        if self.start_time >= self.end_time:
            raise ValueError("start_time must be before end_time")
        return self

    @property
    def is_active(self) -> bool:
        """Cancelled appointments no longer occupy the calendar."""
        return self.status != AppointmentStatus.CANCELLED

    @property
    def duration_minutes(self) -> int:
        start = self.start_time.hour * 60 + self.start_time.minute
        end = self.end_time.hour * 60 + self.end_time.minute
        return end - start

    @property
    def duration_modified(self) -> bool:
        """True when the booked length differs from the service default.

        Display hint only; nothing enforces the service duration.
        """
        if self.service is None:
            return False
        return self.duration_minutes != self.service.duration


class AppointmentCreate(BaseModel):
    """Appointment creation model.

    `end_time` is optional: when omitted the booking path derives it from
    the service duration.
    """

    stylist_id: int
    client_id: int
    service_id: int
    date: date
    start_time: time
    end_time: Optional[time] = None
    status: AppointmentStatus = AppointmentStatus.SCHEDULED
    notes: Optional[str] = None

    class Config:
        use_enum_values = True
