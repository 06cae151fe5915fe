"""Structured reminder message passed to the notifier."""

from datetime import date, time
from typing import List

from pydantic import BaseModel, Field


class ReminderEntry(BaseModel):
    """One appointment line of a reminder."""

    start_time: time
    service_name: str


class ReminderMessage(BaseModel):
    """Everything a client needs to know about their day at the salon."""

    client_name: str
    appointment_date: date
    entries: List[ReminderEntry] = Field(..., min_length=1)
    is_tomorrow: bool = True

    class Config:
        json_schema_extra = {
            "example": {
                "client_name": "Enea",
                "appointment_date": "2025-07-17",
                "entries": [{"start_time": "20:15:00", "service_name": "Taglio"}],
                "is_tomorrow": True,
            }
        }
