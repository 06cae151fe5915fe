"""Stylist availability configuration: weekly hours, vacations, salon closures."""

from datetime import date, time
from typing import Optional

from pydantic import BaseModel, Field, model_validator


class StylistWorkingHours(BaseModel):
    """Weekly working hours for one stylist on one weekday."""

    id: Optional[int] = None
    stylist_id: int
    day_of_week: int = Field(..., ge=0, le=6, description="0 = Sunday, 6 = Saturday")
    is_working: bool = True
    start_time: time
    end_time: time
    break_start_time: Optional[time] = None
    break_end_time: Optional[time] = None

    class Config:
        json_schema_extra = {
            "example": {
                "stylist_id": 2,
                "day_of_week": 4,
                "is_working": True,
                "start_time": "09:00:00",
                "end_time": "19:00:00",
                "break_start_time": "13:00:00",
                "break_end_time": "14:00:00",
            }
        }

    @model_validator(mode="after")
    def check_intervals(self) -> "StylistWorkingHours":
        if self.is_working and self.start_time >= self.end_time:
            raise ValueError("start_time must be before end_time on a working day")
        if (self.break_start_time is None) != (self.break_end_time is None):
            raise ValueError("break_start_time and break_end_time go together")
        if self.has_break and not (
            self.start_time <= self.break_start_time < self.break_end_time <= self.end_time
        ):
            raise ValueError("break must lie inside working hours")
        return self

    @property
    def has_break(self) -> bool:
        return self.break_start_time is not None and self.break_end_time is not None


class StylistVacation(BaseModel):
    """Vacation period; both ends inclusive."""

    id: Optional[int] = None
    stylist_id: int
    start_date: date
    end_date: date
    reason: str = "Ferie"
    is_active: bool = True

    @model_validator(mode="after")
    def check_range(self) -> "StylistVacation":
        if self.start_date > self.end_date:
            raise ValueError("start_date must not be after end_date")
        return self

    def covers(self, day: date) -> bool:
        return self.is_active and self.start_date <= day <= self.end_date


class SalonExtraordinaryDay(BaseModel):
    """Salon-wide exception to the normal calendar (e.g. holiday closure)."""

    id: Optional[int] = None
    date: date
    is_closed: bool = True
    reason: str
