"""
Stylist calendar model.

Answers "may this interval sit on this stylist's calendar?" from a snapshot
of configuration: weekly working hours, vacations and salon closures.
No I/O happens here; `load_calendar` builds the snapshot from the store.
"""

from datetime import date, datetime, time, timedelta
from enum import Enum
from typing import Dict, Iterable, List, Optional, Tuple

from models.working_hours import (
    SalonExtraordinaryDay,
    StylistVacation,
    StylistWorkingHours,
)
from utils.datetime_utils import day_of_week

DEFAULT_SLOT_MINUTES = 15


class WorkingStatus(str, Enum):
    """Stylist status at a given moment."""

    WORKING = "working"
    ON_BREAK = "on_break"
    NOT_WORKING = "not_working"
    ON_VACATION = "on_vacation"
    SALON_CLOSED = "salon_closed"


def intervals_overlap(start1: time, end1: time, start2: time, end2: time) -> bool:
    """Half-open overlap: [09:00, 10:00) and [10:00, 11:00) do not overlap."""
    return start1 < end2 and start2 < end1


class CalendarModel:
    """Configuration snapshot for one or more stylists."""

    def __init__(
        self,
        working_hours: Iterable[StylistWorkingHours] = (),
        vacations: Iterable[StylistVacation] = (),
        extraordinary_days: Iterable[SalonExtraordinaryDay] = (),
    ):
        self._hours: Dict[Tuple[int, int], StylistWorkingHours] = {
            (wh.stylist_id, wh.day_of_week): wh for wh in working_hours
        }
        self._vacations: List[StylistVacation] = list(vacations)
        self._closed_days = {d.date for d in extraordinary_days if d.is_closed}

    def hours_for(self, stylist_id: int, day: date) -> Optional[StylistWorkingHours]:
        """Working hours that apply on a day, or None when the stylist is off."""
        if day in self._closed_days or self.is_on_vacation(stylist_id, day):
            return None
        hours = self._hours.get((stylist_id, day_of_week(day)))
        if hours is None or not hours.is_working:
            return None
        return hours

    def is_on_vacation(self, stylist_id: int, day: date) -> bool:
        return any(v.stylist_id == stylist_id and v.covers(day) for v in self._vacations)

    def is_salon_closed(self, day: date) -> bool:
        return day in self._closed_days

    def is_within_working_hours(
        self, stylist_id: int, day: date, start: time, end: time
    ) -> bool:
        """True when [start, end] lies entirely inside the working day."""
        hours = self.hours_for(stylist_id, day)
        if hours is None:
            return False
        return hours.start_time <= start and end <= hours.end_time

    def overlaps_break(self, stylist_id: int, day: date, start: time, end: time) -> bool:
        """True when the interval touches the break, even partially."""
        hours = self.hours_for(stylist_id, day)
        if hours is None or not hours.has_break:
            return False
        return intervals_overlap(start, end, hours.break_start_time, hours.break_end_time)

    def working_status(self, stylist_id: int, day: date, at: time) -> WorkingStatus:
        if self.is_salon_closed(day):
            return WorkingStatus.SALON_CLOSED
        if self.is_on_vacation(stylist_id, day):
            return WorkingStatus.ON_VACATION

        hours = self.hours_for(stylist_id, day)
        if hours is None or not hours.start_time <= at < hours.end_time:
            return WorkingStatus.NOT_WORKING
        if hours.has_break and hours.break_start_time <= at < hours.break_end_time:
            return WorkingStatus.ON_BREAK
        return WorkingStatus.WORKING

    def available_slots(
        self, stylist_id: int, day: date, step_minutes: int = DEFAULT_SLOT_MINUTES
    ) -> List[time]:
        """
        Slot start times inside working hours, skipping the break.

        Occupancy is not considered; combine with the conflict engine for that.
        """
        hours = self.hours_for(stylist_id, day)
        if hours is None:
            return []

        slots = []
        cursor = datetime.combine(day, hours.start_time)
        end = datetime.combine(day, hours.end_time)
        step = timedelta(minutes=step_minutes)
        while cursor < end:
            slot = cursor.time()
            on_break = hours.has_break and hours.break_start_time <= slot < hours.break_end_time
            if not on_break:
                slots.append(slot)
            cursor += step
        return slots


async def load_calendar(store, stylist_id: int, day: date) -> CalendarModel:
    """Build the configuration snapshot needed to check one stylist-day."""
    hours = await store.list_working_hours(stylist_id)
    vacations = await store.list_vacations(stylist_id, day)
    extraordinary = await store.get_extraordinary_day(day)
    return CalendarModel(
        working_hours=hours,
        vacations=vacations,
        extraordinary_days=[extraordinary] if extraordinary else [],
    )
