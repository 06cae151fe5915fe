"""
Conflict engine: decides whether an appointment may be placed.

Checked in order:
    1. the interval is well formed (start < end)
    2. it lies within the stylist's working hours; break overlap only
       produces a warning since staff may book over a break on purpose
    3. it does not intersect another non-cancelled appointment of the same
       stylist on the same day, half-open semantics

Called for new bookings and for every move/resize before the change is
committed.
"""

import logging
from datetime import date, datetime, time, timedelta
from typing import List, Optional

from models.placement import ConflictReason, PlacementCandidate, PlacementResult
from scheduler.calendar import (
    DEFAULT_SLOT_MINUTES,
    CalendarModel,
    intervals_overlap,
    load_calendar,
)
from utils.datetime_utils import format_hhmm
from utils.exceptions import (
    InvalidIntervalError,
    OutsideWorkingHoursError,
    SlotOccupiedError,
)

logger = logging.getLogger(__name__)

BREAK_OVERLAP_WARNING = "overlaps_break"


class ConflictEngine:
    """
    Placement checks against a store.

    Args:
        store: Appointment store (see db.supabase_client.SupabaseClient)
        calendar: Fixed configuration snapshot. When omitted a fresh snapshot
            is loaded from the store for every check.
    """

    def __init__(self, store, calendar: Optional[CalendarModel] = None):
        self.store = store
        self.calendar = calendar

    async def _calendar_for(self, candidate: PlacementCandidate) -> CalendarModel:
        if self.calendar is not None:
            return self.calendar
        return await load_calendar(self.store, candidate.stylist_id, candidate.date)

    async def check_placement(self, candidate: PlacementCandidate) -> PlacementResult:
        """
        Check a candidate appointment position.

        Args:
            candidate: Stylist, day and interval; `exclude_appointment_id` is
                the appointment being moved, so it does not collide with itself

        Returns:
            PlacementResult; `result.ok` is False with `result.reason` set on conflict
        """
        if candidate.start >= candidate.end:
            return PlacementResult.conflict(ConflictReason.INVALID_INTERVAL)

        calendar = await self._calendar_for(candidate)
        if not calendar.is_within_working_hours(
            candidate.stylist_id, candidate.date, candidate.start, candidate.end
        ):
            return PlacementResult.conflict(ConflictReason.OUTSIDE_WORKING_HOURS)

        warnings = []
        if calendar.overlaps_break(
            candidate.stylist_id, candidate.date, candidate.start, candidate.end
        ):
            warnings.append(BREAK_OVERLAP_WARNING)

        existing = await self.store.list_appointments_by_stylist_and_date(
            candidate.stylist_id, candidate.date
        )
        conflicting = [
            appointment.id
            for appointment in existing
            if appointment.is_active
            and appointment.id != candidate.exclude_appointment_id
            and intervals_overlap(
                candidate.start, candidate.end, appointment.start_time, appointment.end_time
            )
        ]
        if conflicting:
            return PlacementResult.conflict(
                ConflictReason.SLOT_OCCUPIED,
                conflicting_ids=conflicting,
                warnings=warnings,
            )

        return PlacementResult(warnings=warnings)

    async def free_slots(
        self,
        stylist_id: int,
        day: date,
        duration: timedelta,
        step_minutes: int = DEFAULT_SLOT_MINUTES,
    ) -> List[time]:
        """
        Start times where an appointment of `duration` could be placed.

        A slot qualifies when the whole interval is inside working hours,
        clear of the break and clear of every active appointment.
        """
        calendar = self.calendar or await load_calendar(self.store, stylist_id, day)
        existing = [
            a
            for a in await self.store.list_appointments_by_stylist_and_date(stylist_id, day)
            if a.is_active
        ]

        free = []
        for start in calendar.available_slots(stylist_id, day, step_minutes):
            finish = datetime.combine(day, start) + duration
            if finish.date() != day:
                break
            end = finish.time()
            if not calendar.is_within_working_hours(stylist_id, day, start, end):
                continue
            if calendar.overlaps_break(stylist_id, day, start, end):
                continue
            if any(intervals_overlap(start, end, a.start_time, a.end_time) for a in existing):
                continue
            free.append(start)
        return free

    async def ensure_placement(self, candidate: PlacementCandidate) -> PlacementResult:
        """
        Like check_placement, but raises on conflict.

        Raises:
            InvalidIntervalError: start is not before end
            OutsideWorkingHoursError: interval not inside working hours
            SlotOccupiedError: interval overlaps another appointment
        """
        result = await self.check_placement(candidate)
        if result.ok:
            return result

        when = (
            f"{candidate.date.isoformat()} "
            f"{format_hhmm(candidate.start)}-{format_hhmm(candidate.end)}"
        )
        logger.info(
            f"Placement rejected for stylist {candidate.stylist_id} at {when}: {result.reason.value}"
        )
        if result.reason == ConflictReason.INVALID_INTERVAL:
            raise InvalidIntervalError(f"Start must be before end: {when}")
        if result.reason == ConflictReason.OUTSIDE_WORKING_HOURS:
            raise OutsideWorkingHoursError(
                f"Stylist {candidate.stylist_id} is not working at {when}"
            )
        raise SlotOccupiedError(
            f"Stylist {candidate.stylist_id} is already booked at {when}",
            conflicting_ids=result.conflicting_ids,
        )
