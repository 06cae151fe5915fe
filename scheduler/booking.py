"""
Booking path: create and move appointments through the conflict engine.

Nothing is written unless the placement check passes.
"""

import logging
from datetime import date, time
from typing import Optional

from models.appointment import Appointment, AppointmentCreate
from models.placement import PlacementCandidate
from scheduler.conflicts import ConflictEngine
from utils.datetime_utils import add_minutes
from utils.exceptions import AppointmentNotFoundError, InvalidIntervalError

logger = logging.getLogger(__name__)


async def book_appointment(engine: ConflictEngine, data: AppointmentCreate) -> Appointment:
    """
    Book a new appointment.

    The end time defaults to start + service duration; an explicit end time
    is kept as given (a "modified duration").

    Raises:
        AppointmentNotFoundError: The service does not exist
        SchedulingError: The placement check failed
    """
    end_time = data.end_time
    if end_time is None:
        service = await engine.store.get_service(data.service_id)
        if service is None:
            raise AppointmentNotFoundError(f"Service {data.service_id} not found")
        try:
            end_time = add_minutes(data.start_time, service.duration)
        except ValueError as e:
            raise InvalidIntervalError(str(e)) from e

    await engine.ensure_placement(
        PlacementCandidate(
            stylist_id=data.stylist_id,
            date=data.date,
            start=data.start_time,
            end=end_time,
        )
    )

    appointment = await engine.store.insert_appointment(
        data.model_copy(update={"end_time": end_time})
    )
    logger.info(
        f"Booked appointment {appointment.id} for client {appointment.client_id} "
        f"with stylist {appointment.stylist_id} on {appointment.date} {appointment.start_time}"
    )
    return appointment


async def reschedule_appointment(
    engine: ConflictEngine,
    appointment_id: int,
    new_date: date,
    new_start: time,
    new_end: Optional[time] = None,
) -> Appointment:
    """
    Move and/or resize an existing appointment (calendar drag or resize).

    When `new_end` is omitted the current length is preserved.

    Raises:
        AppointmentNotFoundError: Unknown appointment
        SchedulingError: The placement check failed
    """
    current = await engine.store.get_appointment(appointment_id)
    if current is None:
        raise AppointmentNotFoundError(f"Appointment {appointment_id} not found")

    if new_end is None:
        try:
            new_end = add_minutes(new_start, current.duration_minutes)
        except ValueError as e:
            raise InvalidIntervalError(str(e)) from e

    await engine.ensure_placement(
        PlacementCandidate(
            stylist_id=current.stylist_id,
            date=new_date,
            start=new_start,
            end=new_end,
            exclude_appointment_id=appointment_id,
        )
    )

    updated = await engine.store.update_appointment_times(
        appointment_id, new_date, new_start, new_end
    )
    if updated is None:
        raise AppointmentNotFoundError(f"Appointment {appointment_id} not found")

    logger.info(f"Rescheduled appointment {appointment_id} to {new_date} {new_start}-{new_end}")
    return updated
