"""Appointment scheduling and daily reminder dispatch."""

from .reminders import (
    ReminderScheduler,
    SchedulerState,
    compute_next_fire_at,
    get_reminder_scheduler,
    setup_scheduler,
    shutdown_scheduler,
)

__all__ = [
    "ReminderScheduler",
    "SchedulerState",
    "compute_next_fire_at",
    "get_reminder_scheduler",
    "setup_scheduler",
    "shutdown_scheduler",
]
