"""
Daily reminder scheduler using APScheduler.

Fires once per calendar day at a fixed local time in the salon's timezone
(09:00 Europe/Rome by default) and sends reminders for the appointments of
the following day.

Two states:
    IDLE         one-shot timer armed for `next_fire_at`
    DISPATCHING  a cycle is running; the timer is re-armed only when it ends

The fire time is recomputed from the wall clock after every scheduled cycle
and on every process start, never derived from elapsed time, so restarts and
deploys cannot shift the cadence. A manual trigger while a cycle is running
is rejected with AlreadyRunningError. A timer run that collides with a cycle
for another date (a manual run with a date override) is queued as a one-off
catch-up job once that cycle ends.
"""

from datetime import date, datetime, time, timedelta
from enum import Enum
from typing import Any, Callable, Dict, Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.date import DateTrigger

from config import settings
from models.reports import CycleReport
from scheduler.dispatch import DispatchCycle
from utils.datetime_utils import get_zone, local_today, to_local, utc_now
from utils.exceptions import AlreadyRunningError, CycleAbortedError
from utils.logging_config import setup_logging

logger = setup_logging(
    name=__name__, log_level="INFO", log_file="scheduler.log", log_dir="logs"
)

REMINDER_JOB_ID = "daily_reminders"
CATCH_UP_JOB_ID = "daily_reminders_catch_up"


class SchedulerState(str, Enum):
    """Reminder scheduler state."""

    IDLE = "idle"
    DISPATCHING = "dispatching"


def compute_next_fire_at(now: datetime, fire_time: time, timezone: str) -> datetime:
    """
    Next occurrence of fire_time in the salon timezone.

    Today if the local clock has not reached fire_time yet, tomorrow
    otherwise (09:30 local with a 09:00 fire time gives tomorrow 09:00).

    Args:
        now: Current instant (aware; naive is treated as UTC)
        fire_time: Local time of day
        timezone: IANA timezone of the salon

    Returns:
        Aware datetime in the salon timezone
    """
    zone = get_zone(timezone)
    local_now = to_local(now, zone)
    candidate = datetime.combine(local_now.date(), fire_time, tzinfo=zone)
    if local_now >= candidate:
        candidate = datetime.combine(
            local_now.date() + timedelta(days=1), fire_time, tzinfo=zone
        )
    return candidate


class ReminderScheduler:
    """
    Drives the dispatch cycle once per day and on admin request.

    Args:
        cycle: Dispatch cycle to run
        fire_time: Local time of day to fire at
        timezone: Salon timezone
        days_ahead: Target date offset from the local date at fire time
        catch_up_on_start: Run once immediately when started after today's
            fire time (safe: already reminded appointments are skipped)
        scheduler: APScheduler instance (one is created if omitted)
        clock: Returns the current aware datetime
    """

    def __init__(
        self,
        cycle: DispatchCycle,
        fire_time: time = time(9, 0),
        timezone: str = "Europe/Rome",
        days_ahead: int = 1,
        catch_up_on_start: bool = False,
        scheduler: Optional[AsyncIOScheduler] = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.cycle = cycle
        self.fire_time = fire_time
        self.timezone = timezone
        self.days_ahead = days_ahead
        self.catch_up_on_start = catch_up_on_start
        self.scheduler = scheduler or AsyncIOScheduler(timezone=timezone)
        self.clock = clock

        self.state = SchedulerState.IDLE
        self.next_fire_at: Optional[datetime] = None
        self.last_report: Optional[CycleReport] = None
        self.last_error: Optional[str] = None
        # Date of the cycle in progress, and of a timer run waiting for it to end
        self.running_target: Optional[date] = None
        self.pending_target: Optional[date] = None

    def target_date(self, now: Optional[datetime] = None) -> date:
        """Date whose appointments a cycle started at `now` reminds about."""
        return local_today(now or self.clock(), self.timezone) + timedelta(days=self.days_ahead)

    def start(self) -> None:
        """Arm the daily timer and start APScheduler (requires a running loop)."""
        now = self.clock()
        self.arm(now=now)
        self.scheduler.start()
        logger.info(
            f"Reminder scheduler started: daily at {self.fire_time.strftime('%H:%M')} "
            f"{self.timezone}, next run {self.next_fire_at.isoformat()}"
        )

        todays_fire = datetime.combine(
            local_today(now, self.timezone), self.fire_time, tzinfo=get_zone(self.timezone)
        )
        if self.catch_up_on_start and now >= todays_fire:
            logger.info("Started after today's fire time; scheduling catch-up run")
            self._schedule_catch_up()

    def _schedule_catch_up(self, target_date: Optional[date] = None) -> None:
        """Queue a one-off run as soon as the event loop is free."""
        self.scheduler.add_job(
            self._on_catch_up,
            kwargs={"target_date": target_date},
            id=CATCH_UP_JOB_ID,
            name="Catch-up appointment reminders",
            replace_existing=True,
            misfire_grace_time=None,
        )

    def shutdown(self) -> None:
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)
        logger.info("Reminder scheduler stopped")

    def arm(self, now: Optional[datetime] = None, after: Optional[datetime] = None) -> datetime:
        """
        Schedule the one-shot timer for the next fire time.

        Args:
            now: Current instant (defaults to the clock)
            after: Fire time that just ran; the new one is strictly later,
                even if the timer went off a little early

        Returns:
            The armed fire time
        """
        now = now or self.clock()
        next_fire = compute_next_fire_at(now, self.fire_time, self.timezone)
        if after is not None and next_fire <= after:
            next_fire = compute_next_fire_at(after, self.fire_time, self.timezone)

        self.next_fire_at = next_fire
        self.scheduler.add_job(
            self._on_fire,
            trigger=DateTrigger(run_date=next_fire),
            id=REMINDER_JOB_ID,
            name="Send appointment reminders",
            replace_existing=True,
            misfire_grace_time=None,
            coalesce=True,
        )
        logger.info(f"Next reminder run armed for {next_fire.isoformat()}")
        return next_fire

    async def trigger_now(self, target_date: Optional[date] = None) -> CycleReport:
        """
        Run a cycle immediately (administrative trigger).

        Args:
            target_date: Override the date to remind about

        Raises:
            AlreadyRunningError: A cycle is already in progress
            StoreUnavailableError: The store could not be read
            CycleAbortedError: The store failed mid-cycle
        """
        return await self._run(source="manual", target_date=target_date)

    async def _run(self, source: str, target_date: Optional[date] = None) -> CycleReport:
        # No await between the check and the transition: atomic on the event loop
        if self.state == SchedulerState.DISPATCHING:
            raise AlreadyRunningError("A reminder cycle is already running")
        self.state = SchedulerState.DISPATCHING

        try:
            target = target_date or self.target_date()
            self.running_target = target
            logger.info(f"Reminder cycle ({source}) for {target.isoformat()}")
            try:
                report = await self.cycle.run_cycle(target)
            except CycleAbortedError as e:
                self.last_report = e.report
                self.last_error = str(e)
                raise
            except Exception as e:
                self.last_error = str(e)
                raise
            self.last_report = report
            self.last_error = None
            return report
        finally:
            self.state = SchedulerState.IDLE
            self.running_target = None
            if self.pending_target is not None:
                pending, self.pending_target = self.pending_target, None
                logger.info(f"Running deferred reminder cycle for {pending.isoformat()}")
                self._schedule_catch_up(pending)

    async def _run_logged(self, source: str, target_date: Optional[date] = None) -> None:
        """
        Run from a timer: failures are logged and retried by the next fire.

        A run that collides with a cycle for another date is deferred until
        that cycle ends instead of being dropped.
        """
        target = target_date or self.target_date()
        try:
            await self._run(source=source, target_date=target)
        except AlreadyRunningError:
            if self.running_target == target:
                logger.warning(
                    f"Skipping {source} reminder run for {target}: "
                    f"a cycle for that date is already in progress"
                )
            else:
                logger.warning(
                    f"Deferring {source} reminder run for {target} until the "
                    f"cycle for {self.running_target} ends"
                )
                self.pending_target = target
        except Exception as e:
            logger.error(f"{source.capitalize()} reminder run failed: {e}", exc_info=True)

    async def _on_fire(self) -> None:
        fired_slot = self.next_fire_at
        try:
            await self._run_logged("scheduled")
        finally:
            self.arm(after=fired_slot)

    async def _on_catch_up(self, target_date: Optional[date] = None) -> None:
        await self._run_logged("catch-up", target_date=target_date)

    def status(self) -> Dict[str, Any]:
        """Snapshot for the admin surface."""
        return {
            "state": self.state.value,
            "next_fire_at": self.next_fire_at,
            "target_date": self.target_date(),
            "last_report": self.last_report,
            "last_error": self.last_error,
        }


# Scheduler instance - created by setup_scheduler
_reminder_scheduler: Optional[ReminderScheduler] = None


def build_reminder_scheduler(store=None, notifier=None) -> ReminderScheduler:
    """Wire a scheduler from settings, the Supabase store and the configured notifier."""
    if store is None:
        from db import get_db_client

        store = get_db_client()
    if notifier is None:
        from notifier import get_notifier

        notifier = get_notifier()

    cycle = DispatchCycle(
        store=store,
        notifier=notifier,
        timezone=settings.salon_timezone,
        default_country_code=settings.default_country_code,
        mobile_prefixes=settings.mobile_prefix_list,
        concurrency=settings.dispatch_concurrency,
        notifier_timeout=settings.notifier_timeout_seconds,
    )
    return ReminderScheduler(
        cycle=cycle,
        fire_time=settings.reminder_fire_time,
        timezone=settings.salon_timezone,
        days_ahead=settings.reminder_days_ahead,
        catch_up_on_start=settings.reminder_catch_up_on_start,
    )


def setup_scheduler(store=None, notifier=None) -> ReminderScheduler:
    """Create and start the process-wide reminder scheduler."""
    global _reminder_scheduler
    if _reminder_scheduler is not None:
        raise RuntimeError("Reminder scheduler already set up")

    _reminder_scheduler = build_reminder_scheduler(store=store, notifier=notifier)
    _reminder_scheduler.start()
    return _reminder_scheduler


def get_reminder_scheduler() -> Optional[ReminderScheduler]:
    return _reminder_scheduler


def shutdown_scheduler() -> None:
    """Shutdown the scheduler."""
    global _reminder_scheduler
    if _reminder_scheduler is not None:
        _reminder_scheduler.shutdown()
        _reminder_scheduler = None
