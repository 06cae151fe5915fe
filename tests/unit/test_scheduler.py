"""
Unit tests for scheduler functionality.
Tests the daily fire time, the state machine and re-arming with mocked dependencies.
"""

import asyncio
from datetime import date, datetime, time, timedelta, timezone
from unittest.mock import AsyncMock, MagicMock, patch
from zoneinfo import ZoneInfo

import pytest

from models.reports import CycleReport
from scheduler.reminders import (
    CATCH_UP_JOB_ID,
    REMINDER_JOB_ID,
    ReminderScheduler,
    SchedulerState,
    build_reminder_scheduler,
    compute_next_fire_at,
    get_reminder_scheduler,
    setup_scheduler,
    shutdown_scheduler,
)
from utils.exceptions import AlreadyRunningError, CycleAbortedError, StoreUnavailableError

ROME = ZoneInfo("Europe/Rome")


def rome(*args) -> datetime:
    return datetime(*args, tzinfo=ROME)


@pytest.fixture
def mock_cycle():
    cycle = MagicMock()
    cycle.run_cycle = AsyncMock(
        side_effect=lambda target: CycleReport(target_date=target, clients_notified=1)
    )
    return cycle


@pytest.fixture
def make_scheduler(mock_cycle):
    def factory(now: datetime, **kwargs):
        return ReminderScheduler(
            cycle=mock_cycle,
            fire_time=time(9, 0),
            timezone="Europe/Rome",
            scheduler=MagicMock(),
            clock=lambda: now,
            **kwargs,
        )

    return factory


class TestComputeNextFireAt:
    """Fixed local fire time."""

    def test_before_fire_time_fires_today(self):
        result = compute_next_fire_at(rome(2025, 7, 16, 8, 0), time(9, 0), "Europe/Rome")
        assert result == rome(2025, 7, 16, 9, 0)

    def test_after_fire_time_fires_tomorrow(self):
        result = compute_next_fire_at(rome(2025, 7, 16, 9, 30), time(9, 0), "Europe/Rome")
        assert result == rome(2025, 7, 17, 9, 0)

    def test_exactly_at_fire_time_fires_tomorrow(self):
        result = compute_next_fire_at(rome(2025, 7, 16, 9, 0), time(9, 0), "Europe/Rome")
        assert result == rome(2025, 7, 17, 9, 0)

    def test_uses_salon_timezone_not_utc(self):
        # 07:30 UTC is 09:30 in Rome during summer time
        now = datetime(2025, 7, 16, 7, 30, tzinfo=timezone.utc)
        result = compute_next_fire_at(now, time(9, 0), "Europe/Rome")
        assert result == rome(2025, 7, 17, 9, 0)

    def test_stays_at_local_time_across_dst_change(self):
        # Summer time starts on 30 March 2025
        result = compute_next_fire_at(rome(2025, 3, 29, 9, 30), time(9, 0), "Europe/Rome")
        assert result == rome(2025, 3, 30, 9, 0)
        assert result.utcoffset() == timedelta(hours=2)


class TestReminderScheduler:
    """State machine and timer handling."""

    def test_target_date_is_next_local_day(self, make_scheduler):
        scheduler = make_scheduler(datetime(2025, 7, 16, 22, 30, tzinfo=timezone.utc))
        # Already 17 July in Rome
        assert scheduler.target_date() == date(2025, 7, 18)

    def test_arm_schedules_one_shot_job(self, make_scheduler):
        scheduler = make_scheduler(rome(2025, 7, 16, 9, 30))

        next_fire = scheduler.arm()

        assert next_fire == rome(2025, 7, 17, 9, 0)
        kwargs = scheduler.scheduler.add_job.call_args.kwargs
        assert kwargs["id"] == REMINDER_JOB_ID
        assert kwargs["replace_existing"] is True
        assert kwargs["trigger"].run_date == next_fire

    def test_start_without_catch_up(self, make_scheduler):
        scheduler = make_scheduler(rome(2025, 7, 16, 9, 30))

        scheduler.start()

        scheduler.scheduler.start.assert_called_once()
        job_ids = [c.kwargs["id"] for c in scheduler.scheduler.add_job.call_args_list]
        assert job_ids == [REMINDER_JOB_ID]
        assert scheduler.next_fire_at == rome(2025, 7, 17, 9, 0)

    def test_start_after_fire_time_with_catch_up(self, make_scheduler):
        scheduler = make_scheduler(rome(2025, 7, 16, 9, 30), catch_up_on_start=True)

        scheduler.start()

        job_ids = [c.kwargs["id"] for c in scheduler.scheduler.add_job.call_args_list]
        assert job_ids == [REMINDER_JOB_ID, CATCH_UP_JOB_ID]

    def test_start_before_fire_time_skips_catch_up(self, make_scheduler):
        scheduler = make_scheduler(rome(2025, 7, 16, 8, 0), catch_up_on_start=True)

        scheduler.start()

        job_ids = [c.kwargs["id"] for c in scheduler.scheduler.add_job.call_args_list]
        assert job_ids == [REMINDER_JOB_ID]

    @pytest.mark.asyncio
    async def test_trigger_now_runs_cycle_for_target(self, make_scheduler, mock_cycle):
        scheduler = make_scheduler(rome(2025, 7, 16, 12, 0))

        report = await scheduler.trigger_now()

        mock_cycle.run_cycle.assert_awaited_once_with(date(2025, 7, 17))
        assert report.clients_notified == 1
        assert scheduler.state == SchedulerState.IDLE
        assert scheduler.last_report is report
        # A manual run does not touch the daily timer
        scheduler.scheduler.add_job.assert_not_called()

    @pytest.mark.asyncio
    async def test_trigger_now_with_explicit_date(self, make_scheduler, mock_cycle):
        scheduler = make_scheduler(rome(2025, 7, 16, 12, 0))

        await scheduler.trigger_now(target_date=date(2025, 7, 20))

        mock_cycle.run_cycle.assert_awaited_once_with(date(2025, 7, 20))

    @pytest.mark.asyncio
    async def test_trigger_while_dispatching_is_rejected(self, make_scheduler, mock_cycle):
        release = asyncio.Event()

        async def slow_cycle(target):
            await release.wait()
            return CycleReport(target_date=target)

        mock_cycle.run_cycle = AsyncMock(side_effect=slow_cycle)
        scheduler = make_scheduler(rome(2025, 7, 16, 12, 0))

        first = asyncio.create_task(scheduler.trigger_now())
        await asyncio.sleep(0)
        assert scheduler.state == SchedulerState.DISPATCHING

        with pytest.raises(AlreadyRunningError):
            await scheduler.trigger_now()

        release.set()
        await first
        assert scheduler.state == SchedulerState.IDLE
        assert mock_cycle.run_cycle.await_count == 1

    @pytest.mark.asyncio
    async def test_failed_cycle_returns_to_idle(self, make_scheduler, mock_cycle):
        mock_cycle.run_cycle = AsyncMock(side_effect=StoreUnavailableError("down"))
        scheduler = make_scheduler(rome(2025, 7, 16, 12, 0))

        with pytest.raises(StoreUnavailableError):
            await scheduler.trigger_now()

        assert scheduler.state == SchedulerState.IDLE
        assert scheduler.last_error == "down"

    @pytest.mark.asyncio
    async def test_aborted_cycle_keeps_partial_report(self, make_scheduler, mock_cycle):
        partial = CycleReport(target_date=date(2025, 7, 17), clients_notified=2, aborted=True)
        mock_cycle.run_cycle = AsyncMock(side_effect=CycleAbortedError("aborted", partial))
        scheduler = make_scheduler(rome(2025, 7, 16, 12, 0))

        with pytest.raises(CycleAbortedError):
            await scheduler.trigger_now()

        assert scheduler.last_report is partial

    @pytest.mark.asyncio
    async def test_on_fire_rearms_for_next_day(self, make_scheduler, mock_cycle):
        # Timer went off a second early
        scheduler = make_scheduler(rome(2025, 7, 16, 8, 59, 59))
        scheduler.next_fire_at = rome(2025, 7, 16, 9, 0)

        await scheduler._on_fire()

        mock_cycle.run_cycle.assert_awaited_once()
        assert scheduler.next_fire_at == rome(2025, 7, 17, 9, 0)

    @pytest.mark.asyncio
    async def test_on_fire_rearms_even_when_cycle_fails(self, make_scheduler, mock_cycle):
        mock_cycle.run_cycle = AsyncMock(side_effect=StoreUnavailableError("down"))
        scheduler = make_scheduler(rome(2025, 7, 16, 9, 0, 1))
        scheduler.next_fire_at = rome(2025, 7, 16, 9, 0)

        await scheduler._on_fire()

        assert scheduler.next_fire_at == rome(2025, 7, 17, 9, 0)
        assert scheduler.state == SchedulerState.IDLE
        scheduler.scheduler.add_job.assert_called_once()

    @pytest.mark.asyncio
    async def test_on_fire_during_manual_run_for_other_date_is_deferred(
        self, make_scheduler, mock_cycle
    ):
        release = asyncio.Event()

        async def slow_cycle(target):
            await release.wait()
            return CycleReport(target_date=target)

        mock_cycle.run_cycle = AsyncMock(side_effect=slow_cycle)
        scheduler = make_scheduler(rome(2025, 7, 16, 9, 0, 1))
        scheduler.next_fire_at = rome(2025, 7, 16, 9, 0)

        manual = asyncio.create_task(scheduler.trigger_now(target_date=date(2025, 7, 20)))
        await asyncio.sleep(0)
        await scheduler._on_fire()

        assert scheduler.pending_target == date(2025, 7, 17)
        assert mock_cycle.run_cycle.await_count == 1
        assert scheduler.next_fire_at == rome(2025, 7, 17, 9, 0)

        release.set()
        await manual

        assert scheduler.pending_target is None
        catch_up = [
            c for c in scheduler.scheduler.add_job.call_args_list
            if c.kwargs["id"] == CATCH_UP_JOB_ID
        ]
        assert len(catch_up) == 1
        assert catch_up[0].kwargs["kwargs"] == {"target_date": date(2025, 7, 17)}

        await scheduler._on_catch_up(target_date=date(2025, 7, 17))

        assert mock_cycle.run_cycle.await_args_list[-1].args == (date(2025, 7, 17),)
        assert scheduler.state == SchedulerState.IDLE

    @pytest.mark.asyncio
    async def test_on_fire_during_manual_run_for_same_date_is_skipped(
        self, make_scheduler, mock_cycle
    ):
        release = asyncio.Event()

        async def slow_cycle(target):
            await release.wait()
            return CycleReport(target_date=target)

        mock_cycle.run_cycle = AsyncMock(side_effect=slow_cycle)
        scheduler = make_scheduler(rome(2025, 7, 16, 9, 0, 1))
        scheduler.next_fire_at = rome(2025, 7, 16, 9, 0)

        manual = asyncio.create_task(scheduler.trigger_now())
        await asyncio.sleep(0)
        await scheduler._on_fire()
        release.set()
        await manual

        assert mock_cycle.run_cycle.await_count == 1
        assert scheduler.pending_target is None
        job_ids = [c.kwargs["id"] for c in scheduler.scheduler.add_job.call_args_list]
        assert job_ids == [REMINDER_JOB_ID]

    def test_status_snapshot(self, make_scheduler):
        scheduler = make_scheduler(rome(2025, 7, 16, 9, 30))
        scheduler.arm()

        status = scheduler.status()

        assert status["state"] == "idle"
        assert status["next_fire_at"] == rome(2025, 7, 17, 9, 0)
        assert status["target_date"] == date(2025, 7, 17)
        assert status["last_report"] is None


def test_build_reminder_scheduler_from_settings(mock_settings):
    with patch("scheduler.reminders.settings", mock_settings):
        scheduler = build_reminder_scheduler(store=MagicMock(), notifier=MagicMock())

    assert scheduler.fire_time == time(9, 0)
    assert scheduler.timezone == "Europe/Rome"
    assert scheduler.cycle.mobile_prefixes == ("3",)
    assert scheduler.cycle.notifier_timeout == 1.0


def test_setup_scheduler_only_once():
    mock_reminder_scheduler = MagicMock()
    with patch(
        "scheduler.reminders.build_reminder_scheduler", return_value=mock_reminder_scheduler
    ):
        try:
            assert setup_scheduler() is mock_reminder_scheduler
            mock_reminder_scheduler.start.assert_called_once()
            assert get_reminder_scheduler() is mock_reminder_scheduler

            with pytest.raises(RuntimeError):
                setup_scheduler()
        finally:
            shutdown_scheduler()

    mock_reminder_scheduler.shutdown.assert_called_once()
    assert get_reminder_scheduler() is None
