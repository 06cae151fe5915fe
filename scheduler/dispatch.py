"""
Reminder dispatch cycle.

One cycle covers one target date:
    1. read the day's appointments once and keep the scheduled ones; rows
       the store cannot parse are counted and left out
    2. split them into eligible / invalid phone / already reminded
    3. group eligible appointments by normalized phone, so two client
       records sharing a number receive a single message
    4. send one message per group, with bounded concurrency and a timeout
       per send
    5. after a confirmed send, flag the whole group in one store write

`reminder_sent` never flips without a successful send. When the store
fails after a send, the group stays unflagged (a later cycle may resend)
and the rest of the cycle is abandoned.
"""

import asyncio
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Callable, Iterable, List, Optional

from models.appointment import Appointment, AppointmentStatus
from models.reminder import ReminderEntry, ReminderMessage
from models.reports import CycleReport, DispatchFailure, FailureKind
from notifier.base import Notifier
from utils.datetime_utils import local_today, utc_now
from utils.exceptions import (
    CycleAbortedError,
    InvalidPhoneError,
    NotifierError,
    StoreUnavailableError,
)
from utils.logging_config import setup_logging
from utils.phone import normalize_phone

logger = setup_logging(
    name=__name__, log_level="INFO", log_file="scheduler.log", log_dir="logs"
)

FALLBACK_SERVICE_NAME = "trattamento"


@dataclass
class ClientGroup:
    """Eligible appointments that share one destination phone."""

    phone: str
    appointments: List[Appointment] = field(default_factory=list)

    @property
    def appointment_ids(self) -> List[int]:
        return [a.id for a in self.appointments]

    @property
    def client_name(self) -> str:
        first = self.appointments[0]
        return first.client.first_name if first.client else ""


class DispatchCycle:
    """
    Sends the daily reminders for one date at a time.

    Args:
        store: Appointment store (list_appointments_by_date, mark_reminders_sent)
        notifier: Outbound backend
        timezone: Salon timezone, used to tell whether the target is tomorrow
        default_country_code: Country code for domestic numbers
        mobile_prefixes: Leading digits of domestic mobile numbers
        concurrency: Maximum notifier calls in flight
        notifier_timeout: Seconds before a send counts as failed
        clock: Returns the current aware datetime
    """

    def __init__(
        self,
        store,
        notifier: Notifier,
        timezone: str = "Europe/Rome",
        default_country_code: str = "39",
        mobile_prefixes: Iterable[str] = ("3",),
        concurrency: int = 4,
        notifier_timeout: float = 15.0,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.store = store
        self.notifier = notifier
        self.timezone = timezone
        self.default_country_code = default_country_code
        self.mobile_prefixes = tuple(mobile_prefixes)
        self.concurrency = concurrency
        self.notifier_timeout = notifier_timeout
        self.clock = clock

    async def run_cycle(self, target_date: date) -> CycleReport:
        """
        Send reminders for every eligible appointment on target_date.

        Returns:
            CycleReport with per-group failures and skipped appointments

        Raises:
            StoreUnavailableError: The day's appointments could not be read
            CycleAbortedError: The store failed while flagging a group;
                carries the partial report
        """
        report = CycleReport(target_date=target_date, started_at=self.clock())
        logger.info(f"Starting reminder cycle for {target_date.isoformat()}")

        appointments = await self.store.list_appointments_by_date(
            target_date, unreadable=report.unreadable_ids
        )
        scheduled = [a for a in appointments if a.status == AppointmentStatus.SCHEDULED]
        report.appointments_total = len(scheduled)

        groups = self._group_eligible(scheduled, report)
        logger.info(
            f"{len(scheduled)} scheduled appointments on {target_date}: "
            f"{report.already_sent} already reminded, "
            f"{len(report.invalid_phone_ids)} invalid phones, "
            f"{len(report.unreadable_ids)} unreadable rows, "
            f"{len(groups)} clients to notify"
        )

        is_tomorrow = target_date == local_today(self.clock(), self.timezone) + timedelta(days=1)
        semaphore = asyncio.Semaphore(self.concurrency)
        abort = asyncio.Event()

        async def worker(group: ClientGroup) -> None:
            async with semaphore:
                if abort.is_set():
                    return
                await self._dispatch_group(group, is_tomorrow, report, abort)

        await asyncio.gather(*(worker(group) for group in groups))

        report.finished_at = self.clock()
        logger.info(f"Reminder cycle complete: {report.summary()}")

        if report.aborted:
            raise CycleAbortedError(
                f"Reminder cycle for {target_date} aborted on store failure", report
            )
        return report

    def _group_eligible(
        self, appointments: List[Appointment], report: CycleReport
    ) -> List[ClientGroup]:
        """Partition scheduled appointments and group the eligible ones by phone."""
        groups = {}
        for appointment in sorted(appointments, key=lambda a: (a.start_time, a.id)):
            if appointment.reminder_sent:
                report.already_sent += 1
                continue

            raw_phone = appointment.client.phone if appointment.client else None
            try:
                phone = normalize_phone(
                    raw_phone, self.default_country_code, self.mobile_prefixes
                )
            except InvalidPhoneError as e:
                logger.warning(f"Skipping appointment {appointment.id}: {e}")
                report.invalid_phone_ids.append(appointment.id)
                continue

            groups.setdefault(phone, ClientGroup(phone=phone)).appointments.append(appointment)

        return list(groups.values())

    def _build_message(self, group: ClientGroup, is_tomorrow: bool) -> ReminderMessage:
        return ReminderMessage(
            client_name=group.client_name,
            appointment_date=group.appointments[0].date,
            entries=[
                ReminderEntry(
                    start_time=a.start_time,
                    service_name=a.service.name if a.service else FALLBACK_SERVICE_NAME,
                )
                for a in group.appointments
            ],
            is_tomorrow=is_tomorrow,
        )

    async def _dispatch_group(
        self,
        group: ClientGroup,
        is_tomorrow: bool,
        report: CycleReport,
        abort: asyncio.Event,
    ) -> None:
        ids = group.appointment_ids
        message = self._build_message(group, is_tomorrow)

        try:
            message_id = await asyncio.wait_for(
                self.notifier.send(group.phone, message), timeout=self.notifier_timeout
            )
        except asyncio.TimeoutError:
            logger.warning(f"Notifier timed out for {group.phone} (appointments {ids})")
            self._record_failure(report, group, FailureKind.NOTIFIER_TIMEOUT, "timeout")
            return
        except NotifierError as e:
            logger.warning(f"Notifier failed for {group.phone} (appointments {ids}): {e}")
            self._record_failure(report, group, FailureKind.NOTIFIER_ERROR, str(e))
            return
        except Exception as e:
            logger.error(
                f"Unexpected notifier error for {group.phone} (appointments {ids}): {e}",
                exc_info=True,
            )
            self._record_failure(report, group, FailureKind.NOTIFIER_ERROR, repr(e))
            return

        try:
            marked = await self.store.mark_reminders_sent(ids)
        except StoreUnavailableError as e:
            logger.error(
                f"Reminder {message_id} sent to {group.phone} but appointments {ids} "
                f"could not be flagged; aborting cycle: {e}"
            )
            self._record_failure(
                report, group, FailureKind.STORE_ERROR, str(e), message_id=message_id
            )
            report.aborted = True
            abort.set()
            return

        if len(marked) != len(ids):
            logger.warning(
                f"Appointments {sorted(set(ids) - set(marked))} vanished before being flagged"
            )

        report.clients_notified += 1
        report.appointments_marked += len(marked)
        logger.info(
            f"Reminder {message_id} sent to {group.client_name} ({group.phone}) "
            f"for {len(ids)} appointment(s)"
        )

    @staticmethod
    def _record_failure(
        report: CycleReport,
        group: ClientGroup,
        kind: FailureKind,
        detail: str,
        message_id: Optional[str] = None,
    ) -> None:
        report.failures.append(
            DispatchFailure(
                phone=group.phone,
                appointment_ids=group.appointment_ids,
                kind=kind,
                detail=detail,
                message_id=message_id,
            )
        )
