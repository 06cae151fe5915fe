"""
Pytest configuration and shared fixtures.
"""

import asyncio
from datetime import date, datetime, time, timezone
from typing import Dict, List, Optional
from unittest.mock import MagicMock, patch

import pytest

from models.appointment import Appointment, AppointmentCreate
from models.client import Client
from models.reminder import ReminderMessage
from models.service import Service
from models.working_hours import (
    SalonExtraordinaryDay,
    StylistVacation,
    StylistWorkingHours,
)
from notifier.base import Notifier
from utils.exceptions import NotifierError, StoreUnavailableError

TIMEZONE = "Europe/Rome"

# Wednesday 16 July 2025, 09:00 in Rome (CEST, UTC+2)
NOW = datetime(2025, 7, 16, 7, 0, tzinfo=timezone.utc)
TODAY = date(2025, 7, 16)
TOMORROW = date(2025, 7, 17)


@pytest.fixture(autouse=True)
def mock_settings():
    """Mock settings for all tests."""
    with patch("config.settings") as mock_settings:
        mock_settings.bot_token = "test_token"
        mock_settings.supabase_url = "https://test.supabase.co"
        mock_settings.supabase_key = "test_key"
        mock_settings.salon_timezone = TIMEZONE
        mock_settings.reminder_fire_time = time(9, 0)
        mock_settings.reminder_days_ahead = 1
        mock_settings.reminder_catch_up_on_start = False
        mock_settings.default_country_code = "39"
        mock_settings.mobile_prefix_list = ("3",)
        mock_settings.dispatch_concurrency = 4
        mock_settings.notifier_timeout_seconds = 1.0
        mock_settings.notifier_backend = "log"
        mock_settings.environment = "test"
        mock_settings.admin_telegram_ids = None
        yield mock_settings


@pytest.fixture
def mock_supabase_client():
    """Create a mock Supabase client."""
    mock_client = MagicMock()
    mock_table = MagicMock()
    mock_client.table.return_value = mock_table
    return mock_client, mock_table


class InMemoryStore:
    """Async store double with the same interface as SupabaseClient."""

    def __init__(self):
        self.appointments: Dict[int, Appointment] = {}
        self.clients: Dict[int, Client] = {}
        self.services: Dict[int, Service] = {}
        self.working_hours: List[StylistWorkingHours] = []
        self.vacations: List[StylistVacation] = []
        self.extraordinary_days: Dict[date, SalonExtraordinaryDay] = {}
        self.mark_calls: List[List[int]] = []
        self.unreadable_ids: List[int] = []
        self.fail_reads = False
        self.fail_marks = False
        self._next_id = 1

    # Test helpers

    def add_client(self, client_id: int, first_name: str, phone: Optional[str], last_name: str = ""):
        self.clients[client_id] = Client(
            id=client_id, first_name=first_name, last_name=last_name, phone=phone
        )
        return self.clients[client_id]

    def add_service(self, service_id: int, name: str, duration: int = 60):
        self.services[service_id] = Service(id=service_id, name=name, duration=duration)
        return self.services[service_id]

    def add_appointment(self, **fields) -> Appointment:
        fields.setdefault("id", self._next_id)
        fields.setdefault("stylist_id", 1)
        fields.setdefault("service_id", 1)
        appointment = Appointment(**fields)
        self.appointments[appointment.id] = appointment
        self._next_id = max(self._next_id, appointment.id + 1)
        return appointment

    def _detailed(self, appointment: Appointment) -> Appointment:
        return appointment.model_copy(
            update={
                "client": self.clients.get(appointment.client_id),
                "service": self.services.get(appointment.service_id),
            }
        )

    def _check_reads(self):
        if self.fail_reads:
            raise StoreUnavailableError("connection refused")

    # Store interface

    async def list_appointments_by_date(self, day: date, unreadable=None) -> List[Appointment]:
        self._check_reads()
        if unreadable is not None:
            unreadable.extend(self.unreadable_ids)
        return [
            self._detailed(a)
            for a in sorted(self.appointments.values(), key=lambda a: (a.start_time, a.id))
            if a.date == day
        ]

    async def list_appointments_by_stylist_and_date(self, stylist_id: int, day: date):
        self._check_reads()
        return [
            a for a in self.appointments.values() if a.stylist_id == stylist_id and a.date == day
        ]

    async def list_appointments(self, start_date=None, end_date=None):
        self._check_reads()
        return [
            a
            for a in sorted(self.appointments.values(), key=lambda a: a.id)
            if (start_date is None or a.date >= start_date)
            and (end_date is None or a.date <= end_date)
        ]

    async def get_appointment(self, appointment_id: int) -> Optional[Appointment]:
        self._check_reads()
        appointment = self.appointments.get(appointment_id)
        return self._detailed(appointment) if appointment else None

    async def insert_appointment(self, row: AppointmentCreate) -> Appointment:
        return self.add_appointment(id=self._next_id, **row.model_dump())

    async def update_appointment_times(self, appointment_id, day, start, end):
        current = self.appointments.get(appointment_id)
        if current is None:
            return None
        updated = current.model_copy(update={"date": day, "start_time": start, "end_time": end})
        self.appointments[appointment_id] = updated
        return updated

    async def delete_appointment(self, appointment_id: int) -> bool:
        return self.appointments.pop(appointment_id, None) is not None

    async def mark_reminders_sent(self, appointment_ids: List[int]) -> List[int]:
        if self.fail_marks:
            raise StoreUnavailableError("connection reset")
        self.mark_calls.append(list(appointment_ids))
        marked = []
        for appointment_id in appointment_ids:
            if appointment_id in self.appointments:
                self.appointments[appointment_id] = self.appointments[appointment_id].model_copy(
                    update={"reminder_sent": True}
                )
                marked.append(appointment_id)
        return sorted(marked)

    async def list_working_hours(self, stylist_id: int):
        return [wh for wh in self.working_hours if wh.stylist_id == stylist_id]

    async def list_vacations(self, stylist_id: int, day: date):
        return [v for v in self.vacations if v.stylist_id == stylist_id and v.covers(day)]

    async def get_extraordinary_day(self, day: date):
        return self.extraordinary_days.get(day)

    async def get_service(self, service_id: int):
        return self.services.get(service_id)


class RecordingNotifier(Notifier):
    """Notifier double: records every send, optionally failing some phones."""

    name = "recording"

    def __init__(self):
        self.sent: List[tuple] = []
        self.fail_phones = set()
        self.delay = 0.0
        self.in_flight = 0
        self.max_in_flight = 0

    async def send(self, phone: str, message: ReminderMessage) -> str:
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
            if phone in self.fail_phones:
                raise NotifierError(f"provider rejected {phone}")
            self.sent.append((phone, message))
            return f"msg-{len(self.sent)}"
        finally:
            self.in_flight -= 1


@pytest.fixture
def store():
    """In-memory store with one stylist working Thursdays 09:00-19:00, break 13:00-14:00."""
    store = InMemoryStore()
    store.add_service(1, "Taglio", duration=60)
    store.add_service(2, "Piega", duration=45)
    store.working_hours.append(
        StylistWorkingHours(
            stylist_id=1,
            day_of_week=4,
            start_time=time(9, 0),
            end_time=time(19, 0),
            break_start_time=time(13, 0),
            break_end_time=time(14, 0),
        )
    )
    return store


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def clock():
    return lambda: NOW
