"""
Supabase appointment store.
Handles all database interactions for appointments and the stylist
calendar configuration read by the scheduling engine.

The reminder cycle reads one snapshot per run through
`list_appointments_by_date` and flips delivery state through
`mark_reminders_sent`, a single UPDATE that PostgREST executes in one
statement, so a group is marked all-or-nothing.

Every failure of the underlying client is re-raised as
StoreUnavailableError; callers decide whether that is fatal. A single row
that fails validation in a bulk read is skipped and logged instead, so one
bad record cannot hide the rest of the day.
"""

import logging
from datetime import date, datetime, time, timedelta
from typing import Any, Dict, List, Optional, Tuple

from supabase import Client as SupabaseClientType
from supabase import create_client

from config import settings
from models.appointment import Appointment, AppointmentCreate, AppointmentStatus
from models.service import Service
from models.working_hours import (
    SalonExtraordinaryDay,
    StylistVacation,
    StylistWorkingHours,
)
from utils.datetime_utils import parse_iso_datetime, to_iso_string, utc_now
from utils.exceptions import StoreUnavailableError

logger = logging.getLogger(__name__)

# Embedded resources for queries the reminder cycle needs
_APPOINTMENT_DETAILS = "*, client:clients(*), service:services(*)"


class SupabaseClient:
    """
    Supabase database client wrapper.

    Uses service_role key which bypasses RLS; this store is only used by
    server-side jobs and admin tooling.

    Calendar configuration (working hours, services) changes rarely and is
    cached in memory for a few minutes.
    """

    def __init__(
        self,
        url: Optional[str] = None,
        key: Optional[str] = None,
        client: Optional[SupabaseClientType] = None,
    ):
        self.client: SupabaseClientType = client or create_client(
            url or settings.supabase_url, key or settings.supabase_key
        )

        # Format: {cache_key: (data, expiry_time)}
        self._cache: Dict[str, Tuple[Any, datetime]] = {}
        self._cache_ttl = timedelta(minutes=5)

    # ========== Cache Helpers ==========

    def _get_from_cache(self, key: str) -> Optional[Any]:
        """Get value from cache if not expired."""
        if key not in self._cache:
            return None

        data, expiry = self._cache[key]
        if utc_now() > expiry:
            del self._cache[key]
            return None

        return data

    def _set_cache(self, key: str, value: Any) -> None:
        self._cache[key] = (value, utc_now() + self._cache_ttl)

    def clear_cache(self, pattern: Optional[str] = None) -> None:
        """Clear cache entries matching pattern, or all if pattern is None."""
        if pattern is None:
            self._cache.clear()
            return
        for k in [k for k in self._cache if pattern in k]:
            del self._cache[k]

    # ========== Appointment Reads ==========

    async def list_appointments_by_date(
        self, day: date, unreadable: Optional[List[Optional[int]]] = None
    ) -> List[Appointment]:
        """
        All appointments of one day, any status, with client and service.

        Args:
            day: Appointment date
            unreadable: When given, receives the ids of rows that failed
                validation and were skipped

        Raises:
            StoreUnavailableError: The query itself failed
        """
        try:
            response = (
                self.client.table("appointments")
                .select(_APPOINTMENT_DETAILS)
                .eq("date", day.isoformat())
                .order("start_time", desc=False)
                .order("id", desc=False)
                .execute()
            )
        except Exception as e:
            raise StoreUnavailableError(
                f"Failed to list appointments for {day}: {e}"
            ) from e

        return self._parse_appointments(response.data, unreadable)

    async def list_appointments_by_stylist_and_date(
        self, stylist_id: int, day: date
    ) -> List[Appointment]:
        """Appointments of one stylist on one day, any status."""
        try:
            response = (
                self.client.table("appointments")
                .select("*")
                .eq("stylist_id", stylist_id)
                .eq("date", day.isoformat())
                .order("start_time", desc=False)
                .execute()
            )
            return [self._parse_appointment(item) for item in response.data]
        except Exception as e:
            raise StoreUnavailableError(
                f"Failed to list appointments for stylist {stylist_id} on {day}: {e}"
            ) from e

    async def list_appointments(
        self,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> List[Appointment]:
        """
        Appointments within an optional inclusive date range (admin operation).

        Args:
            start_date: First day to include
            end_date: Last day to include

        Returns:
            Appointments ordered by id
        """
        try:
            query = self.client.table("appointments").select("*")
            if start_date:
                query = query.gte("date", start_date.isoformat())
            if end_date:
                query = query.lte("date", end_date.isoformat())
            response = query.order("id", desc=False).execute()
        except Exception as e:
            raise StoreUnavailableError(f"Failed to list appointments: {e}") from e

        return self._parse_appointments(response.data)

    async def get_appointment(self, appointment_id: int) -> Optional[Appointment]:
        try:
            response = (
                self.client.table("appointments")
                .select(_APPOINTMENT_DETAILS)
                .eq("id", appointment_id)
                .execute()
            )
            if response.data:
                return self._parse_appointment(response.data[0])
            return None
        except Exception as e:
            raise StoreUnavailableError(f"Failed to get appointment: {e}") from e

    # ========== Appointment Writes ==========

    async def insert_appointment(self, row: AppointmentCreate) -> Appointment:
        """Insert an appointment. `row.end_time` must already be resolved."""
        if row.end_time is None:
            raise ValueError("end_time must be resolved before insert")
        try:
            data = row.model_dump(exclude_none=True, mode="json")
            data["reminder_sent"] = False
            response = self.client.table("appointments").insert(data).execute()

            if not response.data:
                raise ValueError("no data returned")

            return self._parse_appointment(response.data[0])
        except Exception as e:
            raise StoreUnavailableError(f"Failed to create appointment: {e}") from e

    async def update_appointment_times(
        self, appointment_id: int, day: date, start: time, end: time
    ) -> Optional[Appointment]:
        """Move or resize an appointment. Returns None when it no longer exists."""
        try:
            update_data = {
                "date": day.isoformat(),
                "start_time": start.isoformat(),
                "end_time": end.isoformat(),
                "updated_at": to_iso_string(utc_now()),
            }
            response = (
                self.client.table("appointments")
                .update(update_data)
                .eq("id", appointment_id)
                .execute()
            )
            if not response.data:
                return None
            return self._parse_appointment(response.data[0])
        except Exception as e:
            raise StoreUnavailableError(f"Failed to update appointment: {e}") from e

    async def delete_appointment(self, appointment_id: int) -> bool:
        """Hard delete. Returns False when the row was already gone."""
        try:
            response = (
                self.client.table("appointments")
                .delete()
                .eq("id", appointment_id)
                .execute()
            )
            return len(response.data) > 0
        except Exception as e:
            raise StoreUnavailableError(f"Failed to delete appointment: {e}") from e

    async def mark_reminder_sent(self, appointment_id: int) -> bool:
        """Flag one appointment as reminded. Idempotent.

        Returns:
            True if the appointment exists, False otherwise
        """
        return bool(await self.mark_reminders_sent([appointment_id]))

    async def mark_reminders_sent(self, appointment_ids: List[int]) -> List[int]:
        """
        Flag a client group as reminded in one statement.

        Args:
            appointment_ids: Appointments of the group

        Returns:
            Ids of the rows that exist and are now flagged
        """
        if not appointment_ids:
            return []
        try:
            response = (
                self.client.table("appointments")
                .update({"reminder_sent": True, "updated_at": to_iso_string(utc_now())})
                .in_("id", appointment_ids)
                .execute()
            )
            return sorted(item["id"] for item in response.data)
        except Exception as e:
            raise StoreUnavailableError(f"Failed to mark reminders sent: {e}") from e

    # ========== Calendar Configuration ==========

    async def list_working_hours(self, stylist_id: int) -> List[StylistWorkingHours]:
        """Weekly working hours of a stylist (cached)."""
        cache_key = f"working_hours:{stylist_id}"
        cached = self._get_from_cache(cache_key)
        if cached is not None:
            return cached

        try:
            response = (
                self.client.table("stylist_working_hours")
                .select("*")
                .eq("stylist_id", stylist_id)
                .execute()
            )
            hours = [StylistWorkingHours(**item) for item in response.data]
        except Exception as e:
            raise StoreUnavailableError(f"Failed to get working hours: {e}") from e

        self._set_cache(cache_key, hours)
        return hours

    async def list_vacations(self, stylist_id: int, day: date) -> List[StylistVacation]:
        """Active vacations of a stylist covering a day."""
        try:
            response = (
                self.client.table("stylist_vacations")
                .select("*")
                .eq("stylist_id", stylist_id)
                .eq("is_active", True)
                .lte("start_date", day.isoformat())
                .gte("end_date", day.isoformat())
                .execute()
            )
            return [StylistVacation(**item) for item in response.data]
        except Exception as e:
            raise StoreUnavailableError(f"Failed to get vacations: {e}") from e

    async def get_extraordinary_day(self, day: date) -> Optional[SalonExtraordinaryDay]:
        try:
            response = (
                self.client.table("salon_extraordinary_days")
                .select("*")
                .eq("date", day.isoformat())
                .execute()
            )
            if response.data:
                return SalonExtraordinaryDay(**response.data[0])
            return None
        except Exception as e:
            raise StoreUnavailableError(f"Failed to get extraordinary day: {e}") from e

    async def get_service(self, service_id: int) -> Optional[Service]:
        """Service by id (cached)."""
        cache_key = f"service:{service_id}"
        cached = self._get_from_cache(cache_key)
        if cached is not None:
            return cached

        try:
            response = (
                self.client.table("services").select("*").eq("id", service_id).execute()
            )
        except Exception as e:
            raise StoreUnavailableError(f"Failed to get service: {e}") from e

        if not response.data:
            return None
        service = Service(**response.data[0])
        self._set_cache(cache_key, service)
        return service

    # ========== Helper Methods ==========

    def _parse_appointments(
        self, rows: List[dict], unreadable: Optional[List[Optional[int]]] = None
    ) -> List[Appointment]:
        """Parse rows one by one, skipping those that fail validation."""
        appointments = []
        for item in rows:
            try:
                appointments.append(self._parse_appointment(item))
            except (ValueError, TypeError) as e:
                logger.warning(f"Skipping unreadable appointment row {item.get('id')}: {e}")
                if unreadable is not None:
                    unreadable.append(item.get("id"))
        return appointments

    def _parse_appointment(self, item: dict) -> Appointment:
        """
        Parse appointment data from database response.

        Embedded client/service objects come back as null when the
        foreign row is missing; those are dropped.
        """
        item = item.copy()
        for field in ["created_at", "updated_at"]:
            if isinstance(item.get(field), str):
                item[field] = parse_iso_datetime(item[field])
        for embedded in ["client", "service"]:
            if item.get(embedded) is None:
                item.pop(embedded, None)
        if not item.get("status"):
            item["status"] = AppointmentStatus.SCHEDULED.value
        item["reminder_sent"] = bool(item.get("reminder_sent"))
        return Appointment(**item)


# Global database client instance
_db_client: Optional[SupabaseClient] = None


def get_db_client() -> SupabaseClient:
    """Get or create database client instance."""
    global _db_client
    if _db_client is None:
        _db_client = SupabaseClient()
    return _db_client
