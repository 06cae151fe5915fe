"""
Admin commands for reminder dispatch and calendar maintenance.
Accessible only to configured admin users.
"""

import logging
from datetime import date, datetime
from html import escape
from typing import Optional

from aiogram import Router
from aiogram.filters import Command, CommandObject
from aiogram.types import Message

from config import settings
from db import get_db_client
from models.placement import ConflictReason, PlacementCandidate
from models.reports import CycleReport
from scheduler.calendar import load_calendar
from scheduler.conflicts import ConflictEngine
from scheduler.duplicates import find_duplicates, run_reconciliation
from scheduler.reminders import get_reminder_scheduler
from utils.datetime_utils import format_hhmm
from utils.exceptions import AlreadyRunningError, CycleAbortedError, DatabaseError
from utils.phone import format_phone_for_display

logger = logging.getLogger(__name__)

admin_router = Router()

# Telegram messages are capped; long id lists get truncated
_MAX_LISTED_IDS = 30
_MAX_SUGGESTED_SLOTS = 8


def is_admin_user(telegram_id: int) -> bool:
    """Check if user is admin."""
    return settings.is_admin(telegram_id)


async def require_admin(message: Message) -> bool:
    """Check admin access and send error if not admin."""
    if not is_admin_user(message.from_user.id):
        await message.answer(
            "❌ Access denied. This command is only available to administrators."
        )
        return False
    return True


def format_cycle_report(report: CycleReport) -> str:
    """HTML summary of a reminder cycle."""
    text = (
        f"📨 <b>Reminders for {report.target_date.strftime('%d.%m.%Y')}</b>\n\n"
        f"• Clients notified: {report.clients_notified}\n"
        f"• Appointments marked: {report.appointments_marked}\n"
        f"• Already sent: {report.already_sent}\n"
        f"• Invalid phones: {len(report.invalid_phone_ids)}\n"
        f"• Unreadable rows: {len(report.unreadable_ids)}\n"
        f"• Failed: {report.failure_count}\n"
    )
    if report.invalid_phone_ids:
        ids = ", ".join(str(i) for i in report.invalid_phone_ids[:_MAX_LISTED_IDS])
        text += f"\n⚠️ Fix phone numbers for appointments: {ids}\n"
    for failure in report.failures[:_MAX_LISTED_IDS]:
        text += (
            f"❌ {escape(format_phone_for_display(failure.phone))} ({failure.kind}): "
            f"appointments {failure.appointment_ids}\n"
        )
    if report.aborted:
        text += "\n🛑 Cycle aborted on a database error; remaining clients will be retried."
    return text


def _parse_date_arg(args: Optional[str]) -> Optional[date]:
    if not args or not args.strip():
        return None
    return date.fromisoformat(args.strip())


# ========== Admin Menu ==========


@admin_router.message(Command("admin"))
async def cmd_admin(message: Message):
    """Admin panel entry point."""
    if not await require_admin(message):
        return

    admin_text = (
        "🔐 <b>Admin Panel</b>\n\n"
        "Available commands:\n"
        "• /admin_reminder_status - Reminder scheduler status\n"
        "• /admin_remind_now [YYYY-MM-DD] - Send reminders now\n"
        "• /admin_duplicates - List duplicate bookings\n"
        "• /admin_dedupe - Remove duplicate bookings\n"
        "• /admin_check stylist YYYY-MM-DD HH:MM HH:MM - Check a slot\n"
    )

    await message.answer(admin_text, parse_mode="HTML")


# ========== Reminders ==========


@admin_router.message(Command("admin_reminder_status"))
async def cmd_admin_reminder_status(message: Message):
    """Show scheduler state and the last cycle."""
    if not await require_admin(message):
        return

    scheduler = get_reminder_scheduler()
    if scheduler is None:
        await message.answer("⚠️ Reminder scheduler is not running.")
        return

    status = scheduler.status()
    next_fire = status["next_fire_at"]
    text = (
        f"⏰ <b>Reminder Scheduler</b>\n\n"
        f"• State: {status['state']}\n"
        f"• Next run: {next_fire.strftime('%d.%m.%Y %H:%M %Z') if next_fire else 'not armed'}\n"
        f"• Next target date: {status['target_date'].strftime('%d.%m.%Y')}\n"
    )
    if status["last_error"]:
        text += f"• Last error: {escape(status['last_error'])}\n"
    if status["last_report"]:
        text += "\n" + format_cycle_report(status["last_report"])

    await message.answer(text, parse_mode="HTML")


@admin_router.message(Command("admin_remind_now"))
async def cmd_admin_remind_now(message: Message, command: CommandObject):
    """Run a reminder cycle immediately."""
    if not await require_admin(message):
        return

    scheduler = get_reminder_scheduler()
    if scheduler is None:
        await message.answer("⚠️ Reminder scheduler is not running.")
        return

    try:
        target = _parse_date_arg(command.args)
    except ValueError:
        await message.answer("❌ Invalid date. Use YYYY-MM-DD.")
        return

    await message.answer("⏳ Sending reminders...")
    try:
        report = await scheduler.trigger_now(target_date=target)
    except AlreadyRunningError:
        await message.answer("⏳ A reminder cycle is already running. Try again later.")
        return
    except CycleAbortedError as e:
        logger.error(f"Manual reminder cycle aborted: {e}")
        await message.answer(format_cycle_report(e.report), parse_mode="HTML")
        return
    except DatabaseError as e:
        logger.error(f"Manual reminder cycle failed: {e}", exc_info=True)
        await message.answer(f"❌ Database unavailable: {escape(str(e))}")
        return

    logger.info(f"Manual reminder cycle by {message.from_user.id}: {report.summary()}")
    await message.answer(format_cycle_report(report), parse_mode="HTML")


# ========== Duplicates ==========


@admin_router.message(Command("admin_duplicates"))
async def cmd_admin_duplicates(message: Message):
    """List duplicate bookings without touching them."""
    if not await require_admin(message):
        return

    db = get_db_client()
    try:
        groups = find_duplicates(await db.list_appointments())
    except DatabaseError as e:
        logger.error(f"Error loading appointments: {e}", exc_info=True)
        await message.answer(f"❌ Error loading appointments: {escape(str(e))}")
        return

    if not groups:
        await message.answer("✅ No duplicate appointments found.")
        return

    text = f"🔁 <b>{len(groups)} duplicate groups</b>\n\n"
    for group in groups[:_MAX_LISTED_IDS]:
        text += (
            f"• {group.key.date.strftime('%d.%m')} {group.key.start_time.strftime('%H:%M')} "
            f"client {group.key.client_id}: keep {group.keep_id}, remove {group.delete_ids}\n"
        )
    text += "\nUse /admin_dedupe to remove them."
    await message.answer(text, parse_mode="HTML")


@admin_router.message(Command("admin_dedupe"))
async def cmd_admin_dedupe(message: Message):
    """Remove duplicate bookings, keeping the oldest of each group."""
    if not await require_admin(message):
        return

    try:
        report = await run_reconciliation(get_db_client())
    except DatabaseError as e:
        logger.error(f"Duplicate cleanup failed: {e}", exc_info=True)
        await message.answer(f"❌ Duplicate cleanup failed: {escape(str(e))}")
        return

    logger.info(
        f"Duplicate cleanup by {message.from_user.id}: "
        f"kept {report.kept_ids}, deleted {report.deleted_ids}"
    )
    await message.answer(
        f"🧹 Duplicate cleanup complete\n\n"
        f"• Groups: {report.groups_found}\n"
        f"• Removed: {report.deleted_count}",
    )


# ========== Placement check ==========


@admin_router.message(Command("admin_check"))
async def cmd_admin_check(message: Message, command: CommandObject):
    """Check whether a stylist can take an appointment at a given time."""
    if not await require_admin(message):
        return

    parts = (command.args or "").split()
    try:
        stylist_id, day, start, end = parts
        candidate = PlacementCandidate(
            stylist_id=int(stylist_id),
            date=date.fromisoformat(day),
            start=datetime.strptime(start, "%H:%M").time(),
            end=datetime.strptime(end, "%H:%M").time(),
        )
    except ValueError:
        await message.answer("Usage: /admin_check stylist_id YYYY-MM-DD HH:MM HH:MM")
        return

    db = get_db_client()
    try:
        calendar = await load_calendar(db, candidate.stylist_id, candidate.date)
        engine = ConflictEngine(db, calendar=calendar)
        result = await engine.check_placement(candidate)
        free = []
        if not result.ok and result.reason != ConflictReason.INVALID_INTERVAL:
            duration = datetime.combine(candidate.date, candidate.end) - datetime.combine(
                candidate.date, candidate.start
            )
            free = await engine.free_slots(candidate.stylist_id, candidate.date, duration)
    except DatabaseError as e:
        logger.error(f"Placement check failed: {e}", exc_info=True)
        await message.answer(f"❌ Database unavailable: {escape(str(e))}")
        return

    if result.ok:
        text = "✅ Slot available"
        if result.warnings:
            text += " (overlaps the stylist's break)"
        await message.answer(text)
        return

    status = calendar.working_status(candidate.stylist_id, candidate.date, candidate.start)
    text = f"❌ Not available: {result.reason.value}"
    if result.conflicting_ids:
        text += f" (appointments {result.conflicting_ids})"
    text += f"\nStylist at {format_hhmm(candidate.start)}: {status.value}"
    if free:
        text += "\nFree starts: " + ", ".join(
            format_hhmm(slot) for slot in free[:_MAX_SUGGESTED_SLOTS]
        )
    elif result.reason != ConflictReason.INVALID_INTERVAL:
        text += "\nNo free slot of that length on this day."
    await message.answer(text)


def register_admin_handlers(dp) -> None:
    """Register admin handlers with dispatcher."""
    dp.include_router(admin_router)
