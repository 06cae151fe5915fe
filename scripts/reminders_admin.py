"""
Maintenance commands for the reminder engine.

    python scripts/reminders_admin.py remind-now [--date YYYY-MM-DD]
    python scripts/reminders_admin.py dedupe [--dry-run] [--from YYYY-MM-DD] [--to YYYY-MM-DD]

remind-now runs one dispatch cycle in this process. Do not use it while the
service is running: the service's scheduler cannot see this process, so
use /admin_remind_now instead.
"""

import asyncio
import sys
from datetime import date
from pathlib import Path

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from db import get_db_client
from notifier import get_notifier
from scheduler.duplicates import run_reconciliation
from scheduler.reminders import build_reminder_scheduler
from utils.exceptions import CycleAbortedError, DatabaseError
from utils.logging_config import setup_logging

logger = setup_logging(
    name=__name__, log_level="INFO", log_file="maintenance.log", log_dir="logs"
)


async def remind_now(target_date=None) -> int:
    notifier = get_notifier()
    reminder_scheduler = build_reminder_scheduler(store=get_db_client(), notifier=notifier)
    try:
        report = await reminder_scheduler.trigger_now(target_date=target_date)
    except CycleAbortedError as e:
        print(f"✗ {e}: {e.report.summary()}")
        return 1
    finally:
        await notifier.close()

    print(f"✓ {report.summary()}")
    if report.invalid_phone_ids:
        print(f"  Invalid phone numbers on appointments: {report.invalid_phone_ids}")
    for failure in report.failures:
        print(f"  ✗ {failure.phone} {failure.appointment_ids}: {failure.kind} {failure.detail}")
    return 0 if not report.failures else 2


async def dedupe(start_date=None, end_date=None, dry_run: bool = False) -> int:
    report = await run_reconciliation(
        get_db_client(), start_date=start_date, end_date=end_date, dry_run=dry_run
    )
    action = "Would remove" if dry_run else "Removed"
    print(f"✓ {report.groups_found} duplicate groups. {action} {report.deleted_count}: {report.deleted_ids}")
    return 0


async def main():
    """Main function for CLI usage."""
    import argparse

    parser = argparse.ArgumentParser(description="Salon reminder engine maintenance")
    subparsers = parser.add_subparsers(dest="command", required=True)

    remind_parser = subparsers.add_parser("remind-now", help="Send reminders immediately")
    remind_parser.add_argument(
        "--date",
        type=date.fromisoformat,
        help="Appointment date to remind about (default: the next target date)",
    )

    dedupe_parser = subparsers.add_parser("dedupe", help="Remove duplicate bookings")
    dedupe_parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Only report what would be removed",
    )
    dedupe_parser.add_argument("--from", dest="start_date", type=date.fromisoformat)
    dedupe_parser.add_argument("--to", dest="end_date", type=date.fromisoformat)

    args = parser.parse_args()

    try:
        if args.command == "remind-now":
            return await remind_now(target_date=args.date)
        return await dedupe(
            start_date=args.start_date, end_date=args.end_date, dry_run=args.dry_run
        )
    except DatabaseError as e:
        logger.error(f"Database unavailable: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
