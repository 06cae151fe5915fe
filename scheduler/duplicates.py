"""
Duplicate booking reconciliation.

Two appointments are duplicates when they share date, start time, client,
stylist and service. Within each such group the lowest id (the first row
created) is kept and the rest are hard-deleted: duplicates are data-entry
errors, not real bookings. Running it again finds nothing to do.
"""

from collections import defaultdict
from datetime import date
from typing import Dict, Iterable, List, Optional

from models.appointment import Appointment
from models.reports import DuplicateGroup, DuplicateKey, ReconcileReport
from utils.logging_config import setup_logging

logger = setup_logging(
    name=__name__, log_level="INFO", log_file="maintenance.log", log_dir="logs"
)


def duplicate_key(appointment: Appointment) -> DuplicateKey:
    return DuplicateKey(
        date=appointment.date,
        start_time=appointment.start_time,
        client_id=appointment.client_id,
        stylist_id=appointment.stylist_id,
        service_id=appointment.service_id,
    )


def find_duplicates(appointments: Iterable[Appointment]) -> List[DuplicateGroup]:
    """
    Group appointments by booking identity.

    Returns:
        Groups with more than one member, ordered by their kept id
    """
    by_key: Dict[DuplicateKey, List[int]] = defaultdict(list)
    for appointment in appointments:
        by_key[duplicate_key(appointment)].append(appointment.id)

    groups = [
        DuplicateGroup(key=key, appointment_ids=sorted(set(ids)))
        for key, ids in by_key.items()
        if len(set(ids)) > 1
    ]
    return sorted(groups, key=lambda g: g.keep_id)


async def reconcile(
    store, groups: Iterable[DuplicateGroup], dry_run: bool = False
) -> ReconcileReport:
    """
    Collapse each duplicate group to its lowest id.

    Args:
        store: Appointment store providing delete_appointment
        groups: Output of find_duplicates
        dry_run: Report what would be deleted without deleting

    Returns:
        ReconcileReport listing kept and deleted ids
    """
    report = ReconcileReport(dry_run=dry_run)

    for group in groups:
        report.groups_found += 1
        report.kept_ids.append(group.keep_id)
        logger.info(
            f"Duplicate group {group.key.date} {group.key.start_time} "
            f"client={group.key.client_id} stylist={group.key.stylist_id}: "
            f"keeping {group.keep_id}, removing {group.delete_ids}"
        )
        for appointment_id in group.delete_ids:
            if dry_run:
                report.deleted_ids.append(appointment_id)
                continue
            # A row already gone (concurrent cleanup) is not an error
            if await store.delete_appointment(appointment_id):
                report.deleted_ids.append(appointment_id)
            else:
                logger.warning(f"Duplicate appointment {appointment_id} was already deleted")

    logger.info(
        f"Duplicate reconciliation {'(dry run) ' if dry_run else ''}complete: "
        f"{report.groups_found} groups, {report.deleted_count} removed"
    )
    return report


async def run_reconciliation(
    store,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    dry_run: bool = False,
) -> ReconcileReport:
    """Load appointments from the store and reconcile their duplicates."""
    appointments = await store.list_appointments(start_date=start_date, end_date=end_date)
    logger.info(f"Checking {len(appointments)} appointments for duplicates")
    groups = find_duplicates(appointments)
    return await reconcile(store, groups, dry_run=dry_run)
