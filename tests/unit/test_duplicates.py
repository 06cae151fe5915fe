"""
Unit tests for duplicate booking reconciliation.
"""

from datetime import date, time

import pytest

from scheduler.duplicates import find_duplicates, reconcile, run_reconciliation

THURSDAY = date(2025, 7, 17)


def add_booking(store, appointment_id, client_id=5, start=time(10, 0), service_id=1, day=THURSDAY):
    return store.add_appointment(
        id=appointment_id,
        client_id=client_id,
        service_id=service_id,
        date=day,
        start_time=start,
        end_time=time(start.hour + 1, start.minute),
    )


@pytest.fixture
def duplicated_store(store):
    add_booking(store, 12)
    add_booking(store, 10)
    add_booking(store, 11)
    add_booking(store, 20, client_id=6)  # same slot, other client
    add_booking(store, 21, service_id=2)  # same slot, other service
    return store


def test_find_duplicates_keeps_lowest_id(duplicated_store):
    groups = find_duplicates(duplicated_store.appointments.values())

    assert len(groups) == 1
    assert groups[0].keep_id == 10
    assert groups[0].delete_ids == [11, 12]


def test_find_duplicates_none(store):
    add_booking(store, 1)
    add_booking(store, 2, start=time(12, 0))
    assert find_duplicates(store.appointments.values()) == []


@pytest.mark.asyncio
async def test_reconcile_deletes_extras(duplicated_store):
    report = await run_reconciliation(duplicated_store)

    assert report.groups_found == 1
    assert report.kept_ids == [10]
    assert sorted(report.deleted_ids) == [11, 12]
    assert sorted(duplicated_store.appointments) == [10, 20, 21]


@pytest.mark.asyncio
async def test_reconcile_is_idempotent(duplicated_store):
    await run_reconciliation(duplicated_store)
    second = await run_reconciliation(duplicated_store)

    assert second.groups_found == 0
    assert second.deleted_count == 0


@pytest.mark.asyncio
async def test_dry_run_deletes_nothing(duplicated_store):
    report = await run_reconciliation(duplicated_store, dry_run=True)

    assert report.dry_run is True
    assert sorted(report.deleted_ids) == [11, 12]
    assert 11 in duplicated_store.appointments
    assert 12 in duplicated_store.appointments


@pytest.mark.asyncio
async def test_already_deleted_row_is_not_counted(duplicated_store):
    groups = find_duplicates(duplicated_store.appointments.values())
    del duplicated_store.appointments[11]

    report = await reconcile(duplicated_store, groups)

    assert report.deleted_ids == [12]


@pytest.mark.asyncio
async def test_reconciliation_date_range(store):
    add_booking(store, 1)
    add_booking(store, 2)
    add_booking(store, 3, day=date(2025, 7, 18))
    add_booking(store, 4, day=date(2025, 7, 18))

    report = await run_reconciliation(store, start_date=THURSDAY, end_date=THURSDAY)

    assert report.deleted_ids == [2]
    assert sorted(store.appointments) == [1, 3, 4]
