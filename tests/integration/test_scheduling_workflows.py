"""Integration tests for scheduling workflows against a real SQLite file."""

import pytest

from opsdesk.core import db_client
from opsdesk.core.errors import ScheduleConflictError
from opsdesk.domain.create_models import ExtensionRequestCreate, ExtensionResponseCreate, SlotCreate, TaskCreate
from opsdesk.modules.scheduling import availability, extensions, schedule_index, service, sync


def _task(*spans: tuple[str, str], receiver_id: str = "42", name: str = "Boiler service") -> TaskCreate:
    return TaskCreate(
        assigner_id="7",
        receiver_id=receiver_id,
        task_name=name,
        slots=[SlotCreate(start=start, end=end, slot_date="2031-03-04") for start, end in spans],
    )


async def _bookings(task_id: str) -> list[tuple[str, str]]:
    entries = await schedule_index.list_for_task(task_id=task_id)
    return [(e.start_at.strftime("%H:%M"), e.end_at.strftime("%H:%M")) for e in entries]


@pytest.mark.integration
async def test_book_conflict_extend_workflow(sqlite_db) -> None:
    """Booking, a rejected double-booking, then a cascading extension."""
    task = await service.create_task(_task(("09:00", "10:00"), ("10:00", "11:00")))
    assert await _bookings(task.id) == [("09:00", "10:00"), ("10:00", "11:00")]

    with pytest.raises(ScheduleConflictError) as exc_info:
        await service.create_task(_task(("10:30", "11:30"), name="Gas check"))
    assert exc_info.value.task_id == task.id
    assert exc_info.value.slot_id == task.slots[1].id

    task = await extensions.request_extension(
        task_id=task.id,
        slot_id=task.slots[0].id,
        payload=ExtensionRequestCreate(requested_by="42", minutes=15, reason="parts"),
    )
    request = task.slots[0].extension_requests[0]
    outcome = await extensions.respond_to_extension(
        task_id=task.id,
        slot_id=task.slots[0].id,
        extension_id=request.id,
        payload=ExtensionResponseCreate(responded_by="7", status="approved"),
    )

    assert outcome.adjustment_minutes == 15
    assert [(s.start, s.end) for s in outcome.task.slots] == [("09:00", "10:15"), ("10:15", "11:15")]
    assert await _bookings(task.id) == [("09:00", "10:15"), ("10:15", "11:15")]

    stored = await service.get_task(task_id=task.id)
    assert stored.time_tracking.total_extended_minutes == 15
    assert stored.slots[0].extension_requests[0].status == "approved"


@pytest.mark.integration
async def test_archive_releases_and_unarchive_rebooks(sqlite_db) -> None:
    task = await service.create_task(_task(("13:00", "14:00")))

    await service.archive_task(task_id=task.id, actor_user_id="7")
    replacement = await service.create_task(_task(("13:00", "14:00"), name="Replacement"))
    assert await _bookings(task.id) == []

    with pytest.raises(ScheduleConflictError):
        await service.unarchive_task(task_id=task.id)

    await service.archive_task(task_id=replacement.id, actor_user_id="7")
    restored = await service.unarchive_task(task_id=task.id)

    assert restored.is_archived is False
    assert await _bookings(task.id) == [("13:00", "14:00")]
    assert [t.id for t in await service.list_tasks(user_id="42", archived=True)] == [replacement.id]


@pytest.mark.integration
async def test_listing_and_availability(sqlite_db) -> None:
    first = await service.create_task(_task(("08:00", "12:00")))
    second = await service.create_task(_task(("14:00", "15:00"), name="Follow-up"))
    await service.create_task(_task(("08:00", "12:00"), receiver_id="43", name="Other person"))

    by_date = await service.list_tasks_for_date(user_id="42", day="2031-03-04")
    result = await availability.suggest(user_id="42", from_date="2031-03-04", lookahead_days=1, duration_minutes=60)

    assert [t.id for t in by_date] == [first.id, second.id]
    assert [(s.start.strftime("%H:%M"), s.end.strftime("%H:%M")) for s in result.suggestions] == [
        ("00:00", "01:00"),
        ("12:00", "13:00"),
        ("15:00", "16:00"),
    ]


@pytest.mark.integration
async def test_rebuild_all_restores_dropped_rows(sqlite_db) -> None:
    task = await service.create_task(_task(("09:00", "10:00"), ("11:00", "12:00")))
    for entry in await schedule_index.list_for_task(task_id=task.id):
        await db_client.delete_record(collection=schedule_index.COLLECTION, record_id=entry.id)

    synced = await sync.rebuild_all()

    assert synced == 1
    assert await _bookings(task.id) == [("09:00", "10:00"), ("11:00", "12:00")]


@pytest.mark.integration
async def test_upsert_keeps_one_row_per_slot(sqlite_db) -> None:
    task = await service.create_task(_task(("09:00", "10:00")))

    await sync.sync_task_schedule(task)
    await sync.sync_task_schedule(task)

    rows = await db_client.list_records(
        collection=schedule_index.COLLECTION, filter_query=f'task_id = "{task.id}"'
    )
    assert len(rows) == 1
    assert rows[0]["user_id"] == "42"
