"""Storage access for the per-person schedule index (``user_schedules``).

Rows here are a projection of task slots. Only the synchronizer writes them;
everything else reads.
"""

import asyncio
import logging
import weakref
from collections.abc import AsyncIterator, Iterable
from contextlib import AsyncExitStack, asynccontextmanager
from datetime import datetime

from opsdesk.core import db_client
from opsdesk.core.config import Constants
from opsdesk.core.db_client import sanitize_param
from opsdesk.domain.schedule import ScheduleEntry
from opsdesk.domain.task import SlotStatus, TaskStatus
from opsdesk.modules.scheduling.slot_time import Interval, to_storage


logger = logging.getLogger(__name__)

COLLECTION = "user_schedules"

# An entry disappears once no coroutine holds or waits on its lock
_locks: weakref.WeakValueDictionary[tuple[str, str], asyncio.Lock] = weakref.WeakValueDictionary()


def _lock_for(kind: str, key: str) -> asyncio.Lock:
    lock = _locks.get((kind, key))
    if lock is None:
        lock = asyncio.Lock()
        _locks[(kind, key)] = lock
    return lock


def person_lock(user_id: str) -> asyncio.Lock:
    """Per-person lock serializing check-then-write on that person's bookings (single process)."""
    return _lock_for("person", user_id)


def task_lock(task_id: str) -> asyncio.Lock:
    """Per-task lock serializing read-modify-write of one task document."""
    return _lock_for("task", task_id)


@asynccontextmanager
async def hold_locks(*, user_ids: Iterable[str | None] = (), task_id: str | None = None) -> AsyncIterator[None]:
    """Hold the locks of every given person, then the task's.

    Persons are locked in sorted order and always before the task, so two
    callers locking overlapping sets cannot deadlock.
    """
    locks = [person_lock(user_id) for user_id in sorted({user_id for user_id in user_ids if user_id})]
    if task_id:
        locks.append(task_lock(task_id))

    async with AsyncExitStack() as stack:
        for lock in locks:
            await stack.enter_async_context(lock)
        yield


async def find_for_person(
    *,
    user_id: str,
    start: datetime,
    end: datetime,
    exclude_task_id: str | None = None,
    limit: int = Constants.SCHEDULE_QUERY_LIMIT,
) -> list[ScheduleEntry]:
    """Bookings of a person overlapping [start, end), earliest first."""
    filters = [
        f'user_id = "{sanitize_param(user_id)}"',
        f'start_at < "{to_storage(end)}"',
        f'end_at > "{to_storage(start)}"',
    ]
    if exclude_task_id is not None:
        filters.append(f'task_id != "{sanitize_param(exclude_task_id)}"')

    records = await db_client.list_records(
        collection=COLLECTION,
        filter_query=" && ".join(filters),
        per_page=limit,
        sort="+start_at",
    )
    return [ScheduleEntry.model_validate(record) for record in records]


async def list_for_task(*, task_id: str) -> list[ScheduleEntry]:
    """All rows owned by a task."""
    records = await db_client.list_records(
        collection=COLLECTION,
        filter_query=f'task_id = "{sanitize_param(task_id)}"',
        per_page=Constants.SCHEDULE_QUERY_LIMIT,
        sort="+start_at",
    )
    return [ScheduleEntry.model_validate(record) for record in records]


async def delete_for_task(*, task_id: str, keep_slot_ids: set[str] | None = None) -> int:
    """Delete a task's rows, except those whose slot id is in keep_slot_ids.

    Returns:
        Number of rows deleted
    """
    keep = keep_slot_ids or set()
    deleted = 0
    for entry in await list_for_task(task_id=task_id):
        if entry.slot_id in keep:
            continue
        await db_client.delete_record(collection=COLLECTION, record_id=entry.id)
        deleted += 1

    if deleted:
        logger.info("Removed schedule rows", extra={"task_id": task_id, "count": deleted})
    return deleted


async def upsert_entry(
    *,
    user_id: str,
    task_id: str,
    slot_id: str,
    interval: Interval,
    status: SlotStatus,
    task_status: TaskStatus,
) -> ScheduleEntry:
    """Insert or update the row keyed by (task_id, slot_id)."""
    record = await db_client.upsert_record(
        collection=COLLECTION,
        data={
            "user_id": user_id,
            "task_id": task_id,
            "slot_id": slot_id,
            "start_at": to_storage(interval.start),
            "end_at": to_storage(interval.end),
            "status": str(status),
            "task_status": str(task_status),
        },
        conflict_fields=["task_id", "slot_id"],
    )
    return ScheduleEntry.model_validate(record)
