"""Keep the schedule index consistent with task documents."""

import logging

from opsdesk.core import db_client
from opsdesk.core.config import Constants
from opsdesk.core.logging import span
from opsdesk.domain.task import SlotStatus, Task, TaskStatus
from opsdesk.modules.scheduling import schedule_index
from opsdesk.modules.scheduling.slot_time import resolve_interval


logger = logging.getLogger(__name__)


def holds_booking(task: Task) -> bool:
    """Whether a task's slots occupy its receiver's time at all."""
    return not task.is_archived and task.status != TaskStatus.CANCELLED


def bookable_slots(task: Task) -> list:
    """Slots that should appear in the index (cancelled slots free their time)."""
    if not holds_booking(task):
        return []
    return [slot for slot in task.slots if slot.status != SlotStatus.CANCELLED]


async def sync_task_schedule(task: Task) -> int:
    """Project a task's current slots onto its receiver's schedule.

    Rows for vanished slots are deleted, present slots are upserted keyed by
    (task, slot). Slots whose interval cannot be resolved are skipped and
    logged rather than failing the whole sync.

    Returns:
        Number of rows written
    """
    with span("scheduling.sync_task_schedule"):
        slots = bookable_slots(task)

        if not task.receiver_id or not slots:
            await schedule_index.delete_for_task(task_id=task.id)
            return 0

        await schedule_index.delete_for_task(task_id=task.id, keep_slot_ids={slot.id for slot in slots})

        written = 0
        for slot in slots:
            interval = resolve_interval(slot)
            if interval is None:
                logger.warning(
                    "Skipping unresolvable slot during schedule sync",
                    extra={"task_id": task.id, "slot_id": slot.id, "start": slot.start, "end": slot.end},
                )
                continue

            await schedule_index.upsert_entry(
                user_id=task.receiver_id,
                task_id=task.id,
                slot_id=slot.id,
                interval=interval,
                status=slot.status,
                task_status=task.status,
            )
            written += 1

        logger.info("Synced task schedule", extra={"task_id": task.id, "rows": written})
        return written


async def rebuild_all() -> int:
    """Reconcile the index against every task (maintenance).

    Returns:
        Number of tasks synchronized
    """
    with span("scheduling.rebuild_all"):
        page = 1
        synced = 0
        while True:
            records = await db_client.list_records(
                collection="tasks",
                page=page,
                per_page=Constants.DEFAULT_PER_PAGE_LIMIT,
            )
            if not records:
                break
            for record in records:
                await sync_task_schedule(Task.model_validate(record))
                synced += 1
            page += 1

        logger.info("Rebuilt schedule index", extra={"tasks": synced})
        return synced
