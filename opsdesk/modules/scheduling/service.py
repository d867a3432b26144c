"""Task service: creation, edits, status and archive lifecycle of scheduled tasks."""

import logging
from collections.abc import AsyncIterator
from contextlib import AbstractAsyncContextManager, asynccontextmanager
from datetime import UTC, date, datetime, time, timedelta

from opsdesk.core import db_client
from opsdesk.core.config import Constants
from opsdesk.core.db_client import sanitize_param
from opsdesk.core.errors import InvalidStateError, ScheduleValidationError
from opsdesk.core.logging import span
from opsdesk.domain.create_models import SlotCreate, TaskCreate
from opsdesk.domain.task import Slot, SlotStatus, Task, TaskStatus, TimeTracking, new_child_id
from opsdesk.domain.update_models import TaskUpdate
from opsdesk.modules.scheduling import conflicts, schedule_index
from opsdesk.modules.scheduling.slot_time import Interval, require_interval, resolve_interval, schedule_timezone
from opsdesk.modules.scheduling.sync import holds_booking, sync_task_schedule
from opsdesk.modules.scheduling.validation import parse_day, require_text
from opsdesk.services import notification_service
from opsdesk.services.notification_service import TaskEvent


logger = logging.getLogger(__name__)

COLLECTION = "tasks"

_METADATA_FIELDS = ("task_name", "client_name", "category", "priority", "time_spend", "description")

# Slot statuses a task-level completion/cancellation carries onto
_OPEN_SLOT_STATUSES = {SlotStatus.SCHEDULED, SlotStatus.ACTIVE}

BookedSlot = tuple[int, Slot, Interval]


def utc_now_iso() -> str:
    return datetime.now(UTC).isoformat().replace("+00:00", "Z")


def compute_time_tracking(slots: list[Slot]) -> TimeTracking:
    """Aggregate planned, extended and worked minutes across slots."""
    return TimeTracking(
        original_total_minutes=sum(slot.duration_minutes - slot.extension_minutes for slot in slots),
        total_extended_minutes=sum(slot.extension_minutes for slot in slots),
        total_worked_minutes=sum(slot.duration_minutes for slot in slots if slot.status == SlotStatus.COMPLETED),
    )


def build_slots(payloads: list[SlotCreate], existing: list[Slot] | None = None) -> list[Slot]:
    """Validate incoming slots and turn them into stored slots.

    Slots that reuse an existing id keep their extension history.

    Raises:
        ScheduleValidationError: If a marker is missing or unresolvable, end is
            not after start, duration_minutes disagrees with the interval, or
            a slot id repeats
    """
    previous_by_id = {slot.id: slot for slot in existing or []}
    seen_ids: set[str] = set()
    slots = []

    for position, payload in enumerate(payloads):
        field = f"slots[{position}]"
        start = require_text(payload.start, f"{field}.start")
        end = require_text(payload.end, f"{field}.end")
        candidate = Slot(start=start, end=end, slot_date=payload.slot_date)
        interval = require_interval(candidate, field)

        if payload.duration_minutes is not None and payload.duration_minutes != interval.minutes:
            raise ScheduleValidationError(
                f"{field}.duration_minutes",
                f"expected {interval.minutes} to match start/end, got {payload.duration_minutes}",
            )

        slot_id = payload.id or new_child_id()
        if slot_id in seen_ids:
            raise ScheduleValidationError(f"{field}.id", f"duplicate slot id {slot_id}")
        seen_ids.add(slot_id)

        previous = previous_by_id.get(slot_id)
        slots.append(
            Slot(
                id=slot_id,
                start=start,
                end=end,
                slot_date=payload.slot_date,
                duration_minutes=interval.minutes,
                status=payload.status,
                extension_minutes=previous.extension_minutes if previous else 0,
                extension_requests=previous.extension_requests if previous else [],
            )
        )

    return slots


def booked_intervals(slots: list[Slot], *, strict: bool = True) -> list[BookedSlot]:
    """Resolve every slot that holds a booking (cancelled slots are skipped).

    With strict=False unresolvable slots are skipped as the synchronizer does.
    """
    booked = []
    for position, slot in enumerate(slots):
        if slot.status == SlotStatus.CANCELLED:
            continue
        if strict:
            interval = require_interval(slot, f"slots[{position}]")
        else:
            interval = resolve_interval(slot)
            if interval is None:
                continue
        booked.append((position, slot, interval))
    return booked


def _reject_self_overlap(booked: list[BookedSlot]) -> None:
    pair = conflicts.find_self_overlap(booked, [position for position, _, _ in booked])
    if pair is not None:
        position, other_position = pair
        raise ScheduleValidationError(f"slots[{position}]", f"overlaps slots[{other_position}] of the same task")


async def _ensure_receiver_free(receiver_id: str, booked: list[BookedSlot], *, exclude_task_id: str | None) -> None:
    for position, _slot, interval in booked:
        await conflicts.ensure_available(
            user_id=receiver_id,
            interval=interval,
            field=f"slots[{position}]",
            exclude_task_id=exclude_task_id,
        )


def receiver_guard(receiver_id: str | None) -> AbstractAsyncContextManager[None]:
    """Lock the receiver's bookings for a check-then-write (no-op without a receiver)."""
    return schedule_index.hold_locks(user_ids=[receiver_id])


@asynccontextmanager
async def locked_task(task_id: str, *, also_lock: str | None = None) -> AsyncIterator[Task]:
    """Yield the stored task while the task and its receiver's bookings are locked.

    The task is read again under the locks, so callers modify the latest copy.
    also_lock adds one more person, e.g. a new receiver about to be checked.

    Raises:
        RecordNotFoundError: If the task does not exist
    """
    receiver_id = (await get_task(task_id=task_id)).receiver_id
    while True:
        async with schedule_index.hold_locks(user_ids=[receiver_id, also_lock], task_id=task_id):
            task = await get_task(task_id=task_id)
            if task.receiver_id == receiver_id:
                yield task
                return
        # reassigned before the locks were taken
        receiver_id = task.receiver_id


def _optional_id(value: str | None) -> str | None:
    if value is None or not value.strip():
        return None
    return value.strip()


async def get_task(*, task_id: str) -> Task:
    """Get task by ID.

    Raises:
        RecordNotFoundError: If the task does not exist
    """
    record = await db_client.get_record(collection=COLLECTION, record_id=task_id)
    return Task.model_validate(record)


async def save_task(task: Task) -> Task:
    """Persist a task aggregate (all mutable columns) and return the stored copy."""
    record = await db_client.update_record(collection=COLLECTION, record_id=task.id, data=task.to_record())
    return Task.model_validate(record)


async def create_task(payload: TaskCreate) -> Task:
    """Create a task and book its slots on the receiver's schedule.

    Args:
        payload: Task fields and slots

    Returns:
        Created Task object

    Raises:
        ScheduleValidationError: If assigner_id is missing or a slot is invalid
        ScheduleConflictError: If any slot overlaps another booking of the receiver
    """
    with span("scheduling.create_task"):
        assigner_id = require_text(payload.assigner_id, "assigner_id")
        receiver_id = _optional_id(payload.receiver_id)
        slots = build_slots(payload.slots)
        booked = booked_intervals(slots)
        _reject_self_overlap(booked)

        data = {
            "assigner_id": assigner_id,
            "receiver_id": receiver_id,
            "task_name": payload.task_name,
            "client_name": payload.client_name,
            "category": payload.category,
            "priority": payload.priority,
            "time_spend": payload.time_spend,
            "description": payload.description,
            "status": str(TaskStatus.PENDING),
            "slots": [slot.model_dump(mode="json") for slot in slots],
            "time_tracking": compute_time_tracking(slots).model_dump(),
            "is_archived": False,
        }

        async with receiver_guard(receiver_id):
            if receiver_id:
                await _ensure_receiver_free(receiver_id, booked, exclude_task_id=None)
            record = await db_client.create_record(collection=COLLECTION, data=data)
            task = Task.model_validate(record)
            await sync_task_schedule(task)

        logger.info("Created task %s for receiver=%s with %d slot(s)", task.id, receiver_id, len(slots))
        await notification_service.publish_task_event(TaskEvent.SCHEDULED, task)
        return task


async def update_task(*, task_id: str, payload: TaskUpdate) -> Task:
    """Edit task metadata, receiver and/or slots.

    Slot replacement is validated like creation, conflict-checked against
    the (possibly new) receiver while excluding the task itself.

    Raises:
        RecordNotFoundError: If the task does not exist
        ScheduleValidationError: If a replacement slot is invalid
        ScheduleConflictError: If the new slots or receiver collide with other bookings
    """
    with span("scheduling.update_task"):
        fields = payload.model_fields_set
        new_receiver = _optional_id(payload.receiver_id) if "receiver_id" in fields else None

        async with locked_task(task_id, also_lock=new_receiver) as task:
            updated = task.model_copy(deep=True)

            for name in _METADATA_FIELDS:
                value = getattr(payload, name)
                if name in fields and value is not None:
                    setattr(updated, name, value)

            if "receiver_id" in fields:
                updated.receiver_id = new_receiver
            if "slots" in fields and payload.slots is not None:
                updated.slots = build_slots(payload.slots, existing=task.slots)
            updated.time_tracking = compute_time_tracking(updated.slots)

            schedule_changed = updated.slots != task.slots or updated.receiver_id != task.receiver_id
            booked = booked_intervals(updated.slots) if schedule_changed and holds_booking(updated) else []
            _reject_self_overlap(booked)

            if booked and updated.receiver_id:
                await _ensure_receiver_free(updated.receiver_id, booked, exclude_task_id=task.id)
            saved = await save_task(updated)
            await sync_task_schedule(saved)

        logger.info("Updated task %s (fields=%s)", task_id, sorted(fields))
        await notification_service.publish_task_event(TaskEvent.UPDATED, saved)
        return saved


async def _reactivate(task: Task, updated: Task) -> Task:
    """Save a task whose bookings may come back, re-checking conflicts first.

    Callers hold locked_task for task.
    """
    if not holds_booking(task) and holds_booking(updated) and updated.receiver_id:
        booked = booked_intervals(updated.slots, strict=False)
        await _ensure_receiver_free(updated.receiver_id, booked, exclude_task_id=task.id)
    saved = await save_task(updated)
    await sync_task_schedule(saved)
    return saved


async def update_task_status(*, task_id: str, status: str | None) -> Task:
    """Move a task to a new status.

    Completion or cancellation carries onto the task's open (scheduled or
    active) slots. Leaving ``cancelled`` re-checks the bookings it frees.

    Raises:
        ScheduleValidationError: If the status is missing or unknown
        ScheduleConflictError: If reopening would double-book the receiver
    """
    with span("scheduling.update_task_status"):
        raw = require_text(status, "status").lower()
        try:
            new_status = TaskStatus(raw)
        except ValueError:
            allowed = ", ".join(s.value for s in TaskStatus)
            raise ScheduleValidationError("status", f"must be one of {allowed}") from None

        slot_status = {TaskStatus.COMPLETED: SlotStatus.COMPLETED, TaskStatus.CANCELLED: SlotStatus.CANCELLED}.get(
            new_status
        )
        async with locked_task(task_id) as task:
            updated = task.model_copy(deep=True)
            updated.status = new_status
            if slot_status is not None:
                for slot in updated.slots:
                    if slot.status in _OPEN_SLOT_STATUSES:
                        slot.status = slot_status
            updated.time_tracking = compute_time_tracking(updated.slots)
            saved = await _reactivate(task, updated)

        logger.info("Task %s status %s -> %s", task_id, task.status, new_status)
        await notification_service.publish_task_event(TaskEvent.UPDATED, saved)
        return saved


async def archive_task(*, task_id: str, actor_user_id: str | None) -> Task:
    """Archive a task, freeing its bookings.

    Raises:
        ScheduleValidationError: If actor_user_id is missing
        InvalidStateError: If the task is already archived
    """
    with span("scheduling.archive_task"):
        actor = require_text(actor_user_id, "actor_user_id")
        async with locked_task(task_id) as task:
            if task.is_archived:
                msg = f"Task {task_id} is already archived"
                raise InvalidStateError(msg)

            updated = task.model_copy(deep=True)
            updated.is_archived = True
            updated.archived_at = utc_now_iso()
            updated.archived_by = actor

            saved = await save_task(updated)
            await sync_task_schedule(saved)

        logger.info("Archived task %s by %s", task_id, actor)
        await notification_service.publish_task_event(TaskEvent.UPDATED, saved)
        return saved


async def unarchive_task(*, task_id: str) -> Task:
    """Restore an archived task, re-booking its slots if they are still free.

    Raises:
        InvalidStateError: If the task is not archived
        ScheduleConflictError: If its slots were taken while archived
    """
    with span("scheduling.unarchive_task"):
        async with locked_task(task_id) as task:
            if not task.is_archived:
                msg = f"Task {task_id} is not archived"
                raise InvalidStateError(msg)

            updated = task.model_copy(deep=True)
            updated.is_archived = False
            updated.archived_at = None
            updated.archived_by = None
            saved = await _reactivate(task, updated)

        logger.info("Unarchived task %s", task_id)
        await notification_service.publish_task_event(TaskEvent.UPDATED, saved)
        return saved


async def list_tasks(*, user_id: str | None = None, archived: bool = False) -> list[Task]:
    """List tasks, newest first, where user_id is the assigner or the receiver."""
    filters = [f'is_archived = "{1 if archived else 0}"']
    if user_id:
        safe_user = sanitize_param(user_id)
        filters.append(f'(assigner_id = "{safe_user}" || receiver_id = "{safe_user}")')

    records = await db_client.list_records(
        collection=COLLECTION,
        filter_query=" && ".join(filters),
        per_page=Constants.DEFAULT_PER_PAGE_LIMIT,
        sort="-created",
    )
    return [Task.model_validate(record) for record in records]


async def list_tasks_for_date(*, user_id: str | None, day: str | date | None) -> list[Task]:
    """Tasks with a booking for user_id on a calendar day, in booking order.

    Raises:
        ScheduleValidationError: If user_id or the date is missing or malformed
    """
    with span("scheduling.list_tasks_for_date"):
        person = require_text(user_id, "user_id")
        parsed = parse_day(day)
        if parsed is None:
            raise ScheduleValidationError("date", "is required")

        midnight = datetime.combine(parsed, time(0), tzinfo=schedule_timezone())
        entries = await schedule_index.find_for_person(
            user_id=person,
            start=midnight.astimezone(UTC),
            end=(midnight + timedelta(days=1)).astimezone(UTC),
        )

        tasks: list[Task] = []
        seen: set[str] = set()
        for entry in entries:
            if entry.task_id in seen:
                continue
            seen.add(entry.task_id)
            tasks.append(await get_task(task_id=entry.task_id))
        return tasks
