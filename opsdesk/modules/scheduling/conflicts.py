"""Double-booking detection against the schedule index."""

import logging
from collections.abc import Iterable
from datetime import datetime

from opsdesk.core.errors import ScheduleConflictError
from opsdesk.domain.schedule import ScheduleEntry
from opsdesk.domain.task import Slot
from opsdesk.modules.scheduling import schedule_index
from opsdesk.modules.scheduling.slot_time import Interval


logger = logging.getLogger(__name__)


async def has_conflict(
    *,
    user_id: str,
    start: datetime,
    end: datetime,
    exclude_task_id: str | None = None,
) -> ScheduleEntry | None:
    """Return the first booking of user_id overlapping [start, end), or None.

    Overlap is half-open: ``existing.start < end and existing.end > start``,
    so back-to-back bookings do not collide.
    """
    entries = await schedule_index.find_for_person(
        user_id=user_id,
        start=start,
        end=end,
        exclude_task_id=exclude_task_id,
        limit=1,
    )
    return entries[0] if entries else None


async def ensure_available(
    *,
    user_id: str,
    interval: Interval,
    field: str,
    exclude_task_id: str | None = None,
) -> None:
    """Raise if the interval collides with another booking of user_id.

    Raises:
        ScheduleConflictError: Identifying the colliding task, slot and schedule row
    """
    entry = await has_conflict(
        user_id=user_id,
        start=interval.start,
        end=interval.end,
        exclude_task_id=exclude_task_id,
    )
    if entry is None:
        return

    logger.info(
        "Schedule conflict detected",
        extra={"user_id": user_id, "field": field, "conflict_task_id": entry.task_id, "conflict_slot_id": entry.slot_id},
    )
    raise ScheduleConflictError(
        f"{field} overlaps task {entry.task_id} slot {entry.slot_id} "
        f"({entry.start_at.isoformat()} - {entry.end_at.isoformat()})",
        task_id=entry.task_id,
        slot_id=entry.slot_id,
        schedule_id=entry.id,
        field=field,
    )


def find_self_overlap(
    slots: list[tuple[int, Slot, Interval]],
    affected: Iterable[int],
) -> tuple[int, int] | None:
    """Return (affected position, other position) of the first overlap within one task, or None."""
    targets = set(affected)
    for position, _slot, interval in slots:
        if position not in targets:
            continue
        for other_position, _other, other_interval in slots:
            if other_position != position and interval.overlaps(other_interval):
                return position, other_position
    return None


def ensure_no_self_overlap(
    *,
    task_id: str,
    slots: list[tuple[int, Slot, Interval]],
    affected: Iterable[int],
) -> None:
    """Reject overlaps between a task's own booked slots where at least one side is affected.

    Args:
        task_id: Owning task (reported as the conflicting task)
        slots: (position in task, slot, resolved interval) for every booked slot
        affected: Positions that changed and must be checked

    Raises:
        ScheduleConflictError: Naming the task's slot that would be overlapped
    """
    pair = find_self_overlap(slots, affected)
    if pair is None:
        return

    position, other_position = pair
    other = next(slot for slot_position, slot, _ in slots if slot_position == other_position)
    raise ScheduleConflictError(
        f"slots[{position}] overlaps slots[{other_position}] of the same task",
        task_id=task_id,
        slot_id=other.id,
        field=f"slots[{position}]",
    )
