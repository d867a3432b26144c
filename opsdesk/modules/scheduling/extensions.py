"""Extension workflow: pending -> approved | rejected, with a cascading shift on approval.

Approval never edits the stored task in place. It builds a proposed copy
with the cascade applied, validates that copy against the receiver's
schedule and against the task's own slots, and only then commits it.
A rejected proposal leaves the request pending and the task untouched.
"""

import logging

from opsdesk.core.errors import (
    InvalidStateError,
    ScheduleConflictError,
    ScheduleValidationError,
    conflict_payload,
)
from opsdesk.core.logging import span
from opsdesk.domain.create_models import ExtensionRequestCreate, ExtensionResponseCreate
from opsdesk.domain.task import ExtensionRequest, ExtensionStatus, SlotStatus, Task
from opsdesk.models.service_models import ExtensionOutcome
from opsdesk.modules.scheduling import conflicts
from opsdesk.modules.scheduling.service import (
    booked_intervals,
    compute_time_tracking,
    locked_task,
    save_task,
    utc_now_iso,
)
from opsdesk.modules.scheduling.slot_time import shift_marker
from opsdesk.modules.scheduling.sync import holds_booking, sync_task_schedule
from opsdesk.modules.scheduling.validation import coerce_positive_int, require_text
from opsdesk.services import notification_service
from opsdesk.services.notification_service import TaskEvent


logger = logging.getLogger(__name__)

_CLOSED_SLOT_STATUSES = {SlotStatus.COMPLETED, SlotStatus.CANCELLED, SlotStatus.EXPIRED}
_DECISIONS = {ExtensionStatus.APPROVED, ExtensionStatus.REJECTED}


async def request_extension(*, task_id: str, slot_id: str, payload: ExtensionRequestCreate) -> Task:
    """Append a pending extension request to a slot. No scheduling side effects.

    Args:
        task_id: Task owning the slot
        slot_id: Slot to extend
        payload: Requester, minutes and reason

    Returns:
        The task with the new request appended (last in the slot's list)

    Raises:
        ScheduleValidationError: If requested_by is missing or minutes is not a positive integer
        RecordNotFoundError: If the task or slot does not exist
        InvalidStateError: If the slot is completed, cancelled or expired
    """
    with span("scheduling.request_extension"):
        requested_by = require_text(payload.requested_by, "requested_by")
        minutes = coerce_positive_int(payload.minutes, "minutes")

        async with locked_task(task_id) as task:
            position, slot = task.find_slot(slot_id)
            if slot.status in _CLOSED_SLOT_STATUSES:
                msg = f"Slot {slot_id} is {slot.status}; extensions are not accepted"
                raise InvalidStateError(msg)

            request = ExtensionRequest(
                requested_by=requested_by,
                minutes=minutes,
                reason=payload.reason,
                requested_at=utc_now_iso(),
            )
            updated = task.model_copy(deep=True)
            updated.slots[position].extension_requests.append(request)
            saved = await save_task(updated)

        logger.info(
            "Extension requested",
            extra={"task_id": task_id, "slot_id": slot_id, "extension_id": request.id, "minutes": minutes},
        )
        await notification_service.publish_task_event(
            TaskEvent.EXTENSION_REQUESTED, saved, slot_id=slot_id, extension_id=request.id
        )
        return saved


def build_proposed_task(task: Task, position: int, minutes: int) -> Task:
    """Copy the task and apply the cascade for extending the slot at position.

    The target slot's end moves by ``minutes`` and its duration and
    extension grow by the same amount; every later slot in task order moves
    both start and end by ``minutes``. Earlier slots are untouched.

    Raises:
        ScheduleValidationError: If a shifted marker cannot be resolved or
            would cross midnight
    """
    proposed = task.model_copy(deep=True)

    target = proposed.slots[position]
    target.end = shift_marker(target.end, target.slot_date, minutes, f"slots[{position}].end")
    target.duration_minutes += minutes
    target.extension_minutes += minutes

    for later in range(position + 1, len(proposed.slots)):
        slot = proposed.slots[later]
        slot.start = shift_marker(slot.start, slot.slot_date, minutes, f"slots[{later}].start")
        slot.end = shift_marker(slot.end, slot.slot_date, minutes, f"slots[{later}].end")

    return proposed


async def validate_proposed_task(proposed: Task, position: int) -> None:
    """Check every slot from position onward against the receiver and the task itself.

    Raises:
        ScheduleConflictError: If a shifted slot would collide
    """
    if not holds_booking(proposed):
        return

    booked = booked_intervals(proposed.slots, strict=False)
    affected = [slot_position for slot_position, _, _ in booked if slot_position >= position]

    try:
        if proposed.receiver_id:
            for slot_position, _slot, interval in booked:
                if slot_position < position:
                    continue
                await conflicts.ensure_available(
                    user_id=proposed.receiver_id,
                    interval=interval,
                    field=f"slots[{slot_position}]",
                    exclude_task_id=proposed.id,
                )
        conflicts.ensure_no_self_overlap(task_id=proposed.id, slots=booked, affected=affected)
    except ScheduleConflictError as e:
        logger.info("Extension cascade rejected", extra={"task_id": proposed.id, **conflict_payload(e)})
        raise


async def commit_proposed_task(proposed: Task, position: int, extension_id: str, responded_by: str) -> Task:
    """Mark the request approved on the validated copy, persist it and resync the index."""
    request = proposed.slots[position].find_extension(extension_id)
    request.status = ExtensionStatus.APPROVED
    request.responded_by = responded_by
    request.responded_at = utc_now_iso()
    proposed.time_tracking = compute_time_tracking(proposed.slots)

    saved = await save_task(proposed)
    await sync_task_schedule(saved)
    return saved


async def respond_to_extension(
    *,
    task_id: str,
    slot_id: str,
    extension_id: str,
    payload: ExtensionResponseCreate,
) -> ExtensionOutcome:
    """Approve or reject a pending extension request.

    Args:
        task_id: Task owning the slot
        slot_id: Slot the request belongs to
        extension_id: Request to resolve
        payload: Responder and decision ("approved" or "rejected")

    Returns:
        ExtensionOutcome with the stored task and the net adjustment in minutes

    Raises:
        ScheduleValidationError: If responded_by is missing or the decision is unknown
        RecordNotFoundError: If the task, slot or request does not exist
        InvalidStateError: If the request was already resolved
        ScheduleConflictError: If approving would collide (request stays pending)
    """
    with span("scheduling.respond_to_extension"):
        responded_by = require_text(payload.responded_by, "responded_by")
        decision_text = require_text(payload.status, "status").lower()
        if decision_text not in _DECISIONS:
            raise ScheduleValidationError("status", "must be approved or rejected")
        decision = ExtensionStatus(decision_text)

        async with locked_task(task_id) as task:
            position, slot = task.find_slot(slot_id)
            request = slot.find_extension(extension_id)
            if request.status != ExtensionStatus.PENDING:
                msg = f"Extension request {extension_id} is already {request.status}"
                raise InvalidStateError(msg)

            if decision == ExtensionStatus.REJECTED:
                updated = task.model_copy(deep=True)
                rejected = updated.slots[position].find_extension(extension_id)
                rejected.status = ExtensionStatus.REJECTED
                rejected.responded_by = responded_by
                rejected.responded_at = utc_now_iso()
                saved = await save_task(updated)
                adjustment = 0
            else:
                proposed = build_proposed_task(task, position, request.minutes)
                await validate_proposed_task(proposed, position)
                saved = await commit_proposed_task(proposed, position, extension_id, responded_by)
                adjustment = request.minutes

        logger.info(
            "Extension %s",
            decision,
            extra={"task_id": task_id, "slot_id": slot_id, "extension_id": extension_id, "adjustment": adjustment},
        )
        event = TaskEvent.EXTENSION_APPROVED if decision == ExtensionStatus.APPROVED else TaskEvent.EXTENSION_REJECTED
        await notification_service.publish_task_event(event, saved, slot_id=slot_id, extension_id=extension_id)
        return ExtensionOutcome(task=saved, adjustment_minutes=adjustment)
