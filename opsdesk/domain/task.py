"""Task aggregate: tasks own their slots, and slots own their extension requests."""

from enum import StrEnum
from uuid import uuid4

from pydantic import BaseModel, Field

from opsdesk.core.db_client import RecordNotFoundError


def new_child_id() -> str:
    """Generate a stable id for an embedded slot or extension request."""
    return uuid4().hex


class TaskStatus(StrEnum):
    """Task lifecycle state."""

    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class SlotStatus(StrEnum):
    """Slot lifecycle state."""

    SCHEDULED = "scheduled"
    ACTIVE = "active"
    COMPLETED = "completed"
    EXPIRED = "expired"
    CANCELLED = "cancelled"


class ExtensionStatus(StrEnum):
    """Extension request state. Terminal once not pending."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class ExtensionRequest(BaseModel):
    """A proposal to lengthen one slot."""

    id: str = Field(default_factory=new_child_id, description="Stable id within the slot")
    requested_by: str = Field(..., description="User ID of the requester")
    minutes: int = Field(..., gt=0, description="Minutes requested")
    reason: str = Field(default="", description="Free-text justification")
    status: ExtensionStatus = Field(default=ExtensionStatus.PENDING)
    requested_at: str = Field(..., description="Request timestamp (ISO format)")
    responded_by: str | None = Field(default=None, description="User ID of the responder")
    responded_at: str | None = Field(default=None, description="Response timestamp (ISO format)")


class Slot(BaseModel):
    """A contiguous time block within a task.

    ``start`` and ``end`` hold the stored marker text: either an absolute
    timestamp or a bare ``HH:MM[:SS]`` that is read against ``slot_date``.
    """

    id: str = Field(default_factory=new_child_id, description="Stable id within the task")
    start: str = Field(..., description="Start marker")
    end: str = Field(..., description="End marker")
    slot_date: str | None = Field(default=None, description="Calendar date (YYYY-MM-DD) for time-of-day markers")
    duration_minutes: int = Field(default=0, ge=0)
    status: SlotStatus = Field(default=SlotStatus.SCHEDULED)
    extension_minutes: int = Field(default=0, ge=0)
    extension_requests: list[ExtensionRequest] = Field(default_factory=list)

    def find_extension(self, extension_id: str) -> ExtensionRequest:
        """Return the extension request with this id.

        Raises:
            RecordNotFoundError: If the slot has no such request
        """
        for request in self.extension_requests:
            if request.id == extension_id:
                return request
        msg = f"Extension request not found on slot {self.id}: {extension_id}"
        raise RecordNotFoundError(msg)


class TimeTracking(BaseModel):
    """Aggregate minutes across a task's slots."""

    original_total_minutes: int = 0
    total_extended_minutes: int = 0
    total_worked_minutes: int = 0


class Task(BaseModel):
    """Task data transfer object."""

    id: str = Field(..., description="Unique task ID from database")
    created: str = Field(..., description="Creation timestamp")
    updated: str = Field(..., description="Last update timestamp")
    assigner_id: str = Field(..., description="User ID of the person who assigned the task")
    receiver_id: str | None = Field(default=None, description="User ID of the person doing the work")
    task_name: str = Field(default="", description="Task title")
    client_name: str | None = None
    category: str | None = None
    priority: str | None = None
    time_spend: str | None = Field(default=None, description="Free-form estimate, e.g. 12:45:00")
    description: str = ""
    status: TaskStatus = Field(default=TaskStatus.PENDING)
    slots: list[Slot] = Field(default_factory=list)
    time_tracking: TimeTracking = Field(default_factory=TimeTracking)
    is_archived: bool = False
    archived_at: str | None = None
    archived_by: str | None = None

    def find_slot(self, slot_id: str) -> tuple[int, Slot]:
        """Return the position and slot with this id.

        Raises:
            RecordNotFoundError: If the task has no such slot
        """
        for position, slot in enumerate(self.slots):
            if slot.id == slot_id:
                return position, slot
        msg = f"Slot not found on task {self.id}: {slot_id}"
        raise RecordNotFoundError(msg)

    def to_record(self) -> dict:
        """Serialize the mutable columns for persistence."""
        return self.model_dump(mode="json", exclude={"id", "created", "updated"})
