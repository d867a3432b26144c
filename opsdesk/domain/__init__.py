"""Domain models and DTOs."""

from opsdesk.domain.create_models import ExtensionRequestCreate, ExtensionResponseCreate, SlotCreate, TaskCreate
from opsdesk.domain.schedule import Availability, ScheduleEntry, Suggestion
from opsdesk.domain.task import (
    ExtensionRequest,
    ExtensionStatus,
    Slot,
    SlotStatus,
    Task,
    TaskStatus,
    TimeTracking,
)
from opsdesk.domain.update_models import ArchiveUpdate, TaskStatusUpdate, TaskUpdate


__all__ = [
    "ArchiveUpdate",
    "Availability",
    "ExtensionRequest",
    "ExtensionRequestCreate",
    "ExtensionResponseCreate",
    "ExtensionStatus",
    "ScheduleEntry",
    "Slot",
    "SlotCreate",
    "SlotStatus",
    "Suggestion",
    "Task",
    "TaskCreate",
    "TaskStatus",
    "TaskStatusUpdate",
    "TaskUpdate",
    "TimeTracking",
]
