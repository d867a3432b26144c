"""Update models for task mutations."""

from pydantic import BaseModel

from opsdesk.domain.create_models import SlotCreate


class TaskUpdate(BaseModel):
    """Partial edit of a task. Omitted fields are left unchanged."""

    receiver_id: str | None = None
    task_name: str | None = None
    client_name: str | None = None
    category: str | None = None
    priority: str | None = None
    time_spend: str | None = None
    description: str | None = None
    slots: list[SlotCreate] | None = None


class TaskStatusUpdate(BaseModel):
    """DTO for updating task status."""

    status: str | None = None


class ArchiveUpdate(BaseModel):
    """DTO for archiving a task."""

    actor_user_id: str | None = None
