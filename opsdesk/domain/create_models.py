"""Pydantic models for incoming create requests.

Field presence and scheduling semantics (positive minutes, resolvable
intervals) are enforced by the scheduling services so every entry point
gets the same errors; these models only describe the payload shape.
"""

from pydantic import BaseModel, Field

from opsdesk.domain.task import SlotStatus


class SlotCreate(BaseModel):
    """Slot as supplied by a caller."""

    id: str | None = Field(default=None, description="Existing slot id (edits keep extension history)")
    start: str | None = Field(default=None, description="Absolute timestamp or HH:MM[:SS]")
    end: str | None = Field(default=None, description="Absolute timestamp or HH:MM[:SS]")
    slot_date: str | None = Field(default=None, description="YYYY-MM-DD, required for HH:MM markers")
    duration_minutes: int | None = Field(default=None, description="Must match end - start when given")
    status: SlotStatus = Field(default=SlotStatus.SCHEDULED)


class TaskCreate(BaseModel):
    """Pydantic model for creating a task with its slots."""

    assigner_id: str | None = Field(default=None, description="User ID of the creator/sender")
    receiver_id: str | None = Field(default=None, description="User ID of the task receiver")
    task_name: str = Field(default="", description="Task title")
    client_name: str | None = None
    category: str | None = None
    priority: str | None = None
    time_spend: str | None = None
    description: str = ""
    slots: list[SlotCreate] = Field(default_factory=list)


class ExtensionRequestCreate(BaseModel):
    """Payload for asking extra time on a slot."""

    requested_by: str | None = Field(default=None, description="User ID of the requester")
    minutes: int | float | str | None = Field(default=None, description="Positive whole minutes")
    reason: str = ""


class ExtensionResponseCreate(BaseModel):
    """Payload for approving or rejecting an extension request."""

    responded_by: str | None = Field(default=None, description="User ID of the responder")
    status: str | None = Field(default=None, description="approved or rejected")
