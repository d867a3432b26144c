"""Schedule index domain models (read-optimized projection of task slots)."""

from datetime import datetime

from pydantic import BaseModel, Field

from opsdesk.domain.task import SlotStatus, TaskStatus


class ScheduleEntry(BaseModel):
    """One booked interval for a person, mirrored from a task slot."""

    id: str = Field(..., description="Unique schedule row ID from database")
    created: str | None = None
    updated: str | None = None
    user_id: str = Field(..., description="Person whose time is booked")
    task_id: str = Field(..., description="Owning task")
    slot_id: str = Field(..., description="Owning slot within the task")
    start_at: datetime = Field(..., description="Absolute start (UTC)")
    end_at: datetime = Field(..., description="Absolute end (UTC)")
    status: SlotStatus = Field(default=SlotStatus.SCHEDULED, description="Mirrored slot status")
    task_status: TaskStatus = Field(default=TaskStatus.PENDING, description="Mirrored task status")


class Suggestion(BaseModel):
    """A duration-sized open interval proposed for a new booking."""

    date: str
    start: datetime
    end: datetime
    duration_minutes: int


class Availability(BaseModel):
    """Existing bookings of a window plus bookable suggestions."""

    user_id: str
    window_start: datetime
    window_end: datetime
    duration_minutes: int
    bookings: list[ScheduleEntry]
    suggestions: list[Suggestion]
