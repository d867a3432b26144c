"""Pydantic models returned by service-layer functions."""

from pydantic import BaseModel

from opsdesk.domain.task import Task


class NotificationResult(BaseModel):
    """Result of publishing one event to one user channel."""

    user_id: str
    channel: str
    success: bool
    error: str | None = None


class ExtensionOutcome(BaseModel):
    """Task state after an extension request was resolved."""

    task: Task
    adjustment_minutes: int
