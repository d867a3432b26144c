"""Builders for incoming task and slot payloads used across unit tests."""

from opsdesk.domain.create_models import SlotCreate, TaskCreate


def slot_payload(start: str, end: str, slot_date: str | None = "2025-12-31", **kwargs) -> SlotCreate:
    """Build an incoming slot (time-of-day markers on 2025-12-31 by default)."""
    return SlotCreate(start=start, end=end, slot_date=slot_date, **kwargs)


def task_payload(*slots: SlotCreate, receiver_id: str | None = "R", assigner_id: str | None = "A", **kwargs) -> TaskCreate:
    """Build an incoming task for receiver R assigned by A."""
    return TaskCreate(
        assigner_id=assigner_id,
        receiver_id=receiver_id,
        task_name=kwargs.pop("task_name", "Site visit"),
        slots=list(slots),
        **kwargs,
    )
