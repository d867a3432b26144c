"""REST router for tasks, slot extensions and availability."""

from typing import Any

from fastapi import APIRouter, Query, status

from opsdesk.domain.create_models import ExtensionRequestCreate, ExtensionResponseCreate, TaskCreate
from opsdesk.domain.update_models import ArchiveUpdate, TaskStatusUpdate, TaskUpdate
from opsdesk.modules.scheduling import availability, extensions, service


router = APIRouter(prefix="/api", tags=["tasks"])


def envelope(message: str, data: Any) -> dict[str, Any]:  # noqa: ANN401
    """Wrap a payload in the standard success envelope."""
    if isinstance(data, list):
        data = [item.model_dump(mode="json") for item in data]
    elif hasattr(data, "model_dump"):
        data = data.model_dump(mode="json")
    return {"success": True, "message": message, "data": data}


@router.post("/tasks", status_code=status.HTTP_201_CREATED)
async def create_task(payload: TaskCreate) -> dict[str, Any]:
    task = await service.create_task(payload)
    return envelope("Task created successfully", task)


@router.get("/tasks")
async def list_tasks(user_id: str | None = None, archived: bool = False) -> dict[str, Any]:
    tasks = await service.list_tasks(user_id=user_id, archived=archived)
    return envelope("Tasks retrieved", tasks)


@router.get("/tasks/by-date")
async def list_tasks_for_date(
    user_id: str | None = None,
    day: str | None = Query(default=None, alias="date"),
) -> dict[str, Any]:
    tasks = await service.list_tasks_for_date(user_id=user_id, day=day)
    return envelope("Tasks retrieved", tasks)


@router.get("/tasks/{task_id}")
async def get_task(task_id: str) -> dict[str, Any]:
    task = await service.get_task(task_id=task_id)
    return envelope("Task retrieved", task)


@router.put("/tasks/{task_id}")
async def update_task(task_id: str, payload: TaskUpdate) -> dict[str, Any]:
    task = await service.update_task(task_id=task_id, payload=payload)
    return envelope("Task updated", task)


@router.put("/tasks/{task_id}/status")
async def update_task_status(task_id: str, payload: TaskStatusUpdate) -> dict[str, Any]:
    task = await service.update_task_status(task_id=task_id, status=payload.status)
    return envelope("Task status updated", task)


@router.put("/tasks/{task_id}/archive")
async def archive_task(task_id: str, payload: ArchiveUpdate) -> dict[str, Any]:
    task = await service.archive_task(task_id=task_id, actor_user_id=payload.actor_user_id)
    return envelope("Task archived", task)


@router.put("/tasks/{task_id}/unarchive")
async def unarchive_task(task_id: str) -> dict[str, Any]:
    task = await service.unarchive_task(task_id=task_id)
    return envelope("Task unarchived", task)


@router.post("/tasks/{task_id}/slots/{slot_id}/extensions", status_code=status.HTTP_201_CREATED)
async def request_extension(task_id: str, slot_id: str, payload: ExtensionRequestCreate) -> dict[str, Any]:
    task = await extensions.request_extension(task_id=task_id, slot_id=slot_id, payload=payload)
    return envelope("Extension requested", task)


@router.put("/tasks/{task_id}/slots/{slot_id}/extensions/{extension_id}/respond")
async def respond_to_extension(
    task_id: str,
    slot_id: str,
    extension_id: str,
    payload: ExtensionResponseCreate,
) -> dict[str, Any]:
    outcome = await extensions.respond_to_extension(
        task_id=task_id,
        slot_id=slot_id,
        extension_id=extension_id,
        payload=payload,
    )
    decision = (payload.status or "").strip().lower()
    return envelope(f"Extension {decision}", outcome)


@router.get("/availability")
async def get_availability(
    user_id: str | None = None,
    day: str | None = Query(default=None, alias="date"),
    duration_minutes: str | None = None,
    max_suggestions: str | None = None,
    lookahead_days: str | None = None,
) -> dict[str, Any]:
    result = await availability.suggest(
        user_id=user_id,
        from_date=day,
        duration_minutes=duration_minutes,
        lookahead_days=lookahead_days,
        max_suggestions=max_suggestions,
    )
    return envelope("Availability computed", result)
