"""Notification service publishing task events to per-user pub/sub channels."""

import json
import logging
from enum import StrEnum
from typing import Any

from redis.exceptions import RedisError

from opsdesk.core.config import Constants
from opsdesk.core.logging import span
from opsdesk.core.redis_client import redis_client
from opsdesk.domain.task import Task
from opsdesk.models.service_models import NotificationResult


logger = logging.getLogger(__name__)


class TaskEvent(StrEnum):
    """Event names pushed to subscribers."""

    SCHEDULED = "task:scheduled"
    UPDATED = "task:updated"
    EXTENSION_REQUESTED = "task:extension:requested"
    EXTENSION_APPROVED = "task:extension:approved"
    EXTENSION_REJECTED = "task:extension:rejected"


def user_channel(user_id: str) -> str:
    """Channel a user's clients subscribe to."""
    return f"{Constants.REDIS_CHANNEL_PREFIX}:{user_id}"


def _recipients(task: Task) -> list[str]:
    recipients: list[str] = []
    for user_id in (task.assigner_id, task.receiver_id):
        if user_id and user_id not in recipients:
            recipients.append(user_id)
    return recipients


async def publish_task_event(event: TaskEvent, task: Task, **payload: Any) -> list[NotificationResult]:  # noqa: ANN401
    """Publish an event about a task to its assigner and receiver.

    Delivery is best-effort: failures are logged and reported in the
    results, never raised to the caller.

    Args:
        event: Event name
        task: Task the event is about (sent as the event data)
        **payload: Extra top-level fields (e.g. slot_id, extension_id)

    Returns:
        List of NotificationResult objects, one per recipient
    """
    with span("notification_service.publish_task_event"):
        message = json.dumps(
            {"event": str(event), "task_id": task.id, **payload, "data": task.model_dump(mode="json")},
            default=str,
        )

        results = []
        for user_id in _recipients(task):
            channel = user_channel(user_id)
            try:
                published = await redis_client.publish(channel, message)
                error = None if published else "event push unavailable"
            except RedisError as e:
                logger.exception("Failed to publish %s for task=%s to %s", event, task.id, channel)
                published = False
                error = str(e)

            results.append(NotificationResult(user_id=user_id, channel=channel, success=published, error=error))

        logger.info(
            "Published %s for task=%s (%d successful, %d failed)",
            event,
            task.id,
            sum(1 for r in results if r.success),
            sum(1 for r in results if not r.success),
        )
        return results
