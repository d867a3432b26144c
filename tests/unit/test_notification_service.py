"""Unit tests for task event publishing."""

import json
from unittest.mock import AsyncMock

import pytest
from redis.exceptions import RedisError

from opsdesk.domain.task import Task
from opsdesk.services import notification_service
from opsdesk.services.notification_service import TaskEvent


def _task(**overrides) -> Task:
    data = {
        "id": "7",
        "created": "2025-12-01T09:00:00Z",
        "updated": "2025-12-01T09:00:00Z",
        "task_name": "Inspection",
        "assigner_id": "A",
        "receiver_id": "R",
    }
    return Task(**{**data, **overrides})


@pytest.fixture
def fake_redis(monkeypatch):
    """Replace the module-level Redis client with an AsyncMock."""
    client = AsyncMock()
    client.publish = AsyncMock(return_value=True)
    monkeypatch.setattr(notification_service, "redis_client", client)
    return client


@pytest.mark.unit
class TestPublishTaskEvent:
    """Tests for publish_task_event."""

    async def test_publishes_to_assigner_and_receiver(self, fake_redis):
        results = await notification_service.publish_task_event(TaskEvent.SCHEDULED, _task(), slot_id="s1")

        assert [r.channel for r in results] == ["user:A", "user:R"]
        assert all(r.success for r in results)
        channel, message = fake_redis.publish.call_args_list[0].args
        body = json.loads(message)
        assert channel == "user:A"
        assert body["event"] == "task:scheduled"
        assert body["task_id"] == "7"
        assert body["slot_id"] == "s1"
        assert body["data"]["task_name"] == "Inspection"

    async def test_same_person_on_both_sides_gets_one_message(self, fake_redis):
        results = await notification_service.publish_task_event(TaskEvent.UPDATED, _task(receiver_id="A"))

        assert [r.user_id for r in results] == ["A"]
        assert fake_redis.publish.call_count == 1

    async def test_unassigned_task_notifies_only_assigner(self, fake_redis):
        results = await notification_service.publish_task_event(TaskEvent.UPDATED, _task(receiver_id=None))

        assert [r.user_id for r in results] == ["A"]

    async def test_unavailable_redis_reports_failure(self, fake_redis):
        fake_redis.publish = AsyncMock(return_value=False)

        results = await notification_service.publish_task_event(TaskEvent.EXTENSION_REQUESTED, _task())

        assert not any(r.success for r in results)
        assert results[0].error == "event push unavailable"

    async def test_redis_error_is_not_raised(self, fake_redis):
        fake_redis.publish = AsyncMock(side_effect=[RedisError("boom"), True])

        results = await notification_service.publish_task_event(TaskEvent.EXTENSION_APPROVED, _task())

        assert [r.success for r in results] == [False, True]
        assert results[0].error == "boom"


@pytest.mark.unit
def test_user_channel():
    assert notification_service.user_channel("42") == "user:42"
