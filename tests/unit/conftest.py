"""Pytest configuration and fixtures for unit tests."""

import json

import pytest

from tests.unit.mocks import InMemoryDBClient


@pytest.fixture
def in_memory_db():
    """Provides a fresh InMemoryDBClient for each test."""
    return InMemoryDBClient()


class RecordingRedis:
    """Stands in for the global redis client, remembering what was published."""

    def __init__(self):
        self.messages: list[tuple[str, dict]] = []
        self.available = True

    async def publish(self, channel: str, message: str) -> bool:
        if not self.available:
            return False
        self.messages.append((channel, json.loads(message)))
        return True

    def events(self) -> list[str]:
        return [payload["event"] for _, payload in self.messages]


@pytest.fixture
def published(monkeypatch):
    """Patches the notification sink so no real Redis is touched."""
    recorder = RecordingRedis()
    monkeypatch.setattr("opsdesk.services.notification_service.redis_client", recorder)
    return recorder


@pytest.fixture
def patched_db(monkeypatch, in_memory_db, published):
    """Patches opsdesk.core.db_client functions to use InMemoryDBClient."""
    monkeypatch.setattr("opsdesk.core.db_client.create_record", in_memory_db.create_record)
    monkeypatch.setattr("opsdesk.core.db_client.get_record", in_memory_db.get_record)
    monkeypatch.setattr("opsdesk.core.db_client.update_record", in_memory_db.update_record)
    monkeypatch.setattr("opsdesk.core.db_client.upsert_record", in_memory_db.upsert_record)
    monkeypatch.setattr("opsdesk.core.db_client.delete_record", in_memory_db.delete_record)
    monkeypatch.setattr("opsdesk.core.db_client.list_records", in_memory_db.list_records)
    return in_memory_db
