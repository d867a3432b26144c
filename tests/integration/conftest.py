"""Pytest configuration and fixtures for integration tests."""

import logging
from collections.abc import AsyncIterator

import pytest

from opsdesk.core import db_client
from opsdesk.core.config import settings
from opsdesk.main import register_modules


logger = logging.getLogger(__name__)


class _SilentRedis:
    """Event sink for integration runs (no Redis server required)."""

    async def publish(self, channel: str, message: str) -> bool:
        logger.debug("Dropped event for %s", channel)
        return False


@pytest.fixture
async def sqlite_db(tmp_path, monkeypatch) -> AsyncIterator[str]:
    """A fresh SQLite file with every registered module's schema applied."""
    db_path = str(tmp_path / "opsdesk-test.db")
    monkeypatch.setattr(settings, "sqlite_db_path", db_path)
    monkeypatch.setattr("opsdesk.services.notification_service.redis_client", _SilentRedis())

    register_modules()
    await db_client.init_db()
    yield db_path
    await db_client.close_connection()
