"""Pytest configuration and shared fixtures."""

import weakref

import pytest

from opsdesk.core.config import settings
from opsdesk.modules.scheduling import schedule_index


@pytest.fixture(autouse=True)
def scheduling_settings(monkeypatch):
    """Pin schedule timezone and office hours so tests do not depend on a local .env."""
    monkeypatch.setattr(settings, "schedule_timezone", "UTC")
    monkeypatch.setattr(settings, "office_start_hour", 0)
    monkeypatch.setattr(settings, "office_end_hour", 24)
    return settings


@pytest.fixture(autouse=True)
def fresh_locks(monkeypatch):
    """Give every test its own person and task lock table."""
    monkeypatch.setattr(schedule_index, "_locks", weakref.WeakValueDictionary())
