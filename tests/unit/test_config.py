"""Tests for configuration validation."""

import pytest
from pydantic import ValidationError

from opsdesk.core.config import Constants, Settings


def test_defaults_allow_whole_day() -> None:
    """Test the default bookable window covers the full day in UTC."""
    settings = Settings(_env_file=None)

    assert settings.schedule_timezone == "UTC"
    assert (settings.office_start_hour, settings.office_end_hour) == (0, 24)
    assert settings.redis_url is None


def test_office_hours_from_environment(monkeypatch) -> None:
    """Test office hours are read from the environment."""
    monkeypatch.setenv("OFFICE_START_HOUR", "9")
    monkeypatch.setenv("OFFICE_END_HOUR", "18")
    monkeypatch.setenv("SCHEDULE_TIMEZONE", "Europe/Berlin")

    settings = Settings(_env_file=None)

    assert (settings.office_start_hour, settings.office_end_hour) == (9, 18)
    assert settings.schedule_timezone == "Europe/Berlin"


@pytest.mark.parametrize(("start", "end"), [(9, 9), (17, 8)])
def test_empty_office_window_is_rejected(start: int, end: int) -> None:
    """Test office_end_hour must come after office_start_hour."""
    with pytest.raises(ValidationError, match="office_end_hour must be after office_start_hour"):
        Settings(_env_file=None, office_start_hour=start, office_end_hour=end)


def test_office_hours_are_bounded() -> None:
    """Test hours outside a day are rejected."""
    with pytest.raises(ValidationError):
        Settings(_env_file=None, office_end_hour=25)


def test_availability_caps_exceed_defaults() -> None:
    """Test the caps never clamp a default request."""
    assert Constants.AVAILABILITY_MAX_SUGGESTIONS_CAP >= Constants.AVAILABILITY_DEFAULT_MAX_SUGGESTIONS
    assert Constants.AVAILABILITY_LOOKAHEAD_DAYS_CAP >= Constants.AVAILABILITY_DEFAULT_LOOKAHEAD_DAYS
