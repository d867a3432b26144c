"""Slot time resolution.

A slot marker is stored as text in one of two shapes:

* an absolute timestamp (``2025-12-31T10:00:00Z``), or
* a bare time of day (``10:00`` / ``10:00:30``) read against the slot's
  ``slot_date`` in the configured schedule timezone.

Parsing yields a tagged marker (:class:`AbsoluteMarker` or
:class:`TimeOfDayMarker`). Shifting a marker re-renders it in its original
shape, so a time-of-day slot never acquires a date it did not have.
"""

import logging
import re
from dataclasses import dataclass
from datetime import UTC, date, datetime, time, timedelta
from typing import Protocol
from zoneinfo import ZoneInfo

from opsdesk.core.config import settings
from opsdesk.core.errors import ScheduleValidationError


logger = logging.getLogger(__name__)

TIME_OF_DAY_PATTERN = re.compile(r"^(\d{1,2}):(\d{2})(?::(\d{2}))?$")


class SlotLike(Protocol):
    """Anything carrying slot markers (stored slots and incoming payloads)."""

    start: str | None
    end: str | None
    slot_date: str | None


@dataclass(frozen=True)
class AbsoluteMarker:
    """A marker that already names an instant."""

    instant: datetime


@dataclass(frozen=True)
class TimeOfDayMarker:
    """A bare time of day, meaningful only together with a slot date."""

    slot_date: date | None
    hour: int
    minute: int
    second: int | None = None


TimeMarker = AbsoluteMarker | TimeOfDayMarker


@dataclass(frozen=True)
class Interval:
    """Half-open absolute interval [start, end)."""

    start: datetime
    end: datetime

    @property
    def minutes(self) -> int:
        return int((self.end - self.start).total_seconds() // 60)

    def overlaps(self, other: "Interval") -> bool:
        return self.start < other.end and other.start < self.end

    def shifted(self, minutes: int) -> "Interval":
        delta = timedelta(minutes=minutes)
        return Interval(start=self.start + delta, end=self.end + delta)


def schedule_timezone() -> ZoneInfo:
    """Timezone for time-of-day markers and calendar days."""
    return ZoneInfo(settings.schedule_timezone)


def format_instant(instant: datetime) -> str:
    """Render an instant as a UTC ISO timestamp with a Z suffix."""
    return instant.astimezone(UTC).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def to_storage(instant: datetime) -> str:
    """Render an instant in the fixed-width UTC form used for index rows and range filters."""
    return instant.astimezone(UTC).isoformat(timespec="microseconds")


def parse_slot_date(value: str | None) -> date | None:
    """Parse a slot date (YYYY-MM-DD, or any ISO timestamp's date part)."""
    if not value:
        return None
    text = value.strip()
    try:
        return date.fromisoformat(text)
    except ValueError:
        pass
    try:
        return datetime.fromisoformat(text).date()
    except ValueError:
        return None


def _parse_absolute(text: str) -> datetime | None:
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=schedule_timezone())
    return parsed.astimezone(UTC)


def parse_marker(text: str | None, slot_date: str | None = None) -> TimeMarker | None:
    """Parse stored marker text into a tagged marker, or None if it is neither shape."""
    if not text or not isinstance(text, str):
        return None
    stripped = text.strip()

    instant = _parse_absolute(stripped)
    if instant is not None:
        return AbsoluteMarker(instant=instant)

    match = TIME_OF_DAY_PATTERN.match(stripped)
    if not match:
        return None

    hour, minute = int(match.group(1)), int(match.group(2))
    second = int(match.group(3)) if match.group(3) is not None else None
    if hour > 23 or minute > 59 or (second is not None and second > 59):  # noqa: PLR2004
        return None
    return TimeOfDayMarker(slot_date=parse_slot_date(slot_date), hour=hour, minute=minute, second=second)


def resolve_marker(marker: TimeMarker) -> datetime | None:
    """Turn a marker into an absolute UTC instant (None for a time of day without a date)."""
    if isinstance(marker, AbsoluteMarker):
        return marker.instant
    if marker.slot_date is None:
        return None
    local = datetime.combine(
        marker.slot_date,
        time(marker.hour, marker.minute, marker.second or 0),
        tzinfo=schedule_timezone(),
    )
    return local.astimezone(UTC)


def resolve_instant(text: str | None, slot_date: str | None) -> datetime | None:
    marker = parse_marker(text, slot_date)
    return resolve_marker(marker) if marker is not None else None


def resolve_interval(slot: SlotLike) -> Interval | None:
    """Resolve a slot's markers into an absolute interval.

    Returns None when either marker cannot be resolved; callers decide
    whether that is a validation failure or a skip.
    """
    start = resolve_instant(slot.start, slot.slot_date)
    end = resolve_instant(slot.end, slot.slot_date)
    if start is None or end is None:
        return None
    return Interval(start=start, end=end)


def require_interval(slot: SlotLike, field: str) -> Interval:
    """Resolve a slot's interval or raise a validation error naming the slot field.

    Raises:
        ScheduleValidationError: If a marker is unresolvable or end is not after start
    """
    if resolve_instant(slot.start, slot.slot_date) is None:
        raise ScheduleValidationError(f"{field}.start", f"cannot resolve start marker {slot.start!r}")
    interval = resolve_interval(slot)
    if interval is None:
        raise ScheduleValidationError(f"{field}.end", f"cannot resolve end marker {slot.end!r}")
    if interval.end <= interval.start:
        raise ScheduleValidationError(f"{field}.end", "end must be after start")
    return interval


def reserialize(original: str, shifted: datetime) -> str:
    """Render a shifted instant in the same shape as the original marker text.

    Time-of-day originals keep only the time portion (with seconds only if
    the original had them); anything else becomes a full UTC timestamp.
    """
    marker = parse_marker(original)
    if isinstance(marker, TimeOfDayMarker):
        local = shifted.astimezone(schedule_timezone())
        return local.strftime("%H:%M:%S" if marker.second is not None else "%H:%M")
    return format_instant(shifted)


def shift_marker(text: str, slot_date: str | None, minutes: int, field: str) -> str:
    """Move a marker forward by ``minutes``, preserving its textual shape.

    Raises:
        ScheduleValidationError: If the marker cannot be resolved, or a
            time-of-day marker would cross midnight (its date is not stored
            in the marker, so it would silently jump back a day)
    """
    marker = parse_marker(text, slot_date)
    instant = resolve_marker(marker) if marker is not None else None
    if instant is None:
        raise ScheduleValidationError(field, f"cannot resolve marker {text!r}")

    shifted = instant + timedelta(minutes=minutes)
    if isinstance(marker, TimeOfDayMarker):
        if shifted.astimezone(schedule_timezone()).date() != marker.slot_date:
            raise ScheduleValidationError(field, "shift would move a time-of-day marker past midnight")

    return reserialize(text, shifted)


def day_bounds(day: date) -> tuple[datetime, datetime]:
    """Bookable window of a calendar day in the schedule timezone, as UTC instants."""
    tz = schedule_timezone()
    midnight = datetime.combine(day, time(0), tzinfo=tz)
    start = midnight + timedelta(hours=settings.office_start_hour)
    end = midnight + timedelta(hours=settings.office_end_hour)
    return start.astimezone(UTC), end.astimezone(UTC)
