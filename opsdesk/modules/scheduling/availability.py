"""Free-time suggestions computed from a person's schedule index."""

import logging
from datetime import UTC, date, datetime, timedelta

from opsdesk.core.config import Constants
from opsdesk.core.logging import span
from opsdesk.domain.schedule import Availability, ScheduleEntry, Suggestion
from opsdesk.modules.scheduling import schedule_index
from opsdesk.modules.scheduling.slot_time import day_bounds, schedule_timezone
from opsdesk.modules.scheduling.validation import coerce_positive_int, parse_day, require_text


logger = logging.getLogger(__name__)


def _day_suggestions(
    *,
    day: date,
    bookings: list[ScheduleEntry],
    duration: timedelta,
    now: datetime,
    limit: int,
) -> list[Suggestion]:
    """Walk one day's gaps, emitting one duration-sized suggestion at the start of each fitting gap."""
    day_start, day_end = day_bounds(day)
    cursor = max(day_start, now)
    suggestions: list[Suggestion] = []

    def emit(start: datetime) -> None:
        suggestions.append(
            Suggestion(
                date=day.isoformat(),
                start=start,
                end=start + duration,
                duration_minutes=int(duration.total_seconds() // 60),
            )
        )

    for booking in bookings:
        if len(suggestions) >= limit or cursor >= day_end:
            return suggestions
        if booking.end_at <= day_start or booking.start_at >= day_end:
            continue
        if booking.start_at - cursor >= duration:
            emit(cursor)
        cursor = max(cursor, booking.end_at)

    if len(suggestions) < limit and day_end - cursor >= duration:
        emit(cursor)
    return suggestions


async def suggest(
    *,
    user_id: str | None,
    from_date: str | date | None = None,
    duration_minutes: object = None,
    lookahead_days: object = None,
    max_suggestions: object = None,
    now: datetime | None = None,
) -> Availability:
    """Suggest open intervals for a person over the coming days.

    Args:
        user_id: Person whose schedule is scanned
        from_date: First day to scan (defaults to today in the schedule timezone)
        duration_minutes: Length of each suggestion (default 30)
        lookahead_days: Days to scan (default 3, capped at 7)
        max_suggestions: Total suggestions returned (default 5, capped at 10)
        now: Current instant; nothing is suggested before it

    Returns:
        Availability with the window's bookings and the suggestions

    Raises:
        ScheduleValidationError: If user_id is missing, the date is malformed
            or a numeric argument is not a positive integer
    """
    with span("scheduling.suggest_availability"):
        person = require_text(user_id, "user_id")
        duration = coerce_positive_int(
            Constants.AVAILABILITY_DEFAULT_DURATION_MINUTES if duration_minutes is None else duration_minutes,
            "duration_minutes",
        )
        days = min(
            coerce_positive_int(
                Constants.AVAILABILITY_DEFAULT_LOOKAHEAD_DAYS if lookahead_days is None else lookahead_days,
                "lookahead_days",
            ),
            Constants.AVAILABILITY_LOOKAHEAD_DAYS_CAP,
        )
        limit = min(
            coerce_positive_int(
                Constants.AVAILABILITY_DEFAULT_MAX_SUGGESTIONS if max_suggestions is None else max_suggestions,
                "max_suggestions",
            ),
            Constants.AVAILABILITY_MAX_SUGGESTIONS_CAP,
        )

        current = now or datetime.now(UTC)
        if current.tzinfo is None:
            current = current.replace(tzinfo=UTC)
        first_day = parse_day(from_date) or current.astimezone(schedule_timezone()).date()
        scan_days = [first_day + timedelta(days=offset) for offset in range(days)]

        window_start = day_bounds(scan_days[0])[0]
        window_end = day_bounds(scan_days[-1])[1]
        bookings = await schedule_index.find_for_person(user_id=person, start=window_start, end=window_end)

        suggestions: list[Suggestion] = []
        for day in scan_days:
            remaining = limit - len(suggestions)
            if remaining <= 0:
                break
            suggestions.extend(
                _day_suggestions(
                    day=day,
                    bookings=bookings,
                    duration=timedelta(minutes=duration),
                    now=current,
                    limit=remaining,
                )
            )

        logger.info(
            "Computed availability for %s: %d booking(s), %d suggestion(s) over %d day(s)",
            person,
            len(bookings),
            len(suggestions),
            days,
        )
        return Availability(
            user_id=person,
            window_start=window_start,
            window_end=window_end,
            duration_minutes=duration,
            bookings=bookings,
            suggestions=suggestions,
        )
