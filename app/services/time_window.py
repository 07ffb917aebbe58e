from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, tzinfo
from typing import Protocol

from app.core.exceptions import ValidationError
from app.schemas.course_template import DayOfWeek

WEEK_LENGTH = timedelta(days=7)


class TemplateLike(Protocol):
    id: int
    day_of_week: str
    time_of_day: str
    duration_minutes: int


@dataclass(frozen=True)
class OccurrenceSlot:
    """
    One concrete, dated slot of a template inside a window.
    """

    template_id: int
    scheduled_date: date
    scheduled_time: time
    start: datetime
    end: datetime


def parse_day_of_week(value: str | None) -> DayOfWeek:
    """
    Map a stored day value onto the DayOfWeek enum. Only the exact
    (case-insensitive) English day names are accepted.
    """
    try:
        return DayOfWeek((value or "").strip().lower())
    except ValueError:
        raise ValidationError(
            f"Unrecognized day_of_week {value!r}",
            details={"day_of_week": value},
        ) from None


def parse_time_of_day(value: str | None) -> time:
    """
    Parse an ``HH:MM`` 24h string into a ``time``.
    """
    try:
        hours_raw, minutes_raw = (value or "").strip().split(":")
        if len(hours_raw) not in (1, 2) or len(minutes_raw) != 2:
            raise ValueError(value)
        return time(int(hours_raw), int(minutes_raw))
    except ValueError:
        raise ValidationError(
            f"Malformed time_of_day {value!r}, expected HH:MM",
            details={"time_of_day": value},
        ) from None


def normalize_week_start(day: date) -> date:
    """
    Return the Monday on or before ``day``.
    """
    return day - timedelta(days=day.weekday())


def expand(
    template: TemplateLike,
    week_start: date,
    week_end: date,
    tz: tzinfo,
) -> OccurrenceSlot | None:
    """
    Compute the occurrence of ``template`` inside ``[week_start, week_end)``.

    Returns the first date in the window whose weekday matches the template,
    or None when the window holds no such day (a window shorter than a week
    that does not cover the template's weekday).

    Raises
    ------
    ValidationError
        If the template's day, time or duration is malformed.
    """
    day = parse_day_of_week(template.day_of_week)
    time_of_day = parse_time_of_day(template.time_of_day)
    if not template.duration_minutes or template.duration_minutes <= 0:
        raise ValidationError(
            f"duration_minutes must be positive, got {template.duration_minutes!r}",
            details={"duration_minutes": template.duration_minutes},
        )

    offset = (day.iso_index - week_start.weekday()) % 7
    scheduled_date = week_start + timedelta(days=offset)
    if scheduled_date >= week_end:
        return None

    start = datetime.combine(scheduled_date, time_of_day, tzinfo=tz)
    end = start + timedelta(minutes=template.duration_minutes)

    return OccurrenceSlot(
        template_id=template.id,
        scheduled_date=scheduled_date,
        scheduled_time=time_of_day,
        start=start,
        end=end,
    )


def next_meeting_start(
    day: DayOfWeek,
    time_of_day: time,
    now: datetime,
    tz: tzinfo,
) -> datetime:
    """
    Next instant strictly after ``now`` that falls on ``day`` at
    ``time_of_day`` in ``tz``.

    The slot of the current week is used unless it has already started, in
    which case the result is exactly one week later.
    """
    local_now = now.astimezone(tz)
    offset = (day.iso_index - local_now.weekday()) % 7
    candidate_date = local_now.date() + timedelta(days=offset)
    candidate = datetime.combine(candidate_date, time_of_day, tzinfo=tz)

    if candidate <= local_now:
        candidate = datetime.combine(candidate_date + WEEK_LENGTH, time_of_day, tzinfo=tz)

    return candidate
