"""Next-run computation for recurring schedules.

All arithmetic happens in the schedule's own timezone, so "daily at 02:00"
means 02:00 wall-clock time there, across DST changes. Results are
timezone-aware datetimes.
"""

from __future__ import annotations

import calendar
from datetime import date, datetime, time, timedelta, timezone
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from secgate.errors.exceptions import ValidationError
from secgate.models.enums import ScheduleType
from secgate.models.schedule import ScheduleConfig

DEFAULT_DAY_OF_WEEK = 1  # Monday (0 = Sunday)
DEFAULT_DAY_OF_MONTH = 1


def as_utc(value: datetime | None) -> datetime | None:
    """Attach UTC to naive datetimes (SQLite drops tzinfo on round-trip)."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _zone(name: str) -> ZoneInfo:
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise ValidationError(f"Unknown timezone '{name}'") from exc


def _sunday_based_weekday(day: date) -> int:
    return day.isoweekday() % 7


def _clamped_day(year: int, month: int, day: int) -> date:
    """``day`` of the month, or the month's last day when it is shorter."""
    return date(year, month, min(day, calendar.monthrange(year, month)[1]))


def _next_month(year: int, month: int) -> tuple[int, int]:
    return (year + 1, 1) if month == 12 else (year, month + 1)


def calculate_next_run(
    schedule_type: ScheduleType | str,
    config: ScheduleConfig | dict | None = None,
    tz: str = "UTC",
    now: datetime | None = None,
) -> datetime | None:
    """The first instant strictly after ``now`` matching the schedule.

    ``manual`` schedules never run on their own and return None. A naive
    ``now`` is read as wall-clock time in ``tz``.
    """
    try:
        schedule_type = ScheduleType(schedule_type)
    except ValueError as exc:
        raise ValidationError(f"Invalid schedule type '{schedule_type}'") from exc
    if schedule_type == ScheduleType.MANUAL:
        return None

    if not isinstance(config, ScheduleConfig):
        config = ScheduleConfig.model_validate(config or {})

    zone = _zone(tz)
    if now is None:
        now = datetime.now(zone)
    elif now.tzinfo is None:
        now = now.replace(tzinfo=zone)
    else:
        now = now.astimezone(zone)

    today = now.date()
    run_time = time(config.hour, config.minute)

    def at(day: date) -> datetime:
        return datetime.combine(day, run_time, tzinfo=zone)

    if schedule_type == ScheduleType.DAILY:
        candidate = at(today)
        if candidate <= now:
            candidate = at(today + timedelta(days=1))
        return candidate

    if schedule_type == ScheduleType.WEEKLY:
        target = config.day_of_week if config.day_of_week is not None else DEFAULT_DAY_OF_WEEK
        delta = (target - _sunday_based_weekday(today) + 7) % 7
        if delta == 0 and at(today) <= now:
            delta = 7
        return at(today + timedelta(days=delta))

    # monthly
    day_of_month = config.day_of_month or DEFAULT_DAY_OF_MONTH
    candidate = at(_clamped_day(today.year, today.month, day_of_month))
    if candidate <= now:
        year, month = _next_month(today.year, today.month)
        candidate = at(_clamped_day(year, month, day_of_month))
    return candidate
