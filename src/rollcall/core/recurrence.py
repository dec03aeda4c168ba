"""Date math for recurring events.

``next_occurrence`` never raises: a recurrence that cannot be computed
(unknown frequency, weekly without weekdays) yields ``None`` and the caller
treats the event as not reschedulable.
"""

from __future__ import annotations

import calendar
import logging
import re
from datetime import date, datetime, time, timedelta, timezone, tzinfo
from typing import Any, Iterable, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from dateutil.relativedelta import relativedelta

from ..domain.enums import Frequency, MonthlyMode, Weekday, WhenMode, weekday_flags, weekdays_from_flags
from ..domain.models import Event

logger = logging.getLogger(__name__)

_LEGACY_FREQUENCIES = {
    0: Frequency.NONE,
    1: Frequency.DAILY,
    2: Frequency.WEEKLY,
    3: Frequency.BIWEEKLY,
    4: Frequency.MONTHLY,
}

_NUMBER = re.compile(r"\d*\.?\d+")


def coerce_frequency(value: Any) -> Frequency:
    if isinstance(value, Frequency):
        return value
    if isinstance(value, int) and not isinstance(value, bool):
        if value in _LEGACY_FREQUENCIES:
            return _LEGACY_FREQUENCIES[value]
        raise ValueError(f"invalid frequency {value!r} specified")
    return Frequency(value)


def runtime_to_hours(runtime: Any) -> float:
    match = _NUMBER.search(str(runtime if runtime is not None else "").strip())
    if not match:
        return 0.0
    return float(match.group(0))


def iso_week_distance(start: date, end: date) -> int:
    """Number of Monday-anchored week boundaries between two dates."""

    start_monday = start - timedelta(days=start.weekday())
    end_monday = end - timedelta(days=end.weekday())
    return (end_monday - start_monday).days // 7


def _next_matching_weekday(after: date, weekdays: frozenset[Weekday]) -> date:
    for offset in range(1, 8):
        candidate = after + timedelta(days=offset)
        if candidate.weekday() in weekdays:
            return candidate
    raise ValueError("weekday set is empty")


def _nth_weekday(year: int, month: int, weekday: int, ordinal: int) -> Optional[date]:
    first = date(year, month, 1)
    day = 1 + (weekday - first.weekday()) % 7 + 7 * (ordinal - 1)
    if day > calendar.monthrange(year, month)[1]:
        return None
    return date(year, month, day)


def _same_weekday_next_month(base: date) -> date:
    ordinal = (base.day - 1) // 7 + 1
    following = base + relativedelta(months=1)
    candidate = _nth_weekday(following.year, following.month, base.weekday(), ordinal)
    if candidate is None:
        # Fifth occurrence with no counterpart next month.
        return _nth_weekday(following.year, following.month, base.weekday(), 4)
    return candidate


def next_occurrence(
    base_date: date,
    weekdays: Iterable[Any],
    frequency: Any,
    monthly_mode: Any = MonthlyMode.WEEKDAY,
    week_interval: Any = 2,
) -> Optional[date]:
    try:
        resolved = coerce_frequency(frequency)
        if resolved is Frequency.NONE:
            return None
        if resolved is Frequency.DAILY:
            return base_date + timedelta(days=1)

        days = frozenset(Weekday(day) for day in (weekdays or ()))
        if resolved is Frequency.WEEKLY:
            if not days:
                return None
            return _next_matching_weekday(base_date, days)
        if resolved is Frequency.BIWEEKLY:
            if not days:
                return None
            interval = max(1, int(week_interval or 1))
            candidate = _next_matching_weekday(base_date, days)
            while iso_week_distance(base_date, candidate) < interval:
                candidate = _next_matching_weekday(candidate, days)
            return candidate

        if MonthlyMode(monthly_mode) is MonthlyMode.WEEKDAY:
            return _same_weekday_next_month(base_date)
        return base_date + relativedelta(months=1)
    except (TypeError, ValueError) as exc:
        logger.warning("Cannot compute next occurrence from %s: %s", base_date, exc)
        return None


def event_tzinfo(event: Event) -> tzinfo:
    if event.timezone_name:
        try:
            return ZoneInfo(event.timezone_name)
        except (ZoneInfoNotFoundError, ValueError):
            logger.warning("Unknown time zone %r on event %s, using UTC offset", event.timezone_name, event.id)
    return timezone(timedelta(minutes=15 * int(event.utc_offset_quarters or 0)))


def start_for_date(event: Event, on: date) -> datetime:
    return datetime.combine(on, event.start_time or time(), tzinfo=event_tzinfo(event))


def compute_start(event: Event, now: datetime) -> Optional[datetime]:
    if event.when_mode is WhenMode.NOW:
        return now
    if event.start_date is None:
        return None
    return start_for_date(event, event.start_date)


def next_event_date(event: Event) -> Optional[date]:
    if event.start_date is None:
        return None
    return next_occurrence(
        event.start_date,
        event.weekdays,
        event.frequency,
        event.monthly_mode,
        event.week_interval,
    )


__all__ = [
    "coerce_frequency",
    "compute_start",
    "event_tzinfo",
    "iso_week_distance",
    "next_event_date",
    "next_occurrence",
    "runtime_to_hours",
    "start_for_date",
    "weekday_flags",
    "weekdays_from_flags",
]
