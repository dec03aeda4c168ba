from __future__ import annotations

from enum import Enum, IntEnum
from typing import FrozenSet, Iterable, List, Sequence


class Frequency(str, Enum):
    NONE = "none"
    DAILY = "daily"
    WEEKLY = "weekly"
    BIWEEKLY = "biweekly"
    MONTHLY = "monthly"


class MonthlyMode(str, Enum):
    WEEKDAY = "weekday"
    DATE = "date"


class WhenMode(str, Enum):
    DATETIME = "datetime"
    NOW = "now"


class SignupMethod(str, Enum):
    AUTOMATED = "automated"
    CUSTOM = "custom"


class RescheduleMode(str, Enum):
    REPOST = "repost"
    UPDATE = "update"


class Weekday(IntEnum):
    """Weekdays numbered like ``date.weekday()``."""

    MONDAY = 0
    TUESDAY = 1
    WEDNESDAY = 2
    THURSDAY = 3
    FRIDAY = 4
    SATURDAY = 5
    SUNDAY = 6


def weekdays_from_flags(flags: Sequence[bool]) -> FrozenSet[Weekday]:
    """Convert seven Sunday-first booleans into a weekday set."""

    return frozenset(Weekday((index - 1) % 7) for index, flag in enumerate(flags[:7]) if flag)


def weekday_flags(weekdays: Iterable[Weekday]) -> List[bool]:
    selected = {Weekday(day) for day in weekdays}
    return [Weekday((index - 1) % 7) in selected for index in range(7)]
