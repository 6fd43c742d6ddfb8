"""Week bucketing helpers. Weeks run Sunday to Saturday in local time."""
from __future__ import annotations

from datetime import date, datetime, timedelta
from typing import Union

DateLike = Union[date, datetime, str]


def to_local_date(value: DateLike) -> date:
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone()
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value)[:10])


def start_of_week(value: DateLike) -> date:
    """Return the Sunday on or before ``value``."""
    day = to_local_date(value)
    # date.weekday(): Monday == 0 ... Sunday == 6
    return day - timedelta(days=(day.weekday() + 1) % 7)


def elapsed_days_in_week(value: DateLike) -> int:
    """1 on Sunday through 7 on Saturday."""
    day = to_local_date(value)
    return (day - start_of_week(day)).days + 1
