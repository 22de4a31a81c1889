"""
Time helpers. All persisted timestamps are naive UTC.
"""
from datetime import date, datetime, timezone


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def utc_today() -> date:
    return utcnow().date()


def month_start(day: date) -> datetime:
    return datetime(day.year, day.month, 1)


def previous_month_start(day: date) -> datetime:
    if day.month == 1:
        return datetime(day.year - 1, 12, 1)
    return datetime(day.year, day.month - 1, 1)


def next_month_start(day: date) -> datetime:
    if day.month == 12:
        return datetime(day.year + 1, 1, 1)
    return datetime(day.year, day.month + 1, 1)
