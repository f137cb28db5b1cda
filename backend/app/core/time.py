"""Time utilities for timezone-aware UTC datetimes and calendar periods."""

from datetime import UTC, date, datetime, time, timedelta


def utc_now() -> datetime:
    """Return a timezone-aware UTC datetime for defaults and onupdate hooks."""
    return datetime.now(UTC)


def as_utc(value: datetime | None) -> datetime | None:
    """Treat naive datetimes read back from the database as UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def month_bounds(today: date) -> tuple[date, date]:
    """Return (current_month_start, previous_month_start) for ``today``."""
    current_start = today.replace(day=1)
    previous_start = (current_start - timedelta(days=1)).replace(day=1)
    return current_start, previous_start


def end_of_day(value: date) -> datetime:
    return datetime.combine(value, time.max, tzinfo=UTC)


def weekend_sunday(value: date) -> date:
    """Saturday sessions belong to the weekend ending the following Sunday."""
    if value.weekday() == 5:
        return value + timedelta(days=1)
    return value


def age_on(date_of_birth: date | None, today: date) -> int | None:
    if date_of_birth is None:
        return None
    years = today.year - date_of_birth.year
    if (today.month, today.day) < (date_of_birth.month, date_of_birth.day):
        years -= 1
    return years
