"""Date and time parsing helpers."""

from datetime import date, datetime, timezone


def as_utc(value: datetime) -> datetime:
    """Return ``value`` as an aware UTC datetime; naive values are taken as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def parse_datetime(value) -> datetime | None:
    """Parse an ISO-8601 timestamp.

    Returns None for missing values.

    Raises:
        ValueError: If the value is present but not a valid timestamp
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return as_utc(value)
    if not isinstance(value, str):
        raise ValueError(f"expected ISO-8601 string, got {type(value).__name__}")
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    return as_utc(datetime.fromisoformat(text))


def parse_date(value) -> date | None:
    """Parse an ISO-8601 date; timestamps are truncated to their date part.

    Raises:
        ValueError: If the value is present but not a valid date
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str):
        raise ValueError(f"expected ISO-8601 string, got {type(value).__name__}")
    return date.fromisoformat(value.strip()[:10])


def start_of_day(value: date) -> datetime:
    return datetime(value.year, value.month, value.day, tzinfo=timezone.utc)


def iso_week_key(value: datetime) -> tuple[int, int]:
    """(ISO year, ISO week) of a UTC timestamp."""
    year, week, _ = as_utc(value).isocalendar()
    return year, week
