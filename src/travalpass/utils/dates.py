"""Date helpers shared by the matching filter and the storage layers."""

from datetime import date, datetime, time, timezone
from typing import Any, Optional

# Itinerary submission stores each calendar day as 12:00 UTC to stay clear of
# timezone rollover, so searches convert their window the same way.
DAY_ANCHOR = time(12, 0, tzinfo=timezone.utc)

MAX_PLAUSIBLE_AGE = 150


def to_day_timestamp(value: date) -> int:
    """
    Convert a calendar date to its day timestamp.

    Args:
        value: Calendar date (a datetime is truncated to its date)

    Returns:
        Epoch milliseconds of 12:00 UTC on that date
    """
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(timezone.utc)
        value = value.date()
    anchored = datetime.combine(value, DAY_ANCHOR)
    return int(anchored.timestamp() * 1000)


def from_epoch_ms(value: int) -> datetime:
    """Convert epoch milliseconds to an aware UTC datetime."""
    return datetime.fromtimestamp(value / 1000, tz=timezone.utc)


def ensure_utc(value: datetime) -> datetime:
    """Attach UTC to naive datetimes, convert aware ones to UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def parse_iso_datetime(text: str) -> Optional[datetime]:
    """
    Parse an ISO 8601 timestamp as an aware UTC datetime.

    A trailing "Z" is accepted; naive timestamps are taken as UTC.

    Returns:
        The datetime, or None if text is not an ISO timestamp
    """
    text = text.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        return ensure_utc(datetime.fromisoformat(text))
    except ValueError:
        return None


def parse_date(value: Any) -> Optional[date]:
    """
    Parse a calendar date from the shapes stored documents use.

    Accepts ISO strings ("2025-11-11" or full timestamps), date/datetime
    objects (including Firestore timestamps) and epoch milliseconds.

    Returns:
        The date, or None if the value is empty or unparseable
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return ensure_utc(value).date()
    if isinstance(value, date):
        return value
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return from_epoch_ms(int(value)).date()
    if isinstance(value, str):
        text = value.strip()
        # Timestamps with an offset fall on their UTC calendar day
        parsed = parse_iso_datetime(text) if len(text) > 10 else None
        if parsed is not None:
            return parsed.date()
        try:
            return date.fromisoformat(text[:10])
        except ValueError:
            return None
    return None


def calculate_age(dob: Any, today: Optional[date] = None) -> Optional[int]:
    """
    Calculate age in whole years from a date of birth.

    Args:
        dob: Date of birth (ISO string or date)
        today: Reference date (default: today in UTC)

    Returns:
        Age in years, or None for a missing, invalid or impossible DOB
    """
    birth_date = parse_date(dob)
    if birth_date is None:
        return None

    today = today or datetime.now(timezone.utc).date()
    age = today.year - birth_date.year
    if (today.month, today.day) < (birth_date.month, birth_date.day):
        age -= 1

    if age < 0 or age > MAX_PLAUSIBLE_AGE:
        return None
    return age
