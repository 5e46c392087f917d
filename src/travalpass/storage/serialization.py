"""Field mapping and value normalization for itinerary documents."""

from datetime import date, datetime, timezone
from typing import Any, Dict, Optional

from travalpass.utils.dates import (
    ensure_utc,
    from_epoch_ms,
    parse_date,
    parse_iso_datetime,
    to_day_timestamp,
)


# Standard field name mappings: Python snake_case → Firestore camelCase
FIELD_MAPPING = {
    "user_id": "userId",
    "user_info": "userInfo",
    "start_date": "startDate",
    "end_date": "endDate",
    "start_day": "startDay",
    "end_day": "endDay",
    "sexual_orientation": "sexualOrientation",
    "lower_range": "lowerRange",
    "upper_range": "upperRange",
    "created_at": "createdAt",
    "updated_at": "updatedAt",
}

# Fields stored as integers regardless of how the client sent them
INTEGER_FIELDS = ("startDay", "endDay", "age", "lowerRange", "upperRange")

DATE_FIELDS = ("startDate", "endDate")


def normalize_to_datetime(value: Any) -> Optional[datetime]:
    """
    Normalize a date-like value to an aware UTC datetime.

    Accepts ISO strings, epoch milliseconds, date/datetime objects and
    Firestore timestamps (which are datetime subclasses).

    Returns:
        UTC datetime, or None if the value is empty or unparseable
    """
    if value is None or value == "" or isinstance(value, bool):
        return None
    if isinstance(value, datetime):
        return ensure_utc(value)
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day, tzinfo=timezone.utc)
    if isinstance(value, (int, float)):
        return from_epoch_ms(int(value))
    if isinstance(value, str):
        return parse_iso_datetime(value)
    return None


def sanitize_value(value: Any) -> Any:
    """
    Convert a Firestore value into a JSON-safe value.

    Timestamps and dates become ISO strings; containers are converted
    recursively.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return ensure_utc(value).isoformat()
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, (list, tuple, set, frozenset)):
        return [sanitize_value(v) for v in value]
    if isinstance(value, dict):
        return {k: sanitize_value(v) for k, v in value.items()}
    return value


def normalize_itinerary_payload(data: Dict[str, Any]) -> Dict[str, Any]:
    """
    Normalize an incoming itinerary payload before it is written.

    - snake_case keys are renamed to their stored camelCase names
    - startDate/endDate become UTC datetimes (stored as Firestore timestamps)
    - numeric fields are coerced to int
    - startDay/endDay are derived from the dates when the client omitted them

    Args:
        data: Payload with camelCase or snake_case field names

    Returns:
        New normalized payload (id fields removed)
    """
    payload = {
        FIELD_MAPPING.get(k, k): v for k, v in data.items() if k not in ("id", "itineraryId")
    }

    for field_name in DATE_FIELDS:
        if field_name in payload:
            payload[field_name] = normalize_to_datetime(payload[field_name])

    for field_name in INTEGER_FIELDS:
        if field_name in payload:
            value = payload[field_name]
            payload[field_name] = int(value) if value not in (None, "") else None

    for date_field, day_field in (("startDate", "startDay"), ("endDate", "endDay")):
        if payload.get(day_field) is None and payload.get(date_field) is not None:
            payload[day_field] = to_day_timestamp(parse_date(payload[date_field]))

    return payload
