"""Conversions between 12-hour slot strings, minute offsets and durations.

Slot strings ("02:00 PM") and ISO dates ("2025-03-14") are the wire format;
everything below the API boundary works with minutes since local midnight
and timezone-aware datetimes in the business zone.
"""

import re
from datetime import date, datetime, time, timedelta, timezone
from functools import lru_cache
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from app.core.exceptions import ValidationError

DEFAULT_DURATION_MINUTES = 120
MINUTES_PER_DAY = 24 * 60

_TIME_RE = re.compile(r"^\s*(\d{1,2}):(\d{2})\s+([AaPp][Mm])\s*$")
_NUMBER_RE = re.compile(r"\d+(?:\.\d+)?")
_DATE_RE = re.compile(r"\d{4}-\d{2}-\d{2}")


def parse_time_to_minutes(slot: str) -> int:
    """Convert "hh:mm AM|PM" into minutes since midnight.

    12 AM maps to hour 0, 12 PM stays 12, any other PM hour gains 12.
    """
    if not isinstance(slot, str):
        raise ValidationError(f"Time slot must be a string, got {slot!r}")

    match = _TIME_RE.match(slot)
    if not match:
        raise ValidationError(f"Invalid time slot {slot!r}, expected 'hh:mm AM|PM'")

    hours, minutes, modifier = int(match.group(1)), int(match.group(2)), match.group(3)
    if not 1 <= hours <= 12 or not 0 <= minutes <= 59:
        raise ValidationError(f"Time slot {slot!r} is out of range")

    if hours == 12:
        hours = 0
    if modifier.upper() == "PM":
        hours += 12
    return hours * 60 + minutes


def minutes_to_time_str(total_minutes: int) -> str:
    """Inverse of :func:`parse_time_to_minutes`."""
    if not 0 <= total_minutes < MINUTES_PER_DAY:
        raise ValidationError(f"Minute offset {total_minutes} is outside a day")

    h, m = divmod(total_minutes, 60)
    ampm = "PM" if h >= 12 else "AM"
    if h > 12:
        h -= 12
    if h == 0:
        h = 12
    return f"{h:02d}:{m:02d} {ampm}"


def parse_duration_to_minutes(
    text: Optional[str], default: int = DEFAULT_DURATION_MINUTES
) -> int:
    """Tolerant duration parser for catalog strings like "4-6 Hours".

    Takes the first number in the text. Ranges resolve to their lower bound.
    Text without a positive number or without a recognised unit falls back to
    ``default``.
    """
    if not text:
        return default

    lower = text.lower()
    match = _NUMBER_RE.search(lower)
    if not match:
        return default

    value = float(match.group(0))
    if value <= 0:
        return default
    if "min" in lower:
        return max(1, int(round(value)))
    if "hour" in lower or "hr" in lower:
        return max(1, int(round(value * 60)))
    return default


def parse_date(value: str) -> date:
    """Parse a calendar date written exactly as ``YYYY-MM-DD``.

    Dates are stored and compared as strings, so other ISO spellings of the
    same day ("20250610", "2025-W24-2") are rejected rather than accepted.
    """
    if not isinstance(value, str) or not _DATE_RE.fullmatch(value):
        raise ValidationError(f"Invalid date {value!r}, expected YYYY-MM-DD")
    try:
        return date.fromisoformat(value)
    except ValueError:
        raise ValidationError(f"Invalid date {value!r}, expected YYYY-MM-DD") from None


@lru_cache(maxsize=8)
def get_zone(name: str) -> ZoneInfo:
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        raise ValidationError(f"Unknown time zone {name!r}") from None


def local_datetime(date_str: str, slot: str, tz_name: str) -> datetime:
    """Combine a calendar date and slot into an aware datetime in ``tz_name``."""
    day = parse_date(date_str)
    minutes = parse_time_to_minutes(slot)
    return datetime.combine(day, time.min, tzinfo=get_zone(tz_name)) + timedelta(
        minutes=minutes
    )


def ensure_utc(dt: datetime) -> datetime:
    """Treat naive datetimes (as returned by SQLite) as UTC."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)
