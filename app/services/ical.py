"""iCalendar documents: single-event invites and the subscription feed.

Event start and end come from the same slot parsing the availability engine
uses, plus the duration resolved when the appointment was booked.
"""

from datetime import datetime, timedelta, timezone
from typing import Any, Iterable, Optional
from urllib.parse import urlencode

from app.core.config import settings
from app.models.appointment import Appointment, AppointmentStatus
from app.utils.time_utils import local_datetime, utcnow

CRLF = "\r\n"
GOOGLE_CALENDAR_TEMPLATE_URL = "https://calendar.google.com/calendar/render"


def escape_text(value: Optional[str]) -> str:
    if not value:
        return ""
    return (
        value.replace("\\", "\\\\")
        .replace(";", "\\;")
        .replace(",", "\\,")
        .replace("\r\n", "\\n")
        .replace("\n", "\\n")
    )


def fold_line(line: str, limit: int = 75) -> str:
    """Fold a content line at ``limit`` octets with CRLF + space continuations."""
    encoded = line.encode("utf-8")
    if len(encoded) <= limit:
        return line

    parts = []
    current = ""
    for char in line:
        size = limit if not parts else limit - 1
        if len((current + char).encode("utf-8")) > size:
            parts.append(current)
            current = char
        else:
            current += char
    parts.append(current)
    return (CRLF + " ").join(parts)


def _utc_stamp(dt: datetime) -> str:
    return dt.astimezone(timezone.utc).strftime("%Y%m%dT%H%M%SZ")


def _local_stamp(dt: datetime) -> str:
    return dt.strftime("%Y%m%dT%H%M%S")


def event_window(
    date: str, time_slot: str, duration_minutes: int, tz_name: str
) -> tuple[datetime, datetime]:
    start = local_datetime(date, time_slot, tz_name)
    return start, start + timedelta(minutes=duration_minutes)


def appointment_uid(appointment_id: Any) -> str:
    return f"appointment-{appointment_id}@{settings.CALENDAR_UID_DOMAIN}"


def build_invite(
    payload: dict[str, Any],
    tz_name: Optional[str] = None,
    now: Optional[datetime] = None,
) -> str:
    """Single-event calendar attached to the confirmation email."""
    tz_name = tz_name or settings.BUSINESS_TIMEZONE
    start, end = event_window(
        payload["date"], payload["time_slot"], payload["duration_minutes"], tz_name
    )
    lines = [
        "BEGIN:VCALENDAR",
        "VERSION:2.0",
        f"PRODID:-//{settings.BUSINESS_NAME}//Booking//EN",
        "CALSCALE:GREGORIAN",
        "METHOD:PUBLISH",
        "BEGIN:VEVENT",
        f"UID:{appointment_uid(payload['appointment_id'])}",
        f"DTSTAMP:{_utc_stamp(now or utcnow())}",
        f"DTSTART;TZID={tz_name}:{_local_stamp(start)}",
        f"DTEND;TZID={tz_name}:{_local_stamp(end)}",
        f"SUMMARY:{escape_text(settings.BUSINESS_NAME + ' - ' + payload['service_name'])}",
        f"DESCRIPTION:{escape_text('Appointment at ' + settings.BUSINESS_NAME + '.')}",
        f"LOCATION:{escape_text(settings.BUSINESS_LOCATION)}",
        "END:VEVENT",
        "END:VCALENDAR",
    ]
    return CRLF.join(fold_line(line) for line in lines) + CRLF


def google_calendar_link(payload: dict[str, Any], tz_name: Optional[str] = None) -> str:
    """Google Calendar template URL used by the confirmation email."""
    tz_name = tz_name or settings.BUSINESS_TIMEZONE
    start, end = event_window(
        payload["date"], payload["time_slot"], payload["duration_minutes"], tz_name
    )
    query = urlencode(
        {
            "action": "TEMPLATE",
            "text": f"{settings.BUSINESS_NAME} - {payload['service_name']}",
            "dates": f"{_utc_stamp(start)}/{_utc_stamp(end)}",
            "details": f"Appointment at {settings.BUSINESS_NAME}",
            "location": settings.BUSINESS_LOCATION,
        }
    )
    return f"{GOOGLE_CALENDAR_TEMPLATE_URL}?{query}"


def build_feed(
    appointments: Iterable[Appointment],
    tz_name: Optional[str] = None,
    now: Optional[datetime] = None,
) -> str:
    """Subscription feed of non-cancelled appointments, times in UTC."""
    tz_name = tz_name or settings.BUSINESS_TIMEZONE
    stamp = _utc_stamp(now or utcnow())

    lines = [
        "BEGIN:VCALENDAR",
        "VERSION:2.0",
        f"PRODID:-//{settings.BUSINESS_NAME}//BookingSystem//EN",
        "CALSCALE:GREGORIAN",
        "METHOD:PUBLISH",
        f"X-WR-CALNAME:{escape_text(settings.BUSINESS_NAME + ' Appointments')}",
        f"X-WR-TIMEZONE:{tz_name}",
    ]

    for apt in appointments:
        if apt.status == AppointmentStatus.CANCELLED.value:
            continue
        start, end = event_window(apt.date, apt.time_slot, apt.duration_minutes, tz_name)
        description = (
            f"Customer: {apt.customer_name}\n"
            f"Phone: {apt.customer_phone}\n"
            f"Email: {apt.customer_email}\n"
            f"Notes: {apt.notes or 'None'}"
        )
        status = (
            "CONFIRMED" if apt.status == AppointmentStatus.CONFIRMED.value else "TENTATIVE"
        )
        lines.extend(
            [
                "BEGIN:VEVENT",
                f"UID:{appointment_uid(apt.id)}",
                f"DTSTAMP:{stamp}",
                f"DTSTART:{_utc_stamp(start)}",
                f"DTEND:{_utc_stamp(end)}",
                f"SUMMARY:{escape_text(apt.service_name + ' - ' + apt.customer_name)}",
                f"DESCRIPTION:{escape_text(description)}",
                f"STATUS:{status}",
                "END:VEVENT",
            ]
        )

    lines.append("END:VCALENDAR")
    return CRLF.join(fold_line(line) for line in lines) + CRLF
