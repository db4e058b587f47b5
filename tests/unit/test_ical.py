from datetime import datetime, timezone
from decimal import Decimal
from urllib.parse import parse_qs, urlparse

from app.models.appointment import Appointment
from app.services.ical import (
    build_feed,
    build_invite,
    escape_text,
    fold_line,
    google_calendar_link,
)

TZ = "America/New_York"
NOW = datetime(2025, 6, 1, 12, 0, tzinfo=timezone.utc)

PAYLOAD = {
    "appointment_id": 42,
    "customer_name": "Jane Doe",
    "customer_email": "jane@example.com",
    "customer_phone": "555-0100",
    "service_name": "Knotless Braids",
    "service_duration": "3 Hours",
    "duration_minutes": 180,
    "date": "2025-06-10",
    "time_slot": "02:00 PM",
    "total_price": "180.00",
    "notes": None,
    "status": "confirmed",
}


def make_appointment(id, status, time_slot="10:00 AM", notes=None):
    return Appointment(
        id=id,
        customer_name="Jane Doe",
        customer_email="jane@example.com",
        customer_phone="555-0100",
        service_id=1,
        service_name="Knotless Braids",
        duration_minutes=90,
        total_price=Decimal("180.00"),
        date="2025-06-10",
        time_slot=time_slot,
        start_minutes=0,
        status=status,
        notes=notes,
    )


class TestTextHelpers:
    def test_escape_text(self):
        assert escape_text("a,b;c\\d\ne") == "a\\,b\\;c\\\\d\\ne"
        assert escape_text(None) == ""

    def test_short_line_untouched(self):
        assert fold_line("SUMMARY:short") == "SUMMARY:short"

    def test_long_line_folded_at_75_octets(self):
        folded = fold_line("DESCRIPTION:" + "x" * 200)
        parts = folded.split("\r\n")
        assert len(parts) > 1
        assert all(len(part.encode()) <= 75 for part in parts)
        assert all(part.startswith(" ") for part in parts[1:])
        assert "".join(p[1:] if i else p for i, p in enumerate(parts)) == "DESCRIPTION:" + "x" * 200


class TestInvite:
    def test_invite_uses_business_zone(self):
        ics = build_invite(PAYLOAD, tz_name=TZ, now=NOW)

        assert ics.startswith("BEGIN:VCALENDAR\r\n")
        assert ics.endswith("END:VCALENDAR\r\n")
        assert "DTSTART;TZID=America/New_York:20250610T140000" in ics
        assert "DTEND;TZID=America/New_York:20250610T170000" in ics
        assert "DTSTAMP:20250601T120000Z" in ics
        assert "UID:appointment-42@" in ics

    def test_google_link_dates_are_utc(self):
        url = google_calendar_link(PAYLOAD, tz_name=TZ)
        query = parse_qs(urlparse(url).query)

        assert query["action"] == ["TEMPLATE"]
        # 2:00-5:00 PM EDT
        assert query["dates"] == ["20250610T180000Z/20250610T210000Z"]


class TestFeed:
    def test_feed_skips_cancelled_and_maps_status(self):
        ics = build_feed(
            [
                make_appointment(1, "confirmed", "10:00 AM", notes="Bring photos"),
                make_appointment(2, "pending", "01:00 PM"),
                make_appointment(3, "cancelled", "03:00 PM"),
            ],
            tz_name=TZ,
            now=NOW,
        )

        assert ics.count("BEGIN:VEVENT") == 2
        assert "UID:appointment-3@" not in ics
        assert "STATUS:CONFIRMED" in ics
        assert "STATUS:TENTATIVE" in ics
        assert "X-WR-TIMEZONE:America/New_York" in ics
        # 10:00-11:30 AM EDT
        assert "DTSTART:20250610T140000Z" in ics
        assert "DTEND:20250610T153000Z" in ics
        assert "Notes: Bring photos" in ics.replace("\r\n ", "")

    def test_empty_feed_is_valid_calendar(self):
        ics = build_feed([], tz_name=TZ, now=NOW)

        assert "BEGIN:VEVENT" not in ics
        assert ics.endswith("END:VCALENDAR\r\n")
        assert "\n" not in ics.replace("\r\n", "")
