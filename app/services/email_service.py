"""Transactional email through Resend.

Called from the notification worker with the appointment payload stored in the
outbox. Templates are intentionally plain HTML.
"""

from html import escape
from typing import Any, Optional

import resend
import structlog

from app.core.config import settings
from app.core.exceptions import SideEffectError
from app.services.ical import build_invite, google_calendar_link

logger = structlog.get_logger(__name__)

CARD_STYLE = (
    "font-family: sans-serif; max-width: 600px; margin: auto; padding: 20px; "
    "border: 1px solid #eee; border-radius: 20px;"
)


def send_email(
    to: list[str],
    subject: str,
    html_content: str,
    attachments: Optional[list[dict]] = None,
) -> Optional[dict]:
    """Send one email via Resend.

    Returns the provider response, or ``None`` when no API key is configured.
    Provider errors are raised as :class:`SideEffectError`.
    """
    if not settings.RESEND_API_KEY:
        logger.warning("Email skipped, RESEND_API_KEY is not configured", subject=subject)
        return None

    resend.api_key = settings.RESEND_API_KEY
    email_data: dict[str, Any] = {
        "from": settings.FROM_EMAIL,
        "to": to,
        "subject": subject,
        "html": html_content,
    }
    if attachments:
        email_data["attachments"] = [
            {"filename": attachment["filename"], "content": attachment["content"]}
            for attachment in attachments
        ]

    try:
        response = resend.Emails.send(email_data)
    except Exception as e:
        logger.error("Email send failed", to=to, subject=subject, error=str(e))
        raise SideEffectError(f"Failed to send email: {e}") from e

    logger.info("Email sent", to=to, subject=subject)
    return response


def _card(title: str, body: str) -> str:
    return (
        f'<div style="{CARD_STYLE}">'
        f'<h2 style="text-align: center;">{escape(title)}</h2>'
        f"{body}"
        "</div>"
    )


def _details(payload: dict[str, Any], *fields: tuple[str, str]) -> str:
    rows = "".join(
        f"<p><strong>{escape(label)}:</strong> {escape(str(payload.get(key) or 'None'))}</p>"
        for label, key in fields
    )
    return f"<div>{rows}</div>"


def send_admin_booking_alert(payload: dict[str, Any]) -> Optional[dict]:
    if not settings.ADMIN_EMAIL:
        logger.warning(
            "Admin booking alert skipped, ADMIN_EMAIL is not configured",
            appointment_id=payload.get("appointment_id"),
        )
        return None

    body = _details(
        payload,
        ("Customer", "customer_name"),
        ("Service", "service_name"),
        ("Date", "date"),
        ("Time", "time_slot"),
        ("Price", "total_price"),
        ("Phone", "customer_phone"),
        ("Email", "customer_email"),
        ("Notes", "notes"),
    )
    body += "<p>Review and confirm this request from the admin dashboard.</p>"
    return send_email(
        [settings.ADMIN_EMAIL],
        f"New Booking: {payload['service_name']} - {payload['customer_name']}",
        _card("New Appointment Request", body),
    )


def send_request_received(payload: dict[str, Any]) -> Optional[dict]:
    """Tell the customer their request is in, with deposit instructions."""
    if settings.DEPOSIT_INSTRUCTIONS:
        deposit = (
            "<h3>Deposit Instructions</h3>"
            f'<p style="white-space: pre-wrap;">{escape(settings.DEPOSIT_INSTRUCTIONS)}</p>'
        )
    else:
        deposit = (
            "<p>A deposit is required to secure your appointment. "
            "We will reach out shortly with deposit instructions.</p>"
        )

    body = (
        f"<p>Hi {escape(payload['customer_name'])},</p>"
        "<p>We received your appointment request. It will be confirmed once "
        "the deposit is received.</p>"
        + _details(
            payload,
            ("Service", "service_name"),
            ("Date", "date"),
            ("Time", "time_slot"),
        )
        + deposit
    )
    return send_email(
        [payload["customer_email"]],
        "We received your appointment request",
        _card("Request received", body),
    )


def send_confirmation(payload: dict[str, Any]) -> Optional[dict]:
    invite = build_invite(payload)
    calendar_url = google_calendar_link(payload)

    body = (
        f"<p>Hi {escape(payload['customer_name'])},</p>"
        "<p>Your appointment has been confirmed!</p>"
        + _details(
            payload,
            ("Service", "service_name"),
            ("Date", "date"),
            ("Time", "time_slot"),
        )
        + "<p>Attached is an invite for Apple or Outlook calendars.</p>"
        f'<p style="text-align: center;"><a href="{escape(calendar_url)}">'
        "Add to Google Calendar</a></p>"
    )
    return send_email(
        [payload["customer_email"]],
        "Your appointment is confirmed!",
        _card("You're booked!", body),
        attachments=[{"filename": "invite.ics", "content": list(invite.encode("utf-8"))}],
    )


def send_reminder(payload: dict[str, Any]) -> Optional[dict]:
    body = (
        f"<p>Hi {escape(payload['customer_name'])},</p>"
        "<p>This is a reminder that your appointment for "
        f"<strong>{escape(payload['service_name'])}</strong> is coming up at "
        f"<strong>{escape(payload['time_slot'])}</strong> on {escape(payload['date'])}.</p>"
    )
    return send_email(
        [payload["customer_email"]],
        "Reminder: your appointment is coming up",
        _card("See you soon!", body),
    )
