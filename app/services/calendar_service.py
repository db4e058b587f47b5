"""Google Calendar sync over the REST API.

Events are keyed by a private extended property holding the appointment id,
so they can be found again without storing Google event ids locally. Every
configured calendar is handled on its own: a failure on one is logged and the
others still go through.
"""

from datetime import datetime
from typing import Any, Callable, Optional
from urllib.parse import quote

import httpx
import structlog

from app.core.config import settings
from app.core.exceptions import SideEffectError
from app.services.ical import event_window

logger = structlog.get_logger(__name__)

TOKEN_URL = "https://oauth2.googleapis.com/token"
CALENDAR_API_URL = "https://www.googleapis.com/calendar/v3"
APPOINTMENT_ID_PROPERTY = "appointmentId"

STATUS_PREFIXES = {
    "cancelled": "[CANCELLED] ",
    "pending": "[PENDING] ",
}


def strip_status_prefix(summary: str) -> str:
    for prefix in STATUS_PREFIXES.values():
        while summary.startswith(prefix):
            summary = summary[len(prefix):]
    return summary


def summary_for_status(summary: str, status: str) -> str:
    """Rewrite an event title so it reflects the appointment status."""
    return STATUS_PREFIXES.get(status, "") + strip_status_prefix(summary)


def _local_iso(dt: datetime) -> str:
    return dt.strftime("%Y-%m-%dT%H:%M:%S")


def build_event(payload: dict[str, Any], tz_name: Optional[str] = None) -> dict[str, Any]:
    tz_name = tz_name or settings.BUSINESS_TIMEZONE
    start, end = event_window(
        payload["date"], payload["time_slot"], payload["duration_minutes"], tz_name
    )
    description = (
        f"Client: {payload['customer_name']}\n"
        f"Phone: {payload['customer_phone']}\n"
        f"Email: {payload['customer_email']}\n\n"
        f"Notes:\n{payload.get('notes') or 'No notes provided.'}\n\n"
        f"Appointment ID: {payload['appointment_id']}"
    )
    summary = f"{payload['service_name']} - {payload['customer_name']}"
    return {
        "summary": summary_for_status(summary, payload.get("status", "")),
        "description": description,
        "start": {"dateTime": _local_iso(start), "timeZone": tz_name},
        "end": {"dateTime": _local_iso(end), "timeZone": tz_name},
        "extendedProperties": {
            "private": {APPOINTMENT_ID_PROPERTY: str(payload["appointment_id"])}
        },
    }


class GoogleCalendarClient:
    """Thin wrapper around the Calendar v3 events endpoints."""

    def __init__(
        self,
        calendar_ids: Optional[list[str]] = None,
        http: Optional[httpx.Client] = None,
    ):
        self.calendar_ids = (
            list(settings.GOOGLE_CALENDAR_IDS) if calendar_ids is None else calendar_ids
        )
        self.http = http or httpx.Client(timeout=15.0)
        self._access_token: Optional[str] = None

    @property
    def is_configured(self) -> bool:
        return bool(
            self.calendar_ids
            and settings.GOOGLE_CLIENT_ID
            and settings.GOOGLE_CLIENT_SECRET
            and settings.GOOGLE_REFRESH_TOKEN
        )

    def close(self) -> None:
        self.http.close()

    def access_token(self) -> str:
        if self._access_token:
            return self._access_token

        try:
            response = self.http.post(
                TOKEN_URL,
                data={
                    "client_id": settings.GOOGLE_CLIENT_ID,
                    "client_secret": settings.GOOGLE_CLIENT_SECRET,
                    "refresh_token": settings.GOOGLE_REFRESH_TOKEN,
                    "grant_type": "refresh_token",
                },
            )
            response.raise_for_status()
            self._access_token = response.json()["access_token"]
        except (httpx.HTTPError, KeyError, ValueError) as e:
            logger.error("Google OAuth token refresh failed", error=str(e))
            raise SideEffectError(f"Google Calendar authentication failed: {e}") from e
        return self._access_token

    def _request(self, method: str, path: str, **kwargs) -> httpx.Response:
        headers = {"Authorization": f"Bearer {self.access_token()}"}
        response = self.http.request(
            method, f"{CALENDAR_API_URL}{path}", headers=headers, **kwargs
        )
        response.raise_for_status()
        return response

    @staticmethod
    def _json(response: httpx.Response) -> dict:
        try:
            body = response.json()
        except ValueError as e:
            raise SideEffectError(
                f"Google Calendar returned a non-JSON response ({response.status_code})"
            ) from e
        if not isinstance(body, dict):
            raise SideEffectError("Google Calendar returned an unexpected response body")
        return body

    def _events_path(self, calendar_id: str) -> str:
        return f"/calendars/{quote(calendar_id, safe='')}/events"

    def find_event(self, calendar_id: str, appointment_id: Any) -> Optional[dict]:
        response = self._request(
            "GET",
            self._events_path(calendar_id),
            params={
                "privateExtendedProperty": f"{APPOINTMENT_ID_PROPERTY}={appointment_id}",
                "showDeleted": "false",
            },
        )
        items = self._json(response).get("items") or []
        if not items:
            return None
        if not isinstance(items[0], dict) or "id" not in items[0]:
            raise SideEffectError("Google Calendar returned an event without an id")
        return items[0]

    def insert_event(self, calendar_id: str, event: dict) -> dict:
        return self._json(self._request("POST", self._events_path(calendar_id), json=event))

    def patch_event(self, calendar_id: str, event_id: str, fields: dict) -> dict:
        return self._json(
            self._request(
                "PATCH",
                f"{self._events_path(calendar_id)}/{quote(event_id, safe='')}",
                json=fields,
            )
        )

    def delete_event(self, calendar_id: str, event_id: str) -> None:
        self._request(
            "DELETE", f"{self._events_path(calendar_id)}/{quote(event_id, safe='')}"
        )

    def for_each_calendar(
        self, operation: str, appointment_id: Any, fn: Callable[[str], None]
    ) -> int:
        """Run ``fn`` per calendar, isolating failures.

        Returns the number of calendars that succeeded and raises
        :class:`SideEffectError` only when every calendar failed.
        """
        if not self.is_configured:
            logger.warning(
                "Google Calendar sync skipped, credentials are missing",
                operation=operation,
                appointment_id=appointment_id,
            )
            return 0

        # Fail once for all calendars when the token cannot be refreshed.
        self.access_token()

        succeeded = 0
        errors = []
        for calendar_id in self.calendar_ids:
            try:
                fn(calendar_id)
                succeeded += 1
            except (httpx.HTTPError, SideEffectError) as e:
                errors.append(str(e))
                logger.error(
                    "Google Calendar operation failed",
                    operation=operation,
                    calendar_id=calendar_id,
                    appointment_id=appointment_id,
                    error=str(e),
                )

        if errors and not succeeded:
            raise SideEffectError(
                f"Google Calendar {operation} failed on every calendar: {errors[0]}"
            )
        logger.info(
            "Google Calendar sync complete",
            operation=operation,
            appointment_id=appointment_id,
            calendars=succeeded,
        )
        return succeeded


def upsert_event(payload: dict[str, Any], client: Optional[GoogleCalendarClient] = None) -> int:
    """Create the appointment's event, or refresh it if it already exists."""
    calendar = client or GoogleCalendarClient()
    event = build_event(payload)
    appointment_id = payload["appointment_id"]

    def upsert(calendar_id: str) -> None:
        existing = calendar.find_event(calendar_id, appointment_id)
        if existing:
            calendar.patch_event(calendar_id, existing["id"], event)
        else:
            calendar.insert_event(calendar_id, event)

    try:
        return calendar.for_each_calendar("upsert", appointment_id, upsert)
    finally:
        if client is None:
            calendar.close()


def update_event_status(
    payload: dict[str, Any], client: Optional[GoogleCalendarClient] = None
) -> int:
    calendar = client or GoogleCalendarClient()
    appointment_id = payload["appointment_id"]
    status = payload.get("status", "")

    def update(calendar_id: str) -> None:
        existing = calendar.find_event(calendar_id, appointment_id)
        if not existing:
            logger.info(
                "No calendar event to update",
                calendar_id=calendar_id,
                appointment_id=appointment_id,
            )
            return
        summary = existing.get("summary") or ""
        new_summary = summary_for_status(summary, status)
        if new_summary != summary:
            calendar.patch_event(calendar_id, existing["id"], {"summary": new_summary})

    try:
        return calendar.for_each_calendar("update_status", appointment_id, update)
    finally:
        if client is None:
            calendar.close()


def delete_event(payload: dict[str, Any], client: Optional[GoogleCalendarClient] = None) -> int:
    calendar = client or GoogleCalendarClient()
    appointment_id = payload["appointment_id"]

    def delete(calendar_id: str) -> None:
        existing = calendar.find_event(calendar_id, appointment_id)
        if existing:
            calendar.delete_event(calendar_id, existing["id"])

    try:
        return calendar.for_each_calendar("delete", appointment_id, delete)
    finally:
        if client is None:
            calendar.close()
