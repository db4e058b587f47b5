import pytest
from sqlalchemy import select

from app.models.notification import JobStatus, NotificationAction, NotificationJob

DATE = "2025-06-10"


async def book(client, service_id, time_slot="10:00 AM", date=DATE):
    response = await client.post(
        "/api/v1/public/appointments",
        json={
            "customer_name": "Jane Doe",
            "customer_email": "jane@example.com",
            "customer_phone": "555-0100",
            "service_id": service_id,
            "date": date,
            "time_slot": time_slot,
        },
    )
    assert response.status_code == 201
    return response.json()


class TestAuth:
    @pytest.mark.asyncio
    async def test_admin_routes_require_token(self, client):
        assert (await client.get("/api/v1/appointments/")).status_code == 401
        response = await client.get(
            "/api/v1/appointments/", headers={"Authorization": "Bearer wrong"}
        )
        assert response.status_code == 401


class TestAppointmentsAPI:
    @pytest.mark.asyncio
    async def test_list_and_get(self, client, admin_headers, braids_service, trim_service):
        first = await book(client, braids_service.id, "10:00 AM")
        second = await book(client, trim_service.id, "09:00 AM", "2025-06-11")

        listing = await client.get("/api/v1/appointments/", headers=admin_headers)
        assert listing.status_code == 200
        assert listing.json()["total_count"] == 2
        assert [a["id"] for a in listing.json()["appointments"]] == [second["id"], first["id"]]

        asc = await client.get(
            "/api/v1/appointments/", params={"sort_order": "asc"}, headers=admin_headers
        )
        assert [a["id"] for a in asc.json()["appointments"]] == [first["id"], second["id"]]

        one = await client.get(f"/api/v1/appointments/{first['id']}", headers=admin_headers)
        assert one.json()["service_name"] == "Knotless Braids"

        by_date = await client.get(
            "/api/v1/appointments/by-date", params={"date": DATE}, headers=admin_headers
        )
        assert [a["id"] for a in by_date.json()] == [first["id"]]

    @pytest.mark.asyncio
    async def test_confirm_then_cancel(self, client, admin_headers, braids_service, celery_send):
        appointment = await book(client, braids_service.id)
        celery_send.reset_mock()

        confirmed = await client.post(
            f"/api/v1/appointments/{appointment['id']}/confirm", headers=admin_headers
        )
        assert confirmed.status_code == 200
        assert confirmed.json()["status"] == "confirmed"
        assert confirmed.json()["confirmation_sent_at"] is not None

        actions = [call.kwargs["args"][0] for call in celery_send.call_args_list]
        assert actions == [
            NotificationAction.CALENDAR_UPSERT.value,
            NotificationAction.CONFIRMATION_EMAIL.value,
            NotificationAction.REMINDER_EMAIL.value,
        ]
        assert celery_send.call_args_list[2].kwargs["eta"] is not None
        celery_send.reset_mock()

        cancelled = await client.patch(
            f"/api/v1/appointments/{appointment['id']}/status",
            json={"status": "cancelled"},
            headers=admin_headers,
        )
        assert cancelled.status_code == 200
        assert cancelled.json()["status"] == "cancelled"
        assert cancelled.json()["previous_status"] == "confirmed"
        actions = [call.kwargs["args"][0] for call in celery_send.call_args_list]
        assert actions == [NotificationAction.CALENDAR_DELETE.value]

    @pytest.mark.asyncio
    async def test_cancel_revokes_scheduled_reminder(
        self, client, admin_headers, braids_service, db
    ):
        appointment = await book(client, braids_service.id, date="2099-06-10")
        await client.post(
            f"/api/v1/appointments/{appointment['id']}/confirm", headers=admin_headers
        )
        await client.patch(
            f"/api/v1/appointments/{appointment['id']}/status",
            json={"status": "cancelled"},
            headers=admin_headers,
        )

        reminder = (
            await db.execute(
                select(NotificationJob).where(
                    NotificationJob.action == NotificationAction.REMINDER_EMAIL.value
                )
            )
        ).scalar_one()
        assert reminder.status == JobStatus.CANCELLED.value

    @pytest.mark.asyncio
    async def test_invalid_transition_is_422(self, client, admin_headers, braids_service):
        appointment = await book(client, braids_service.id)

        response = await client.patch(
            f"/api/v1/appointments/{appointment['id']}/status",
            json={"status": "completed"},
            headers=admin_headers,
        )

        assert response.status_code == 422
        assert response.json()["code"] == "invalid_transition"

    @pytest.mark.asyncio
    async def test_unknown_status_value_rejected(self, client, admin_headers, braids_service):
        appointment = await book(client, braids_service.id)

        response = await client.patch(
            f"/api/v1/appointments/{appointment['id']}/status",
            json={"status": "archived"},
            headers=admin_headers,
        )

        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_delete(self, client, admin_headers, braids_service):
        appointment = await book(client, braids_service.id)

        response = await client.delete(
            f"/api/v1/appointments/{appointment['id']}", headers=admin_headers
        )
        assert response.status_code == 204

        missing = await client.get(
            f"/api/v1/appointments/{appointment['id']}", headers=admin_headers
        )
        assert missing.status_code == 404


class TestAvailabilityAPI:
    @pytest.mark.asyncio
    async def test_blocked_dates(self, client, admin_headers, braids_service):
        created = await client.post(
            "/api/v1/availability/blocked-dates",
            json={"date": DATE, "reason": "Vacation"},
            headers=admin_headers,
        )
        assert created.status_code == 201

        slots = await client.get(
            "/api/v1/public/availability/slots", params={"date": DATE}
        )
        assert slots.json()["slots"] == []

        rejected = await client.post(
            "/api/v1/public/appointments",
            json={
                "customer_name": "Jane Doe",
                "customer_email": "jane@example.com",
                "customer_phone": "555-0100",
                "service_id": braids_service.id,
                "date": DATE,
                "time_slot": "10:00 AM",
            },
        )
        assert rejected.status_code == 409
        assert rejected.json()["code"] == "date_blocked"

        listing = await client.get("/api/v1/availability/blocked-dates", headers=admin_headers)
        assert [b["date"] for b in listing.json()] == [DATE]

        removed = await client.delete(
            f"/api/v1/availability/blocked-dates/{DATE}", headers=admin_headers
        )
        assert removed.status_code == 204
        again = await client.delete(
            f"/api/v1/availability/blocked-dates/{DATE}", headers=admin_headers
        )
        assert again.status_code == 404

    @pytest.mark.asyncio
    async def test_default_slots_and_override(self, client, admin_headers):
        saved = await client.put(
            "/api/v1/availability/default-slots",
            json={"slots": ["02:00 PM", "09:00 AM"]},
            headers=admin_headers,
        )
        assert saved.json()["slots"] == ["09:00 AM", "02:00 PM"]

        override = await client.put(
            "/api/v1/availability/slots",
            json={"date": DATE, "slots": ["11:00 AM"]},
            headers=admin_headers,
        )
        assert override.json() == {"date": DATE, "slots": ["11:00 AM"]}

        for_date = await client.get(
            "/api/v1/availability/slots", params={"date": DATE}, headers=admin_headers
        )
        assert for_date.json()["slots"] == ["11:00 AM"]
        other = await client.get(
            "/api/v1/availability/slots", params={"date": "2025-06-11"}, headers=admin_headers
        )
        assert other.json()["slots"] == ["09:00 AM", "02:00 PM"]

    @pytest.mark.asyncio
    async def test_bad_slot_rejected(self, client, admin_headers):
        response = await client.put(
            "/api/v1/availability/default-slots",
            json={"slots": ["25:00 PM"]},
            headers=admin_headers,
        )
        assert response.status_code == 422


class TestServicesAPI:
    @pytest.mark.asyncio
    async def test_crud(self, client, admin_headers):
        created = await client.post(
            "/api/v1/services/",
            json={"name": "Cornrows", "price": "60.00", "duration": "90 min"},
            headers=admin_headers,
        )
        assert created.status_code == 201
        service_id = created.json()["id"]
        assert created.json()["duration_minutes"] == 90

        updated = await client.put(
            f"/api/v1/services/{service_id}",
            json={"duration": "2 Hours"},
            headers=admin_headers,
        )
        assert updated.json()["duration_minutes"] == 120
        assert updated.json()["name"] == "Cornrows"

        deleted = await client.delete(f"/api/v1/services/{service_id}", headers=admin_headers)
        assert deleted.status_code == 204
        missing = await client.get(f"/api/v1/services/{service_id}", headers=admin_headers)
        assert missing.status_code == 404

    @pytest.mark.asyncio
    async def test_service_in_use_cannot_be_deleted(self, client, admin_headers, braids_service):
        await book(client, braids_service.id)

        response = await client.delete(
            f"/api/v1/services/{braids_service.id}", headers=admin_headers
        )

        assert response.status_code == 409
        assert response.json()["code"] == "service_in_use"

    @pytest.mark.asyncio
    async def test_editing_service_keeps_booking_snapshot(
        self, client, admin_headers, braids_service
    ):
        appointment = await book(client, braids_service.id)
        await client.put(
            f"/api/v1/services/{braids_service.id}",
            json={"duration": "1 Hour", "price": "99.00"},
            headers=admin_headers,
        )

        fetched = await client.get(
            f"/api/v1/appointments/{appointment['id']}", headers=admin_headers
        )
        assert fetched.json()["duration_minutes"] == 180
        assert fetched.json()["total_price"] == "180.00"


class TestFeedAPI:
    @pytest.mark.asyncio
    async def test_feed_requires_token(self, client):
        response = await client.get("/api/v1/feed/ical", params={"token": "nope"})
        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_feed_lists_active_bookings(self, client, braids_service, trim_service):
        from app.core.config import settings

        await book(client, braids_service.id, "10:00 AM")
        await book(client, trim_service.id, "03:00 PM")

        response = await client.get(
            "/api/v1/feed/ical", params={"token": settings.ICAL_FEED_TOKEN}
        )

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/calendar")
        assert response.text.count("BEGIN:VEVENT") == 2
        assert "STATUS:TENTATIVE" in response.text
