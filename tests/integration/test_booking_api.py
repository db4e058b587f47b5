import pytest

from app.models.notification import NotificationAction


def booking_body(service_id, time_slot="10:00 AM", date="2025-06-10"):
    return {
        "customer_name": "Jane Doe",
        "customer_email": "jane@example.com",
        "customer_phone": "555-010-0100",
        "service_id": service_id,
        "date": date,
        "time_slot": time_slot,
        "notes": "First visit",
    }


class TestPublicBookingAPI:
    @pytest.mark.asyncio
    async def test_health(self, client):
        response = await client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    @pytest.mark.asyncio
    async def test_list_services(self, client, braids_service, trim_service):
        response = await client.get("/api/v1/public/services")

        assert response.status_code == 200
        services = {s["name"]: s for s in response.json()}
        assert services["Knotless Braids"]["duration_minutes"] == 180
        assert services["Trim"]["duration_minutes"] == 30

    @pytest.mark.asyncio
    async def test_book_then_slot_disappears(self, client, braids_service, celery_send):
        response = await client.post(
            "/api/v1/public/appointments", json=booking_body(braids_service.id)
        )

        assert response.status_code == 201
        data = response.json()
        assert data["status"] == "pending"
        assert data["time_slot"] == "10:00 AM"
        assert data["duration_minutes"] == 180

        # Post-commit dispatch handed the three booking jobs to the worker.
        actions = [call.kwargs["args"][0] for call in celery_send.call_args_list]
        assert actions == [
            NotificationAction.ADMIN_BOOKING_EMAIL.value,
            NotificationAction.CHAT_BOOKING_ALERT.value,
            NotificationAction.REQUEST_RECEIVED_EMAIL.value,
        ]

        slots = await client.get(
            "/api/v1/public/availability/slots",
            params={"date": "2025-06-10", "duration": "1 hour"},
        )
        assert slots.status_code == 200
        body = slots.json()
        assert body["duration_minutes"] == 60
        assert "10:00 AM" not in body["slots"]
        assert "12:00 PM" not in body["slots"]
        assert "01:00 PM" in body["slots"]

    @pytest.mark.asyncio
    async def test_double_booking_returns_distinct_conflict(self, client, braids_service):
        first = await client.post(
            "/api/v1/public/appointments", json=booking_body(braids_service.id)
        )
        second = await client.post(
            "/api/v1/public/appointments", json=booking_body(braids_service.id)
        )

        assert first.status_code == 201
        assert second.status_code == 409
        assert second.json()["code"] == "slot_taken"
        assert second.json()["detail"] == "Slot already booked"

    @pytest.mark.asyncio
    async def test_malformed_slot_rejected(self, client, braids_service):
        response = await client.post(
            "/api/v1/public/appointments",
            json=booking_body(braids_service.id, time_slot="10am"),
        )
        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_unknown_service_is_not_found(self, client):
        response = await client.post("/api/v1/public/appointments", json=booking_body(999))
        assert response.status_code == 404
        assert response.json()["code"] == "not_found"

    @pytest.mark.asyncio
    async def test_slots_reject_bad_date(self, client):
        response = await client.get(
            "/api/v1/public/availability/slots", params={"date": "tomorrow"}
        )
        assert response.status_code == 422
        assert response.json()["code"] == "validation_error"

    @pytest.mark.asyncio
    async def test_dispatch_failure_does_not_fail_booking(
        self, client, braids_service, celery_send
    ):
        celery_send.side_effect = ConnectionError("broker down")

        response = await client.post(
            "/api/v1/public/appointments", json=booking_body(braids_service.id)
        )

        assert response.status_code == 201

    @pytest.mark.asyncio
    async def test_alternate_date_spelling_rejected(self, client, braids_service):
        first = await client.post(
            "/api/v1/public/appointments", json=booking_body(braids_service.id)
        )
        second = await client.post(
            "/api/v1/public/appointments",
            json=booking_body(braids_service.id, date="20250610"),
        )
        slots = await client.get(
            "/api/v1/public/availability/slots", params={"date": "20250610"}
        )

        assert first.status_code == 201
        assert second.status_code == 422
        assert slots.status_code == 422
