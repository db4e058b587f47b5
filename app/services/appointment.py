from datetime import datetime
from typing import Optional

import structlog
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import SchedulingConfig, settings
from app.core.exceptions import ConflictError, InvalidTransitionError, NotFoundError
from app.core.redis import redis_client
from app.models.appointment import TERMINAL_STATUSES, Appointment, AppointmentStatus
from app.models.blocked_date import BlockedDate
from app.models.notification import NotificationAction
from app.schemas.appointment import AppointmentCreate
from app.services.availability import AvailabilityService
from app.services.notification_service import (
    NotificationDispatcher,
    appointment_payload,
)
from app.services.service import ServiceCatalogService
from app.services.status_machine import plan_transition_effects
from app.utils.time_utils import (
    minutes_to_time_str,
    parse_date,
    parse_duration_to_minutes,
    parse_time_to_minutes,
    utcnow,
)

logger = structlog.get_logger(__name__)

SLOT_TAKEN_MESSAGE = "Slot already booked"


class AppointmentService:
    """Booking ledger: the single writer of appointments and blocked dates.

    Every write commits its notification intents in the same transaction;
    callers drain the outbox after the call returns.
    """

    def __init__(self, db: AsyncSession, config: Optional[SchedulingConfig] = None):
        self.db = db
        self.config = config or SchedulingConfig.from_settings(settings)
        self.availability = AvailabilityService(db, self.config)
        self.notifications = NotificationDispatcher(db, self.config)

    async def create_appointment(self, appointment_data: AppointmentCreate) -> Appointment:
        """Book a slot, rejecting taken, overlapping or closed ones."""
        parse_date(appointment_data.date)
        start_minutes = parse_time_to_minutes(appointment_data.time_slot)
        time_slot = minutes_to_time_str(start_minutes)

        service = await ServiceCatalogService.require_service(
            self.db, appointment_data.service_id
        )
        duration = parse_duration_to_minutes(
            service.duration, self.config.default_duration_minutes
        )

        async with redis_client.booking_lock(
            appointment_data.date, timeout=self.config.booking_lock_seconds
        ) as acquired:
            if not acquired:
                raise ConflictError(
                    "Another booking for this date is in progress, please retry",
                    code="booking_in_progress",
                )

            if await self.availability.is_date_blocked(appointment_data.date):
                raise ConflictError(
                    f"{appointment_data.date} is closed for bookings", code="date_blocked"
                )

            existing = await self.availability.get_active_appointments(
                appointment_data.date
            )
            if any(apt.start_minutes == start_minutes for apt in existing):
                raise ConflictError(SLOT_TAKEN_MESSAGE)
            if any(apt.overlaps(start_minutes, start_minutes + duration) for apt in existing):
                raise ConflictError(
                    f"{time_slot} overlaps an existing booking on {appointment_data.date}"
                )

            appointment = Appointment(
                customer_name=appointment_data.customer_name,
                customer_email=str(appointment_data.customer_email),
                customer_phone=appointment_data.customer_phone,
                service_id=service.id,
                service_name=service.name,
                service_duration=service.duration,
                duration_minutes=duration,
                total_price=service.price,
                date=appointment_data.date,
                time_slot=time_slot,
                start_minutes=start_minutes,
                status=AppointmentStatus.PENDING.value,
                notes=appointment_data.notes,
            )
            self.db.add(appointment)
            await self._flush_or_conflict()

            self.notifications.enqueue_booking_created(appointment)
            await self.db.commit()
            await self.db.refresh(appointment)

        logger.info(
            "Appointment created",
            appointment_id=appointment.id,
            date=appointment.date,
            time_slot=appointment.time_slot,
            service_id=appointment.service_id,
        )
        return appointment

    async def get_appointment(self, appointment_id: int) -> Appointment:
        result = await self.db.execute(
            select(Appointment).where(Appointment.id == appointment_id)
        )
        appointment = result.scalar_one_or_none()
        if not appointment:
            raise NotFoundError(f"Appointment {appointment_id} not found")
        return appointment

    async def get_appointments_by_date(self, date: str) -> list[Appointment]:
        """Non-cancelled appointments for a date, earliest first."""
        parse_date(date)
        return await self.availability.get_active_appointments(date)

    async def get_all_appointments(self, sort_order: str = "desc") -> list[Appointment]:
        """Every appointment, cancelled included, ordered by date then time."""
        if sort_order == "desc":
            ordering = (Appointment.date.desc(), Appointment.start_minutes.desc())
        else:
            ordering = (Appointment.date.asc(), Appointment.start_minutes.asc())

        result = await self.db.execute(select(Appointment).order_by(*ordering))
        return list(result.scalars().all())

    async def update_status(
        self,
        appointment_id: int,
        new_status: AppointmentStatus,
        now: Optional[datetime] = None,
    ) -> Appointment:
        """Apply a status change and record the side effects it owes."""
        appointment = await self.get_appointment(appointment_id)
        current = AppointmentStatus(appointment.status)
        if current == new_status:
            return appointment

        was_confirmed = appointment.confirmation_sent_at is not None
        if not appointment.transition_to(
            new_status, allow_any=self.config.allow_any_status_transition
        ):
            raise InvalidTransitionError(
                f"Cannot transition from {current.value} to {new_status.value}"
            )
        # Reopening a cancelled booking can collide with a newer one.
        await self._flush_or_conflict()

        effects = plan_transition_effects(current, new_status, was_confirmed)
        if effects.send_confirmation:
            appointment.confirmation_sent_at = utcnow()
        if effects.cancel_reminders:
            await self.notifications.cancel_reminders(appointment.id)
        self.notifications.enqueue_transition(appointment, effects, now=now)

        await self.db.commit()
        await self.db.refresh(appointment)

        logger.info(
            "Appointment status changed",
            appointment_id=appointment.id,
            previous_status=current.value,
            status=new_status.value,
            calendar_action=(
                effects.calendar_action.value if effects.calendar_action else None
            ),
        )
        return appointment

    async def confirm_appointment(
        self, appointment_id: int, now: Optional[datetime] = None
    ) -> Appointment:
        return await self.update_status(
            appointment_id, AppointmentStatus.CONFIRMED, now=now
        )

    async def delete_appointment(self, appointment_id: int) -> None:
        """Physically remove an appointment, revoking its calendar event first."""
        appointment = await self.get_appointment(appointment_id)

        calendar_event_exists = (
            appointment.confirmation_sent_at is not None
            and AppointmentStatus(appointment.status) not in TERMINAL_STATUSES
        )
        if calendar_event_exists:
            self.notifications.enqueue(
                NotificationAction.CALENDAR_DELETE,
                appointment_payload(appointment),
                appointment.id,
            )
        await self.notifications.cancel_reminders(appointment.id)

        await self.db.delete(appointment)
        await self.db.commit()

        logger.info(
            "Appointment deleted",
            appointment_id=appointment_id,
            calendar_delete=calendar_event_exists,
        )

    # Blocked dates

    async def get_blocked_dates(self) -> list[BlockedDate]:
        result = await self.db.execute(select(BlockedDate).order_by(BlockedDate.date))
        return list(result.scalars().all())

    async def block_date(self, date: str, reason: Optional[str] = None) -> BlockedDate:
        parse_date(date)
        result = await self.db.execute(
            select(BlockedDate).where(BlockedDate.date == date)
        )
        blocked = result.scalar_one_or_none()
        if blocked:
            if reason is not None:
                blocked.reason = reason
        else:
            blocked = BlockedDate(date=date, reason=reason)
            self.db.add(blocked)

        await self.db.commit()
        await self.db.refresh(blocked)
        logger.info("Date blocked", date=date, reason=reason)
        return blocked

    async def unblock_date(self, date: str) -> bool:
        parse_date(date)
        result = await self.db.execute(
            select(BlockedDate).where(BlockedDate.date == date)
        )
        blocked = result.scalar_one_or_none()
        if not blocked:
            return False

        await self.db.delete(blocked)
        await self.db.commit()
        logger.info("Date unblocked", date=date)
        return True

    async def _flush_or_conflict(self) -> None:
        """Flush pending writes; the partial unique index turns a lost race into a conflict."""
        try:
            await self.db.flush()
        except IntegrityError as e:
            await self.db.rollback()
            logger.warning("Slot taken by a concurrent booking", error=str(e.orig))
            raise ConflictError(SLOT_TAKEN_MESSAGE) from e
