"""Outbox-backed notification dispatcher.

Ledger writes call the ``enqueue_*`` helpers before committing, so intents are
stored in the same transaction as the state change. ``dispatch_pending`` runs
after commit (request background task, Celery beat) and hands each job to the
worker on its own; a job that fails to dispatch is marked failed and the rest
still go out.
"""

from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Optional

import structlog
from sqlalchemy import and_, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import SchedulingConfig, settings
from app.models.appointment import Appointment
from app.models.notification import JobStatus, NotificationAction, NotificationJob
from app.services.status_machine import TransitionEffects
from app.utils.time_utils import ensure_utc, local_datetime, utcnow

logger = structlog.get_logger(__name__)

BOOKING_CREATED_ACTIONS = (
    NotificationAction.ADMIN_BOOKING_EMAIL,
    NotificationAction.CHAT_BOOKING_ALERT,
    NotificationAction.REQUEST_RECEIVED_EMAIL,
)


def compute_reminder_time(
    date: str,
    time_slot: str,
    tz_name: str,
    now: Optional[datetime] = None,
    lead_minutes: int = 60,
    min_delay_seconds: int = 10,
) -> datetime:
    """Absolute UTC instant for the pre-appointment reminder.

    The appointment's wall-clock time is read in the business zone. When
    ``lead_minutes`` before it is already at or before ``now`` the reminder is
    pulled forward to ``now + min_delay_seconds`` so it still fires.
    """
    now = ensure_utc(now) if now else utcnow()
    fire_at = local_datetime(date, time_slot, tz_name) - timedelta(minutes=lead_minutes)
    if fire_at <= now:
        fire_at = now + timedelta(seconds=min_delay_seconds)
    return fire_at.astimezone(timezone.utc)


def appointment_payload(appointment: Appointment) -> dict[str, Any]:
    return {
        "appointment_id": appointment.id,
        "customer_name": appointment.customer_name,
        "customer_email": appointment.customer_email,
        "customer_phone": appointment.customer_phone,
        "service_name": appointment.service_name,
        "service_duration": appointment.service_duration,
        "duration_minutes": appointment.duration_minutes,
        "date": appointment.date,
        "time_slot": appointment.time_slot,
        "total_price": str(appointment.total_price),
        "notes": appointment.notes,
        "status": appointment.status,
    }


class NotificationDispatcher:
    """Writes notification intents to the outbox and hands them to the worker."""

    def __init__(self, db: AsyncSession, config: Optional[SchedulingConfig] = None):
        self.db = db
        self.config = config or SchedulingConfig.from_settings(settings)

    def enqueue(
        self,
        action: NotificationAction,
        payload: dict[str, Any],
        appointment_id: Optional[int] = None,
        execute_at: Optional[datetime] = None,
    ) -> NotificationJob:
        job = NotificationJob(
            appointment_id=appointment_id,
            action=action.value,
            payload=payload,
            execute_at=execute_at,
            is_scheduled=execute_at is not None,
            status=JobStatus.PENDING.value,
        )
        self.db.add(job)
        return job

    def enqueue_booking_created(self, appointment: Appointment) -> list[NotificationJob]:
        payload = appointment_payload(appointment)
        return [
            self.enqueue(action, payload, appointment.id)
            for action in BOOKING_CREATED_ACTIONS
        ]

    def enqueue_transition(
        self,
        appointment: Appointment,
        effects: TransitionEffects,
        now: Optional[datetime] = None,
    ) -> list[NotificationJob]:
        if effects.is_empty:
            return []

        payload = appointment_payload(appointment)
        jobs = []

        if effects.calendar_action:
            jobs.append(self.enqueue(effects.calendar_action, payload, appointment.id))
        if effects.send_confirmation:
            jobs.append(
                self.enqueue(
                    NotificationAction.CONFIRMATION_EMAIL, payload, appointment.id
                )
            )
        if effects.schedule_reminder:
            jobs.append(self.enqueue_reminder(appointment, now=now))
        return jobs

    def enqueue_reminder(
        self, appointment: Appointment, now: Optional[datetime] = None
    ) -> NotificationJob:
        fire_at = compute_reminder_time(
            appointment.date,
            appointment.time_slot,
            self.config.timezone,
            now=now,
            lead_minutes=self.config.reminder_lead_minutes,
            min_delay_seconds=self.config.reminder_min_delay_seconds,
        )
        logger.info(
            "Reminder scheduled",
            appointment_id=appointment.id,
            execute_at=fire_at.isoformat(),
        )
        return self.enqueue(
            NotificationAction.REMINDER_EMAIL,
            appointment_payload(appointment),
            appointment.id,
            execute_at=fire_at,
        )

    async def cancel_reminders(self, appointment_id: int) -> int:
        """Withdraw reminders that have not fired yet.

        Undispatched jobs are cancelled in place. Dispatched ones are flagged
        for revocation, which ``dispatch_pending`` performs after commit.
        """
        result = await self.db.execute(
            select(NotificationJob).where(
                and_(
                    NotificationJob.appointment_id == appointment_id,
                    NotificationJob.action == NotificationAction.REMINDER_EMAIL.value,
                    NotificationJob.status.in_(
                        [JobStatus.PENDING.value, JobStatus.DISPATCHED.value]
                    ),
                )
            )
        )
        now = utcnow()
        withdrawn = 0
        for job in result.scalars().all():
            if job.status == JobStatus.PENDING.value:
                job.status = JobStatus.CANCELLED.value
                withdrawn += 1
            elif job.execute_at and ensure_utc(job.execute_at) > now:
                job.status = JobStatus.REVOKING.value
                withdrawn += 1

        if withdrawn:
            logger.info(
                "Pending reminders withdrawn",
                appointment_id=appointment_id,
                count=withdrawn,
            )
        return withdrawn

    async def dispatch_pending(self, limit: int = 100) -> int:
        """Hand pending jobs to the worker in insertion order."""
        result = await self.db.execute(
            select(NotificationJob)
            .where(
                NotificationJob.status.in_(
                    [JobStatus.PENDING.value, JobStatus.REVOKING.value]
                )
            )
            .order_by(NotificationJob.id.asc())
            .limit(limit)
        )
        jobs = list(result.scalars().all())

        dispatched = 0
        for job in jobs:
            if job.status == JobStatus.REVOKING.value:
                self._revoke(job)
            elif self._send(job):
                dispatched += 1

        await self.db.commit()
        if jobs:
            logger.info("Outbox drained", processed=len(jobs), dispatched=dispatched)
        return dispatched

    def _send(self, job: NotificationJob) -> bool:
        from app.services.notification_tasks import execute_notification

        task_id = f"notification-job-{job.id}"
        eta = ensure_utc(job.execute_at) if job.is_scheduled and job.execute_at else None
        try:
            execute_notification.apply_async(
                args=[job.action, job.payload], task_id=task_id, eta=eta
            )
        except Exception as e:
            job.status = JobStatus.FAILED.value
            job.last_error = str(e)
            logger.error(
                "Failed to dispatch notification job",
                job_id=job.id,
                action=job.action,
                error=str(e),
            )
            return False

        job.status = JobStatus.DISPATCHED.value
        job.task_id = task_id
        job.dispatched_at = utcnow()
        return True

    def _revoke(self, job: NotificationJob) -> None:
        from app.core.celery import celery_app

        try:
            if job.task_id:
                celery_app.control.revoke(job.task_id)
        except Exception as e:
            job.last_error = str(e)
            logger.error(
                "Failed to revoke notification job",
                job_id=job.id,
                task_id=job.task_id,
                error=str(e),
            )
        job.status = JobStatus.CANCELLED.value


async def dispatch_outbox(session_factory: Callable[[], AsyncSession]) -> int:
    """Drain the outbox with a fresh session (request background task)."""
    async with session_factory() as db:
        return await NotificationDispatcher(db).dispatch_pending()
