"""Celery tasks executing outbox jobs.

Each task performs one side effect. Provider failures are logged and
swallowed at this boundary; they never reach the booking that caused them.
"""

import asyncio
from typing import Any, Callable

import structlog
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from app.core.celery import celery_app
from app.core.config import settings
from app.core.exceptions import SideEffectError
from app.models.notification import NotificationAction
from app.services import calendar_service, chat_service, email_service
from app.services.notification_service import NotificationDispatcher

logger = structlog.get_logger(__name__)

ACTION_HANDLERS: dict[str, Callable[[dict[str, Any]], Any]] = {
    NotificationAction.ADMIN_BOOKING_EMAIL.value: email_service.send_admin_booking_alert,
    NotificationAction.REQUEST_RECEIVED_EMAIL.value: email_service.send_request_received,
    NotificationAction.CONFIRMATION_EMAIL.value: email_service.send_confirmation,
    NotificationAction.REMINDER_EMAIL.value: email_service.send_reminder,
    NotificationAction.CHAT_BOOKING_ALERT.value: chat_service.send_booking_alert,
    NotificationAction.CALENDAR_UPSERT.value: calendar_service.upsert_event,
    NotificationAction.CALENDAR_UPDATE_STATUS.value: calendar_service.update_event_status,
    NotificationAction.CALENDAR_DELETE.value: calendar_service.delete_event,
}


@celery_app.task(name="app.services.notification_tasks.execute_notification")
def execute_notification(action: str, payload: dict[str, Any]) -> bool:
    """Run a single outbox job. Returns True when the side effect succeeded."""
    handler = ACTION_HANDLERS.get(action)
    if handler is None:
        logger.error("Unknown notification action", action=action)
        return False

    appointment_id = payload.get("appointment_id")
    try:
        handler(payload)
    except SideEffectError as e:
        logger.error(
            "Notification side effect failed",
            action=action,
            appointment_id=appointment_id,
            error=e.message,
        )
        return False

    logger.info("Notification executed", action=action, appointment_id=appointment_id)
    return True


async def _drain(database_url: str) -> int:
    # Worker processes run each drain in a fresh event loop; pooled
    # connections cannot be shared across loops.
    engine = create_async_engine(database_url, poolclass=NullPool)
    try:
        session_factory = async_sessionmaker(
            engine, class_=AsyncSession, expire_on_commit=False
        )
        async with session_factory() as db:
            return await NotificationDispatcher(db).dispatch_pending()
    finally:
        await engine.dispose()


@celery_app.task(name="app.services.notification_tasks.drain_outbox")
def drain_outbox() -> int:
    """Periodic safety net for jobs whose post-commit dispatch never ran."""
    dispatched = asyncio.run(_drain(settings.DATABASE_URL))
    if dispatched:
        logger.info("Outbox drained by beat", dispatched=dispatched)
    return dispatched
