from celery import Celery
from celery.signals import setup_logging
import structlog

from app.core.config import settings
from app.core.logging import configure_logging

logger = structlog.get_logger(__name__)

celery_app = Celery(
    "salon_booking",
    broker=settings.CELERY_BROKER_URL,
    backend=settings.CELERY_RESULT_BACKEND,
    include=["app.services.notification_tasks"],
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    result_expires=3600,
    task_routes={
        "app.services.notification_tasks.*": {"queue": "notifications"},
    },
    worker_prefetch_multiplier=1,
    task_acks_late=True,
    worker_max_tasks_per_child=1000,
    beat_schedule={
        "drain-notification-outbox": {
            "task": "app.services.notification_tasks.drain_outbox",
            "schedule": float(settings.OUTBOX_DRAIN_INTERVAL_SECONDS),
        },
    },
)


@setup_logging.connect
def configure_worker_logging(**kwargs):
    configure_logging()
