import enum

from sqlalchemy import JSON, Boolean, Column, DateTime, Integer, String, Text
from sqlalchemy.sql import func

from app.core.database import Base


class NotificationAction(str, enum.Enum):
    ADMIN_BOOKING_EMAIL = "email.admin_new_booking"
    REQUEST_RECEIVED_EMAIL = "email.request_received"
    CONFIRMATION_EMAIL = "email.confirmation"
    REMINDER_EMAIL = "email.reminder"
    CHAT_BOOKING_ALERT = "chat.booking_alert"
    CALENDAR_UPSERT = "calendar.upsert"
    CALENDAR_UPDATE_STATUS = "calendar.update_status"
    CALENDAR_DELETE = "calendar.delete"


class JobStatus(str, enum.Enum):
    PENDING = "pending"
    DISPATCHED = "dispatched"
    REVOKING = "revoking"
    FAILED = "failed"
    CANCELLED = "cancelled"


class NotificationJob(Base):
    """Outbox row written in the same transaction as the ledger change."""

    __tablename__ = "notification_jobs"

    id = Column(Integer, primary_key=True, index=True)
    # Not a foreign key: calendar-delete jobs outlive the appointment row.
    appointment_id = Column(Integer, nullable=True, index=True)

    action = Column(String(50), nullable=False)
    payload = Column(JSON, nullable=False, default=dict)
    execute_at = Column(DateTime(timezone=True), nullable=True)
    is_scheduled = Column(Boolean, nullable=False, default=False)

    status = Column(
        String(20), nullable=False, default=JobStatus.PENDING.value, index=True
    )
    task_id = Column(String(255), nullable=True)
    last_error = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    dispatched_at = Column(DateTime(timezone=True), nullable=True)

    def __repr__(self):
        return (
            f"<NotificationJob(id={self.id}, action='{self.action}', "
            f"status='{self.status}', appointment_id={self.appointment_id})>"
        )
