import enum
from datetime import datetime, timezone

from sqlalchemy import (
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    text,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from app.core.database import Base


class AppointmentStatus(enum.Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


TERMINAL_STATUSES = frozenset({AppointmentStatus.COMPLETED, AppointmentStatus.CANCELLED})

ALLOWED_TRANSITIONS = {
    AppointmentStatus.PENDING: [
        AppointmentStatus.CONFIRMED,
        AppointmentStatus.CANCELLED,
    ],
    AppointmentStatus.CONFIRMED: [
        AppointmentStatus.COMPLETED,
        AppointmentStatus.CANCELLED,
    ],
    AppointmentStatus.COMPLETED: [],  # Final state
    AppointmentStatus.CANCELLED: [],  # Final state
}


class Appointment(Base):
    """Booked slot with a snapshot of the service taken at booking time."""

    __tablename__ = "appointments"

    id = Column(Integer, primary_key=True, index=True)

    # Customer
    customer_name = Column(String(255), nullable=False)
    customer_email = Column(String(255), nullable=False)
    customer_phone = Column(String(50), nullable=False)

    # Service reference and snapshot
    service_id = Column(Integer, ForeignKey("services.id"), nullable=False)
    service_name = Column(String(255), nullable=False)
    service_duration = Column(String(100), nullable=True)
    duration_minutes = Column(Integer, nullable=False)
    total_price = Column(Numeric(10, 2), nullable=False)

    # Scheduling, local to the business time zone
    date = Column(String(10), nullable=False, index=True)  # YYYY-MM-DD
    time_slot = Column(String(8), nullable=False)  # "02:00 PM"
    start_minutes = Column(Integer, nullable=False)

    # Status management
    status = Column(
        String(20), nullable=False, default=AppointmentStatus.PENDING.value, index=True
    )
    previous_status = Column(String(20), nullable=True)
    status_changed_at = Column(DateTime(timezone=True), server_default=func.now())
    confirmation_sent_at = Column(DateTime(timezone=True), nullable=True)

    notes = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    __table_args__ = (
        # At most one non-cancelled booking per (date, slot); the insert is the race point.
        Index(
            "uq_appointments_active_slot",
            "date",
            "time_slot",
            unique=True,
            sqlite_where=text("status != 'cancelled'"),
            postgresql_where=text("status != 'cancelled'"),
        ),
        CheckConstraint("duration_minutes > 0", name="check_positive_duration"),
        CheckConstraint("total_price >= 0", name="check_non_negative_price"),
    )

    service = relationship("Service", back_populates="appointments")

    @property
    def end_minutes(self) -> int:
        return self.start_minutes + self.duration_minutes

    def overlaps(self, start: int, end: int) -> bool:
        """Half-open interval test against ``[start, end)``."""
        return start < self.end_minutes and end > self.start_minutes

    def can_transition_to(
        self, new_status: AppointmentStatus, allow_any: bool = False
    ) -> bool:
        """Check if appointment can transition to the new status."""
        current = AppointmentStatus(self.status)
        if allow_any:
            return new_status != current
        return new_status in ALLOWED_TRANSITIONS.get(current, [])

    def transition_to(
        self, new_status: AppointmentStatus, allow_any: bool = False
    ) -> bool:
        """Transition appointment to new status with validation."""
        if not self.can_transition_to(new_status, allow_any):
            return False

        self.previous_status = self.status
        self.status = new_status.value
        self.status_changed_at = datetime.now(timezone.utc)
        return True

    def __repr__(self):
        return (
            f"<Appointment(id={self.id}, status='{self.status}', "
            f"date='{self.date}', time_slot='{self.time_slot}', "
            f"service_id={self.service_id})>"
        )
