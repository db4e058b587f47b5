from sqlalchemy import JSON, Column, DateTime, Integer, String
from sqlalchemy.sql import func

from app.core.database import Base


class AvailabilityOverride(Base):
    """Per-date list of candidate start times replacing the default slots."""

    __tablename__ = "availability_overrides"

    id = Column(Integer, primary_key=True, index=True)
    date = Column(String(10), nullable=False, unique=True, index=True)
    slots = Column(JSON, nullable=False, default=list)

    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    def __repr__(self):
        return f"<AvailabilityOverride(date='{self.date}', slots={self.slots})>"


class DefaultSlots(Base):
    """Singleton row holding the fallback slot list."""

    __tablename__ = "default_slots"

    id = Column(Integer, primary_key=True, index=True)
    slots = Column(JSON, nullable=False, default=list)

    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    def __repr__(self):
        return f"<DefaultSlots(slots={self.slots})>"
