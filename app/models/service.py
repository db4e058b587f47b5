from sqlalchemy import Column, DateTime, Integer, Numeric, String, Text
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship

from app.core.database import Base
from app.utils.time_utils import parse_duration_to_minutes


class Service(Base):
    """Catalog entry a customer can book."""

    __tablename__ = "services"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    price = Column(Numeric(10, 2), nullable=False)
    duration = Column(String(100), nullable=False)  # Free text, e.g. "4-6 Hours"
    description = Column(Text, nullable=False, default="")
    image_url = Column(String(500), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    appointments = relationship("Appointment", back_populates="service")

    @property
    def duration_minutes(self) -> int:
        return parse_duration_to_minutes(self.duration)

    def __repr__(self):
        return (
            f"<Service(id={self.id}, name='{self.name}', "
            f"duration='{self.duration}', price=${self.price})>"
        )
