# Import all models to ensure they are registered with SQLAlchemy
from . import (
    appointment,
    availability_override,
    blocked_date,
    notification,
    service,
)

__all__ = [
    "appointment",
    "availability_override",
    "blocked_date",
    "notification",
    "service",
]
