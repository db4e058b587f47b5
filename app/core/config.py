from dataclasses import dataclass
from typing import Annotated, Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings, NoDecode


class Settings(BaseSettings):
    """Application settings."""

    # Basic settings
    PROJECT_NAME: str = "Salon Booking"
    VERSION: str = "1.0.0"
    ENVIRONMENT: str = "development"
    DEBUG: bool = True

    # Operator access (bearer token for admin endpoints)
    ADMIN_API_TOKEN: str = "change-me"

    # Database
    DATABASE_URL: str = "sqlite+aiosqlite:///./booking.db"

    # Redis
    REDIS_URL: str = "redis://localhost:6379/0"

    # CORS
    ALLOWED_ORIGINS: Annotated[list[str], NoDecode] = ["http://localhost:3000", "http://localhost:8080"]

    @field_validator("ALLOWED_ORIGINS", "GOOGLE_CALENDAR_IDS", "DEFAULT_SLOTS", mode="before")
    @classmethod
    def split_comma_separated(cls, v):
        if isinstance(v, str):
            return [i.strip() for i in v.split(",") if i.strip()]
        return v

    # Business hours and slot generation
    BUSINESS_TIMEZONE: str = "America/New_York"
    OPEN_HOUR: int = 9
    CLOSE_HOUR: int = 18
    SLOT_INTERVAL_MINUTES: int = 60
    DEFAULT_DURATION_MINUTES: int = 120
    DEFAULT_SLOTS: Annotated[list[str], NoDecode] = [
        "09:00 AM",
        "10:00 AM",
        "12:00 PM",
        "02:00 PM",
        "04:00 PM",
    ]

    # Booking lifecycle
    ALLOW_ANY_STATUS_TRANSITION: bool = False
    BOOKING_LOCK_SECONDS: int = 30

    # Reminders
    REMINDER_LEAD_MINUTES: int = 60
    REMINDER_MIN_DELAY_SECONDS: int = 10

    # Email (Resend)
    RESEND_API_KEY: Optional[str] = None
    FROM_EMAIL: str = "Salon Booking <onboarding@resend.dev>"
    ADMIN_EMAIL: Optional[str] = None
    DEPOSIT_INSTRUCTIONS: Optional[str] = None
    BUSINESS_NAME: str = "Salon Booking"
    BUSINESS_LOCATION: str = "Salon"
    CALENDAR_UID_DOMAIN: str = "booking.local"

    # Chat alerts (WhatsApp gateway)
    WHATSAPP_API_URL: Optional[str] = None
    WHATSAPP_TOKEN: Optional[str] = None
    WHATSAPP_GROUP_ID: Optional[str] = None

    # Google Calendar
    GOOGLE_CLIENT_ID: Optional[str] = None
    GOOGLE_CLIENT_SECRET: Optional[str] = None
    GOOGLE_REFRESH_TOKEN: Optional[str] = None
    GOOGLE_CALENDAR_IDS: Annotated[list[str], NoDecode] = []

    # Public calendar feed
    ICAL_FEED_TOKEN: str = "change-me-calendar-secret"

    # Celery
    CELERY_BROKER_URL: str = "redis://localhost:6379/1"
    CELERY_RESULT_BACKEND: str = "redis://localhost:6379/2"
    OUTBOX_DRAIN_INTERVAL_SECONDS: int = 60

    # Logging
    LOG_LEVEL: str = "INFO"

    model_config = {"env_file": ".env", "case_sensitive": True}


@dataclass(frozen=True)
class SchedulingConfig:
    """Scheduling parameters handed to the availability engine and ledger."""

    timezone: str = "America/New_York"
    open_hour: int = 9
    close_hour: int = 18
    slot_interval_minutes: int = 60
    default_duration_minutes: int = 120
    default_slots: tuple[str, ...] = (
        "09:00 AM",
        "10:00 AM",
        "12:00 PM",
        "02:00 PM",
        "04:00 PM",
    )
    reminder_lead_minutes: int = 60
    reminder_min_delay_seconds: int = 10
    allow_any_status_transition: bool = False
    booking_lock_seconds: int = 30

    @property
    def open_minutes(self) -> int:
        return self.open_hour * 60

    @property
    def close_minutes(self) -> int:
        return self.close_hour * 60

    @classmethod
    def from_settings(cls, s: "Settings") -> "SchedulingConfig":
        return cls(
            timezone=s.BUSINESS_TIMEZONE,
            open_hour=s.OPEN_HOUR,
            close_hour=s.CLOSE_HOUR,
            slot_interval_minutes=s.SLOT_INTERVAL_MINUTES,
            default_duration_minutes=s.DEFAULT_DURATION_MINUTES,
            default_slots=tuple(s.DEFAULT_SLOTS),
            reminder_lead_minutes=s.REMINDER_LEAD_MINUTES,
            reminder_min_delay_seconds=s.REMINDER_MIN_DELAY_SECONDS,
            allow_any_status_transition=s.ALLOW_ANY_STATUS_TRANSITION,
            booking_lock_seconds=s.BOOKING_LOCK_SECONDS,
        )


# Global settings instance
settings = Settings()
