from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, EmailStr, Field, field_validator

# Import enums from the model to avoid duplication
from app.core.exceptions import ValidationError as SchedulingValidationError
from app.models.appointment import AppointmentStatus
from app.utils.time_utils import parse_date, parse_time_to_minutes


def _check_date(v: str) -> str:
    try:
        parse_date(v)
    except SchedulingValidationError as e:
        raise ValueError(e.message)
    return v


def _check_time_slot(v: str) -> str:
    try:
        parse_time_to_minutes(v)
    except SchedulingValidationError as e:
        raise ValueError(e.message)
    return v.strip()


class AppointmentCreate(BaseModel):
    customer_name: str = Field(..., min_length=1, max_length=255)
    customer_email: EmailStr
    customer_phone: str = Field(..., min_length=3, max_length=50)
    service_id: int
    date: str = Field(..., description="Calendar date, YYYY-MM-DD")
    time_slot: str = Field(..., description="12-hour start time, e.g. '02:00 PM'")
    notes: Optional[str] = None

    @field_validator("customer_phone")
    @classmethod
    def validate_phone(cls, v):
        if (
            v
            and not v.replace("+", "")
            .replace("-", "")
            .replace(" ", "")
            .replace("(", "")
            .replace(")", "")
            .replace(".", "")
            .isdigit()
        ):
            raise ValueError(
                "Phone number must contain only digits, spaces, dashes, plus signs, "
                "dots and parentheses"
            )
        return v

    @field_validator("date")
    @classmethod
    def validate_date(cls, v):
        return _check_date(v)

    @field_validator("time_slot")
    @classmethod
    def validate_time_slot(cls, v):
        return _check_time_slot(v)


class AppointmentStatusUpdate(BaseModel):
    status: AppointmentStatus


class Appointment(BaseModel):
    id: int
    customer_name: str
    customer_email: str
    customer_phone: str
    service_id: int
    service_name: str
    service_duration: Optional[str] = None
    duration_minutes: int
    total_price: Decimal
    date: str
    time_slot: str
    status: AppointmentStatus
    previous_status: Optional[AppointmentStatus] = None
    status_changed_at: Optional[datetime] = None
    confirmation_sent_at: Optional[datetime] = None
    notes: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class AppointmentList(BaseModel):
    appointments: List[Appointment]
    total_count: int
