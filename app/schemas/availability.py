from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator

from app.schemas.appointment import _check_date, _check_time_slot


class SlotList(BaseModel):
    slots: List[str] = Field(default_factory=list)

    @field_validator("slots")
    @classmethod
    def validate_slots(cls, v):
        return [_check_time_slot(slot) for slot in v]


class DateSlots(SlotList):
    date: str

    @field_validator("date")
    @classmethod
    def validate_date(cls, v):
        return _check_date(v)


class AvailableSlots(BaseModel):
    date: str
    duration_minutes: int
    slots: List[str]


class BlockDateRequest(BaseModel):
    date: str
    reason: Optional[str] = Field(None, max_length=500)

    @field_validator("date")
    @classmethod
    def validate_date(cls, v):
        return _check_date(v)


class BlockedDate(BaseModel):
    id: int
    date: str
    reason: Optional[str] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True
