from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field


class ServiceBase(BaseModel):
    """Base service schema with common fields."""

    name: str = Field(..., min_length=1, max_length=255, description="Service name")
    price: Decimal = Field(..., ge=0, description="Price in currency units")
    duration: str = Field(
        ..., min_length=1, max_length=100, description="Free text, e.g. '4-6 Hours'"
    )
    description: str = Field("", description="Service description")
    image_url: Optional[str] = Field(None, max_length=500)


class ServiceCreate(ServiceBase):
    pass


class ServiceUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    price: Optional[Decimal] = Field(None, ge=0)
    duration: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = None
    image_url: Optional[str] = Field(None, max_length=500)


class Service(ServiceBase):
    id: int
    duration_minutes: int
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True
