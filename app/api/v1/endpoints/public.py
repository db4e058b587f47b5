from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.api.deps.database import get_db, get_session_factory
from app.schemas.appointment import Appointment, AppointmentCreate
from app.schemas.availability import AvailableSlots
from app.schemas.service import Service
from app.services.appointment import AppointmentService
from app.services.availability import AvailabilityService
from app.services.notification_service import dispatch_outbox
from app.services.service import ServiceCatalogService
from app.utils.time_utils import parse_duration_to_minutes

router = APIRouter()


@router.get("/services", response_model=list[Service])
async def list_services(db: AsyncSession = Depends(get_db)):
    """Bookable services."""
    return await ServiceCatalogService.get_services(db)


@router.get("/availability/slots", response_model=AvailableSlots)
async def get_available_slots(
    date: str = Query(..., description="Calendar date, YYYY-MM-DD"),
    duration: Optional[str] = Query(
        None, description="Service duration text, e.g. '3 Hours' or '90 min'"
    ),
    db: AsyncSession = Depends(get_db),
):
    """Start times that fit the requested duration without overlapping bookings."""
    availability = AvailabilityService(db)
    slots = await availability.get_available_slots(date, duration)
    return AvailableSlots(
        date=date,
        duration_minutes=parse_duration_to_minutes(
            duration, availability.config.default_duration_minutes
        ),
        slots=slots,
    )


@router.post("/appointments", response_model=Appointment, status_code=status.HTTP_201_CREATED)
async def create_appointment(
    appointment_data: AppointmentCreate,
    background_tasks: BackgroundTasks,
    db: AsyncSession = Depends(get_db),
    session_factory: async_sessionmaker = Depends(get_session_factory),
):
    """Book an appointment (customer-facing). New bookings start pending."""
    appointment = await AppointmentService(db).create_appointment(appointment_data)
    background_tasks.add_task(dispatch_outbox, session_factory)
    return appointment
