from fastapi import APIRouter, BackgroundTasks, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.api.deps.auth import require_admin
from app.api.deps.database import get_db, get_session_factory
from app.schemas.appointment import Appointment, AppointmentList, AppointmentStatusUpdate
from app.services.appointment import AppointmentService
from app.services.notification_service import dispatch_outbox

router = APIRouter(dependencies=[Depends(require_admin)])


@router.get("/", response_model=AppointmentList)
async def get_appointments(
    db: AsyncSession = Depends(get_db),
    sort_order: str = Query("desc", pattern=r"^(asc|desc)$"),
):
    """All appointments, cancelled included, ordered by date and time."""
    appointments = await AppointmentService(db).get_all_appointments(sort_order)
    return AppointmentList(appointments=appointments, total_count=len(appointments))


@router.get("/by-date", response_model=list[Appointment])
async def get_appointments_by_date(
    date: str = Query(..., description="Calendar date, YYYY-MM-DD"),
    db: AsyncSession = Depends(get_db),
):
    """Non-cancelled appointments for one date, earliest first."""
    return await AppointmentService(db).get_appointments_by_date(date)


@router.get("/{appointment_id}", response_model=Appointment)
async def get_appointment(appointment_id: int, db: AsyncSession = Depends(get_db)):
    return await AppointmentService(db).get_appointment(appointment_id)


@router.patch("/{appointment_id}/status", response_model=Appointment)
async def update_appointment_status(
    appointment_id: int,
    status_data: AppointmentStatusUpdate,
    background_tasks: BackgroundTasks,
    db: AsyncSession = Depends(get_db),
    session_factory: async_sessionmaker = Depends(get_session_factory),
):
    """Change an appointment's status and queue the side effects it triggers."""
    appointment = await AppointmentService(db).update_status(
        appointment_id, status_data.status
    )
    background_tasks.add_task(dispatch_outbox, session_factory)
    return appointment


@router.post("/{appointment_id}/confirm", response_model=Appointment)
async def confirm_appointment(
    appointment_id: int,
    background_tasks: BackgroundTasks,
    db: AsyncSession = Depends(get_db),
    session_factory: async_sessionmaker = Depends(get_session_factory),
):
    appointment = await AppointmentService(db).confirm_appointment(appointment_id)
    background_tasks.add_task(dispatch_outbox, session_factory)
    return appointment


@router.delete("/{appointment_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_appointment(
    appointment_id: int,
    background_tasks: BackgroundTasks,
    db: AsyncSession = Depends(get_db),
    session_factory: async_sessionmaker = Depends(get_session_factory),
):
    """Remove an appointment permanently."""
    await AppointmentService(db).delete_appointment(appointment_id)
    background_tasks.add_task(dispatch_outbox, session_factory)
