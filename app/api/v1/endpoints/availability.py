from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps.auth import require_admin
from app.api.deps.database import get_db
from app.schemas.availability import BlockDateRequest, BlockedDate, DateSlots, SlotList
from app.services.appointment import AppointmentService
from app.services.availability import AvailabilityService

router = APIRouter(dependencies=[Depends(require_admin)])


# Blocked dates
@router.get("/blocked-dates", response_model=list[BlockedDate])
async def get_blocked_dates(db: AsyncSession = Depends(get_db)):
    return await AppointmentService(db).get_blocked_dates()


@router.post("/blocked-dates", response_model=BlockedDate, status_code=status.HTTP_201_CREATED)
async def block_date(request: BlockDateRequest, db: AsyncSession = Depends(get_db)):
    """Close a date for bookings. Blocking an already blocked date updates its reason."""
    return await AppointmentService(db).block_date(request.date, request.reason)


@router.delete("/blocked-dates/{date}", status_code=status.HTTP_204_NO_CONTENT)
async def unblock_date(date: str, db: AsyncSession = Depends(get_db)):
    if not await AppointmentService(db).unblock_date(date):
        raise HTTPException(status_code=404, detail="Date is not blocked")


# Configured slot lists
@router.get("/default-slots", response_model=SlotList)
async def get_default_slots(db: AsyncSession = Depends(get_db)):
    return SlotList(slots=await AvailabilityService(db).get_default_slots())


@router.put("/default-slots", response_model=SlotList)
async def update_default_slots(slot_data: SlotList, db: AsyncSession = Depends(get_db)):
    return SlotList(slots=await AvailabilityService(db).update_default_slots(slot_data.slots))


@router.get("/slots", response_model=DateSlots)
async def get_availability(
    date: str = Query(..., description="Calendar date, YYYY-MM-DD"),
    db: AsyncSession = Depends(get_db),
):
    """Slot list for a date: its override if one exists, else the defaults."""
    return DateSlots(date=date, slots=await AvailabilityService(db).get_availability(date))


@router.put("/slots", response_model=DateSlots)
async def update_availability(slot_data: DateSlots, db: AsyncSession = Depends(get_db)):
    slots = await AvailabilityService(db).update_availability(slot_data.date, slot_data.slots)
    return DateSlots(date=slot_data.date, slots=slots)
