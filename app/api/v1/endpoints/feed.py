import secrets

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps.database import get_db
from app.core.config import settings
from app.services.appointment import AppointmentService
from app.services.ical import build_feed

router = APIRouter()


@router.get("/ical")
async def get_ical_feed(
    token: str = Query(..., description="Feed secret"),
    db: AsyncSession = Depends(get_db),
):
    """Calendar subscription feed of all non-cancelled appointments."""
    if not secrets.compare_digest(token, settings.ICAL_FEED_TOKEN):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")

    appointments = await AppointmentService(db).get_all_appointments(sort_order="asc")
    return Response(
        content=build_feed(appointments),
        media_type="text/calendar; charset=utf-8",
        headers={
            "Content-Disposition": 'attachment; filename="appointments.ics"',
            "Cache-Control": "no-cache, no-store, must-revalidate",
        },
    )
