from fastapi import APIRouter

from app.api.v1.endpoints import (
    appointments,
    availability,
    feed,
    public,
    services,
)

api_router = APIRouter()

# Service catalog endpoints
api_router.include_router(services.router, prefix="/services", tags=["services"])

# Appointment management endpoints
api_router.include_router(
    appointments.router, prefix="/appointments", tags=["appointments"]
)

# Availability endpoints (blocked dates, slot lists)
api_router.include_router(
    availability.router, prefix="/availability", tags=["availability"]
)

# Calendar subscription feed
api_router.include_router(feed.router, prefix="/feed", tags=["feed"])

# Public booking endpoints (customer-facing)
api_router.include_router(public.router, prefix="/public", tags=["public"])
