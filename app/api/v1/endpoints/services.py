from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps.auth import require_admin
from app.api.deps.database import get_db
from app.schemas.service import Service, ServiceCreate, ServiceUpdate
from app.services.service import ServiceCatalogService

router = APIRouter(dependencies=[Depends(require_admin)])


@router.get("/", response_model=list[Service])
async def get_services(db: AsyncSession = Depends(get_db)):
    """Get all services."""
    return await ServiceCatalogService.get_services(db)


@router.post("/", response_model=Service, status_code=status.HTTP_201_CREATED)
async def create_service(service_data: ServiceCreate, db: AsyncSession = Depends(get_db)):
    """Create service."""
    return await ServiceCatalogService.create_service(db, service_data)


@router.get("/{service_id}", response_model=Service)
async def get_service(service_id: int, db: AsyncSession = Depends(get_db)):
    """Get a single service."""
    return await ServiceCatalogService.require_service(db, service_id)


@router.put("/{service_id}", response_model=Service)
async def update_service(
    service_id: int,
    service_data: ServiceUpdate,
    db: AsyncSession = Depends(get_db),
):
    """Update service. Existing bookings keep the details they were made with."""
    return await ServiceCatalogService.update_service(db, service_id, service_data)


@router.delete("/{service_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_service(service_id: int, db: AsyncSession = Depends(get_db)):
    """Delete service."""
    await ServiceCatalogService.delete_service(db, service_id)
