from typing import Optional

import structlog
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import ConflictError, NotFoundError
from app.models.appointment import Appointment
from app.models.service import Service
from app.schemas.service import ServiceCreate, ServiceUpdate

logger = structlog.get_logger(__name__)


class ServiceCatalogService:
    """Business logic for the bookable service catalog."""

    @staticmethod
    async def get_services(db: AsyncSession) -> list[Service]:
        """Get all services ordered by name."""
        result = await db.execute(select(Service).order_by(Service.name))
        return list(result.scalars().all())

    @staticmethod
    async def get_service(db: AsyncSession, service_id: int) -> Optional[Service]:
        result = await db.execute(select(Service).filter(Service.id == service_id))
        return result.scalar_one_or_none()

    @staticmethod
    async def require_service(db: AsyncSession, service_id: int) -> Service:
        service = await ServiceCatalogService.get_service(db, service_id)
        if not service:
            raise NotFoundError(f"Service {service_id} not found")
        return service

    @staticmethod
    async def create_service(db: AsyncSession, service_data: ServiceCreate) -> Service:
        db_service = Service(**service_data.model_dump())
        db.add(db_service)
        await db.commit()
        await db.refresh(db_service)
        logger.info("Service created", service_id=db_service.id, name=db_service.name)
        return db_service

    @staticmethod
    async def update_service(
        db: AsyncSession, service_id: int, service_data: ServiceUpdate
    ) -> Service:
        """Update a service. Existing appointments keep their booking snapshot."""
        db_service = await ServiceCatalogService.require_service(db, service_id)

        update_data = service_data.model_dump(exclude_unset=True)
        for field, value in update_data.items():
            setattr(db_service, field, value)

        await db.commit()
        await db.refresh(db_service)
        return db_service

    @staticmethod
    async def delete_service(db: AsyncSession, service_id: int) -> None:
        db_service = await ServiceCatalogService.require_service(db, service_id)

        in_use = await db.execute(
            select(func.count(Appointment.id)).filter(
                Appointment.service_id == service_id
            )
        )
        if in_use.scalar():
            raise ConflictError(
                f"Service {service_id} is referenced by appointments and cannot be deleted",
                code="service_in_use",
            )

        await db.delete(db_service)
        await db.commit()
        logger.info("Service deleted", service_id=service_id)
