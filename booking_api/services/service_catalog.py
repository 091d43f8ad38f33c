"""Read-only access to the service catalog."""

from uuid import UUID

from sqlalchemy import and_, select
from sqlalchemy.ext.asyncio import AsyncSession

from booking_api.core.exceptions import ServiceNotBookableException, ServiceNotFoundException
from booking_api.models.services import services
from booking_api.schemas.services import ServiceResponse


class ServiceCatalog:
    """Lookups against the CMS-owned service catalog."""

    def __init__(self, db: AsyncSession):
        """Initialize catalog with database session."""
        self.db = db

    async def get_service(self, service_id: UUID) -> ServiceResponse | None:
        """Get a service by id, or None if it does not exist."""
        result = await self.db.execute(select(services).where(services.c.id == service_id))
        row = result.fetchone()
        if not row:
            return None
        return ServiceResponse.model_validate(dict(row._mapping))

    async def get_bookable_service(self, service_id: UUID) -> ServiceResponse:
        """
        Get a service that can be booked online.

        Raises:
            ServiceNotFoundException: If the id does not resolve
            ServiceNotBookableException: If the service is closed for booking
                or has no duration
        """
        service = await self.get_service(service_id)
        if service is None:
            raise ServiceNotFoundException()
        if not service.bookable or not service.available or not service.duration_minutes:
            raise ServiceNotBookableException()
        return service

    async def list_bookable(self) -> list[ServiceResponse]:
        """List services offered on the booking form."""
        stmt = (
            select(services)
            .where(
                and_(
                    services.c.bookable.is_(True),
                    services.c.available.is_(True),
                    services.c.duration_minutes.is_not(None),
                )
            )
            .order_by(services.c.display_order, services.c.name)
        )
        result = await self.db.execute(stmt)
        return [ServiceResponse.model_validate(dict(row._mapping)) for row in result.fetchall()]
