"""Service catalog endpoints."""

from fastapi import APIRouter, status

from booking_api.dependencies import DatabaseSession
from booking_api.schemas.services import ServiceListResponse
from booking_api.services.service_catalog import ServiceCatalog

router = APIRouter()


@router.get(
    "/",
    response_model=ServiceListResponse,
    status_code=status.HTTP_200_OK,
    summary="List bookable services",
)
async def list_services(db: DatabaseSession) -> ServiceListResponse:
    """Services that can currently be booked online, in display order."""
    catalog = ServiceCatalog(db)
    return ServiceListResponse(items=await catalog.list_bookable())
