"""Service catalog schemas."""

from uuid import UUID

from pydantic import BaseModel, ConfigDict


class ServiceResponse(BaseModel):
    """Schema for a catalog service."""

    id: UUID
    name: str
    slug: str
    category: str | None = None
    short_description: str | None = None
    duration_minutes: int | None = None
    price: float | None = None
    currency: str = "RON"
    bookable: bool = True
    available: bool = True
    display_order: int = 0

    model_config = {"from_attributes": True}


class ServiceListResponse(BaseModel):
    """Schema for the bookable service list."""

    items: list[ServiceResponse]


class ServiceSnapshot(BaseModel):
    """Service values frozen onto an appointment when it is booked."""

    model_config = ConfigDict(frozen=True)

    duration_minutes: int
    price: float | None = None
    currency: str = "RON"

    @classmethod
    def from_service(cls, service: ServiceResponse) -> "ServiceSnapshot":
        """Copy the booking-relevant values of a service."""
        if not service.duration_minutes:
            raise ValueError("Service has no duration")
        return cls(
            duration_minutes=service.duration_minutes,
            price=service.price,
            currency=service.currency,
        )
