"""Hall, venue and pricing schemas."""

from datetime import date, datetime, time
from decimal import Decimal

from pydantic import Field, model_validator

from venue_booking.models.user import UserRole
from venue_booking.models.venue import HallStatus
from venue_booking.schemas.common import BaseSchema


class HallCreate(BaseSchema):
    """Schema for creating a hall."""

    name: str = Field(..., min_length=1, max_length=255)
    address: str | None = Field(None, max_length=500)
    city: str | None = Field(None, max_length=100)
    zipcode: str | None = Field(None, max_length=20)
    latitude: float | None = Field(None, ge=-90, le=90)
    longitude: float | None = Field(None, ge=-180, le=180)


class HallResponse(BaseSchema):
    """Schema for hall response."""

    hall_id: int
    owner_id: str
    name: str
    address: str | None
    city: str | None = None
    zipcode: str | None = None
    latitude: float | None = None
    longitude: float | None = None
    status: HallStatus
    admin_notes: str | None = None
    created_at: datetime


class HallStatusUpdate(BaseSchema):
    """Schema for an admin decision on a hall."""

    status: HallStatus
    notes: str | None = Field(None, max_length=2000)


class VenueCreate(BaseSchema):
    """Schema for creating a venue."""

    hall_id: int
    name: str = Field(..., min_length=1, max_length=255)
    capacity: int = Field(..., gt=0)
    base_price_per_hour: Decimal = Field(..., gt=0, max_digits=10, decimal_places=2)
    min_booking_duration_hours: int = Field(2, gt=0)


class VenueUpdate(BaseSchema):
    """Schema for updating a venue."""

    active: bool


class VenueResponse(BaseSchema):
    """Schema for venue response."""

    venue_id: int
    hall_id: int
    name: str
    capacity: int
    base_price_per_hour: Decimal
    min_booking_duration_hours: int
    active: bool


class VenueSearchParams(BaseSchema):
    """Filters for venue search. Every filter is optional."""

    name: str | None = Field(None, max_length=255)
    city: str | None = Field(None, max_length=100)
    zipcode: str | None = Field(None, max_length=20)
    min_capacity: int | None = Field(None, gt=0)
    max_price: Decimal | None = Field(None, gt=0)
    on_date: date | None = None
    start_time: time | None = None
    end_time: time | None = None
    latitude: float | None = Field(None, ge=-90, le=90)
    longitude: float | None = Field(None, ge=-180, le=180)
    radius_km: float | None = Field(None, gt=0)


class VenueSearchResult(VenueResponse):
    """Venue found by search, with hall details."""

    hall_name: str
    city: str | None = None
    zipcode: str | None = None
    distance_km: float | None = None


class PricingSlotCreate(BaseSchema):
    """Schema for a date-specific hourly rate."""

    effective_date: date
    slot_start: time
    slot_end: time
    price: Decimal = Field(..., gt=0, max_digits=10, decimal_places=2)

    @model_validator(mode="after")
    def check_slot_range(self) -> "PricingSlotCreate":
        if self.slot_end <= self.slot_start:
            raise ValueError("slot_end must be after slot_start")
        return self


class PricingSlotResponse(BaseSchema):
    """Schema for pricing slot response."""

    pricing_id: int
    venue_id: int
    effective_date: date
    slot_start: time
    slot_end: time
    price: Decimal


class UserCreate(BaseSchema):
    """Schema for registering a user."""

    user_id: str = Field(..., min_length=1, max_length=50)
    full_name: str = Field(..., min_length=1, max_length=255)
    email: str | None = Field(None, max_length=255)
    role: UserRole = UserRole.CUSTOMER


class UserResponse(BaseSchema):
    """Schema for user response."""

    user_id: str
    full_name: str
    email: str | None
    role: UserRole


class StaffCreate(BaseSchema):
    """Schema for assigning staff to a hall."""

    user_id: str = Field(..., min_length=1, max_length=50)
    role: UserRole


class StaffResponse(BaseSchema):
    """Schema for hall staff response."""

    hall_staff_id: int
    hall_id: int
    user_id: str
    role: UserRole


class TokenResponse(BaseSchema):
    """Schema for an issued access token."""

    access_token: str
    token_type: str = "bearer"
    expires_in: int
