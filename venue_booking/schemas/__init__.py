"""Pydantic schemas for API request/response."""

from venue_booking.schemas.booking import (
    BookingCancelRequest,
    BookingCreate,
    BookingCreatedResponse,
    BookingResponse,
)
from venue_booking.schemas.payment import (
    PaymentConfirmRequest,
    PaymentConfirmResponse,
    PaymentIntentRequest,
    PaymentIntentResponse,
    PaymentResponse,
    RefundRequest,
)
from venue_booking.schemas.venue import (
    HallCreate,
    HallResponse,
    HallStatusUpdate,
    PricingSlotCreate,
    PricingSlotResponse,
    StaffCreate,
    StaffResponse,
    TokenResponse,
    UserCreate,
    UserResponse,
    VenueCreate,
    VenueResponse,
    VenueSearchParams,
    VenueSearchResult,
    VenueUpdate,
)

__all__ = [
    "BookingCreate",
    "BookingCreatedResponse",
    "BookingResponse",
    "BookingCancelRequest",
    "PaymentIntentRequest",
    "PaymentIntentResponse",
    "PaymentConfirmRequest",
    "PaymentConfirmResponse",
    "PaymentResponse",
    "RefundRequest",
    "HallCreate",
    "HallResponse",
    "HallStatusUpdate",
    "VenueCreate",
    "VenueUpdate",
    "VenueResponse",
    "VenueSearchParams",
    "VenueSearchResult",
    "PricingSlotCreate",
    "PricingSlotResponse",
    "UserCreate",
    "UserResponse",
    "StaffCreate",
    "StaffResponse",
    "TokenResponse",
]
