"""API v1 routers package."""

from venue_booking.api.v1.bookings import router as bookings_router
from venue_booking.api.v1.payments import router as payments_router
from venue_booking.api.v1.users import router as users_router
from venue_booking.api.v1.venues import router as venues_router

__all__ = [
    "bookings_router",
    "payments_router",
    "users_router",
    "venues_router",
]
