"""API v1 main router."""

from fastapi import APIRouter

from venue_booking.api.v1.bookings import router as bookings_router
from venue_booking.api.v1.payments import router as payments_router
from venue_booking.api.v1.users import router as users_router
from venue_booking.api.v1.venues import router as venues_router

router = APIRouter(prefix="/v1")

router.include_router(venues_router)
router.include_router(users_router)
router.include_router(bookings_router, prefix="/bookings", tags=["Bookings"])
router.include_router(payments_router, prefix="/payments", tags=["Payments"])
