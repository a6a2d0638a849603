"""Services package."""

from venue_booking.services.booking_service import BookingService
from venue_booking.services.identity_service import IdentityService
from venue_booking.services.payment_service import PaymentService
from venue_booking.services.venue_service import VenueService

__all__ = [
    "BookingService",
    "IdentityService",
    "PaymentService",
    "VenueService",
]
