"""SQLAlchemy models."""

from venue_booking.models.base import Base
from venue_booking.models.booking import (
    Booking,
    BookingStatus,
    Payment,
    PaymentMode,
    PaymentStatus,
    PaymentType,
)
from venue_booking.models.user import HallStaff, User, UserRole
from venue_booking.models.venue import Hall, HallStatus, Venue, VenuePricing

__all__ = [
    "Base",
    "User",
    "UserRole",
    "HallStaff",
    "Hall",
    "HallStatus",
    "Venue",
    "VenuePricing",
    "Booking",
    "BookingStatus",
    "Payment",
    "PaymentMode",
    "PaymentStatus",
    "PaymentType",
]
