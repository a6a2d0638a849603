"""Booking schemas."""

from datetime import date, datetime, time
from decimal import Decimal

from pydantic import Field

from venue_booking.models.booking import BookingStatus, PaymentMode
from venue_booking.schemas.common import BaseSchema


class BookingCreate(BaseSchema):
    """Schema for reserving a time slot on a venue."""

    venue_id: int
    booking_date: date
    start_time: time
    end_time: time
    payment_mode: PaymentMode = PaymentMode.FULL


class BookingResponse(BaseSchema):
    """Schema for booking response."""

    booking_id: int
    venue_id: int
    customer_id: str
    booking_date: date
    start_time: time
    end_time: time
    status: BookingStatus
    payment_mode: PaymentMode
    total_amount: Decimal
    paid_amount: Decimal
    balance_due: Decimal
    booking_reference: str
    cancellation_reason: str | None = None
    created_at: datetime
    confirmed_at: datetime | None = None
    cancelled_at: datetime | None = None


class BookingCreatedResponse(BaseSchema):
    """Created booking along with the amount payable right away."""

    booking: BookingResponse
    payable_now: Decimal


class BookingCancelRequest(BaseSchema):
    """Schema for cancelling a booking."""

    reason: str = Field("", max_length=500)
