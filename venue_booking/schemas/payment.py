"""Payment schemas."""

from datetime import datetime
from decimal import Decimal

from pydantic import Field

from venue_booking.models.booking import PaymentStatus, PaymentType
from venue_booking.schemas.booking import BookingResponse
from venue_booking.schemas.common import BaseSchema


class PaymentIntentRequest(BaseSchema):
    """Schema for starting a payment on a booking."""

    booking_id: int


class PaymentIntentResponse(BaseSchema):
    """Schema for a created payment intent."""

    payment_id: int
    booking_id: int
    payment_reference: str
    amount: Decimal
    currency: str
    payment_type: PaymentType
    client_secret: str | None = None


class PaymentConfirmRequest(BaseSchema):
    """Schema for confirming a payment."""

    booking_id: int
    payment_reference: str = Field(..., min_length=1, max_length=100)
    amount: Decimal = Field(..., max_digits=10, decimal_places=2)


class RefundRequest(BaseSchema):
    """Schema for refunding a booking. Omit amount to refund everything paid."""

    amount: Decimal | None = Field(None, max_digits=10, decimal_places=2)


class PaymentResponse(BaseSchema):
    """Schema for payment response."""

    payment_id: int
    booking_id: int
    amount: Decimal
    payment_type: PaymentType
    status: PaymentStatus
    external_reference: str
    refunded_payment_id: int | None = None
    created_at: datetime


class PaymentConfirmResponse(BaseSchema):
    """Booking state after a payment confirmation."""

    booking: BookingResponse
    next_amount_due: Decimal | None = None
