"""Payments API endpoints."""

from fastapi import APIRouter, status

from venue_booking.api.v1.dependencies import (
    BookingServiceDep,
    CurrentUser,
    PaymentServiceDep,
)
from venue_booking.schemas.booking import BookingResponse
from venue_booking.schemas.payment import (
    PaymentConfirmRequest,
    PaymentConfirmResponse,
    PaymentIntentRequest,
    PaymentIntentResponse,
    PaymentResponse,
    RefundRequest,
)

router = APIRouter()


@router.post(
    "/intent",
    response_model=PaymentIntentResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Start a payment",
)
async def create_payment_intent(
    intent_data: PaymentIntentRequest,
    current_user: CurrentUser,
    payment_service: PaymentServiceDep,
) -> PaymentIntentResponse:
    """Create a gateway payment intent for the next amount due on a booking."""
    payment, intent = await payment_service.initiate_payment(
        intent_data.booking_id, current_user
    )

    return PaymentIntentResponse(
        payment_id=payment.payment_id,
        booking_id=payment.booking_id,
        payment_reference=intent.reference,
        amount=intent.amount,
        currency=intent.currency,
        payment_type=payment.payment_type,
        client_secret=intent.client_secret,
    )


@router.post(
    "/confirm",
    response_model=PaymentConfirmResponse,
    summary="Confirm payment",
)
async def confirm_payment(
    payment_data: PaymentConfirmRequest,
    current_user: CurrentUser,
    booking_service: BookingServiceDep,
    payment_service: PaymentServiceDep,
) -> PaymentConfirmResponse:
    """
    Confirm a payment for a booking.

    Safe to repeat: a reference that was already confirmed leaves the
    booking untouched.
    """
    # Access check
    await booking_service.get_booking_for(payment_data.booking_id, current_user)

    booking = await payment_service.confirm_payment(
        booking_id=payment_data.booking_id,
        payment_reference=payment_data.payment_reference,
        amount=payment_data.amount,
    )

    due = payment_service.next_due(booking)
    return PaymentConfirmResponse(
        booking=BookingResponse.model_validate(booking),
        next_amount_due=due[0] if due else None,
    )


@router.post(
    "/{booking_id}/refund",
    response_model=list[PaymentResponse],
    summary="Refund booking",
)
async def refund_booking(
    booking_id: int,
    current_user: CurrentUser,
    payment_service: PaymentServiceDep,
    refund_data: RefundRequest | None = None,
) -> list[PaymentResponse]:
    """
    Refund money paid on a booking. Hall managers, owners and admins only.

    Returns one REFUNDED payment per charge the refund was taken from.
    """
    refunds = await payment_service.refund(
        booking_id,
        amount=refund_data.amount if refund_data else None,
        requester_id=current_user,
    )
    return [PaymentResponse.model_validate(p) for p in refunds]


@router.get(
    "/booking/{booking_id}",
    response_model=list[PaymentResponse],
    summary="Get booking payments",
)
async def get_booking_payments(
    booking_id: int,
    current_user: CurrentUser,
    booking_service: BookingServiceDep,
    payment_service: PaymentServiceDep,
) -> list[PaymentResponse]:
    """Get the payment history of a booking."""
    await booking_service.get_booking_for(booking_id, current_user)

    payments = await payment_service.list_payments(booking_id)
    return [PaymentResponse.model_validate(p) for p in payments]
