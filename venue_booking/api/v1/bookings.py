"""Bookings API endpoints."""

from datetime import date

from fastapi import APIRouter, Query, status

from venue_booking.api.v1.dependencies import BookingServiceDep, CurrentUser
from venue_booking.models.booking import BookingStatus
from venue_booking.schemas.booking import (
    BookingCancelRequest,
    BookingCreate,
    BookingCreatedResponse,
    BookingResponse,
)

router = APIRouter()


@router.post(
    "",
    response_model=BookingCreatedResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create booking",
)
async def create_booking(
    booking_data: BookingCreate,
    current_user: CurrentUser,
    booking_service: BookingServiceDep,
) -> BookingCreatedResponse:
    """
    Reserve a time slot on a venue for the current user.

    The booking starts PENDING. `payable_now` is the full total, or the first
    installment when paying in installments.
    """
    booking, payable_now = await booking_service.create_booking(
        customer_id=current_user,
        venue_id=booking_data.venue_id,
        booking_date=booking_data.booking_date,
        start_time=booking_data.start_time,
        end_time=booking_data.end_time,
        payment_mode=booking_data.payment_mode,
    )

    return BookingCreatedResponse(
        booking=BookingResponse.model_validate(booking),
        payable_now=payable_now,
    )


@router.get(
    "",
    response_model=list[BookingResponse],
    summary="Get user bookings",
)
async def get_user_bookings(
    current_user: CurrentUser,
    booking_service: BookingServiceDep,
    status_filter: BookingStatus | None = Query(None, alias="status"),
) -> list[BookingResponse]:
    """Get all bookings for the current user, newest first."""
    bookings = await booking_service.list_by_customer(current_user, status=status_filter)
    return [BookingResponse.model_validate(b) for b in bookings]


@router.get(
    "/venue/{venue_id}",
    response_model=list[BookingResponse],
    summary="Get venue bookings",
)
async def get_venue_bookings(
    venue_id: int,
    current_user: CurrentUser,
    booking_service: BookingServiceDep,
    status_filter: BookingStatus | None = Query(None, alias="status"),
    on_date: date | None = Query(None, alias="date"),
) -> list[BookingResponse]:
    """Get bookings of a venue in calendar order."""
    bookings = await booking_service.list_by_venue(
        venue_id, status=status_filter, on_date=on_date
    )
    return [BookingResponse.model_validate(b) for b in bookings]


@router.get(
    "/hall/{hall_id}",
    response_model=list[BookingResponse],
    summary="Get hall bookings",
)
async def get_hall_bookings(
    hall_id: int,
    current_user: CurrentUser,
    booking_service: BookingServiceDep,
) -> list[BookingResponse]:
    """Get bookings across all venues of a hall. Owner, staff and admins only."""
    bookings = await booking_service.list_by_hall(hall_id, current_user)
    return [BookingResponse.model_validate(b) for b in bookings]


@router.get(
    "/reference/{reference}",
    response_model=BookingResponse,
    summary="Get booking by reference",
)
async def get_booking_by_reference(
    reference: str,
    current_user: CurrentUser,
    booking_service: BookingServiceDep,
) -> BookingResponse:
    booking = await booking_service.get_booking_by_reference(reference, current_user)
    return BookingResponse.model_validate(booking)


@router.get(
    "/{booking_id}",
    response_model=BookingResponse,
    summary="Get booking details",
)
async def get_booking(
    booking_id: int,
    current_user: CurrentUser,
    booking_service: BookingServiceDep,
) -> BookingResponse:
    """Get a booking visible to the current user."""
    booking = await booking_service.get_booking_for(booking_id, current_user)
    return BookingResponse.model_validate(booking)


@router.post(
    "/{booking_id}/cancel",
    response_model=BookingResponse,
    summary="Cancel booking",
)
async def cancel_booking(
    booking_id: int,
    cancel_data: BookingCancelRequest,
    current_user: CurrentUser,
    booking_service: BookingServiceDep,
) -> BookingResponse:
    """Cancel a booking, release its slot and refund what was paid."""
    booking = await booking_service.cancel_booking(
        booking_id=booking_id,
        requester_id=current_user,
        reason=cancel_data.reason,
    )
    return BookingResponse.model_validate(booking)
