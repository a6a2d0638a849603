"""Halls and venues API endpoints."""

from datetime import date, time
from decimal import Decimal

from fastapi import APIRouter, HTTPException, Query, status

from venue_booking.api.v1.dependencies import (
    CurrentUser,
    IdentityServiceDep,
    VenueServiceDep,
)
from venue_booking.schemas.common import PaginatedResponse
from venue_booking.schemas.venue import (
    HallCreate,
    HallResponse,
    HallStatusUpdate,
    PricingSlotCreate,
    PricingSlotResponse,
    StaffCreate,
    StaffResponse,
    VenueCreate,
    VenueResponse,
    VenueSearchParams,
    VenueSearchResult,
    VenueUpdate,
)

router = APIRouter()


@router.post(
    "/halls",
    response_model=HallResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a hall",
    tags=["Halls"],
)
async def create_hall(
    hall_data: HallCreate,
    current_user: CurrentUser,
    venue_service: VenueServiceDep,
) -> HallResponse:
    """Create a hall owned by the current user."""
    hall = await venue_service.create_hall(current_user, hall_data)
    return HallResponse.model_validate(hall)


@router.get(
    "/halls/pending",
    response_model=list[HallResponse],
    summary="Halls awaiting review",
    tags=["Halls"],
)
async def list_pending_halls(
    current_user: CurrentUser,
    venue_service: VenueServiceDep,
) -> list[HallResponse]:
    """Halls that are pending or on hold. Admins only."""
    halls = await venue_service.list_pending_halls(current_user)
    return [HallResponse.model_validate(h) for h in halls]


@router.patch(
    "/halls/{hall_id}/status",
    response_model=HallResponse,
    summary="Review a hall",
    tags=["Halls"],
)
async def update_hall_status(
    hall_id: int,
    status_data: HallStatusUpdate,
    current_user: CurrentUser,
    venue_service: VenueServiceDep,
) -> HallResponse:
    """Approve, hold or reject a hall. Admins only."""
    hall = await venue_service.update_hall_status(
        current_user, hall_id, status_data.status, status_data.notes
    )
    return HallResponse.model_validate(hall)


@router.post(
    "/halls/{hall_id}/staff",
    response_model=StaffResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Assign hall staff",
    tags=["Halls"],
)
async def add_hall_staff(
    hall_id: int,
    staff_data: StaffCreate,
    current_user: CurrentUser,
    identity_service: IdentityServiceDep,
) -> StaffResponse:
    """Assign a manager or assistant to a hall."""
    staff = await identity_service.add_staff(
        owner_id=current_user,
        hall_id=hall_id,
        user_id=staff_data.user_id,
        role=staff_data.role,
    )
    return StaffResponse.model_validate(staff)


@router.post(
    "/venues",
    response_model=VenueResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a venue",
    tags=["Venues"],
)
async def create_venue(
    venue_data: VenueCreate,
    current_user: CurrentUser,
    venue_service: VenueServiceDep,
) -> VenueResponse:
    """Create a venue in a hall the current user manages."""
    venue = await venue_service.create_venue(current_user, venue_data)
    return VenueResponse.model_validate(venue)


@router.get(
    "/venues",
    response_model=PaginatedResponse[VenueResponse],
    summary="List venues",
    tags=["Venues"],
)
async def list_venues(
    venue_service: VenueServiceDep,
    hall_id: int | None = Query(None),
    include_inactive: bool = Query(False),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
) -> PaginatedResponse[VenueResponse]:
    """List venues with optional filtering."""
    venues, total = await venue_service.list_venues(
        hall_id=hall_id,
        active_only=not include_inactive,
        page=page,
        page_size=page_size,
    )

    return PaginatedResponse.build(
        [VenueResponse.model_validate(v) for v in venues], total, page, page_size
    )


@router.get(
    "/venues/search",
    response_model=PaginatedResponse[VenueSearchResult],
    summary="Search venues",
    tags=["Venues"],
)
async def search_venues(
    venue_service: VenueServiceDep,
    name: str | None = Query(None, max_length=255),
    city: str | None = Query(None, max_length=100),
    zipcode: str | None = Query(None, max_length=20),
    min_capacity: int | None = Query(None, gt=0),
    max_price: Decimal | None = Query(None, gt=0),
    on_date: date | None = Query(None, alias="date"),
    start_time: time | None = Query(None),
    end_time: time | None = Query(None),
    lat: float | None = Query(None, ge=-90, le=90),
    lng: float | None = Query(None, ge=-180, le=180),
    radius: float | None = Query(None, gt=0, description="Kilometres, default 25"),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
) -> PaginatedResponse[VenueSearchResult]:
    """
    Search bookable venues.

    Pass date, start_time and end_time to only get venues free for that
    slot. Pass lat and lng to search around a point, nearest first.
    """
    params = VenueSearchParams(
        name=name,
        city=city,
        zipcode=zipcode,
        min_capacity=min_capacity,
        max_price=max_price,
        on_date=on_date,
        start_time=start_time,
        end_time=end_time,
        latitude=lat,
        longitude=lng,
        radius_km=radius,
    )
    matches, total = await venue_service.search_venues(params, page=page, page_size=page_size)

    items = [
        VenueSearchResult(
            **VenueResponse.model_validate(m.venue).model_dump(),
            hall_name=m.hall.name,
            city=m.hall.city,
            zipcode=m.hall.zipcode,
            distance_km=m.distance_km,
        )
        for m in matches
    ]
    return PaginatedResponse.build(items, total, page, page_size)


@router.get(
    "/venues/{venue_id}",
    response_model=VenueResponse,
    summary="Get venue details",
    tags=["Venues"],
)
async def get_venue(
    venue_id: int,
    venue_service: VenueServiceDep,
) -> VenueResponse:
    """Get venue details."""
    venue = await venue_service.get_venue(venue_id)
    if not venue:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Venue not found",
        )
    return VenueResponse.model_validate(venue)


@router.patch(
    "/venues/{venue_id}",
    response_model=VenueResponse,
    summary="Open or close a venue",
    tags=["Venues"],
)
async def update_venue(
    venue_id: int,
    venue_data: VenueUpdate,
    current_user: CurrentUser,
    venue_service: VenueServiceDep,
) -> VenueResponse:
    """Change whether a venue accepts new bookings."""
    venue = await venue_service.set_venue_active(current_user, venue_id, venue_data.active)
    return VenueResponse.model_validate(venue)


@router.post(
    "/venues/{venue_id}/pricing",
    response_model=PricingSlotResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Add a pricing slot",
    tags=["Venues"],
)
async def add_pricing_slot(
    venue_id: int,
    slot_data: PricingSlotCreate,
    current_user: CurrentUser,
    venue_service: VenueServiceDep,
) -> PricingSlotResponse:
    """Add a date-specific hourly rate to a venue."""
    slot = await venue_service.add_pricing_slot(current_user, venue_id, slot_data)
    return PricingSlotResponse.model_validate(slot)
