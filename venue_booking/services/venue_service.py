"""Venue catalog service."""

import logging
import math
from dataclasses import dataclass
from datetime import date, time
from typing import Protocol

from sqlalchemy import exists, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from venue_booking.errors import HallNotFound, InvalidTimeRange, Unauthorized, VenueNotFound
from venue_booking.models.booking import ACTIVE_STATUSES, Booking
from venue_booking.models.venue import Hall, HallStatus, Venue, VenuePricing
from venue_booking.roles import Capability, has_capability
from venue_booking.schemas.venue import (
    HallCreate,
    PricingSlotCreate,
    VenueCreate,
    VenueSearchParams,
)
from venue_booking.services.identity_service import IdentityService

logger = logging.getLogger(__name__)

EARTH_RADIUS_KM = 6371.0
DEFAULT_SEARCH_RADIUS_KM = 25.0


def haversine_km(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """Great-circle distance between two points, rounded to 0.1 km."""
    d_lat = math.radians(lat2 - lat1)
    d_lng = math.radians(lng2 - lng1)
    a = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) * math.sin(d_lng / 2) ** 2
    )
    distance = EARTH_RADIUS_KM * 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return round(distance, 1)


@dataclass
class VenueMatch:
    """A venue found by search, with its hall and distance from the search point."""

    venue: Venue
    hall: Hall
    distance_km: float | None = None


class VenueCatalog(Protocol):
    async def get_hall(self, hall_id: int) -> Hall | None: ...

    async def get_venue(self, venue_id: int) -> Venue | None: ...

    async def get_pricing_slots(
        self, venue_id: int, on_date: date
    ) -> list[VenuePricing]: ...


class VenueService:
    """Service for halls, venues and their pricing."""

    def __init__(self, db: AsyncSession, identity: IdentityService | None = None):
        self.db = db
        self.identity = identity or IdentityService(db)

    async def get_hall(self, hall_id: int) -> Hall | None:
        """Get hall by ID."""
        result = await self.db.execute(select(Hall).where(Hall.hall_id == hall_id))
        return result.scalar_one_or_none()

    async def get_venue(self, venue_id: int) -> Venue | None:
        """Get venue by ID."""
        result = await self.db.execute(select(Venue).where(Venue.venue_id == venue_id))
        return result.scalar_one_or_none()

    async def get_pricing_slots(self, venue_id: int, on_date: date) -> list[VenuePricing]:
        """Pricing slots of a venue effective on a date."""
        result = await self.db.execute(
            select(VenuePricing)
            .where(
                VenuePricing.venue_id == venue_id,
                VenuePricing.effective_date == on_date,
            )
            .order_by(VenuePricing.slot_start)
        )
        return list(result.scalars().all())

    async def list_venues(
        self,
        hall_id: int | None = None,
        active_only: bool = True,
        page: int = 1,
        page_size: int = 20,
    ) -> tuple[list[Venue], int]:
        """List venues with optional filtering."""
        query = select(Venue)

        if hall_id is not None:
            query = query.where(Venue.hall_id == hall_id)
        if active_only:
            query = query.where(Venue.active.is_(True))

        count_query = select(func.count()).select_from(query.subquery())
        total = (await self.db.execute(count_query)).scalar() or 0

        query = query.order_by(Venue.venue_id)
        query = query.offset((page - 1) * page_size).limit(page_size)

        result = await self.db.execute(query)
        return list(result.scalars().all()), total

    async def create_hall(self, owner_id: str, hall_data: HallCreate) -> Hall:
        """Create a hall owned by the requester."""
        role = await self.identity.role_of(owner_id)
        if not has_capability(role, Capability.MANAGE_HALLS):
            raise Unauthorized("Only hall owners can create halls")

        hall = Hall(
            owner_id=owner_id,
            name=hall_data.name,
            address=hall_data.address,
            city=hall_data.city,
            zipcode=hall_data.zipcode,
            latitude=hall_data.latitude,
            longitude=hall_data.longitude,
            status=HallStatus.PENDING,
        )
        self.db.add(hall)
        await self.db.commit()
        await self.db.refresh(hall)
        logger.info(f"Hall {hall.hall_id} created by {owner_id}, awaiting approval")
        return hall

    async def list_pending_halls(self, requester_id: str) -> list[Hall]:
        """Halls waiting for an admin decision, oldest first."""
        await self._require_admin(requester_id)
        result = await self.db.execute(
            select(Hall)
            .where(Hall.status.in_((HallStatus.PENDING, HallStatus.ON_HOLD)))
            .order_by(Hall.hall_id)
        )
        return list(result.scalars().all())

    async def update_hall_status(
        self,
        requester_id: str,
        hall_id: int,
        status: HallStatus,
        notes: str | None = None,
    ) -> Hall:
        """
        Approve, hold or reject a hall.

        Notes are kept from the previous decision when none are given.
        Only venues of APPROVED halls take bookings and show up in search.
        """
        await self._require_admin(requester_id)

        hall = await self.get_hall(hall_id)
        if hall is None:
            raise HallNotFound(f"Hall {hall_id} not found")

        previous = hall.status
        hall.status = status
        if notes is not None:
            hall.admin_notes = notes
        await self.db.commit()
        await self.db.refresh(hall)
        logger.info(
            f"Hall {hall_id} moved from {previous.value} to {status.value} by {requester_id}"
        )
        return hall

    async def search_venues(
        self,
        params: VenueSearchParams,
        page: int = 1,
        page_size: int = 20,
    ) -> tuple[list[VenueMatch], int]:
        """
        Search active venues of approved halls.

        With a latitude and longitude only halls within the radius are
        kept, nearest first. Otherwise results are ordered by venue ID.
        """
        query = (
            select(Venue, Hall)
            .join(Hall, Venue.hall_id == Hall.hall_id)
            .where(Venue.active.is_(True), Hall.status == HallStatus.APPROVED)
        )

        if params.name:
            pattern = f"%{params.name.lower()}%"
            query = query.where(
                or_(func.lower(Venue.name).like(pattern), func.lower(Hall.name).like(pattern))
            )
        if params.city:
            query = query.where(func.lower(Hall.city) == params.city.lower())
        if params.zipcode:
            query = query.where(Hall.zipcode == params.zipcode)
        if params.min_capacity is not None:
            query = query.where(Venue.capacity >= params.min_capacity)
        if params.max_price is not None:
            query = query.where(Venue.base_price_per_hour <= params.max_price)
        if (
            params.on_date is not None
            and params.start_time is not None
            and params.end_time is not None
        ):
            query = query.where(
                ~self._overlapping_booking(params.on_date, params.start_time, params.end_time)
            )

        if params.latitude is None or params.longitude is None:
            count_query = select(func.count()).select_from(query.subquery())
            total = (await self.db.execute(count_query)).scalar() or 0

            query = query.order_by(Venue.venue_id)
            query = query.offset((page - 1) * page_size).limit(page_size)
            result = await self.db.execute(query)
            return [VenueMatch(venue, hall) for venue, hall in result.all()], total

        # Distance is computed here, so the location search pages in memory
        radius = params.radius_km or DEFAULT_SEARCH_RADIUS_KM
        query = query.where(Hall.latitude.is_not(None), Hall.longitude.is_not(None))
        result = await self.db.execute(query.order_by(Venue.venue_id))

        matches = []
        for venue, hall in result.all():
            distance = haversine_km(
                params.latitude, params.longitude, hall.latitude, hall.longitude
            )
            if distance <= radius:
                matches.append(VenueMatch(venue, hall, distance))
        matches.sort(key=lambda m: m.distance_km)

        start = (page - 1) * page_size
        return matches[start : start + page_size], len(matches)

    @staticmethod
    def _overlapping_booking(on_date: date, start_time: time, end_time: time):
        if end_time <= start_time:
            raise InvalidTimeRange()
        return exists().where(
            Booking.venue_id == Venue.venue_id,
            Booking.booking_date == on_date,
            Booking.status.in_(ACTIVE_STATUSES),
            Booking.start_time < end_time,
            Booking.end_time > start_time,
        )

    async def create_venue(self, requester_id: str, venue_data: VenueCreate) -> Venue:
        """Create a venue inside a hall the requester manages."""
        if await self.get_hall(venue_data.hall_id) is None:
            raise HallNotFound(f"Hall {venue_data.hall_id} not found")

        await self._require_hall_capability(requester_id, venue_data.hall_id)

        venue = Venue(
            hall_id=venue_data.hall_id,
            name=venue_data.name,
            capacity=venue_data.capacity,
            base_price_per_hour=venue_data.base_price_per_hour,
            min_booking_duration_hours=venue_data.min_booking_duration_hours,
            active=True,
        )
        self.db.add(venue)
        await self.db.commit()
        await self.db.refresh(venue)
        logger.info(f"Venue {venue.venue_id} created in hall {venue.hall_id}")
        return venue

    async def set_venue_active(self, requester_id: str, venue_id: int, active: bool) -> Venue:
        """Open or close a venue for new bookings."""
        venue = await self._get_managed_venue(requester_id, venue_id)

        venue.active = active
        await self.db.commit()
        await self.db.refresh(venue)
        logger.info(f"Venue {venue_id} active={active}")
        return venue

    async def add_pricing_slot(
        self,
        requester_id: str,
        venue_id: int,
        slot_data: PricingSlotCreate,
    ) -> VenuePricing:
        """Add a date-specific hourly rate to a venue."""
        await self._get_managed_venue(requester_id, venue_id)

        slot = VenuePricing(
            venue_id=venue_id,
            effective_date=slot_data.effective_date,
            slot_start=slot_data.slot_start,
            slot_end=slot_data.slot_end,
            price=slot_data.price,
        )
        self.db.add(slot)
        await self.db.commit()
        await self.db.refresh(slot)
        return slot

    async def _get_managed_venue(self, requester_id: str, venue_id: int) -> Venue:
        venue = await self.get_venue(venue_id)
        if venue is None:
            raise VenueNotFound(f"Venue {venue_id} not found")
        await self._require_hall_capability(requester_id, venue.hall_id)
        return venue

    async def _require_admin(self, requester_id: str) -> None:
        role = await self.identity.role_of(requester_id)
        if not has_capability(role, Capability.APPROVE_HALLS):
            raise Unauthorized("Only admins can review halls")

    async def _require_hall_capability(self, requester_id: str, hall_id: int) -> None:
        allowed = await self.identity.can_act_on_hall(
            requester_id,
            hall_id,
            Capability.MANAGE_VENUES,
            any_capability=Capability.MANAGE_ALL_HALLS,
        )
        if not allowed:
            raise Unauthorized("Not authorized to manage venues of this hall")
