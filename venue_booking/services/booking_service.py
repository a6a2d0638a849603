"""Booking reservation engine with distributed locking."""

import asyncio
import logging
from datetime import date, datetime, time
from decimal import Decimal
from typing import Callable

import redis.asyncio as redis
from sqlalchemy import and_, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from ulid import ULID

from venue_booking.config import get_settings
from venue_booking.distributed_lock import (
    DistributedLockError,
    LockFactory,
    redis_lock_factory,
    slot_lock_key,
)
from venue_booking.errors import (
    BookingEngineError,
    BookingNotFound,
    DurationTooShort,
    EmptyReason,
    HallNotApproved,
    HallNotFound,
    InvalidBookingDate,
    InvalidState,
    InvalidTimeRange,
    LockConflict,
    SlotConflict,
    Unauthorized,
    VenueInactive,
    VenueNotFound,
)
from venue_booking.models.booking import (
    ACTIVE_STATUSES,
    Booking,
    BookingStatus,
    PaymentMode,
)
from venue_booking.models.venue import HallStatus, Venue
from venue_booking.policies import RefundPolicy, full_refund
from venue_booking.pricing import (
    ZERO,
    calculate_total_amount,
    meets_minimum_duration,
    payable_now,
)
from venue_booking.roles import Capability
from venue_booking.services.identity_service import IdentityService
from venue_booking.services.payment_service import PaymentService
from venue_booking.services.venue_service import VenueCatalog, VenueService

logger = logging.getLogger(__name__)

settings = get_settings()


class BookingService:
    """Service for booking operations with distributed locking."""

    def __init__(
        self,
        db: AsyncSession,
        redis_client: redis.Redis | None = None,
        *,
        venue_catalog: VenueCatalog | None = None,
        identity: IdentityService | None = None,
        payment_service: PaymentService | None = None,
        refund_policy: RefundPolicy | None = None,
        lock_factory: LockFactory | None = None,
        clock: Callable[[], datetime] | None = None,
    ):
        if lock_factory is None and redis_client is not None:
            lock_factory = redis_lock_factory(redis_client)

        self.db = db
        self.redis = redis_client
        self.lock_factory = lock_factory
        self.clock = clock or datetime.now
        self.identity = identity or IdentityService(db)
        self.venues = venue_catalog or VenueService(db, self.identity)
        self.payment_service = payment_service or PaymentService(
            db, identity=self.identity, clock=self.clock
        )
        self.refund_policy = refund_policy or full_refund

    def _generate_booking_reference(self) -> str:
        """Generate unique booking reference using ULID."""
        return f"BK-{str(ULID())}"

    async def create_booking(
        self,
        customer_id: str,
        venue_id: int,
        booking_date: date,
        start_time: time,
        end_time: time,
        payment_mode: PaymentMode,
    ) -> tuple[Booking, Decimal]:
        """
        Reserve a time slot on a venue.

        The overlap check and the insert run under a lock on the
        (venue, date) pair, so concurrent requests for the same day are
        serialized and at most one of any overlapping set succeeds.

        Args:
            customer_id: Customer making the booking
            venue_id: Venue ID
            booking_date: Day of the event
            start_time: Slot start
            end_time: Slot end, exclusive
            payment_mode: FULL or INSTALLMENT

        Returns:
            Tuple of (PENDING booking, amount payable now)

        Raises:
            InvalidBookingDate, InvalidTimeRange, VenueNotFound, VenueInactive,
            HallNotApproved, DurationTooShort, SlotConflict, LockConflict
        """
        if self.lock_factory is None:
            raise RuntimeError("Creating bookings needs a lock factory or Redis client")

        if booking_date < self.clock().date():
            raise InvalidBookingDate()
        if end_time <= start_time:
            raise InvalidTimeRange()

        venue = await self.venues.get_venue(venue_id)
        if venue is None:
            raise VenueNotFound(f"Venue {venue_id} not found")
        if not venue.active:
            raise VenueInactive(f"Venue {venue.name} is not accepting bookings")

        hall = await self.venues.get_hall(venue.hall_id)
        if hall is None or hall.status != HallStatus.APPROVED:
            raise HallNotApproved(f"Hall of venue {venue.name} is not approved for bookings")

        if not meets_minimum_duration(start_time, end_time, venue.min_booking_duration_hours):
            raise DurationTooShort(
                f"Minimum booking duration is {venue.min_booking_duration_hours} hours"
            )

        pricing_slots = await self.venues.get_pricing_slots(venue_id, booking_date)
        total_amount = calculate_total_amount(
            start_time, end_time, venue.base_price_per_hour, pricing_slots
        )
        due_now = payable_now(
            total_amount,
            payment_mode,
            settings.INSTALLMENT_RATIO,
            settings.INSTALLMENT_ROUNDING_UNIT,
        )

        # Close the read transaction so the locked section sees fresh data
        await self.db.commit()

        try:
            async with self.lock_factory(slot_lock_key(venue_id, booking_date)):
                try:
                    booking = await asyncio.wait_for(
                        self._reserve_slot(
                            customer_id,
                            venue_id,
                            booking_date,
                            start_time,
                            end_time,
                            payment_mode,
                            total_amount,
                        ),
                        timeout=settings.TRANSACTION_TIMEOUT_SECONDS,
                    )
                except asyncio.TimeoutError:
                    await self.db.rollback()
                    logger.warning(
                        f"Reservation timed out for venue {venue_id} on {booking_date}"
                    )
                    raise LockConflict("Reservation timed out. Please try again.")

                # Commit under the lock but outside the deadline
                await self.db.commit()
        except DistributedLockError:
            logger.warning(f"Slot lock busy for venue {venue_id} on {booking_date}")
            raise LockConflict()

        await self.db.refresh(booking)
        logger.info(
            f"Booking {booking.booking_reference} created for venue {venue_id} on "
            f"{booking_date} {start_time}-{end_time}, total {total_amount}, due now {due_now}"
        )
        return booking, due_now

    async def _reserve_slot(
        self,
        customer_id: str,
        venue_id: int,
        booking_date: date,
        start_time: time,
        end_time: time,
        payment_mode: PaymentMode,
        total_amount: Decimal,
    ) -> Booking:
        """
        Check the slot is free and stage the PENDING booking.

        Must run under the slot lock. Leaves the transaction open for the
        caller to commit.
        """
        result = await self.db.execute(
            select(Booking)
            .where(
                Booking.venue_id == venue_id,
                Booking.booking_date == booking_date,
                Booking.status.in_(ACTIVE_STATUSES),
                Booking.start_time < end_time,
                Booking.end_time > start_time,
            )
            .with_for_update()
        )
        conflicts = list(result.scalars().all())

        if conflicts:
            message = (
                f"The selected time slot overlaps an existing booking "
                f"({conflicts[0].start_time:%H:%M}-{conflicts[0].end_time:%H:%M})"
            )
            await self.db.rollback()
            raise SlotConflict(message)

        booking = Booking(
            venue_id=venue_id,
            customer_id=customer_id,
            booking_date=booking_date,
            start_time=start_time,
            end_time=end_time,
            status=BookingStatus.PENDING,
            payment_mode=payment_mode,
            total_amount=total_amount,
            paid_amount=ZERO,
            booking_reference=self._generate_booking_reference(),
            version=0,
        )
        self.db.add(booking)
        await self.db.flush()

        return booking

    async def get_booking(self, booking_id: int) -> Booking | None:
        """Get booking by ID."""
        result = await self.db.execute(
            select(Booking).where(Booking.booking_id == booking_id)
        )
        return result.scalar_one_or_none()

    async def get_booking_for(self, booking_id: int, requester_id: str) -> Booking:
        """Get a booking the requester is allowed to see."""
        booking = await self.get_booking(booking_id)
        if booking is None:
            raise BookingNotFound(f"Booking {booking_id} not found")
        await self._check_view_access(booking, requester_id)
        return booking

    async def _check_view_access(self, booking: Booking, requester_id: str) -> None:
        allowed = await self.identity.can_access_booking(
            requester_id,
            booking.customer_id,
            booking.venue_id,
            Capability.VIEW_HALL_BOOKINGS,
            any_capability=Capability.VIEW_ALL_BOOKINGS,
        )
        if not allowed:
            raise Unauthorized("Not authorized to view this booking")

    async def get_booking_by_reference(self, reference: str, requester_id: str) -> Booking:
        """Get a booking by its customer-facing reference."""
        result = await self.db.execute(
            select(Booking).where(Booking.booking_reference == reference)
        )
        booking = result.scalar_one_or_none()
        if booking is None:
            raise BookingNotFound(f"Booking {reference} not found")
        await self._check_view_access(booking, requester_id)
        return booking

    async def list_by_venue(
        self,
        venue_id: int,
        status: BookingStatus | None = None,
        on_date: date | None = None,
    ) -> list[Booking]:
        """Bookings of a venue in calendar order."""
        query = select(Booking).where(Booking.venue_id == venue_id)

        if status:
            query = query.where(Booking.status == status)
        if on_date:
            query = query.where(Booking.booking_date == on_date)

        query = query.order_by(
            Booking.booking_date, Booking.start_time, Booking.booking_id
        )

        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def list_by_customer(
        self,
        customer_id: str,
        status: BookingStatus | None = None,
    ) -> list[Booking]:
        """Bookings of a customer, newest first."""
        query = select(Booking).where(Booking.customer_id == customer_id)

        if status:
            query = query.where(Booking.status == status)

        query = query.order_by(Booking.created_at.desc(), Booking.booking_id.desc())

        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def list_by_hall(self, hall_id: int, requester_id: str) -> list[Booking]:
        """Bookings across all venues of a hall, for its owner and staff."""
        if await self.venues.get_hall(hall_id) is None:
            raise HallNotFound(f"Hall {hall_id} not found")

        allowed = await self.identity.can_act_on_hall(
            requester_id,
            hall_id,
            Capability.VIEW_HALL_BOOKINGS,
            any_capability=Capability.VIEW_ALL_BOOKINGS,
        )
        if not allowed:
            raise Unauthorized("Not authorized to view bookings for this hall")

        result = await self.db.execute(
            select(Booking)
            .join(Venue, Venue.venue_id == Booking.venue_id)
            .where(Venue.hall_id == hall_id)
            .order_by(Booking.booking_date, Booking.start_time, Booking.booking_id)
        )
        return list(result.scalars().all())

    async def cancel_booking(
        self,
        booking_id: int,
        requester_id: str,
        reason: str,
    ) -> Booking:
        """
        Cancel a booking, release its slot and refund per the refund policy.

        Args:
            booking_id: Booking ID
            requester_id: Customer or hall staff cancelling
            reason: Why the booking is cancelled

        Returns:
            Cancelled booking
        """
        if not reason or not reason.strip():
            raise EmptyReason()

        booking = await self.get_booking(booking_id)
        if booking is None:
            raise BookingNotFound(f"Booking {booking_id} not found")

        allowed = await self.identity.can_access_booking(
            requester_id,
            booking.customer_id,
            booking.venue_id,
            Capability.CANCEL_HALL_BOOKINGS,
            any_capability=Capability.CANCEL_ANY_BOOKING,
        )
        if not allowed:
            raise Unauthorized("Not authorized to cancel this booking")

        if booking.status not in ACTIVE_STATUSES:
            raise InvalidState(f"Booking is already {booking.status.value.lower()}")

        now = self.clock()
        result = await self.db.execute(
            update(Booking)
            .where(
                Booking.booking_id == booking_id,
                Booking.status == booking.status,
                Booking.version == booking.version,
            )
            .values(
                status=BookingStatus.CANCELLED,
                cancellation_reason=reason.strip(),
                cancelled_at=now,
                version=Booking.version + 1,
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            await self.db.rollback()
            raise InvalidState("Booking was modified concurrently. Please retry.")

        await self.db.commit()
        await self.db.refresh(booking)
        logger.info(f"Booking {booking.booking_reference} cancelled by {requester_id}")

        if booking.paid_amount > ZERO:
            await self._refund_cancelled(booking, now.date())

        return booking

    async def _refund_cancelled(self, booking: Booking, today: date) -> None:
        amount = min(self.refund_policy(booking, today), booking.paid_amount)
        if amount <= ZERO:
            return

        reference = booking.booking_reference
        try:
            await self.payment_service.refund(booking.booking_id, amount)
        except BookingEngineError as e:
            # The cancellation stands; the refund can be reissued through refund()
            logger.error(
                f"Refund of {amount} for cancelled booking {reference} "
                f"failed: {e.message}"
            )
        await self.db.refresh(booking)

    async def complete_finished_bookings(self) -> int:
        """
        Mark confirmed bookings whose slot has ended as completed.

        Returns:
            Number of bookings completed
        """
        now = self.clock()
        today = now.date()

        result = await self.db.execute(
            update(Booking)
            .where(
                Booking.status == BookingStatus.CONFIRMED,
                or_(
                    Booking.booking_date < today,
                    and_(
                        Booking.booking_date == today,
                        Booking.end_time <= now.time(),
                    ),
                ),
            )
            .values(status=BookingStatus.COMPLETED, version=Booking.version + 1)
            .execution_options(synchronize_session=False)
        )
        await self.db.commit()

        return result.rowcount
