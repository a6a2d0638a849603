"""Payment service: intents, confirmations and refunds."""

import logging
from datetime import datetime
from decimal import Decimal
from typing import Callable

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from ulid import ULID

from venue_booking.config import get_settings
from venue_booking.errors import (
    AmountMismatch,
    BookingNotFound,
    InvalidAmount,
    InvalidState,
    PaymentDeclined,
    RefundExceedsPaid,
    Unauthorized,
)
from venue_booking.gateway import PaymentGateway, PaymentIntent, get_payment_gateway
from venue_booking.models.booking import (
    ACTIVE_STATUSES,
    Booking,
    BookingStatus,
    Payment,
    PaymentStatus,
    PaymentType,
)
from venue_booking.pricing import ZERO, confirmation_threshold, next_payment_due
from venue_booking.roles import Capability
from venue_booking.services.identity_service import IdentityService

logger = logging.getLogger(__name__)

settings = get_settings()


class PaymentService:
    """Service for booking payments."""

    def __init__(
        self,
        db: AsyncSession,
        gateway: PaymentGateway | None = None,
        identity: IdentityService | None = None,
        clock: Callable[[], datetime] | None = None,
    ):
        self.db = db
        self.gateway = gateway or get_payment_gateway()
        self.identity = identity or IdentityService(db)
        self.clock = clock or datetime.now

    def next_due(self, booking: Booking) -> tuple[Decimal, PaymentType] | None:
        """Next amount and payment type owed on a booking, None when fully paid."""
        return next_payment_due(
            booking, settings.INSTALLMENT_RATIO, settings.INSTALLMENT_ROUNDING_UNIT
        )

    async def _get_booking(self, booking_id: int) -> Booking:
        result = await self.db.execute(
            select(Booking).where(Booking.booking_id == booking_id)
        )
        booking = result.scalar_one_or_none()
        if booking is None:
            raise BookingNotFound(f"Booking {booking_id} not found")
        return booking

    async def _find_payment(
        self,
        booking_id: int,
        reference: str,
        status: PaymentStatus,
    ) -> Payment | None:
        result = await self.db.execute(
            select(Payment).where(
                Payment.booking_id == booking_id,
                Payment.external_reference == reference,
                Payment.status == status,
            )
        )
        return result.scalar_one_or_none()

    async def list_payments(self, booking_id: int) -> list[Payment]:
        """Get all payments of a booking, oldest first."""
        await self._get_booking(booking_id)
        result = await self.db.execute(
            select(Payment)
            .where(Payment.booking_id == booking_id)
            .order_by(Payment.payment_id)
        )
        return list(result.scalars().all())

    async def initiate_payment(
        self,
        booking_id: int,
        requester_id: str,
    ) -> tuple[Payment, PaymentIntent]:
        """
        Create a payment intent for the next amount due on a booking.

        Args:
            booking_id: Booking ID
            requester_id: User paying, must be the booking's customer

        Returns:
            Tuple of (pending payment record, gateway intent)
        """
        booking = await self._get_booking(booking_id)

        if booking.customer_id != requester_id:
            raise Unauthorized("Not authorized to pay for this booking")

        if booking.status not in ACTIVE_STATUSES:
            raise InvalidState(f"Booking is {booking.status.value.lower()}")

        due = self.next_due(booking)
        if due is None:
            raise InvalidState("No payment is due for this booking")
        amount, payment_type = due

        intent = await self.gateway.create_intent(
            booking.booking_id,
            amount,
            settings.CURRENCY,
            metadata={
                "booking_reference": booking.booking_reference,
                "payment_type": payment_type.value,
            },
        )

        payment = Payment(
            booking_id=booking.booking_id,
            amount=amount,
            payment_type=payment_type,
            status=PaymentStatus.PENDING,
            external_reference=intent.reference,
        )
        self.db.add(payment)
        await self.db.commit()
        await self.db.refresh(payment)

        logger.info(
            f"Payment intent {intent.reference} for {amount} created on booking "
            f"{booking.booking_reference}"
        )
        return payment, intent

    async def confirm_payment(
        self,
        booking_id: int,
        payment_reference: str,
        amount: Decimal,
    ) -> Booking:
        """
        Record a successful payment and confirm the booking once enough is paid.

        The reference must be an intent started on this booking through
        ``initiate_payment``. Repeated calls with the same reference return
        the current booking without crediting it again.

        Raises:
            BookingNotFound, InvalidState, AmountMismatch, PaymentDeclined
        """
        booking = await self._get_booking(booking_id)

        if await self._find_payment(booking_id, payment_reference, PaymentStatus.SUCCESS):
            logger.info(
                f"Duplicate confirmation {payment_reference} for booking "
                f"{booking.booking_reference} ignored"
            )
            return booking

        if booking.status not in ACTIVE_STATUSES:
            raise InvalidState(f"Booking is {booking.status.value.lower()}")

        due = self.next_due(booking)
        if due is None:
            raise InvalidState("No payment is due for this booking")
        expected, payment_type = due

        if Decimal(amount) != expected:
            raise AmountMismatch(f"Expected payment of {expected}, got {amount}")

        pending = await self._pending_intent(booking, payment_reference)
        if pending.amount != expected or pending.payment_type != payment_type:
            raise InvalidState(
                f"Payment {payment_reference} was started for {pending.amount}, "
                f"but {expected} is due now"
            )

        if not await self.gateway.confirm(payment_reference, booking_id, expected):
            await self._record_failure(booking, pending)
            raise PaymentDeclined(f"Payment {payment_reference} was declined")

        read_status = booking.status
        read_version = booking.version
        new_paid = booking.paid_amount + expected

        threshold = confirmation_threshold(
            booking.total_amount, booking.payment_mode, settings.INSTALLMENT_RATIO
        )
        values: dict = {
            "paid_amount": new_paid,
            "version": Booking.version + 1,
        }
        if read_status == BookingStatus.PENDING and new_paid >= threshold:
            values["status"] = BookingStatus.CONFIRMED
            values["confirmed_at"] = self.clock()

        try:
            result = await self.db.execute(
                update(Payment)
                .where(
                    Payment.payment_id == pending.payment_id,
                    Payment.status == PaymentStatus.PENDING,
                )
                .values(status=PaymentStatus.SUCCESS)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:
                await self.db.rollback()
                return await self._resolve_lost_race(booking_id, payment_reference)

            result = await self.db.execute(
                update(Booking)
                .where(
                    Booking.booking_id == booking_id,
                    Booking.status == read_status,
                    Booking.version == read_version,
                )
                .values(**values)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:
                await self.db.rollback()
                return await self._resolve_lost_race(booking_id, payment_reference)

            await self.db.commit()
        except IntegrityError:
            # Another delivery of the same reference committed first
            await self.db.rollback()
            return await self._resolve_lost_race(booking_id, payment_reference)

        await self.db.refresh(booking)
        await self.db.refresh(pending)
        logger.info(
            f"Payment {payment_reference} of {expected} confirmed for booking "
            f"{booking.booking_reference}, status {booking.status.value}"
        )
        return booking

    async def _pending_intent(self, booking: Booking, payment_reference: str) -> Payment:
        pending = await self._find_payment(
            booking.booking_id, payment_reference, PaymentStatus.PENDING
        )
        if pending is not None:
            return pending

        result = await self.db.execute(
            select(Payment.booking_id, Payment.status)
            .where(Payment.external_reference == payment_reference)
            .limit(1)
        )
        known = result.first()
        if known is None:
            raise InvalidState(f"Unknown payment reference {payment_reference}")
        if known.booking_id != booking.booking_id:
            logger.warning(
                f"Payment {payment_reference} of booking {known.booking_id} presented "
                f"for booking {booking.booking_reference}"
            )
            raise InvalidState(
                f"Payment {payment_reference} belongs to another booking"
            )
        raise InvalidState(
            f"Payment {payment_reference} is already {known.status.value.lower()}"
        )

    async def _resolve_lost_race(self, booking_id: int, payment_reference: str) -> Booking:
        booking = await self._get_booking(booking_id)
        if await self._find_payment(booking_id, payment_reference, PaymentStatus.SUCCESS):
            return booking
        raise InvalidState("Booking was modified concurrently. Please retry.")

    async def _record_failure(self, booking: Booking, pending: Payment) -> None:
        await self.db.execute(
            update(Payment)
            .where(
                Payment.payment_id == pending.payment_id,
                Payment.status == PaymentStatus.PENDING,
            )
            .values(status=PaymentStatus.FAILED)
            .execution_options(synchronize_session=False)
        )
        await self.db.commit()
        await self.db.refresh(pending)
        logger.warning(
            f"Payment {pending.external_reference} declined for booking "
            f"{booking.booking_reference}"
        )

    async def _refundable_charges(
        self, booking_id: int
    ) -> list[tuple[int, str, PaymentType, Decimal]]:
        """Successful charges of a booking with what is left to refund, newest first."""
        refunded = await self.db.execute(
            select(Payment.refunded_payment_id, func.sum(Payment.amount))
            .where(
                Payment.booking_id == booking_id,
                Payment.status == PaymentStatus.REFUNDED,
            )
            .group_by(Payment.refunded_payment_id)
        )
        already = {charge_id: Decimal(total) for charge_id, total in refunded.all()}

        result = await self.db.execute(
            select(Payment)
            .where(
                Payment.booking_id == booking_id,
                Payment.status == PaymentStatus.SUCCESS,
            )
            .order_by(Payment.payment_id.desc())
        )
        charges = []
        for charge in result.scalars().all():
            left = charge.amount - already.get(charge.payment_id, ZERO)
            if left > ZERO:
                charges.append(
                    (charge.payment_id, charge.external_reference, charge.payment_type, left)
                )
        return charges

    async def refund(
        self,
        booking_id: int,
        amount: Decimal | None = None,
        requester_id: str | None = None,
    ) -> list[Payment]:
        """
        Refund money paid on a booking through the payment gateway.

        The amount is paid back against the booking's charges, newest first,
        never returning more on a charge than it took. Each charge refunded
        gets its own REFUNDED record.

        Args:
            booking_id: Booking ID
            amount: Amount to refund, defaults to everything paid
            requester_id: Staff member issuing the refund. None for refunds
                triggered by the engine itself (cancellation).

        Returns:
            The REFUNDED payment records, one per charge
        """
        booking = await self._get_booking(booking_id)

        if requester_id is not None:
            allowed = await self.identity.can_act_on_venue(
                requester_id,
                booking.venue_id,
                Capability.ISSUE_REFUNDS,
                any_capability=Capability.MANAGE_ALL_HALLS,
            )
            if not allowed:
                raise Unauthorized("Not authorized to refund this booking")

        if booking.status == BookingStatus.COMPLETED:
            raise InvalidState("Completed bookings cannot be refunded")

        paid = booking.paid_amount
        refund_amount = paid if amount is None else Decimal(amount)

        if amount is not None and refund_amount <= ZERO:
            raise InvalidAmount("Refund amount must be positive")
        if paid <= ZERO or refund_amount > paid:
            raise RefundExceedsPaid(
                f"Refund of {refund_amount} exceeds paid amount {paid}"
            )

        charges = await self._refundable_charges(booking_id)
        refundable = sum((left for *_, left in charges), ZERO)
        if refund_amount > refundable:
            raise RefundExceedsPaid(
                f"Refund of {refund_amount} exceeds refundable charges {refundable}"
            )

        booking_reference = booking.booking_reference
        refunds = []
        outstanding = refund_amount
        for charge_id, charge_reference, payment_type, left in charges:
            if outstanding <= ZERO:
                break
            portion = min(outstanding, left)
            refunds.append(
                await self._refund_charge(
                    booking_id, charge_id, charge_reference, payment_type, portion
                )
            )
            outstanding -= portion

        await self.db.refresh(booking)
        logger.info(
            f"Refunded {refund_amount} on booking {booking_reference} "
            f"across {len(refunds)} charge(s)"
        )
        return refunds

    async def _refund_charge(
        self,
        booking_id: int,
        charge_id: int,
        charge_reference: str,
        payment_type: PaymentType,
        amount: Decimal,
    ) -> Payment:
        """Pay ``amount`` back on one charge and commit it on its own."""
        # Debit first so concurrent refunds serialize on the booking row
        try:
            result = await self.db.execute(
                update(Booking)
                .where(
                    Booking.booking_id == booking_id,
                    Booking.paid_amount >= amount,
                )
                .values(
                    paid_amount=Booking.paid_amount - amount,
                    version=Booking.version + 1,
                )
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:
                raise RefundExceedsPaid("Paid amount changed while refunding")

            refund_payment = Payment(
                booking_id=booking_id,
                amount=amount,
                payment_type=payment_type,
                status=PaymentStatus.REFUNDED,
                external_reference=f"RF-{ULID()}",
                refunded_payment_id=charge_id,
            )
            self.db.add(refund_payment)
            await self.db.flush()

            refund_payment.external_reference = await self.gateway.refund(
                charge_reference, amount
            )
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        await self.db.refresh(refund_payment)
        logger.info(f"Refunded {amount} of charge {charge_reference}")
        return refund_payment
