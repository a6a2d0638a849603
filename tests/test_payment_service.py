from datetime import time, timedelta
from decimal import Decimal

import pytest

from venue_booking.errors import (
    AmountMismatch,
    BookingNotFound,
    InvalidAmount,
    InvalidState,
    PaymentDeclined,
    RefundExceedsPaid,
    Unauthorized,
)
from venue_booking.models import (
    Booking,
    BookingStatus,
    PaymentMode,
    PaymentStatus,
    PaymentType,
)

from conftest import EVENT_DAY, NOW, pay


@pytest.fixture
async def full_booking(booking_service, seed):
    booking, _ = await booking_service.create_booking(
        "cust-1", seed.venue_id, EVENT_DAY, time(10, 0), time(12, 30), PaymentMode.FULL
    )
    return booking


@pytest.fixture
async def installment_booking(booking_service, seed):
    booking, _ = await booking_service.create_booking(
        "cust-1", seed.venue_id, EVENT_DAY, time(14, 0), time(16, 30), PaymentMode.INSTALLMENT
    )
    return booking


async def test_full_payment_confirms_booking(payment_service, full_booking):
    _, intent = await payment_service.initiate_payment(full_booking.booking_id, "cust-1")

    booking = await payment_service.confirm_payment(
        full_booking.booking_id, intent.reference, Decimal("375.00")
    )

    assert booking.status == BookingStatus.CONFIRMED
    assert booking.paid_amount == Decimal("375.00")
    assert booking.confirmed_at == NOW
    assert booking.version == 1

    payments = await payment_service.list_payments(booking.booking_id)
    assert [(p.status, p.payment_type, p.amount) for p in payments] == [
        (PaymentStatus.SUCCESS, PaymentType.FULL, Decimal("375.00"))
    ]


async def test_duplicate_confirmation_is_noop(payment_service, full_booking):
    reference = await pay(payment_service, full_booking.booking_id)
    again = await payment_service.confirm_payment(
        full_booking.booking_id, reference, Decimal("375.00")
    )

    assert again.status == BookingStatus.CONFIRMED
    assert again.paid_amount == Decimal("375.00")
    assert again.version == 1
    assert len(await payment_service.list_payments(full_booking.booking_id)) == 1


async def test_amount_mismatch(payment_service, full_booking):
    _, intent = await payment_service.initiate_payment(full_booking.booking_id, "cust-1")

    with pytest.raises(AmountMismatch):
        await payment_service.confirm_payment(
            full_booking.booking_id, intent.reference, Decimal("300.00")
        )

    payments = await payment_service.list_payments(full_booking.booking_id)
    assert [p.status for p in payments] == [PaymentStatus.PENDING]


async def test_unknown_booking(payment_service, seed):
    with pytest.raises(BookingNotFound):
        await payment_service.confirm_payment(9999, "pay-1", Decimal("10.00"))


async def test_unknown_reference_is_rejected(payment_service, full_booking):
    with pytest.raises(InvalidState) as exc_info:
        await payment_service.confirm_payment(
            full_booking.booking_id, "made-up-ref", Decimal("375.00")
        )

    assert "Unknown payment reference" in exc_info.value.message
    booking = await payment_service._get_booking(full_booking.booking_id)
    assert booking.status == BookingStatus.PENDING
    assert booking.paid_amount == Decimal("0")


async def test_one_charge_cannot_confirm_two_bookings(booking_service, payment_service, seed):
    first, _ = await booking_service.create_booking(
        "cust-1", seed.venue_id, EVENT_DAY, time(10, 0), time(12, 0), PaymentMode.FULL
    )
    second, _ = await booking_service.create_booking(
        "cust-1", seed.venue_id, EVENT_DAY, time(14, 0), time(16, 0), PaymentMode.FULL
    )
    reference = await pay(payment_service, first.booking_id)

    with pytest.raises(InvalidState) as exc_info:
        await payment_service.confirm_payment(second.booking_id, reference, Decimal("300.00"))

    assert "belongs to another booking" in exc_info.value.message
    second = await payment_service._get_booking(second.booking_id)
    assert second.status == BookingStatus.PENDING
    assert second.paid_amount == Decimal("0")
    assert await payment_service.list_payments(second.booking_id) == []


async def test_intent_for_stale_amount_is_rejected(payment_service, installment_booking):
    first, _ = await payment_service.initiate_payment(installment_booking.booking_id, "cust-1")
    _, stale = await payment_service.initiate_payment(installment_booking.booking_id, "cust-1")
    await payment_service.confirm_payment(
        installment_booking.booking_id, first.external_reference, Decimal("188.00")
    )

    # The second intent was started for the first installment, 187 is due now
    with pytest.raises(InvalidState):
        await payment_service.confirm_payment(
            installment_booking.booking_id, stale.reference, Decimal("187.00")
        )


async def test_installment_flow(payment_service, installment_booking):
    await pay(payment_service, installment_booking.booking_id)
    booking = await payment_service._get_booking(installment_booking.booking_id)
    assert booking.status == BookingStatus.CONFIRMED
    assert booking.paid_amount == Decimal("188.00")
    assert payment_service.next_due(booking) == (Decimal("187.00"), PaymentType.INSTALLMENT_2)

    payment, intent = await payment_service.initiate_payment(booking.booking_id, "cust-1")
    assert payment.amount == Decimal("187.00")
    assert payment.payment_type == PaymentType.INSTALLMENT_2

    with pytest.raises(AmountMismatch):
        await payment_service.confirm_payment(
            booking.booking_id, intent.reference, Decimal("188.00")
        )

    booking = await payment_service.confirm_payment(
        booking.booking_id, intent.reference, Decimal("187.00")
    )
    assert booking.status == BookingStatus.CONFIRMED
    assert booking.paid_amount == Decimal("375.00")
    assert payment_service.next_due(booking) is None

    with pytest.raises(InvalidState):
        await payment_service.confirm_payment(booking.booking_id, "pay-3", Decimal("1.00"))
    with pytest.raises(InvalidState):
        await payment_service.initiate_payment(booking.booking_id, "cust-1")

    payments = await payment_service.list_payments(booking.booking_id)
    assert [p.payment_type for p in payments] == [
        PaymentType.INSTALLMENT_1,
        PaymentType.INSTALLMENT_2,
    ]


async def test_declined_payment(payment_service, full_booking, gateway):
    _, declined = await payment_service.initiate_payment(full_booking.booking_id, "cust-1")
    gateway.declined.add(declined.reference)

    with pytest.raises(PaymentDeclined):
        await payment_service.confirm_payment(
            full_booking.booking_id, declined.reference, Decimal("375.00")
        )

    payments = await payment_service.list_payments(full_booking.booking_id)
    assert [p.status for p in payments] == [PaymentStatus.FAILED]

    # A failed intent cannot be confirmed later
    with pytest.raises(InvalidState):
        await payment_service.confirm_payment(
            full_booking.booking_id, declined.reference, Decimal("375.00")
        )

    await pay(payment_service, full_booking.booking_id)
    booking = await payment_service._get_booking(full_booking.booking_id)
    assert booking.status == BookingStatus.CONFIRMED


async def test_initiate_then_confirm_uses_intent_record(payment_service, installment_booking):
    payment, intent = await payment_service.initiate_payment(
        installment_booking.booking_id, "cust-1"
    )

    assert payment.status == PaymentStatus.PENDING
    assert payment.amount == Decimal("188.00")
    assert payment.payment_type == PaymentType.INSTALLMENT_1
    assert intent.reference == payment.external_reference
    assert intent.currency == "USD"

    booking = await payment_service.confirm_payment(
        installment_booking.booking_id, intent.reference, Decimal("188.00")
    )

    assert booking.status == BookingStatus.CONFIRMED
    payments = await payment_service.list_payments(booking.booking_id)
    assert len(payments) == 1
    assert payments[0].status == PaymentStatus.SUCCESS


async def test_initiate_payment_only_for_customer(payment_service, full_booking):
    with pytest.raises(Unauthorized):
        await payment_service.initiate_payment(full_booking.booking_id, "cust-2")


async def test_cancelled_booking_rejects_payment(booking_service, payment_service, full_booking):
    _, intent = await payment_service.initiate_payment(full_booking.booking_id, "cust-1")
    await booking_service.cancel_booking(full_booking.booking_id, "cust-1", "Change of plans")

    with pytest.raises(InvalidState):
        await payment_service.confirm_payment(
            full_booking.booking_id, intent.reference, Decimal("375.00")
        )
    with pytest.raises(InvalidState):
        await payment_service.initiate_payment(full_booking.booking_id, "cust-1")


async def test_partial_refund_by_manager(payment_service, full_booking, gateway):
    reference = await pay(payment_service, full_booking.booking_id)

    refunds = await payment_service.refund(
        full_booking.booking_id, Decimal("100.00"), requester_id="mgr-1"
    )

    assert len(refunds) == 1
    refund = refunds[0]
    assert refund.status == PaymentStatus.REFUNDED
    assert refund.amount == Decimal("100.00")
    assert refund.external_reference.startswith("sim_")
    assert gateway.refunds == [(reference, Decimal("100.00"))]

    booking = await payment_service._get_booking(full_booking.booking_id)
    assert booking.paid_amount == Decimal("275.00")

    payments = await payment_service.list_payments(full_booking.booking_id)
    succeeded = sum(p.amount for p in payments if p.status == PaymentStatus.SUCCESS)
    refunded = sum(p.amount for p in payments if p.status == PaymentStatus.REFUNDED)
    assert succeeded - refunded == booking.paid_amount


async def test_confirmed_full_booking_takes_no_payment_after_partial_refund(
    payment_service, full_booking
):
    await pay(payment_service, full_booking.booking_id)
    await payment_service.refund(full_booking.booking_id, Decimal("100.00"), requester_id="mgr-1")

    with pytest.raises(InvalidState):
        await payment_service.initiate_payment(full_booking.booking_id, "cust-1")

    booking = await payment_service._get_booking(full_booking.booking_id)
    assert booking.status == BookingStatus.CONFIRMED
    assert booking.paid_amount == Decimal("275.00")


async def test_refund_defaults_to_everything_paid(payment_service, full_booking):
    await pay(payment_service, full_booking.booking_id)

    refunds = await payment_service.refund(full_booking.booking_id, requester_id="owner-1")

    assert [r.amount for r in refunds] == [Decimal("375.00")]


async def test_refund_spans_installment_charges_newest_first(
    payment_service, installment_booking, gateway
):
    first = await pay(payment_service, installment_booking.booking_id)
    second = await pay(payment_service, installment_booking.booking_id)

    refunds = await payment_service.refund(
        installment_booking.booking_id, Decimal("200.00"), requester_id="mgr-1"
    )

    assert gateway.refunds == [(second, Decimal("187.00")), (first, Decimal("13.00"))]
    assert [(r.amount, r.payment_type) for r in refunds] == [
        (Decimal("187.00"), PaymentType.INSTALLMENT_2),
        (Decimal("13.00"), PaymentType.INSTALLMENT_1),
    ]

    payments = await payment_service.list_payments(installment_booking.booking_id)
    charges = {p.external_reference: p.payment_id for p in payments if p.status == PaymentStatus.SUCCESS}
    assert [r.refunded_payment_id for r in refunds] == [charges[second], charges[first]]

    # The second charge is spent, the rest comes from the first
    refunds = await payment_service.refund(
        installment_booking.booking_id, requester_id="mgr-1"
    )
    assert [r.amount for r in refunds] == [Decimal("175.00")]
    assert gateway.refunds[-1] == (first, Decimal("175.00"))

    booking = await payment_service._get_booking(installment_booking.booking_id)
    assert booking.paid_amount == Decimal("0")


async def test_refund_rules(payment_service, full_booking):
    with pytest.raises(RefundExceedsPaid):
        await payment_service.refund(full_booking.booking_id, requester_id="mgr-1")

    await pay(payment_service, full_booking.booking_id)

    with pytest.raises(RefundExceedsPaid):
        await payment_service.refund(
            full_booking.booking_id, Decimal("400.00"), requester_id="mgr-1"
        )
    with pytest.raises(InvalidAmount):
        await payment_service.refund(
            full_booking.booking_id, Decimal("0"), requester_id="mgr-1"
        )
    with pytest.raises(Unauthorized):
        await payment_service.refund(
            full_booking.booking_id, Decimal("10.00"), requester_id="asst-1"
        )
    with pytest.raises(Unauthorized):
        await payment_service.refund(
            full_booking.booking_id, Decimal("10.00"), requester_id="cust-1"
        )


async def test_completed_booking_cannot_be_refunded(payment_service, seed, db):
    booking = Booking(
        venue_id=seed.venue_id,
        customer_id="cust-1",
        booking_date=NOW.date() - timedelta(days=3),
        start_time=time(10, 0),
        end_time=time(12, 0),
        status=BookingStatus.COMPLETED,
        payment_mode=PaymentMode.FULL,
        total_amount=Decimal("300.00"),
        paid_amount=Decimal("300.00"),
        booking_reference="BK-COMPLETED",
    )
    db.add(booking)
    await db.commit()

    with pytest.raises(InvalidState):
        await payment_service.refund(booking.booking_id, requester_id="admin-1")
    with pytest.raises(InvalidState):
        await payment_service.confirm_payment(booking.booking_id, "pay-1", Decimal("1.00"))
