import asyncio
from datetime import time
from decimal import Decimal

import pytest

from venue_booking.errors import InvalidState, LockConflict, SlotConflict
from venue_booking.models import BookingStatus, PaymentMode, PaymentStatus
from venue_booking.services import booking_service as booking_module

from conftest import EVENT_DAY


async def _attempt(session_factory, make_booking_service, venue_id, customer, start, end):
    async with session_factory() as session:
        service = make_booking_service(session)
        try:
            booking, _ = await service.create_booking(
                customer, venue_id, EVENT_DAY, start, end, PaymentMode.FULL
            )
        except SlotConflict:
            return None
        return booking.booking_id


async def test_concurrent_overlapping_requests_book_once(
    session_factory, make_booking_service, seed, booking_service
):
    windows = [
        (time(10, 0), time(12, 0)),
        (time(11, 0), time(13, 0)),
        (time(9, 0), time(11, 30)),
        (time(10, 30), time(12, 30)),
        (time(10, 0), time(12, 0)),
    ] * 4

    results = await asyncio.gather(
        *[
            _attempt(
                session_factory,
                make_booking_service,
                seed.venue_id,
                f"cust-{i}",
                start,
                end,
            )
            for i, (start, end) in enumerate(windows)
        ]
    )

    winners = [r for r in results if r is not None]
    assert len(winners) == 1

    active = await booking_service.list_by_venue(seed.venue_id, status=BookingStatus.PENDING)
    assert [b.booking_id for b in active] == winners


async def test_concurrent_adjacent_requests_all_succeed(
    session_factory, make_booking_service, seed, booking_service
):
    windows = [(time(h, 0), time(h + 2, 0)) for h in range(8, 20, 2)]

    results = await asyncio.gather(
        *[
            _attempt(session_factory, make_booking_service, seed.venue_id, "cust-1", s, e)
            for s, e in windows
        ]
    )

    assert all(r is not None for r in results)
    assert len(await booking_service.list_by_venue(seed.venue_id)) == len(windows)


async def test_critical_section_timeout_raises_lock_conflict(
    make_booking_service, db, seed, monkeypatch
):
    service = make_booking_service(db)

    async def stalled(*args, **kwargs):
        await asyncio.sleep(1)

    monkeypatch.setattr(booking_module.settings, "TRANSACTION_TIMEOUT_SECONDS", 0.01)
    monkeypatch.setattr(service, "_reserve_slot", stalled)

    with pytest.raises(LockConflict):
        await service.create_booking(
            "cust-1", seed.venue_id, EVENT_DAY, time(10, 0), time(12, 0), PaymentMode.FULL
        )


async def test_slow_commit_is_not_cut_off_by_reservation_deadline(
    make_booking_service, session_factory, db, seed, monkeypatch
):
    service = make_booking_service(db)
    commit = db.commit

    async def slow_commit():
        await asyncio.sleep(0.5)
        await commit()

    monkeypatch.setattr(booking_module.settings, "TRANSACTION_TIMEOUT_SECONDS", 0.2)
    monkeypatch.setattr(db, "commit", slow_commit)

    booking, _ = await service.create_booking(
        "cust-1", seed.venue_id, EVENT_DAY, time(10, 0), time(12, 0), PaymentMode.FULL
    )

    async with session_factory() as other:
        stored = await make_booking_service(other).get_booking(booking.booking_id)
    assert stored is not None
    assert stored.status == BookingStatus.PENDING


async def test_racing_confirmation_with_same_reference_credits_once(
    session_factory, make_booking_service, booking_service, seed, gateway, monkeypatch
):
    booking, _ = await booking_service.create_booking(
        "cust-1", seed.venue_id, EVENT_DAY, time(10, 0), time(12, 0), PaymentMode.FULL
    )
    _, intent = await booking_service.payment_service.initiate_payment(
        booking.booking_id, "cust-1"
    )
    original_confirm = gateway.confirm

    async with session_factory() as first, session_factory() as second:
        service = make_booking_service(first).payment_service
        racer = make_booking_service(second).payment_service

        async def confirm_after_racer(reference, booking_id, amount):
            # The same reference is delivered again while this one is in flight
            monkeypatch.setattr(gateway, "confirm", original_confirm)
            await racer.confirm_payment(booking_id, reference, amount)
            return True

        monkeypatch.setattr(gateway, "confirm", confirm_after_racer)

        confirmed = await service.confirm_payment(
            booking.booking_id, intent.reference, Decimal("300.00")
        )

        assert confirmed.paid_amount == Decimal("300.00")
        assert confirmed.status == BookingStatus.CONFIRMED
        assert len(await service.list_payments(booking.booking_id)) == 1


async def test_racing_confirmation_with_other_reference_is_rejected(
    session_factory, make_booking_service, booking_service, seed, gateway, monkeypatch
):
    booking, _ = await booking_service.create_booking(
        "cust-1", seed.venue_id, EVENT_DAY, time(10, 0), time(12, 0), PaymentMode.FULL
    )
    payments = booking_service.payment_service
    _, mine = await payments.initiate_payment(booking.booking_id, "cust-1")
    _, other = await payments.initiate_payment(booking.booking_id, "cust-1")
    original_confirm = gateway.confirm

    async with session_factory() as first, session_factory() as second:
        service = make_booking_service(first).payment_service
        racer = make_booking_service(second).payment_service

        async def confirm_after_racer(reference, booking_id, amount):
            monkeypatch.setattr(gateway, "confirm", original_confirm)
            await racer.confirm_payment(booking_id, other.reference, amount)
            return True

        monkeypatch.setattr(gateway, "confirm", confirm_after_racer)

        with pytest.raises(InvalidState):
            await service.confirm_payment(booking.booking_id, mine.reference, Decimal("300.00"))

        settled = [
            p.external_reference
            for p in await service.list_payments(booking.booking_id)
            if p.status == PaymentStatus.SUCCESS
        ]
        assert settled == [other.reference]
