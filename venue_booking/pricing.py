"""Booking duration, price and installment calculations.

All money is handled as ``Decimal`` and rounded to the currency minor unit
(two places). Totals round half-up; the first installment always rounds up
so the platform never collects less than the configured share upfront.
"""

from datetime import date, datetime, time
from decimal import ROUND_CEILING, ROUND_HALF_UP, Decimal
from typing import Iterable, Protocol

from venue_booking.models.booking import Booking, BookingStatus, PaymentMode, PaymentType

MINOR_UNIT = Decimal("0.01")
SECONDS_PER_HOUR = Decimal(3600)
ZERO = Decimal("0")


class PricingSlot(Protocol):
    slot_start: time
    slot_end: time
    price: Decimal


def round_money(amount: Decimal) -> Decimal:
    """Round to the minor unit using round-half-up."""
    return amount.quantize(MINOR_UNIT, rounding=ROUND_HALF_UP)


def _seconds_between(start: time, end: time) -> int:
    delta = datetime.combine(date.min, end) - datetime.combine(date.min, start)
    return int(delta.total_seconds())


def duration_hours(start_time: time, end_time: time) -> Decimal:
    """Length of a time range in (possibly fractional) hours."""
    return Decimal(_seconds_between(start_time, end_time)) / SECONDS_PER_HOUR


def meets_minimum_duration(start_time: time, end_time: time, minimum_hours: int) -> bool:
    return _seconds_between(start_time, end_time) >= minimum_hours * 3600


def _charge(start: time, end: time, rate: Decimal) -> Decimal:
    if start >= end:
        return ZERO
    return Decimal(_seconds_between(start, end)) * rate / SECONDS_PER_HOUR


def calculate_total_amount(
    start_time: time,
    end_time: time,
    base_price_per_hour: Decimal,
    pricing_slots: Iterable[PricingSlot] = (),
) -> Decimal:
    """
    Price a booking.

    Portions of the booking covered by a pricing slot are charged at the
    slot rate, the rest at the venue base rate. Without slots this is
    ``duration_hours * base_price_per_hour``.
    """
    amount = ZERO
    cursor = start_time

    for slot in sorted(pricing_slots, key=lambda s: s.slot_start):
        segment_start = max(cursor, slot.slot_start)
        segment_end = min(end_time, slot.slot_end)
        if segment_start >= segment_end:
            continue
        amount += _charge(cursor, segment_start, base_price_per_hour)
        amount += _charge(segment_start, segment_end, Decimal(slot.price))
        cursor = segment_end

    amount += _charge(cursor, end_time, base_price_per_hour)
    return round_money(amount)


def installment_amount(
    total_amount: Decimal,
    ratio: Decimal = Decimal("0.5"),
    rounding_unit: Decimal = Decimal("1"),
) -> Decimal:
    """First installment: ``ceil(total * ratio)`` to the rounding unit, capped at total."""
    units = (total_amount * ratio / rounding_unit).to_integral_value(rounding=ROUND_CEILING)
    return min(round_money(units * rounding_unit), total_amount)


def payable_now(
    total_amount: Decimal,
    payment_mode: PaymentMode,
    ratio: Decimal = Decimal("0.5"),
    rounding_unit: Decimal = Decimal("1"),
) -> Decimal:
    """Amount due at booking time for the given payment mode."""
    if payment_mode == PaymentMode.INSTALLMENT:
        return installment_amount(total_amount, ratio, rounding_unit)
    return total_amount


def confirmation_threshold(
    total_amount: Decimal,
    payment_mode: PaymentMode,
    ratio: Decimal = Decimal("0.5"),
) -> Decimal:
    """Paid amount at which a pending booking becomes confirmed."""
    if payment_mode == PaymentMode.INSTALLMENT:
        return total_amount * ratio
    return total_amount


def next_payment_due(
    booking: Booking,
    ratio: Decimal = Decimal("0.5"),
    rounding_unit: Decimal = Decimal("1"),
) -> tuple[Decimal, PaymentType] | None:
    """
    Amount and type of the next expected payment, or None when nothing is due.

    A confirmed booking only takes the second installment of an
    INSTALLMENT booking. A confirmed FULL booking that was partly refunded
    is not charged again.
    """
    paid = booking.paid_amount or ZERO
    if paid >= booking.total_amount:
        return None

    if booking.status == BookingStatus.CONFIRMED:
        if booking.payment_mode == PaymentMode.INSTALLMENT and paid > ZERO:
            return booking.total_amount - paid, PaymentType.INSTALLMENT_2
        return None

    if booking.payment_mode == PaymentMode.FULL:
        return booking.total_amount - paid, PaymentType.FULL

    if paid == ZERO:
        return (
            installment_amount(booking.total_amount, ratio, rounding_unit),
            PaymentType.INSTALLMENT_1,
        )
    return booking.total_amount - paid, PaymentType.INSTALLMENT_2
