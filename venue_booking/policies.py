"""Refund policies applied when a booking is cancelled."""

from datetime import date
from decimal import Decimal
from typing import Callable

from venue_booking.models.booking import Booking
from venue_booking.pricing import round_money

# (booking, today) -> amount to refund out of booking.paid_amount
RefundPolicy = Callable[[Booking, date], Decimal]


def full_refund(booking: Booking, today: date) -> Decimal:
    """Refund everything that was paid."""
    return booking.paid_amount


def percentage_refund(percent: Decimal | int | str) -> RefundPolicy:
    """
    Refund a fixed share of the paid amount.

    Args:
        percent: Share to refund, 0-100
    """
    share = Decimal(percent)
    if share < 0 or share > 100:
        raise ValueError(f"Refund percentage must be between 0 and 100, got {percent}")

    def policy(booking: Booking, today: date) -> Decimal:
        return round_money(booking.paid_amount * share / Decimal(100))

    return policy


def notice_based_refund(
    full_refund_days: int,
    late_percent: Decimal | int | str,
) -> RefundPolicy:
    """
    Full refund when cancelled at least ``full_refund_days`` before the
    event, ``late_percent`` of the paid amount otherwise.
    """
    late_policy = percentage_refund(late_percent)

    def policy(booking: Booking, today: date) -> Decimal:
        if (booking.booking_date - today).days >= full_refund_days:
            return booking.paid_amount
        return late_policy(booking, today)

    return policy
