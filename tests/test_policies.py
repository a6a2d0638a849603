from datetime import date
from decimal import Decimal

import pytest

from venue_booking.models import Booking
from venue_booking.policies import full_refund, notice_based_refund, percentage_refund

TODAY = date(2030, 6, 1)


def _booking(paid, booking_date=date(2030, 6, 15)):
    return Booking(paid_amount=Decimal(paid), booking_date=booking_date)


def test_full_refund():
    assert full_refund(_booking("375.00"), TODAY) == Decimal("375.00")


def test_percentage_refund_rounds_to_cents():
    policy = percentage_refund(33)
    assert policy(_booking("100.00"), TODAY) == Decimal("33.00")
    assert policy(_booking("0.10"), TODAY) == Decimal("0.03")


@pytest.mark.parametrize("percent", [-1, 101, "150"])
def test_percentage_refund_bounds(percent):
    with pytest.raises(ValueError):
        percentage_refund(percent)


def test_notice_based_refund():
    policy = notice_based_refund(full_refund_days=7, late_percent=50)

    assert policy(_booking("300.00", date(2030, 6, 8)), TODAY) == Decimal("300.00")
    assert policy(_booking("300.00", date(2030, 6, 7)), TODAY) == Decimal("150.00")
