"""Booking and payment models."""

import enum
from datetime import date, datetime, time
from decimal import Decimal
from typing import TYPE_CHECKING

from sqlalchemy import (
    BigInteger,
    Date,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    Time,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from venue_booking.models.base import Base, BigIntId

if TYPE_CHECKING:
    from venue_booking.models.venue import Venue


class BookingStatus(str, enum.Enum):
    """Booking status enum."""

    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    CANCELLED = "CANCELLED"
    COMPLETED = "COMPLETED"


# Statuses that hold a slot on the venue calendar
ACTIVE_STATUSES = (BookingStatus.PENDING, BookingStatus.CONFIRMED)


class PaymentMode(str, enum.Enum):
    """Payment mode enum."""

    FULL = "FULL"
    INSTALLMENT = "INSTALLMENT"


class PaymentType(str, enum.Enum):
    """Payment type enum."""

    FULL = "FULL"
    INSTALLMENT_1 = "INSTALLMENT_1"
    INSTALLMENT_2 = "INSTALLMENT_2"


class PaymentStatus(str, enum.Enum):
    """Payment status enum."""

    PENDING = "PENDING"
    SUCCESS = "SUCCESS"
    FAILED = "FAILED"
    REFUNDED = "REFUNDED"


class Booking(Base):
    """Booking model representing a reserved time slot on a venue."""

    __tablename__ = "bookings"

    booking_id: Mapped[int] = mapped_column(BigIntId, primary_key=True, autoincrement=True)
    venue_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("venues.venue_id"), nullable=False
    )
    customer_id: Mapped[str] = mapped_column(String(50), nullable=False)
    booking_date: Mapped[date] = mapped_column(Date, nullable=False)
    start_time: Mapped[time] = mapped_column(Time, nullable=False)
    end_time: Mapped[time] = mapped_column(Time, nullable=False)
    status: Mapped[BookingStatus] = mapped_column(
        Enum(BookingStatus), default=BookingStatus.PENDING
    )
    payment_mode: Mapped[PaymentMode] = mapped_column(Enum(PaymentMode), nullable=False)
    total_amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    paid_amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=Decimal("0"))
    cancellation_reason: Mapped[str | None] = mapped_column(Text)
    booking_reference: Mapped[str] = mapped_column(String(50), unique=True, nullable=False)
    version: Mapped[int] = mapped_column(Integer, default=0)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.now, server_default=func.current_timestamp()
    )
    confirmed_at: Mapped[datetime | None] = mapped_column(DateTime)
    cancelled_at: Mapped[datetime | None] = mapped_column(DateTime)

    # Relationships
    venue: Mapped["Venue"] = relationship("Venue", back_populates="bookings")
    payments: Mapped[list["Payment"]] = relationship(
        "Payment", back_populates="booking", order_by="Payment.payment_id"
    )

    __table_args__ = (
        Index("idx_venue_date_status", "venue_id", "booking_date", "status"),
        Index("idx_customer_id", "customer_id"),
        Index("idx_booking_reference", "booking_reference"),
    )

    @property
    def balance_due(self) -> Decimal:
        """Amount still owed on the booking."""
        return self.total_amount - self.paid_amount


class Payment(Base):
    """Payment model representing money moved for a booking."""

    __tablename__ = "payments"

    payment_id: Mapped[int] = mapped_column(BigIntId, primary_key=True, autoincrement=True)
    booking_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("bookings.booking_id"), nullable=False
    )
    amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    payment_type: Mapped[PaymentType] = mapped_column(Enum(PaymentType), nullable=False)
    status: Mapped[PaymentStatus] = mapped_column(
        Enum(PaymentStatus), default=PaymentStatus.PENDING
    )
    external_reference: Mapped[str] = mapped_column(String(100), nullable=False)
    # Charge a REFUNDED row was paid back against
    refunded_payment_id: Mapped[int | None] = mapped_column(
        BigInteger, ForeignKey("payments.payment_id")
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.now, server_default=func.current_timestamp()
    )

    # Relationships
    booking: Mapped["Booking"] = relationship("Booking", back_populates="payments")

    __table_args__ = (
        UniqueConstraint(
            "booking_id", "external_reference", "status", name="uk_payment_reference_status"
        ),
        Index("idx_payment_reference", "external_reference"),
    )
