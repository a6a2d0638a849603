"""Hall, venue and venue pricing models."""

import enum
from datetime import date, datetime, time
from decimal import Decimal
from typing import TYPE_CHECKING

from sqlalchemy import (
    BigInteger,
    Boolean,
    Date,
    DateTime,
    Enum,
    Float,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    Time,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from venue_booking.models.base import Base, BigIntId

if TYPE_CHECKING:
    from venue_booking.models.booking import Booking


class HallStatus(str, enum.Enum):
    """Hall approval status enum."""

    PENDING = "PENDING"
    APPROVED = "APPROVED"
    ON_HOLD = "ON_HOLD"
    REJECTED = "REJECTED"


class Hall(Base):
    """Hall model representing a property that contains venues."""

    __tablename__ = "halls"

    hall_id: Mapped[int] = mapped_column(BigIntId, primary_key=True, autoincrement=True)
    owner_id: Mapped[str] = mapped_column(
        String(50), ForeignKey("users.user_id"), nullable=False
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    address: Mapped[str | None] = mapped_column(String(500))
    city: Mapped[str | None] = mapped_column(String(100))
    zipcode: Mapped[str | None] = mapped_column(String(20))
    latitude: Mapped[float | None] = mapped_column(Float)
    longitude: Mapped[float | None] = mapped_column(Float)
    # Only APPROVED halls are searchable and bookable
    status: Mapped[HallStatus] = mapped_column(
        Enum(HallStatus), default=HallStatus.PENDING, nullable=False
    )
    admin_notes: Mapped[str | None] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.now, server_default=func.current_timestamp()
    )

    # Relationships
    venues: Mapped[list["Venue"]] = relationship("Venue", back_populates="hall")

    __table_args__ = (
        Index("idx_hall_owner", "owner_id"),
        Index("idx_hall_status_city", "status", "city"),
    )


class Venue(Base):
    """Venue model representing a bookable space within a hall."""

    __tablename__ = "venues"

    venue_id: Mapped[int] = mapped_column(BigIntId, primary_key=True, autoincrement=True)
    hall_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("halls.hall_id"), nullable=False
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    capacity: Mapped[int] = mapped_column(Integer, nullable=False)
    base_price_per_hour: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    min_booking_duration_hours: Mapped[int] = mapped_column(Integer, default=2)
    active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.now, server_default=func.current_timestamp()
    )

    # Relationships
    hall: Mapped["Hall"] = relationship("Hall", back_populates="venues")
    pricing_slots: Mapped[list["VenuePricing"]] = relationship(
        "VenuePricing", back_populates="venue", cascade="all, delete-orphan"
    )
    bookings: Mapped[list["Booking"]] = relationship("Booking", back_populates="venue")

    __table_args__ = (Index("idx_venue_hall", "hall_id"),)


class VenuePricing(Base):
    """Date-specific hourly rate for a time window of a venue."""

    __tablename__ = "venue_pricing"

    pricing_id: Mapped[int] = mapped_column(BigIntId, primary_key=True, autoincrement=True)
    venue_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("venues.venue_id"), nullable=False
    )
    effective_date: Mapped[date] = mapped_column(Date, nullable=False)
    slot_start: Mapped[time] = mapped_column(Time, nullable=False)
    slot_end: Mapped[time] = mapped_column(Time, nullable=False)
    price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)

    # Relationships
    venue: Mapped["Venue"] = relationship("Venue", back_populates="pricing_slots")

    __table_args__ = (
        Index("idx_pricing_venue_date", "venue_id", "effective_date"),
    )
