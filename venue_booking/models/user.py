"""User and hall staff models."""

import enum
from datetime import datetime

from sqlalchemy import (
    BigInteger,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    String,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column

from venue_booking.models.base import Base, BigIntId


class UserRole(str, enum.Enum):
    """User role enum."""

    CUSTOMER = "CUSTOMER"
    OWNER = "OWNER"
    MANAGER = "MANAGER"
    ASSISTANT = "ASSISTANT"
    ADMIN = "ADMIN"


class User(Base):
    """Platform user known to the identity directory."""

    __tablename__ = "users"

    user_id: Mapped[str] = mapped_column(String(50), primary_key=True)
    full_name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str | None] = mapped_column(String(255), unique=True)
    role: Mapped[UserRole] = mapped_column(Enum(UserRole), default=UserRole.CUSTOMER)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.now, server_default=func.current_timestamp()
    )


class HallStaff(Base):
    """Assignment of a manager or assistant to a hall."""

    __tablename__ = "hall_staff"

    hall_staff_id: Mapped[int] = mapped_column(BigIntId, primary_key=True, autoincrement=True)
    hall_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("halls.hall_id"), nullable=False
    )
    user_id: Mapped[str] = mapped_column(
        String(50), ForeignKey("users.user_id"), nullable=False
    )
    role: Mapped[UserRole] = mapped_column(Enum(UserRole), nullable=False)

    __table_args__ = (
        UniqueConstraint("hall_id", "user_id", name="uk_hall_staff"),
        Index("idx_hall_staff_user", "user_id"),
    )
