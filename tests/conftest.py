"""Shared fixtures: SQLite database, in-process slot locks and seeded venue."""

import asyncio
from collections import defaultdict
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal

import fakeredis
import pytest
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

from venue_booking.gateway import SimulatedPaymentGateway
from venue_booking.models import Base, Hall, HallStaff, HallStatus, User, UserRole, Venue
from venue_booking.services import (
    BookingService,
    IdentityService,
    PaymentService,
    VenueService,
)

NOW = datetime(2030, 6, 1, 9, 0)
EVENT_DAY = date(2030, 6, 15)


def fixed_clock() -> datetime:
    return NOW


async def pay(payment_service, booking_id: int, customer: str = "cust-1") -> str:
    """Start and confirm the next payment due on a booking, returning its reference."""
    payment, intent = await payment_service.initiate_payment(booking_id, customer)
    await payment_service.confirm_payment(booking_id, intent.reference, payment.amount)
    return intent.reference


class InProcessLocks:
    """Keyed asyncio locks standing in for the Redis slot lock."""

    def __init__(self):
        self._locks: dict[str, asyncio.Lock] = defaultdict(asyncio.Lock)
        self.keys: list[str] = []

    def __call__(self, key: str):
        return self._hold(key)

    @asynccontextmanager
    async def _hold(self, key: str):
        async with self._locks[key]:
            self.keys.append(key)
            yield self


@dataclass
class Seed:
    hall_id: int
    venue_id: int
    other_hall_id: int


@pytest.fixture
async def engine(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'bookings.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(bind=engine, expire_on_commit=False)


@pytest.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
async def seed(db) -> Seed:
    db.add_all(
        [
            User(user_id="owner-1", full_name="Olivia Owner", role=UserRole.OWNER),
            User(user_id="owner-2", full_name="Oscar Owner", role=UserRole.OWNER),
            User(user_id="mgr-1", full_name="Mia Manager", role=UserRole.CUSTOMER),
            User(user_id="asst-1", full_name="Alex Assistant", role=UserRole.CUSTOMER),
            User(user_id="admin-1", full_name="Ada Admin", role=UserRole.ADMIN),
            User(user_id="cust-1", full_name="Carl Customer", role=UserRole.CUSTOMER),
            User(user_id="cust-2", full_name="Cleo Customer", role=UserRole.CUSTOMER),
        ]
    )
    await db.flush()

    hall = Hall(
        owner_id="owner-1",
        name="Grand Hall",
        address="1 Main Street",
        city="Springfield",
        zipcode="62701",
        latitude=39.7990,
        longitude=-89.6440,
        status=HallStatus.APPROVED,
    )
    other_hall = Hall(owner_id="owner-2", name="Riverside Hall", status=HallStatus.APPROVED)
    db.add_all([hall, other_hall])
    await db.flush()

    venue = Venue(
        hall_id=hall.hall_id,
        name="Ballroom",
        capacity=200,
        base_price_per_hour=Decimal("150.00"),
        min_booking_duration_hours=2,
        active=True,
    )
    db.add(venue)
    db.add_all(
        [
            HallStaff(hall_id=hall.hall_id, user_id="mgr-1", role=UserRole.MANAGER),
            HallStaff(hall_id=hall.hall_id, user_id="asst-1", role=UserRole.ASSISTANT),
        ]
    )
    await db.commit()

    return Seed(hall_id=hall.hall_id, venue_id=venue.venue_id, other_hall_id=other_hall.hall_id)


@pytest.fixture
def gateway() -> SimulatedPaymentGateway:
    return SimulatedPaymentGateway()


@pytest.fixture
def locks() -> InProcessLocks:
    return InProcessLocks()


@pytest.fixture
def make_booking_service(gateway, locks):
    def build(session, **kwargs) -> BookingService:
        identity = IdentityService(session)
        payments = PaymentService(
            session, gateway=gateway, identity=identity, clock=fixed_clock
        )
        return BookingService(
            session,
            venue_catalog=VenueService(session, identity),
            identity=identity,
            payment_service=payments,
            lock_factory=locks,
            clock=fixed_clock,
            **kwargs,
        )

    return build


@pytest.fixture
def booking_service(db, seed, make_booking_service) -> BookingService:
    return make_booking_service(db)


@pytest.fixture
def payment_service(booking_service) -> PaymentService:
    return booking_service.payment_service


@pytest.fixture
async def redis_client():
    client = fakeredis.FakeAsyncRedis(decode_responses=True)
    yield client
    await client.flushall()
    await client.aclose()
