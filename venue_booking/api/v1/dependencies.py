"""API dependencies."""

from typing import Annotated

import redis.asyncio as redis
from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from venue_booking.config import get_settings
from venue_booking.credentials import CredentialStore
from venue_booking.database import get_db
from venue_booking.distributed_lock import LockFactory, redis_lock_factory
from venue_booking.gateway import PaymentGateway, get_payment_gateway
from venue_booking.redis_client import get_redis
from venue_booking.services.booking_service import BookingService
from venue_booking.services.identity_service import IdentityService
from venue_booking.services.payment_service import PaymentService
from venue_booking.services.venue_service import VenueService

settings = get_settings()

# Type aliases
DBSession = Annotated[AsyncSession, Depends(get_db)]
RedisClient = Annotated[redis.Redis, Depends(get_redis)]


def get_lock_factory(redis_client: RedisClient) -> LockFactory:
    """Get the lock factory guarding slot reservations."""
    return redis_lock_factory(redis_client)


def get_gateway() -> PaymentGateway:
    """Get payment gateway."""
    return get_payment_gateway()


def get_credential_store(redis_client: RedisClient) -> CredentialStore:
    """Get credential store."""
    return CredentialStore(redis_client)


LockFactoryDep = Annotated[LockFactory, Depends(get_lock_factory)]
GatewayDep = Annotated[PaymentGateway, Depends(get_gateway)]
CredentialStoreDep = Annotated[CredentialStore, Depends(get_credential_store)]


def _bearer_token(authorization: str | None) -> str | None:
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token:
        return None
    return token.strip()


async def get_optional_user_id(
    store: CredentialStoreDep,
    authorization: Annotated[str | None, Header()] = None,
    x_user_id: Annotated[str | None, Header()] = None,
) -> str | None:
    """
    Resolve the caller from a bearer token, or from the X-User-ID header
    when header authentication is allowed.
    """
    token = _bearer_token(authorization)
    if token:
        user_id = await store.get(token)
        if user_id is None:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Invalid or expired token",
            )
        return user_id

    if x_user_id and settings.ALLOW_HEADER_AUTH:
        return x_user_id
    return None


async def get_current_user_id(
    user_id: Annotated[str | None, Depends(get_optional_user_id)],
) -> str:
    """Require an authenticated caller."""
    if not user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required",
        )
    return user_id


CurrentUser = Annotated[str, Depends(get_current_user_id)]
OptionalUser = Annotated[str | None, Depends(get_optional_user_id)]


def get_identity_service(db: DBSession) -> IdentityService:
    """Get identity service."""
    return IdentityService(db)


IdentityServiceDep = Annotated[IdentityService, Depends(get_identity_service)]


def get_venue_service(db: DBSession, identity: IdentityServiceDep) -> VenueService:
    """Get venue service."""
    return VenueService(db, identity)


def get_payment_service(
    db: DBSession,
    gateway: GatewayDep,
    identity: IdentityServiceDep,
) -> PaymentService:
    """Get payment service."""
    return PaymentService(db, gateway=gateway, identity=identity)


VenueServiceDep = Annotated[VenueService, Depends(get_venue_service)]
PaymentServiceDep = Annotated[PaymentService, Depends(get_payment_service)]


def get_booking_service(
    db: DBSession,
    lock_factory: LockFactoryDep,
    identity: IdentityServiceDep,
    venues: VenueServiceDep,
    payments: PaymentServiceDep,
) -> BookingService:
    """Get booking service."""
    return BookingService(
        db,
        venue_catalog=venues,
        identity=identity,
        payment_service=payments,
        lock_factory=lock_factory,
    )


# Annotated dependencies
BookingServiceDep = Annotated[BookingService, Depends(get_booking_service)]
