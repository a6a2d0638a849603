"""Identity directory: users, roles and hall staff."""

import logging

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from venue_booking.errors import (
    AlreadyExists,
    HallNotFound,
    InvalidRole,
    Unauthorized,
    UserNotFound,
)
from venue_booking.models.user import HallStaff, User, UserRole
from venue_booking.models.venue import Hall, Venue
from venue_booking.roles import Capability, capabilities_for, has_capability

logger = logging.getLogger(__name__)

ASSIGNABLE_STAFF_ROLES = (UserRole.MANAGER, UserRole.ASSISTANT)
SELF_SERVICE_ROLES = (UserRole.CUSTOMER, UserRole.OWNER)


class IdentityService:
    """Service for user, role and staff lookups."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_user(self, user_id: str) -> User | None:
        """Get user by ID."""
        result = await self.db.execute(select(User).where(User.user_id == user_id))
        return result.scalar_one_or_none()

    async def role_of(self, user_id: str) -> UserRole | None:
        """Role of a user, None for users unknown to the directory."""
        result = await self.db.execute(select(User.role).where(User.user_id == user_id))
        return result.scalar_one_or_none()

    async def has_hall_authority(self, user_id: str, hall_id: int) -> bool:
        """Whether the user owns the hall or is assigned to it as staff."""
        result = await self.db.execute(
            select(Hall.owner_id).where(Hall.hall_id == hall_id)
        )
        owner_id = result.scalar_one_or_none()
        if owner_id is None:
            return False
        if owner_id == user_id:
            return True

        result = await self.db.execute(
            select(HallStaff.hall_staff_id).where(
                HallStaff.hall_id == hall_id,
                HallStaff.user_id == user_id,
            )
        )
        return result.first() is not None

    async def staff_role_of(self, user_id: str, hall_id: int) -> UserRole | None:
        """Role the user holds as staff of a hall, if any."""
        result = await self.db.execute(
            select(HallStaff.role).where(
                HallStaff.hall_id == hall_id,
                HallStaff.user_id == user_id,
            )
        )
        return result.scalar_one_or_none()

    async def can_act_on_hall(
        self,
        user_id: str,
        hall_id: int,
        capability: Capability,
        any_capability: Capability | None = None,
    ) -> bool:
        """
        Check a hall-scoped capability.

        Owners act with their own role. Staff act with the role they were
        assigned on that hall. ``any_capability`` grants the action regardless
        of hall membership (admin-level capabilities).
        """
        role = await self.role_of(user_id)
        if any_capability is not None and any_capability in capabilities_for(role):
            return True

        result = await self.db.execute(
            select(Hall.owner_id).where(Hall.hall_id == hall_id)
        )
        owner_id = result.scalar_one_or_none()
        if owner_id is None:
            return False
        if owner_id == user_id:
            return capability in capabilities_for(role)

        staff_role = await self.staff_role_of(user_id, hall_id)
        return capability in capabilities_for(staff_role)

    async def can_act_on_venue(
        self,
        user_id: str,
        venue_id: int,
        capability: Capability,
        any_capability: Capability | None = None,
    ) -> bool:
        """Check a hall-scoped capability against the hall owning a venue."""
        result = await self.db.execute(
            select(Venue.hall_id).where(Venue.venue_id == venue_id)
        )
        hall_id = result.scalar_one_or_none()
        if hall_id is None:
            return False
        return await self.can_act_on_hall(user_id, hall_id, capability, any_capability)

    async def can_access_booking(
        self,
        user_id: str,
        customer_id: str,
        venue_id: int,
        capability: Capability,
        any_capability: Capability | None = None,
    ) -> bool:
        """The booking's own customer, or staff holding the capability."""
        if user_id == customer_id:
            return True
        return await self.can_act_on_venue(user_id, venue_id, capability, any_capability)

    async def register_user(
        self,
        user_id: str,
        full_name: str,
        email: str | None = None,
        role: UserRole = UserRole.CUSTOMER,
        requester_id: str | None = None,
    ) -> User:
        """
        Add a user to the directory.

        Customers and hall owners may sign up on their own. Any other role
        must be granted by a user holding MANAGE_USERS.
        """
        if role not in SELF_SERVICE_ROLES:
            requester_role = await self.role_of(requester_id) if requester_id else None
            if not has_capability(requester_role, Capability.MANAGE_USERS):
                raise Unauthorized(f"Not authorized to register {role.value} users")

        user = User(user_id=user_id, full_name=full_name, email=email, role=role)
        self.db.add(user)
        try:
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            raise AlreadyExists(f"User {user_id} already exists")
        await self.db.refresh(user)
        logger.info(f"Registered user {user_id} as {role.value}")
        return user

    async def add_staff(
        self,
        owner_id: str,
        hall_id: int,
        user_id: str,
        role: UserRole,
    ) -> HallStaff:
        """Assign a manager or assistant to a hall. Only the hall owner may do this."""
        if role not in ASSIGNABLE_STAFF_ROLES:
            raise InvalidRole("Staff role must be MANAGER or ASSISTANT")

        result = await self.db.execute(select(Hall).where(Hall.hall_id == hall_id))
        hall = result.scalar_one_or_none()
        if hall is None:
            raise HallNotFound(f"Hall {hall_id} not found")

        if hall.owner_id != owner_id:
            raise Unauthorized("Not authorized to manage staff for this hall")

        if await self.get_user(user_id) is None:
            raise UserNotFound(f"User {user_id} not found")

        staff = HallStaff(hall_id=hall_id, user_id=user_id, role=role)
        self.db.add(staff)
        try:
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            raise AlreadyExists("User is already staff of this hall")
        await self.db.refresh(staff)
        logger.info(f"Added {user_id} as {role.value} of hall {hall_id}")
        return staff
