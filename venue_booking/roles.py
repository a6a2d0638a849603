"""Role to capability mapping."""

import enum

from venue_booking.models.user import UserRole


class Capability(str, enum.Enum):
    """Actions a role may be allowed to perform."""

    CREATE_BOOKING = "CREATE_BOOKING"
    VIEW_OWN_BOOKINGS = "VIEW_OWN_BOOKINGS"
    CANCEL_OWN_BOOKING = "CANCEL_OWN_BOOKING"
    PAY_BOOKING = "PAY_BOOKING"
    MANAGE_HALLS = "MANAGE_HALLS"
    MANAGE_VENUES = "MANAGE_VENUES"
    MANAGE_STAFF = "MANAGE_STAFF"
    VIEW_HALL_BOOKINGS = "VIEW_HALL_BOOKINGS"
    CANCEL_HALL_BOOKINGS = "CANCEL_HALL_BOOKINGS"
    ISSUE_REFUNDS = "ISSUE_REFUNDS"
    VIEW_ALL_BOOKINGS = "VIEW_ALL_BOOKINGS"
    CANCEL_ANY_BOOKING = "CANCEL_ANY_BOOKING"
    MANAGE_ALL_HALLS = "MANAGE_ALL_HALLS"
    MANAGE_USERS = "MANAGE_USERS"
    APPROVE_HALLS = "APPROVE_HALLS"


_CUSTOMER = frozenset(
    {
        Capability.CREATE_BOOKING,
        Capability.VIEW_OWN_BOOKINGS,
        Capability.CANCEL_OWN_BOOKING,
        Capability.PAY_BOOKING,
    }
)

# Staff capabilities only apply to halls the user owns or is assigned to
_ASSISTANT = frozenset({Capability.VIEW_HALL_BOOKINGS})
_MANAGER = _ASSISTANT | {
    Capability.MANAGE_VENUES,
    Capability.CANCEL_HALL_BOOKINGS,
    Capability.ISSUE_REFUNDS,
}
_OWNER = _MANAGER | {Capability.MANAGE_HALLS, Capability.MANAGE_STAFF}

_ADMIN = frozenset(Capability)

ROLE_CAPABILITIES: dict[UserRole, frozenset[Capability]] = {
    UserRole.CUSTOMER: _CUSTOMER,
    UserRole.ASSISTANT: _ASSISTANT,
    UserRole.MANAGER: frozenset(_MANAGER),
    UserRole.OWNER: frozenset(_OWNER),
    UserRole.ADMIN: _ADMIN,
}


def capabilities_for(role: UserRole | None) -> frozenset[Capability]:
    """Capabilities granted to a role. Unknown users get none."""
    if role is None:
        return frozenset()
    return ROLE_CAPABILITIES.get(role, frozenset())


def has_capability(role: UserRole | None, capability: Capability) -> bool:
    return capability in capabilities_for(role)
