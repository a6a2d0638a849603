"""Booking engine error taxonomy.

Every error carries a stable ``code`` that the API surfaces to callers and a
``kind`` that decides the HTTP status and whether a retry can help.
"""

import enum


class ErrorKind(str, enum.Enum):
    """Error kind enum."""

    VALIDATION = "VALIDATION"
    CONFLICT = "CONFLICT"
    NOT_FOUND = "NOT_FOUND"
    AUTHORIZATION = "AUTHORIZATION"
    TRANSIENT = "TRANSIENT"
    UPSTREAM = "UPSTREAM"


class BookingEngineError(Exception):
    """Base class for all booking engine errors."""

    code: str = "BOOKING_ERROR"
    kind: ErrorKind = ErrorKind.VALIDATION
    default_message: str = "Booking operation failed"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)

    @property
    def retryable(self) -> bool:
        return self.kind == ErrorKind.TRANSIENT


# Validation errors


class InvalidBookingDate(BookingEngineError):
    code = "INVALID_BOOKING_DATE"
    default_message = "Booking date cannot be in the past"


class InvalidTimeRange(BookingEngineError):
    code = "INVALID_TIME_RANGE"
    default_message = "End time must be after start time"


class DurationTooShort(BookingEngineError):
    code = "DURATION_TOO_SHORT"
    default_message = "Booking is shorter than the venue minimum"


class AmountMismatch(BookingEngineError):
    code = "AMOUNT_MISMATCH"
    default_message = "Payment amount does not match the amount due"


class InvalidAmount(BookingEngineError):
    code = "INVALID_AMOUNT"
    default_message = "Amount must be positive"


class EmptyReason(BookingEngineError):
    code = "EMPTY_REASON"
    default_message = "A cancellation reason is required"


class PaymentDeclined(BookingEngineError):
    code = "PAYMENT_DECLINED"
    default_message = "Payment was not confirmed by the gateway"


class RefundExceedsPaid(BookingEngineError):
    code = "REFUND_EXCEEDS_PAID"
    default_message = "Refund amount exceeds the amount paid"


class InvalidRole(BookingEngineError):
    code = "INVALID_ROLE"
    default_message = "Role is not allowed for this operation"


# Conflict errors


class SlotConflict(BookingEngineError):
    code = "SLOT_CONFLICT"
    kind = ErrorKind.CONFLICT
    default_message = "The selected time slot is not available"


class InvalidState(BookingEngineError):
    code = "INVALID_STATE"
    kind = ErrorKind.CONFLICT
    default_message = "Booking is not in a state that allows this operation"


class AlreadyExists(BookingEngineError):
    code = "ALREADY_EXISTS"
    kind = ErrorKind.CONFLICT
    default_message = "Resource already exists"


class VenueInactive(BookingEngineError):
    code = "VENUE_INACTIVE"
    kind = ErrorKind.CONFLICT
    default_message = "Venue is not accepting bookings"


class HallNotApproved(BookingEngineError):
    code = "HALL_NOT_APPROVED"
    kind = ErrorKind.CONFLICT
    default_message = "Hall is not approved for bookings"


# Not-found errors


class VenueNotFound(BookingEngineError):
    code = "VENUE_NOT_FOUND"
    kind = ErrorKind.NOT_FOUND
    default_message = "Venue not found"


class HallNotFound(BookingEngineError):
    code = "HALL_NOT_FOUND"
    kind = ErrorKind.NOT_FOUND
    default_message = "Hall not found"


class BookingNotFound(BookingEngineError):
    code = "BOOKING_NOT_FOUND"
    kind = ErrorKind.NOT_FOUND
    default_message = "Booking not found"


class UserNotFound(BookingEngineError):
    code = "USER_NOT_FOUND"
    kind = ErrorKind.NOT_FOUND
    default_message = "User not found"


# Authorization errors


class Unauthorized(BookingEngineError):
    code = "UNAUTHORIZED"
    kind = ErrorKind.AUTHORIZATION
    default_message = "Not authorized to perform this operation"


# Transient errors


class LockConflict(BookingEngineError):
    code = "CONFLICT"
    kind = ErrorKind.TRANSIENT
    default_message = "The slot is busy. Please try again."


class PaymentGatewayError(BookingEngineError):
    code = "PAYMENT_GATEWAY_ERROR"
    kind = ErrorKind.UPSTREAM
    default_message = "Payment gateway request failed"
