"""
Reservation engine failure taxonomy.

Every failure is recoverable by the caller: show the message, refresh the
catalog and the active reservation, and let the user try again.
"""

from utils.messages import MESSAGES


class ReservationError(ValueError):
    """Base class for reservation engine failures."""

    code = 'reservation_error'
    http_status = 400
    message_key = None

    def __init__(self, message: str = None):
        if message is None and self.message_key:
            message = MESSAGES[self.message_key]
        super().__init__(message or self.code)


class InvalidSlot(ReservationError):
    """Slot start not in the permitted set, or its window already passed."""

    code = 'invalid_slot'
    http_status = 400
    message_key = 'invalid_slot'


class AlreadyReserved(ReservationError):
    """The user already holds an active reservation."""

    code = 'already_reserved'
    http_status = 409
    message_key = 'already_reserved'


class FacilityUnavailable(ReservationError):
    """The facility is not Available at commit time."""

    code = 'facility_unavailable'
    http_status = 409
    message_key = 'facility_unavailable'


class NotAuthorized(ReservationError):
    """Actor may not perform the operation."""

    code = 'not_authorized'
    http_status = 403
    message_key = 'not_authorized'


class NotApproved(NotAuthorized):
    """User account has not been approved for reservations."""

    code = 'not_approved'
    message_key = 'not_approved'


class NotFound(ReservationError):
    """Reservation or facility does not exist, or is already released."""

    code = 'not_found'
    http_status = 404
    message_key = 'reservation_not_found'


ERRORS_BY_CODE = {
    cls.code: cls
    for cls in (InvalidSlot, AlreadyReserved, FacilityUnavailable,
                NotAuthorized, NotApproved, NotFound)
}
