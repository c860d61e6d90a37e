"""
Booking Domain Errors

Every failure the booking core reports is one of these kinds. The
``code`` is what leaves the process; messages are written for the
person who made the request and never carry internal details.
"""

from __future__ import annotations

from typing import Iterable


class BookingError(Exception):
    """Base class for booking core errors"""

    code = 'booking_error'

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def __str__(self) -> str:
        return self.message


class ValidationError(BookingError):
    """Missing or out-of-range input (pallet count, area, dates, services)"""

    code = 'validation_error'

    def __init__(self, message: str, field: str | None = None):
        super().__init__(message)
        self.field = field


class AuthorizationError(BookingError):
    """Actor lacks warehouse access or the role the action needs"""

    code = 'authorization_error'


class StateError(BookingError):
    """Requested transition is illegal from the current status"""

    code = 'state_error'

    def __init__(
        self,
        message: str,
        current_status: str | None = None,
        required_statuses: Iterable[str] = (),
    ):
        super().__init__(message)
        self.current_status = current_status
        self.required_statuses = tuple(required_statuses)


class NotFoundError(BookingError):
    """Referenced booking, approval or warehouse does not exist"""

    code = 'not_found'

    def __init__(self, resource: str, resource_id=None):
        message = f"{resource} not found"
        if resource_id is not None:
            message = f"{resource} {resource_id} not found"
        super().__init__(message)
        self.resource = resource


class UpstreamError(BookingError):
    """An external collaborator (availability, pricing store) failed"""

    code = 'upstream_error'
