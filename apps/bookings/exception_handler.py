"""DRF exception handler for booking errors.

Installed as ``REST_FRAMEWORK['EXCEPTION_HANDLER']``. Booking errors are
turned into ``{"error": code, "detail": message}`` with a status per
kind; everything else goes through DRF's default handler.
"""

from __future__ import annotations

import logging

from rest_framework import status  # type: ignore
from rest_framework.response import Response  # type: ignore
from rest_framework.views import exception_handler  # type: ignore

from apps.bookings.domain.exceptions import (
    AuthorizationError,
    BookingError,
    NotFoundError,
    StateError,
    UpstreamError,
    ValidationError,
)

logger = logging.getLogger(__name__)

STATUS_BY_ERROR = (
    (ValidationError, status.HTTP_400_BAD_REQUEST),
    (AuthorizationError, status.HTTP_403_FORBIDDEN),
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (StateError, status.HTTP_409_CONFLICT),
    (UpstreamError, status.HTTP_502_BAD_GATEWAY),
)


def booking_exception_handler(exc, context):
    if not isinstance(exc, BookingError):
        return exception_handler(exc, context)

    http_status = next(
        (code for error_class, code in STATUS_BY_ERROR if isinstance(exc, error_class)),
        status.HTTP_400_BAD_REQUEST,
    )
    body = {"error": exc.code, "detail": exc.message}
    if isinstance(exc, ValidationError) and exc.field:
        body["field"] = exc.field
    if isinstance(exc, StateError) and exc.current_status:
        body["current_status"] = exc.current_status
        body["required_statuses"] = list(exc.required_statuses)

    if isinstance(exc, UpstreamError):
        logger.warning(f"Upstream failure in {context.get('view').__class__.__name__}: {exc}")
    return Response(body, status=http_status)
