"""Domain event handlers for bookings.

Registered on the message bus when the app is ready. Handlers only
enqueue Celery tasks; the work itself happens outside the request.
"""

from __future__ import annotations

import logging

from shared.application.message_bus import MessageBus, message_bus
from apps.bookings.domain.events import (
    ApprovalRequested,
    BookingApprovalApproved,
    BookingApprovalRejected,
    BookingCreated,
    BookingStatusChanged,
)

logger = logging.getLogger(__name__)

NOTIFIED_EVENTS = (
    BookingCreated,
    BookingStatusChanged,
    ApprovalRequested,
    BookingApprovalApproved,
    BookingApprovalRejected,
)


def enqueue_notification(event) -> None:
    from .tasks import notify_booking_event

    notify_booking_event.delay(event.to_dict())


def cancel_after_rejection(event: BookingApprovalRejected) -> None:
    from .tasks import cancel_rejected_booking

    reason = "Rejected by customer"
    if event.response_message:
        reason = f"{reason}: {event.response_message}"
    logger.info(f"Approval {event.approval_id} rejected, cancelling booking {event.booking_id}")
    cancel_rejected_booking.delay(str(event.booking_id), reason[:255])


def register_handlers(bus: MessageBus = message_bus) -> None:
    bus.subscribe(*NOTIFIED_EVENTS)(enqueue_notification)
    bus.subscribe(BookingApprovalRejected)(cancel_after_rejection)
