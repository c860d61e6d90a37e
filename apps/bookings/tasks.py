"""Celery tasks for the booking domain."""

from __future__ import annotations

import logging
from uuid import UUID

from celery import shared_task  # type: ignore
from django.utils import timezone  # type: ignore

from apps.bookings.domain.exceptions import NotFoundError, StateError
from apps.bookings.domain.state_machine import BookingAction

from .models import Booking

logger = logging.getLogger(__name__)


@shared_task(name="bookings.notify_booking_event")
def notify_booking_event(event: dict) -> int:
    """Deliver notifications for a serialized domain event."""
    from apps.notifications.services import notify_booking_event as deliver

    return deliver(event)


@shared_task(name="bookings.cancel_rejected_booking")
def cancel_rejected_booking(booking_id: str, reason: str = "") -> bool:
    """
    Cancel a booking whose on-behalf approval was rejected.

    Runs as the system actor through the state machine. A booking that is
    already terminal is left as it is.
    """
    from .services import transition_handler

    try:
        transition_handler().handle_as_system(
            UUID(str(booking_id)),
            BookingAction.CANCEL,
            reason=reason or "Rejected by customer",
        )
    except StateError as e:
        logger.info(f"Rejected booking {booking_id} not cancelled: {e}")
        return False
    except NotFoundError:
        logger.warning(f"Rejected booking {booking_id} no longer exists")
        return False

    logger.info(f"Booking {booking_id} cancelled after approval rejection")
    return True


# ============================================================================
# PERIODIC TASKS (Celery Beat)
# ============================================================================

def _advance(queryset, action: BookingAction, due) -> int:
    from .services import transition_handler

    handler = transition_handler()
    advanced = 0
    for booking_id in queryset.values_list("id", flat=True):
        try:
            booking = handler.booking_repo.get_by_id(booking_id)
            if not due(booking):
                continue
            handler.handle_as_system(booking_id, action)
            advanced += 1
        except (StateError, NotFoundError) as e:
            # Someone else moved the booking since the query ran
            logger.info(f"Skipping {action.value} for booking {booking_id}: {e}")
    return advanced


@shared_task(name="bookings.activate_started_bookings")
def activate_started_bookings() -> dict[str, int]:
    """Confirmed bookings whose start date has arrived become active."""
    today = timezone.localdate()
    queryset = Booking.objects.filter(status=Booking.Status.CONFIRMED, start_date__lte=today)
    activated = _advance(queryset, BookingAction.ACTIVATE, lambda booking: booking.start_date <= today)
    if activated:
        logger.info(f"Activated {activated} bookings")
    return {"activated": activated}


@shared_task(name="bookings.complete_finished_bookings")
def complete_finished_bookings() -> dict[str, int]:
    """Active bookings past their end date (or their months) are completed."""
    today = timezone.localdate()
    queryset = Booking.objects.filter(status=Booking.Status.ACTIVE, start_date__lt=today)
    completed = _advance(queryset, BookingAction.COMPLETE, lambda booking: booking.effective_end_date <= today)
    if completed:
        logger.info(f"Completed {completed} bookings")
    return {"completed": completed}
