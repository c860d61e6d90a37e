"""Notification services: in-app records and e-mail.

Delivery is fire-and-forget. Every function here logs its failures and
returns False instead of raising, so a broken mailbox can never undo a
booking transition.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from django.conf import settings  # type: ignore
from django.core.mail import send_mail  # type: ignore
from django.db import DatabaseError  # type: ignore

if TYPE_CHECKING:  # pragma: no cover
    from apps.users.models import CustomUser

logger = logging.getLogger(__name__)


STATUS_MESSAGES = {
    'payment_pending': "Booking {number} is waiting for payment.",
    'pre_order': "Booking {number} was placed as a pre-order. The warehouse will confirm a drop-off date.",
    'awaiting_time_slot': "Booking {number} has a drop-off date. Please pick and confirm a time slot.",
    'confirmed': "Booking {number} is confirmed.",
    'active': "Booking {number} is now active.",
    'completed': "Booking {number} is completed.",
    'cancelled': "Booking {number} was cancelled.",
}


# ============================================================================
# CHANNELS
# ============================================================================

def send_email_notification(recipient_email: str, subject: str, message: str) -> bool:
    """
    Send a plain-text e-mail

    Returns:
        bool: True if the message was handed to the mail backend
    """
    if not recipient_email:
        return False
    try:
        send_mail(
            subject=subject,
            message=message,
            from_email=settings.DEFAULT_FROM_EMAIL,
            recipient_list=[recipient_email],
            fail_silently=False,
        )
        logger.info(f"Email sent successfully to {recipient_email}: {subject}")
        return True
    except Exception as e:
        logger.error(f"Failed to send email to {recipient_email}: {e}", exc_info=True)
        return False


def create_in_app_notification(
    user: "CustomUser",
    title: str,
    message: str,
    *,
    event_type: str = '',
    booking_id=None,
) -> bool:
    try:
        from .models import Notification

        Notification.objects.create(
            user=user,
            title=title,
            message=message,
            event_type=event_type,
            booking_id=booking_id,
        )
        logger.info(f"In-app notification created for {user.email}: {title}")
        return True
    except DatabaseError as e:
        logger.error(f"Failed to create in-app notification for {user.email}: {e}", exc_info=True)
        return False


def notify_user(user: "CustomUser", title: str, message: str, *, event_type: str = '', booking_id=None) -> bool:
    stored = create_in_app_notification(user, title, message, event_type=event_type, booking_id=booking_id)
    mailed = send_email_notification(user.email, title, message)
    return stored or mailed


# ============================================================================
# BOOKING EVENTS
# ============================================================================

def _messages_for(event: dict) -> list[tuple[str, str, str]]:
    """(recipient user id, title, message) triples for a serialized domain event"""
    payload = event.get('payload', {})
    event_type = event.get('event_type')
    number = payload.get('booking_number', '')

    if event_type == 'BookingCreated':
        messages = [(payload['customer_id'], f"Booking {number} received", f"Booking {number} was created.")]
        if payload.get('booked_on_behalf') and payload.get('booked_by_id'):
            messages.append((
                payload['booked_by_id'],
                f"Booking {number} created",
                f"You created booking {number} on behalf of a team member.",
            ))
        return messages

    if event_type == 'BookingStatusChanged':
        template = STATUS_MESSAGES.get(payload.get('new_status'))
        if template is None:
            return []
        title = f"Booking {number}: {payload['new_status'].replace('_', ' ')}"
        return [(payload['customer_id'], title, template.format(number=number))]

    if event_type == 'ApprovalRequested':
        return [(
            payload['approver_id'],
            "Booking approval requested",
            payload.get('request_message') or "A team admin booked warehouse space for you and needs your approval.",
        )]

    if event_type in ('BookingApprovalApproved', 'BookingApprovalRejected'):
        verb = 'approved' if event_type == 'BookingApprovalApproved' else 'rejected'
        message = f"Your booking request was {verb}."
        if payload.get('response_message'):
            message = f"{message} {payload['response_message']}"
        return [(payload['requested_by'], f"Booking {verb}", message)]

    return []


def notify_booking_event(event: dict) -> int:
    """
    Deliver the notifications for one serialized booking event

    Returns:
        int: Number of recipients notified
    """
    from apps.users.models import CustomUser

    delivered = 0
    payload = event.get('payload', {})
    for user_id, title, message in _messages_for(event):
        user = CustomUser.objects.filter(pk=user_id).first()
        if user is None:
            logger.warning(f"Notification recipient {user_id} not found for {event.get('event_type')}")
            continue
        if notify_user(
            user,
            title,
            message,
            event_type=event.get('event_type', ''),
            booking_id=payload.get('booking_id'),
        ):
            delivered += 1
    return delivered
