"""
Booking Domain Events

Events that represent things that have happened in the booking domain.
These are published after successful transaction commits.
"""

from dataclasses import dataclass
from datetime import datetime
from uuid import UUID

from shared.domain.base import DomainEvent
from shared.domain.value_objects import Money


# ===== Booking Events =====

@dataclass
class BookingCreated(DomainEvent):
    """
    Event: A new booking was created

    Triggers:
    - Notify the customer (and the booker, for on-behalf bookings)
    """
    booking_id: UUID
    booking_number: str
    booking_type: str
    customer_id: UUID
    warehouse_id: UUID
    total_amount: Money
    booked_by_id: UUID | None = None
    booked_on_behalf: bool = False


@dataclass
class BookingStatusChanged(DomainEvent):
    """
    Event: A transition moved the booking to another status

    Triggers:
    - Notify the customer of the new status
    - Notify the warehouse when a drop-off date is proposed
    """
    booking_id: UUID
    booking_number: str
    customer_id: UUID
    warehouse_id: UUID
    action: str
    old_status: str
    new_status: str
    actor_id: UUID | None = None
    actor_role: str = ''


@dataclass
class TimeSlotSelected(DomainEvent):
    """Event: The customer picked a drop-off slot (status unchanged)"""
    booking_id: UUID
    booking_number: str
    customer_id: UUID
    warehouse_id: UUID
    scheduled_dropoff_datetime: datetime


# ===== Approval Events =====

@dataclass
class ApprovalRequested(DomainEvent):
    """
    Event: A team admin asked the customer to approve an on-behalf booking

    Triggers:
    - Notify the customer that an approval is waiting
    """
    approval_id: UUID
    booking_id: UUID
    requested_by: UUID
    approver_id: UUID
    request_message: str = ''


@dataclass
class BookingApprovalApproved(DomainEvent):
    """Event: The customer approved the booking"""
    approval_id: UUID
    booking_id: UUID
    requested_by: UUID
    responded_by: UUID | None
    response_message: str = ''


@dataclass
class BookingApprovalRejected(DomainEvent):
    """
    Event: The customer rejected the booking

    Triggers:
    - Cancel the booking (Celery task, as the system actor)
    - Notify the team admin who requested the approval
    """
    approval_id: UUID
    booking_id: UUID
    requested_by: UUID
    responded_by: UUID | None
    response_message: str = ''
