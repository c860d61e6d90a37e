"""
Time-Slot Negotiator

Drop-off scheduling for pre-ordered bookings, in three steps:

1. Staff accept the requested date, or propose another one
   (pre_order -> awaiting_time_slot)
2. The customer lists the free slots for a day at the warehouse and
   picks one (scheduled drop-off is recorded, status unchanged)
3. The customer confirms the slot; it is stamped and the booking moves
   on to payment (awaiting_time_slot -> payment_pending)

Every step is a state-machine transition run by ``TransitionBookingHandler``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime, time
from typing import List
from uuid import UUID

from shared.application.uow import DjangoUnitOfWork
from apps.bookings.application.command_handlers import (
    Requester,
    TransitionBookingCommand,
    TransitionBookingHandler,
    resolve_actor,
)
from apps.bookings.domain.entities import Booking
from apps.bookings.domain.exceptions import UpstreamError, ValidationError
from apps.bookings.domain.state_machine import TRANSITIONS, BookingAction, status_error

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TimeSlot:
    start: datetime
    end: datetime
    available: bool = True

    def to_dict(self) -> dict:
        return {
            'start': self.start.isoformat(),
            'end': self.end.isoformat(),
            'available': self.available,
        }


class TimeSlotNegotiator:
    """
    Collaborators:
    - booking_repo / warehouses: as for ``TransitionBookingHandler``
    - availability: get_available_slots(warehouse_id, day, exclude_booking_id)
      returning ``TimeSlot``s; raises ``UpstreamError`` when it cannot answer
    """

    def __init__(self, booking_repo, warehouses, availability, uow_factory=DjangoUnitOfWork):
        self.booking_repo = booking_repo
        self.warehouses = warehouses
        self.availability = availability
        self.transitions = TransitionBookingHandler(booking_repo, warehouses, uow_factory)

    def _transition(self, booking_id: UUID, action: BookingAction, requester: Requester, **payload) -> Booking:
        return self.transitions.handle(TransitionBookingCommand(
            booking_id=booking_id,
            action=action,
            requested_by=requester,
            payload=payload,
        ))

    def accept_requested_date(self, booking_id: UUID, requester: Requester) -> Booking:
        """Staff keep the customer's requested start date"""
        return self._transition(booking_id, BookingAction.ACCEPT_REQUESTED_DATE, requester)

    def propose_date_change(
        self,
        booking_id: UUID,
        requester: Requester,
        proposed_start_date: date,
        proposed_start_time: time | None = None,
    ) -> Booking:
        """Staff suggest another drop-off date (and optionally a time)"""
        return self._transition(
            booking_id,
            BookingAction.PROPOSE_DATE_CHANGE,
            requester,
            proposed_start_date=proposed_start_date,
            proposed_start_time=proposed_start_time,
        )

    def get_available_slots(self, booking_id: UUID, requester: Requester, day: date | None = None) -> List[TimeSlot]:
        """
        Slots at the booking's warehouse on ``day``

        Defaults to the staff-proposed date, then the requested start date.
        """
        booking = self.booking_repo.get_by_id(booking_id)
        resolve_actor(booking, requester, self.warehouses)
        day = day or booking.proposed_start_date or booking.start_date
        return self.slots_for_warehouse(booking.warehouse_id, day, exclude_booking_id=booking.id)

    def slots_for_warehouse(self, warehouse_id: UUID, day: date, exclude_booking_id: UUID | None = None) -> List[TimeSlot]:
        try:
            return list(self.availability.get_available_slots(warehouse_id, day, exclude_booking_id))
        except UpstreamError:
            logger.warning(f"Availability lookup failed for warehouse {warehouse_id} on {day}")
            raise

    def select_time_slot(self, booking_id: UUID, requester: Requester, scheduled_dropoff_datetime: datetime) -> Booking:
        """Record the customer's pick; it must be one of the free slots for that day"""
        if not isinstance(scheduled_dropoff_datetime, datetime):
            raise ValidationError("Drop-off date and time is required", field='scheduled_dropoff_datetime')

        booking = self.booking_repo.get_by_id(booking_id)
        resolve_actor(booking, requester, self.warehouses, BookingAction.SELECT_TIME_SLOT)
        rule = TRANSITIONS[BookingAction.SELECT_TIME_SLOT]
        if booking.status not in rule.from_statuses:
            raise status_error(booking, rule)
        slots = self.slots_for_warehouse(
            booking.warehouse_id, scheduled_dropoff_datetime.date(), exclude_booking_id=booking.id,
        )
        if not any(slot.available and slot.start == scheduled_dropoff_datetime for slot in slots):
            raise ValidationError("Selected time slot is not available", field='scheduled_dropoff_datetime')

        return self._transition(
            booking_id,
            BookingAction.SELECT_TIME_SLOT,
            requester,
            scheduled_dropoff_datetime=scheduled_dropoff_datetime,
        )

    def confirm_time_slot(self, booking_id: UUID, requester: Requester) -> Booking:
        """Customer confirms the selected slot; the booking moves on to payment"""
        return self._transition(booking_id, BookingAction.CONFIRM_TIME_SLOT, requester)
