"""
Booking State Machine

Every status change a booking can go through is a row in ``TRANSITIONS``:
which statuses the action starts from, where it leads, and which roles
may trigger it. ``apply_transition`` is the only way a booking's status
changes. It never touches storage: callers persist the booking it
returns, and the booking passed in is left untouched.

    pending -> payment_pending -> pre_order -> awaiting_time_slot
            -> confirmed -> active -> completed
    any non-terminal -> cancelled
"""

import copy
import logging
from dataclasses import dataclass
from datetime import date, datetime, time
from enum import Enum
from typing import Callable, Dict, FrozenSet, Optional

from shared.domain.base import utcnow
from apps.bookings.domain.entities import (
    Actor,
    ActorRole,
    Booking,
    BookingStatus,
    TERMINAL_STATUSES,
)
from apps.bookings.domain.events import BookingStatusChanged, TimeSlotSelected
from apps.bookings.domain.exceptions import AuthorizationError, StateError, ValidationError

logger = logging.getLogger(__name__)


class BookingAction(Enum):
    REQUEST_PAYMENT = 'request_payment'
    MOVE_TO_PRE_ORDER = 'move_to_pre_order'
    ACCEPT_REQUESTED_DATE = 'accept_requested_date'
    PROPOSE_DATE_CHANGE = 'propose_date_change'
    SELECT_TIME_SLOT = 'select_time_slot'
    CONFIRM_TIME_SLOT = 'confirm_time_slot'
    CONFIRM = 'confirm'
    ACTIVATE = 'activate'
    COMPLETE = 'complete'
    CANCEL = 'cancel'


@dataclass(frozen=True)
class TransitionRule:
    action: BookingAction
    from_statuses: FrozenSet[BookingStatus]
    roles: FrozenSet[ActorRole]
    # None keeps the current status
    to_status: Optional[BookingStatus]
    description: str

    def target(self, current: BookingStatus) -> BookingStatus:
        return self.to_status or current


STAFF = frozenset({ActorRole.WAREHOUSE_STAFF, ActorRole.ADMIN})
CUSTOMER_SIDE = frozenset({ActorRole.CUSTOMER, ActorRole.TEAM_ADMIN, ActorRole.ADMIN})
OPERATIONS = frozenset({ActorRole.WAREHOUSE_STAFF, ActorRole.ADMIN, ActorRole.SYSTEM})
EVERYONE = frozenset(ActorRole)
NON_TERMINAL = frozenset(set(BookingStatus) - TERMINAL_STATUSES)


TRANSITIONS: Dict[BookingAction, TransitionRule] = {
    rule.action: rule
    for rule in (
        TransitionRule(
            BookingAction.REQUEST_PAYMENT,
            frozenset({BookingStatus.PENDING}),
            CUSTOMER_SIDE | {ActorRole.SYSTEM},
            BookingStatus.PAYMENT_PENDING,
            'request payment',
        ),
        TransitionRule(
            BookingAction.MOVE_TO_PRE_ORDER,
            frozenset({BookingStatus.PENDING, BookingStatus.PAYMENT_PENDING}),
            CUSTOMER_SIDE | {ActorRole.SYSTEM},
            BookingStatus.PRE_ORDER,
            'place a pre-order',
        ),
        TransitionRule(
            BookingAction.ACCEPT_REQUESTED_DATE,
            frozenset({BookingStatus.PRE_ORDER}),
            STAFF,
            BookingStatus.AWAITING_TIME_SLOT,
            'set awaiting_time_slot',
        ),
        TransitionRule(
            BookingAction.PROPOSE_DATE_CHANGE,
            frozenset({BookingStatus.PENDING, BookingStatus.PRE_ORDER, BookingStatus.AWAITING_TIME_SLOT}),
            STAFF,
            BookingStatus.AWAITING_TIME_SLOT,
            'propose a date change',
        ),
        TransitionRule(
            BookingAction.SELECT_TIME_SLOT,
            frozenset({BookingStatus.AWAITING_TIME_SLOT}),
            CUSTOMER_SIDE,
            None,
            'select a time slot',
        ),
        TransitionRule(
            BookingAction.CONFIRM_TIME_SLOT,
            frozenset({BookingStatus.AWAITING_TIME_SLOT}),
            CUSTOMER_SIDE,
            BookingStatus.PAYMENT_PENDING,
            'confirm the time slot',
        ),
        TransitionRule(
            BookingAction.CONFIRM,
            frozenset({
                BookingStatus.PENDING,
                BookingStatus.PAYMENT_PENDING,
                BookingStatus.PRE_ORDER,
                BookingStatus.AWAITING_TIME_SLOT,
            }),
            OPERATIONS,
            BookingStatus.CONFIRMED,
            'confirm the booking',
        ),
        TransitionRule(
            BookingAction.ACTIVATE,
            frozenset({BookingStatus.CONFIRMED}),
            OPERATIONS,
            BookingStatus.ACTIVE,
            'activate the booking',
        ),
        TransitionRule(
            BookingAction.COMPLETE,
            frozenset({BookingStatus.ACTIVE}),
            OPERATIONS,
            BookingStatus.COMPLETED,
            'complete the booking',
        ),
        TransitionRule(
            BookingAction.CANCEL,
            NON_TERMINAL,
            EVERYONE,
            BookingStatus.CANCELLED,
            'cancel the booking',
        ),
    )
}


def _ordered(statuses) -> list:
    order = list(BookingStatus)
    return sorted(statuses, key=order.index)


def _parse_action(action) -> BookingAction:
    if isinstance(action, BookingAction):
        return action
    try:
        return BookingAction(action)
    except ValueError:
        raise ValidationError(f"Unknown booking action: {action}", field='action') from None


def is_transition_allowed(current_status: BookingStatus, action, actor_role: ActorRole) -> bool:
    """Pure lookup: may this role perform this action from this status?"""
    rule = TRANSITIONS.get(_parse_action(action))
    if rule is None:
        return False
    return current_status in rule.from_statuses and actor_role in rule.roles


def allowed_actions(current_status: BookingStatus, actor_role: ActorRole) -> list:
    return [
        action for action, rule in TRANSITIONS.items()
        if current_status in rule.from_statuses and actor_role in rule.roles
    ]


def status_error(booking: Booking, rule: TransitionRule) -> StateError:
    required = _ordered(rule.from_statuses)
    if len(required) == 1:
        expected = f"in {required[0].value} status"
    else:
        expected = f"in one of {', '.join(s.value for s in required)}"
    return StateError(
        f"Booking must be {expected} to {rule.description} "
        f"(current status: {booking.status.value})",
        current_status=booking.status.value,
        required_statuses=[s.value for s in required],
    )


# ===== Payload handlers =====

def _require(payload: dict, key: str, kind, label: str):
    value = payload.get(key)
    if value is None:
        raise ValidationError(f"{label} is required", field=key)
    if not isinstance(value, kind):
        raise ValidationError(f"{label} is invalid", field=key)
    return value


def _propose_date_change(booking: Booking, actor: Actor, now: datetime, payload: dict):
    proposed_date = _require(payload, 'proposed_start_date', date, "Proposed start date")
    if isinstance(proposed_date, datetime):
        proposed_date = proposed_date.date()
    proposed_time = payload.get('proposed_start_time')
    if proposed_time is not None and not isinstance(proposed_time, time):
        raise ValidationError("Proposed start time is invalid", field='proposed_start_time')

    booking.proposed_start_date = proposed_date
    booking.proposed_start_time = proposed_time
    booking.date_change_requested_at = now
    booking.date_change_requested_by = actor.user_id
    # A new proposal invalidates any slot picked for the old one
    booking.scheduled_dropoff_datetime = None
    booking.time_slot_confirmed_at = None


def _select_time_slot(booking: Booking, actor: Actor, now: datetime, payload: dict):
    booking.scheduled_dropoff_datetime = _require(
        payload, 'scheduled_dropoff_datetime', datetime, "Drop-off date and time"
    )
    booking.time_slot_confirmed_at = None


def _confirm_time_slot(booking: Booking, actor: Actor, now: datetime, payload: dict):
    if booking.scheduled_dropoff_datetime is None:
        raise StateError(
            "A time slot must be selected before it can be confirmed",
            current_status=booking.status.value,
            required_statuses=[BookingStatus.PAYMENT_PENDING.value],
        )
    booking.time_slot_confirmed_at = now


def _confirm(booking: Booking, actor: Actor, now: datetime, payload: dict):
    if booking.scheduled_dropoff_datetime is not None and booking.time_slot_confirmed_at is None:
        raise StateError(
            "The drop-off time slot must be confirmed before the booking is confirmed",
            current_status=booking.status.value,
            required_statuses=[BookingStatus.PAYMENT_PENDING.value],
        )
    booking.confirmed_at = now


def _activate(booking: Booking, actor: Actor, now: datetime, payload: dict):
    booking.activated_at = now


def _complete(booking: Booking, actor: Actor, now: datetime, payload: dict):
    booking.completed_at = now


def _cancel(booking: Booking, actor: Actor, now: datetime, payload: dict):
    booking.cancelled_at = now
    booking.cancellation_reason = str(payload.get('reason') or '')


PayloadHandler = Callable[[Booking, Actor, datetime, dict], None]

PAYLOAD_KEYS: Dict[BookingAction, FrozenSet[str]] = {
    BookingAction.PROPOSE_DATE_CHANGE: frozenset({'proposed_start_date', 'proposed_start_time'}),
    BookingAction.SELECT_TIME_SLOT: frozenset({'scheduled_dropoff_datetime'}),
    BookingAction.CANCEL: frozenset({'reason'}),
}

PAYLOAD_HANDLERS: Dict[BookingAction, PayloadHandler] = {
    BookingAction.PROPOSE_DATE_CHANGE: _propose_date_change,
    BookingAction.SELECT_TIME_SLOT: _select_time_slot,
    BookingAction.CONFIRM_TIME_SLOT: _confirm_time_slot,
    BookingAction.CONFIRM: _confirm,
    BookingAction.ACTIVATE: _activate,
    BookingAction.COMPLETE: _complete,
    BookingAction.CANCEL: _cancel,
}


def apply_transition(
    booking: Booking,
    action,
    actor: Actor,
    now: datetime | None = None,
    **payload,
) -> Booking:
    """
    Apply ``action`` to a copy of ``booking`` and return the copy

    Raises:
        ValidationError: Unknown action, unexpected or invalid payload
        AuthorizationError: The actor's role may not perform the action
        StateError: The booking's status is not one the action starts from
    """
    action = _parse_action(action)
    rule = TRANSITIONS[action]

    unexpected = set(payload) - PAYLOAD_KEYS.get(action, frozenset())
    if unexpected:
        raise ValidationError(
            f"Unexpected fields for {action.value}: {', '.join(sorted(unexpected))}"
        )
    if actor.role not in rule.roles:
        raise AuthorizationError(f"A {actor.role.value} may not {rule.description}")
    if booking.status not in rule.from_statuses:
        raise status_error(booking, rule)

    now = now or utcnow()
    updated = copy.deepcopy(booking)
    old_status = updated.status

    handler = PAYLOAD_HANDLERS.get(action)
    if handler:
        handler(updated, actor, now, payload)

    updated.status = rule.target(old_status)
    updated.touch()

    if action is not BookingAction.SELECT_TIME_SLOT:
        updated.add_event(BookingStatusChanged(
            aggregate_id=updated.id,
            booking_id=updated.id,
            booking_number=updated.booking_number,
            customer_id=updated.customer_id,
            warehouse_id=updated.warehouse_id,
            action=action.value,
            old_status=old_status.value,
            new_status=updated.status.value,
            actor_id=actor.user_id,
            actor_role=actor.role.value,
        ))
    else:
        updated.add_event(TimeSlotSelected(
            aggregate_id=updated.id,
            booking_id=updated.id,
            booking_number=updated.booking_number,
            customer_id=updated.customer_id,
            warehouse_id=updated.warehouse_id,
            scheduled_dropoff_datetime=updated.scheduled_dropoff_datetime,
        ))

    logger.info(
        f"Booking {updated.booking_number}: {action.value} "
        f"{old_status.value} -> {updated.status.value} by {actor.role.value} {actor.user_id}"
    )
    return updated
