"""
Booking Domain Entities

Core business entities for the booking domain:
- Booking: Aggregate root, specialised as PalletBooking or AreaRentalBooking
- BookingServiceLine: Priced add-on service, frozen at booking time
- BookingApproval: Approval record for a booking made on someone's behalf
- Actor: Who is asking for a change, and in which role
"""

from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta
from decimal import Decimal
from enum import Enum
from typing import ClassVar, Tuple
from uuid import UUID

from shared.domain.base import Aggregate, ValueObject, utcnow
from shared.domain.value_objects import Money, to_decimal
from apps.bookings.domain.exceptions import ValidationError, StateError
from apps.bookings.domain.pricing import DAYS_PER_MONTH, ServicePricingType


class BookingType(Enum):
    PALLET = 'pallet'
    AREA_RENTAL = 'area-rental'


class BookingStatus(Enum):
    """
    Booking lifecycle states

    pending -> payment_pending -> pre_order -> awaiting_time_slot
    -> confirmed -> active -> completed, with cancelled reachable from
    every non-terminal state. Transitions live in ``state_machine``.
    """
    PENDING = 'pending'                        # Submitted, nothing scheduled yet
    PAYMENT_PENDING = 'payment_pending'        # Waiting for payment capture
    PRE_ORDER = 'pre_order'                    # Waiting for staff to set a drop-off date
    AWAITING_TIME_SLOT = 'awaiting_time_slot'  # Customer must pick/confirm a slot
    CONFIRMED = 'confirmed'
    ACTIVE = 'active'                          # Goods are in the warehouse
    COMPLETED = 'completed'
    CANCELLED = 'cancelled'


TERMINAL_STATUSES = frozenset({BookingStatus.COMPLETED, BookingStatus.CANCELLED})


class ApprovalStatus(Enum):
    PENDING = 'pending'
    APPROVED = 'approved'
    REJECTED = 'rejected'


class ActorRole(Enum):
    CUSTOMER = 'customer'                # The customer the booking belongs to
    TEAM_ADMIN = 'team_admin'            # Team admin who booked on the customer's behalf
    WAREHOUSE_STAFF = 'warehouse_staff'  # Staff assigned to the booking's warehouse
    ADMIN = 'admin'                      # Platform administrator
    SYSTEM = 'system'                    # Background jobs and event handlers


@dataclass(frozen=True)
class Actor(ValueObject):
    """The user performing an action, resolved to a role for one booking"""
    user_id: UUID | None
    role: ActorRole
    name: str = ''

    @classmethod
    def system(cls) -> 'Actor':
        return cls(user_id=None, role=ActorRole.SYSTEM, name='system')


@dataclass(frozen=True)
class BookingServiceLine(ValueObject):
    """Add-on service attached to a booking; immutable once created"""
    service_id: str
    name: str
    pricing_type: ServicePricingType
    base_price: Money
    quantity: int
    calculated_price: Money


@dataclass(kw_only=True, eq=False)
class Booking(Aggregate):
    """
    Booking Aggregate Root

    A customer's reservation of warehouse space. Never instantiated
    directly: a booking is either a ``PalletBooking`` or an
    ``AreaRentalBooking``, so a pallet booking cannot carry an area and
    the other way round.

    Key invariants:
    - total_amount == base_storage_amount + services_amount, all >= 0
    - end_date, when present, is after start_date
    - status only changes through ``state_machine.apply_transition``
    """

    booking_type: ClassVar[BookingType]

    booking_number: str

    # References
    customer_id: UUID
    warehouse_id: UUID
    customer_name: str = ''
    customer_email: str = ''

    # Schedule
    start_date: date
    end_date: date | None = None
    months: int | None = None
    proposed_start_date: date | None = None
    proposed_start_time: time | None = None
    date_change_requested_at: datetime | None = None
    date_change_requested_by: UUID | None = None
    scheduled_dropoff_datetime: datetime | None = None
    time_slot_confirmed_at: datetime | None = None

    # Pricing, frozen at creation
    base_storage_amount: Money
    services_amount: Money = field(default_factory=Money.zero)
    total_amount: Money
    discount_amount: Money = field(default_factory=Money.zero)
    volume_discount_percent: Decimal = Decimal('0')
    membership_discount_percent: Decimal = Decimal('0')
    services: Tuple[BookingServiceLine, ...] = ()

    status: BookingStatus = BookingStatus.PENDING
    notes: str = ''

    # Delegation
    booked_by_id: UUID | None = None
    booked_on_behalf: bool = False
    requires_approval: bool = False
    approval_status: ApprovalStatus | None = None

    # Lifecycle stamps
    confirmed_at: datetime | None = None
    activated_at: datetime | None = None
    completed_at: datetime | None = None
    cancelled_at: datetime | None = None
    cancellation_reason: str = ''

    def __post_init__(self):
        if type(self) is Booking:
            raise TypeError("Create a PalletBooking or an AreaRentalBooking")
        if self.end_date is not None and self.end_date <= self.start_date:
            raise ValidationError("End date must be after start date", field='end_date')
        if self.total_amount != self.base_storage_amount + self.services_amount:
            raise ValidationError(
                f"Total amount {self.total_amount} does not equal storage "
                f"{self.base_storage_amount} plus services {self.services_amount}"
            )
        services_sum = Money.zero(self.services_amount.currency)
        for line in self.services:
            services_sum = services_sum + line.calculated_price
        if self.services and services_sum != self.services_amount:
            raise ValidationError("Services amount does not match the service lines")

    @property
    def total_days(self) -> int:
        """Stay length: end - start when an end date is known, else months x 30"""
        if self.end_date is not None:
            return (self.end_date - self.start_date).days
        return (self.months or 0) * DAYS_PER_MONTH

    @property
    def effective_end_date(self) -> date:
        return self.end_date or self.start_date + timedelta(days=self.total_days)

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    @property
    def currency(self) -> str:
        return self.total_amount.currency

    def __str__(self):
        return f"Booking {self.booking_number} ({self.status.value})"

    def __repr__(self):
        return (
            f"{self.__class__.__name__}(id={self.id}, booking_number={self.booking_number}, "
            f"status={self.status.value}, warehouse_id={self.warehouse_id})"
        )


@dataclass(kw_only=True, eq=False)
class PalletBooking(Booking):
    booking_type: ClassVar[BookingType] = BookingType.PALLET

    pallet_count: int

    def __post_init__(self):
        if not isinstance(self.pallet_count, int) or self.pallet_count <= 0:
            raise ValidationError("Pallet count is required for pallet bookings", field='pallet_count')
        super().__post_init__()


@dataclass(kw_only=True, eq=False)
class AreaRentalBooking(Booking):
    booking_type: ClassVar[BookingType] = BookingType.AREA_RENTAL

    area_sqft: Decimal
    floor_number: int | None = None
    hall_id: str = ''

    def __post_init__(self):
        if self.area_sqft is None or to_decimal(self.area_sqft) <= 0:
            raise ValidationError(
                "Area square footage is required for area rental bookings", field='area_sqft'
            )
        self.area_sqft = to_decimal(self.area_sqft)
        super().__post_init__()


@dataclass(kw_only=True, eq=False)
class BookingApproval(Aggregate):
    """
    Approval of a booking made on a customer's behalf

    Requested by a team admin, answered by the customer. Approved and
    rejected are terminal; an expired request can no longer be answered.
    """
    booking_id: UUID
    requested_by: UUID
    approver_id: UUID
    requested_by_name: str = ''
    status: ApprovalStatus = ApprovalStatus.PENDING
    request_message: str = ''
    response_message: str = ''
    responded_by: UUID | None = None
    responded_by_name: str = ''
    requested_at: datetime = field(default_factory=utcnow)
    responded_at: datetime | None = None
    expires_at: datetime | None = None

    def is_expired(self, now: datetime | None = None) -> bool:
        if self.expires_at is None:
            return False
        return (now or utcnow()) >= self.expires_at

    def _respond(self, decision: ApprovalStatus, actor: Actor, message: str, now: datetime | None):
        if self.status is not ApprovalStatus.PENDING:
            raise StateError(
                f"Approval has already been {self.status.value}",
                current_status=self.status.value,
                required_statuses=[ApprovalStatus.PENDING.value],
            )
        if self.is_expired(now):
            raise StateError(
                "Approval request has expired",
                current_status=self.status.value,
                required_statuses=[ApprovalStatus.PENDING.value],
            )
        self.status = decision
        self.responded_by = actor.user_id
        self.responded_by_name = actor.name
        self.response_message = message or ''
        self.responded_at = now or utcnow()
        self.touch()

    def approve(self, actor: Actor, message: str = '', now: datetime | None = None):
        from apps.bookings.domain.events import BookingApprovalApproved

        self._respond(ApprovalStatus.APPROVED, actor, message, now)
        self.add_event(BookingApprovalApproved(
            aggregate_id=self.booking_id,
            approval_id=self.id,
            booking_id=self.booking_id,
            requested_by=self.requested_by,
            responded_by=self.responded_by,
            response_message=self.response_message,
        ))

    def reject(self, actor: Actor, message: str = '', now: datetime | None = None):
        from apps.bookings.domain.events import BookingApprovalRejected

        self._respond(ApprovalStatus.REJECTED, actor, message, now)
        self.add_event(BookingApprovalRejected(
            aggregate_id=self.booking_id,
            approval_id=self.id,
            booking_id=self.booking_id,
            requested_by=self.requested_by,
            responded_by=self.responded_by,
            response_message=self.response_message,
        ))
