"""In-memory collaborators for exercising the booking handlers without a database."""

from __future__ import annotations

import copy
from datetime import date, datetime, time, timedelta, timezone
from decimal import Decimal
from uuid import UUID, uuid4

from shared.application.message_bus import MessageBus
from shared.application.uow import InMemoryUnitOfWork
from shared.domain.value_objects import Money
from apps.bookings.application.command_handlers import CustomerInfo
from apps.bookings.application.time_slots import TimeSlot
from apps.bookings.domain.entities import (
    ApprovalStatus,
    AreaRentalBooking,
    BookingStatus,
    BookingType,
    PalletBooking,
)
from apps.bookings.domain.exceptions import NotFoundError, StateError, UpstreamError


def _stored(aggregate):
    kept = copy.deepcopy(aggregate)
    kept.clear_events()
    return kept


class InMemoryBookingRepository:
    def __init__(self, bookings=()):
        self._bookings = {}
        for booking in bookings:
            self._bookings[booking.id] = _stored(booking)

    def get_by_id(self, booking_id: UUID, lock: bool = False):
        try:
            return copy.deepcopy(self._bookings[booking_id])
        except KeyError:
            raise NotFoundError("Booking", booking_id) from None

    def add(self, booking) -> None:
        self._bookings[booking.id] = _stored(booking)

    def save(self, booking, expected_status: BookingStatus) -> None:
        current = self._bookings.get(booking.id)
        if current is None:
            raise NotFoundError("Booking", booking.id)
        if current.status is not expected_status:
            raise StateError(
                f"Booking was changed by another request (current status: {current.status.value})",
                current_status=current.status.value,
                required_statuses=[expected_status.value],
            )
        self._bookings[booking.id] = _stored(booking)

    def existing_pallet_count(self, customer_id: UUID) -> int:
        return sum(
            booking.pallet_count
            for booking in self._bookings.values()
            if booking.customer_id == customer_id
            and booking.booking_type is BookingType.PALLET
            and booking.status is BookingStatus.ACTIVE
        )

    def stored(self, booking_id: UUID):
        """The stored booking itself, for assertions"""
        return self._bookings[booking_id]

    def all(self):
        return list(self._bookings.values())


class InMemoryApprovalRepository:
    def __init__(self):
        self._approvals = {}

    def get_by_id(self, approval_id: UUID, lock: bool = False):
        try:
            return copy.deepcopy(self._approvals[approval_id])
        except KeyError:
            raise NotFoundError("Approval", approval_id) from None

    def get_for_booking(self, booking_id: UUID):
        for approval in self._approvals.values():
            if approval.booking_id == booking_id:
                return copy.deepcopy(approval)
        return None

    def add(self, approval) -> None:
        self._approvals[approval.id] = _stored(approval)

    def save(self, approval) -> None:
        if approval.id not in self._approvals:
            raise NotFoundError("Approval", approval.id)
        self._approvals[approval.id] = _stored(approval)

    def list_for_approver(self, user_id: UUID, status: ApprovalStatus | None = None):
        return [
            copy.deepcopy(approval)
            for approval in self._approvals.values()
            if approval.approver_id == user_id and (status is None or approval.status is status)
        ]

    def list_requested_by(self, user_id: UUID, status: ApprovalStatus | None = None):
        return [
            copy.deepcopy(approval)
            for approval in self._approvals.values()
            if approval.requested_by == user_id and (status is None or approval.status is status)
        ]


class FakeWarehouses:
    def __init__(self, warehouse_id: UUID, pricing=None, rules=None, services=(), staff=()):
        self.warehouse_id = warehouse_id
        self.pricing = pricing
        self.rules = rules or []
        self.services = {service.service_id: service for service in services}
        self.staff = set(staff)

    def exists(self, warehouse_id: UUID) -> bool:
        return warehouse_id == self.warehouse_id

    def get_pricing(self, warehouse_id: UUID):
        return self.pricing

    def get_free_storage_rules(self, warehouse_id: UUID):
        return self.rules

    def get_services(self, warehouse_id: UUID, service_ids):
        return [self.services[service_id] for service_id in service_ids if service_id in self.services]

    def has_warehouse_access(self, user_id: UUID, warehouse_id: UUID) -> bool:
        return warehouse_id == self.warehouse_id and user_id in self.staff


class FakeCustomers:
    def __init__(self, customers=(), team_admins=None):
        self.customers = {customer.id: customer for customer in customers}
        # booker id -> customer ids they may book for
        self.team_admins = team_admins or {}

    def get_customer(self, customer_id: UUID) -> CustomerInfo:
        try:
            return self.customers[customer_id]
        except KeyError:
            raise NotFoundError("Customer", customer_id) from None

    def is_team_admin_for(self, booker_id: UUID, customer_id: UUID) -> bool:
        return customer_id in self.team_admins.get(booker_id, set())


class FakeAvailability:
    """Half-hour slots from 08:00 to 12:00; ``taken`` start times are unavailable"""

    def __init__(self, taken=(), fail: bool = False):
        self.taken = set(taken)
        self.fail = fail
        self.calls = []

    def get_available_slots(self, warehouse_id: UUID, day: date, exclude_booking_id=None):
        self.calls.append((warehouse_id, day, exclude_booking_id))
        if self.fail:
            raise UpstreamError("Availability service is unavailable")
        start = datetime.combine(day, time(8, 0), tzinfo=timezone.utc)
        slots = []
        for step in range(8):
            slot_start = start + timedelta(minutes=30 * step)
            slots.append(TimeSlot(
                start=slot_start,
                end=slot_start + timedelta(minutes=30),
                available=slot_start not in self.taken,
            ))
        return slots


def uow_factory(bus: MessageBus | None = None):
    bus = bus or MessageBus()
    return lambda: InMemoryUnitOfWork(bus=bus)


def customer(name: str = "Acme Logistics", tier=None) -> CustomerInfo:
    return CustomerInfo(id=uuid4(), name=name, email=f"{name.split()[0].lower()}@example.com", membership_tier=tier)


def pallet_booking(
    customer_id: UUID,
    warehouse_id: UUID,
    status: BookingStatus = BookingStatus.PENDING,
    pallet_count: int = 10,
    **overrides,
) -> PalletBooking:
    fields = dict(
        booking_number=f"BK{uuid4().hex[:10].upper()}",
        customer_id=customer_id,
        warehouse_id=warehouse_id,
        start_date=date(2026, 3, 2),
        end_date=date(2026, 4, 1),
        base_storage_amount=Money(Decimal('225.00')),
        total_amount=Money(Decimal('225.00')),
        status=status,
        pallet_count=pallet_count,
    )
    fields.update(overrides)
    return PalletBooking(**fields)


def area_booking(customer_id: UUID, warehouse_id: UUID, **overrides) -> AreaRentalBooking:
    fields = dict(
        booking_number=f"BK{uuid4().hex[:10].upper()}",
        customer_id=customer_id,
        warehouse_id=warehouse_id,
        start_date=date(2026, 3, 2),
        months=12,
        base_storage_amount=Money(Decimal('800000.00')),
        total_amount=Money(Decimal('800000.00')),
        area_sqft=Decimal('40000'),
    )
    fields.update(overrides)
    return AreaRentalBooking(**fields)
