"""
Booking Command Handlers

These are the use cases for the booking domain.
They orchestrate domain operations within transactions.

Commands:
- PriceBookingCommand: Quote a booking request without saving anything
- CreateBookingCommand: Create a booking, for oneself or on someone's behalf
- TransitionBookingCommand: Move a booking through the state machine

Collaborators are injected so the handlers run against Django in
production and in-memory fakes in tests:
- booking_repo: get_by_id(id, lock), add(booking), save(booking, expected_status),
  existing_pallet_count(customer_id)
- approval_repo: get_for_booking(booking_id), add(approval)
- warehouses: exists(id), get_pricing(id), get_free_storage_rules(id),
  get_services(id, service_ids), has_warehouse_access(user_id, warehouse_id)
- customers: get_customer(id), is_team_admin_for(booker_id, customer_id)
"""

from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Callable, Dict, List, Optional, Sequence, Tuple
from uuid import UUID, uuid4
import logging

from shared.application.uow import DjangoUnitOfWork
from shared.domain.base import utcnow
from shared.domain.value_objects import Money, to_decimal
from apps.bookings.domain.entities import (
    Actor,
    ActorRole,
    ApprovalStatus,
    AreaRentalBooking,
    Booking,
    BookingApproval,
    BookingServiceLine,
    BookingStatus,
    BookingType,
    PalletBooking,
)
from apps.bookings.domain.events import ApprovalRequested, BookingCreated
from apps.bookings.domain.exceptions import AuthorizationError, NotFoundError, ValidationError
from apps.bookings.domain.pricing import (
    DAYS_PER_MONTH,
    MembershipTier,
    PricingConfig,
    PricingResult,
    ServiceLine,
    ServiceSelection,
    calculate_area_rental_pricing,
    calculate_pallet_pricing,
    calculate_services,
)
from apps.bookings.domain.state_machine import TRANSITIONS, BookingAction, apply_transition

logger = logging.getLogger(__name__)


# ===== Identities =====

@dataclass(frozen=True)
class Requester:
    """Authenticated user behind a request; roles are resolved per booking"""
    user_id: UUID
    name: str = ''
    is_admin: bool = False


@dataclass(frozen=True)
class CustomerInfo:
    id: UUID
    name: str = ''
    email: str = ''
    membership_tier: Optional[MembershipTier] = None


def resolve_actor(booking: Booking, requester: Requester, warehouses, action: BookingAction | None = None) -> Actor:
    """
    Work out which role a user plays for one booking

    A user can hold several (e.g. the customer is also warehouse staff);
    the first one the action accepts wins. Users with no relation to the
    booking are refused outright.
    """
    if requester.user_id is None:
        raise AuthorizationError("Authentication is required")

    candidates: List[ActorRole] = []
    if requester.is_admin:
        candidates.append(ActorRole.ADMIN)
    if requester.user_id == booking.customer_id:
        candidates.append(ActorRole.CUSTOMER)
    if booking.booked_on_behalf and requester.user_id == booking.booked_by_id:
        candidates.append(ActorRole.TEAM_ADMIN)
    if warehouses.has_warehouse_access(requester.user_id, booking.warehouse_id):
        candidates.append(ActorRole.WAREHOUSE_STAFF)

    if not candidates:
        raise AuthorizationError("You do not have access to this booking")

    role = candidates[0]
    if action is not None:
        allowed = TRANSITIONS[action].roles
        role = next((candidate for candidate in candidates if candidate in allowed), candidates[0])
    return Actor(user_id=requester.user_id, role=role, name=requester.name)


# ===== Commands =====

@dataclass(frozen=True)
class ServiceRequest:
    service_id: str
    quantity: int = 1


@dataclass
class PriceBookingCommand:
    """
    A booking request as submitted by the customer (or a team admin)

    Pallet bookings need ``pallet_count``, area rentals ``area_sqft``.
    The stay runs from ``start_date`` to ``end_date``, or for ``months``
    30-day months when no end date is given.
    """
    customer_id: UUID
    warehouse_id: UUID
    booking_type: BookingType
    start_date: date
    end_date: Optional[date] = None
    months: Optional[int] = None
    pallet_count: Optional[int] = None
    area_sqft: Optional[Decimal] = None
    floor_number: Optional[int] = None
    hall_id: str = ''
    services: Sequence[ServiceRequest] = ()
    notes: str = ''
    requested_by: Optional[Requester] = None


@dataclass
class CreateBookingCommand(PriceBookingCommand):
    requires_approval: bool = False
    approval_message: str = ''


@dataclass
class TransitionBookingCommand:
    booking_id: UUID
    action: BookingAction
    requested_by: Requester
    payload: Dict = field(default_factory=dict)


@dataclass(frozen=True)
class BookingQuote:
    """What a request costs: storage pricing plus add-on services"""
    pricing: PricingResult
    services: Tuple[ServiceLine, ...]
    base_storage_amount: Decimal
    services_amount: Decimal
    total_amount: Decimal
    currency: str
    existing_pallet_count: int = 0


# ===== Shared pricing =====

def stay_days(start_date: date, end_date: Optional[date], months: Optional[int]) -> int:
    if start_date is None:
        raise ValidationError("Start date is required", field='start_date')
    if end_date is not None:
        if end_date <= start_date:
            raise ValidationError("End date must be after start date", field='end_date')
        return (end_date - start_date).days
    if months is None or months <= 0:
        raise ValidationError("Either an end date or a number of months is required", field='end_date')
    return months * DAYS_PER_MONTH


class BookingPricer:
    """Prices a request against the warehouse's published prices and rules"""

    def __init__(self, warehouses, customers, config_provider: Callable[[], PricingConfig] | None = None):
        self.warehouses = warehouses
        self.customers = customers
        self.config_provider = config_provider or PricingConfig

    def quote(self, command: PriceBookingCommand, existing_pallet_count: int = 0) -> BookingQuote:
        if not self.warehouses.exists(command.warehouse_id):
            raise NotFoundError('Warehouse', command.warehouse_id)
        customer = self.customers.get_customer(command.customer_id)
        config = self.config_provider()

        total_days = stay_days(command.start_date, command.end_date, command.months)
        # Both lookups fall back to platform defaults when the store fails
        table = self.warehouses.get_pricing(command.warehouse_id)
        rules = self.warehouses.get_free_storage_rules(command.warehouse_id)

        booking_type = BookingType(command.booking_type)
        if booking_type is BookingType.PALLET:
            if command.area_sqft is not None:
                raise ValidationError("Pallet bookings cannot specify an area", field='area_sqft')
            pricing = calculate_pallet_pricing(
                command.pallet_count,
                total_days,
                membership_tier=customer.membership_tier,
                existing_pallet_count=existing_pallet_count,
                pricing_table=table,
                free_storage_rules=rules,
                config=config,
            )
        else:
            if command.pallet_count is not None:
                raise ValidationError("Area rentals cannot specify a pallet count", field='pallet_count')
            pricing = calculate_area_rental_pricing(
                command.area_sqft,
                total_days,
                membership_tier=customer.membership_tier,
                pricing_table=table,
                free_storage_rules=rules,
                config=config,
            )

        selections = self._service_selections(command)
        service_lines, services_amount = calculate_services(
            selections,
            command.pallet_count if booking_type is BookingType.PALLET else None,
            command.area_sqft if booking_type is BookingType.AREA_RENTAL else None,
            pricing.billable_days,
        )
        base_amount = pricing.final_amount
        return BookingQuote(
            pricing=pricing,
            services=service_lines,
            base_storage_amount=base_amount,
            services_amount=services_amount,
            total_amount=base_amount + services_amount,
            currency=config.currency,
            existing_pallet_count=existing_pallet_count,
        )

    def _service_selections(self, command: PriceBookingCommand) -> List[ServiceSelection]:
        if not command.services:
            return []
        quantities: Dict[str, int] = {}
        for requested in command.services:
            quantities[str(requested.service_id)] = quantities.get(str(requested.service_id), 0) + requested.quantity

        catalogue = {
            str(service.service_id): service
            for service in self.warehouses.get_services(command.warehouse_id, list(quantities))
        }
        missing = [service_id for service_id in quantities if service_id not in catalogue]
        if missing:
            raise ValidationError(
                f"Services not offered by this warehouse: {', '.join(missing)}", field='services'
            )
        return [
            ServiceSelection(
                service_id=service_id,
                name=catalogue[service_id].name,
                pricing_type=catalogue[service_id].pricing_type,
                base_price=catalogue[service_id].base_price,
                quantity=quantity,
            )
            for service_id, quantity in quantities.items()
        ]


# ===== Command Handlers =====

def authorize_booking_for(requester: Optional[Requester], customer_id: UUID, customers) -> bool:
    """
    Check that the requester may book (or price a booking) for the customer

    Returns True when the booking is made on the customer's behalf.
    """
    if requester is None:
        raise AuthorizationError("Authentication is required")
    on_behalf = requester.user_id != customer_id
    if on_behalf and not (requester.is_admin or customers.is_team_admin_for(requester.user_id, customer_id)):
        raise AuthorizationError("Only a team admin can book on behalf of a team member")
    return on_behalf


class PriceBookingHandler:
    """Handler for quoting a request; nothing is written"""

    def __init__(self, booking_repo, warehouses, customers, config_provider=None):
        self.booking_repo = booking_repo
        self.customers = customers
        self.pricer = BookingPricer(warehouses, customers, config_provider)

    def handle(self, command: PriceBookingCommand) -> BookingQuote:
        authorize_booking_for(command.requested_by, command.customer_id, self.customers)
        existing = 0
        if BookingType(command.booking_type) is BookingType.PALLET:
            existing = self.booking_repo.existing_pallet_count(command.customer_id)
        return self.pricer.quote(command, existing_pallet_count=existing)


class CreateBookingHandler:
    """
    Handler for CreateBooking command

    1. Check who is booking: the customer, or a team admin on their behalf
    2. Price the request (volume discount counts the customer's active pallets)
    3. Build the PalletBooking / AreaRentalBooking in ``pending``
    4. Create a pending approval when the on-behalf booking needs one
    5. Save everything in one unit of work; events go out after commit
    """

    def __init__(
        self,
        booking_repo,
        approval_repo,
        warehouses,
        customers,
        config_provider=None,
        uow_factory=DjangoUnitOfWork,
        approval_ttl: timedelta | None = None,
    ):
        self.booking_repo = booking_repo
        self.approval_repo = approval_repo
        self.warehouses = warehouses
        self.customers = customers
        self.pricer = BookingPricer(warehouses, customers, config_provider)
        self.uow_factory = uow_factory
        self.approval_ttl = approval_ttl

    def handle(self, command: CreateBookingCommand) -> Booking:
        requester = command.requested_by
        on_behalf = authorize_booking_for(requester, command.customer_id, self.customers)
        if command.requires_approval and not on_behalf:
            raise ValidationError("Only on-behalf bookings can require approval", field='requires_approval')

        logger.info(
            f"Creating {BookingType(command.booking_type).value} booking for customer {command.customer_id} "
            f"at warehouse {command.warehouse_id} (requested by {requester.user_id})"
        )

        customer = self.customers.get_customer(command.customer_id)

        with self.uow_factory() as uow:
            existing = 0
            if BookingType(command.booking_type) is BookingType.PALLET:
                existing = self.booking_repo.existing_pallet_count(command.customer_id)
            quote = self.pricer.quote(command, existing_pallet_count=existing)

            booking = self._build_booking(command, customer, quote, requester, on_behalf)
            booking.add_event(BookingCreated(
                aggregate_id=booking.id,
                booking_id=booking.id,
                booking_number=booking.booking_number,
                booking_type=booking.booking_type.value,
                customer_id=booking.customer_id,
                warehouse_id=booking.warehouse_id,
                total_amount=booking.total_amount,
                booked_by_id=booking.booked_by_id,
                booked_on_behalf=booking.booked_on_behalf,
            ))
            self.booking_repo.add(booking)

            if command.requires_approval:
                approval = new_approval(booking, requester, command.approval_message, self.approval_ttl)
                self.approval_repo.add(approval)
                uow.collect_events(approval)

            uow.collect_events(booking)

        logger.info(
            f"Booking created successfully: {booking.booking_number} "
            f"(ID: {booking.id}, total {booking.total_amount})"
        )
        return booking

    def _build_booking(
        self,
        command: CreateBookingCommand,
        customer: CustomerInfo,
        quote: BookingQuote,
        requester: Requester,
        on_behalf: bool,
    ) -> Booking:
        currency = quote.currency
        services = tuple(
            BookingServiceLine(
                service_id=line.service_id,
                name=line.name,
                pricing_type=line.pricing_type,
                base_price=Money(line.base_price, currency),
                quantity=line.quantity,
                calculated_price=Money(line.calculated_price, currency),
            )
            for line in quote.services
        )
        common = dict(
            booking_number=self._generate_booking_number(),
            customer_id=customer.id,
            customer_name=customer.name,
            customer_email=customer.email,
            warehouse_id=command.warehouse_id,
            start_date=command.start_date,
            end_date=command.end_date,
            months=command.months if command.end_date is None else None,
            base_storage_amount=Money(quote.base_storage_amount, currency),
            services_amount=Money(quote.services_amount, currency),
            total_amount=Money(quote.total_amount, currency),
            discount_amount=Money(quote.pricing.total_discount, currency),
            volume_discount_percent=quote.pricing.volume_discount_percent,
            membership_discount_percent=quote.pricing.membership_discount_percent,
            services=services,
            status=BookingStatus.PENDING,
            notes=command.notes,
            booked_by_id=requester.user_id,
            booked_on_behalf=on_behalf,
            requires_approval=command.requires_approval,
            approval_status=ApprovalStatus.PENDING if command.requires_approval else None,
        )
        if BookingType(command.booking_type) is BookingType.PALLET:
            return PalletBooking(pallet_count=command.pallet_count, **common)
        return AreaRentalBooking(
            area_sqft=to_decimal(command.area_sqft),
            floor_number=command.floor_number,
            hall_id=command.hall_id,
            **common,
        )

    def _generate_booking_number(self) -> str:
        """Generate unique booking number: BK{timestamp}{random}"""
        timestamp = utcnow().strftime('%Y%m%d%H%M%S')
        random_part = uuid4().hex[:6].upper()
        return f"BK{timestamp}{random_part}"


def new_approval(
    booking: Booking,
    requester: Requester,
    message: str = '',
    ttl: timedelta | None = None,
    now: datetime | None = None,
) -> BookingApproval:
    """Pending approval addressed to the customer the booking was made for"""
    now = now or utcnow()
    approval = BookingApproval(
        booking_id=booking.id,
        requested_by=requester.user_id,
        requested_by_name=requester.name,
        approver_id=booking.customer_id,
        request_message=message or '',
        requested_at=now,
        expires_at=now + ttl if ttl else None,
    )
    approval.add_event(ApprovalRequested(
        aggregate_id=booking.id,
        approval_id=approval.id,
        booking_id=booking.id,
        requested_by=requester.user_id,
        approver_id=booking.customer_id,
        request_message=approval.request_message,
    ))
    return approval


class TransitionBookingHandler:
    """
    Handler for every status change

    Reads the booking under lock, resolves the requester's role, lets the
    state machine produce the new booking and saves it only if the
    status is still the one that was read.
    """

    def __init__(self, booking_repo, warehouses, uow_factory=DjangoUnitOfWork):
        self.booking_repo = booking_repo
        self.warehouses = warehouses
        self.uow_factory = uow_factory

    def handle(self, command: TransitionBookingCommand) -> Booking:
        action = BookingAction(command.action)
        logger.info(f"Transition {action.value} requested for booking {command.booking_id}")

        with self.uow_factory() as uow:
            booking = self.booking_repo.get_by_id(command.booking_id, lock=True)
            actor = resolve_actor(booking, command.requested_by, self.warehouses, action)
            updated = apply_transition(booking, action, actor, **(command.payload or {}))
            self.booking_repo.save(updated, expected_status=booking.status)
            uow.collect_events(updated)

        return updated

    def handle_as_system(self, booking_id: UUID, action: BookingAction, **payload) -> Booking:
        """Transition driven by a background job rather than a user"""
        with self.uow_factory() as uow:
            booking = self.booking_repo.get_by_id(booking_id, lock=True)
            updated = apply_transition(booking, action, Actor.system(), **payload)
            self.booking_repo.save(updated, expected_status=booking.status)
            uow.collect_events(updated)
        return updated
