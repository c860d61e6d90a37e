"""Django repositories for the booking aggregates.

They translate between the ORM rows and the domain entities. Saving a
transitioned booking is a conditional update keyed on the status that
was read, so two concurrent transitions cannot both succeed.
"""

from __future__ import annotations

import logging
from decimal import Decimal
from uuid import UUID

from django.core.exceptions import ValidationError as DjangoValidationError  # type: ignore
from django.db import transaction  # type: ignore
from django.db.models import Sum  # type: ignore
from django.db.utils import NotSupportedError  # type: ignore

from shared.domain.value_objects import Money
from apps.bookings.domain.entities import (
    ApprovalStatus,
    AreaRentalBooking,
    Booking,
    BookingApproval,
    BookingServiceLine,
    BookingStatus,
    BookingType,
    PalletBooking,
)
from apps.bookings.domain.exceptions import NotFoundError, StateError
from apps.bookings.domain.pricing import ServicePricingType

from . import models

logger = logging.getLogger(__name__)


def _lock_queryset_if_possible(queryset):
    """Apply select_for_update when inside transaction.atomic()."""

    if not transaction.get_connection().in_atomic_block:
        return queryset

    try:
        return queryset.select_for_update()
    except NotSupportedError:
        return queryset


def booking_to_entity(row: models.Booking) -> Booking:
    currency = row.currency
    services = tuple(
        BookingServiceLine(
            service_id=str(line.service_id) if line.service_id else '',
            name=line.service_name,
            pricing_type=ServicePricingType(line.pricing_type),
            base_price=Money(line.base_price, currency),
            quantity=line.quantity,
            calculated_price=Money(line.calculated_price, currency),
        )
        for line in row.services.all()
    )
    common = dict(
        id=row.id,
        created_at=row.created_at,
        updated_at=row.updated_at,
        booking_number=row.booking_number,
        customer_id=row.customer_id,
        customer_name=row.customer_name,
        customer_email=row.customer_email,
        warehouse_id=row.warehouse_id,
        start_date=row.start_date,
        end_date=row.end_date,
        months=row.months,
        proposed_start_date=row.proposed_start_date,
        proposed_start_time=row.proposed_start_time,
        date_change_requested_at=row.date_change_requested_at,
        date_change_requested_by=row.date_change_requested_by_id,
        scheduled_dropoff_datetime=row.scheduled_dropoff_datetime,
        time_slot_confirmed_at=row.time_slot_confirmed_at,
        base_storage_amount=Money(row.base_storage_amount, currency),
        services_amount=Money(row.services_amount, currency),
        total_amount=Money(row.total_amount, currency),
        discount_amount=Money(row.discount_amount, currency),
        volume_discount_percent=row.volume_discount_percent,
        membership_discount_percent=row.membership_discount_percent,
        services=services,
        status=BookingStatus(row.status),
        notes=row.notes,
        booked_by_id=row.booked_by_id,
        booked_on_behalf=row.booked_on_behalf,
        requires_approval=row.requires_approval,
        approval_status=ApprovalStatus(row.approval_status) if row.approval_status else None,
        confirmed_at=row.confirmed_at,
        activated_at=row.activated_at,
        completed_at=row.completed_at,
        cancelled_at=row.cancelled_at,
        cancellation_reason=row.cancellation_reason,
    )
    if row.booking_type == BookingType.PALLET.value:
        return PalletBooking(pallet_count=row.pallet_count, **common)
    return AreaRentalBooking(
        area_sqft=row.area_sqft,
        floor_number=row.floor_number,
        hall_id=row.hall_id,
        **common,
    )


def _mutable_fields(booking: Booking) -> dict:
    """Columns a transition or approval response may change"""
    return {
        'status': booking.status.value,
        'proposed_start_date': booking.proposed_start_date,
        'proposed_start_time': booking.proposed_start_time,
        'date_change_requested_at': booking.date_change_requested_at,
        'date_change_requested_by_id': booking.date_change_requested_by,
        'scheduled_dropoff_datetime': booking.scheduled_dropoff_datetime,
        'time_slot_confirmed_at': booking.time_slot_confirmed_at,
        'requires_approval': booking.requires_approval,
        'approval_status': booking.approval_status.value if booking.approval_status else '',
        'confirmed_at': booking.confirmed_at,
        'activated_at': booking.activated_at,
        'completed_at': booking.completed_at,
        'cancelled_at': booking.cancelled_at,
        'cancellation_reason': booking.cancellation_reason,
        'updated_at': booking.updated_at,
    }


class DjangoBookingRepository:
    def get_by_id(self, booking_id: UUID, lock: bool = False) -> Booking:
        queryset = models.Booking.objects.all()
        if lock:
            queryset = _lock_queryset_if_possible(queryset)
        try:
            row = queryset.get(pk=booking_id)
        except (models.Booking.DoesNotExist, DjangoValidationError):
            raise NotFoundError("Booking", booking_id) from None
        return booking_to_entity(row)

    @transaction.atomic
    def add(self, booking: Booking) -> None:
        is_pallet = booking.booking_type is BookingType.PALLET
        row = models.Booking(
            id=booking.id,
            booking_number=booking.booking_number,
            booking_type=booking.booking_type.value,
            customer_id=booking.customer_id,
            customer_name=booking.customer_name,
            customer_email=booking.customer_email,
            warehouse_id=booking.warehouse_id,
            pallet_count=booking.pallet_count if is_pallet else None,
            area_sqft=None if is_pallet else booking.area_sqft,
            floor_number=None if is_pallet else booking.floor_number,
            hall_id='' if is_pallet else booking.hall_id,
            start_date=booking.start_date,
            end_date=booking.end_date,
            months=booking.months,
            base_storage_amount=booking.base_storage_amount.amount,
            services_amount=booking.services_amount.amount,
            total_amount=booking.total_amount.amount,
            discount_amount=booking.discount_amount.amount,
            volume_discount_percent=booking.volume_discount_percent,
            membership_discount_percent=booking.membership_discount_percent,
            currency=booking.currency,
            notes=booking.notes,
            booked_by_id=booking.booked_by_id,
            booked_on_behalf=booking.booked_on_behalf,
            created_at=booking.created_at,
            **_mutable_fields(booking),
        )
        row.save(force_insert=True)
        models.BookingService.objects.bulk_create([
            models.BookingService(
                booking=row,
                service_id=line.service_id or None,
                service_name=line.name,
                pricing_type=line.pricing_type.value,
                base_price=line.base_price.amount,
                quantity=line.quantity,
                calculated_price=line.calculated_price.amount,
            )
            for line in booking.services
        ])

    def save(self, booking: Booking, expected_status: BookingStatus) -> None:
        """
        Write back a changed booking if nobody changed its status meanwhile

        Raises:
            StateError: The stored status is no longer ``expected_status``
            NotFoundError: The booking is gone
        """
        updated = models.Booking.objects.filter(
            pk=booking.id,
            status=expected_status.value,
        ).update(**_mutable_fields(booking))
        if updated:
            return

        current = models.Booking.objects.filter(pk=booking.id).values_list('status', flat=True).first()
        if current is None:
            raise NotFoundError("Booking", booking.id)
        logger.warning(
            f"Concurrent update on booking {booking.booking_number}: "
            f"expected {expected_status.value}, found {current}"
        )
        raise StateError(
            f"Booking was changed by another request (current status: {current})",
            current_status=current,
            required_statuses=[expected_status.value],
        )

    def existing_pallet_count(self, customer_id: UUID) -> int:
        """Pallets the customer already stores (active pallet bookings)"""
        total = models.Booking.objects.filter(
            customer_id=customer_id,
            booking_type=BookingType.PALLET.value,
            status=BookingStatus.ACTIVE.value,
        ).aggregate(total=Sum('pallet_count'))['total']
        return int(total or 0)


def approval_to_entity(row: models.BookingApproval) -> BookingApproval:
    return BookingApproval(
        id=row.id,
        created_at=row.created_at,
        updated_at=row.updated_at,
        booking_id=row.booking_id,
        requested_by=row.requested_by_id,
        requested_by_name=row.requested_by_name,
        approver_id=row.approver_id,
        status=ApprovalStatus(row.status),
        request_message=row.request_message,
        response_message=row.response_message,
        responded_by=row.responded_by_id,
        responded_by_name=row.responded_by_name,
        requested_at=row.requested_at,
        responded_at=row.responded_at,
        expires_at=row.expires_at,
    )


class DjangoApprovalRepository:
    def get_by_id(self, approval_id: UUID, lock: bool = False) -> BookingApproval:
        queryset = models.BookingApproval.objects.all()
        if lock:
            queryset = _lock_queryset_if_possible(queryset)
        try:
            return approval_to_entity(queryset.get(pk=approval_id))
        except (models.BookingApproval.DoesNotExist, DjangoValidationError):
            raise NotFoundError("Approval", approval_id) from None

    def get_for_booking(self, booking_id: UUID) -> BookingApproval | None:
        row = models.BookingApproval.objects.filter(booking_id=booking_id).first()
        return approval_to_entity(row) if row else None

    def add(self, approval: BookingApproval) -> None:
        models.BookingApproval.objects.create(
            id=approval.id,
            booking_id=approval.booking_id,
            requested_by_id=approval.requested_by,
            requested_by_name=approval.requested_by_name,
            approver_id=approval.approver_id,
            status=approval.status.value,
            request_message=approval.request_message,
            requested_at=approval.requested_at,
            expires_at=approval.expires_at,
            created_at=approval.created_at,
            updated_at=approval.updated_at,
        )

    def save(self, approval: BookingApproval) -> None:
        models.BookingApproval.objects.filter(pk=approval.id).update(
            status=approval.status.value,
            response_message=approval.response_message,
            responded_by_id=approval.responded_by,
            responded_by_name=approval.responded_by_name,
            responded_at=approval.responded_at,
            updated_at=approval.updated_at,
        )

    def list_for_approver(self, user_id: UUID, status: ApprovalStatus | None = None) -> list[BookingApproval]:
        queryset = models.BookingApproval.objects.filter(approver_id=user_id)
        if status is not None:
            queryset = queryset.filter(status=status.value)
        return [approval_to_entity(row) for row in queryset]

    def list_requested_by(self, user_id: UUID, status: ApprovalStatus | None = None) -> list[BookingApproval]:
        queryset = models.BookingApproval.objects.filter(requested_by_id=user_id)
        if status is not None:
            queryset = queryset.filter(status=status.value)
        return [approval_to_entity(row) for row in queryset]
