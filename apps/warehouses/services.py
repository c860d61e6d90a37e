"""Warehouse gateways consumed by the booking core.

``DjangoWarehouseGateway`` answers pricing, free-storage, service catalogue
and staff-access questions. Pricing lookups are allowed to fail: the
booking is then priced with platform defaults. ``DjangoAvailabilityService``
lists drop-off slots and has no safe fallback, so its failures surface
as ``UpstreamError``.
"""

from __future__ import annotations

import logging
from datetime import date
from uuid import UUID

from django.conf import settings  # type: ignore
from django.core.exceptions import ValidationError as DjangoValidationError  # type: ignore
from django.db import DatabaseError  # type: ignore
from django.utils import timezone  # type: ignore

from apps.bookings.application.time_slots import TimeSlot
from apps.bookings.domain.entities import BookingStatus
from apps.bookings.domain.exceptions import NotFoundError, UpstreamError
from apps.bookings.domain.pricing import PricingTable, ServicePricingType, ServiceSelection
from apps.users.models import CustomUser

from .availability import acceptance_window, generate_slots, is_working_day, parse_time
from .models import Warehouse, WarehousePricing, WarehouseService, WarehouseStaffAssignment

logger = logging.getLogger(__name__)

# Bookings on these statuses block their whole start date
DAY_BLOCKING_STATUSES = (BookingStatus.CONFIRMED.value, BookingStatus.ACTIVE.value)


def _valid_uuids(values) -> list[UUID]:
    result = []
    for value in values:
        try:
            result.append(value if isinstance(value, UUID) else UUID(str(value)))
        except ValueError:
            continue
    return result


class DjangoWarehouseGateway:
    def exists(self, warehouse_id: UUID) -> bool:
        try:
            return Warehouse.objects.filter(pk=warehouse_id, status=Warehouse.Status.ACTIVE).exists()
        except DjangoValidationError:
            return False
        except DatabaseError as e:
            raise UpstreamError("Warehouse directory is temporarily unavailable") from e

    def get_pricing(self, warehouse_id: UUID) -> PricingTable | None:
        """Published prices, or None (platform defaults) when missing or unreadable"""
        try:
            pricing = WarehousePricing.objects.filter(warehouse_id=warehouse_id).first()
        except DatabaseError as e:
            logger.warning(f"Pricing lookup failed for warehouse {warehouse_id}, using defaults: {e}")
            return None
        if pricing is None:
            logger.debug(f"Warehouse {warehouse_id} publishes no pricing, using defaults")
            return None
        try:
            return pricing.to_pricing_table()
        except (TypeError, ValueError, ArithmeticError) as e:
            logger.warning(f"Unreadable pricing for warehouse {warehouse_id}, using defaults: {e}")
            return None

    def get_free_storage_rules(self, warehouse_id: UUID) -> list:
        try:
            rules = Warehouse.objects.filter(pk=warehouse_id).values_list("free_storage_rules", flat=True).first()
        except DatabaseError as e:
            logger.warning(f"Free-storage rules lookup failed for warehouse {warehouse_id}: {e}")
            return []
        return rules or []

    def get_services(self, warehouse_id: UUID, service_ids) -> list[ServiceSelection]:
        services = WarehouseService.objects.filter(
            warehouse_id=warehouse_id,
            is_active=True,
            pk__in=_valid_uuids(service_ids),
        )
        return [
            ServiceSelection(
                service_id=str(service.pk),
                name=service.name,
                pricing_type=ServicePricingType(service.pricing_type),
                base_price=service.base_price,
            )
            for service in services
        ]

    def has_warehouse_access(self, user_id: UUID, warehouse_id: UUID) -> bool:
        """Active assignment of an active staff member (or platform admin) to the warehouse"""
        return WarehouseStaffAssignment.objects.filter(
            user_id=user_id,
            warehouse_id=warehouse_id,
            is_active=True,
            user__is_active=True,
            user__role__in=[CustomUser.RoleChoices.WAREHOUSE_STAFF, CustomUser.RoleChoices.ADMIN],
        ).exists()


class DjangoAvailabilityService:
    def get_available_slots(self, warehouse_id: UUID, day: date, exclude_booking_id: UUID | None = None) -> list[TimeSlot]:
        from apps.bookings.models import Booking

        try:
            warehouse = Warehouse.objects.get(pk=warehouse_id)
        except (Warehouse.DoesNotExist, DjangoValidationError):
            raise NotFoundError("Warehouse", warehouse_id) from None
        except DatabaseError as e:
            raise UpstreamError("Availability is temporarily unavailable") from e

        if not is_working_day(day, warehouse.working_days):
            return []

        window_start, window_end = acceptance_window(
            warehouse.product_acceptance_start_time,
            warehouse.product_acceptance_end_time,
            warehouse.operating_hours,
            parse_time(settings.BOOKING_DEFAULT_ACCEPTANCE_START),
            parse_time(settings.BOOKING_DEFAULT_ACCEPTANCE_END),
        )

        try:
            others = Booking.objects.filter(warehouse_id=warehouse_id)
            if exclude_booking_id is not None:
                others = others.exclude(pk=exclude_booking_id)
            day_blocked = others.filter(status__in=DAY_BLOCKING_STATUSES, start_date=day).exists()
            occupied = list(
                others.exclude(status=BookingStatus.CANCELLED.value)
                .filter(scheduled_dropoff_datetime__date=day)
                .values_list("scheduled_dropoff_datetime", flat=True)
            )
        except DatabaseError as e:
            raise UpstreamError("Availability is temporarily unavailable") from e

        return generate_slots(
            day,
            window_start,
            window_end,
            interval_minutes=settings.BOOKING_SLOT_INTERVAL_MINUTES,
            occupied=occupied,
            day_blocked=day_blocked,
            tz=timezone.get_current_timezone(),
        )
