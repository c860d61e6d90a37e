"""Booking persistence models.

The tables behind the booking aggregate. Pallet and area-rental bookings
share one table; a check constraint keeps each row to exactly one shape.
Rows are never deleted: cancellation is a status.
"""

from __future__ import annotations

import uuid
from decimal import Decimal

from django.conf import settings  # type: ignore
from django.db import models  # type: ignore
from django.utils import timezone  # type: ignore
from django.utils.translation import gettext_lazy as _  # type: ignore


class Booking(models.Model):
    """Reservation of pallet positions or floor area in a warehouse."""

    class BookingType(models.TextChoices):
        PALLET = "pallet", _("Pallet storage")
        AREA_RENTAL = "area-rental", _("Area rental")

    class Status(models.TextChoices):
        PENDING = "pending", _("Pending")
        PAYMENT_PENDING = "payment_pending", _("Payment pending")
        PRE_ORDER = "pre_order", _("Pre-order")
        AWAITING_TIME_SLOT = "awaiting_time_slot", _("Awaiting time slot")
        CONFIRMED = "confirmed", _("Confirmed")
        ACTIVE = "active", _("Active")
        COMPLETED = "completed", _("Completed")
        CANCELLED = "cancelled", _("Cancelled")

    class ApprovalStatus(models.TextChoices):
        PENDING = "pending", _("Pending")
        APPROVED = "approved", _("Approved")
        REJECTED = "rejected", _("Rejected")

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    booking_number = models.CharField(max_length=32, unique=True, editable=False)
    booking_type = models.CharField(max_length=20, choices=BookingType.choices)
    customer = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="bookings",
    )
    customer_name = models.CharField(max_length=255, blank=True)
    customer_email = models.EmailField(blank=True)
    warehouse = models.ForeignKey(
        "warehouses.Warehouse",
        on_delete=models.PROTECT,
        related_name="bookings",
    )

    # Shape
    pallet_count = models.PositiveIntegerField(null=True, blank=True)
    area_sqft = models.DecimalField(max_digits=12, decimal_places=2, null=True, blank=True)
    floor_number = models.IntegerField(null=True, blank=True)
    hall_id = models.CharField(max_length=64, blank=True)

    # Schedule
    start_date = models.DateField()
    end_date = models.DateField(null=True, blank=True)
    months = models.PositiveSmallIntegerField(null=True, blank=True)
    proposed_start_date = models.DateField(null=True, blank=True)
    proposed_start_time = models.TimeField(null=True, blank=True)
    date_change_requested_at = models.DateTimeField(null=True, blank=True)
    date_change_requested_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
    )
    scheduled_dropoff_datetime = models.DateTimeField(null=True, blank=True)
    time_slot_confirmed_at = models.DateTimeField(null=True, blank=True)

    # Amounts, frozen at creation
    base_storage_amount = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))
    services_amount = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))
    total_amount = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))
    discount_amount = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))
    volume_discount_percent = models.DecimalField(max_digits=5, decimal_places=2, default=Decimal("0.00"))
    membership_discount_percent = models.DecimalField(max_digits=5, decimal_places=2, default=Decimal("0.00"))
    currency = models.CharField(max_length=3, default="USD")

    status = models.CharField(max_length=32, choices=Status.choices, default=Status.PENDING)
    notes = models.TextField(blank=True)

    # Delegation
    booked_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="bookings_made",
    )
    booked_on_behalf = models.BooleanField(default=False)
    requires_approval = models.BooleanField(default=False)
    approval_status = models.CharField(max_length=20, choices=ApprovalStatus.choices, blank=True)

    # Lifecycle
    confirmed_at = models.DateTimeField(null=True, blank=True)
    activated_at = models.DateTimeField(null=True, blank=True)
    completed_at = models.DateTimeField(null=True, blank=True)
    cancelled_at = models.DateTimeField(null=True, blank=True)
    cancellation_reason = models.CharField(max_length=255, blank=True)
    created_at = models.DateTimeField(default=timezone.now)
    updated_at = models.DateTimeField(default=timezone.now)

    class Meta:
        verbose_name = _("Booking")
        verbose_name_plural = _("Bookings")
        ordering = ["-created_at"]
        constraints = [
            models.CheckConstraint(
                condition=(
                    models.Q(booking_type="pallet", pallet_count__isnull=False, area_sqft__isnull=True)
                    | models.Q(booking_type="area-rental", area_sqft__isnull=False, pallet_count__isnull=True)
                ),
                name="booking_single_shape",
            ),
            models.CheckConstraint(
                condition=models.Q(end_date__isnull=True) | models.Q(end_date__gt=models.F("start_date")),
                name="booking_valid_dates",
            ),
        ]
        indexes = [
            models.Index(fields=["warehouse", "start_date"]),
            models.Index(fields=["customer", "status"]),
            models.Index(fields=["status"]),
        ]

    def __str__(self) -> str:
        return f"Booking {self.booking_number} ({self.status})"


class BookingService(models.Model):
    """Priced add-on service line, copied from the catalogue at booking time."""

    booking = models.ForeignKey(Booking, on_delete=models.CASCADE, related_name="services")
    service = models.ForeignKey(
        "warehouses.WarehouseService",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="booking_lines",
    )
    service_name = models.CharField(max_length=255)
    pricing_type = models.CharField(max_length=20)
    base_price = models.DecimalField(max_digits=10, decimal_places=2)
    quantity = models.PositiveIntegerField(default=1)
    calculated_price = models.DecimalField(max_digits=12, decimal_places=2)

    class Meta:
        verbose_name = _("Booking service")
        verbose_name_plural = _("Booking services")
        ordering = ["id"]

    def __str__(self) -> str:
        return f"{self.service_name} x{self.quantity}"


class BookingApproval(models.Model):
    """Approval requested from the customer for an on-behalf booking."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    booking = models.OneToOneField(Booking, on_delete=models.CASCADE, related_name="approval")
    requested_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="approvals_requested",
    )
    requested_by_name = models.CharField(max_length=255, blank=True)
    approver = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="approvals_to_answer",
    )
    status = models.CharField(
        max_length=20,
        choices=Booking.ApprovalStatus.choices,
        default=Booking.ApprovalStatus.PENDING,
    )
    request_message = models.TextField(blank=True)
    response_message = models.TextField(blank=True)
    responded_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
    )
    responded_by_name = models.CharField(max_length=255, blank=True)
    requested_at = models.DateTimeField(default=timezone.now)
    responded_at = models.DateTimeField(null=True, blank=True)
    expires_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(default=timezone.now)
    updated_at = models.DateTimeField(default=timezone.now)

    class Meta:
        verbose_name = _("Booking approval")
        verbose_name_plural = _("Booking approvals")
        ordering = ["-requested_at"]
        indexes = [
            models.Index(fields=["approver", "status"]),
            models.Index(fields=["requested_by", "status"]),
        ]

    def __str__(self) -> str:
        return f"Approval for {self.booking_id} ({self.status})"
