"""Warehouse domain models.

A warehouse publishes its own prices, free-storage rules and add-on
services, and has staff assigned to it who schedule drop-offs. Any
price a warehouse leaves blank falls back to the platform defaults.
"""

from __future__ import annotations

import uuid
from decimal import Decimal

from django.conf import settings  # type: ignore
from django.core.validators import MinValueValidator  # type: ignore
from django.db import models  # type: ignore
from django.utils.translation import gettext_lazy as _  # type: ignore

from apps.bookings.domain.pricing import PricingTable, parse_volume_discounts


def default_working_days() -> list[str]:
    return ["monday", "tuesday", "wednesday", "thursday", "friday"]


class Warehouse(models.Model):
    """A storage facility offering pallet positions and rentable floor area."""

    class Status(models.TextChoices):
        ACTIVE = "active", _("Active")
        INACTIVE = "inactive", _("Inactive")

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    name = models.CharField(max_length=255)
    address = models.CharField(max_length=255, blank=True)
    city = models.CharField(max_length=100)
    state = models.CharField(max_length=100, blank=True)
    zip_code = models.CharField(max_length=20, blank=True)
    status = models.CharField(max_length=20, choices=Status.choices, default=Status.ACTIVE)
    total_pallet_capacity = models.PositiveIntegerField(default=0)
    total_sqft = models.PositiveIntegerField(default=0)
    operating_hours = models.JSONField(
        default=dict,
        blank=True,
        help_text=_('Opening hours, e.g. {"open": "07:00", "close": "19:00"}.'),
    )
    working_days = models.JSONField(
        default=default_working_days,
        blank=True,
        help_text=_("Lowercase weekday names; an empty list means every day."),
    )
    product_acceptance_start_time = models.TimeField(null=True, blank=True)
    product_acceptance_end_time = models.TimeField(null=True, blank=True)
    free_storage_rules = models.JSONField(
        default=list,
        blank=True,
        help_text=_(
            'Tiers such as {"minDuration": 30, "maxDuration": 89, "durationUnit": "day", '
            '"freeAmount": 1, "freeUnit": "week"}.'
        ),
    )
    staff = models.ManyToManyField(
        settings.AUTH_USER_MODEL,
        through="WarehouseStaffAssignment",
        related_name="assigned_warehouses",
        blank=True,
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = _("Warehouse")
        verbose_name_plural = _("Warehouses")
        ordering = ["name"]
        indexes = [
            models.Index(fields=["city", "status"]),
        ]

    def __str__(self) -> str:
        return f"{self.name} ({self.city})"


class WarehousePricing(models.Model):
    """Prices published by one warehouse; blank means platform default."""

    warehouse = models.OneToOneField(Warehouse, on_delete=models.CASCADE, related_name="pricing")
    pallet_monthly_price = models.DecimalField(max_digits=10, decimal_places=2, null=True, blank=True)
    pallet_daily_price = models.DecimalField(max_digits=10, decimal_places=2, null=True, blank=True)
    pallet_in_fee = models.DecimalField(max_digits=10, decimal_places=2, null=True, blank=True)
    area_annual_price_per_sqft = models.DecimalField(max_digits=10, decimal_places=2, null=True, blank=True)
    area_min_sqft = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        null=True,
        blank=True,
        validators=[MinValueValidator(Decimal("0"))],
    )
    volume_discounts = models.JSONField(
        null=True,
        blank=True,
        help_text=_('Pallet threshold to percent, e.g. {"50": 10, "100": 15}.'),
    )
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = _("Warehouse pricing")
        verbose_name_plural = _("Warehouse pricing")

    def __str__(self) -> str:
        return f"Pricing for {self.warehouse_id}"

    def to_pricing_table(self) -> PricingTable:
        return PricingTable(
            pallet_monthly_price=self.pallet_monthly_price,
            pallet_daily_price=self.pallet_daily_price,
            pallet_in_fee=self.pallet_in_fee,
            area_annual_price_per_sqft=self.area_annual_price_per_sqft,
            area_min_sqft=self.area_min_sqft,
            volume_discounts=(
                parse_volume_discounts(self.volume_discounts) if self.volume_discounts else None
            ),
        )


class WarehouseService(models.Model):
    """Add-on service (labelling, shrink wrap, ...) a warehouse sells."""

    class PricingType(models.TextChoices):
        ONE_TIME = "one_time", _("One time")
        PER_PALLET = "per_pallet", _("Per pallet")
        PER_SQFT = "per_sqft", _("Per sq ft")
        PER_DAY = "per_day", _("Per day")
        PER_MONTH = "per_month", _("Per month")

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    warehouse = models.ForeignKey(Warehouse, on_delete=models.CASCADE, related_name="services")
    name = models.CharField(max_length=255)
    description = models.TextField(blank=True)
    category = models.CharField(max_length=50, blank=True)
    pricing_type = models.CharField(max_length=20, choices=PricingType.choices)
    base_price = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        validators=[MinValueValidator(Decimal("0"))],
    )
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        verbose_name = _("Warehouse service")
        verbose_name_plural = _("Warehouse services")
        ordering = ["warehouse", "name"]

    def __str__(self) -> str:
        return f"{self.name} ({self.get_pricing_type_display()})"


class WarehouseStaffAssignment(models.Model):
    warehouse = models.ForeignKey(Warehouse, on_delete=models.CASCADE, related_name="staff_assignments")
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="warehouse_assignments",
    )
    is_active = models.BooleanField(default=True)
    assigned_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        verbose_name = _("Staff assignment")
        verbose_name_plural = _("Staff assignments")
        constraints = [
            models.UniqueConstraint(fields=["warehouse", "user"], name="unique_warehouse_staff"),
        ]

    def __str__(self) -> str:
        return f"{self.user_id} @ {self.warehouse_id}"
