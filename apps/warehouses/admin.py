"""Admin registrations for the warehouses domain."""

from __future__ import annotations

from django.contrib import admin

from .models import Warehouse, WarehousePricing, WarehouseService, WarehouseStaffAssignment


class WarehousePricingInline(admin.StackedInline):
    model = WarehousePricing
    extra = 0
    max_num = 1


class WarehouseServiceInline(admin.TabularInline):
    model = WarehouseService
    extra = 0
    fields = ("name", "category", "pricing_type", "base_price", "is_active")


class WarehouseStaffAssignmentInline(admin.TabularInline):
    model = WarehouseStaffAssignment
    extra = 0
    fields = ("user", "is_active", "assigned_at")
    readonly_fields = ("assigned_at",)
    autocomplete_fields = ("user",)


@admin.register(Warehouse)
class WarehouseAdmin(admin.ModelAdmin):
    list_display = ("name", "city", "state", "status", "total_pallet_capacity", "total_sqft")
    list_filter = ("status", "state", "city")
    search_fields = ("name", "city", "address", "zip_code")
    readonly_fields = ("created_at", "updated_at")
    inlines = [WarehousePricingInline, WarehouseServiceInline, WarehouseStaffAssignmentInline]
