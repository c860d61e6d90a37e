"""Admin registration for bookings."""

from __future__ import annotations

from django.contrib import admin

from .models import Booking, BookingApproval, BookingService


class BookingServiceInline(admin.TabularInline):
    model = BookingService
    extra = 0
    readonly_fields = ("service", "service_name", "pricing_type", "base_price", "quantity", "calculated_price")
    can_delete = False


@admin.register(Booking)
class BookingAdmin(admin.ModelAdmin):
    list_display = (
        "booking_number",
        "booking_type",
        "warehouse",
        "customer",
        "status",
        "start_date",
        "total_amount",
        "booked_on_behalf",
        "approval_status",
        "created_at",
    )
    list_filter = ("status", "booking_type", "booked_on_behalf", "approval_status", "start_date")
    search_fields = ("booking_number", "customer__email", "customer_name", "warehouse__name")
    inlines = [BookingServiceInline]
    # Status only moves through the API so the lifecycle rules apply
    readonly_fields = (
        "booking_number",
        "status",
        "base_storage_amount",
        "services_amount",
        "total_amount",
        "discount_amount",
        "volume_discount_percent",
        "membership_discount_percent",
        "confirmed_at",
        "activated_at",
        "completed_at",
        "cancelled_at",
        "created_at",
        "updated_at",
    )


@admin.register(BookingApproval)
class BookingApprovalAdmin(admin.ModelAdmin):
    list_display = ("booking", "requested_by", "approver", "status", "requested_at", "responded_at", "expires_at")
    list_filter = ("status",)
    search_fields = ("booking__booking_number", "requested_by__email", "approver__email")
    readonly_fields = ("requested_at", "responded_at", "created_at", "updated_at")
