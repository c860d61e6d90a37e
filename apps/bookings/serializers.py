"""Serializers for the booking domain.

Input serializers only check shapes and types and build commands; the
business rules (pallet count required, minimum area, ...) are enforced
by the booking core so every entry point reports them the same way.
"""

from __future__ import annotations

from rest_framework import serializers  # type: ignore

from apps.bookings.application.command_handlers import (
    CreateBookingCommand,
    PriceBookingCommand,
    Requester,
    ServiceRequest,
)
from apps.bookings.domain.entities import BookingType
from apps.bookings.domain.state_machine import PAYLOAD_KEYS, BookingAction

from .models import Booking, BookingService


# ===== Input =====

class ServiceRequestSerializer(serializers.Serializer):
    service_id = serializers.CharField()
    quantity = serializers.IntegerField(min_value=1, default=1)


class BookingRequestSerializer(serializers.Serializer):
    """A booking to price; ``customer`` defaults to the requesting user."""

    customer = serializers.UUIDField(required=False)
    warehouse = serializers.UUIDField()
    booking_type = serializers.ChoiceField(choices=[t.value for t in BookingType])
    start_date = serializers.DateField()
    end_date = serializers.DateField(required=False, allow_null=True)
    months = serializers.IntegerField(required=False, allow_null=True, min_value=1)
    pallet_count = serializers.IntegerField(required=False, allow_null=True)
    area_sqft = serializers.DecimalField(max_digits=12, decimal_places=2, required=False, allow_null=True)
    floor_number = serializers.IntegerField(required=False, allow_null=True)
    hall_id = serializers.CharField(required=False, allow_blank=True, default="")
    services = ServiceRequestSerializer(many=True, required=False)
    notes = serializers.CharField(required=False, allow_blank=True, default="")

    def command_kwargs(self, requester: Requester) -> dict:
        data = self.validated_data
        return dict(
            customer_id=data.get("customer") or requester.user_id,
            warehouse_id=data["warehouse"],
            booking_type=BookingType(data["booking_type"]),
            start_date=data["start_date"],
            end_date=data.get("end_date"),
            months=data.get("months"),
            pallet_count=data.get("pallet_count"),
            area_sqft=data.get("area_sqft"),
            floor_number=data.get("floor_number"),
            hall_id=data.get("hall_id", ""),
            services=[
                ServiceRequest(service_id=item["service_id"], quantity=item["quantity"])
                for item in data.get("services", [])
            ],
            notes=data.get("notes", ""),
            requested_by=requester,
        )

    def to_command(self, requester: Requester) -> PriceBookingCommand:
        return PriceBookingCommand(**self.command_kwargs(requester))


class BookingCreateSerializer(BookingRequestSerializer):
    requires_approval = serializers.BooleanField(required=False, default=False)
    approval_message = serializers.CharField(required=False, allow_blank=True, default="")

    def to_command(self, requester: Requester) -> CreateBookingCommand:
        return CreateBookingCommand(
            **self.command_kwargs(requester),
            requires_approval=self.validated_data.get("requires_approval", False),
            approval_message=self.validated_data.get("approval_message", ""),
        )


class TransitionSerializer(serializers.Serializer):
    """``{"action": ..., **payload}``; payload keys depend on the action."""

    action = serializers.ChoiceField(choices=[a.value for a in BookingAction])
    reason = serializers.CharField(required=False, allow_blank=True, max_length=255)
    proposed_start_date = serializers.DateField(required=False)
    proposed_start_time = serializers.TimeField(required=False, allow_null=True)
    scheduled_dropoff_datetime = serializers.DateTimeField(required=False)

    def payload(self) -> dict:
        known = {key for keys in PAYLOAD_KEYS.values() for key in keys}
        return {key: value for key, value in self.validated_data.items() if key in known}


class ProposeDateSerializer(serializers.Serializer):
    proposed_start_date = serializers.DateField()
    proposed_start_time = serializers.TimeField(required=False, allow_null=True)


class SelectTimeSlotSerializer(serializers.Serializer):
    scheduled_dropoff_datetime = serializers.DateTimeField()


class CancelSerializer(serializers.Serializer):
    reason = serializers.CharField(required=False, allow_blank=True, default="", max_length=255)


class ApprovalRequestSerializer(serializers.Serializer):
    message = serializers.CharField(required=False, allow_blank=True, default="")


class ApprovalResponseSerializer(serializers.Serializer):
    decision = serializers.ChoiceField(choices=["approve", "reject"])
    message = serializers.CharField(required=False, allow_blank=True, default="")


class TimeSlotQuerySerializer(serializers.Serializer):
    date = serializers.DateField(required=False)


# ===== Output =====

class BookingServiceSerializer(serializers.ModelSerializer):
    class Meta:
        model = BookingService
        fields = ["service", "service_name", "pricing_type", "base_price", "quantity", "calculated_price"]


class BookingSerializer(serializers.ModelSerializer):
    services = BookingServiceSerializer(many=True, read_only=True)

    class Meta:
        model = Booking
        fields = [
            "id",
            "booking_number",
            "booking_type",
            "status",
            "customer",
            "customer_name",
            "customer_email",
            "warehouse",
            "pallet_count",
            "area_sqft",
            "floor_number",
            "hall_id",
            "start_date",
            "end_date",
            "months",
            "proposed_start_date",
            "proposed_start_time",
            "date_change_requested_at",
            "date_change_requested_by",
            "scheduled_dropoff_datetime",
            "time_slot_confirmed_at",
            "base_storage_amount",
            "services_amount",
            "total_amount",
            "discount_amount",
            "volume_discount_percent",
            "membership_discount_percent",
            "currency",
            "services",
            "notes",
            "booked_by",
            "booked_on_behalf",
            "requires_approval",
            "approval_status",
            "confirmed_at",
            "activated_at",
            "completed_at",
            "cancelled_at",
            "cancellation_reason",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields


class BookingApprovalSerializer(serializers.Serializer):
    """Serializes ``BookingApproval`` domain entities."""

    id = serializers.UUIDField()
    booking_id = serializers.UUIDField()
    requested_by = serializers.UUIDField()
    requested_by_name = serializers.CharField()
    approver_id = serializers.UUIDField()
    status = serializers.CharField(source="status.value")
    request_message = serializers.CharField()
    response_message = serializers.CharField()
    responded_by = serializers.UUIDField(allow_null=True)
    responded_by_name = serializers.CharField()
    requested_at = serializers.DateTimeField()
    responded_at = serializers.DateTimeField(allow_null=True)
    expires_at = serializers.DateTimeField(allow_null=True)


def quote_to_dict(quote) -> dict:
    pricing = quote.pricing
    return {
        "currency": quote.currency,
        "base_amount": str(pricing.base_amount),
        "volume_discount": str(pricing.volume_discount),
        "volume_discount_percent": str(pricing.volume_discount_percent),
        "membership_discount": str(pricing.membership_discount),
        "membership_discount_percent": str(pricing.membership_discount_percent),
        "total_discount": str(pricing.total_discount),
        "total_discount_percent": str(pricing.total_discount_percent),
        "final_amount": str(pricing.final_amount),
        "breakdown": [line.to_dict() for line in pricing.breakdown],
        "total_days": pricing.total_days,
        "free_days": pricing.free_days,
        "billable_days": pricing.billable_days,
        "billable_months": str(pricing.billable_months),
        "existing_pallet_count": quote.existing_pallet_count,
        "services": [
            {
                "service_id": line.service_id,
                "name": line.name,
                "pricing_type": line.pricing_type.value,
                "base_price": str(line.base_price),
                "quantity": line.quantity,
                "calculated_price": str(line.calculated_price),
            }
            for line in quote.services
        ],
        "base_storage_amount": str(quote.base_storage_amount),
        "services_amount": str(quote.services_amount),
        "total_amount": str(quote.total_amount),
    }
