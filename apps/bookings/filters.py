"""FilterSet definitions for booking listings."""

from __future__ import annotations

import django_filters  # type: ignore

from .models import Booking


class BookingFilterSet(django_filters.FilterSet):
    status = django_filters.MultipleChoiceFilter(choices=Booking.Status.choices)
    booking_type = django_filters.ChoiceFilter(choices=Booking.BookingType.choices)
    warehouse = django_filters.UUIDFilter(field_name="warehouse_id")
    customer = django_filters.UUIDFilter(field_name="customer_id")
    start_from = django_filters.DateFilter(field_name="start_date", lookup_expr="gte")
    start_to = django_filters.DateFilter(field_name="start_date", lookup_expr="lte")
    on_behalf = django_filters.BooleanFilter(field_name="booked_on_behalf")

    class Meta:
        model = Booking
        fields = ["status", "booking_type", "warehouse", "customer", "approval_status"]
