"""FilterSet definitions for warehouse listings."""

from __future__ import annotations

import django_filters  # type: ignore

from .models import Warehouse


class WarehouseFilterSet(django_filters.FilterSet):
    city = django_filters.CharFilter(field_name="city", lookup_expr="icontains")
    state = django_filters.CharFilter(field_name="state", lookup_expr="iexact")
    min_pallets = django_filters.NumberFilter(field_name="total_pallet_capacity", lookup_expr="gte")
    min_sqft = django_filters.NumberFilter(field_name="total_sqft", lookup_expr="gte")

    class Meta:
        model = Warehouse
        fields = ["city", "state", "status"]
