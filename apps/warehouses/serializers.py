"""Serializers for the warehouses domain."""

from __future__ import annotations

from rest_framework import serializers  # type: ignore

from .models import Warehouse, WarehousePricing, WarehouseService


class WarehousePricingSerializer(serializers.ModelSerializer):
    class Meta:
        model = WarehousePricing
        fields = [
            "pallet_monthly_price",
            "pallet_daily_price",
            "pallet_in_fee",
            "area_annual_price_per_sqft",
            "area_min_sqft",
            "volume_discounts",
            "updated_at",
        ]


class WarehouseServiceSerializer(serializers.ModelSerializer):
    class Meta:
        model = WarehouseService
        fields = ["id", "name", "description", "category", "pricing_type", "base_price"]


class WarehouseSerializer(serializers.ModelSerializer):
    pricing = WarehousePricingSerializer(read_only=True)
    services = serializers.SerializerMethodField()

    class Meta:
        model = Warehouse
        fields = [
            "id",
            "name",
            "address",
            "city",
            "state",
            "zip_code",
            "status",
            "total_pallet_capacity",
            "total_sqft",
            "operating_hours",
            "working_days",
            "product_acceptance_start_time",
            "product_acceptance_end_time",
            "free_storage_rules",
            "pricing",
            "services",
        ]

    def get_services(self, obj: Warehouse):  # type: ignore
        active = [service for service in obj.services.all() if service.is_active]
        return WarehouseServiceSerializer(active, many=True).data


class SlotQuerySerializer(serializers.Serializer):
    date = serializers.DateField()
