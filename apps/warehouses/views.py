"""API views for the warehouses domain."""

from __future__ import annotations

from django_filters.rest_framework import DjangoFilterBackend  # type: ignore
from rest_framework import filters, permissions, viewsets  # type: ignore
from rest_framework.decorators import action  # type: ignore
from rest_framework.response import Response  # type: ignore

from apps.bookings.services import time_slot_negotiator

from .filters import WarehouseFilterSet
from .models import Warehouse
from .serializers import SlotQuerySerializer, WarehouseSerializer


class WarehouseViewSet(viewsets.ReadOnlyModelViewSet):
    """Warehouse catalogue; inactive warehouses are only listed for admins."""

    queryset = Warehouse.objects.select_related("pricing").prefetch_related("services")
    serializer_class = WarehouseSerializer
    permission_classes = [permissions.IsAuthenticated]
    lookup_value_regex = r"[0-9a-fA-F-]{36}"
    filter_backends = [DjangoFilterBackend, filters.SearchFilter, filters.OrderingFilter]
    filterset_class = WarehouseFilterSet
    search_fields = ["name", "city", "address"]
    ordering_fields = ["name", "city", "total_pallet_capacity", "total_sqft"]

    def get_queryset(self):  # type: ignore
        qs = super().get_queryset()
        if self.request.user.is_platform_admin():
            return qs
        return qs.filter(status=Warehouse.Status.ACTIVE)

    @action(detail=True, methods=["get"], url_path="time-slots")
    def time_slots(self, request, pk=None):  # type: ignore
        """Drop-off slots on ``?date=YYYY-MM-DD``."""
        warehouse = self.get_object()
        serializer = SlotQuerySerializer(data=request.query_params)
        serializer.is_valid(raise_exception=True)
        slots = time_slot_negotiator().slots_for_warehouse(warehouse.id, serializer.validated_data["date"])
        return Response([slot.to_dict() for slot in slots])
