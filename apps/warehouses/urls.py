"""URL routing for the warehouses domain."""

from __future__ import annotations

from django.urls import include, path  # type: ignore
from rest_framework.routers import DefaultRouter  # type: ignore

from .views import WarehouseViewSet

router = DefaultRouter()
router.register(r"", WarehouseViewSet, basename="warehouse")

urlpatterns = [
    path("", include(router.urls)),
]
