"""URL routing for the booking domain."""

from __future__ import annotations

from django.urls import include, path  # type: ignore
from rest_framework.routers import DefaultRouter  # type: ignore

from .views import ApprovalViewSet, BookingViewSet

router = DefaultRouter()
# Registered first so "approvals/" is not taken for a booking id
router.register(r"approvals", ApprovalViewSet, basename="booking-approval")
router.register(r"", BookingViewSet, basename="booking")

urlpatterns = [
    path("", include(router.urls)),
]
