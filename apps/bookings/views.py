"""API views for the booking domain.

Views translate HTTP into commands and hand them to the handlers built
in ``services``. Authorization per booking is decided by the handlers
(a user's role differs from booking to booking), so the views only
require an authenticated user. Booking errors are rendered by
``apps.bookings.exception_handler``.
"""

from __future__ import annotations

from django.db.models import Q  # type: ignore
from django_filters.rest_framework import DjangoFilterBackend  # type: ignore
from rest_framework import filters, mixins, permissions, status, viewsets  # type: ignore
from rest_framework.decorators import action  # type: ignore
from rest_framework.response import Response  # type: ignore

from apps.bookings.application.command_handlers import Requester, TransitionBookingCommand
from apps.bookings.domain.entities import ApprovalStatus
from apps.bookings.domain.state_machine import BookingAction

from . import services
from .filters import BookingFilterSet
from .models import Booking
from .serializers import (
    ApprovalRequestSerializer,
    ApprovalResponseSerializer,
    BookingApprovalSerializer,
    BookingCreateSerializer,
    BookingRequestSerializer,
    BookingSerializer,
    CancelSerializer,
    ProposeDateSerializer,
    SelectTimeSlotSerializer,
    TimeSlotQuerySerializer,
    TransitionSerializer,
    quote_to_dict,
)

UUID_PATTERN = r"[0-9a-fA-F-]{36}"


def requester_from(request) -> Requester:
    user = request.user
    return Requester(
        user_id=user.pk,
        name=user.display_name,
        is_admin=user.is_platform_admin(),
    )


class BookingViewSet(mixins.ListModelMixin, mixins.RetrieveModelMixin, viewsets.GenericViewSet):
    """
    Bookings visible to the user, and every lifecycle action on them.

    A user sees the bookings they are the customer of, the ones they made
    on someone's behalf, and the ones at warehouses they staff. Platform
    admins see everything.
    """

    queryset = Booking.objects.select_related("customer", "warehouse", "booked_by").prefetch_related("services")
    serializer_class = BookingSerializer
    permission_classes = [permissions.IsAuthenticated]
    lookup_value_regex = UUID_PATTERN
    filter_backends = [DjangoFilterBackend, filters.SearchFilter, filters.OrderingFilter]
    filterset_class = BookingFilterSet
    search_fields = ["booking_number", "customer_name", "customer_email", "warehouse__name"]
    ordering_fields = ["created_at", "start_date", "total_amount", "status"]
    ordering = ["-created_at"]

    def get_queryset(self):  # type: ignore
        user = self.request.user
        qs = super().get_queryset()
        if user.is_platform_admin():
            return qs
        return qs.filter(
            Q(customer=user)
            | Q(booked_by=user)
            | Q(warehouse__staff_assignments__user=user, warehouse__staff_assignments__is_active=True)
        ).distinct()

    def _booking_response(self, booking_id, http_status=status.HTTP_200_OK) -> Response:
        row = Booking.objects.select_related("customer", "warehouse").prefetch_related("services").get(pk=booking_id)
        return Response(BookingSerializer(row, context=self.get_serializer_context()).data, status=http_status)

    def create(self, request, *args, **kwargs):  # type: ignore
        serializer = BookingCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        booking = services.create_booking_handler().handle(serializer.to_command(requester_from(request)))
        return self._booking_response(booking.id, status.HTTP_201_CREATED)

    @action(detail=False, methods=["post"])
    def quote(self, request):  # type: ignore
        """Price a booking request without creating anything."""
        serializer = BookingRequestSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        quote = services.price_booking_handler().handle(serializer.to_command(requester_from(request)))
        return Response(quote_to_dict(quote))

    @action(detail=True, methods=["post"])
    def transition(self, request, pk=None):  # type: ignore
        serializer = TransitionSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        booking_action = BookingAction(serializer.validated_data["action"])
        payload = serializer.payload()

        if booking_action is BookingAction.SELECT_TIME_SLOT:
            # Slot picks are checked against availability first
            booking = services.time_slot_negotiator().select_time_slot(
                pk, requester_from(request), payload.get("scheduled_dropoff_datetime")
            )
        else:
            booking = services.transition_handler().handle(TransitionBookingCommand(
                booking_id=pk,
                action=booking_action,
                requested_by=requester_from(request),
                payload=payload,
            ))
        return self._booking_response(booking.id)

    @action(detail=True, methods=["post"])
    def cancel(self, request, pk=None):  # type: ignore
        serializer = CancelSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        booking = services.transition_handler().handle(TransitionBookingCommand(
            booking_id=pk,
            action=BookingAction.CANCEL,
            requested_by=requester_from(request),
            payload={"reason": serializer.validated_data["reason"]},
        ))
        return self._booking_response(booking.id)

    # ===== Time slot negotiation =====

    @action(detail=True, methods=["post"], url_path="accept-requested-date")
    def accept_requested_date(self, request, pk=None):  # type: ignore
        booking = services.time_slot_negotiator().accept_requested_date(pk, requester_from(request))
        return self._booking_response(booking.id)

    @action(detail=True, methods=["post"], url_path="propose-date")
    def propose_date(self, request, pk=None):  # type: ignore
        serializer = ProposeDateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        booking = services.time_slot_negotiator().propose_date_change(
            pk,
            requester_from(request),
            serializer.validated_data["proposed_start_date"],
            serializer.validated_data.get("proposed_start_time"),
        )
        return self._booking_response(booking.id)

    @action(detail=True, methods=["get"], url_path="time-slots")
    def time_slots(self, request, pk=None):  # type: ignore
        serializer = TimeSlotQuerySerializer(data=request.query_params)
        serializer.is_valid(raise_exception=True)
        slots = services.time_slot_negotiator().get_available_slots(
            pk, requester_from(request), serializer.validated_data.get("date")
        )
        return Response([slot.to_dict() for slot in slots])

    @action(detail=True, methods=["post"], url_path="select-time-slot")
    def select_time_slot(self, request, pk=None):  # type: ignore
        serializer = SelectTimeSlotSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        booking = services.time_slot_negotiator().select_time_slot(
            pk, requester_from(request), serializer.validated_data["scheduled_dropoff_datetime"]
        )
        return self._booking_response(booking.id)

    @action(detail=True, methods=["post"], url_path="confirm-time-slot")
    def confirm_time_slot(self, request, pk=None):  # type: ignore
        booking = services.time_slot_negotiator().confirm_time_slot(pk, requester_from(request))
        return self._booking_response(booking.id)

    # ===== On-behalf approval =====

    @action(detail=True, methods=["post"], url_path="request-approval")
    def request_approval(self, request, pk=None):  # type: ignore
        serializer = ApprovalRequestSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        approval = services.approval_workflow().request_approval(
            pk, requester_from(request), serializer.validated_data["message"]
        )
        return Response(BookingApprovalSerializer(approval).data, status=status.HTTP_201_CREATED)


class ApprovalViewSet(viewsets.ViewSet):
    """Approval requests waiting on the user, and the ones they sent."""

    permission_classes = [permissions.IsAuthenticated]
    lookup_value_regex = UUID_PATTERN

    @action(detail=False, methods=["get"])
    def pending(self, request):  # type: ignore
        approvals = services.approval_queries().pending_for(request.user.pk)
        return Response(BookingApprovalSerializer(approvals, many=True).data)

    @action(detail=False, methods=["get"])
    def requested(self, request):  # type: ignore
        approval_status = request.query_params.get("status")
        approvals = services.approval_queries().requested_by(
            request.user.pk,
            status=ApprovalStatus(approval_status) if approval_status in {s.value for s in ApprovalStatus} else None,
        )
        return Response(BookingApprovalSerializer(approvals, many=True).data)

    @action(detail=False, methods=["get"])
    def stats(self, request):  # type: ignore
        return Response(services.approval_queries().stats(request.user.pk).to_dict())

    @action(detail=True, methods=["post"])
    def respond(self, request, pk=None):  # type: ignore
        serializer = ApprovalResponseSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        approval = services.approval_workflow().respond_approval(
            pk,
            requester_from(request),
            serializer.validated_data["decision"],
            serializer.validated_data["message"],
        )
        return Response(BookingApprovalSerializer(approval).data)
