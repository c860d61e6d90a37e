"""Integration tests for booking API endpoints."""

from __future__ import annotations

from datetime import date
from decimal import Decimal

from django.urls import reverse
from rest_framework import status
from rest_framework.test import APITestCase

from apps.bookings.models import Booking, BookingApproval
from apps.users.models import ClientTeam, ClientTeamMember, MembershipTier, User
from apps.warehouses.models import Warehouse, WarehouseService, WarehouseStaffAssignment

START = date(2026, 3, 2)


class BookingAPITestCase(APITestCase):
    def setUp(self) -> None:
        self.customer = User.objects.create_user(
            email="customer@example.com",
            password="CustomerPass123",
            first_name="Dana",
            last_name="Fields",
            membership_tier=MembershipTier.GOLD,
        )
        self.staff = User.objects.create_user(
            email="dock@example.com",
            password="StaffPass123",
            role=User.RoleChoices.WAREHOUSE_STAFF,
        )
        self.stranger = User.objects.create_user(email="stranger@example.com", password="StrangerPass123")
        self.warehouse = Warehouse.objects.create(name="North Depot", city="Columbus", working_days=[])
        WarehouseStaffAssignment.objects.create(warehouse=self.warehouse, user=self.staff)
        self.list_url = reverse("booking-list")

    def _payload(self, **overrides) -> dict:
        payload = {
            "warehouse": str(self.warehouse.id),
            "booking_type": "pallet",
            "start_date": str(START),
            "end_date": "2026-04-01",
            "pallet_count": 10,
        }
        payload.update(overrides)
        return payload

    def _create(self, user=None, **overrides) -> dict:
        self.client.force_authenticate(user or self.customer)
        response = self.client.post(self.list_url, self._payload(**overrides), format="json")
        self.assertEqual(response.status_code, status.HTTP_201_CREATED, response.data)
        return response.data

    def _post(self, user, name: str, booking_id, data=None):
        self.client.force_authenticate(user)
        return self.client.post(reverse(name, args=[booking_id]), data or {}, format="json")


class BookingCreationTests(BookingAPITestCase):
    def test_customer_can_create_booking(self) -> None:
        data = self._create()

        self.assertEqual(data["status"], "pending")
        self.assertEqual(data["booking_type"], "pallet")
        self.assertEqual(data["total_amount"], "202.50")
        self.assertEqual(data["membership_discount_percent"], "10.00")
        self.assertEqual(data["customer_name"], "Dana Fields")
        booking = Booking.objects.get()
        self.assertEqual(booking.customer, self.customer)
        self.assertEqual(booking.booked_by, self.customer)
        self.assertFalse(booking.booked_on_behalf)

    def test_services_are_added_to_the_total(self) -> None:
        wrap = WarehouseService.objects.create(
            warehouse=self.warehouse,
            name="Shrink wrap",
            pricing_type=WarehouseService.PricingType.PER_PALLET,
            base_price=Decimal("2.50"),
        )

        data = self._create(services=[{"service_id": str(wrap.id), "quantity": 1}])

        self.assertEqual(data["services_amount"], "25.00")
        self.assertEqual(data["total_amount"], "227.50")
        self.assertEqual(data["services"][0]["service_name"], "Shrink wrap")

    def test_pallet_count_is_required(self) -> None:
        self.client.force_authenticate(self.customer)

        response = self.client.post(self.list_url, self._payload(pallet_count=None), format="json")

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST, response.data)
        self.assertEqual(response.data["error"], "validation_error")
        self.assertEqual(response.data["field"], "pallet_count")
        self.assertEqual(Booking.objects.count(), 0)

    def test_area_rental_below_minimum(self) -> None:
        self.client.force_authenticate(self.customer)

        response = self.client.post(
            self.list_url,
            self._payload(booking_type="area-rental", pallet_count=None, area_sqft="10000"),
            format="json",
        )

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST, response.data)
        self.assertEqual(response.data["detail"], "Minimum area rental is 40000 sq ft")

    def test_quote_creates_nothing(self) -> None:
        self.client.force_authenticate(self.customer)

        response = self.client.post(reverse("booking-quote"), self._payload(), format="json")

        self.assertEqual(response.status_code, status.HTTP_200_OK, response.data)
        self.assertEqual(response.data["base_amount"], "225.00")
        self.assertEqual(response.data["final_amount"], "202.50")
        self.assertEqual([line["item"] for line in response.data["breakdown"]], ["Pallet In", "Storage (1 month)"])
        self.assertEqual(Booking.objects.count(), 0)

    def test_stranger_cannot_quote_for_someone_else(self) -> None:
        Booking.objects.create(
            booking_number="BK-ACTIVE-1",
            booking_type=Booking.BookingType.PALLET,
            customer=self.customer,
            warehouse=self.warehouse,
            pallet_count=40,
            start_date=START,
            status=Booking.Status.ACTIVE,
        )
        self.client.force_authenticate(self.stranger)

        response = self.client.post(
            reverse("booking-quote"), self._payload(customer=str(self.customer.id)), format="json",
        )

        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN, response.data)
        self.assertEqual(response.data["error"], "authorization_error")
        self.assertNotIn("existing_pallet_count", response.data)

    def test_stranger_cannot_book_for_someone_else(self) -> None:
        self.client.force_authenticate(self.stranger)

        response = self.client.post(self.list_url, self._payload(customer=str(self.customer.id)), format="json")

        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN, response.data)
        self.assertEqual(response.data["error"], "authorization_error")

    def test_unknown_warehouse(self) -> None:
        self.client.force_authenticate(self.customer)

        response = self.client.post(
            self.list_url, self._payload(warehouse="00000000-0000-0000-0000-000000000000"), format="json",
        )

        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND, response.data)
        self.assertEqual(response.data["error"], "not_found")


class BookingVisibilityTests(BookingAPITestCase):
    def test_users_see_their_own_and_their_warehouses_bookings(self) -> None:
        booking = self._create()

        for user, expected in ((self.customer, 1), (self.staff, 1), (self.stranger, 0)):
            self.client.force_authenticate(user)
            response = self.client.get(self.list_url)
            self.assertEqual(response.status_code, status.HTTP_200_OK)
            self.assertEqual(response.data["count"], expected, user.email)

        self.client.force_authenticate(self.stranger)
        response = self.client.get(reverse("booking-detail", args=[booking["id"]]))
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_filter_by_status(self) -> None:
        self._create()
        self.client.force_authenticate(self.customer)

        pending = self.client.get(self.list_url, {"status": "pending"})
        active = self.client.get(self.list_url, {"status": "active"})

        self.assertEqual(pending.data["count"], 1)
        self.assertEqual(active.data["count"], 0)


class BookingLifecycleTests(BookingAPITestCase):
    def test_drop_off_scheduling_flow(self) -> None:
        booking_id = self._create()["id"]

        response = self._post(self.customer, "booking-transition", booking_id, {"action": "move_to_pre_order"})
        self.assertEqual(response.data["status"], "pre_order", response.data)

        response = self._post(self.staff, "booking-accept-requested-date", booking_id)
        self.assertEqual(response.data["status"], "awaiting_time_slot", response.data)

        self.client.force_authenticate(self.customer)
        response = self.client.get(reverse("booking-time-slots", args=[booking_id]), {"date": str(START)})
        self.assertEqual(response.status_code, status.HTTP_200_OK, response.data)
        self.assertEqual(len(response.data), 20)
        self.assertTrue(all(slot["available"] for slot in response.data))

        response = self._post(
            self.customer, "booking-select-time-slot", booking_id,
            {"scheduled_dropoff_datetime": "2026-03-02T08:30:00Z"},
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK, response.data)
        self.assertEqual(response.data["status"], "awaiting_time_slot")
        self.assertIsNotNone(response.data["scheduled_dropoff_datetime"])

        response = self._post(self.customer, "booking-confirm-time-slot", booking_id)
        self.assertEqual(response.data["status"], "payment_pending", response.data)
        self.assertIsNotNone(response.data["time_slot_confirmed_at"])

        response = self._post(self.staff, "booking-transition", booking_id, {"action": "confirm"})
        self.assertEqual(response.data["status"], "confirmed", response.data)
        self.assertIsNotNone(Booking.objects.get(pk=booking_id).confirmed_at)

    def test_slot_off_the_grid_is_rejected(self) -> None:
        booking_id = self._create()["id"]
        self._post(self.customer, "booking-transition", booking_id, {"action": "move_to_pre_order"})
        self._post(self.staff, "booking-accept-requested-date", booking_id)

        response = self._post(
            self.customer, "booking-select-time-slot", booking_id,
            {"scheduled_dropoff_datetime": "2026-03-02T08:10:00Z"},
        )

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST, response.data)
        self.assertEqual(response.data["detail"], "Selected time slot is not available")

    def test_staff_propose_another_date(self) -> None:
        booking_id = self._create()["id"]

        response = self._post(
            self.staff, "booking-propose-date", booking_id,
            {"proposed_start_date": "2026-03-09", "proposed_start_time": "10:00"},
        )

        self.assertEqual(response.status_code, status.HTTP_200_OK, response.data)
        self.assertEqual(response.data["status"], "awaiting_time_slot")
        self.assertEqual(response.data["proposed_start_date"], "2026-03-09")

    def test_accepting_date_outside_pre_order_names_both_statuses(self) -> None:
        booking_id = self._create()["id"]

        response = self._post(self.staff, "booking-accept-requested-date", booking_id)

        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT, response.data)
        self.assertEqual(response.data["error"], "state_error")
        self.assertEqual(
            response.data["detail"],
            "Booking must be in pre_order status to set awaiting_time_slot (current status: pending)",
        )
        self.assertEqual(response.data["current_status"], "pending")
        self.assertEqual(response.data["required_statuses"], ["pre_order"])

    def test_customer_cannot_do_staff_transitions(self) -> None:
        booking_id = self._create()["id"]
        self._post(self.customer, "booking-transition", booking_id, {"action": "move_to_pre_order"})

        response = self._post(self.customer, "booking-accept-requested-date", booking_id)

        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN, response.data)
        self.assertEqual(Booking.objects.get(pk=booking_id).status, Booking.Status.PRE_ORDER)

    def test_stranger_cannot_transition(self) -> None:
        booking_id = self._create()["id"]

        response = self._post(self.stranger, "booking-cancel", booking_id, {"reason": "mine now"})

        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN, response.data)
        self.assertEqual(response.data["detail"], "You do not have access to this booking")

    def test_unexpected_fields_are_rejected(self) -> None:
        booking_id = self._create()["id"]

        response = self._post(
            self.customer, "booking-transition", booking_id, {"action": "move_to_pre_order", "reason": "x"},
        )

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST, response.data)
        self.assertEqual(response.data["error"], "validation_error")

    def test_cancel_is_final(self) -> None:
        booking_id = self._create()["id"]

        response = self._post(self.customer, "booking-cancel", booking_id, {"reason": "Plans changed"})
        self.assertEqual(response.status_code, status.HTTP_200_OK, response.data)
        self.assertEqual(response.data["status"], "cancelled")
        self.assertEqual(response.data["cancellation_reason"], "Plans changed")

        response = self._post(self.customer, "booking-cancel", booking_id)
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT, response.data)


class OnBehalfBookingTests(BookingAPITestCase):
    def setUp(self) -> None:
        super().setUp()
        self.team_admin = User.objects.create_user(email="lead@example.com", password="LeadPass1234")
        team = ClientTeam.objects.create(name="Acme", created_by=self.team_admin)
        ClientTeamMember.objects.create(team=team, user=self.team_admin, role=ClientTeamMember.Role.ADMIN)
        ClientTeamMember.objects.create(team=team, user=self.customer)

    def _create_on_behalf(self, **overrides) -> dict:
        return self._create(
            self.team_admin,
            customer=str(self.customer.id),
            requires_approval=True,
            approval_message="Booked for the spring rush",
            **overrides,
        )

    def test_team_admin_books_for_member_with_approval(self) -> None:
        data = self._create_on_behalf()

        self.assertTrue(data["booked_on_behalf"])
        self.assertEqual(data["approval_status"], "pending")
        approval = BookingApproval.objects.get()
        self.assertEqual(approval.approver, self.customer)
        self.assertEqual(approval.requested_by, self.team_admin)
        self.assertIsNotNone(approval.expires_at)

    def test_member_sees_and_rejects_the_request(self) -> None:
        booking_id = self._create_on_behalf()["id"]

        self.client.force_authenticate(self.customer)
        pending = self.client.get(reverse("booking-approval-pending"))
        self.assertEqual(len(pending.data), 1)
        approval_id = pending.data[0]["id"]
        self.assertEqual(pending.data[0]["request_message"], "Booked for the spring rush")

        response = self.client.post(
            reverse("booking-approval-respond", args=[approval_id]),
            {"decision": "reject", "message": "Wrong warehouse"},
            format="json",
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK, response.data)
        self.assertEqual(response.data["status"], "rejected")
        self.assertEqual(Booking.objects.get(pk=booking_id).approval_status, "rejected")

        self.client.force_authenticate(self.team_admin)
        stats = self.client.get(reverse("booking-approval-stats"))
        self.assertEqual(stats.data, {"pending": 0, "approved": 0, "rejected": 1})
        requested = self.client.get(reverse("booking-approval-requested"), {"status": "rejected"})
        self.assertEqual(len(requested.data), 1)

    def test_only_the_member_can_respond(self) -> None:
        self._create_on_behalf()
        approval = BookingApproval.objects.get()

        self.client.force_authenticate(self.team_admin)
        response = self.client.post(
            reverse("booking-approval-respond", args=[approval.id]), {"decision": "approve"}, format="json",
        )

        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN, response.data)

    def test_approval_requested_after_booking(self) -> None:
        booking_id = self._create(self.team_admin, customer=str(self.customer.id))["id"]

        response = self._post(self.team_admin, "booking-request-approval", booking_id, {"message": "Please check"})
        self.assertEqual(response.status_code, status.HTTP_201_CREATED, response.data)
        self.assertEqual(response.data["status"], "pending")

        response = self._post(self.team_admin, "booking-request-approval", booking_id)
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT, response.data)

    def test_member_cannot_book_for_admin(self) -> None:
        self.client.force_authenticate(self.customer)

        response = self.client.post(self.list_url, self._payload(customer=str(self.team_admin.id)), format="json")

        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN, response.data)
