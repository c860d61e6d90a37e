"""API and gateway tests for warehouses."""

from __future__ import annotations

from datetime import date, datetime, time
from decimal import Decimal

from django.urls import reverse
from django.utils import timezone
from rest_framework import status
from rest_framework.test import APITestCase

from apps.bookings.domain.exceptions import NotFoundError
from apps.bookings.domain.pricing import ServicePricingType
from apps.bookings.models import Booking
from apps.users.models import User
from apps.warehouses.models import Warehouse, WarehousePricing, WarehouseService, WarehouseStaffAssignment
from apps.warehouses.services import DjangoAvailabilityService, DjangoWarehouseGateway

MONDAY = date(2026, 3, 2)
SUNDAY = date(2026, 3, 8)


def at(hour: int, minute: int = 0, day: date = MONDAY) -> datetime:
    return datetime.combine(day, time(hour, minute), tzinfo=timezone.get_current_timezone())


class WarehouseGatewayTests(APITestCase):
    def setUp(self) -> None:
        self.warehouse = Warehouse.objects.create(
            name="North Depot",
            city="Columbus",
            product_acceptance_start_time=time(8, 0),
            product_acceptance_end_time=time(10, 0),
            free_storage_rules=[{"minDuration": 30, "freeAmount": 7}],
        )
        self.customer = User.objects.create_user(email="customer@example.com", password="pass12345")
        self.staff = User.objects.create_user(
            email="dock@example.com", password="pass12345", role=User.RoleChoices.WAREHOUSE_STAFF,
        )
        self.gateway = DjangoWarehouseGateway()

    def _booking(self, number: str, **fields) -> Booking:
        return Booking.objects.create(
            booking_number=number,
            booking_type=Booking.BookingType.PALLET,
            customer=self.customer,
            warehouse=self.warehouse,
            pallet_count=5,
            start_date=MONDAY,
            **fields,
        )

    def test_pricing_falls_back_to_defaults_when_unpublished(self) -> None:
        self.assertIsNone(self.gateway.get_pricing(self.warehouse.id))

        WarehousePricing.objects.create(
            warehouse=self.warehouse,
            pallet_monthly_price=Decimal("19.00"),
            volume_discounts={"40": 8},
        )
        table = self.gateway.get_pricing(self.warehouse.id)

        self.assertEqual(table.pallet_monthly_price, Decimal("19.00"))
        self.assertIsNone(table.pallet_daily_price)
        self.assertEqual(table.volume_discounts[0].pallet_threshold, 40)

    def test_free_storage_rules(self) -> None:
        self.assertEqual(self.gateway.get_free_storage_rules(self.warehouse.id), [{"minDuration": 30, "freeAmount": 7}])

    def test_only_active_services_are_offered(self) -> None:
        active = WarehouseService.objects.create(
            warehouse=self.warehouse, name="Labelling", pricing_type="per_pallet", base_price=Decimal("1.25"),
        )
        retired = WarehouseService.objects.create(
            warehouse=self.warehouse, name="Fumigation", pricing_type="one_time",
            base_price=Decimal("90.00"), is_active=False,
        )

        services = self.gateway.get_services(self.warehouse.id, [str(active.id), str(retired.id), "not-a-uuid"])

        self.assertEqual([service.service_id for service in services], [str(active.id)])
        self.assertIs(services[0].pricing_type, ServicePricingType.PER_PALLET)

    def test_staff_access_needs_an_active_assignment(self) -> None:
        self.assertFalse(self.gateway.has_warehouse_access(self.staff.id, self.warehouse.id))

        assignment = WarehouseStaffAssignment.objects.create(warehouse=self.warehouse, user=self.staff)
        self.assertTrue(self.gateway.has_warehouse_access(self.staff.id, self.warehouse.id))

        assignment.is_active = False
        assignment.save()
        self.assertFalse(self.gateway.has_warehouse_access(self.staff.id, self.warehouse.id))

    def test_customers_never_get_staff_access(self) -> None:
        WarehouseStaffAssignment.objects.create(warehouse=self.warehouse, user=self.customer)

        self.assertFalse(self.gateway.has_warehouse_access(self.customer.id, self.warehouse.id))

    def test_inactive_warehouse_does_not_exist_for_booking(self) -> None:
        self.assertTrue(self.gateway.exists(self.warehouse.id))
        self.warehouse.status = Warehouse.Status.INACTIVE
        self.warehouse.save()
        self.assertFalse(self.gateway.exists(self.warehouse.id))

    def test_slots_in_acceptance_window(self) -> None:
        slots = DjangoAvailabilityService().get_available_slots(self.warehouse.id, MONDAY)

        self.assertEqual([slot.start for slot in slots], [at(8), at(8, 30), at(9), at(9, 30)])
        self.assertTrue(all(slot.available for slot in slots))

    def test_no_slots_on_closed_days(self) -> None:
        self.assertEqual(DjangoAvailabilityService().get_available_slots(self.warehouse.id, SUNDAY), [])

    def test_drop_off_occupies_its_slot(self) -> None:
        self._booking("BK1", status=Booking.Status.AWAITING_TIME_SLOT, scheduled_dropoff_datetime=at(9))
        self._booking("BK2", status=Booking.Status.CANCELLED, scheduled_dropoff_datetime=at(9, 30))

        slots = DjangoAvailabilityService().get_available_slots(self.warehouse.id, MONDAY)

        self.assertEqual([slot.start for slot in slots if not slot.available], [at(9)])

    def test_confirmed_booking_blocks_the_day_except_for_itself(self) -> None:
        booking = self._booking("BK3", status=Booking.Status.CONFIRMED)
        service = DjangoAvailabilityService()

        self.assertFalse(any(slot.available for slot in service.get_available_slots(self.warehouse.id, MONDAY)))
        self.assertTrue(all(
            slot.available for slot in service.get_available_slots(self.warehouse.id, MONDAY, booking.id)
        ))

    def test_unknown_warehouse(self) -> None:
        with self.assertRaises(NotFoundError):
            DjangoAvailabilityService().get_available_slots("00000000-0000-0000-0000-000000000000", MONDAY)


class WarehouseAPITests(APITestCase):
    def setUp(self) -> None:
        self.user = User.objects.create_user(email="customer@example.com", password="pass12345")
        self.active = Warehouse.objects.create(name="North Depot", city="Columbus", working_days=[])
        Warehouse.objects.create(name="Old Shed", city="Dayton", status=Warehouse.Status.INACTIVE)
        self.client.force_authenticate(self.user)

    def test_customers_only_see_active_warehouses(self) -> None:
        response = self.client.get(reverse("warehouse-list"))

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([item["name"] for item in response.data["results"]], ["North Depot"])

    def test_time_slots_need_a_date(self) -> None:
        url = reverse("warehouse-time-slots", args=[self.active.id])

        self.assertEqual(self.client.get(url).status_code, status.HTTP_400_BAD_REQUEST)

        response = self.client.get(url, {"date": str(SUNDAY)})
        self.assertEqual(response.status_code, status.HTTP_200_OK, response.data)
        self.assertEqual(len(response.data), 20)
        self.assertEqual(response.data[0]["start"], at(8, day=SUNDAY).isoformat())
