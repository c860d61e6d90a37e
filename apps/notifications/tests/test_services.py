import pytest
from django.core import mail
from django.urls import reverse
from rest_framework.test import APIClient

from apps.notifications.models import Notification
from apps.notifications.services import notify_booking_event, send_email_notification
from apps.users.models import User


@pytest.fixture
def customer():
    return User.objects.create_user(email="customer@example.com", password="pass12345")


@pytest.fixture
def team_admin():
    return User.objects.create_user(email="lead@example.com", password="pass12345")


def event(event_type, **payload):
    payload.setdefault("booking_number", "BK-20260302-0001")
    return {"event_type": event_type, "payload": payload}


@pytest.mark.django_db
def test_booking_created_notifies_customer(customer):
    delivered = notify_booking_event(event("BookingCreated", customer_id=str(customer.pk)))

    assert delivered == 1
    notification = Notification.objects.get(user=customer)
    assert notification.title == "Booking BK-20260302-0001 received"
    assert notification.event_type == "BookingCreated"
    assert len(mail.outbox) == 1
    assert mail.outbox[0].to == ["customer@example.com"]


@pytest.mark.django_db
def test_on_behalf_booking_also_notifies_the_booker(customer, team_admin):
    delivered = notify_booking_event(event(
        "BookingCreated",
        customer_id=str(customer.pk),
        booked_by_id=str(team_admin.pk),
        booked_on_behalf=True,
    ))

    assert delivered == 2
    assert Notification.objects.get(user=team_admin).message == (
        "You created booking BK-20260302-0001 on behalf of a team member."
    )


@pytest.mark.django_db
def test_status_change(customer):
    notify_booking_event(event("BookingStatusChanged", customer_id=str(customer.pk), new_status="awaiting_time_slot"))

    notification = Notification.objects.get(user=customer)
    assert notification.title == "Booking BK-20260302-0001: awaiting time slot"
    assert "pick and confirm a time slot" in notification.message


@pytest.mark.django_db
def test_unknown_status_and_event_are_ignored(customer):
    assert notify_booking_event(event("BookingStatusChanged", customer_id=str(customer.pk), new_status="pending")) == 0
    assert notify_booking_event(event("SomethingElse", customer_id=str(customer.pk))) == 0
    assert not Notification.objects.exists()
    assert mail.outbox == []


@pytest.mark.django_db
def test_missing_recipient_is_skipped():
    missing = "00000000-0000-0000-0000-000000000000"

    assert notify_booking_event(event("BookingCreated", customer_id=missing)) == 0


@pytest.mark.django_db
def test_approval_answer_includes_response(team_admin):
    notify_booking_event(event(
        "BookingApprovalApproved", requested_by=str(team_admin.pk), response_message="Go ahead.",
    ))

    notification = Notification.objects.get(user=team_admin)
    assert notification.title == "Booking approved"
    assert notification.message == "Your booking request was approved. Go ahead."


def test_email_without_recipient_is_not_sent():
    assert send_email_notification("", "Subject", "Body") is False


@pytest.mark.django_db
def test_notifications_api(customer, team_admin):
    mine = Notification.objects.create(user=customer, title="First", message="Hello")
    Notification.objects.create(user=customer, title="Second", message="Hello again")
    Notification.objects.create(user=team_admin, title="Not yours", message="Hidden")
    client = APIClient()
    client.force_authenticate(customer)

    response = client.get(reverse("notifications:notification-list"))
    assert response.status_code == 200
    assert sorted(item["title"] for item in response.data["results"]) == ["First", "Second"]

    response = client.post(reverse("notifications:notification-mark-read", args=[mine.pk]))
    assert response.status_code == 200
    mine.refresh_from_db()
    assert mine.is_read

    response = client.get(reverse("notifications:notification-list"), {"unread": "true"})
    assert [item["title"] for item in response.data["results"]] == ["Second"]

    response = client.post(reverse("notifications:notification-mark-all-read"))
    assert response.data == {"updated": 1}
