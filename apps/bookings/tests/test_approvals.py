from datetime import datetime, timedelta, timezone
from uuid import uuid4

import pytest

from shared.application.message_bus import MessageBus
from apps.bookings.application.approvals import ApprovalQueries, ApprovalWorkflow
from apps.bookings.application.command_handlers import Requester
from apps.bookings.domain.entities import ApprovalStatus, BookingStatus
from apps.bookings.domain.events import ApprovalRequested, BookingApprovalApproved, BookingApprovalRejected
from apps.bookings.domain.exceptions import AuthorizationError, StateError, ValidationError
from apps.bookings.tests.fakes import (
    InMemoryApprovalRepository,
    InMemoryBookingRepository,
    pallet_booking,
    uow_factory,
)


class TestApprovalWorkflow:
    @pytest.fixture(autouse=True)
    def setup(self):
        self.member_id = uuid4()
        self.team_admin_id = uuid4()
        self.booking = pallet_booking(
            self.member_id, uuid4(), booked_by_id=self.team_admin_id, booked_on_behalf=True,
        )
        self.bookings = InMemoryBookingRepository([self.booking])
        self.approvals = InMemoryApprovalRepository()
        self.published = []
        bus = MessageBus()
        for event_type in (ApprovalRequested, BookingApprovalApproved, BookingApprovalRejected):
            bus.register_event_handler(event_type, self.published.append)
        self.workflow = ApprovalWorkflow(
            self.bookings, self.approvals, uow_factory=uow_factory(bus), ttl=timedelta(hours=72),
        )
        self.team_admin = Requester(user_id=self.team_admin_id, name="Team Lead")
        self.member = Requester(user_id=self.member_id, name="Acme")

    def test_team_admin_requests_approval(self):
        approval = self.workflow.request_approval(self.booking.id, self.team_admin, "Can you check the dates?")

        assert approval.status is ApprovalStatus.PENDING
        assert approval.approver_id == self.member_id
        assert approval.requested_by_name == "Team Lead"
        stored = self.bookings.stored(self.booking.id)
        assert stored.requires_approval
        assert stored.approval_status is ApprovalStatus.PENDING
        assert isinstance(self.published[-1], ApprovalRequested)

    def test_only_on_behalf_bookings(self):
        own = pallet_booking(self.member_id, uuid4())
        self.bookings.add(own)

        with pytest.raises(ValidationError):
            self.workflow.request_approval(own.id, self.member)

    def test_only_the_booker_may_request(self):
        with pytest.raises(AuthorizationError):
            self.workflow.request_approval(self.booking.id, self.member)

    def test_no_approval_for_finished_bookings(self):
        done = pallet_booking(
            self.member_id, uuid4(), status=BookingStatus.CANCELLED,
            booked_by_id=self.team_admin_id, booked_on_behalf=True,
        )
        self.bookings.add(done)

        with pytest.raises(StateError):
            self.workflow.request_approval(done.id, self.team_admin)

    def test_one_approval_per_booking(self):
        self.workflow.request_approval(self.booking.id, self.team_admin)

        with pytest.raises(StateError):
            self.workflow.request_approval(self.booking.id, self.team_admin)

    def test_customer_approves(self):
        approval = self.workflow.request_approval(self.booking.id, self.team_admin)

        answered = self.workflow.respond_approval(approval.id, self.member, 'approve', "Looks good")

        assert answered.status is ApprovalStatus.APPROVED
        assert answered.response_message == "Looks good"
        assert answered.responded_by == self.member_id
        assert self.bookings.stored(self.booking.id).approval_status is ApprovalStatus.APPROVED
        assert self.bookings.stored(self.booking.id).status is BookingStatus.PENDING
        assert isinstance(self.published[-1], BookingApprovalApproved)

    def test_customer_rejects(self):
        approval = self.workflow.request_approval(self.booking.id, self.team_admin)

        answered = self.workflow.respond_approval(approval.id, self.member, 'reject')

        assert answered.status is ApprovalStatus.REJECTED
        assert self.bookings.stored(self.booking.id).approval_status is ApprovalStatus.REJECTED
        assert isinstance(self.published[-1], BookingApprovalRejected)

    def test_only_the_customer_may_respond(self):
        approval = self.workflow.request_approval(self.booking.id, self.team_admin)

        with pytest.raises(AuthorizationError):
            self.workflow.respond_approval(approval.id, self.team_admin, 'approve')

    def test_answers_are_final(self):
        approval = self.workflow.request_approval(self.booking.id, self.team_admin)
        self.workflow.respond_approval(approval.id, self.member, 'approve')

        with pytest.raises(StateError):
            self.workflow.respond_approval(approval.id, self.member, 'reject')
        assert self.approvals.get_by_id(approval.id).status is ApprovalStatus.APPROVED

    def test_cancelled_booking_cannot_be_approved(self):
        approval = self.workflow.request_approval(self.booking.id, self.team_admin)
        cancelled = self.bookings.get_by_id(self.booking.id)
        cancelled.status = BookingStatus.CANCELLED
        self.bookings._bookings[self.booking.id] = cancelled
        published = len(self.published)

        with pytest.raises(StateError) as excinfo:
            self.workflow.respond_approval(approval.id, self.member, 'approve')

        assert excinfo.value.current_status == 'cancelled'
        assert self.approvals.get_by_id(approval.id).status is ApprovalStatus.PENDING
        assert len(self.published) == published

    def test_expired_request_cannot_be_answered(self):
        approval = self.workflow.request_approval(self.booking.id, self.team_admin)
        later = approval.requested_at + timedelta(hours=73)

        with pytest.raises(StateError):
            self.workflow.respond_approval(approval.id, self.member, 'approve', now=later)

    def test_unknown_decision(self):
        with pytest.raises(ValidationError):
            self.workflow.respond_approval(uuid4(), self.member, 'maybe')

    def test_queries(self):
        approval = self.workflow.request_approval(self.booking.id, self.team_admin)
        queries = ApprovalQueries(self.approvals)

        assert [a.id for a in queries.pending_for(self.member_id)] == [approval.id]
        assert queries.pending_for(self.team_admin_id) == []
        assert queries.pending_for(self.member_id, now=approval.expires_at) == []

        self.workflow.respond_approval(approval.id, self.member, 'reject')

        assert queries.stats(self.team_admin_id).to_dict() == {'pending': 0, 'approved': 0, 'rejected': 1}
        assert len(queries.requested_by(self.team_admin_id, status=ApprovalStatus.REJECTED)) == 1
        assert queries.requested_by(self.team_admin_id, status=ApprovalStatus.APPROVED) == []


def test_approval_without_ttl_never_expires():
    member_id = uuid4()
    booking = pallet_booking(member_id, uuid4(), booked_by_id=uuid4(), booked_on_behalf=True)
    workflow = ApprovalWorkflow(
        InMemoryBookingRepository([booking]), InMemoryApprovalRepository(), uow_factory=uow_factory(),
    )

    approval = workflow.request_approval(booking.id, Requester(user_id=booking.booked_by_id))

    assert approval.expires_at is None
    assert not approval.is_expired(datetime(2100, 1, 1, tzinfo=timezone.utc))
