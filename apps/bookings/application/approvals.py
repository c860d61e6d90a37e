"""
Approval Workflow

On-behalf bookings: a team admin books for a member of their team and
may ask that member to approve. The member (the booking's customer) is
the only one who can answer; approved and rejected are both final.
Approving only clears the requirement. A rejection is followed by a
cancellation, done asynchronously by the ``BookingApprovalRejected``
handler.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import List
from uuid import UUID

from shared.application.uow import DjangoUnitOfWork
from shared.domain.base import utcnow
from apps.bookings.application.command_handlers import Requester, new_approval
from apps.bookings.domain.entities import Actor, ActorRole, ApprovalStatus, BookingApproval
from apps.bookings.domain.exceptions import AuthorizationError, StateError, ValidationError

logger = logging.getLogger(__name__)


class ApprovalDecision(Enum):
    APPROVE = 'approve'
    REJECT = 'reject'


class ApprovalWorkflow:
    """
    Collaborators:
    - booking_repo: get_by_id(id, lock), save(booking, expected_status)
    - approval_repo: get_by_id(id, lock), get_for_booking(booking_id), add(approval), save(approval)
    """

    def __init__(self, booking_repo, approval_repo, uow_factory=DjangoUnitOfWork, ttl: timedelta | None = None):
        self.booking_repo = booking_repo
        self.approval_repo = approval_repo
        self.uow_factory = uow_factory
        self.ttl = ttl

    def request_approval(self, booking_id: UUID, requester: Requester, message: str = '') -> BookingApproval:
        """Ask the customer to approve a booking made on their behalf"""
        with self.uow_factory() as uow:
            booking = self.booking_repo.get_by_id(booking_id, lock=True)

            if not booking.booked_on_behalf:
                raise ValidationError("Only on-behalf bookings need approval")
            if requester.user_id != booking.booked_by_id and not requester.is_admin:
                raise AuthorizationError("Only the team admin who made the booking can request approval")
            if booking.is_terminal:
                raise StateError(
                    f"Cannot request approval for a {booking.status.value} booking",
                    current_status=booking.status.value,
                )
            if self.approval_repo.get_for_booking(booking.id) is not None:
                raise StateError("Approval has already been requested for this booking")

            approval = new_approval(booking, requester, message, self.ttl)
            booking.requires_approval = True
            booking.approval_status = ApprovalStatus.PENDING
            booking.touch()

            self.approval_repo.add(approval)
            self.booking_repo.save(booking, expected_status=booking.status)
            uow.collect_events(approval)

        logger.info(f"Approval {approval.id} requested for booking {booking.booking_number} by {requester.user_id}")
        return approval

    def respond_approval(
        self,
        approval_id: UUID,
        approver: Requester,
        decision,
        message: str = '',
        now: datetime | None = None,
    ) -> BookingApproval:
        """The customer approves or rejects; the booking records the outcome"""
        try:
            decision = ApprovalDecision(decision)
        except ValueError:
            raise ValidationError(f"Unknown decision: {decision}", field='decision') from None

        with self.uow_factory() as uow:
            approval = self.approval_repo.get_by_id(approval_id, lock=True)
            if approver.user_id != approval.approver_id:
                raise AuthorizationError("Only the customer this booking was made for can respond")

            booking = self.booking_repo.get_by_id(approval.booking_id, lock=True)
            if booking.is_terminal:
                raise StateError(
                    f"Cannot respond to an approval for a {booking.status.value} booking",
                    current_status=booking.status.value,
                )

            actor = Actor(user_id=approver.user_id, role=ActorRole.CUSTOMER, name=approver.name)
            if decision is ApprovalDecision.APPROVE:
                approval.approve(actor, message, now)
            else:
                approval.reject(actor, message, now)

            booking.approval_status = approval.status
            booking.touch()

            self.approval_repo.save(approval)
            self.booking_repo.save(booking, expected_status=booking.status)
            uow.collect_events(approval)

        logger.info(
            f"Approval {approval.id} for booking {booking.booking_number} "
            f"{approval.status.value} by {approver.user_id}"
        )
        return approval


@dataclass(frozen=True)
class ApprovalStats:
    pending: int
    approved: int
    rejected: int

    def to_dict(self) -> dict:
        return {'pending': self.pending, 'approved': self.approved, 'rejected': self.rejected}


class ApprovalQueries:
    """
    Read side of the workflow

    "Pending" means waiting for the user's own decision; "approved" and
    "rejected" count the answers to the approvals the user asked for.
    Expired requests are not pending anymore.
    """

    def __init__(self, approval_repo):
        self.approval_repo = approval_repo

    def pending_for(self, user_id: UUID, now: datetime | None = None) -> List[BookingApproval]:
        now = now or utcnow()
        return [
            approval
            for approval in self.approval_repo.list_for_approver(user_id, status=ApprovalStatus.PENDING)
            if not approval.is_expired(now)
        ]

    def requested_by(self, user_id: UUID, status: ApprovalStatus | None = None) -> List[BookingApproval]:
        return list(self.approval_repo.list_requested_by(user_id, status=status))

    def stats(self, user_id: UUID, now: datetime | None = None) -> ApprovalStats:
        requested = self.requested_by(user_id)
        return ApprovalStats(
            pending=len(self.pending_for(user_id, now)),
            approved=sum(1 for approval in requested if approval.status is ApprovalStatus.APPROVED),
            rejected=sum(1 for approval in requested if approval.status is ApprovalStatus.REJECTED),
        )
