"""Customer directory consumed by the booking core."""

from __future__ import annotations

import logging
from uuid import UUID

from django.core.exceptions import ValidationError as DjangoValidationError  # type: ignore
from django.db import DatabaseError  # type: ignore

from apps.bookings.application.command_handlers import CustomerInfo
from apps.bookings.domain.exceptions import NotFoundError
from apps.bookings.domain.pricing import MembershipTier

from .models import ClientTeamMember, CustomUser, MembershipSetting

logger = logging.getLogger(__name__)


class DjangoCustomerDirectory:
    def get_customer(self, customer_id: UUID) -> CustomerInfo:
        try:
            user = CustomUser.objects.get(pk=customer_id, is_active=True)
        except (CustomUser.DoesNotExist, DjangoValidationError):
            raise NotFoundError("Customer", customer_id) from None
        return CustomerInfo(
            id=user.pk,
            name=user.display_name,
            email=user.email,
            membership_tier=MembershipTier.parse(user.membership_tier),
        )

    def is_team_admin_for(self, booker_id: UUID, customer_id: UUID) -> bool:
        """True when the booker is an admin of a team the customer belongs to."""
        if booker_id == customer_id:
            return False
        admin_teams = ClientTeamMember.objects.filter(
            user_id=booker_id,
            role=ClientTeamMember.Role.ADMIN,
        ).values("team_id")
        return ClientTeamMember.objects.filter(team_id__in=admin_teams, user_id=customer_id).exists()


def membership_discount_overrides() -> dict:
    """Tier -> percent from ``MembershipSetting`` rows; empty when unreadable."""
    try:
        rows = list(MembershipSetting.objects.values_list("tier", "discount_percent"))
    except DatabaseError as e:
        logger.warning(f"Could not read membership settings, using configured discounts: {e}")
        return {}
    return {MembershipTier(tier): percent for tier, percent in rows}
