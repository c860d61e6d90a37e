"""Wiring of the booking use cases to Django.

Views and tasks build their handlers here so every entry point runs the
same repositories, gateways and configuration.
"""

from __future__ import annotations

from datetime import timedelta

from django.conf import settings  # type: ignore

from apps.bookings.application.approvals import ApprovalQueries, ApprovalWorkflow
from apps.bookings.application.command_handlers import (
    CreateBookingHandler,
    PriceBookingHandler,
    TransitionBookingHandler,
)
from apps.bookings.application.time_slots import TimeSlotNegotiator
from apps.bookings.domain.pricing import PricingConfig
from apps.users.services import DjangoCustomerDirectory, membership_discount_overrides
from apps.warehouses.services import DjangoAvailabilityService, DjangoWarehouseGateway

from .repositories import DjangoApprovalRepository, DjangoBookingRepository


def get_pricing_config() -> PricingConfig:
    """``WAREHOUSE_PRICING`` defaults with the admin's membership overrides merged in."""
    config = PricingConfig.from_mapping(getattr(settings, "WAREHOUSE_PRICING", {}))
    overrides = membership_discount_overrides()
    if overrides:
        config = config.with_membership_discounts(overrides)
    return config


def approval_ttl() -> timedelta | None:
    hours = getattr(settings, "APPROVAL_REQUEST_TTL_HOURS", None)
    return timedelta(hours=hours) if hours else None


def price_booking_handler() -> PriceBookingHandler:
    return PriceBookingHandler(
        DjangoBookingRepository(),
        DjangoWarehouseGateway(),
        DjangoCustomerDirectory(),
        config_provider=get_pricing_config,
    )


def create_booking_handler() -> CreateBookingHandler:
    return CreateBookingHandler(
        DjangoBookingRepository(),
        DjangoApprovalRepository(),
        DjangoWarehouseGateway(),
        DjangoCustomerDirectory(),
        config_provider=get_pricing_config,
        approval_ttl=approval_ttl(),
    )


def transition_handler() -> TransitionBookingHandler:
    return TransitionBookingHandler(DjangoBookingRepository(), DjangoWarehouseGateway())


def time_slot_negotiator() -> TimeSlotNegotiator:
    return TimeSlotNegotiator(
        DjangoBookingRepository(),
        DjangoWarehouseGateway(),
        DjangoAvailabilityService(),
    )


def approval_workflow() -> ApprovalWorkflow:
    return ApprovalWorkflow(DjangoBookingRepository(), DjangoApprovalRepository(), ttl=approval_ttl())


def approval_queries() -> ApprovalQueries:
    return ApprovalQueries(DjangoApprovalRepository())
