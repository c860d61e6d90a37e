"""
Pricing Calculator

Computes what a booking costs from its physical parameters:

- Pallet storage: in-fee per pallet plus storage priced per month (stays
  of 30 days or more) or per day, free-storage adjusted
- Area rental: annual rate per sq ft prorated monthly over the billable period
- Volume discount: step function of new + existing pallets (pallets only)
- Membership discount: step function of the customer's tier, applied
  after the volume discount
- Add-on services: one_time / per_pallet / per_sqft / per_day / per_month

Nothing here reads settings or storage. The platform defaults arrive as a
``PricingConfig`` and the warehouse's published prices as a
``PricingTable``; a missing table means the defaults apply.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from decimal import Decimal, ROUND_CEILING, ROUND_FLOOR, ROUND_HALF_UP
from enum import Enum
from typing import Any, Iterable, Mapping, Sequence

from shared.domain.value_objects import round_money, to_decimal
from apps.bookings.domain.exceptions import ValidationError
from apps.bookings.domain.free_storage import billable_days

logger = logging.getLogger(__name__)

DAYS_PER_MONTH = 30
MONTH_PRECISION = Decimal('0.0001')
PERCENT_PRECISION = Decimal('0.01')
HUNDRED = Decimal('100')


class MembershipTier(Enum):
    BRONZE = 'bronze'
    SILVER = 'silver'
    GOLD = 'gold'
    PLATINUM = 'platinum'

    @property
    def rank(self) -> int:
        return list(MembershipTier).index(self)

    @classmethod
    def parse(cls, value) -> 'MembershipTier | None':
        if value is None or value == '':
            return None
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).lower())
        except ValueError:
            raise ValidationError(f"Unknown membership tier: {value}", field='membership_tier') from None


class MonthRounding(Enum):
    """How billable days are turned into billable months"""
    PRORATED = 'prorated'   # exact fraction of a 30-day month
    CEILING = 'ceiling'     # every started month counts, at least one
    FLOOR = 'floor'


class ServicePricingType(Enum):
    ONE_TIME = 'one_time'
    PER_PALLET = 'per_pallet'
    PER_SQFT = 'per_sqft'
    PER_DAY = 'per_day'
    PER_MONTH = 'per_month'


def billable_months(days: int, rounding: MonthRounding = MonthRounding.PRORATED) -> Decimal:
    months = Decimal(max(days, 0)) / DAYS_PER_MONTH
    if rounding is MonthRounding.CEILING:
        return max(months.to_integral_value(rounding=ROUND_CEILING), Decimal(1))
    if rounding is MonthRounding.FLOOR:
        return months.to_integral_value(rounding=ROUND_FLOOR)
    return months.quantize(MONTH_PRECISION, rounding=ROUND_HALF_UP)


def _format_quantity(value: Decimal) -> str:
    value = value.normalize()
    if value == value.to_integral_value():
        return str(int(value))
    return f"{value:f}"


def _plural(count: Decimal, unit: str) -> str:
    return f"{_format_quantity(count)} {unit}{'' if count == 1 else 's'}"


# ===== Configuration =====

@dataclass(frozen=True)
class VolumeDiscountTier:
    pallet_threshold: int
    discount_percent: Decimal


@dataclass(frozen=True)
class PricingConfig:
    """
    Platform default prices and discount tables

    Built from settings at the edge of the system and passed into every
    calculation, so tests can price against any configuration.
    """
    pallet_in: Decimal = Decimal('5.00')
    pallet_out: Decimal = Decimal('5.00')
    storage_per_pallet_per_month: Decimal = Decimal('17.50')
    area_rental_per_sqft_per_year: Decimal = Decimal('20.00')
    area_rental_min_sqft: Decimal = Decimal('40000')
    volume_discounts: tuple[VolumeDiscountTier, ...] = (
        VolumeDiscountTier(50, Decimal('10')),
        VolumeDiscountTier(100, Decimal('15')),
        VolumeDiscountTier(250, Decimal('20')),
    )
    membership_discounts: Mapping[MembershipTier, Decimal] = field(default_factory=lambda: {
        MembershipTier.BRONZE: Decimal('0'),
        MembershipTier.SILVER: Decimal('5'),
        MembershipTier.GOLD: Decimal('10'),
        MembershipTier.PLATINUM: Decimal('15'),
    })
    currency: str = 'USD'

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> 'PricingConfig':
        """Build a config from the ``WAREHOUSE_PRICING`` settings shape"""
        defaults = cls()
        volume = data.get('VOLUME_DISCOUNTS')
        membership = data.get('MEMBERSHIP_DISCOUNTS')
        return cls(
            pallet_in=to_decimal(data.get('PALLET_IN', defaults.pallet_in)),
            pallet_out=to_decimal(data.get('PALLET_OUT', defaults.pallet_out)),
            storage_per_pallet_per_month=to_decimal(
                data.get('STORAGE_PER_PALLET_PER_MONTH', defaults.storage_per_pallet_per_month)
            ),
            area_rental_per_sqft_per_year=to_decimal(
                data.get('AREA_RENTAL_PER_SQFT_PER_YEAR', defaults.area_rental_per_sqft_per_year)
            ),
            area_rental_min_sqft=to_decimal(data.get('AREA_RENTAL_MIN_SQFT', defaults.area_rental_min_sqft)),
            volume_discounts=(
                parse_volume_discounts(volume) if volume is not None else defaults.volume_discounts
            ),
            membership_discounts=(
                {MembershipTier(str(tier).lower()): to_decimal(pct) for tier, pct in membership.items()}
                if membership is not None
                else defaults.membership_discounts
            ),
            currency=data.get('CURRENCY', defaults.currency),
        )

    def with_membership_discounts(self, overrides: Mapping[MembershipTier, Decimal]) -> 'PricingConfig':
        merged = dict(self.membership_discounts)
        merged.update({tier: to_decimal(pct) for tier, pct in overrides.items()})
        return PricingConfig(
            pallet_in=self.pallet_in,
            pallet_out=self.pallet_out,
            storage_per_pallet_per_month=self.storage_per_pallet_per_month,
            area_rental_per_sqft_per_year=self.area_rental_per_sqft_per_year,
            area_rental_min_sqft=self.area_rental_min_sqft,
            volume_discounts=self.volume_discounts,
            membership_discounts=merged,
            currency=self.currency,
        )


def parse_volume_discounts(raw) -> tuple[VolumeDiscountTier, ...]:
    """
    Accept ``{"50": 10, "100": 15}`` (as stored on pricing tables) or a
    sequence of ``{"palletThreshold": 50, "discountPercent": 10}`` / tiers.
    """
    if isinstance(raw, Mapping):
        items = [(threshold, pct) for threshold, pct in raw.items()]
    else:
        items = []
        for entry in raw or ():
            if isinstance(entry, VolumeDiscountTier):
                items.append((entry.pallet_threshold, entry.discount_percent))
            elif isinstance(entry, Mapping):
                items.append((
                    entry.get('palletThreshold', entry.get('pallet_threshold')),
                    entry.get('discountPercent', entry.get('discount_percent')),
                ))
            else:
                threshold, pct = entry
                items.append((threshold, pct))
    tiers = [VolumeDiscountTier(int(threshold), to_decimal(pct)) for threshold, pct in items]
    return tuple(sorted(tiers, key=lambda tier: tier.pallet_threshold))


@dataclass(frozen=True)
class PricingTable:
    """
    Prices a warehouse publishes

    Any field left as None falls back to the platform default.
    """
    pallet_monthly_price: Decimal | None = None
    pallet_daily_price: Decimal | None = None
    pallet_in_fee: Decimal | None = None
    area_annual_price_per_sqft: Decimal | None = None
    area_min_sqft: Decimal | None = None
    volume_discounts: tuple[VolumeDiscountTier, ...] | None = None


# ===== Results =====

@dataclass(frozen=True)
class BreakdownLine:
    item: str
    quantity: Decimal
    unit_price: Decimal
    total: Decimal

    def to_dict(self) -> dict:
        return {
            'item': self.item,
            'quantity': str(self.quantity),
            'unit_price': str(self.unit_price),
            'total': str(self.total),
        }


@dataclass(frozen=True)
class PricingResult:
    base_amount: Decimal
    volume_discount: Decimal
    volume_discount_percent: Decimal
    membership_discount: Decimal
    membership_discount_percent: Decimal
    total_discount: Decimal
    total_discount_percent: Decimal
    final_amount: Decimal
    breakdown: tuple[BreakdownLine, ...]
    total_days: int
    free_days: int
    billable_days: int
    billable_months: Decimal

    @property
    def subtotal(self) -> Decimal:
        return self.base_amount


@dataclass(frozen=True)
class ServiceSelection:
    """An add-on service chosen for a booking, with its catalogue price"""
    service_id: str
    name: str
    pricing_type: ServicePricingType
    base_price: Decimal
    quantity: int = 1


@dataclass(frozen=True)
class ServiceLine:
    service_id: str
    name: str
    pricing_type: ServicePricingType
    base_price: Decimal
    quantity: int
    calculated_price: Decimal


# ===== Discounts =====

def volume_discount_percent(total_pallet_count: int, tiers: Iterable[VolumeDiscountTier]) -> Decimal:
    """
    Discount percent for a combined pallet count

    Takes the best percent among every tier the count reaches, so the
    result never decreases as the count grows whatever the tier order.
    """
    reached = [tier.discount_percent for tier in tiers if total_pallet_count >= tier.pallet_threshold]
    return max(reached, default=Decimal('0'))


def membership_discount_percent(tier: MembershipTier | None, config: PricingConfig) -> Decimal:
    """Best percent among this tier and every tier ranked below it"""
    if tier is None:
        return Decimal('0')
    eligible = [
        to_decimal(pct)
        for configured_tier, pct in config.membership_discounts.items()
        if configured_tier.rank <= tier.rank
    ]
    return max(eligible, default=Decimal('0'))


def _apply_discounts(
    base_amount: Decimal,
    volume_percent: Decimal,
    membership_percent: Decimal,
    breakdown: list[BreakdownLine],
    total_days: int,
    granted_free_days: int,
    billable: int,
    months: Decimal,
) -> PricingResult:
    volume_discount = round_money(base_amount * volume_percent / HUNDRED)
    after_volume = base_amount - volume_discount
    membership_discount = round_money(after_volume * membership_percent / HUNDRED)
    total_discount = volume_discount + membership_discount
    total_discount_percent = (
        (total_discount / base_amount * HUNDRED).quantize(PERCENT_PRECISION, rounding=ROUND_HALF_UP)
        if base_amount > 0
        else Decimal('0')
    )
    return PricingResult(
        base_amount=base_amount,
        volume_discount=volume_discount,
        volume_discount_percent=volume_percent,
        membership_discount=membership_discount,
        membership_discount_percent=membership_percent,
        total_discount=total_discount,
        total_discount_percent=total_discount_percent,
        final_amount=max(Decimal('0.00'), round_money(base_amount - total_discount)),
        breakdown=tuple(breakdown),
        total_days=total_days,
        free_days=granted_free_days,
        billable_days=billable,
        billable_months=months,
    )


def _stay(total_days: int, free_storage_rules) -> tuple[int, int]:
    if total_days is None or total_days < 0:
        raise ValidationError("Stay length must be zero or more days", field='end_date')
    billable = billable_days(free_storage_rules, total_days)
    return total_days - billable, billable


# ===== Calculators =====

def calculate_pallet_pricing(
    pallet_count: int | None,
    total_days: int,
    membership_tier: MembershipTier | None = None,
    existing_pallet_count: int = 0,
    pricing_table: PricingTable | None = None,
    free_storage_rules=None,
    config: PricingConfig | None = None,
    month_rounding: MonthRounding = MonthRounding.PRORATED,
) -> PricingResult:
    """
    Price a pallet booking

    Stays of 30 days or more use the warehouse's monthly price when it
    publishes one; otherwise its daily price; otherwise its monthly price
    prorated. With no published storage price the platform default
    (storage per pallet per month) applies.
    """
    if not pallet_count or pallet_count <= 0:
        raise ValidationError("Pallet count is required for pallet bookings", field='pallet_count')

    config = config or PricingConfig()
    table = pricing_table or PricingTable()
    granted, billable = _stay(total_days, free_storage_rules)
    months = billable_months(billable, month_rounding)
    pallets = Decimal(pallet_count)

    in_fee = to_decimal(table.pallet_in_fee) if table.pallet_in_fee is not None else config.pallet_in
    pallet_in_total = round_money(pallets * in_fee)

    if total_days >= DAYS_PER_MONTH and table.pallet_monthly_price is not None:
        unit_price = to_decimal(table.pallet_monthly_price)
        storage_total = round_money(pallets * unit_price * months)
        storage_label = f"Storage ({_plural(months, 'month')})"
        storage_unit_price = round_money(unit_price * months)
    elif table.pallet_daily_price is not None:
        unit_price = to_decimal(table.pallet_daily_price)
        storage_total = round_money(pallets * unit_price * billable)
        storage_label = f"Storage ({_plural(Decimal(billable), 'day')})"
        storage_unit_price = round_money(unit_price * billable)
    else:
        if table.pallet_monthly_price is not None:
            unit_price = to_decimal(table.pallet_monthly_price)
        else:
            logger.debug("No published pallet storage price, using platform default")
            unit_price = config.storage_per_pallet_per_month
        storage_total = round_money(pallets * unit_price * months)
        storage_label = f"Storage ({_plural(months, 'month')})"
        storage_unit_price = round_money(unit_price * months)

    breakdown = [
        BreakdownLine("Pallet In", pallets, round_money(in_fee), pallet_in_total),
        BreakdownLine(storage_label, pallets, storage_unit_price, storage_total),
    ]
    base_amount = pallet_in_total + storage_total

    tiers = table.volume_discounts if table.volume_discounts is not None else config.volume_discounts
    volume_percent = volume_discount_percent(pallet_count + max(existing_pallet_count or 0, 0), tiers)
    membership_percent = membership_discount_percent(membership_tier, config)

    return _apply_discounts(
        base_amount, volume_percent, membership_percent, breakdown, total_days, granted, billable, months,
    )


def calculate_area_rental_pricing(
    area_sqft,
    total_days: int,
    membership_tier: MembershipTier | None = None,
    pricing_table: PricingTable | None = None,
    free_storage_rules=None,
    config: PricingConfig | None = None,
    month_rounding: MonthRounding = MonthRounding.PRORATED,
) -> PricingResult:
    """
    Price an area rental

    The annual rate per sq ft becomes a monthly rate charged over the
    billable months. Area rentals never get a volume discount.
    """
    config = config or PricingConfig()
    table = pricing_table or PricingTable()
    minimum = to_decimal(table.area_min_sqft) if table.area_min_sqft is not None else config.area_rental_min_sqft

    if area_sqft is None or to_decimal(area_sqft) <= 0:
        raise ValidationError(
            "Area square footage is required for area rental bookings", field='area_sqft'
        )
    area = to_decimal(area_sqft)
    if area < minimum:
        raise ValidationError(f"Minimum area rental is {_format_quantity(minimum)} sq ft", field='area_sqft')

    granted, billable = _stay(total_days, free_storage_rules)
    months = billable_months(billable, month_rounding)

    annual_rate = (
        to_decimal(table.area_annual_price_per_sqft)
        if table.area_annual_price_per_sqft is not None
        else config.area_rental_per_sqft_per_year
    )
    monthly_rate = annual_rate / 12
    base_amount = round_money(area * monthly_rate * months)

    breakdown = [
        BreakdownLine(f"Area Rental ({_plural(months, 'month')})", area, round_money(monthly_rate * months), base_amount),
    ]
    membership_percent = membership_discount_percent(membership_tier, config)

    return _apply_discounts(
        base_amount, Decimal('0'), membership_percent, breakdown, total_days, granted, billable, months,
    )


def calculate_service_price(
    service: ServiceSelection,
    pallet_count: int | None,
    area_sqft,
    billable_day_count: int,
) -> Decimal:
    """Price one add-on service line for the booking's shape and stay"""
    if service.quantity is None or service.quantity <= 0:
        raise ValidationError(f"Quantity for service '{service.name}' must be positive", field='services')

    base = to_decimal(service.base_price)
    quantity = Decimal(service.quantity)
    pricing_type = service.pricing_type

    if pricing_type is ServicePricingType.ONE_TIME:
        amount = base * quantity
    elif pricing_type is ServicePricingType.PER_PALLET:
        if not pallet_count:
            raise ValidationError(
                f"Service '{service.name}' is priced per pallet and needs a pallet booking", field='services'
            )
        amount = base * Decimal(pallet_count) * quantity
    elif pricing_type is ServicePricingType.PER_SQFT:
        if not area_sqft:
            raise ValidationError(
                f"Service '{service.name}' is priced per sq ft and needs an area rental", field='services'
            )
        amount = base * to_decimal(area_sqft) * quantity
    elif pricing_type is ServicePricingType.PER_DAY:
        amount = base * Decimal(billable_day_count) * quantity
    elif pricing_type is ServicePricingType.PER_MONTH:
        amount = base * billable_months(billable_day_count, MonthRounding.CEILING) * quantity
    else:
        raise ValidationError(f"Unsupported service pricing type: {pricing_type}", field='services')

    return round_money(amount)


def calculate_services(
    services: Sequence[ServiceSelection],
    pallet_count: int | None,
    area_sqft,
    billable_day_count: int,
) -> tuple[tuple[ServiceLine, ...], Decimal]:
    lines = []
    for service in services:
        lines.append(ServiceLine(
            service_id=service.service_id,
            name=service.name,
            pricing_type=service.pricing_type,
            base_price=round_money(service.base_price),
            quantity=service.quantity,
            calculated_price=calculate_service_price(service, pallet_count, area_sqft, billable_day_count),
        ))
    total = sum((line.calculated_price for line in lines), Decimal('0.00'))
    return tuple(lines), round_money(total)
