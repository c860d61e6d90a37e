from datetime import date
from decimal import Decimal

import pytest

from shared.domain.value_objects import DateRange, Money, round_money


def test_money_rounds_half_up_to_cents():
    assert Money(Decimal("10.005")).amount == Decimal("10.01")
    assert Money(0.1 + 0.2).amount == Decimal("0.30")
    assert round_money("2.675") == Decimal("2.68")


def test_money_rejects_negative_and_unknown_currency():
    with pytest.raises(ValueError):
        Money(Decimal("-0.01"))
    with pytest.raises(ValueError):
        Money(Decimal("1"), "XYZ")


def test_money_arithmetic():
    total = Money(Decimal("10.50")) + Money(Decimal("2.25"))

    assert total == Money(Decimal("12.75"))
    assert total - Money(Decimal("0.75")) == Money(Decimal("12.00"))
    assert Money(Decimal("1125")) * Decimal("0.9") == Money(Decimal("1012.50"))
    assert str(Money(Decimal("1234.5"))) == "1,234.50 USD"


def test_money_refuses_mixed_currencies():
    with pytest.raises(ValueError):
        Money(Decimal("1"), "USD") + Money(Decimal("1"), "EUR")
    with pytest.raises(TypeError):
        Money(Decimal("1")) + 1


def test_subtracting_below_zero_fails():
    with pytest.raises(ValueError):
        Money(Decimal("1")) - Money(Decimal("2"))


def test_date_range():
    march = DateRange(date(2026, 3, 2), date(2026, 4, 1))

    assert march.days == 30
    assert march.contains(date(2026, 3, 2))
    assert not march.contains(date(2026, 4, 1))
    assert march.overlaps_with(DateRange(date(2026, 3, 31), date(2026, 4, 5)))
    assert not march.overlaps_with(DateRange(date(2026, 4, 1), date(2026, 4, 5)))


def test_date_range_must_be_forward():
    with pytest.raises(ValueError):
        DateRange(date(2026, 3, 2), date(2026, 3, 2))
