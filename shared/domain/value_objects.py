"""
Common Value Objects

Value objects used across domains:
- Money: Non-negative monetary amount with currency, kept at cent precision
- DateRange: A storage period from start date (inclusive) to end date (exclusive)
"""

from dataclasses import dataclass
from datetime import date
from decimal import Decimal, ROUND_HALF_UP

from shared.domain.base import ValueObject

CENT = Decimal('0.01')
SUPPORTED_CURRENCIES = ('USD', 'EUR', 'GBP', 'CAD')


def to_decimal(value) -> Decimal:
    """Convert ints, floats and strings to Decimal without float noise."""
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def round_money(value) -> Decimal:
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class Money(ValueObject):
    """
    Money value object

    Amounts are rounded to cents on construction and can never be
    negative; callers clamp before building a Money.
    """
    amount: Decimal
    currency: str = 'USD'

    def __post_init__(self):
        object.__setattr__(self, 'amount', round_money(self.amount))
        if self.amount < 0:
            raise ValueError("Amount cannot be negative")
        if self.currency not in SUPPORTED_CURRENCIES:
            raise ValueError(f"Unsupported currency: {self.currency}")

    @classmethod
    def zero(cls, currency: str = 'USD') -> 'Money':
        return cls(Decimal('0'), currency)

    def __add__(self, other: 'Money') -> 'Money':
        if not isinstance(other, Money):
            raise TypeError("Can only add Money to Money")
        if self.currency != other.currency:
            raise ValueError(f"Cannot add different currencies: {self.currency} and {other.currency}")
        return Money(self.amount + other.amount, self.currency)

    def __sub__(self, other: 'Money') -> 'Money':
        if not isinstance(other, Money):
            raise TypeError("Can only subtract Money from Money")
        if self.currency != other.currency:
            raise ValueError(f"Cannot subtract different currencies: {self.currency} and {other.currency}")
        return Money(self.amount - other.amount, self.currency)

    def __mul__(self, factor) -> 'Money':
        if not isinstance(factor, (int, float, Decimal)):
            raise TypeError("Can only multiply Money by number")
        return Money(self.amount * to_decimal(factor), self.currency)

    def __str__(self):
        return f"{self.amount:,.2f} {self.currency}"

    def __repr__(self):
        return f"Money({self.amount}, '{self.currency}')"


@dataclass(frozen=True)
class DateRange(ValueObject):
    """
    Storage period

    start_date is inclusive and end_date exclusive, so the number of
    storage days is simply the difference between the two.
    """
    start_date: date
    end_date: date

    def __post_init__(self):
        if self.start_date >= self.end_date:
            raise ValueError(f"Start date ({self.start_date}) must be before end date ({self.end_date})")

    def overlaps_with(self, other: 'DateRange') -> bool:
        if not isinstance(other, DateRange):
            raise TypeError("Can only check overlap with another DateRange")
        return self.start_date < other.end_date and self.end_date > other.start_date

    def contains(self, check_date: date) -> bool:
        return self.start_date <= check_date < self.end_date

    @property
    def days(self) -> int:
        return (self.end_date - self.start_date).days

    def __len__(self) -> int:
        return self.days

    def __str__(self):
        return f"{self.start_date.isoformat()} - {self.end_date.isoformat()}"

    def __repr__(self):
        return f"DateRange({self.start_date}, {self.end_date})"
