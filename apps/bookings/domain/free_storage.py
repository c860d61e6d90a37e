"""
Free-Storage Rule Evaluator

Warehouses attach tiered free-storage rules such as "stays of 30 to 89
days get 7 days free". A rule is a plain mapping (as stored on the
warehouse) or a ``FreeStorageRule``:

    {"minDuration": 30, "maxDuration": 89, "durationUnit": "day",
     "freeAmount": 1, "freeUnit": "week"}

Units are day, week (7 days) and month (30 days). The evaluator never
raises: absent or malformed rules simply grant no free days.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Iterable, Mapping

from shared.domain.base import ValueObject

logger = logging.getLogger(__name__)

UNIT_DAYS = {
    'day': 1,
    'week': 7,
    'month': 30,
}


def to_days(value: int, unit: str) -> int:
    try:
        return value * UNIT_DAYS[unit]
    except KeyError:
        raise ValueError(f"Unknown duration unit: {unit}") from None


@dataclass(frozen=True)
class FreeStorageRule(ValueObject):
    """One tier of a warehouse's free-storage rule set"""
    min_duration: int
    free_amount: int
    max_duration: int | None = None
    duration_unit: str = 'day'
    free_unit: str = 'day'

    def __post_init__(self):
        if self.min_duration < 0 or self.free_amount < 0:
            raise ValueError("Free-storage durations cannot be negative")
        if self.max_duration is not None and self.max_duration < self.min_duration:
            raise ValueError("Max duration must not be below min duration")
        to_days(0, self.duration_unit)
        to_days(0, self.free_unit)

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> 'FreeStorageRule':
        """Build a rule from its stored camelCase or snake_case form"""

        def pick(*keys, default=None):
            for key in keys:
                if key in data and data[key] not in (None, ''):
                    return data[key]
            return default

        min_duration = pick('minDuration', 'min_duration')
        free_amount = pick('freeAmount', 'free_amount')
        if min_duration is None or free_amount is None:
            raise ValueError("Rule needs a min duration and a free amount")
        max_duration = pick('maxDuration', 'max_duration')
        return cls(
            min_duration=int(min_duration),
            free_amount=int(free_amount),
            max_duration=int(max_duration) if max_duration is not None else None,
            duration_unit=str(pick('durationUnit', 'duration_unit', default='day')),
            free_unit=str(pick('freeUnit', 'free_unit', default='day')),
        )

    @property
    def min_days(self) -> int:
        return to_days(self.min_duration, self.duration_unit)

    @property
    def max_days(self) -> int | None:
        if self.max_duration is None:
            return None
        return to_days(self.max_duration, self.duration_unit)

    @property
    def free_days(self) -> int:
        return to_days(self.free_amount, self.free_unit)

    def matches(self, total_stay_days: int) -> bool:
        if total_stay_days < self.min_days:
            return False
        return self.max_days is None or total_stay_days <= self.max_days


def parse_rules(rules: Iterable[Any] | None) -> list[FreeStorageRule]:
    """Parse stored rules, skipping the ones that cannot be understood"""
    if not rules:
        return []
    if isinstance(rules, (str, bytes, Mapping)):
        logger.warning("Ignoring free-storage rules of unexpected type %s", type(rules).__name__)
        return []

    parsed = []
    for raw in rules:
        if isinstance(raw, FreeStorageRule):
            parsed.append(raw)
            continue
        try:
            parsed.append(FreeStorageRule.from_mapping(raw))
        except (TypeError, ValueError, OverflowError, AttributeError) as e:
            logger.warning(f"Skipping malformed free-storage rule {raw!r}: {e}")
    return parsed


def free_days(rules: Iterable[Any] | None, total_stay_days: int) -> int:
    """
    Number of free storage days granted for a stay

    The matching rule with the greatest minimum duration wins; ties go
    to the more generous rule. The result is always within
    ``0 <= free <= total_stay_days``.
    """
    if total_stay_days is None or total_stay_days <= 0:
        return 0

    candidates = [rule for rule in parse_rules(rules) if rule.matches(total_stay_days)]
    if not candidates:
        return 0

    best = max(candidates, key=lambda rule: (rule.min_days, rule.free_days))
    return max(0, min(best.free_days, total_stay_days))


def billable_days(rules: Iterable[Any] | None, total_stay_days: int) -> int:
    return max(0, total_stay_days - free_days(rules, total_stay_days))
