import pytest

from apps.bookings.domain.free_storage import FreeStorageRule, billable_days, free_days, parse_rules

TIERED_RULES = [
    {"minDuration": 30, "maxDuration": 89, "durationUnit": "day", "freeAmount": 1, "freeUnit": "week"},
    {"minDuration": 3, "durationUnit": "month", "freeAmount": 1, "freeUnit": "month"},
]


def test_rule_in_weeks_grants_seven_days():
    assert free_days(TIERED_RULES, 60) == 7
    assert billable_days(TIERED_RULES, 60) == 53


def test_longest_matching_tier_wins():
    # 120 days matches only the open-ended three-month tier
    assert free_days(TIERED_RULES, 120) == 30


def test_stay_below_every_tier_gets_nothing():
    assert free_days(TIERED_RULES, 29) == 0
    assert billable_days(TIERED_RULES, 29) == 29


def test_no_rules_means_no_free_days():
    assert free_days(None, 45) == 0
    assert free_days([], 45) == 0


def test_free_days_never_exceed_stay():
    rules = [{"minDuration": 1, "freeAmount": 2, "freeUnit": "month"}]
    assert free_days(rules, 10) == 10
    assert billable_days(rules, 10) == 0


@pytest.mark.parametrize("days", [0, 1, 7, 29, 30, 59, 60, 89, 90, 365])
def test_free_days_bounded_by_stay_length(days):
    granted = free_days(TIERED_RULES, days)
    assert 0 <= granted <= days


def test_overlapping_tiers_prefer_greater_minimum_then_more_free_days():
    rules = [
        FreeStorageRule(min_duration=10, free_amount=5),
        FreeStorageRule(min_duration=20, free_amount=2),
        FreeStorageRule(min_duration=20, free_amount=3),
    ]
    assert free_days(rules, 25) == 3


def test_malformed_rules_are_skipped():
    rules = [
        {"minDuration": "abc", "freeAmount": 1},
        {"freeAmount": 5},
        {"minDuration": 10, "freeAmount": 1, "freeUnit": "fortnight"},
        {"min_duration": 10, "free_amount": 4},
    ]
    assert len(parse_rules(rules)) == 1
    assert free_days(rules, 15) == 4


def test_rules_of_the_wrong_shape_are_ignored():
    assert parse_rules("30 days free") == []
    assert parse_rules({"minDuration": 30}) == []


def test_rule_rejects_inverted_range():
    with pytest.raises(ValueError):
        FreeStorageRule(min_duration=30, max_duration=10, free_amount=1)
