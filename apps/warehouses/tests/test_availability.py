from datetime import date, datetime, time, timezone

import pytest

from apps.warehouses.availability import acceptance_window, generate_slots, is_working_day, parse_time

MONDAY = date(2026, 3, 2)
SATURDAY = date(2026, 3, 7)
DEFAULTS = (time(8, 0), time(18, 0))


def test_working_days_by_name_or_number():
    assert is_working_day(MONDAY, ["Monday", "tuesday"])
    assert not is_working_day(SATURDAY, ["monday", "tuesday"])
    assert is_working_day(SATURDAY, [5])
    assert is_working_day(SATURDAY, [])


def test_acceptance_window_fallbacks():
    assert acceptance_window(time(9, 0), time(12, 0), {}, *DEFAULTS) == (time(9, 0), time(12, 0))
    assert acceptance_window(None, None, {"open": "07:00", "close": "19:00"}, *DEFAULTS) == (time(7, 0), time(19, 0))
    # Inverted hours are ignored
    assert acceptance_window("14:00", "10:00", {"open": "late"}, *DEFAULTS) == DEFAULTS


def test_parse_time():
    assert parse_time("08:30") == time(8, 30)
    assert parse_time("") is None
    assert parse_time("noon") is None


def test_slots_cover_the_window():
    slots = generate_slots(MONDAY, time(8, 0), time(10, 0), interval_minutes=30, tz=timezone.utc)

    assert [slot.start.time() for slot in slots] == [time(8, 0), time(8, 30), time(9, 0), time(9, 30)]
    assert slots[-1].end == datetime(2026, 3, 2, 10, 0, tzinfo=timezone.utc)
    assert all(slot.available for slot in slots)


def test_partial_slot_at_closing_is_dropped():
    slots = generate_slots(MONDAY, time(8, 0), time(9, 45), interval_minutes=30, tz=timezone.utc)

    assert len(slots) == 3


def test_occupied_drop_off_blocks_its_slot():
    taken = datetime(2026, 3, 2, 8, 30, tzinfo=timezone.utc)

    slots = generate_slots(MONDAY, time(8, 0), time(10, 0), occupied=[taken], tz=timezone.utc)

    assert [slot.start for slot in slots if not slot.available] == [taken]


def test_blocked_day_has_no_free_slot():
    slots = generate_slots(MONDAY, time(8, 0), time(10, 0), day_blocked=True, tz=timezone.utc)

    assert slots
    assert not any(slot.available for slot in slots)


def test_interval_must_be_positive():
    with pytest.raises(ValueError):
        generate_slots(MONDAY, time(8, 0), time(10, 0), interval_minutes=0)
