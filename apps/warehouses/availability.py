"""Drop-off slot generation.

Slots are cut every ``interval_minutes`` inside the warehouse's product
acceptance window. The window falls back to the operating hours, then
to the configured default. Non-working days have no slots at all.

A slot is unavailable when another booking already holds a drop-off at
that exact time, or when the whole day is blocked: any confirmed or
active booking starting that day blocks every slot on it. That second
rule is deliberately coarse; there is no per-slot capacity accounting.
"""

from __future__ import annotations

from datetime import date, datetime, time, timedelta, tzinfo
from typing import Iterable

from apps.bookings.application.time_slots import TimeSlot

WEEKDAYS = ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday")


def parse_time(value) -> time | None:
    if value is None or value == "":
        return None
    if isinstance(value, time):
        return value
    try:
        return time.fromisoformat(str(value))
    except ValueError:
        return None


def is_working_day(day: date, working_days: Iterable | None) -> bool:
    """Weekday names (any case) or numbers with Monday = 0; empty means open daily."""
    if not working_days:
        return True
    names = set()
    for entry in working_days:
        if isinstance(entry, int) and 0 <= entry < 7:
            names.add(WEEKDAYS[entry])
        else:
            names.add(str(entry).strip().lower())
    return WEEKDAYS[day.weekday()] in names


def acceptance_window(
    acceptance_start,
    acceptance_end,
    operating_hours: dict | None,
    default_start: time,
    default_end: time,
) -> tuple[time, time]:
    start, end = parse_time(acceptance_start), parse_time(acceptance_end)
    if start and end and start < end:
        return start, end

    hours = operating_hours or {}
    start, end = parse_time(hours.get("open")), parse_time(hours.get("close"))
    if start and end and start < end:
        return start, end

    return default_start, default_end


def generate_slots(
    day: date,
    window_start: time,
    window_end: time,
    interval_minutes: int = 30,
    occupied: Iterable[datetime] = (),
    day_blocked: bool = False,
    tz: tzinfo | None = None,
) -> list[TimeSlot]:
    if interval_minutes <= 0:
        raise ValueError("Slot interval must be positive")

    taken = set(occupied)
    step = timedelta(minutes=interval_minutes)
    cursor = datetime.combine(day, window_start, tzinfo=tz)
    closing = datetime.combine(day, window_end, tzinfo=tz)

    slots = []
    while cursor + step <= closing:
        slots.append(TimeSlot(
            start=cursor,
            end=cursor + step,
            available=not day_blocked and cursor not in taken,
        ))
        cursor += step
    return slots
