# pickbook/booking/timeslots.py
"""
Hourly slot labels of an area.

An area advertises its hours as 12-hour clock labels ("6:00 AM", "9:00 PM").
Bookable slots are the one-hour intervals between them:

    "06:00 AM - 07:00 AM", "07:00 AM - 08:00 AM", ...

Only the hour part of opening/closing is used; closing before opening wraps
past midnight.
"""

import re
from datetime import date, datetime
from zoneinfo import ZoneInfo

CLOCK_RE = re.compile(r"^(\d{1,2}):(\d{2})\s*(AM|PM)$", re.IGNORECASE)

SLOT_SEPARATOR = " - "


def parse_clock_label(label: str) -> tuple[int, int]:
    """
    "H:MM AM/PM" → (hour 0..23, minute).

    Raises:
        ValueError: label is not a 12-hour clock label
    """
    m = CLOCK_RE.match(label.strip()) if label else None
    if not m:
        raise ValueError(f"Invalid clock label: {label!r}")

    hours, minutes = int(m.group(1)), int(m.group(2))
    if not 1 <= hours <= 12 or minutes > 59:
        raise ValueError(f"Invalid clock label: {label!r}")

    period = m.group(3).upper()
    if period == "PM" and hours != 12:
        hours += 12
    if period == "AM" and hours == 12:
        hours = 0
    return hours, minutes


def format_hour(hour: int) -> str:
    """13 → "01:00 PM", 0 → "12:00 AM"."""
    ampm = "PM" if hour >= 12 else "AM"
    display = hour % 12 or 12
    return f"{display:02d}:00 {ampm}"


def generate_time_slots(opening_time: str, closing_time: str) -> list[str]:
    """One-hour slot labels from opening to closing hour (mod 24)."""
    start_hour, _ = parse_clock_label(opening_time)
    end_hour, _ = parse_clock_label(closing_time)

    count = (end_hour - start_hour) % 24
    slots = []
    for i in range(count):
        hour = (start_hour + i) % 24
        slots.append(f"{format_hour(hour)}{SLOT_SEPARATOR}{format_hour((hour + 1) % 24)}")
    return slots


def slot_start_label(slot: str) -> str:
    """"06:00 AM - 07:00 AM" → "06:00 AM"."""
    return slot.split(SLOT_SEPARATOR)[0].strip()


def date_key(value: date) -> str:
    """Canonical mapping key of a calendar date: YYYY-MM-DD."""
    return value.strftime("%Y-%m-%d")


def parse_date_key(key: str) -> date:
    return datetime.strptime(key, "%Y-%m-%d").date()


def now_in(tz_name: str) -> datetime:
    """Timezone-aware current time of the facility timezone."""
    return datetime.now(ZoneInfo(tz_name))
