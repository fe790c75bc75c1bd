# pickbook/booking/availability.py
"""
Slot availability of an area on a given date.

A slot is unavailable when
  - an existing booking of the area for that date already reserves the label, or
  - the date is today and the slot start is at or before "now".

A start label that cannot be parsed is logged and treated as available.
"""

import logging
from datetime import datetime
from typing import Iterable

from .models import Area, ReservedSlot
from .timeslots import date_key, parse_clock_label, slot_start_label

logger = logging.getLogger(__name__)


def reserved_labels(bookings: Iterable[ReservedSlot], day_key: str) -> set[str]:
    """All labels reserved on ``day_key`` across every booking entry of that date."""
    reserved: set[str] = set()
    for entry in bookings:
        if entry.date == day_key:
            reserved.update(entry.time)
    return reserved


def is_slot_unavailable(area: Area, day_key: str, slot: str, now: datetime) -> bool:
    if slot in reserved_labels(area.bookings, day_key):
        return True

    if day_key != date_key(now.date()):
        return False

    start = slot_start_label(slot)
    try:
        hours, minutes = parse_clock_label(start)
    except ValueError:
        logger.warning(f"[AVAILABILITY] unparseable slot start {start!r} in {slot!r}, treating as available")
        return False

    slot_start = now.replace(hour=hours, minute=minutes, second=0, microsecond=0)
    return slot_start <= now


def available_slots(area: Area, day_key: str, slots: Iterable[str], now: datetime) -> list[str]:
    return [s for s in slots if not is_slot_unavailable(area, day_key, s, now)]
