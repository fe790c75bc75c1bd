# pickbook/booking/__init__.py
"""
Booking form logic.

Time slots → availability → draft (court, dates, slots, equipment) → pricing.
The submission flow lives in ``pickbook.booking.flow`` (it needs the API client).
"""

from .timeslots import generate_time_slots, parse_clock_label, date_key
from .availability import is_slot_unavailable, available_slots
from .draft import (
    BookingDraft,
    SelectCourt,
    ToggleDate,
    PruneDates,
    FocusDate,
    ToggleSlot,
    ApplyAllDates,
    SetEquipmentQty,
    StepEquipment,
    ClearDraft,
    apply,
)
from .pricing import compute_total, price_breakdown

__all__ = [
    "generate_time_slots",
    "parse_clock_label",
    "date_key",
    "is_slot_unavailable",
    "available_slots",
    "BookingDraft",
    "SelectCourt",
    "ToggleDate",
    "PruneDates",
    "FocusDate",
    "ToggleSlot",
    "ApplyAllDates",
    "SetEquipmentQty",
    "StepEquipment",
    "ClearDraft",
    "apply",
    "compute_total",
    "price_breakdown",
]
